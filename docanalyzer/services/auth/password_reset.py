from __future__ import annotations

from datetime import datetime, timedelta, timezone
import hashlib
import logging
import secrets

from sqlalchemy.ext.asyncio import AsyncSession

from docanalyzer.core.config import get_settings
from docanalyzer.core.errors import InvalidOrExpiredTokenError, NotFoundError
from docanalyzer.persistence.repos import users as users_repo
from docanalyzer.services.auth.accounts import AuthResult
from docanalyzer.services.auth.passwords import hash_password
from docanalyzer.services.auth.session_tokens import issue_session_token
from docanalyzer.services.notifications.email import EmailSender
from docanalyzer.services.notifications.templates import (
    PASSWORD_RESET_SUBJECT,
    render_password_reset_email,
)


logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    return value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)


def hash_reset_token(raw_token: str) -> str:
    # Use SHA-256 for deterministic, non-reversible token storage.
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


def build_reset_url(raw_token: str) -> str:
    base = get_settings().frontend_url.rstrip("/")
    return f"{base}/reset-password/{raw_token}"


async def request_password_reset(session: AsyncSession, *, email: str) -> str:
    """Store a hashed reset token for ``email`` and return the raw token.

    Issuing a new token replaces any earlier one.
    """
    user = await users_repo.get_by_email(session, email)
    if user is None:
        raise NotFoundError("No user found with that email")
    settings = get_settings()
    raw_token = secrets.token_hex(32)
    user.password_reset_token_hash = hash_reset_token(raw_token)
    user.password_reset_expires_at = _utc_now() + timedelta(
        minutes=settings.password_reset_ttl_minutes
    )
    await session.commit()
    logger.info("password_reset_requested user_id=%s", user.id)
    return raw_token


async def send_password_reset_email(
    *, email: str, raw_token: str, email_sender: EmailSender
) -> None:
    settings = get_settings()
    html_body = render_password_reset_email(
        email=users_repo.normalize_email(email),
        reset_url=build_reset_url(raw_token),
        ttl_minutes=settings.password_reset_ttl_minutes,
    )
    await email_sender.send(
        to_address=users_repo.normalize_email(email),
        subject=PASSWORD_RESET_SUBJECT,
        html_body=html_body,
    )


async def redeem_password_reset(
    session: AsyncSession, *, raw_token: str, new_password: str
) -> AuthResult:
    user = await users_repo.get_by_reset_token_hash(session, hash_reset_token(raw_token))
    if (
        user is None
        or user.password_reset_expires_at is None
        or _as_utc(user.password_reset_expires_at) <= _utc_now()
    ):
        raise InvalidOrExpiredTokenError()
    # Password swap and token clearing land in one commit so the token is single use.
    user.password_hash = hash_password(new_password)
    user.password_reset_token_hash = None
    user.password_reset_expires_at = None
    await session.commit()
    logger.info("password_reset_redeemed user_id=%s", user.id)
    return AuthResult(user=user, token=issue_session_token(user.id))
