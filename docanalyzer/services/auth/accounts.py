from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
import logging
from uuid import uuid4

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from docanalyzer.core.config import get_settings
from docanalyzer.core.errors import (
    ConflictError,
    InvalidCredentialsError,
    NotFoundError,
)
from docanalyzer.domain.models import User
from docanalyzer.persistence.repos import users as users_repo
from docanalyzer.services.auth.otp import check_otp, clear_otp, issue_otp
from docanalyzer.services.auth.passwords import hash_password, verify_password
from docanalyzer.services.auth.session_tokens import issue_session_token
from docanalyzer.services.notifications.email import EmailSender
from docanalyzer.services.notifications.templates import OTP_SUBJECT, render_otp_email


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthResult:
    user: User
    token: str


@dataclass(frozen=True)
class PendingRegistration:
    user: User
    otp_code: str


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _prepare_pending(user: User, *, name: str, password: str) -> str:
    # Overwrite name/password and replace any earlier challenge.
    user.name = name
    user.password_hash = hash_password(password)
    return issue_otp(user)


async def _upsert_pending_user(
    session: AsyncSession, *, email: str, name: str, password: str
) -> tuple[User, str]:
    existing = await users_repo.get_by_email(session, email)
    if existing is not None:
        if existing.is_verified:
            raise ConflictError()
        code = _prepare_pending(existing, name=name, password=password)
        await session.commit()
        return existing, code

    user = User(id=uuid4().hex, email=email, is_verified=False)
    code = _prepare_pending(user, name=name, password=password)
    session.add(user)
    try:
        await session.commit()
    except IntegrityError:
        # A concurrent signup for the same email won the insert; update that row instead.
        await session.rollback()
        existing = await users_repo.get_by_email(session, email)
        if existing is None:
            raise
        if existing.is_verified:
            raise ConflictError() from None
        code = _prepare_pending(existing, name=name, password=password)
        await session.commit()
        return existing, code
    return user, code


async def begin_registration(
    session: AsyncSession,
    *,
    email: str,
    name: str,
    password: str,
    email_sender: EmailSender,
) -> PendingRegistration:
    """Create or refresh an unverified user and email them a one-time code.

    The row is committed before the email goes out; a delivery failure is
    raised to the caller and the user can simply sign up again to get a
    fresh code.
    """
    normalized = users_repo.normalize_email(email)
    user, code = await _upsert_pending_user(session, email=normalized, name=name, password=password)
    settings = get_settings()
    html_body = render_otp_email(email=normalized, code=code, ttl_minutes=settings.otp_ttl_minutes)
    await email_sender.send(to_address=normalized, subject=OTP_SUBJECT, html_body=html_body)
    logger.info("registration_otp_issued user_id=%s", user.id)
    return PendingRegistration(user=user, otp_code=code)


async def redeem_otp(session: AsyncSession, *, email: str, code: str | int) -> AuthResult:
    user = await users_repo.get_by_email(session, email)
    if user is None:
        raise NotFoundError("User not found")
    if user.is_verified:
        # Resubmitting after success is not an error.
        return AuthResult(user=user, token=issue_session_token(user.id))
    check_otp(user, code)
    user.is_verified = True
    clear_otp(user)
    await session.commit()
    logger.info("registration_verified user_id=%s", user.id)
    return AuthResult(user=user, token=issue_session_token(user.id))


async def authenticate(session: AsyncSession, *, email: str, password: str) -> AuthResult:
    # Same error for unknown email, wrong password, unverified and password-less accounts.
    user = await users_repo.get_by_email(session, email)
    if user is None or not user.is_verified or not verify_password(password, user.password_hash):
        raise InvalidCredentialsError()
    user.last_login_at = _utc_now()
    await session.commit()
    return AuthResult(user=user, token=issue_session_token(user.id))


async def get_user(session: AsyncSession, user_id: str) -> User:
    user = await users_repo.get_by_id(session, user_id)
    if user is None:
        raise NotFoundError("User not found")
    return user


async def update_profile(
    session: AsyncSession,
    *,
    user_id: str,
    name: str | None = None,
    email: str | None = None,
) -> AuthResult:
    user = await get_user(session, user_id)
    if name:
        user.name = name
    if email:
        normalized = users_repo.normalize_email(email)
        if normalized != user.email:
            other = await users_repo.get_by_email(session, normalized)
            if other is not None:
                raise ConflictError("Email already in use")
            user.email = normalized
    try:
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        raise ConflictError("Email already in use") from exc
    return AuthResult(user=user, token=issue_session_token(user.id))


async def change_password(
    session: AsyncSession,
    *,
    user_id: str,
    current_password: str | None,
    new_password: str,
) -> AuthResult:
    user = await get_user(session, user_id)
    # Federation-only accounts may set a first password without one to confirm.
    if user.password_hash is not None and not verify_password(current_password or "", user.password_hash):
        raise InvalidCredentialsError()
    user.password_hash = hash_password(new_password)
    await session.commit()
    logger.info("password_changed user_id=%s", user.id)
    return AuthResult(user=user, token=issue_session_token(user.id))
