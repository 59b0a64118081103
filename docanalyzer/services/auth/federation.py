from __future__ import annotations

from datetime import datetime, timezone
import logging
from urllib.parse import urldefrag, urlencode
from uuid import uuid4

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from docanalyzer.core.config import get_settings
from docanalyzer.core.errors import AuthenticationFailedError
from docanalyzer.domain.models import User
from docanalyzer.persistence.repos import users as users_repo
from docanalyzer.services.auth.accounts import AuthResult
from docanalyzer.services.auth.oidc import FederatedClaims, IdentityProviderVerifier
from docanalyzer.services.auth.otp import clear_otp
from docanalyzer.services.auth.session_tokens import issue_session_token


logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _audience() -> str:
    client_id = get_settings().google_client_id
    if not client_id:
        raise AuthenticationFailedError("Federated login is not configured")
    return client_id


def _apply_claims(user: User, claims: FederatedClaims) -> None:
    # First federated login on an existing email links the account and marks it verified.
    if not user.google_id:
        user.google_id = claims.subject
        if not user.is_verified:
            # A password from an unconfirmed signup was never proven to belong to this mailbox.
            user.is_verified = True
            user.password_hash = None
            clear_otp(user)
        logger.info("federation_linked user_id=%s", user.id)
    user.last_login_at = _utc_now()


async def resolve_federated_user(session: AsyncSession, claims: FederatedClaims) -> User:
    """Find, link, or create the local user for a verified federated identity."""
    email = users_repo.normalize_email(claims.email)
    user = await users_repo.get_by_email(session, email)
    if user is not None:
        _apply_claims(user, claims)
        await session.commit()
        return user

    # Federated-only accounts get no password hash, so password login always fails.
    user = User(
        id=uuid4().hex,
        email=email,
        name=claims.name or email.split("@")[0],
        password_hash=None,
        is_verified=True,
        google_id=claims.subject,
        last_login_at=_utc_now(),
    )
    session.add(user)
    try:
        await session.commit()
    except IntegrityError:
        # Lost a race with a concurrent signup for the same email; link to that row.
        await session.rollback()
        user = await users_repo.get_by_email(session, email)
        if user is None:
            raise
        _apply_claims(user, claims)
        await session.commit()
        return user
    logger.info("federation_user_created user_id=%s", user.id)
    return user


async def federated_login(
    session: AsyncSession, *, id_token: str, verifier: IdentityProviderVerifier
) -> AuthResult:
    claims = await verifier.verify_assertion(id_token, _audience())
    user = await resolve_federated_user(session, claims)
    return AuthResult(user=user, token=issue_session_token(user.id))


async def federated_callback(
    session: AsyncSession, *, code: str, verifier: IdentityProviderVerifier
) -> AuthResult:
    settings = get_settings()
    audience = _audience()
    id_token = await verifier.exchange_code(code, settings.oauth_redirect_uri)
    claims = await verifier.verify_assertion(id_token, audience)
    user = await resolve_federated_user(session, claims)
    return AuthResult(user=user, token=issue_session_token(user.id))


def build_success_redirect(token: str) -> str:
    # The token travels in the fragment so it never reaches server logs.
    base, _fragment = urldefrag(get_settings().oauth_success_redirect)
    return f"{base}#{urlencode({'token': token})}"
