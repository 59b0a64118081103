from __future__ import annotations

from typing import AsyncGenerator

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from docanalyzer.core.errors import UnauthorizedError
from docanalyzer.domain.models import User
from docanalyzer.persistence.db import get_session
from docanalyzer.persistence.repos import users as users_repo
from docanalyzer.services.auth.oidc import IdentityProviderVerifier, get_identity_verifier
from docanalyzer.services.auth.session_tokens import verify_session_token
from docanalyzer.services.notifications.email import EmailSender, get_email_sender


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    # One AsyncSession per request; context manager ensures close on success/error.
    async with get_session() as session:
        yield session


def email_sender_dep() -> EmailSender:
    # Overridden in tests to capture outbound mail.
    return get_email_sender()


def identity_verifier_dep() -> IdentityProviderVerifier:
    return get_identity_verifier()


def _parse_bearer_token(header_value: str | None) -> str:
    # Enforce Bearer token format for session authentication.
    if not header_value:
        raise UnauthorizedError("Not authorized, no token")
    parts = header_value.split()
    if len(parts) != 2 or parts[0].lower() != "bearer":
        raise UnauthorizedError("Missing or invalid bearer token")
    return parts[1]


async def get_current_user(request: Request, db: AsyncSession = Depends(get_db)) -> User:
    token = _parse_bearer_token(request.headers.get("Authorization"))
    user_id = verify_session_token(token)
    user = await users_repo.get_by_id(db, user_id)
    if user is None:
        # A valid token for a vanished user gets the same answer as a bad token.
        raise UnauthorizedError()
    return user
