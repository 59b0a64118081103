from __future__ import annotations

from uuid import uuid4

from docanalyzer.domain.models import User
from docanalyzer.persistence.db import SessionLocal
from docanalyzer.persistence.repos import users as users_repo
from docanalyzer.services.auth.passwords import hash_password
from docanalyzer.services.auth.session_tokens import issue_session_token


async def create_verified_user(
    *,
    email: str | None = None,
    name: str = "Test User",
    password: str | None = "Secret123",
    google_id: str | None = None,
) -> tuple[User, dict[str, str]]:
    # Provision a verified user and matching bearer headers for integration tests.
    user = User(
        id=uuid4().hex,
        email=email or f"user-{uuid4().hex[:8]}@example.com",
        name=name,
        password_hash=hash_password(password) if password is not None else None,
        is_verified=True,
        google_id=google_id,
    )
    async with SessionLocal() as session:
        session.add(user)
        await session.commit()
    return user, auth_headers(user.id)


def auth_headers(user_id: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {issue_session_token(user_id)}"}


async def load_user(email: str) -> User | None:
    async with SessionLocal() as session:
        return await users_repo.get_by_email(session, email)
