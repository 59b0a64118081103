from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from docanalyzer.domain.models import User


def normalize_email(email: str) -> str:
    # Collapse case and whitespace so one mailbox maps to one identity.
    return email.strip().lower()


async def get_by_id(session: AsyncSession, user_id: str) -> User | None:
    result = await session.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()


async def get_by_email(session: AsyncSession, email: str) -> User | None:
    result = await session.execute(select(User).where(User.email == normalize_email(email)))
    return result.scalar_one_or_none()


async def get_by_reset_token_hash(session: AsyncSession, token_hash: str) -> User | None:
    # Expiry is checked by the caller so naive SQLite timestamps compare correctly.
    result = await session.execute(
        select(User).where(User.password_reset_token_hash == token_hash)
    )
    return result.scalar_one_or_none()

