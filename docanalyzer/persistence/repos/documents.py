from __future__ import annotations

from uuid import uuid4

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from docanalyzer.domain.analysis import STATUS_PENDING
from docanalyzer.domain.models import Document, DocumentShare


async def create_document(
    session: AsyncSession,
    *,
    document_id: str,
    owner_id: str,
    file_name: str,
    content_type: str,
    size_bytes: int,
    storage_path: str,
) -> Document:
    # New records always start pending; the pipeline owns every later transition.
    doc = Document(
        id=document_id,
        owner_id=owner_id,
        file_name=file_name,
        content_type=content_type,
        size_bytes=size_bytes,
        storage_path=storage_path,
        is_public=False,
        analysis_status=STATUS_PENDING,
    )
    session.add(doc)
    return doc


async def get_document_by_id(session: AsyncSession, document_id: str) -> Document | None:
    # Access checks are enforced by callers.
    result = await session.execute(select(Document).where(Document.id == document_id))
    return result.scalar_one_or_none()


async def list_documents_for_owner(
    session: AsyncSession, owner_id: str, *, offset: int, limit: int
) -> list[Document]:
    result = await session.execute(
        select(Document)
        .where(Document.owner_id == owner_id)
        .order_by(Document.created_at.desc(), Document.id.desc())
        .offset(offset)
        .limit(limit)
    )
    return list(result.scalars().all())


async def count_documents_for_owner(session: AsyncSession, owner_id: str) -> int:
    result = await session.execute(
        select(func.count()).select_from(Document).where(Document.owner_id == owner_id)
    )
    return int(result.scalar() or 0)


async def list_shares(session: AsyncSession, document_id: str) -> list[DocumentShare]:
    # Grant order is creation order; updates keep the original position.
    result = await session.execute(
        select(DocumentShare)
        .where(DocumentShare.document_id == document_id)
        .order_by(DocumentShare.created_at, DocumentShare.id)
    )
    return list(result.scalars().all())


async def get_share(session: AsyncSession, document_id: str, user_id: str) -> DocumentShare | None:
    result = await session.execute(
        select(DocumentShare).where(
            DocumentShare.document_id == document_id,
            DocumentShare.user_id == user_id,
        )
    )
    return result.scalar_one_or_none()


async def upsert_share(
    session: AsyncSession, *, document_id: str, user_id: str, permission: str
) -> DocumentShare:
    # One grant per grantee; a repeated grant overwrites the permission.
    share = await get_share(session, document_id, user_id)
    if share is None:
        share = DocumentShare(
            id=uuid4().hex,
            document_id=document_id,
            user_id=user_id,
            permission=permission,
        )
        session.add(share)
    else:
        share.permission = permission
    return share


async def delete_document(session: AsyncSession, document_id: str) -> None:
    # Grants go first so the delete does not depend on database-side cascades.
    await session.execute(delete(DocumentShare).where(DocumentShare.document_id == document_id))
    await session.execute(delete(Document).where(Document.id == document_id))
