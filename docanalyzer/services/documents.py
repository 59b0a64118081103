from __future__ import annotations

from dataclasses import dataclass
import logging
import math
from uuid import uuid4

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from docanalyzer.core.config import get_settings
from docanalyzer.core.errors import (
    BadRequestError,
    FileTooLargeError,
    ForbiddenError,
    NotFoundError,
    QueueUnavailableError,
    UnsupportedFileTypeError,
)
from docanalyzer.domain.models import Document, DocumentShare
from docanalyzer.persistence.repos import documents as documents_repo
from docanalyzer.persistence.repos import users as users_repo
from docanalyzer.services.analysis.queue import enqueue_analysis
from docanalyzer.services.storage import delete_upload, save_upload


logger = logging.getLogger(__name__)

PERMISSION_READ = "read"
PERMISSION_WRITE = "write"
PERMISSIONS = (PERMISSION_READ, PERMISSION_WRITE)


@dataclass(frozen=True)
class DocumentView:
    document: Document
    shares: list[DocumentShare]


@dataclass(frozen=True)
class DocumentPage:
    items: list[Document]
    total: int
    page: int
    pages: int


def _validate_upload(content_type: str, size_bytes: int) -> None:
    settings = get_settings()
    if content_type.lower() not in settings.allowed_file_type_set():
        raise UnsupportedFileTypeError()
    if size_bytes > settings.max_file_size_bytes:
        raise FileTooLargeError()
    if size_bytes == 0:
        raise BadRequestError("Please upload a file")


async def _load(session: AsyncSession, document_id: str) -> Document:
    doc = await documents_repo.get_document_by_id(session, document_id)
    if doc is None:
        raise NotFoundError("Document not found")
    return doc


def _grant_for(shares: list[DocumentShare], user_id: str) -> DocumentShare | None:
    for share in shares:
        if share.user_id == user_id:
            return share
    return None


async def upload_document(
    session: AsyncSession,
    *,
    owner_id: str,
    file_name: str,
    content_type: str,
    body: bytes,
) -> Document:
    """Store the upload, persist it as pending, and queue it for analysis.

    When the queue cannot take the job the record and file are removed and
    the error is raised, so no document is left pending forever.
    """
    _validate_upload(content_type, len(body))
    document_id = uuid4().hex
    storage_path = await save_upload(document_id, file_name, body)
    try:
        doc = await documents_repo.create_document(
            session,
            document_id=document_id,
            owner_id=owner_id,
            file_name=file_name,
            content_type=content_type,
            size_bytes=len(body),
            storage_path=storage_path,
        )
        await session.commit()
    except SQLAlchemyError:
        # No record points at the file, so it goes too.
        await session.rollback()
        await delete_upload(storage_path)
        raise
    logger.info("document_uploaded document_id=%s owner_id=%s", document_id, owner_id)

    try:
        await enqueue_analysis(document_id)
    except QueueUnavailableError:
        await documents_repo.delete_document(session, document_id)
        await session.commit()
        await delete_upload(storage_path)
        raise
    return doc


async def list_documents(
    session: AsyncSession, *, owner_id: str, page: int, limit: int
) -> DocumentPage:
    page = max(1, page)
    limit = max(1, limit)
    total = await documents_repo.count_documents_for_owner(session, owner_id)
    items = await documents_repo.list_documents_for_owner(
        session, owner_id, offset=(page - 1) * limit, limit=limit
    )
    return DocumentPage(items=items, total=total, page=page, pages=math.ceil(total / limit))


async def get_document(session: AsyncSession, *, user_id: str, document_id: str) -> DocumentView:
    # Owner, any grantee, or anyone for public documents may read.
    doc = await _load(session, document_id)
    shares = await documents_repo.list_shares(session, doc.id)
    if doc.owner_id != user_id and not doc.is_public and _grant_for(shares, user_id) is None:
        raise ForbiddenError()
    return DocumentView(document=doc, shares=shares)


async def update_document(
    session: AsyncSession,
    *,
    user_id: str,
    document_id: str,
    file_name: str | None = None,
    is_public: bool | None = None,
) -> DocumentView:
    doc = await _load(session, document_id)
    shares = await documents_repo.list_shares(session, doc.id)
    is_owner = doc.owner_id == user_id
    grant = _grant_for(shares, user_id)
    if not is_owner and (grant is None or grant.permission != PERMISSION_WRITE):
        raise ForbiddenError("Not authorized to update this document")
    if is_public is not None and not is_owner:
        raise ForbiddenError("Only the owner can change document visibility")
    if file_name:
        doc.file_name = file_name
    if is_public is not None:
        doc.is_public = is_public
    await session.commit()
    return DocumentView(document=doc, shares=shares)


async def share_document(
    session: AsyncSession,
    *,
    owner_id: str,
    document_id: str,
    grantee_id: str,
    permission: str,
) -> DocumentView:
    doc = await _load(session, document_id)
    if doc.owner_id != owner_id:
        raise ForbiddenError("Not authorized to share this document")
    if permission not in PERMISSIONS:
        raise BadRequestError("Permission must be read or write")
    if grantee_id == owner_id:
        raise BadRequestError("Owner already has full access")
    if await users_repo.get_by_id(session, grantee_id) is None:
        raise NotFoundError("User not found")
    await documents_repo.upsert_share(
        session, document_id=doc.id, user_id=grantee_id, permission=permission
    )
    await session.commit()
    shares = await documents_repo.list_shares(session, doc.id)
    logger.info(
        "document_shared document_id=%s grantee_id=%s permission=%s", doc.id, grantee_id, permission
    )
    return DocumentView(document=doc, shares=shares)


async def delete_document(session: AsyncSession, *, owner_id: str, document_id: str) -> None:
    doc = await _load(session, document_id)
    if doc.owner_id != owner_id:
        raise ForbiddenError("Not authorized to delete this document")
    storage_path = doc.storage_path
    await documents_repo.delete_document(session, doc.id)
    await session.commit()
    await delete_upload(storage_path)
    logger.info("document_deleted document_id=%s", doc.id)
