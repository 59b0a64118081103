from __future__ import annotations

import logging
from typing import Any, Literal

from fastapi import APIRouter, Depends, File, Query, Request, Response, UploadFile
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from docanalyzer.apps.api.deps import get_current_user, get_db
from docanalyzer.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from docanalyzer.apps.api.response import SuccessEnvelope, success_response
from docanalyzer.core.errors import BadRequestError
from docanalyzer.domain.analysis import analysis_payload
from docanalyzer.domain.models import Document, DocumentShare, User
from docanalyzer.services import documents as documents_service


logger = logging.getLogger(__name__)
router = APIRouter(prefix="/documents", tags=["documents"], responses=DEFAULT_ERROR_RESPONSES)


class ShareEntry(BaseModel):
    user_id: str
    permission: str


class DocumentResponse(BaseModel):
    id: str
    owner_id: str
    file_name: str
    content_type: str
    size_bytes: int
    is_public: bool
    analysis: dict[str, Any]
    shared_with: list[ShareEntry]
    created_at: str | None
    updated_at: str | None


class Pagination(BaseModel):
    page: int
    pages: int


class DocumentListResponse(BaseModel):
    items: list[DocumentResponse]
    total: int
    count: int
    pagination: Pagination


class UpdateDocumentRequest(BaseModel):
    file_name: str | None = Field(default=None, min_length=1, max_length=255)
    is_public: bool | None = None


class ShareDocumentRequest(BaseModel):
    user_id: str = Field(min_length=1)
    permission: Literal["read", "write"] = "read"


def _isoformat(value) -> str | None:
    return value.isoformat() if value is not None else None


def _to_response(doc: Document, shares: list[DocumentShare] | None = None) -> DocumentResponse:
    return DocumentResponse(
        id=doc.id,
        owner_id=doc.owner_id,
        file_name=doc.file_name,
        content_type=doc.content_type,
        size_bytes=doc.size_bytes,
        is_public=doc.is_public,
        analysis=analysis_payload(doc),
        shared_with=[
            ShareEntry(user_id=share.user_id, permission=share.permission)
            for share in shares or []
        ],
        created_at=_isoformat(doc.created_at),
        updated_at=_isoformat(doc.updated_at),
    )


@router.post("", status_code=201, response_model=SuccessEnvelope[DocumentResponse])
async def upload_document(
    request: Request,
    document: UploadFile | None = File(default=None),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    if document is None:
        raise BadRequestError("Please upload a file")
    body = await document.read()
    doc = await documents_service.upload_document(
        db,
        owner_id=user.id,
        file_name=document.filename or "upload",
        content_type=document.content_type or "application/octet-stream",
        body=body,
    )
    return success_response(request=request, data=_to_response(doc))


@router.get("", response_model=SuccessEnvelope[DocumentListResponse])
async def list_documents(
    request: Request,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    result = await documents_service.list_documents(db, owner_id=user.id, page=page, limit=limit)
    payload = DocumentListResponse(
        items=[_to_response(doc) for doc in result.items],
        total=result.total,
        count=len(result.items),
        pagination=Pagination(page=result.page, pages=result.pages),
    )
    return success_response(request=request, data=payload)


@router.get("/{document_id}", response_model=SuccessEnvelope[DocumentResponse])
async def get_document(
    document_id: str,
    request: Request,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    view = await documents_service.get_document(db, user_id=user.id, document_id=document_id)
    return success_response(request=request, data=_to_response(view.document, view.shares))


@router.patch("/{document_id}", response_model=SuccessEnvelope[DocumentResponse])
async def update_document(
    document_id: str,
    request: Request,
    payload: UpdateDocumentRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    view = await documents_service.update_document(
        db,
        user_id=user.id,
        document_id=document_id,
        file_name=payload.file_name,
        is_public=payload.is_public,
    )
    return success_response(request=request, data=_to_response(view.document, view.shares))


@router.put("/{document_id}/share", response_model=SuccessEnvelope[DocumentResponse])
async def share_document(
    document_id: str,
    request: Request,
    payload: ShareDocumentRequest,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> dict:
    view = await documents_service.share_document(
        db,
        owner_id=user.id,
        document_id=document_id,
        grantee_id=payload.user_id,
        permission=payload.permission,
    )
    return success_response(request=request, data=_to_response(view.document, view.shares))


@router.delete("/{document_id}", status_code=204)
async def delete_document(
    document_id: str,
    user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
) -> Response:
    await documents_service.delete_document(db, owner_id=user.id, document_id=document_id)
    return Response(status_code=204)
