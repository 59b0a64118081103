from __future__ import annotations

import logging
from uuid import uuid4

import pytest
from sqlalchemy.exc import OperationalError

from docanalyzer.domain.analysis import RiskFinding
from docanalyzer.persistence.db import SessionLocal
from docanalyzer.persistence.repos import documents as documents_repo
from docanalyzer.providers.analysis.base import AnalysisResult
from docanalyzer.providers.analysis.mock import MockAnalyzer
from docanalyzer.providers.extraction.base import StoredTextExtractor
from docanalyzer.services.analysis import pipeline as pipeline_module
from docanalyzer.services.analysis.pipeline import run_analysis_job
from docanalyzer.services.storage import save_upload
from docanalyzer.tests.utils.auth import create_verified_user


async def _create_pending_document(body: bytes = b"Some contract text.") -> str:
    owner, _headers = await create_verified_user()
    document_id = uuid4().hex
    storage_path = await save_upload(document_id, "contract.txt", body)
    async with SessionLocal() as session:
        await documents_repo.create_document(
            session,
            document_id=document_id,
            owner_id=owner.id,
            file_name="contract.txt",
            content_type="text/plain",
            size_bytes=len(body),
            storage_path=storage_path,
        )
        await session.commit()
    return document_id


async def _status(document_id: str) -> str | None:
    async with SessionLocal() as session:
        doc = await documents_repo.get_document_by_id(session, document_id)
        return doc.analysis_status if doc else None


@pytest.mark.asyncio
async def test_job_marks_processing_before_analysis_runs() -> None:
    document_id = await _create_pending_document()
    observed: list[str | None] = []

    class _ObservingAnalyzer:
        async def analyze(self, text: str) -> AnalysisResult:
            observed.append(await _status(document_id))
            return AnalysisResult(
                summary="short",
                findings=[RiskFinding(text="t", severity="low", explanation="e", position=0)],
            )

    status = await run_analysis_job(
        document_id, analyzer=_ObservingAnalyzer(), extractor=StoredTextExtractor()
    )
    assert status == "completed"
    assert observed == ["processing"]
    assert await _status(document_id) == "completed"


@pytest.mark.asyncio
async def test_job_skips_non_pending_document() -> None:
    document_id = await _create_pending_document()
    analyzer = MockAnalyzer(delay_s=0)
    assert await run_analysis_job(document_id, analyzer=analyzer, extractor=StoredTextExtractor()) == "completed"
    # A second run must not reopen a terminal record.
    assert await run_analysis_job(document_id, analyzer=analyzer, extractor=StoredTextExtractor()) is None
    assert await _status(document_id) == "completed"


@pytest.mark.asyncio
async def test_job_for_missing_document_is_skipped() -> None:
    status = await run_analysis_job(
        "does-not-exist", analyzer=MockAnalyzer(delay_s=0), extractor=StoredTextExtractor()
    )
    assert status is None


@pytest.mark.asyncio
async def test_result_dropped_when_document_deleted_mid_flight() -> None:
    document_id = await _create_pending_document()

    class _DeletingAnalyzer:
        async def analyze(self, text: str) -> AnalysisResult:
            async with SessionLocal() as session:
                await documents_repo.delete_document(session, document_id)
                await session.commit()
            return AnalysisResult(summary="late", findings=[])

    status = await run_analysis_job(
        document_id, analyzer=_DeletingAnalyzer(), extractor=StoredTextExtractor()
    )
    assert status is None
    assert await _status(document_id) is None


@pytest.mark.asyncio
async def test_missing_file_marks_document_failed() -> None:
    document_id = await _create_pending_document()
    async with SessionLocal() as session:
        doc = await documents_repo.get_document_by_id(session, document_id)
        doc.storage_path = doc.storage_path + ".gone"
        await session.commit()

    status = await run_analysis_job(
        document_id, analyzer=MockAnalyzer(delay_s=0), extractor=StoredTextExtractor()
    )
    assert status == "failed"
    async with SessionLocal() as session:
        doc = await documents_repo.get_document_by_id(session, document_id)
    assert doc.analysis_error == "Stored document file is missing"
    assert doc.analysis_summary is None


@pytest.mark.asyncio
async def test_empty_text_marks_document_failed() -> None:
    document_id = await _create_pending_document(body=b"   \n")
    status = await run_analysis_job(
        document_id, analyzer=MockAnalyzer(delay_s=0), extractor=StoredTextExtractor()
    )
    assert status == "failed"


@pytest.mark.asyncio
async def test_claim_database_error_is_logged_and_leaves_document_pending(
    monkeypatch, caplog
) -> None:
    document_id = await _create_pending_document()

    async def _broken_claim(_document_id, _started_at):
        raise OperationalError("UPDATE documents", {}, Exception("database is locked"))

    monkeypatch.setattr(pipeline_module, "_start_processing", _broken_claim)
    with caplog.at_level(logging.ERROR, logger="docanalyzer.services.analysis.pipeline"):
        status = await run_analysis_job(
            document_id, analyzer=MockAnalyzer(delay_s=0), extractor=StoredTextExtractor()
        )
    assert status is None
    assert any(
        record.getMessage() == f"analysis_claim_failed document_id={document_id}"
        for record in caplog.records
    )
    assert await _status(document_id) == "pending"
