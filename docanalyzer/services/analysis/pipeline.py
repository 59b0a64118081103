from __future__ import annotations

from datetime import datetime, timezone
import logging

from sqlalchemy.exc import SQLAlchemyError

from docanalyzer.core.errors import InvalidTransitionError
from docanalyzer.domain.analysis import (
    STATUS_PENDING,
    AnalysisState,
    CompletedAnalysis,
    FailedAnalysis,
    ProcessingAnalysis,
    apply_analysis,
)
from docanalyzer.persistence.db import SessionLocal
from docanalyzer.persistence.repos import documents as documents_repo
from docanalyzer.providers.analysis.base import Analyzer
from docanalyzer.providers.extraction.base import ContentExtractor


logger = logging.getLogger(__name__)

_MAX_ERROR_CHARS = 500


def _utc_now() -> datetime:
    # Use UTC timestamps for deterministic status tracking across hosts.
    return datetime.now(timezone.utc)


def _failure_reason(exc: Exception) -> str:
    # Keep the message from the failure, bounded and without a stack trace.
    message = str(exc).strip() or exc.__class__.__name__
    if isinstance(exc, FileNotFoundError):
        message = "Stored document file is missing"
    return message[:_MAX_ERROR_CHARS]


async def _start_processing(document_id: str, started_at: datetime) -> tuple[str, str] | None:
    # Claim the record in its own short transaction; analysis runs with no session open.
    async with SessionLocal() as session:
        doc = await documents_repo.get_document_by_id(session, document_id)
        if doc is None:
            logger.info("analysis_job_skipped document_id=%s reason=missing", document_id)
            return None
        if doc.analysis_status != STATUS_PENDING:
            logger.warning(
                "analysis_job_skipped document_id=%s reason=status status=%s",
                document_id,
                doc.analysis_status,
            )
            return None
        apply_analysis(doc, ProcessingAnalysis(started_at=started_at))
        await session.commit()
        return doc.storage_path, doc.content_type


async def _record_outcome(document_id: str, state: AnalysisState) -> bool:
    async with SessionLocal() as session:
        doc = await documents_repo.get_document_by_id(session, document_id)
        if doc is None:
            # Owner deleted the document mid-flight; nothing to update.
            logger.info(
                "analysis_result_dropped document_id=%s status=%s reason=missing",
                document_id,
                state.status,
            )
            return False
        apply_analysis(doc, state)
        await session.commit()
        return True


async def run_analysis_job(
    document_id: str,
    *,
    analyzer: Analyzer,
    extractor: ContentExtractor,
) -> str | None:
    """Drive one document through processing to completed or failed.

    Returns the terminal status written, or None when the job was skipped
    or its result dropped. Failures inside extraction or analysis are
    recorded on the document and never raised.
    """
    started_at = _utc_now()
    try:
        claimed = await _start_processing(document_id, started_at)
    except InvalidTransitionError:
        logger.warning("analysis_job_skipped document_id=%s reason=transition", document_id)
        return None
    except SQLAlchemyError:
        logger.exception("analysis_claim_failed document_id=%s", document_id)
        return None
    if claimed is None:
        return None
    storage_path, content_type = claimed

    try:
        text = await extractor.extract(storage_path, content_type)
        result = await analyzer.analyze(text)
    except Exception as exc:  # noqa: BLE001 - job failures are recorded, not propagated
        logger.exception("analysis_failed document_id=%s", document_id)
        failed = FailedAnalysis(
            error=_failure_reason(exc), started_at=started_at, completed_at=_utc_now()
        )
        return failed.status if await _record_outcome(document_id, failed) else None

    completed = CompletedAnalysis(
        summary=result.summary,
        findings=result.findings,
        started_at=started_at,
        completed_at=_utc_now(),
    )
    try:
        recorded = await _record_outcome(document_id, completed)
    except SQLAlchemyError as exc:
        # Do not leave the record in processing when the result write itself fails.
        logger.exception("analysis_result_write_failed document_id=%s", document_id)
        failed = FailedAnalysis(
            error=_failure_reason(exc), started_at=started_at, completed_at=_utc_now()
        )
        return failed.status if await _record_outcome(document_id, failed) else None
    if recorded:
        logger.info("analysis_completed document_id=%s findings=%s", document_id, len(result.findings))
        return completed.status
    return None
