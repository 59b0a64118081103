from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Literal, Union

from pydantic import BaseModel, Field, TypeAdapter

from docanalyzer.core.errors import InvalidTransitionError
from docanalyzer.domain.models import Document


STATUS_PENDING = "pending"
STATUS_PROCESSING = "processing"
STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"

# Transitions are one-directional; terminal states have no successors.
ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    STATUS_PENDING: frozenset({STATUS_PROCESSING}),
    STATUS_PROCESSING: frozenset({STATUS_COMPLETED, STATUS_FAILED}),
    STATUS_COMPLETED: frozenset(),
    STATUS_FAILED: frozenset(),
}


class RiskFinding(BaseModel):
    text: str
    severity: Literal["high", "medium", "low"]
    explanation: str
    position: int


class PendingAnalysis(BaseModel):
    status: Literal["pending"] = STATUS_PENDING


class ProcessingAnalysis(BaseModel):
    status: Literal["processing"] = STATUS_PROCESSING
    started_at: datetime


class CompletedAnalysis(BaseModel):
    status: Literal["completed"] = STATUS_COMPLETED
    summary: str
    findings: list[RiskFinding]
    started_at: datetime | None = None
    completed_at: datetime


class FailedAnalysis(BaseModel):
    status: Literal["failed"] = STATUS_FAILED
    error: str
    started_at: datetime | None = None
    completed_at: datetime


AnalysisState = Annotated[
    Union[PendingAnalysis, ProcessingAnalysis, CompletedAnalysis, FailedAnalysis],
    Field(discriminator="status"),
]

_analysis_adapter: TypeAdapter[AnalysisState] = TypeAdapter(AnalysisState)


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite returns naive datetimes; everything we write is UTC.
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def can_transition(current: str, target: str) -> bool:
    return target in ALLOWED_TRANSITIONS.get(current, frozenset())


def load_analysis(doc: Document) -> AnalysisState:
    """Build the tagged analysis variant from the document's columns.

    Only the fields valid for the stored status are read, so stale column
    values from an earlier state can never leak into the result.
    """
    status = doc.analysis_status
    if status == STATUS_PROCESSING:
        return ProcessingAnalysis(started_at=_as_utc(doc.analysis_started_at) or _as_utc(doc.updated_at))
    if status == STATUS_COMPLETED:
        return CompletedAnalysis(
            summary=doc.analysis_summary or "",
            findings=[RiskFinding.model_validate(item) for item in doc.analysis_findings or []],
            started_at=_as_utc(doc.analysis_started_at),
            completed_at=_as_utc(doc.analysis_completed_at) or _as_utc(doc.updated_at),
        )
    if status == STATUS_FAILED:
        return FailedAnalysis(
            error=doc.analysis_error or "Analysis failed",
            started_at=_as_utc(doc.analysis_started_at),
            completed_at=_as_utc(doc.analysis_completed_at) or _as_utc(doc.updated_at),
        )
    return PendingAnalysis()


def apply_analysis(doc: Document, state: AnalysisState) -> None:
    """Move ``doc`` to ``state``, enforcing the pending -> processing -> terminal order."""
    if not can_transition(doc.analysis_status, state.status):
        raise InvalidTransitionError(
            f"Cannot move analysis from {doc.analysis_status} to {state.status}"
        )
    doc.analysis_status = state.status
    doc.analysis_summary = None
    doc.analysis_findings = None
    doc.analysis_error = None
    doc.analysis_completed_at = None
    if isinstance(state, ProcessingAnalysis):
        doc.analysis_started_at = state.started_at
    elif isinstance(state, CompletedAnalysis):
        doc.analysis_summary = state.summary
        doc.analysis_findings = [finding.model_dump() for finding in state.findings]
        doc.analysis_completed_at = state.completed_at
        if state.started_at is not None:
            doc.analysis_started_at = state.started_at
    elif isinstance(state, FailedAnalysis):
        doc.analysis_error = state.error
        doc.analysis_completed_at = state.completed_at
        if state.started_at is not None:
            doc.analysis_started_at = state.started_at


def analysis_payload(doc: Document) -> dict:
    # Serialize only the fields valid for the current status.
    return _analysis_adapter.dump_python(load_analysis(doc), mode="json")
