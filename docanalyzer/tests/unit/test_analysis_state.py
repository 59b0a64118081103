from __future__ import annotations

from datetime import datetime, timezone

import pytest

from docanalyzer.core.errors import InvalidTransitionError
from docanalyzer.domain.analysis import (
    CompletedAnalysis,
    FailedAnalysis,
    PendingAnalysis,
    ProcessingAnalysis,
    RiskFinding,
    analysis_payload,
    apply_analysis,
    can_transition,
    load_analysis,
)
from docanalyzer.domain.models import Document


def _doc(status: str = "pending") -> Document:
    return Document(
        id="d1",
        owner_id="u1",
        file_name="contract.txt",
        content_type="text/plain",
        size_bytes=10,
        storage_path="/tmp/d1.txt",
        is_public=False,
        analysis_status=status,
    )


def _now() -> datetime:
    return datetime.now(timezone.utc)


def test_transition_table_is_forward_only() -> None:
    assert can_transition("pending", "processing")
    assert can_transition("processing", "completed")
    assert can_transition("processing", "failed")
    assert not can_transition("pending", "completed")
    assert not can_transition("pending", "failed")
    assert not can_transition("completed", "processing")
    assert not can_transition("failed", "pending")
    assert not can_transition("completed", "failed")


def test_full_happy_path_records_result() -> None:
    doc = _doc()
    started = _now()
    apply_analysis(doc, ProcessingAnalysis(started_at=started))
    finding = RiskFinding(text="clause", severity="high", explanation="risky", position=3)
    apply_analysis(
        doc,
        CompletedAnalysis(summary="ok", findings=[finding], started_at=started, completed_at=_now()),
    )
    state = load_analysis(doc)
    assert isinstance(state, CompletedAnalysis)
    assert state.summary == "ok"
    assert state.findings == [finding]
    assert state.started_at == started


def test_skipping_processing_is_rejected() -> None:
    doc = _doc()
    with pytest.raises(InvalidTransitionError):
        apply_analysis(doc, CompletedAnalysis(summary="x", findings=[], completed_at=_now()))
    assert doc.analysis_status == "pending"


def test_terminal_state_cannot_be_reopened() -> None:
    doc = _doc()
    apply_analysis(doc, ProcessingAnalysis(started_at=_now()))
    apply_analysis(doc, FailedAnalysis(error="boom", completed_at=_now()))
    with pytest.raises(InvalidTransitionError):
        apply_analysis(doc, ProcessingAnalysis(started_at=_now()))
    assert doc.analysis_status == "failed"


def test_failed_state_carries_error_but_no_result() -> None:
    doc = _doc()
    apply_analysis(doc, ProcessingAnalysis(started_at=_now()))
    apply_analysis(doc, FailedAnalysis(error="extractor exploded", completed_at=_now()))
    payload = analysis_payload(doc)
    assert payload["status"] == "failed"
    assert payload["error"] == "extractor exploded"
    assert "summary" not in payload
    assert "findings" not in payload


def test_pending_payload_has_only_status() -> None:
    doc = _doc()
    # Stale columns from elsewhere must not leak into the pending view.
    doc.analysis_summary = "stale"
    assert isinstance(load_analysis(doc), PendingAnalysis)
    assert analysis_payload(doc) == {"status": "pending"}


def test_invalid_severity_rejected() -> None:
    with pytest.raises(ValueError):
        RiskFinding(text="x", severity="critical", explanation="y", position=0)
