from __future__ import annotations

import asyncio

import pytest

from docanalyzer.services.analysis.worker import AnalysisWorker


@pytest.mark.asyncio
async def test_worker_runs_jobs_in_fifo_order_one_at_a_time() -> None:
    seen: list[str] = []
    running = 0
    max_running = 0

    async def _runner(document_id: str) -> None:
        nonlocal running, max_running
        running += 1
        max_running = max(max_running, running)
        await asyncio.sleep(0.01)
        seen.append(document_id)
        running -= 1

    worker = AnalysisWorker(_runner)
    for document_id in ["a", "b", "c"]:
        assert worker.enqueue(document_id) is True
    await worker.drain()
    await worker.stop()

    assert seen == ["a", "b", "c"]
    assert max_running == 1


@pytest.mark.asyncio
async def test_worker_deduplicates_queued_ids() -> None:
    release = asyncio.Event()
    calls: list[str] = []

    async def _runner(document_id: str) -> None:
        calls.append(document_id)
        await release.wait()

    worker = AnalysisWorker(_runner)
    assert worker.enqueue("doc-1") is True
    assert worker.enqueue("doc-1") is False
    release.set()
    await worker.drain()
    # Once finished the id may be queued again.
    assert worker.enqueue("doc-1") is True
    await worker.drain()
    await worker.stop()
    assert calls == ["doc-1", "doc-1"]


@pytest.mark.asyncio
async def test_worker_survives_failing_job() -> None:
    done: list[str] = []

    async def _runner(document_id: str) -> None:
        if document_id == "bad":
            raise RuntimeError("boom")
        done.append(document_id)

    worker = AnalysisWorker(_runner)
    worker.enqueue("bad")
    worker.enqueue("good")
    await worker.drain()
    await worker.stop()
    assert done == ["good"]


@pytest.mark.asyncio
async def test_worker_depth_reports_waiting_jobs() -> None:
    release = asyncio.Event()

    async def _runner(_document_id: str) -> None:
        await release.wait()

    worker = AnalysisWorker(_runner)
    worker.enqueue("one")
    worker.enqueue("two")
    worker.enqueue("three")
    await asyncio.sleep(0)
    assert worker.depth() == 2
    release.set()
    await worker.drain()
    assert worker.depth() == 0
    await worker.stop()
