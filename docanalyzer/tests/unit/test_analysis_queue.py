from __future__ import annotations

import pytest

from docanalyzer.core.config import get_settings
from docanalyzer.core.errors import QueueUnavailableError
from docanalyzer.services.analysis import queue as queue_module
from docanalyzer.workers.analysis_worker import WorkerSettings, analyze_document


class _FakeRedis:
    def __init__(self, *, existing: set[str] | None = None, fail: bool = False) -> None:
        self.jobs: list[tuple[str, tuple, dict]] = []
        self._existing = existing or set()
        self._fail = fail

    async def enqueue_job(self, function: str, *args, **kwargs):
        if self._fail:
            raise ConnectionError("redis down")
        if kwargs.get("_job_id") in self._existing:
            return None
        self._existing.add(kwargs["_job_id"])
        self.jobs.append((function, args, kwargs))
        return object()

    async def zcard(self, _name: str) -> int:
        if self._fail:
            raise ConnectionError("redis down")
        return len(self.jobs)


def _use_queue_mode(monkeypatch, redis: _FakeRedis) -> None:
    monkeypatch.setenv("ANALYSIS_EXECUTION_MODE", "queue")
    get_settings.cache_clear()

    async def _pool():
        return redis

    monkeypatch.setattr(queue_module, "get_redis_pool", _pool)


@pytest.mark.asyncio
async def test_queue_mode_enqueues_arq_job_with_stable_id(monkeypatch) -> None:
    redis = _FakeRedis()
    _use_queue_mode(monkeypatch, redis)
    assert await queue_module.enqueue_analysis("doc-1") is True
    assert await queue_module.enqueue_analysis("doc-1") is False
    assert len(redis.jobs) == 1
    function, args, kwargs = redis.jobs[0]
    assert function == "analyze_document"
    assert args == ("doc-1",)
    assert kwargs["_job_id"] == "analysis:doc-1"
    assert await queue_module.get_queue_depth() == 1


@pytest.mark.asyncio
async def test_queue_mode_broker_failure_is_reported(monkeypatch) -> None:
    _use_queue_mode(monkeypatch, _FakeRedis(fail=True))
    with pytest.raises(QueueUnavailableError):
        await queue_module.enqueue_analysis("doc-2")
    assert await queue_module.get_queue_depth() is None


def test_worker_settings_run_one_job_at_a_time() -> None:
    assert WorkerSettings.max_jobs == 1
    assert WorkerSettings.max_tries == 1
    assert WorkerSettings.functions == [analyze_document]


@pytest.mark.asyncio
async def test_arq_job_delegates_to_pipeline(monkeypatch) -> None:
    calls: list[tuple[str, object, object]] = []

    async def _fake_run(document_id: str, *, analyzer, extractor):
        calls.append((document_id, analyzer, extractor))
        return "completed"

    monkeypatch.setattr("docanalyzer.workers.analysis_worker.run_analysis_job", _fake_run)
    ctx = {"analyzer": object(), "extractor": object()}
    assert await analyze_document(ctx, "doc-3") == "completed"
    assert calls == [("doc-3", ctx["analyzer"], ctx["extractor"])]
