from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from docanalyzer.providers.analysis.factory import get_analyzer
from docanalyzer.providers.extraction.base import get_extractor
from docanalyzer.services.analysis.pipeline import run_analysis_job


logger = logging.getLogger(__name__)

JobRunner = Callable[[str], Awaitable[object]]


class AnalysisWorker:
    """Single sequential consumer of a FIFO queue of document ids.

    One long-lived task loops on ``queue.get()``; at most one job runs at a
    time. An id that is already queued or running is not queued again, so a
    document is never analyzed by two jobs at once.
    """

    def __init__(self, runner: JobRunner) -> None:
        self._runner = runner
        self._queue: asyncio.Queue[str] | None = None
        self._task: asyncio.Task | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._inflight: set[str] = set()

    def _ensure_started(self) -> asyncio.Queue[str]:
        current_loop = asyncio.get_running_loop()
        if self._loop is not current_loop:
            # Queues and tasks are loop-bound; start fresh when the loop changes (tests).
            self._queue = None
            self._task = None
            self._inflight = set()
            self._loop = current_loop
        if self._queue is None:
            self._queue = asyncio.Queue()
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self._run(self._queue), name="analysis-worker")
        return self._queue

    async def _run(self, queue: asyncio.Queue[str]) -> None:
        while True:
            document_id = await queue.get()
            try:
                await self._runner(document_id)
            except Exception:  # noqa: BLE001 - one bad job must not stop the worker
                logger.exception("analysis_job_crashed document_id=%s", document_id)
            finally:
                self._inflight.discard(document_id)
                queue.task_done()

    def enqueue(self, document_id: str) -> bool:
        """Queue ``document_id``; return False if it is already queued or running."""
        queue = self._ensure_started()
        if document_id in self._inflight:
            logger.info("analysis_enqueue_deduplicated document_id=%s", document_id)
            return False
        self._inflight.add(document_id)
        queue.put_nowait(document_id)
        logger.info("analysis_enqueued document_id=%s depth=%s", document_id, queue.qsize())
        return True

    def depth(self) -> int:
        return self._queue.qsize() if self._queue is not None else 0

    async def drain(self) -> None:
        # Wait until every queued job has finished.
        if self._queue is not None and self._loop is asyncio.get_running_loop():
            await self._queue.join()

    async def stop(self) -> None:
        task = self._task
        self._task = None
        self._queue = None
        self._inflight = set()
        if task is None or task.done() or self._loop is not asyncio.get_running_loop():
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass


async def _run_default_job(document_id: str) -> object:
    return await run_analysis_job(document_id, analyzer=get_analyzer(), extractor=get_extractor())


_worker: AnalysisWorker | None = None


def get_analysis_worker() -> AnalysisWorker:
    global _worker
    if _worker is None:
        _worker = AnalysisWorker(_run_default_job)
    return _worker
