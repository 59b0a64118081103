from __future__ import annotations

import asyncio
import logging

from arq import create_pool
from arq.connections import RedisSettings

from docanalyzer.core.config import get_settings
from docanalyzer.core.errors import QueueUnavailableError
from docanalyzer.services.analysis.worker import get_analysis_worker


logger = logging.getLogger(__name__)

ANALYZE_DOCUMENT_JOB = "analyze_document"

_redis_pool = None
_redis_pool_loop = None
_redis_lock = asyncio.Lock()


def analysis_job_id(document_id: str) -> str:
    # Stable job ids let arq reject a second job for a document still queued or running.
    return f"analysis:{document_id}"


async def get_redis_pool():
    # Cache the Redis pool to avoid reconnecting on every enqueue.
    global _redis_pool, _redis_pool_loop
    current_loop = asyncio.get_running_loop()
    if _redis_pool is not None and _redis_pool_loop == current_loop:
        return _redis_pool
    if _redis_pool is not None and _redis_pool_loop != current_loop:
        # Drop loop-bound pools to avoid cross-loop errors in tests.
        _redis_pool = None
    async with _redis_lock:
        if _redis_pool is None:
            settings = get_settings()
            _redis_pool = await create_pool(
                RedisSettings.from_dsn(settings.redis_url),
                default_queue_name=settings.analysis_queue_name,
            )
            _redis_pool_loop = current_loop
    return _redis_pool


async def enqueue_analysis(document_id: str) -> bool:
    """Hand ``document_id`` to the analysis worker.

    Returns False when a job for the document is already queued or running.
    Raises QueueUnavailableError when the out-of-process queue cannot be reached.
    """
    settings = get_settings()
    if settings.analysis_execution_mode.lower() != "queue":
        return get_analysis_worker().enqueue(document_id)

    try:
        redis = await get_redis_pool()
        job = await redis.enqueue_job(
            ANALYZE_DOCUMENT_JOB,
            document_id,
            _job_id=analysis_job_id(document_id),
            _queue_name=settings.analysis_queue_name,
        )
    except Exception as exc:  # noqa: BLE001 - map broker failures to a stable error
        logger.exception("analysis_enqueue_failed document_id=%s", document_id)
        raise QueueUnavailableError() from exc
    # arq returns None when a job with this id already exists.
    return job is not None


async def get_queue_depth() -> int | None:
    # Return None to signal Redis unavailability to health checks.
    settings = get_settings()
    if settings.analysis_execution_mode.lower() != "queue":
        return get_analysis_worker().depth()
    try:
        redis = await get_redis_pool()
        # arq keeps each queue as a sorted set named after the queue.
        return int(await redis.zcard(settings.analysis_queue_name))
    except Exception:  # noqa: BLE001 - health endpoint reports degraded Redis
        return None
