from __future__ import annotations

import logging

from arq.connections import RedisSettings

from docanalyzer.core.config import get_settings
from docanalyzer.core.logging import configure_logging
from docanalyzer.providers.analysis.factory import get_analyzer
from docanalyzer.providers.extraction.base import get_extractor
from docanalyzer.services.analysis.pipeline import run_analysis_job


logger = logging.getLogger(__name__)


async def analyze_document(ctx, document_id: str) -> str | None:
    # Job failures are recorded on the document, so arq never sees them and never retries.
    return await run_analysis_job(
        document_id,
        analyzer=ctx["analyzer"],
        extractor=ctx["extractor"],
    )


async def _startup(ctx) -> None:
    configure_logging()
    ctx["analyzer"] = get_analyzer()
    ctx["extractor"] = get_extractor()
    logger.info("analysis_worker_started")


async def _shutdown(ctx) -> None:
    logger.info("analysis_worker_stopped")


class WorkerSettings:
    # Keep worker configuration as class attributes for arq CLI compatibility.
    settings = get_settings()
    redis_settings = RedisSettings.from_dsn(settings.redis_url)
    queue_name = settings.analysis_queue_name
    functions = [analyze_document]
    on_startup = _startup
    on_shutdown = _shutdown
    # One job at a time, in enqueue order; jobs are never retried.
    max_jobs = 1
    max_tries = 1
    # Drop results so a finished job id does not block later enqueues for the same document.
    keep_result = 0
