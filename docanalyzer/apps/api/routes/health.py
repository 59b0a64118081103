from __future__ import annotations

from fastapi import APIRouter, Request
from pydantic import BaseModel

from docanalyzer.apps.api.openapi import DEFAULT_ERROR_RESPONSES
from docanalyzer.apps.api.response import SuccessEnvelope, success_response
from docanalyzer.core.config import get_settings
from docanalyzer.services.analysis.queue import get_queue_depth

router = APIRouter(tags=["health"], responses=DEFAULT_ERROR_RESPONSES)


class HealthResponse(BaseModel):
    status: str
    analysis_mode: str
    analysis_queue_depth: int | None


@router.get("/health", response_model=SuccessEnvelope[HealthResponse])
async def health(request: Request) -> dict:
    # Report degraded rather than failing when the queue backend is unreachable.
    depth = await get_queue_depth()
    payload = HealthResponse(
        status="ok" if depth is not None else "degraded",
        analysis_mode=get_settings().analysis_execution_mode.lower(),
        analysis_queue_depth=depth,
    )
    return success_response(request=request, data=payload)
