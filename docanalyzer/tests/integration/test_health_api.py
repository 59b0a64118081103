from __future__ import annotations

import pytest
from httpx import ASGITransport, AsyncClient

from docanalyzer.apps.api.main import create_app


@pytest.mark.asyncio
async def test_health_reports_local_queue() -> None:
    async with AsyncClient(transport=ASGITransport(app=create_app()), base_url="http://test") as client:
        resp = await client.get("/v1/health", headers={"X-Request-Id": "req-123"})
    assert resp.status_code == 200
    assert resp.headers["X-Request-Id"] == "req-123"
    body = resp.json()
    assert body["data"] == {"status": "ok", "analysis_mode": "local", "analysis_queue_depth": 0}
    assert body["meta"] == {"request_id": "req-123", "api_version": "v1"}


@pytest.mark.asyncio
async def test_unknown_route_uses_error_envelope() -> None:
    async with AsyncClient(transport=ASGITransport(app=create_app()), base_url="http://test") as client:
        resp = await client.get("/v1/nope")
    assert resp.status_code == 404
    assert resp.json()["error"]["code"] == "NOT_FOUND"
