from __future__ import annotations

import os
import tempfile

# Settings are read at import time by the engine, so the test environment is fixed first.
_TMP_DIR = tempfile.mkdtemp(prefix="docanalyzer-tests-")
os.environ.setdefault("DATABASE_URL", f"sqlite+aiosqlite:///{_TMP_DIR}/test.db")
os.environ.setdefault("UPLOAD_DIR", os.path.join(_TMP_DIR, "uploads"))
os.environ.setdefault("ANALYSIS_EXECUTION_MODE", "local")
os.environ.setdefault("ANALYSIS_MOCK_DELAY_S", "0")
os.environ.setdefault("GOOGLE_CLIENT_ID", "test-client-id")
os.environ.setdefault("JWT_SECRET", "test-jwt-secret")
os.environ.setdefault("OAUTH_SUCCESS_REDIRECT", "http://frontend.test/login")
os.environ.setdefault("FRONTEND_URL", "http://frontend.test")

import pytest

from docanalyzer.core.config import get_settings
from docanalyzer.domain.models import Base
from docanalyzer.persistence.db import engine
from docanalyzer.services.analysis.worker import get_analysis_worker
from docanalyzer.services.auth import oidc


@pytest.fixture(autouse=True)
async def reset_schema_between_tests() -> None:
    # Give every test an empty schema; tables are dropped afterwards.
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield
    await get_analysis_worker().stop()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    # Dispose the async engine to prevent cross-loop connection reuse between tests.
    await engine.dispose()


@pytest.fixture(autouse=True)
def reset_cached_state() -> None:
    yield
    get_settings.cache_clear()
    oidc._jwks_cache.clear()
