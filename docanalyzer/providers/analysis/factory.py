from __future__ import annotations

from docanalyzer.core.config import get_settings
from docanalyzer.core.errors import DocAnalyzerError
from docanalyzer.providers.analysis.base import Analyzer
from docanalyzer.providers.analysis.mock import MockAnalyzer


def get_analyzer() -> Analyzer:
    settings = get_settings()
    provider = (settings.analyzer_provider or "mock").lower()

    if provider == "mock":
        return MockAnalyzer(delay_s=settings.analysis_mock_delay_s)
    raise DocAnalyzerError(f"Unknown analyzer provider: {provider}")
