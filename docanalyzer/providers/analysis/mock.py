from __future__ import annotations

import asyncio

from docanalyzer.domain.analysis import RiskFinding
from docanalyzer.providers.analysis.base import AnalysisResult


class MockAnalyzer:
    def __init__(self, delay_s: float = 2.0) -> None:
        # Simulated latency keeps the pipeline's asynchronous behavior visible in dev.
        self._delay_s = max(0.0, delay_s)

    async def analyze(self, text: str) -> AnalysisResult:
        if self._delay_s:
            await asyncio.sleep(self._delay_s)
        return AnalysisResult(
            summary=(
                "Analysis of the document reveals several key points and potential risks. "
                f"{text[:200]}..."
            ),
            findings=[
                RiskFinding(
                    text="Important clause detected",
                    severity="medium",
                    explanation="This clause requires careful consideration",
                    position=1,
                )
            ],
        )
