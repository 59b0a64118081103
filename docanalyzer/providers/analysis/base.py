from __future__ import annotations

from typing import Protocol

from pydantic import BaseModel

from docanalyzer.domain.analysis import RiskFinding


class AnalysisResult(BaseModel):
    summary: str
    findings: list[RiskFinding]


class Analyzer(Protocol):
    async def analyze(self, text: str) -> AnalysisResult:
        ...
