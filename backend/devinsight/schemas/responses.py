"""Response schemas."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel


class ProjectSummaryResponse(BaseModel):
    analysisId: str
    repoName: str
    repoURL: str
    readinessScore: int
    scoreCategory: str
    overallSummary: str = ""
    createdAt: str | None = None


class ProjectResponse(ProjectSummaryResponse):
    codeQuality: dict[str, Any] = {}
    readmeQuality: dict[str, Any] = {}
    technicalDebt: dict[str, Any] = {}
    security: dict[str, Any] = {}
    suggestedReadme: str = ""
    stats: dict[str, Any] = {}
    processingTime: int = 0
    aiModel: str | None = None


class AnalyzeResponse(BaseModel):
    success: bool = True
    analysisId: str | None = None
    data: dict[str, Any]
