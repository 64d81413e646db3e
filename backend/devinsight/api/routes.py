"""
API routes for DevInsight.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, status
from loguru import logger

from devinsight.api.throttle import analyze_throttle
from devinsight.config import settings
from devinsight.core.engine import AnalysisEngine
from devinsight.models.analysis import SourceInput
from devinsight.models.database import AnalysisStore
from devinsight.schemas.requests import (
    AnalyzeCodeRequest,
    AnalyzeRequest,
    ReadinessRequest,
    ReadmeRequest,
    SourceFileRequest,
)
from devinsight.schemas.responses import (
    AnalyzeResponse,
    ProjectResponse,
    ProjectSummaryResponse,
)
from devinsight.services.llm_service import get_llm_service
from devinsight.services.readiness import LLMReadinessAnalyzer
from devinsight.services.risk import RiskClassifier
from devinsight.utils.exceptions import AnalysisError, NotFoundError, PersistenceError

router = APIRouter()


# ── Dependency helpers ────────────────────────────────────────────────────────

def get_engine() -> AnalysisEngine:
    llm = get_llm_service()
    return AnalysisEngine(
        primary=LLMReadinessAnalyzer(llm) if llm is not None else None,
        policy=settings.scoring,
        timeout=settings.llm_timeout_seconds,
    )


@lru_cache(maxsize=1)
def get_store() -> AnalysisStore:
    store = AnalysisStore(settings.database_url)
    store.init_db()
    return store


def _to_inputs(files: list[SourceFileRequest]) -> list[SourceInput]:
    return [SourceInput(path=f.path, text=f.content, language=f.language) for f in files]


# ── Analysis ──────────────────────────────────────────────────────────────────

@router.post(
    "/analyze",
    response_model=AnalyzeResponse,
    dependencies=[Depends(analyze_throttle)],
    tags=["analysis"],
)
async def analyze_repository(
    request: AnalyzeRequest,
    engine: AnalysisEngine = Depends(get_engine),
    store: AnalysisStore = Depends(get_store),
) -> AnalyzeResponse:
    """
    Full analysis: code smells plus readiness assessment.

    The result is persisted; a storage failure is logged and the analysis
    is still returned.
    """
    logger.info("📥 Analyze request - repo={} files={}", request.repoUrl or request.repoName, len(request.files))
    try:
        report = await engine.analyze(_to_inputs(request.files), readme=request.readme)
    except AnalysisError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc

    record = report.to_record(request.repoName, request.repoUrl)
    analysis_id: str | None = record["analysisId"]
    try:
        store.save(record)
    except PersistenceError as exc:
        logger.warning("⚠️  Failed to save analysis (continuing): {}", exc)
        analysis_id = None

    return AnalyzeResponse(analysisId=analysis_id, data=report.to_dict())


@router.post("/analyze/code-smells", tags=["analysis"])
async def analyze_code_smells(
    request: AnalyzeCodeRequest,
    engine: AnalysisEngine = Depends(get_engine),
) -> dict[str, Any]:
    """Code-smell scan only; no LLM call."""
    try:
        result = engine.analyze_code(_to_inputs(request.files))
    except AnalysisError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return {"success": True, "data": result.to_dict()}


@router.post("/analyze/code-smells/file", tags=["analysis"])
async def analyze_single_file(
    request: SourceFileRequest,
    engine: AnalysisEngine = Depends(get_engine),
) -> dict[str, Any]:
    try:
        source_file = engine.analyze_file(
            SourceInput(path=request.path, text=request.content, language=request.language)
        )
    except AnalysisError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return {"success": True, "data": source_file.to_dict()}


@router.get("/analyze/code-smells/thresholds", tags=["analysis"])
async def get_thresholds() -> dict[str, Any]:
    """Current risk thresholds and scoring weights."""
    policy = settings.scoring
    return {
        "success": True,
        "data": {
            "riskLevels": RiskClassifier.from_policy(policy).describe(),
            "severityWeights": dict(policy.severity_weights),
            "minCommentRatio": policy.min_comment_ratio,
            "maxFileLines": policy.max_file_lines,
            "maxNestingDepth": policy.max_nesting_depth,
            "maxMagicNumbers": policy.max_magic_numbers,
        },
    }


@router.post("/analyze/readme", tags=["analysis"])
async def analyze_readme(
    request: ReadmeRequest,
    engine: AnalysisEngine = Depends(get_engine),
) -> dict[str, Any]:
    """README section, badge and content scoring."""
    return {"success": True, "data": engine.analyze_readme(request.readme).to_dict()}


@router.post("/analyze/dependencies", tags=["analysis"])
async def analyze_dependencies(
    request: AnalyzeCodeRequest,
    engine: AnalysisEngine = Depends(get_engine),
) -> dict[str, Any]:
    """Dependency-manifest health for package.json, requirements.txt, go.mod and friends."""
    try:
        report = engine.analyze_dependencies(_to_inputs(request.files))
    except AnalysisError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    return {"success": True, "data": report.to_dict()}


@router.post("/analyze/readiness", tags=["analysis"])
async def analyze_readiness(
    request: ReadinessRequest,
    engine: AnalysisEngine = Depends(get_engine),
) -> dict[str, Any]:
    """Readiness assessment of already-merged repository text."""
    report = await engine.assess_readiness(request.text)
    return report.to_dict()


# ── Projects ──────────────────────────────────────────────────────────────────

@router.get("/projects/recent", response_model=list[ProjectSummaryResponse], tags=["projects"])
async def list_recent_projects(
    limit: int = Query(default=10, ge=1, le=100),
    store: AnalysisStore = Depends(get_store),
) -> list[ProjectSummaryResponse]:
    return [ProjectSummaryResponse(**row.to_summary()) for row in store.find_recent(limit)]


@router.get("/projects/by-score", response_model=list[ProjectSummaryResponse], tags=["projects"])
async def list_projects_by_score(
    min_score: int = Query(default=0, ge=0, le=100, alias="min"),
    max_score: int = Query(default=100, ge=0, le=100, alias="max"),
    store: AnalysisStore = Depends(get_store),
) -> list[ProjectSummaryResponse]:
    if min_score > max_score:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="min must not be greater than max",
        )
    return [
        ProjectSummaryResponse(**row.to_summary())
        for row in store.find_by_score_range(min_score, max_score)
    ]


@router.get("/projects/stats", tags=["projects"])
async def get_project_stats(store: AnalysisStore = Depends(get_store)) -> dict[str, Any]:
    return {"success": True, "data": store.stats()}


@router.get("/projects/{analysis_id}", response_model=ProjectResponse, tags=["projects"])
async def get_project(
    analysis_id: str,
    store: AnalysisStore = Depends(get_store),
) -> ProjectResponse:
    try:
        row = store.get(analysis_id)
    except NotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Project not found") from exc
    return ProjectResponse(**row.to_dict())


# ── Meta ──────────────────────────────────────────────────────────────────────

@router.get("/stats", tags=["meta"])
async def get_stats() -> dict[str, Any]:
    """Return LLM usage statistics."""
    llm = get_llm_service()
    if llm is None:
        return {"llm_enabled": False}
    return {"llm_enabled": True, **llm.get_stats()}
