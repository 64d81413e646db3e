"""
Core Engine – Select → Extract → Classify → Aggregate → Assess orchestrator.

Every analysis run travels through the same phases:

0. Select     supported source files outside dependency and build directories
1. Extract    per-file metrics and functions
2. Classify   function risk, issues and file scores
3. Aggregate  repository totals, rankings and recommendations
4. Document   README sections and dependency manifests
5. Assess     readiness via the primary analyzer, or the fallback

The engine holds no state between runs; the LLM-backed analyzer is
injected, so a single engine can serve concurrent requests.
"""

from __future__ import annotations

import asyncio
import re
import time
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping

from loguru import logger

from devinsight.config import ScoringPolicy
from devinsight.models.analysis import RepositoryAnalysis, SourceFile, SourceInput
from devinsight.services.aggregator import Aggregator
from devinsight.services.dependencies import DependencyAnalyzer, DependencyReport
from devinsight.services.fallback import FallbackAnalyzer
from devinsight.services.metrics import MetricExtractor, is_analyzable
from devinsight.services.readme import ReadmeAnalyzer, ReadmeReport, find_readme
from devinsight.services.readiness import ReadinessAnalyzer, ReadinessReport
from devinsight.utils.exceptions import AnalysisError, LLMError, RateLimitError


TRUNCATION_MARKER = "\n\n[Content truncated due to length limits...]"

_GITHUB_REPO = re.compile(r"github\.com/([^/\s]+)/([^/\s#?]+)", re.IGNORECASE)


# ---------------------------------------------------------------------------
# Result
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class AnalysisReport:
    """Combined output of one run: code smells, documentation and readiness."""
    code_smells: RepositoryAnalysis
    readiness: ReadinessReport
    processing_time_ms: int = 0
    readme: ReadmeReport | None = None
    dependencies: DependencyReport | None = None

    @property
    def readiness_score(self) -> int:
        return self.readiness.analysis.readinessScore

    @property
    def model(self) -> str:
        return self.readiness.model

    @property
    def source(self) -> str:
        return self.readiness.source

    def to_dict(self) -> dict[str, Any]:
        return {
            "codeSmells": self.code_smells.to_dict(),
            "readiness": self.readiness.to_dict(),
            "readinessScore": self.readiness_score,
            "model": self.model,
            "source": self.source,
            "readme": self.readme.to_dict() if self.readme else None,
            "dependencies": self.dependencies.to_dict() if self.dependencies else None,
            "processingTimeMs": self.processing_time_ms,
        }

    def to_record(self, repo_name: str | None = None, repo_url: str | None = None) -> dict[str, Any]:
        """Flatten into the persisted project document."""
        analysis = self.readiness.analysis
        return {
            "analysisId": make_analysis_id(repo_url),
            "repoName": repo_name or repo_name_from_url(repo_url) or "Unknown Repository",
            "repoURL": repo_url or "",
            "readinessScore": self.readiness_score,
            "codeQuality": analysis.codeQuality.model_dump(),
            "readmeQuality": analysis.readmeQuality.model_dump(),
            "technicalDebt": analysis.technicalDebt.model_dump(),
            "security": analysis.security.model_dump(),
            "overallSummary": analysis.overallSummary,
            "suggestedReadme": analysis.suggestedReadme,
            "stats": {
                "overallScore": self.code_smells.overall_score,
                "analyzedFiles": self.code_smells.analyzed_files,
                "totalFunctions": self.code_smells.total_functions,
                "totalIssues": self.code_smells.total_issues,
                "languageDistribution": dict(self.code_smells.language_distribution),
                "readmeScore": self.readme.score if self.readme else None,
                "dependencyHealth": self.dependencies.health_score if self.dependencies else None,
                "source": self.source,
                "fallbackReason": self.readiness.fallbackReason,
                "analyzedAt": datetime.now(timezone.utc).isoformat(),
            },
            "processingTime": self.processing_time_ms,
            "aiModel": self.model,
        }


def repo_name_from_url(repo_url: str | None) -> str | None:
    if not repo_url:
        return None
    m = _GITHUB_REPO.search(repo_url)
    if m:
        return m.group(2).removesuffix(".git")
    tail = repo_url.rstrip("/").rsplit("/", 1)[-1]
    return tail or None


def make_analysis_id(repo_url: str | None = None) -> str:
    """``owner-repo-<epoch ms>`` for GitHub URLs, a random hex id otherwise."""
    m = _GITHUB_REPO.search(repo_url or "")
    if m:
        owner, repo = m.group(1), m.group(2).removesuffix(".git")
        return f"{owner}-{repo}-{int(time.time() * 1000)}-{uuid.uuid4().hex[:6]}"
    return uuid.uuid4().hex


# ---------------------------------------------------------------------------
# Text helpers
# ---------------------------------------------------------------------------

def truncate_text(text: str, limit: int) -> str:
    if len(text) <= limit:
        return text
    return text[:limit] + TRUNCATION_MARKER


def merge_repository_text(
    files: Iterable[SourceInput],
    readme: str | None = None,
    limit: int | None = None,
) -> str:
    """README first, then each file under a ``--- path ---`` header."""
    parts: list[str] = []
    if readme:
        parts.append(f"--- README.md ---\n{readme}")
    for f in files:
        parts.append(f"--- {f.path} ---\n{f.text}")
    merged = "\n\n".join(parts)
    return truncate_text(merged, limit) if limit else merged


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

class AnalysisEngine:
    """
    Orchestrates code-smell scanning and readiness assessment.

    Guarantees:
    - Malformed files never abort a run
    - The primary analyzer failing, timing out or being absent always
      yields a fallback report, never an exception
    - Identical input produces identical RepositoryAnalysis output
    """

    def __init__(
        self,
        primary: ReadinessAnalyzer | None = None,
        fallback: FallbackAnalyzer | None = None,
        policy: ScoringPolicy | None = None,
        timeout: float = 60.0,
    ) -> None:
        self.primary = primary
        self.fallback = fallback or FallbackAnalyzer()
        self.policy = policy or ScoringPolicy()
        self.timeout = timeout

        self.extractor = MetricExtractor()
        self.aggregator = Aggregator(self.policy)
        self.readme_analyzer = ReadmeAnalyzer()
        self.dependency_analyzer = DependencyAnalyzer()

    # -----------------------------------------------------------------------
    # Main entry point
    # -----------------------------------------------------------------------

    async def analyze(
        self,
        files: Iterable[SourceInput | tuple | Mapping[str, Any]],
        readme: str | None = None,
    ) -> AnalysisReport:
        started = time.perf_counter()
        sources = self.coerce_inputs(files)
        inputs = self.select_sources(sources)
        if not readme:
            found = find_readme(sources)
            readme = found.text if found else None
        logger.info(
            "🔍 Analysis starting - {} of {} files analyzable, readme={}",
            len(inputs), len(sources), bool(readme),
        )

        # ── PHASE 1-3: EXTRACT / CLASSIFY / AGGREGATE ────────────────────
        code_smells = self._analyze_inputs(inputs)

        # ── PHASE 4: DOCUMENT ───────────────────────────────────────────
        readme_report = self.readme_analyzer.analyze(readme)
        dependencies = self.dependency_analyzer.analyze(sources)

        # ── PHASE 5: ASSESS ─────────────────────────────────────────────
        merged = merge_repository_text(inputs, readme, limit=self.policy.max_merged_chars)
        readiness = await self.assess_readiness(merged, readme_report)

        elapsed_ms = int((time.perf_counter() - started) * 1000)
        logger.info(
            "✅ Analysis complete - code score={}, readme={}, dependencies={}, readiness={} ({}) in {}ms",
            code_smells.overall_score,
            readme_report.score,
            dependencies.health_score,
            readiness.analysis.readinessScore,
            readiness.source,
            elapsed_ms,
        )
        return AnalysisReport(
            code_smells=code_smells,
            readiness=readiness,
            processing_time_ms=elapsed_ms,
            readme=readme_report,
            dependencies=dependencies,
        )

    # -----------------------------------------------------------------------
    # Input selection
    # -----------------------------------------------------------------------

    @staticmethod
    def coerce_inputs(files: Iterable[SourceInput | tuple | Mapping[str, Any]]) -> list[SourceInput]:
        try:
            return [SourceInput.coerce(item) for item in files]
        except (TypeError, ValueError) as exc:
            raise AnalysisError(f"Invalid source input: {exc}", analysis_type="code_smells") from exc

    def select_sources(self, sources: Iterable[SourceInput]) -> list[SourceInput]:
        """Keep supported source files, cap the file count and truncate oversized files."""
        inputs: list[SourceInput] = []
        skipped = 0
        for source in sources:
            if not is_analyzable(source.path, source.language):
                skipped += 1
                continue
            if len(inputs) >= self.policy.max_files:
                logger.warning("⚠️  File limit reached ({}); skipping the rest", self.policy.max_files)
                break
            if len(source.text) > self.policy.max_file_chars:
                logger.debug("Truncating {} to {} chars", source.path, self.policy.max_file_chars)
                source = SourceInput(
                    path=source.path,
                    text=source.text[: self.policy.max_file_chars],
                    language=source.language,
                )
            inputs.append(source)
        if skipped:
            logger.debug("Skipped {} unsupported or ignored file(s)", skipped)
        return inputs

    def prepare_inputs(
        self,
        files: Iterable[SourceInput | tuple | Mapping[str, Any]],
    ) -> list[SourceInput]:
        return self.select_sources(self.coerce_inputs(files))

    # -----------------------------------------------------------------------
    # Code smells
    # -----------------------------------------------------------------------

    def analyze_file(self, source: SourceInput | tuple | Mapping[str, Any]) -> SourceFile:
        source = SourceInput.coerce(source)
        if not is_analyzable(source.path, source.language):
            raise AnalysisError(
                f"{source.path} is not a supported source file or sits in an ignored directory",
                analysis_type="code_smells",
            )
        extraction = self.extractor.extract(source.path, source.language, source.text)
        return self.aggregator.build_file(extraction)

    def analyze_code(
        self,
        files: Iterable[SourceInput | tuple | Mapping[str, Any]],
    ) -> RepositoryAnalysis:
        return self._analyze_inputs(self.prepare_inputs(files))

    def _analyze_inputs(self, inputs: list[SourceInput]) -> RepositoryAnalysis:
        analyzed = [self.analyze_file(source) for source in inputs]
        result = self.aggregator.aggregate(analyzed)
        logger.info(
            "📊 Code smells - {} files, {} functions, {} issues, score {}",
            result.analyzed_files,
            result.total_functions,
            result.total_issues,
            result.overall_score,
        )
        return result

    # -----------------------------------------------------------------------
    # Documentation
    # -----------------------------------------------------------------------

    def analyze_readme(self, text: str | None) -> ReadmeReport:
        return self.readme_analyzer.analyze(text)

    def analyze_dependencies(
        self,
        files: Iterable[SourceInput | tuple | Mapping[str, Any]],
    ) -> DependencyReport:
        return self.dependency_analyzer.analyze(self.coerce_inputs(files))

    # -----------------------------------------------------------------------
    # Readiness
    # -----------------------------------------------------------------------

    async def assess_readiness(self, text: str, readme: ReadmeReport | None = None) -> ReadinessReport:
        """
        Primary analyzer when configured, otherwise (or on any failure) the
        heuristic fallback. A README report, when supplied, grounds the
        fallback's README section.
        """
        text = truncate_text(text, self.policy.max_merged_chars)

        if self.primary is None:
            logger.info("🤖 No LLM configured - using heuristic analysis")
            return await self.fallback.analyze(text, reason="not_configured", readme=readme)

        try:
            return await asyncio.wait_for(self.primary.analyze(text), timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning("⚠️  LLM analysis timed out after {}s - falling back", self.timeout)
            return await self.fallback.analyze(text, reason="timeout", readme=readme)
        except RateLimitError as exc:
            logger.warning("⚠️  LLM rate limited ({}) - falling back", exc)
            return await self.fallback.analyze(text, reason="rate_limited", readme=readme)
        except LLMError as exc:
            logger.warning("⚠️  LLM analysis failed ({}) - falling back", exc)
            return await self.fallback.analyze(text, reason="llm_error", readme=readme)
        except Exception:
            logger.exception("💥 Unexpected error in primary analyzer - falling back")
            return await self.fallback.analyze(text, reason="unexpected_error", readme=readme)
