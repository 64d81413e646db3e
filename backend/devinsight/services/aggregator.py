"""
Aggregator

Builds SourceFile records from extraction results and rolls them up into a
RepositoryAnalysis: overall score, risk distribution, top issues and worst
files. Sorting keys are fully specified so output never depends on input
order beyond the documented tie-breaks.
"""

from __future__ import annotations

from collections import Counter
from dataclasses import replace
from typing import Sequence

from loguru import logger

from devinsight.config import ScoringPolicy
from devinsight.models.analysis import (
    Function,
    RepositoryAnalysis,
    SourceFile,
    WorstFile,
    empty_risk_distribution,
)
from devinsight.services.issues import IssueDetector, score_file
from devinsight.services.metrics import ExtractionResult
from devinsight.services.recommendations import RecommendationGenerator
from devinsight.services.risk import RiskClassifier, Severity, most_severe


TOP_ISSUE_SEVERITIES = frozenset({Severity.CRITICAL, Severity.HIGH})


class Aggregator:
    def __init__(self, policy: ScoringPolicy | None = None) -> None:
        self.policy = policy or ScoringPolicy()
        self.classifier = RiskClassifier.from_policy(self.policy)
        self.detector = IssueDetector(self.policy, self.classifier)
        self.recommender = RecommendationGenerator(self.policy)

    # ------------------------------------------------------------------
    # Per file
    # ------------------------------------------------------------------

    def build_file(self, extraction: ExtractionResult) -> SourceFile:
        functions = tuple(
            Function(
                name=raw.name,
                start_line=raw.start_line,
                length=raw.length,
                complexity=raw.complexity,
                nesting_depth=raw.nesting_depth,
                risk_level=self.classifier.classify(raw.complexity, raw.length),
            )
            for raw in extraction.functions
        )
        issues = self.detector.detect(extraction.path, extraction.metrics, functions)
        source_file = SourceFile(
            path=extraction.path,
            language=extraction.language,
            metrics=extraction.metrics,
            functions=functions,
            issues=issues,
            score=score_file(issues, self.policy),
            risk_level=most_severe([f.risk_level for f in functions]),
            parse_error=extraction.parse_error,
        )
        logger.debug(
            "{} → score {} ({} functions, {} issues)",
            source_file.path, source_file.score, len(functions), len(issues),
        )
        return source_file

    # ------------------------------------------------------------------
    # Across files
    # ------------------------------------------------------------------

    def aggregate(self, files: Sequence[SourceFile]) -> RepositoryAnalysis:
        files = tuple(files)
        if not files:
            return RepositoryAnalysis(
                recommendations=self.recommender.generate(RepositoryAnalysis(), files),
            )

        distribution = empty_risk_distribution()
        for f in files:
            for fn in f.functions:
                distribution[fn.risk_level] += 1

        total_lines = sum(f.line_count for f in files)
        total_comments = sum(f.comment_lines for f in files)

        analysis = RepositoryAnalysis(
            overall_score=overall_score([f.score for f in files]),
            analyzed_files=len(files),
            total_functions=sum(len(f.functions) for f in files),
            total_issues=sum(len(f.issues) for f in files),
            risk_distribution=distribution,
            top_issues=self._top_issues(files),
            worst_files=self._worst_files(files),
            files=files,
            comment_ratio=total_comments / max(total_lines, 1),
            language_distribution=dict(sorted(Counter(f.language for f in files).items())),
        )
        return replace(analysis, recommendations=self.recommender.generate(analysis, files))

    def _top_issues(self, files: Sequence[SourceFile]):
        candidates = [
            issue
            for f in files
            for issue in f.issues
            if issue.severity in TOP_ISSUE_SEVERITIES
        ]
        candidates.sort(key=lambda i: (-i.severity.rank, i.file_path))
        return tuple(candidates[: self.policy.top_issues_limit])

    def _worst_files(self, files: Sequence[SourceFile]):
        ranked = sorted(files, key=lambda f: (f.score, -len(f.issues), f.path))
        return tuple(
            WorstFile(
                path=f.path,
                score=f.score,
                issue_count=len(f.issues),
                function_count=len(f.functions),
            )
            for f in ranked[: self.policy.worst_files_limit]
        )


def overall_score(scores: Sequence[int]) -> int:
    """Mean of the file scores, rounded half up and clamped to [0, 100]."""
    if not scores:
        return 0
    mean = sum(scores) / len(scores)
    return max(0, min(100, int(mean + 0.5)))
