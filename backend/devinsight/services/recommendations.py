"""
Recommendation Generator

A fixed rule table evaluated in order against a RepositoryAnalysis. The
output is stable-sorted by priority, so rules of equal priority keep their
table order, then capped at ``max_recommendations``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable, Sequence

from devinsight.config import ScoringPolicy
from devinsight.models.analysis import (
    Priority,
    Recommendation,
    RepositoryAnalysis,
    SourceFile,
)
from devinsight.services.risk import RiskLevel


_TEST_PATH = re.compile(r"(^|[/_.\-])(tests?|specs?|__tests__)([/_.\-]|$)", re.IGNORECASE)


def is_test_file(path: str) -> bool:
    return bool(_TEST_PATH.search(path))


@dataclass(frozen=True)
class _Context:
    analysis: RepositoryAnalysis
    files: Sequence[SourceFile]
    policy: ScoringPolicy

    @property
    def test_ratio(self) -> float:
        if not self.files:
            return 0.0
        return sum(1 for f in self.files if is_test_file(f.path)) / len(self.files)


@dataclass(frozen=True)
class Rule:
    type: str
    priority: Priority
    applies: Callable[[_Context], bool]
    message: Callable[[_Context], str]
    suggestion: str


RULES: tuple[Rule, ...] = (
    Rule(
        type="refactoring_priority",
        priority=Priority.CRITICAL,
        applies=lambda c: c.analysis.overall_score < c.policy.critical_score,
        message=lambda c: (
            f"Overall code health score is {c.analysis.overall_score}/100"
        ),
        suggestion="Make refactoring the top priority before adding new features",
    ),
    Rule(
        type="critical_functions",
        priority=Priority.HIGH,
        applies=lambda c: c.analysis.risk_distribution.get(RiskLevel.CRITICAL, 0) > 0,
        message=lambda c: (
            f"{c.analysis.risk_distribution.get(RiskLevel.CRITICAL, 0)} functions "
            "have critical complexity issues"
        ),
        suggestion="Immediately refactor the most complex functions to reduce risk",
    ),
    Rule(
        type="high_complexity",
        priority=Priority.HIGH,
        applies=lambda c: (
            c.analysis.risk_distribution.get(RiskLevel.HIGH, 0) > c.policy.high_risk_function_limit
        ),
        message=lambda c: (
            f"{c.analysis.risk_distribution.get(RiskLevel.HIGH, 0)} functions have high complexity"
        ),
        suggestion="Plan refactoring sessions to break down complex functions",
    ),
    Rule(
        type="code_quality",
        priority=Priority.MEDIUM,
        applies=lambda c: (
            c.policy.critical_score <= c.analysis.overall_score < c.policy.acceptable_score
        ),
        message=lambda c: "Overall code quality score is low",
        suggestion="Implement code review processes and refactoring guidelines",
    ),
    Rule(
        type="documentation",
        priority=Priority.MEDIUM,
        applies=lambda c: c.analysis.comment_ratio < c.policy.min_comment_ratio,
        message=lambda c: (
            f"Only {c.analysis.comment_ratio:.1%} of lines are comments or docstrings"
        ),
        suggestion="Document public functions and non-obvious logic",
    ),
    Rule(
        type="code_smells",
        priority=Priority.MEDIUM,
        applies=lambda c: (
            c.analysis.total_issues > 0
            and c.analysis.total_issues
            > c.analysis.total_functions * c.policy.issues_per_function_limit
        ),
        message=lambda c: "High number of code smells detected",
        suggestion="Set up linting tools and code quality gates in CI/CD",
    ),
    Rule(
        type="testing",
        priority=Priority.LOW,
        applies=lambda c: c.test_ratio < c.policy.min_test_file_ratio,
        message=lambda c: f"Only {c.test_ratio:.0%} of analyzed files are tests",
        suggestion="Add unit tests alongside the most complex modules",
    ),
)

NO_SOURCE_FILES = Recommendation(
    type="no_source_files",
    priority=Priority.CRITICAL,
    message="No analyzable source files were found",
    suggestion="Check that the repository contains source code in a supported language",
)


class RecommendationGenerator:
    def __init__(self, policy: ScoringPolicy | None = None, rules: Sequence[Rule] = RULES) -> None:
        self.policy = policy or ScoringPolicy()
        self.rules = tuple(rules)

    def generate(
        self,
        analysis: RepositoryAnalysis,
        files: Sequence[SourceFile] = (),
    ) -> tuple[Recommendation, ...]:
        if analysis.analyzed_files == 0:
            return (NO_SOURCE_FILES,)

        ctx = _Context(analysis=analysis, files=files or analysis.files, policy=self.policy)
        found = [
            Recommendation(
                type=rule.type,
                priority=rule.priority,
                message=rule.message(ctx),
                suggestion=rule.suggestion,
            )
            for rule in self.rules
            if rule.applies(ctx)
        ]
        found.sort(key=lambda r: -r.priority.rank)
        return tuple(found[: self.policy.max_recommendations])
