"""
Issue Detector

Turns extracted metrics into Issue records. Function-level checks come
first (in source order), then file-level checks, so two runs over the same
input always list issues identically.
"""

from __future__ import annotations

from typing import Iterable

from devinsight.config import ScoringPolicy
from devinsight.models.analysis import FileMetrics, Function, Issue, IssueKind
from devinsight.services.risk import RiskClassifier, RiskLevel, Severity


SUGGESTIONS: dict[IssueKind, str] = {
    IssueKind.COMPLEXITY: (
        "Break this function into smaller functions with single responsibilities. "
        "Consider extracting conditional branches into well-named helpers."
    ),
    IssueKind.FUNCTION_LENGTH: (
        "Split this function into smaller, focused units. Functions should "
        "ideally fit on one screen."
    ),
    IssueKind.DEEP_NESTING: (
        "Reduce nesting with guard clauses and early returns, or extract "
        "inner blocks into separate functions."
    ),
    IssueKind.FILE_LENGTH: (
        "Split this file into smaller modules grouped by responsibility."
    ),
    IssueKind.LOW_COMMENTS: (
        "Add docstrings or comments explaining intent, inputs and non-obvious logic."
    ),
    IssueKind.TODO_COMMENTS: (
        "Resolve outstanding TODO/FIXME items or track them in the issue tracker."
    ),
    IssueKind.DEBUG_STATEMENTS: (
        "Remove leftover debug output or replace it with proper logging."
    ),
    IssueKind.MAGIC_NUMBERS: (
        "Replace repeated numeric literals with named constants that explain their meaning."
    ),
    IssueKind.VAR_DECLARATIONS: (
        "Use const or let instead of var to keep bindings block-scoped."
    ),
    IssueKind.EMPTY_FUNCTIONS: (
        "Implement or remove empty functions; mark intentional no-ops explicitly."
    ),
    IssueKind.BROAD_EXCEPT: (
        "Catch specific exception types. A bare except also swallows KeyboardInterrupt and SystemExit."
    ),
}


class IssueDetector:
    def __init__(
        self,
        policy: ScoringPolicy | None = None,
        classifier: RiskClassifier | None = None,
    ) -> None:
        self.policy = policy or ScoringPolicy()
        self.classifier = classifier or RiskClassifier.from_policy(self.policy)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def detect(
        self,
        path: str,
        metrics: FileMetrics,
        functions: Iterable[Function],
    ) -> tuple[Issue, ...]:
        issues: list[Issue] = []
        for fn in functions:
            issues.extend(self.function_issues(path, fn))
        issues.extend(self.file_issues(path, metrics))
        return tuple(issues)

    def function_issues(self, path: str, fn: Function) -> list[Issue]:
        issues: list[Issue] = []

        if fn.risk_level.rank >= RiskLevel.WARNING.rank:
            by_complexity = self.classifier.classify_complexity(fn.complexity)
            if by_complexity.rank >= RiskLevel.WARNING.rank:
                issues.append(Issue(
                    kind=IssueKind.COMPLEXITY,
                    severity=by_complexity.as_severity(),
                    message=(
                        f"Function '{fn.name}' in {path} has cyclomatic complexity "
                        f"{fn.complexity}"
                    ),
                    file_path=path,
                    suggestion=SUGGESTIONS[IssueKind.COMPLEXITY],
                    line=fn.start_line,
                ))

            by_length = self.classifier.classify_length(fn.length)
            if by_length.rank >= RiskLevel.WARNING.rank:
                issues.append(Issue(
                    kind=IssueKind.FUNCTION_LENGTH,
                    severity=by_length.as_severity(),
                    message=f"Function '{fn.name}' in {path} is {fn.length} lines long",
                    file_path=path,
                    suggestion=SUGGESTIONS[IssueKind.FUNCTION_LENGTH],
                    line=fn.start_line,
                ))

        if fn.nesting_depth >= self.policy.max_nesting_depth:
            issues.append(Issue(
                kind=IssueKind.DEEP_NESTING,
                severity=Severity.HIGH,
                message=(
                    f"Function '{fn.name}' in {path} nests blocks "
                    f"{fn.nesting_depth} levels deep"
                ),
                file_path=path,
                suggestion=SUGGESTIONS[IssueKind.DEEP_NESTING],
                line=fn.start_line,
            ))

        return issues

    def file_issues(self, path: str, metrics: FileMetrics) -> list[Issue]:
        p = self.policy
        issues: list[Issue] = []

        if metrics.code_lines > 0 and metrics.comment_ratio < p.min_comment_ratio:
            issues.append(Issue(
                kind=IssueKind.LOW_COMMENTS,
                severity=Severity.LOW,
                message=(
                    f"{path} has a low comment ratio "
                    f"({metrics.comment_ratio:.1%} of {metrics.line_count} lines)"
                ),
                file_path=path,
                suggestion=SUGGESTIONS[IssueKind.LOW_COMMENTS],
            ))

        if metrics.line_count > p.max_file_lines:
            issues.append(Issue(
                kind=IssueKind.FILE_LENGTH,
                severity=Severity.MEDIUM,
                message=f"{path} is {metrics.line_count} lines long",
                file_path=path,
                suggestion=SUGGESTIONS[IssueKind.FILE_LENGTH],
            ))

        if metrics.todo_count:
            issues.append(Issue(
                kind=IssueKind.TODO_COMMENTS,
                severity=Severity.LOW,
                message=f"{path} contains {metrics.todo_count} TODO/FIXME marker(s)",
                file_path=path,
                suggestion=SUGGESTIONS[IssueKind.TODO_COMMENTS],
            ))

        if metrics.debug_count:
            issues.append(Issue(
                kind=IssueKind.DEBUG_STATEMENTS,
                severity=Severity.LOW,
                message=f"{path} contains {metrics.debug_count} debug output statement(s)",
                file_path=path,
                suggestion=SUGGESTIONS[IssueKind.DEBUG_STATEMENTS],
            ))

        if metrics.magic_number_count > p.max_magic_numbers:
            issues.append(Issue(
                kind=IssueKind.MAGIC_NUMBERS,
                severity=Severity.LOW,
                message=f"{path} contains {metrics.magic_number_count} unnamed numeric literals",
                file_path=path,
                suggestion=SUGGESTIONS[IssueKind.MAGIC_NUMBERS],
            ))

        if metrics.var_count:
            issues.append(Issue(
                kind=IssueKind.VAR_DECLARATIONS,
                severity=Severity.LOW,
                message=f"{path} declares {metrics.var_count} variable(s) with var",
                file_path=path,
                suggestion=SUGGESTIONS[IssueKind.VAR_DECLARATIONS],
            ))

        if metrics.empty_function_count:
            issues.append(Issue(
                kind=IssueKind.EMPTY_FUNCTIONS,
                severity=Severity.LOW,
                message=f"{path} contains {metrics.empty_function_count} empty function(s)",
                file_path=path,
                suggestion=SUGGESTIONS[IssueKind.EMPTY_FUNCTIONS],
            ))

        if metrics.broad_except_count:
            issues.append(Issue(
                kind=IssueKind.BROAD_EXCEPT,
                severity=Severity.WARNING,
                message=f"{path} has {metrics.broad_except_count} bare except clause(s)",
                file_path=path,
                suggestion=SUGGESTIONS[IssueKind.BROAD_EXCEPT],
            ))

        return issues


def score_file(issues: Iterable[Issue], policy: ScoringPolicy | None = None) -> int:
    """100 minus the summed severity weights, clamped to [0, 100]."""
    weights = (policy or ScoringPolicy()).severity_weights
    penalty = sum(weights.get(issue.severity.value, 0) for issue in issues)
    return max(0, min(100, 100 - penalty))
