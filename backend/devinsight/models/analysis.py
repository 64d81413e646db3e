"""
Domain models for the analysis engine.

Everything here is a frozen dataclass: a run builds these once and hands
them to the API / persistence layers, which only read them. ``to_dict``
produces the camelCase documents the UI consumes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Mapping

from devinsight.services.risk import RiskLevel, Severity


class IssueKind(str, Enum):
    COMPLEXITY = "complexity"
    FUNCTION_LENGTH = "function_length"
    DEEP_NESTING = "deep_nesting"
    FILE_LENGTH = "file_length"
    LOW_COMMENTS = "low_comments"
    TODO_COMMENTS = "todo_comments"
    DEBUG_STATEMENTS = "debug_statements"
    MAGIC_NUMBERS = "magic_numbers"
    VAR_DECLARATIONS = "var_declarations"
    EMPTY_FUNCTIONS = "empty_functions"
    BROAD_EXCEPT = "broad_except"


class FindingLevel(str, Enum):
    CRITICAL = "critical"
    IMPORTANT = "important"
    SUGGESTION = "suggestion"


class Priority(str, Enum):
    CRITICAL = "critical"
    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"

    @property
    def rank(self) -> int:
        return {"low": 0, "medium": 1, "high": 2, "critical": 3}[self.value]


# ---------------------------------------------------------------------------
# Input
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SourceInput:
    """One file handed to the engine: path, optional language tag, raw text."""
    path: str
    text: str
    language: str | None = None

    @classmethod
    def coerce(cls, item: SourceInput | tuple | Mapping[str, Any]) -> SourceInput:
        """Accept a SourceInput, a ``(path, language, text)`` tuple or a dict."""
        if isinstance(item, SourceInput):
            return item
        if isinstance(item, tuple):
            if len(item) != 3:
                raise ValueError(f"Expected (path, language, text), got {len(item)} items")
            path, language, text = item
            return cls(path=str(path), text=text or "", language=language or None)
        if isinstance(item, Mapping):
            path = item.get("path") or item.get("filePath") or ""
            text = item.get("text")
            if text is None:
                text = item.get("content", "")
            return cls(path=str(path), text=text or "", language=item.get("language") or None)
        raise TypeError(f"Unsupported source input: {type(item).__name__}")


# ---------------------------------------------------------------------------
# Per-file results
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class FileMetrics:
    line_count: int = 0
    code_lines: int = 0
    comment_lines: int = 0
    comment_ratio: float = 0.0
    todo_count: int = 0
    debug_count: int = 0
    magic_number_count: int = 0
    var_count: int = 0
    empty_function_count: int = 0
    broad_except_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "codeLines": self.code_lines,
            "commentLines": self.comment_lines,
            "commentRatio": round(self.comment_ratio, 4),
            "todoComments": self.todo_count,
            "debugStatements": self.debug_count,
            "magicNumbers": self.magic_number_count,
            "varDeclarations": self.var_count,
            "emptyFunctions": self.empty_function_count,
            "broadExcepts": self.broad_except_count,
        }


@dataclass(frozen=True)
class Function:
    name: str
    start_line: int
    length: int
    complexity: int
    risk_level: RiskLevel
    nesting_depth: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "startLine": self.start_line,
            "length": self.length,
            "complexity": self.complexity,
            "nestingDepth": self.nesting_depth,
            "riskLevel": self.risk_level.value,
        }


@dataclass(frozen=True)
class Issue:
    kind: IssueKind
    severity: Severity
    message: str
    file_path: str
    suggestion: str
    line: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.kind.value,
            "severity": self.severity.value,
            "message": self.message,
            "suggestion": self.suggestion,
            "file": self.file_path,
            "line": self.line,
        }


@dataclass(frozen=True)
class SourceFile:
    path: str
    language: str
    metrics: FileMetrics
    functions: tuple[Function, ...] = ()
    issues: tuple[Issue, ...] = ()
    score: int = 100
    risk_level: RiskLevel = RiskLevel.SAFE
    parse_error: str | None = None

    @property
    def line_count(self) -> int:
        return self.metrics.line_count

    @property
    def code_lines(self) -> int:
        return self.metrics.code_lines

    @property
    def comment_lines(self) -> int:
        return self.metrics.comment_lines

    @property
    def comment_ratio(self) -> float:
        return self.metrics.comment_ratio

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "filePath": self.path,
            "language": self.language,
            "lineCount": self.metrics.line_count,
            "metrics": self.metrics.to_dict(),
            "functions": [f.to_dict() for f in self.functions],
            "issues": [i.to_dict() for i in self.issues],
            "score": self.score,
            "riskLevel": self.risk_level.value,
        }
        if self.parse_error:
            data["parseError"] = self.parse_error
        return data


# ---------------------------------------------------------------------------
# Repository-level results
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class WorstFile:
    path: str
    score: int
    issue_count: int
    function_count: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "path": self.path,
            "score": self.score,
            "issueCount": self.issue_count,
            "functionCount": self.function_count,
        }


@dataclass(frozen=True)
class Recommendation:
    type: str
    priority: Priority
    message: str
    suggestion: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "priority": self.priority.value,
            "message": self.message,
            "suggestion": self.suggestion,
        }


def empty_risk_distribution() -> dict[RiskLevel, int]:
    return {level: 0 for level in RiskLevel}


@dataclass(frozen=True)
class RepositoryAnalysis:
    overall_score: int = 0
    analyzed_files: int = 0
    total_functions: int = 0
    total_issues: int = 0
    risk_distribution: Mapping[RiskLevel, int] = field(default_factory=empty_risk_distribution)
    top_issues: tuple[Issue, ...] = ()
    worst_files: tuple[WorstFile, ...] = ()
    recommendations: tuple[Recommendation, ...] = ()
    files: tuple[SourceFile, ...] = ()
    comment_ratio: float = 0.0
    language_distribution: Mapping[str, int] = field(default_factory=dict)
    error: str | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "overallScore": self.overall_score,
            "analyzedFiles": self.analyzed_files,
            "totalFunctions": self.total_functions,
            "totalIssues": self.total_issues,
            "riskDistribution": {
                level.value: self.risk_distribution.get(level, 0) for level in RiskLevel
            },
            "topIssues": [i.to_dict() for i in self.top_issues],
            "worstFiles": [w.to_dict() for w in self.worst_files],
            "recommendations": [r.to_dict() for r in self.recommendations],
            "files": [f.to_dict() for f in self.files],
            "commentRatio": round(self.comment_ratio, 4),
            "languageDistribution": dict(self.language_distribution),
        }
        if self.error:
            data["error"] = self.error
        return data


# ---------------------------------------------------------------------------
# Documentation / dependency findings
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Finding:
    """A README or dependency-manifest recommendation."""
    level: FindingLevel
    category: str
    message: str
    impact: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.level.value,
            "category": self.category,
            "message": self.message,
            "impact": self.impact,
        }
