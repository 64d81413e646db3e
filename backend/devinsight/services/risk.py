"""
Risk Classifier.

Maps a function's raw metrics (complexity, length) onto a discrete
RiskLevel using an ordered threshold table. The table is plain data so it
can be swapped via ScoringPolicy and tested in isolation.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Sequence

from devinsight.config import ScoringPolicy


class RiskLevel(str, Enum):
    """Function / file risk bucket. Order via ``rank``: SAFE < ... < CRITICAL."""
    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    WARNING = "WARNING"
    SAFE = "SAFE"

    @property
    def rank(self) -> int:
        return _RISK_RANK[self]

    def as_severity(self) -> Severity:
        return Severity.LOW if self is RiskLevel.SAFE else Severity(self.value)


class Severity(str, Enum):
    """Issue severity. Same scale as RiskLevel with LOW in place of SAFE."""
    CRITICAL = "CRITICAL"
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    WARNING = "WARNING"
    LOW = "LOW"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]


_RISK_RANK: dict[RiskLevel, int] = {
    RiskLevel.SAFE: 0,
    RiskLevel.WARNING: 1,
    RiskLevel.MEDIUM: 2,
    RiskLevel.HIGH: 3,
    RiskLevel.CRITICAL: 4,
}

_SEVERITY_RANK: dict[Severity, int] = {
    Severity.LOW: 0,
    Severity.WARNING: 1,
    Severity.MEDIUM: 2,
    Severity.HIGH: 3,
    Severity.CRITICAL: 4,
}


@dataclass(frozen=True)
class ThresholdRow:
    level: RiskLevel
    min_complexity: int | None = None
    min_length: int | None = None


class RiskClassifier:
    """
    Threshold-table classifier.

    Rows are kept most-severe-first; the first row whose complexity OR
    length bound is met decides the level, so when the two metrics
    disagree the more severe bucket wins.
    """

    def __init__(self, rows: Iterable[ThresholdRow]) -> None:
        self.rows: tuple[ThresholdRow, ...] = tuple(
            sorted(rows, key=lambda r: r.level.rank, reverse=True)
        )

    @classmethod
    def from_policy(cls, policy: ScoringPolicy | None = None) -> RiskClassifier:
        policy = policy or ScoringPolicy()
        return cls(
            ThresholdRow(
                level=RiskLevel(row.level),
                min_complexity=row.min_complexity,
                min_length=row.min_length,
            )
            for row in policy.risk_thresholds
        )

    def classify(self, complexity: int, length: int) -> RiskLevel:
        for row in self.rows:
            if row.min_complexity is not None and complexity >= row.min_complexity:
                return row.level
            if row.min_length is not None and length >= row.min_length:
                return row.level
        return RiskLevel.SAFE

    def classify_complexity(self, complexity: int) -> RiskLevel:
        for row in self.rows:
            if row.min_complexity is not None and complexity >= row.min_complexity:
                return row.level
        return RiskLevel.SAFE

    def classify_length(self, length: int) -> RiskLevel:
        for row in self.rows:
            if row.min_length is not None and length >= row.min_length:
                return row.level
        return RiskLevel.SAFE

    def describe(self) -> list[dict[str, int | str | None]]:
        return [
            {
                "level": row.level.value,
                "minComplexity": row.min_complexity,
                "minLength": row.min_length,
            }
            for row in self.rows
        ]


def most_severe(levels: Sequence[RiskLevel]) -> RiskLevel:
    """Highest-ranked level in ``levels``; SAFE for an empty sequence."""
    return max(levels, key=lambda lvl: lvl.rank, default=RiskLevel.SAFE)


def classify_risk(complexity: int, length: int, policy: ScoringPolicy | None = None) -> RiskLevel:
    """Functional shortcut around RiskClassifier for one-off lookups."""
    return RiskClassifier.from_policy(policy).classify(complexity, length)
