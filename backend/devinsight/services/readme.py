"""
README Analyzer

Scores a README from three signals, weighted 60 / 20 / 20:

1. Sections  weighted table of expected headings (title, installation, usage ...)
2. Badges    status shields for build, coverage, version, license, downloads, deps
3. Quality   length plus counts of code blocks, links, images and tables

Pure text analysis; the caller supplies the README text, nothing is fetched.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import PurePosixPath
from typing import Any, Iterable

from loguru import logger

from devinsight.models.analysis import Finding, FindingLevel, SourceInput
from devinsight.services.metrics import is_ignored_path


def _rx(*patterns: str) -> tuple[re.Pattern[str], ...]:
    return tuple(re.compile(p, re.IGNORECASE | re.MULTILINE) for p in patterns)


@dataclass(frozen=True)
class SectionRule:
    name: str
    description: str
    weight: int
    patterns: tuple[re.Pattern[str], ...]

    def matches(self, text: str) -> bool:
        return any(p.search(text) for p in self.patterns)


# Weights sum to 100.
SECTIONS: tuple[SectionRule, ...] = (
    SectionRule("title", "Project title", 10, _rx(r"^#\s+\S")),
    SectionRule(
        "description", "Project description", 15,
        _rx(r"^#{1,3}\s*(?:description|about|overview)\b", r"^[^#\n].{50,}"),
    ),
    SectionRule(
        "installation", "Installation instructions", 20,
        _rx(
            r"^#{1,3}\s*(?:installation|install|setup|getting started)\b",
            r"\b(?:npm install|yarn add|pip install|go get|composer install|cargo add|gem install)\b",
        ),
    ),
    SectionRule(
        "usage", "Usage examples", 20,
        _rx(r"^#{1,3}\s*(?:usage|examples?|how to|quick ?start)\b", r"^```"),
    ),
    SectionRule(
        "api", "API documentation", 10,
        _rx(r"^#{1,3}\s*(?:api|reference|documentation)\b", r"^#{1,4}\s*methods?\b"),
    ),
    SectionRule(
        "contributing", "Contributing guidelines", 8,
        _rx(r"^#{1,3}\s*contribut", r"CONTRIBUTING\.md"),
    ),
    SectionRule(
        "license", "License information", 7,
        _rx(r"^#{1,3}\s*licen[cs]e\b", r"\b(?:LICENSE|MIT|Apache|GPL)\b"),
    ),
    SectionRule(
        "changelog", "Changelog", 5,
        _rx(r"^#{1,3}\s*(?:changelog|changes|releases?)\b", r"CHANGELOG\.md"),
    ),
    SectionRule(
        "acknowledgments", "Acknowledgments", 5,
        _rx(r"^#{1,3}\s*(?:acknowledge?ments?|credits?|thanks)\b"),
    ),
)

CRITICAL_SECTIONS: tuple[str, ...] = ("description", "installation", "usage")

BADGES: dict[str, re.Pattern[str]] = {
    name: re.compile(rf"!\[[^\]\n]*(?:{alternatives})[^\]\n]*\]", re.IGNORECASE)
    for name, alternatives in (
        ("build", "build|ci|workflow"),
        ("coverage", "coverage|codecov"),
        ("version", "version|npm|pypi"),
        ("license", "license"),
        ("downloads", "downloads"),
        ("dependencies", "dependencies|deps"),
    )
}

README_FILENAMES = ("readme.md", "readme.markdown", "readme.rst", "readme.txt", "readme")

SECTION_WEIGHT = 0.6
BADGE_WEIGHT = 0.2
QUALITY_WEIGHT = 0.2

# quality signal -> (weight, points per occurrence)
QUALITY_SIGNALS: dict[str, tuple[float, int]] = {
    "codeBlocks": (0.2, 20),
    "links": (0.2, 20),
    "images": (0.1, 24),
    "tables": (0.1, 20),
}
LENGTH_WEIGHT = 0.4
LENGTH_STEPS: tuple[tuple[int, int], ...] = ((3000, 100), (1000, 80), (200, 60))
MIN_LENGTH = 200
MIN_CODE_BLOCKS = 2

_CODE_BLOCK = re.compile(r"```[\s\S]*?```")
_LINK = re.compile(r"\[[^\]\n]*\]\([^)\n]*\)")
_IMAGE = re.compile(r"!\[[^\]\n]*\]\([^)\n]*\)")
_TABLE_ROW = re.compile(r"^\s*\|.*\|\s*$", re.MULTILINE)
_HEADER = re.compile(r"^#{1,6}\s", re.MULTILINE)
_TOC = re.compile(r"table of contents|\btoc\b", re.IGNORECASE)
_HIGHLIGHTED_FENCE = re.compile(r"```\w+")
_EMOJI = re.compile("[\U0001F300-\U0001F5FF\U0001F600-\U0001F64F\U0001F680-\U0001F6FF\U0001F900-\U0001F9FF☀-➿]")


def _half_up(value: float) -> int:
    return int(value + 0.5)


# ---------------------------------------------------------------------------
# Report
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ReadmeQualityMetrics:
    length: int = 0
    code_blocks: int = 0
    links: int = 0
    images: int = 0
    tables: int = 0
    has_table_of_contents: bool = False
    has_code_highlighting: bool = False
    has_multiple_headers: bool = False
    has_emojis: bool = False
    score: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "length": self.length,
            "codeBlocks": self.code_blocks,
            "links": self.links,
            "images": self.images,
            "tables": self.tables,
            "hasTableOfContents": self.has_table_of_contents,
            "hasCodeHighlighting": self.has_code_highlighting,
            "hasMultipleHeaders": self.has_multiple_headers,
            "hasEmojis": self.has_emojis,
            "score": self.score,
        }


@dataclass(frozen=True)
class ReadmeReport:
    exists: bool
    score: int = 0
    section_score: int = 0
    badge_score: int = 0
    sections_found: tuple[str, ...] = ()
    sections_missing: tuple[str, ...] = ()
    badges_found: tuple[str, ...] = ()
    quality: ReadmeQualityMetrics = ReadmeQualityMetrics()
    findings: tuple[Finding, ...] = ()

    @property
    def feedback(self) -> str:
        if not self.exists:
            return "No README file detected"
        if not self.sections_missing:
            return f"README covers every expected section (score {self.score})"
        return (
            f"README covers {len(self.sections_found)} of {len(SECTIONS)} expected sections "
            f"(score {self.score}); missing: {', '.join(self.sections_missing)}"
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "exists": self.exists,
            "score": self.score,
            "feedback": self.feedback,
            "sections": {
                "score": self.section_score,
                "found": list(self.sections_found),
                "missing": list(self.sections_missing),
            },
            "badges": {
                "score": self.badge_score,
                "found": list(self.badges_found),
                "missing": [name for name in BADGES if name not in self.badges_found],
            },
            "quality": self.quality.to_dict(),
            "recommendations": [f.to_dict() for f in self.findings],
        }


# ---------------------------------------------------------------------------
# Analyzer
# ---------------------------------------------------------------------------

def find_readme(sources: Iterable[SourceInput]) -> SourceInput | None:
    """The top-most README among the submitted files, if any."""
    candidates = [
        s for s in sources
        if PurePosixPath(s.path).name.lower() in README_FILENAMES and not is_ignored_path(s.path)
    ]
    if not candidates:
        return None
    return min(candidates, key=lambda s: (len(PurePosixPath(s.path).parts), s.path))


def quality_metrics(text: str) -> ReadmeQualityMetrics:
    counts = {
        "codeBlocks": len(_CODE_BLOCK.findall(text)),
        "links": len(_LINK.findall(text)),
        "images": len(_IMAGE.findall(text)),
        "tables": len(_TABLE_ROW.findall(text)) // 3,
    }

    length = len(text)
    length_score = next(
        (points for min_length, points in LENGTH_STEPS if length >= min_length),
        max(20.0, length / MIN_LENGTH * 60),
    )
    score = length_score * LENGTH_WEIGHT + sum(
        min(100, counts[name] * per_item) * weight
        for name, (weight, per_item) in QUALITY_SIGNALS.items()
    )

    return ReadmeQualityMetrics(
        length=length,
        code_blocks=counts["codeBlocks"],
        links=counts["links"],
        images=counts["images"],
        tables=counts["tables"],
        has_table_of_contents=bool(_TOC.search(text)),
        has_code_highlighting=bool(_HIGHLIGHTED_FENCE.search(text)),
        has_multiple_headers=len(_HEADER.findall(text)) > 3,
        has_emojis=bool(_EMOJI.search(text)),
        score=_half_up(score),
    )


class ReadmeAnalyzer:
    """Stateless; safe to share between concurrent runs."""

    def analyze(self, text: str | None) -> ReadmeReport:
        if not text or not text.strip():
            logger.info("📖 No README supplied")
            return missing_readme()

        found = tuple(rule.name for rule in SECTIONS if rule.matches(text))
        missing = tuple(rule.name for rule in SECTIONS if rule.name not in found)
        section_score = sum(rule.weight for rule in SECTIONS if rule.name in found)

        badges = tuple(name for name, pattern in BADGES.items() if pattern.search(text))
        badge_score = _half_up(len(badges) / len(BADGES) * 100)

        quality = quality_metrics(text)
        score = _half_up(
            section_score * SECTION_WEIGHT
            + badge_score * BADGE_WEIGHT
            + quality.score * QUALITY_WEIGHT
        )

        report = ReadmeReport(
            exists=True,
            score=score,
            section_score=section_score,
            badge_score=badge_score,
            sections_found=found,
            sections_missing=missing,
            badges_found=badges,
            quality=quality,
            findings=tuple(self.findings(missing, badges, quality)),
        )
        logger.info(
            "📖 README score {} - {}/{} sections, {} badges",
            score, len(found), len(SECTIONS), len(badges),
        )
        return report

    @staticmethod
    def findings(
        missing: tuple[str, ...],
        badges: tuple[str, ...],
        quality: ReadmeQualityMetrics,
    ) -> list[Finding]:
        out: list[Finding] = []

        critical = [name for name in CRITICAL_SECTIONS if name in missing]
        if critical:
            out.append(Finding(
                FindingLevel.CRITICAL, "structure",
                f"Add missing critical sections: {', '.join(critical)}",
                "Users cannot tell what the project does or how to run it",
            ))
        if quality.length < MIN_LENGTH:
            out.append(Finding(
                FindingLevel.IMPORTANT, "content",
                "README is too short. Expand it with a description, setup steps and examples.",
                "Short READMEs leave new users guessing",
            ))
        if quality.code_blocks < MIN_CODE_BLOCKS:
            out.append(Finding(
                FindingLevel.IMPORTANT, "examples",
                "Add code examples showing installation and typical usage.",
                "Examples are the fastest way to get started",
            ))
        if not badges:
            out.append(Finding(
                FindingLevel.SUGGESTION, "badges",
                "Add status badges (build, coverage, version) to show project health at a glance.",
                "Badges signal maintenance and quality",
            ))
        if not quality.images:
            out.append(Finding(
                FindingLevel.SUGGESTION, "visual",
                "Add screenshots or diagrams that illustrate the project.",
                "Visuals make the project easier to understand",
            ))
        if "api" in missing and quality.code_blocks > 0:
            out.append(Finding(
                FindingLevel.SUGGESTION, "documentation",
                "Document the public API or main entry points.",
                "API docs help users integrate the project",
            ))
        return out


def missing_readme() -> ReadmeReport:
    return ReadmeReport(
        exists=False,
        sections_missing=tuple(rule.name for rule in SECTIONS),
        findings=(
            Finding(
                FindingLevel.CRITICAL, "existence",
                "Create a README.md file with project description and usage instructions.",
                "A project without a README is hard to discover and adopt",
            ),
        ),
    )
