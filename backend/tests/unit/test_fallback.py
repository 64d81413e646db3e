"""
Unit tests for the heuristic fallback analyzer.
"""

from __future__ import annotations

import json

import pytest

from devinsight.services.fallback import FALLBACK_MODEL, FallbackAnalyzer, heuristic_score
from devinsight.services.readiness import LLMReadinessAnalyzer
from devinsight.services.readme import ReadmeAnalyzer, missing_readme


def _keys(data, prefix: str = "") -> set[str]:
    """Flattened set of dotted key paths in a nested dict."""
    found: set[str] = set()
    for key, value in data.items():
        path = f"{prefix}{key}"
        found.add(path)
        if isinstance(value, dict):
            found |= _keys(value, f"{path}.")
    return found


# ── Scoring ───────────────────────────────────────────────────────────────────

class TestHeuristicScore:
    def test_base_score(self) -> None:
        assert heuristic_score("hello") == 50

    def test_readme_bonus_is_case_insensitive(self) -> None:
        assert heuristic_score("See the README") == 70

    def test_code_keyword_bonus(self) -> None:
        assert heuristic_score("fn main") == 65
        assert heuristic_score("#include <stdio.h>") == 65

    def test_length_bonuses(self) -> None:
        assert heuristic_score("x" * 1001) == 60
        assert heuristic_score("x" * 5001) == 65
        assert heuristic_score("x" * 1000) == 50

    def test_readme_code_and_long_text(self) -> None:
        text = "readme\nimport os\n" + "x" * 5000
        assert heuristic_score(text) == 100

    def test_readme_code_and_medium_text(self) -> None:
        text = "readme\ndef main():\n" + "x" * 1500
        assert heuristic_score(text) == 95
        assert heuristic_score(text) >= 85

    def test_capped_at_100(self) -> None:
        text = "README class function " + "y" * 10_000
        assert heuristic_score(text) == 100


# ── Report shape ──────────────────────────────────────────────────────────────

class TestFallbackReport:
    async def test_report_metadata(self) -> None:
        report = await FallbackAnalyzer().analyze("README\nconst x = 1;", reason="timeout")
        assert report.success is True
        assert report.model == FALLBACK_MODEL
        assert report.source == "fallback"
        assert report.fallbackReason == "timeout"
        assert report.analysis.readmeQuality.exists is True
        assert report.analysis.technicalDebt.level == "low"

    def test_missing_readme_suggests_template(self) -> None:
        report = FallbackAnalyzer().build_report("just text")
        assert report.analysis.readmeQuality.exists is False
        assert report.analysis.readmeQuality.score == 20
        assert report.analysis.suggestedReadme.startswith("# Project Title")
        assert report.analysis.codeQuality.score == 40

    def test_deterministic(self) -> None:
        a = FallbackAnalyzer().build_report("readme def x").to_dict()
        b = FallbackAnalyzer().build_report("readme def x").to_dict()
        assert a == b

    def test_same_shape_as_llm_report(self) -> None:
        fallback = FallbackAnalyzer().build_report("readme def x").to_dict()
        llm_payload = {
            "readinessScore": 72,
            "overallSummary": "ok",
            "codeQuality": {"score": 70, "comments": [], "strengths": [], "improvements": []},
            "readmeQuality": {"exists": True, "score": 60, "feedback": "", "suggestions": []},
            "suggestedReadme": "",
            "technicalDebt": {"level": "medium", "issues": []},
            "security": {"concerns": [], "recommendations": []},
        }
        analysis = LLMReadinessAnalyzer.parse(json.dumps(llm_payload))
        llm = fallback | {"analysis": analysis.model_dump(), "source": "llm", "model": "m"}
        assert _keys(fallback) == _keys(llm)

    def test_readme_report_drives_readme_quality(self) -> None:
        readme = ReadmeAnalyzer().analyze("# Demo\n\n## Usage\n\nRun it.\n")
        report = FallbackAnalyzer().build_report("no keyword here", readme=readme)
        quality = report.analysis.readmeQuality
        assert quality.exists is True
        assert quality.score == readme.score
        assert quality.suggestions == [f.message for f in readme.findings]
        assert "installation" in report.analysis.suggestedReadme

    def test_missing_readme_report_overrides_keyword(self) -> None:
        report = FallbackAnalyzer().build_report("README mentioned in passing", readme=missing_readme())
        assert report.analysis.readmeQuality.exists is False
        assert report.analysis.readmeQuality.score == 0
        assert report.analysis.suggestedReadme.startswith("# Project Title")


@pytest.mark.parametrize("text", ["", "a", "README"])
def test_scores_within_bounds(text: str) -> None:
    assert 0 <= heuristic_score(text) <= 100
