"""
Unit tests for the LLM-backed readiness analyzer (LLM stubbed).
"""

from __future__ import annotations

import json

import pytest

from devinsight.services.fallback import FallbackAnalyzer
from devinsight.services.readiness import (
    LLMReadinessAnalyzer,
    ReadinessAnalyzer,
    build_prompt,
    strip_fences,
)
from devinsight.utils.exceptions import LLMError


VALID_REPLY = {
    "readinessScore": 82,
    "overallSummary": "Solid project.",
    "codeQuality": {"score": 78, "comments": ["tidy"], "strengths": ["tests"], "improvements": []},
    "readmeQuality": {"exists": True, "score": 70, "feedback": "good", "suggestions": []},
    "suggestedReadme": "",
    "technicalDebt": {"level": "low", "issues": []},
    "security": {"concerns": [], "recommendations": ["pin deps"]},
}


# ── Parsing ───────────────────────────────────────────────────────────────────

class TestParse:
    def test_valid_json(self) -> None:
        analysis = LLMReadinessAnalyzer.parse(json.dumps(VALID_REPLY))
        assert analysis.readinessScore == 82
        assert analysis.codeQuality.strengths == ["tests"]
        assert analysis.error is None

    def test_fenced_json(self) -> None:
        raw = "```json\n" + json.dumps(VALID_REPLY) + "\n```"
        assert LLMReadinessAnalyzer.parse(raw).readinessScore == 82

    def test_non_json_is_degraded(self) -> None:
        raw = "Sorry, I cannot help with that. " * 100
        analysis = LLMReadinessAnalyzer.parse(raw)
        assert analysis.readinessScore == 50
        assert analysis.error == "Failed to parse AI response"
        assert analysis.rawResponse == raw[:1000]
        assert len(analysis.rawResponse) == 1000

    def test_schema_invalid_is_degraded(self) -> None:
        analysis = LLMReadinessAnalyzer.parse(json.dumps(["not", "an", "object"]))
        assert analysis.error == "Failed to parse AI response"

    def test_scores_are_clamped(self) -> None:
        reply = dict(VALID_REPLY, readinessScore=140, codeQuality={"score": -5})
        analysis = LLMReadinessAnalyzer.parse(json.dumps(reply))
        assert analysis.readinessScore == 100
        assert analysis.codeQuality.score == 0

    def test_missing_sections_get_defaults(self) -> None:
        analysis = LLMReadinessAnalyzer.parse('{"readinessScore": 61}')
        assert analysis.readinessScore == 61
        assert analysis.security.concerns == []
        assert analysis.technicalDebt.level == "unknown"


class TestStripFences:
    def test_plain(self) -> None:
        assert strip_fences('  {"a": 1} ') == '{"a": 1}'

    def test_fenced_without_language(self) -> None:
        assert strip_fences('```\n{"a": 1}\n```') == '{"a": 1}'


# ── Analyze ───────────────────────────────────────────────────────────────────

class TestAnalyze:
    async def test_report_from_stub(self, stub_llm_cls) -> None:
        llm = stub_llm_cls(reply=json.dumps(VALID_REPLY))
        report = await LLMReadinessAnalyzer(llm).analyze("README\ncode")
        assert report.source == "llm"
        assert report.model == "stub-model"
        assert report.usage == {"input_tokens": 10, "output_tokens": 5, "total_tokens": 15}
        assert report.analysis.readinessScore == 82
        assert "README\ncode" in llm.prompts[0]

    async def test_degraded_report_keeps_primary_model(self, stub_llm_cls) -> None:
        report = await LLMReadinessAnalyzer(stub_llm_cls(reply="nope")).analyze("x")
        assert report.model == "stub-model"
        assert report.source == "llm"
        assert report.analysis.readinessScore == 50

    async def test_llm_errors_propagate(self, stub_llm_cls) -> None:
        analyzer = LLMReadinessAnalyzer(stub_llm_cls(error=LLMError("boom")))
        with pytest.raises(LLMError):
            await analyzer.analyze("x")


class TestPromptAndProtocol:
    def test_prompt_embeds_content(self) -> None:
        prompt = build_prompt("PROJECT BODY")
        assert "Project Content:\nPROJECT BODY" in prompt
        assert '"readinessScore"' in prompt

    def test_both_analyzers_satisfy_protocol(self, stub_llm_cls) -> None:
        assert isinstance(LLMReadinessAnalyzer(stub_llm_cls()), ReadinessAnalyzer)
        assert isinstance(FallbackAnalyzer(), ReadinessAnalyzer)
