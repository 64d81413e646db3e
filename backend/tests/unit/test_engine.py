"""
Unit tests for the analysis engine (LLM stubbed).
"""

from __future__ import annotations

import json
import re

import pytest

from devinsight.config import ScoringPolicy
from devinsight.core.engine import (
    TRUNCATION_MARKER,
    AnalysisEngine,
    make_analysis_id,
    merge_repository_text,
    repo_name_from_url,
    truncate_text,
)
from devinsight.models.analysis import SourceInput
from devinsight.services.fallback import FALLBACK_MODEL
from devinsight.services.readiness import LLMReadinessAnalyzer
from devinsight.utils.exceptions import AnalysisError, LLMError, RateLimitError


PY_FILE = ("app.py", "python", "def main():\n    return 1\n")
JS_FILE = ("web.js", None, "function go(a) {\n  if (a) { return 1; }\n  return 2;\n}\n")

LLM_REPLY = json.dumps({"readinessScore": 77, "overallSummary": "fine"})


# ── Text helpers ──────────────────────────────────────────────────────────────

class TestTextHelpers:
    def test_truncate_under_limit(self) -> None:
        assert truncate_text("abc", 3) == "abc"

    def test_truncate_appends_marker(self) -> None:
        out = truncate_text("abcdef", 3)
        assert out == "abc" + TRUNCATION_MARKER

    def test_merge_puts_readme_first(self) -> None:
        merged = merge_repository_text([SourceInput(path="a.py", text="x = 1")], readme="# Hi")
        assert merged == "--- README.md ---\n# Hi\n\n--- a.py ---\nx = 1"

    def test_merge_respects_limit(self) -> None:
        merged = merge_repository_text([SourceInput(path="a.py", text="x" * 100)], limit=20)
        assert merged.endswith(TRUNCATION_MARKER)
        assert len(merged) == 20 + len(TRUNCATION_MARKER)


class TestIdentifiers:
    def test_repo_name_from_github_url(self) -> None:
        assert repo_name_from_url("https://github.com/octo/hello.git") == "hello"

    def test_repo_name_missing(self) -> None:
        assert repo_name_from_url(None) is None

    def test_analysis_id_for_github(self) -> None:
        analysis_id = make_analysis_id("https://github.com/octo/hello")
        assert re.fullmatch(r"octo-hello-\d+-[0-9a-f]{6}", analysis_id)

    def test_analysis_ids_are_unique(self) -> None:
        url = "https://github.com/octo/hello"
        assert make_analysis_id(url) != make_analysis_id(url)

    def test_analysis_id_without_url(self) -> None:
        assert re.fullmatch(r"[0-9a-f]{32}", make_analysis_id())


# ── Input preparation ─────────────────────────────────────────────────────────

class TestPrepareInputs:
    def test_accepts_tuples_dicts_and_inputs(self, engine: AnalysisEngine) -> None:
        inputs = engine.prepare_inputs([
            PY_FILE,
            {"path": "b.js", "content": "let x = 1;"},
            SourceInput(path="c.go", text="package main"),
        ])
        assert [i.path for i in inputs] == ["app.py", "b.js", "c.go"]
        assert inputs[1].text == "let x = 1;"

    def test_invalid_input_raises_analysis_error(self, engine: AnalysisEngine) -> None:
        with pytest.raises(AnalysisError):
            engine.prepare_inputs([42])
        with pytest.raises(AnalysisError):
            engine.prepare_inputs([("only", "two")])

    def test_file_count_is_capped(self) -> None:
        engine = AnalysisEngine(policy=ScoringPolicy(max_files=2))
        inputs = engine.prepare_inputs([PY_FILE] * 5)
        assert len(inputs) == 2

    def test_oversized_file_is_truncated(self) -> None:
        engine = AnalysisEngine(policy=ScoringPolicy(max_file_chars=10))
        (source,) = engine.prepare_inputs([("a.py", "python", "x" * 50)])
        assert source.text == "x" * 10

    def test_unsupported_and_ignored_files_are_skipped(self, engine: AnalysisEngine) -> None:
        inputs = engine.prepare_inputs([
            ("package.json", None, "{}"),
            ("docs/guide.md", None, "# Guide"),
            ("node_modules/lib/index.js", None, "function a() {}"),
            ("dist/bundle.js", None, "function b() {}"),
            ("static/app.min.js", None, "function c() {}"),
            ("pkg.egg-info/setup.py", None, "def d(): pass"),
            ("deploy.sh", None, "echo hi"),
            ("src/app.py", None, "def main():\n    return 1\n"),
        ])
        assert [i.path for i in inputs] == ["src/app.py"]

    def test_cap_counts_only_source_files(self) -> None:
        engine = AnalysisEngine(policy=ScoringPolicy(max_files=1))
        inputs = engine.prepare_inputs([("README.md", None, "# Hi"), ("notes.txt", None, "x"), PY_FILE])
        assert [i.path for i in inputs] == ["app.py"]


# ── Code smells ───────────────────────────────────────────────────────────────

class TestAnalyzeCode:
    def test_mixed_languages(self, engine: AnalysisEngine) -> None:
        result = engine.analyze_code([PY_FILE, JS_FILE])
        assert result.analyzed_files == 2
        assert result.total_functions == 2
        assert result.language_distribution == {"python": 1, "javascript": 1}

    def test_malformed_file_does_not_abort(self, engine: AnalysisEngine) -> None:
        result = engine.analyze_code([PY_FILE, ("broken.py", "python", "def (:\n")])
        assert result.analyzed_files == 2

    def test_deterministic(self, engine: AnalysisEngine) -> None:
        files = [PY_FILE, JS_FILE]
        assert engine.analyze_code(files).to_dict() == engine.analyze_code(files).to_dict()

    def test_analyze_file(self, engine: AnalysisEngine) -> None:
        source_file = engine.analyze_file(JS_FILE)
        assert source_file.language == "javascript"
        assert [f.name for f in source_file.functions] == ["go"]

    def test_only_non_source_files(self, engine: AnalysisEngine) -> None:
        result = engine.analyze_code([
            ("package.json", None, '{"name": "demo"}'),
            ("docs/guide.md", None, "# Guide\nfunction x() {}\n"),
        ])
        assert result.analyzed_files == 0
        assert [r.type for r in result.recommendations] == ["no_source_files"]

    def test_analyze_file_rejects_unsupported(self, engine: AnalysisEngine) -> None:
        with pytest.raises(AnalysisError, match="notes.txt"):
            engine.analyze_file(("notes.txt", None, "plain text"))
        with pytest.raises(AnalysisError):
            engine.analyze_file(("node_modules/x/index.js", None, "function a() {}"))


# ── Readiness fallback ────────────────────────────────────────────────────────

class TestReadinessFallback:
    async def test_no_primary_uses_fallback(self, engine: AnalysisEngine) -> None:
        report = await engine.assess_readiness("README")
        assert report.source == "fallback"
        assert report.model == FALLBACK_MODEL
        assert report.fallbackReason == "not_configured"

    async def test_primary_used_when_healthy(self, stub_llm_cls) -> None:
        llm = stub_llm_cls(reply=LLM_REPLY)
        engine = AnalysisEngine(primary=LLMReadinessAnalyzer(llm))
        report = await engine.assess_readiness("README")
        assert report.source == "llm"
        assert report.analysis.readinessScore == 77

    @pytest.mark.parametrize(
        ("error", "reason"),
        [
            (LLMError("down"), "llm_error"),
            (RateLimitError("slow down"), "rate_limited"),
            (RuntimeError("surprise"), "unexpected_error"),
        ],
    )
    async def test_primary_errors_fall_back(self, stub_llm_cls, error: Exception, reason: str) -> None:
        engine = AnalysisEngine(primary=LLMReadinessAnalyzer(stub_llm_cls(error=error)))
        report = await engine.assess_readiness("README def")
        assert report.source == "fallback"
        assert report.fallbackReason == reason
        assert report.analysis.readinessScore == 85

    async def test_timeout_falls_back(self, stub_llm_cls) -> None:
        llm = stub_llm_cls(reply=LLM_REPLY, delay=1.0)
        engine = AnalysisEngine(primary=LLMReadinessAnalyzer(llm), timeout=0.01)
        report = await engine.assess_readiness("README")
        assert report.source == "fallback"
        assert report.fallbackReason == "timeout"

    async def test_long_text_is_truncated_before_llm(self, stub_llm_cls) -> None:
        llm = stub_llm_cls(reply=LLM_REPLY)
        engine = AnalysisEngine(
            primary=LLMReadinessAnalyzer(llm),
            policy=ScoringPolicy(max_merged_chars=100),
        )
        await engine.assess_readiness("z" * 500)
        assert TRUNCATION_MARKER in llm.prompts[0]
        assert "z" * 101 not in llm.prompts[0]


# ── Full run ──────────────────────────────────────────────────────────────────

class TestAnalyze:
    async def test_report_shape(self, engine: AnalysisEngine) -> None:
        report = await engine.analyze([PY_FILE, JS_FILE], readme="# Demo\nRun it.")
        data = report.to_dict()
        assert data["source"] == "fallback"
        assert data["model"] == FALLBACK_MODEL
        assert data["readinessScore"] == report.readiness.analysis.readinessScore
        assert data["codeSmells"]["analyzedFiles"] == 2
        assert data["processingTimeMs"] >= 0

    async def test_to_record(self, engine: AnalysisEngine) -> None:
        report = await engine.analyze([PY_FILE])
        record = report.to_record(None, "https://github.com/octo/hello")
        assert record["repoName"] == "hello"
        assert record["repoURL"] == "https://github.com/octo/hello"
        assert record["analysisId"].startswith("octo-hello-")
        assert record["aiModel"] == FALLBACK_MODEL
        assert record["stats"]["analyzedFiles"] == 1
        assert record["stats"]["fallbackReason"] == "not_configured"

    async def test_to_record_without_url(self, engine: AnalysisEngine) -> None:
        report = await engine.analyze([])
        record = report.to_record()
        assert record["repoName"] == "Unknown Repository"
        assert record["repoURL"] == ""

    async def test_inputs_are_prepared_once(self, engine: AnalysisEngine, monkeypatch: pytest.MonkeyPatch) -> None:
        calls: list[int] = []
        select = engine.select_sources

        def counting_select(sources):
            calls.append(1)
            return select(sources)

        monkeypatch.setattr(engine, "select_sources", counting_select)
        await engine.analyze([PY_FILE, JS_FILE])
        assert len(calls) == 1

    async def test_readme_and_dependencies_from_files(self, engine: AnalysisEngine) -> None:
        package_json = json.dumps({
            "name": "demo",
            "description": "Demo app",
            "license": "MIT",
            "dependencies": {"express": "^4.18.2"},
        })
        readme = "# Demo\n\n## Installation\n\n```bash\nnpm install\n```\n"
        report = await engine.analyze([
            PY_FILE,
            ("package.json", None, package_json),
            ("README.md", None, readme),
        ])
        data = report.to_dict()
        assert data["codeSmells"]["analyzedFiles"] == 1
        assert data["readme"]["exists"] is True
        assert "installation" in data["readme"]["sections"]["found"]
        assert data["dependencies"]["primary"] == {"type": "npm", "file": "package.json"}
        assert data["readiness"]["analysis"]["readmeQuality"]["score"] == report.readme.score

    async def test_explicit_readme_wins(self, engine: AnalysisEngine) -> None:
        report = await engine.analyze([("README.md", None, "# From files")], readme="# Supplied\n## Usage\n")
        assert "usage" in report.readme.sections_found

    async def test_record_carries_documentation_scores(self, engine: AnalysisEngine) -> None:
        report = await engine.analyze([PY_FILE])
        stats = report.to_record()["stats"]
        assert stats["readmeScore"] == 0
        assert stats["dependencyHealth"] == 0
