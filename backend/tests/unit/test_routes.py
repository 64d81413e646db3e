"""
API tests via FastAPI's TestClient (temp SQLite store, no LLM).
"""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from devinsight.api.throttle import analyze_throttle
from devinsight.models.database import AnalysisStore
from devinsight.utils.exceptions import PersistenceError


FILES = [
    {"path": "app.py", "language": "python", "content": "def main():\n    # entry\n    return 1\n"},
    {"path": "web.js", "content": "function go(a) {\n  if (a) { return 1; }\n  return 2;\n}\n"},
]

ANALYZE_BODY = {
    "repoUrl": "https://github.com/octo/hello",
    "readme": "# Hello\nA demo project.",
    "files": FILES,
}


# ── Meta ──────────────────────────────────────────────────────────────────────

class TestMeta:
    def test_root(self, client: TestClient) -> None:
        assert client.get("/").json()["status"] == "running"

    def test_health(self, client: TestClient) -> None:
        body = client.get("/health").json()
        assert body["status"] == "healthy"
        assert "llm_enabled" in body

    def test_llm_stats_when_disabled(self, client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr("devinsight.api.routes.get_llm_service", lambda: None)
        assert client.get("/api/v1/stats").json() == {"llm_enabled": False}


# ── Code smells ───────────────────────────────────────────────────────────────

class TestCodeSmells:
    def test_repository_scan(self, client: TestClient) -> None:
        resp = client.post("/api/v1/analyze/code-smells", json={"files": FILES})
        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["analyzedFiles"] == 2
        assert data["totalFunctions"] == 2
        assert set(data["riskDistribution"]) == {"CRITICAL", "HIGH", "MEDIUM", "WARNING", "SAFE"}

    def test_empty_repository(self, client: TestClient) -> None:
        data = client.post("/api/v1/analyze/code-smells", json={"files": []}).json()["data"]
        assert data["overallScore"] == 0
        assert data["recommendations"][0]["type"] == "no_source_files"

    def test_single_file(self, client: TestClient) -> None:
        resp = client.post("/api/v1/analyze/code-smells/file", json=FILES[1])
        assert resp.status_code == 200
        assert resp.json()["data"]["language"] == "javascript"

    def test_non_source_files_are_skipped(self, client: TestClient) -> None:
        files = [
            {"path": "package.json", "content": '{"name": "demo"}'},
            {"path": "docs/guide.md", "content": "# Guide"},
            {"path": "node_modules/dep/index.js", "content": "function x() {}"},
        ]
        data = client.post("/api/v1/analyze/code-smells", json={"files": files}).json()["data"]
        assert data["analyzedFiles"] == 0
        assert [r["type"] for r in data["recommendations"]] == ["no_source_files"]

    def test_unsupported_single_file_is_400(self, client: TestClient) -> None:
        resp = client.post("/api/v1/analyze/code-smells/file", json={"path": "notes.md", "content": "# x"})
        assert resp.status_code == 400

    def test_missing_path_is_422(self, client: TestClient) -> None:
        assert client.post("/api/v1/analyze/code-smells/file", json={"content": "x"}).status_code == 422

    def test_thresholds(self, client: TestClient) -> None:
        data = client.get("/api/v1/analyze/code-smells/thresholds").json()["data"]
        assert "riskLevels" in data
        assert set(data["severityWeights"]) == {"CRITICAL", "HIGH", "MEDIUM", "WARNING", "LOW"}


# ── Readiness ─────────────────────────────────────────────────────────────────

class TestReadiness:
    def test_fallback_report(self, client: TestClient) -> None:
        body = client.post("/api/v1/analyze/readiness", json={"text": "README\ndef main(): pass"}).json()
        assert body["success"] is True
        assert body["source"] == "fallback"
        assert body["fallbackReason"] == "not_configured"
        assert body["analysis"]["readinessScore"] == 85

    def test_empty_text_is_422(self, client: TestClient) -> None:
        assert client.post("/api/v1/analyze/readiness", json={"text": ""}).status_code == 422


# ── Documentation ─────────────────────────────────────────────────────────────

class TestDocumentation:
    def test_readme_scoring(self, client: TestClient) -> None:
        readme = "# Demo\n\n## Installation\n\n```bash\npip install demo\n```\n\n## Usage\n\nRun it.\n"
        data = client.post("/api/v1/analyze/readme", json={"readme": readme}).json()["data"]
        assert data["exists"] is True
        assert {"title", "installation", "usage"} <= set(data["sections"]["found"])
        assert 0 < data["score"] <= 100

    def test_missing_readme(self, client: TestClient) -> None:
        data = client.post("/api/v1/analyze/readme", json={}).json()["data"]
        assert data["exists"] is False
        assert data["score"] == 0
        assert data["recommendations"][0]["type"] == "critical"

    def test_dependency_manifests(self, client: TestClient) -> None:
        files = [{"path": "requirements.txt", "content": "fastapi>=0.110\nloguru\n"}]
        data = client.post("/api/v1/analyze/dependencies", json={"files": files}).json()["data"]
        assert data["primary"] == {"type": "pip", "file": "requirements.txt"}
        assert data["summary"]["totalDependencies"] == 2

    def test_full_analysis_includes_documentation(self, client: TestClient) -> None:
        data = client.post("/api/v1/analyze", json=ANALYZE_BODY).json()["data"]
        assert data["readme"]["exists"] is True
        assert data["dependencies"]["exists"] is False


# ── Full analysis + projects ──────────────────────────────────────────────────

class TestAnalyze:
    def test_analyze_persists_and_is_retrievable(self, client: TestClient) -> None:
        resp = client.post("/api/v1/analyze", json=ANALYZE_BODY)
        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        analysis_id = body["analysisId"]
        assert analysis_id.startswith("octo-hello-")
        assert body["data"]["source"] == "fallback"
        assert body["data"]["codeSmells"]["analyzedFiles"] == 2

        project = client.get(f"/api/v1/projects/{analysis_id}").json()
        assert project["repoName"] == "hello"
        assert project["repoURL"] == "https://github.com/octo/hello"
        assert project["readinessScore"] == body["data"]["readinessScore"]
        assert project["stats"]["analyzedFiles"] == 2

    def test_repo_url_is_normalised(self, client: TestClient) -> None:
        body = dict(ANALYZE_BODY, repoUrl="git@github.com:octo/hello.git")
        analysis_id = client.post("/api/v1/analyze", json=body).json()["analysisId"]
        project = client.get(f"/api/v1/projects/{analysis_id}").json()
        assert project["repoURL"] == "https://github.com/octo/hello"

    def test_invalid_repo_url_is_422(self, client: TestClient) -> None:
        body = dict(ANALYZE_BODY, repoUrl="https://example.com/nope")
        assert client.post("/api/v1/analyze", json=body).status_code == 422

    def test_persistence_failure_still_returns_analysis(
        self, client: TestClient, store: AnalysisStore, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        def broken_save(record):
            raise PersistenceError("disk full")

        monkeypatch.setattr(store, "save", broken_save)
        resp = client.post("/api/v1/analyze", json=ANALYZE_BODY)
        assert resp.status_code == 200
        assert resp.json()["analysisId"] is None
        assert resp.json()["data"]["codeSmells"]["analyzedFiles"] == 2

    def test_throttled(self, client: TestClient, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setattr(analyze_throttle, "enabled", True)
        monkeypatch.setattr(analyze_throttle, "max_requests", 1)
        assert client.post("/api/v1/analyze", json=ANALYZE_BODY).status_code == 200
        resp = client.post("/api/v1/analyze", json=ANALYZE_BODY)
        assert resp.status_code == 429
        assert int(resp.headers["Retry-After"]) > 0


class TestProjects:
    def test_missing_project_is_404(self, client: TestClient) -> None:
        assert client.get("/api/v1/projects/does-not-exist").status_code == 404

    def test_recent_and_stats(self, client: TestClient) -> None:
        client.post("/api/v1/analyze", json=ANALYZE_BODY)
        recent = client.get("/api/v1/projects/recent", params={"limit": 5}).json()
        assert len(recent) == 1
        assert recent[0]["scoreCategory"] in {"excellent", "good", "fair", "poor"}

        stats = client.get("/api/v1/projects/stats").json()["data"]
        assert stats["totalProjects"] == 1

    def test_by_score(self, client: TestClient) -> None:
        client.post("/api/v1/analyze", json=ANALYZE_BODY)
        assert len(client.get("/api/v1/projects/by-score", params={"min": 0, "max": 100}).json()) == 1
        assert client.get("/api/v1/projects/by-score", params={"min": 80, "max": 20}).status_code == 400

    def test_recent_limit_validated(self, client: TestClient) -> None:
        assert client.get("/api/v1/projects/recent", params={"limit": 0}).status_code == 422
