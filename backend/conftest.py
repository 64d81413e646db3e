"""
Pytest configuration and shared fixtures.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Iterator

import pytest
from fastapi.testclient import TestClient

from devinsight.api.routes import get_engine, get_store
from devinsight.api.throttle import analyze_throttle
from devinsight.config import ScoringPolicy
from devinsight.core.engine import AnalysisEngine
from devinsight.main import app
from devinsight.models.database import AnalysisStore
from devinsight.services.llm_service import LLMResponse


# ── LLM stub ──────────────────────────────────────────────────────────────────

class StubLLM:
    """Stands in for LLMService: returns canned replies, records prompts."""

    def __init__(self, reply: str = "", error: Exception | None = None, delay: float = 0.0) -> None:
        self.model = "stub-model"
        self.reply = reply
        self.error = error
        self.delay = delay
        self.prompts: list[str] = []

    async def generate(self, prompt: str, system_prompt: str | None = None, **kwargs) -> LLMResponse:
        self.prompts.append(prompt)
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error
        return LLMResponse(
            text=self.reply,
            usage={"input_tokens": 10, "output_tokens": 5, "total_tokens": 15},
            model=self.model,
        )


@pytest.fixture
def stub_llm_cls() -> type[StubLLM]:
    return StubLLM


# ── Policy / engine ───────────────────────────────────────────────────────────

@pytest.fixture
def policy() -> ScoringPolicy:
    return ScoringPolicy()


@pytest.fixture
def engine(policy: ScoringPolicy) -> AnalysisEngine:
    """Engine without a primary analyzer: readiness always uses the fallback."""
    return AnalysisEngine(primary=None, policy=policy)


# ── Persistence ───────────────────────────────────────────────────────────────

@pytest.fixture
def store(tmp_path: Path) -> AnalysisStore:
    s = AnalysisStore(f"sqlite:///{tmp_path / 'test.db'}")
    s.init_db()
    return s


# ── App test client ───────────────────────────────────────────────────────────

@pytest.fixture
def client(store: AnalysisStore) -> Iterator[TestClient]:
    """FastAPI test client backed by a temporary SQLite store and no LLM."""
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_engine] = lambda: AnalysisEngine(primary=None)
    analyze_throttle.reset()
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
        analyze_throttle.reset()
