"""
Unit tests for the LLM service (Anthropic client faked).
"""

from __future__ import annotations

import asyncio
from types import SimpleNamespace

import anthropic
import httpx
import pytest

from devinsight.config import Settings
from devinsight.services.llm_service import LLMResponse, LLMService, SlidingWindowRateLimiter
from devinsight.utils.exceptions import ConfigurationError, LLMError, RateLimitError


_REQUEST = httpx.Request("POST", "https://api.anthropic.com/v1/messages")


def _response(text: str = "hello", input_tokens: int = 12, output_tokens: int = 3) -> SimpleNamespace:
    return SimpleNamespace(
        content=[SimpleNamespace(text=text)],
        usage=SimpleNamespace(input_tokens=input_tokens, output_tokens=output_tokens),
    )


def _status_error(cls: type, status_code: int) -> Exception:
    return cls(
        f"status {status_code}",
        response=httpx.Response(status_code, request=_REQUEST),
        body=None,
    )


class FakeMessages:
    def __init__(self, outcomes: list) -> None:
        self.outcomes = list(outcomes)
        self.calls: list[dict] = []

    async def create(self, **params):
        self.calls.append(params)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def _service(*outcomes, **overrides) -> tuple[LLMService, FakeMessages]:
    messages = FakeMessages(list(outcomes))
    config = Settings(anthropic_api_key="test-key", llm_max_retries=1, **overrides)
    return LLMService(config=config, client=SimpleNamespace(messages=messages)), messages


# ── Generate ──────────────────────────────────────────────────────────────────

class TestGenerate:
    async def test_returns_text_with_usage(self) -> None:
        service, messages = _service(_response("hi there", 100, 20))
        reply = await service.generate("prompt", system_prompt="be brief")
        assert isinstance(reply, LLMResponse)
        assert reply.text == "hi there"
        assert reply.model == service.model
        assert messages.calls[0]["system"] == "be brief"
        assert messages.calls[0]["messages"] == [{"role": "user", "content": "prompt"}]
        assert reply.usage == {"input_tokens": 100, "output_tokens": 20, "total_tokens": 120}
        stats = service.get_stats()
        assert stats["total_requests"] == 1
        assert stats["total_tokens"] == 120
        assert stats["estimated_cost_usd"] > 0

    async def test_concurrent_calls_keep_their_own_usage(self) -> None:
        service, _ = _service(_response("first", 100, 10), _response("second", 7, 3))
        first, second = await asyncio.gather(service.generate("one"), service.generate("two"))
        assert first.usage["total_tokens"] == 110
        assert second.usage["total_tokens"] == 10
        assert service.get_stats()["total_tokens"] == 120

    async def test_no_usage_before_first_call(self) -> None:
        service, _ = _service()
        assert service.get_stats()["total_requests"] == 0

    async def test_system_prompt_omitted_when_absent(self) -> None:
        service, messages = _service(_response())
        await service.generate("prompt")
        assert "system" not in messages.calls[0]

    async def test_overrides(self) -> None:
        service, messages = _service(_response())
        await service.generate("prompt", temperature=0.0, max_tokens=50)
        assert messages.calls[0]["temperature"] == 0.0
        assert messages.calls[0]["max_tokens"] == 50


# ── Error mapping ─────────────────────────────────────────────────────────────

class TestErrors:
    async def test_upstream_rate_limit(self) -> None:
        service, _ = _service(_status_error(anthropic.RateLimitError, 429))
        with pytest.raises(RateLimitError):
            await service.generate("prompt")

    async def test_authentication(self) -> None:
        service, _ = _service(_status_error(anthropic.AuthenticationError, 401))
        with pytest.raises(LLMError, match="authentication"):
            await service.generate("prompt")

    async def test_server_error_is_not_retried(self) -> None:
        service, messages = _service(_status_error(anthropic.InternalServerError, 500))
        with pytest.raises(LLMError, match="500"):
            await service.generate("prompt")
        assert len(messages.calls) == 1

    async def test_connection_error_retried_then_succeeds(self) -> None:
        service, messages = _service(anthropic.APIConnectionError(request=_REQUEST), _response("ok"))
        assert (await service.generate("prompt")).text == "ok"
        assert len(messages.calls) == 2

    async def test_connection_error_exhausts_retries(self) -> None:
        service, messages = _service(
            anthropic.APIConnectionError(request=_REQUEST),
            anthropic.APIConnectionError(request=_REQUEST),
        )
        with pytest.raises(LLMError, match="after retries"):
            await service.generate("prompt")
        assert len(messages.calls) == 2

    async def test_local_rate_limit(self) -> None:
        service, messages = _service(_response(), _response(), llm_rate_limit_requests=1)
        await service.generate("one")
        with pytest.raises(RateLimitError):
            await service.generate("two")
        assert len(messages.calls) == 1


# ── Rate limiter ──────────────────────────────────────────────────────────────

class TestSlidingWindowRateLimiter:
    async def test_allows_within_window(self) -> None:
        limiter = SlidingWindowRateLimiter(max_requests=2, period_seconds=60)
        await limiter.acquire()
        await limiter.acquire()

    async def test_raises_with_retry_after(self) -> None:
        limiter = SlidingWindowRateLimiter(max_requests=1, period_seconds=60)
        await limiter.acquire()
        with pytest.raises(RateLimitError) as excinfo:
            await limiter.acquire()
        assert excinfo.value.retry_after is not None
        assert excinfo.value.retry_after > 0


# ── Configuration ─────────────────────────────────────────────────────────────

class TestConfiguration:
    def test_missing_api_key_is_rejected(self) -> None:
        with pytest.raises(ConfigurationError, match="ANTHROPIC_API_KEY"):
            LLMService(config=Settings(anthropic_api_key="  "))

    def test_injected_client_needs_no_key(self) -> None:
        service = LLMService(config=Settings(anthropic_api_key=""), client=SimpleNamespace(messages=None))
        assert service.model
