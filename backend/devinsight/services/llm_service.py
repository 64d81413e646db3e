"""
LLM Service – Anthropic Claude API integration.

- AsyncAnthropic client (injectable for tests)
- Sliding-window rate limiter
- Retry with exponential back-off via tenacity
- Token usage and cost tracking
"""

from __future__ import annotations

import asyncio
from collections import deque
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

import anthropic
from anthropic import AsyncAnthropic
from loguru import logger
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from devinsight.config import Settings, settings
from devinsight.utils.exceptions import ConfigurationError, LLMError, RateLimitError
from devinsight.utils.token_counter import estimate_cost


TRANSIENT_ERRORS = (anthropic.APIConnectionError, anthropic.APITimeoutError)


@dataclass(frozen=True)
class LLMResponse:
    """Completion text plus the token usage reported for that request."""

    text: str
    usage: dict[str, int]
    model: str


# ---------------------------------------------------------------------------
# Rate limiter
# ---------------------------------------------------------------------------

class SlidingWindowRateLimiter:
    """Async sliding-window rate limiter."""

    def __init__(self, max_requests: int, period_seconds: int) -> None:
        self.max_requests = max_requests
        self.period = period_seconds
        self._timestamps: deque[datetime] = deque()
        self._lock = asyncio.Lock()

    async def acquire(self) -> None:
        async with self._lock:
            now = datetime.now(timezone.utc)
            cutoff = now - timedelta(seconds=self.period)

            # Expire old entries
            while self._timestamps and self._timestamps[0] <= cutoff:
                self._timestamps.popleft()

            if len(self._timestamps) >= self.max_requests:
                oldest = self._timestamps[0]
                wait = (oldest - cutoff).total_seconds()
                raise RateLimitError(
                    f"Rate limit reached ({self.max_requests} req/{self.period}s). "
                    f"Retry in {wait:.1f}s.",
                    retry_after=wait,
                )

            self._timestamps.append(now)


# ---------------------------------------------------------------------------
# LLM service
# ---------------------------------------------------------------------------

class LLMService:
    """
    Managed interface to Anthropic Claude.

    - Enforces rate limits
    - Retries on transient connection/timeout errors
    - Tracks token usage and cost
    """

    def __init__(
        self,
        config: Settings | None = None,
        client: AsyncAnthropic | None = None,
    ) -> None:
        config = config or settings
        if client is None and not config.anthropic_api_key.strip():
            raise ConfigurationError("ANTHROPIC_API_KEY is not set")
        self.client = client or AsyncAnthropic(api_key=config.anthropic_api_key)
        self.model = config.llm_model
        self.max_tokens = config.llm_max_tokens
        self.temperature = config.llm_temperature
        self.max_retries = config.llm_max_retries

        self.rate_limiter = SlidingWindowRateLimiter(
            max_requests=config.llm_rate_limit_requests,
            period_seconds=config.llm_rate_limit_period,
        )

        # Usage tracking
        self.total_requests: int = 0
        self.total_input_tokens: int = 0
        self.total_output_tokens: int = 0
        self.estimated_cost_usd: float = 0.0

    # -----------------------------------------------------------------------
    # Core generate
    # -----------------------------------------------------------------------

    async def generate(
        self,
        prompt: str,
        system_prompt: str | None = None,
        temperature: float | None = None,
        max_tokens: int | None = None,
        **kwargs: Any,
    ) -> LLMResponse:
        """
        Generate a response from Claude.

        Usage is returned with the text so concurrent callers never read
        each other's token counts.

        Raises:
            RateLimitError: Rate limit exceeded (local window or upstream 429).
            LLMError: Any other API failure, including exhausted retries.
        """
        await self.rate_limiter.acquire()

        params: dict[str, Any] = {
            "model": self.model,
            "max_tokens": max_tokens or self.max_tokens,
            "temperature": temperature if temperature is not None else self.temperature,
            "messages": [{"role": "user", "content": prompt}],
            **kwargs,
        }
        if system_prompt:
            params["system"] = system_prompt

        try:
            logger.debug("LLM request - {} chars, model={}", len(prompt), self.model)
            response = await self._create_with_retry(params)
            text: str = response.content[0].text
            usage = self._track_usage(response.usage)
            logger.debug(
                "LLM response - {} chars, tokens in={} out={}",
                len(text),
                response.usage.input_tokens,
                response.usage.output_tokens,
            )
            return LLMResponse(text=text, usage=usage, model=self.model)

        except anthropic.RateLimitError as exc:
            logger.warning("Anthropic rate limit: {}", exc)
            raise RateLimitError("Anthropic rate limit exceeded") from exc

        except anthropic.AuthenticationError as exc:
            logger.error("Anthropic authentication failed: {}", exc.message)
            raise LLMError("Anthropic API authentication failed. Check the API key.") from exc

        except anthropic.APIStatusError as exc:
            logger.error("Anthropic API error {}: {}", exc.status_code, exc.message)
            raise LLMError(f"Anthropic API error {exc.status_code}: {exc.message}") from exc

        except RetryError as exc:
            logger.error("Anthropic API unreachable after {} attempts", self.max_retries + 1)
            raise LLMError(f"LLM request failed after retries: {exc.last_attempt.exception()}") from exc

        except Exception as exc:
            logger.exception("LLM generate failed")
            raise LLMError(f"LLM generation failed: {exc}") from exc

    async def _create_with_retry(self, params: dict[str, Any]) -> Any:
        async for attempt in AsyncRetrying(
            retry=retry_if_exception_type(TRANSIENT_ERRORS),
            stop=stop_after_attempt(self.max_retries + 1),
            wait=wait_exponential(multiplier=1, min=1, max=10),
        ):
            with attempt:
                return await self.client.messages.create(**params)

    # -----------------------------------------------------------------------
    # Stats
    # -----------------------------------------------------------------------

    def get_stats(self) -> dict[str, Any]:
        return {
            "total_requests": self.total_requests,
            "total_input_tokens": self.total_input_tokens,
            "total_output_tokens": self.total_output_tokens,
            "total_tokens": self.total_input_tokens + self.total_output_tokens,
            "estimated_cost_usd": round(self.estimated_cost_usd, 6),
            "model": self.model,
        }

    # -----------------------------------------------------------------------
    # Helpers
    # -----------------------------------------------------------------------

    def _track_usage(self, usage: Any) -> dict[str, int]:
        self.total_requests += 1
        inp = getattr(usage, "input_tokens", 0) or 0
        out = getattr(usage, "output_tokens", 0) or 0
        self.total_input_tokens += inp
        self.total_output_tokens += out
        self.estimated_cost_usd += estimate_cost(inp, out, self.model)
        return {
            "input_tokens": inp,
            "output_tokens": out,
            "total_tokens": inp + out,
        }


# ---------------------------------------------------------------------------
# Singleton
# ---------------------------------------------------------------------------

_llm_service: LLMService | None = None


def get_llm_service() -> LLMService | None:
    """
    Return the process-level LLMService, or None when no API key is
    configured (or ``MOCK_LLM`` is set) so callers use the fallback.
    """
    global _llm_service
    if not settings.llm_enabled:
        return None
    if _llm_service is None:
        _llm_service = LLMService()
    return _llm_service
