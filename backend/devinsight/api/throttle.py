"""
Per-client request throttling for the analyze endpoint.

Sliding window keyed by client address; in-process only, which is
enough for a single-worker deployment. Clients are kept in order of
their latest request, so idle ones are evicted from the front of the map.
"""

from __future__ import annotations

import asyncio
from collections import deque
from datetime import datetime, timedelta, timezone

from fastapi import HTTPException, Request, status
from loguru import logger

from devinsight.config import settings
from devinsight.utils.exceptions import RateLimitError


class ClientThrottle:
    def __init__(self, max_requests: int, period_seconds: int, enabled: bool = True) -> None:
        self.max_requests = max_requests
        self.period = period_seconds
        self.enabled = enabled
        self._windows: dict[str, deque[datetime]] = {}
        self._lock = asyncio.Lock()

    async def check(self, client_id: str) -> None:
        if not self.enabled:
            return
        async with self._lock:
            now = datetime.now(timezone.utc)
            cutoff = now - timedelta(seconds=self.period)
            self._evict_idle(cutoff)
            window = self._windows.pop(client_id, None) or deque()
            self._windows[client_id] = window

            while window and window[0] <= cutoff:
                window.popleft()

            if len(window) >= self.max_requests:
                retry_after = (window[0] - cutoff).total_seconds()
                logger.warning("🚫 Rate limit exceeded for client {}", client_id)
                raise RateLimitError(
                    f"You have exceeded the rate limit of {self.max_requests} requests "
                    f"per {self.period} seconds. Please try again later.",
                    retry_after=retry_after,
                )

            window.append(now)

    def _evict_idle(self, cutoff: datetime) -> None:
        while self._windows:
            oldest_client = next(iter(self._windows))
            window = self._windows[oldest_client]
            if window and window[-1] > cutoff:
                break
            del self._windows[oldest_client]

    @property
    def tracked_clients(self) -> int:
        return len(self._windows)

    def reset(self) -> None:
        self._windows.clear()

    async def __call__(self, request: Request) -> None:
        """FastAPI dependency form."""
        client_id = request.client.host if request.client else "unknown"
        try:
            await self.check(client_id)
        except RateLimitError as exc:
            headers = {"Retry-After": str(int(exc.retry_after or self.period) + 1)}
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail=str(exc),
                headers=headers,
            ) from exc


analyze_throttle = ClientThrottle(
    max_requests=settings.analyze_rate_limit_requests,
    period_seconds=settings.analyze_rate_limit_window,
    enabled=settings.rate_limit_enabled,
)
