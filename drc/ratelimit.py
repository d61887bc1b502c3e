"""Fixed-window rate limiting for routes that spend third-party quota."""

from __future__ import annotations

import logging
import math
import time
from typing import Callable

from fastapi import HTTPException, Request, status

logger = logging.getLogger(__name__)


class FixedWindowRateLimiter:
    """Counts requests per key inside aligned windows; rejects, never queues."""

    def __init__(
        self,
        limit: int,
        window_seconds: int,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.limit = limit
        self.window_seconds = window_seconds
        self._clock = clock
        # Counts for the current window only; cleared when the window rolls.
        self._window = 0
        self._counts: dict[str, int] = {}

    @property
    def tracked_keys(self) -> int:
        return len(self._counts)

    def hit(self, key: str) -> tuple[bool, float]:
        """Record one request; return ``(allowed, seconds_until_reset)``."""
        now = self._clock()
        window = int(now // self.window_seconds)
        reset_in = (window + 1) * self.window_seconds - now
        if window != self._window:
            self._window = window
            self._counts.clear()
        count = self._counts.get(key, 0)
        if count >= self.limit:
            return False, reset_in
        self._counts[key] = count + 1
        return True, reset_in


class RateLimit:
    """FastAPI dependency applying a shared limiter to one route."""

    def __init__(self, name: str) -> None:
        self.name = name

    async def __call__(self, request: Request) -> None:
        limiter: FixedWindowRateLimiter = request.app.state.rate_limiter
        client = request.client.host if request.client else "anonymous"
        allowed, reset_in = limiter.hit(f"rate_limit:{client}:{self.name}")
        if not allowed:
            logger.warning("Rate limit exceeded on %s for %s", self.name, client)
            raise HTTPException(
                status_code=status.HTTP_429_TOO_MANY_REQUESTS,
                detail="Too many requests, try again later.",
                headers={"Retry-After": str(max(1, math.ceil(reset_in)))},
            )
