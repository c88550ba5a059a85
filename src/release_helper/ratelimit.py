"""Shared token-bucket rate limiter for outbound API calls.

Shortcut allows 200 requests per minute per token. One limiter instance is
created per run and shared by every concurrent fetch, so the quota holds no
matter how many tasks are ready at once. Tasks over quota wait; they never
fail.
"""

from __future__ import annotations

import asyncio
import threading
import time
from collections.abc import Awaitable, Callable

SHORTCUT_REQUESTS_PER_MINUTE = 200


class RateLimiter:
    """Token bucket admitting ``max_requests`` calls per ``window_seconds``.

    The bucket starts full (a burst of ``max_requests`` is allowed) and
    refills continuously. The token count is the only state shared between
    tasks; it is updated under a lock and the locked section never awaits.

    Usage:
        limiter = RateLimiter(max_requests=200, window_seconds=60)
        await limiter.acquire()
    """

    def __init__(
        self,
        max_requests: int = SHORTCUT_REQUESTS_PER_MINUTE,
        window_seconds: float = 60.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        if max_requests <= 0:
            raise ValueError("max_requests must be positive")
        if window_seconds <= 0:
            raise ValueError("window_seconds must be positive")
        self.max_requests = max_requests
        self.window = window_seconds
        self._rate = max_requests / window_seconds
        self._clock = clock
        self._sleep = sleep
        self._lock = threading.Lock()
        self._tokens = float(max_requests)
        self._updated_at = clock()

    @property
    def available(self) -> float:
        with self._lock:
            self._refill()
            return self._tokens

    def _refill(self) -> None:
        now = self._clock()
        elapsed = max(0.0, now - self._updated_at)
        self._tokens = min(float(self.max_requests), self._tokens + elapsed * self._rate)
        self._updated_at = now

    def try_acquire(self) -> float:
        """Take a token if one is available.

        Returns:
            0.0 when a token was taken, otherwise the seconds to wait before
            one becomes available
        """
        with self._lock:
            self._refill()
            if self._tokens >= 1.0:
                self._tokens -= 1.0
                return 0.0
            return (1.0 - self._tokens) / self._rate

    async def acquire(self) -> None:
        """Wait until a token is available and take it."""
        while True:
            wait = self.try_acquire()
            if wait == 0.0:
                return
            await self._sleep(wait)
