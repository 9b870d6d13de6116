from __future__ import annotations

import asyncio
import time
from typing import Awaitable, Callable

Sleeper = Callable[[float], Awaitable[None]]


class IntervalGate:
    """Enforces a minimum spacing between consecutive requests to one domain.

    Calling acquire() suspends the current task until the next request is
    allowed. One gate belongs to one dispatcher, so it is never shared across
    concurrent scrapes. Inside a scrape the retry backoff already exceeds the
    interval; the gate matters when a dispatcher is reused for direct
    fetch_once calls."""

    def __init__(
        self,
        min_interval_ms: int,
        sleep: Sleeper = asyncio.sleep,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._interval = max(0, min_interval_ms) / 1000.0
        self._sleep = sleep
        self._clock = clock
        self._lock = asyncio.Lock()
        self._last_request: float | None = None

    async def acquire(self) -> float:
        """Wait until the next request is permitted; returns seconds waited."""
        async with self._lock:
            waited = 0.0
            if self._interval > 0 and self._last_request is not None:
                remaining = self._last_request + self._interval - self._clock()
                if remaining > 0:
                    await self._sleep(remaining)
                    waited = remaining
            self._last_request = self._clock()
            return waited
