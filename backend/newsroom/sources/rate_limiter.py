"""
Per-source request throttling.

One limiter is shared by every adapter of a job, so all pipelines together
stay inside each provider's quota.
"""

import asyncio
import logging
import time
from collections import defaultdict, deque
from typing import Optional

logger = logging.getLogger(__name__)

# (requests, window seconds) per source name
SOURCE_LIMITS = {
    "newsapi": (50, 60),       # free tier is 100/day, keep bursts small
    "guardian": (10, 1),       # 12 per second on the developer key
    "firecrawl": (10, 60),     # scrape credits are expensive
    "rss": (20, 1),
}
FALLBACK_LIMIT = (60, 60)


class RateLimiter:
    """Sliding window of call times per source, on the monotonic clock."""

    def __init__(self, limits: Optional[dict[str, tuple[int, float]]] = None):
        self.limits = dict(SOURCE_LIMITS)
        if limits:
            self.limits.update(limits)
        self._calls: dict[str, deque[float]] = defaultdict(deque)
        self._locks: dict[str, asyncio.Lock] = defaultdict(asyncio.Lock)

    def set_limit(self, source: str, requests: int, window_seconds: float):
        self.limits[source] = (requests, window_seconds)

    def _window(self, source: str, now: float) -> deque[float]:
        _, window = self.limits.get(source, FALLBACK_LIMIT)
        calls = self._calls[source]
        while calls and calls[0] <= now - window:
            calls.popleft()
        return calls

    async def acquire(self, source: str, timeout: Optional[float] = 30.0) -> bool:
        """
        Wait for a free slot for ``source``.

        Returns False, without waiting, once the slot would open later than
        ``timeout`` seconds from the call. ``None`` waits indefinitely.
        """
        deadline = None if timeout is None else time.monotonic() + timeout
        max_requests, window = self.limits.get(source, FALLBACK_LIMIT)

        async with self._locks[source]:
            while True:
                now = time.monotonic()
                calls = self._window(source, now)
                if len(calls) < max_requests:
                    calls.append(now)
                    return True

                opens_at = calls[0] + window
                if deadline is not None and opens_at > deadline:
                    logger.warning(f"{source}: rate limit slot opens in {opens_at - now:.1f}s, giving up")
                    return False

                logger.debug(f"{source}: rate limited, waiting {opens_at - now:.1f}s")
                await asyncio.sleep(opens_at - now)

    def get_status(self, source: str) -> dict:
        max_requests, window = self.limits.get(source, FALLBACK_LIMIT)
        used = len(self._window(source, time.monotonic()))
        return {
            "source": source,
            "max_requests": max_requests,
            "window_seconds": window,
            "current_requests": used,
            "available": max(0, max_requests - used),
        }
