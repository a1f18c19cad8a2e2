"""Implementation of a rate limiter.

Controls the frequency of outgoing requests to a quota-constrained
dependency (the vision-analysis API) using a token bucket.
"""

import time
import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict

logger = logging.getLogger(__name__)

DEFAULT_REQUESTS_PER_MINUTE = 10  # Gemini free tier
MINUTE_SECONDS = 60.0
# Reference timestamp only moves forward in steps of at least this much.
REFILL_GRANULARITY_SECONDS = 1.0


class RateLimiter:
    """Token bucket: bursts up to capacity, refilled at capacity per minute.

    acquire() never rejects, it only delays. When the bucket is empty the
    caller sleeps for the time needed to grow the single missing token, then
    the bucket is drained to zero. Under heavy contention several waiters may
    compute their wait from the same bucket state and overshoot slightly;
    this limiter gates a low-volume dependency, not the hot path.
    """

    def __init__(
        self,
        requests_per_minute: int = DEFAULT_REQUESTS_PER_MINUTE,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        """Initializes the rate limiter.

        Args:
            requests_per_minute: Bucket capacity and refill rate.
            clock: Monotonic time source in seconds.
            sleep: Coroutine used to wait.
        """
        if requests_per_minute <= 0:
            raise ValueError("requests_per_minute must be positive.")
        self.capacity = requests_per_minute
        self.tokens = float(requests_per_minute)
        self._clock = clock
        self._sleep = sleep
        self.last_refill = clock()
        self.total_requests = 0
        self.total_wait_time = 0.0
        logger.info(f"RateLimiter initialized: {requests_per_minute} requests / minute")

    def _refill(self) -> None:
        now = self._clock()
        elapsed = now - self.last_refill
        self.tokens = min(self.capacity, self.tokens + (elapsed / MINUTE_SECONDS) * self.capacity)
        if elapsed >= REFILL_GRANULARITY_SECONDS:
            self.last_refill = now

    def wait_time(self) -> float:
        """Seconds an acquire() would sleep right now (0 if a token is available)."""
        if self.tokens >= 1:
            return 0.0
        return ((1 - self.tokens) / self.capacity) * MINUTE_SECONDS

    async def acquire(self) -> None:
        """Waits until a token is available, then consumes it."""
        # Everything up to the sleep runs without yielding to the event loop.
        self._refill()
        if self.tokens >= 1:
            self.tokens -= 1
            self.total_requests += 1
            return

        wait = self.wait_time()
        self.total_wait_time += wait
        logger.debug(f"Rate limit reached. Waiting for {wait:.2f} seconds.")
        await self._sleep(wait)
        self.tokens = 0.0
        self.total_requests += 1

    def get_stats(self) -> Dict[str, float]:
        return {
            "total_requests": self.total_requests,
            "total_wait_time": round(self.total_wait_time, 3),
            "average_wait_time": (
                round(self.total_wait_time / self.total_requests, 3) if self.total_requests else 0.0
            ),
        }
