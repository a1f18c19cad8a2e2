"""Bounded-parallelism gates with FIFO waiters.

SlotGate is a counting semaphore whose freed slots are handed directly to the
longest-waiting acquirer, so a late arrival never overtakes a queued one.
ConcurrencyLimiter wraps it to run whole jobs.
"""

import asyncio
import logging
from collections import deque
from typing import Any, Awaitable, Callable, Deque, Dict, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SlotGate:
    """Counting semaphore with FIFO hand-off and a mutable limit."""

    def __init__(self, limit: int):
        if limit <= 0:
            raise ValueError("Gate limit must be positive.")
        self._limit = limit
        self._active = 0
        self._waiters: Deque[asyncio.Future] = deque()

    @property
    def limit(self) -> int:
        return self._limit

    @limit.setter
    def limit(self, value: int) -> None:
        if value <= 0:
            raise ValueError("Gate limit must be positive.")
        self._limit = value
        # A raised limit admits queued waiters immediately; a lowered one
        # takes effect as holders release.
        self._grant_waiting()

    @property
    def active(self) -> int:
        return self._active

    @property
    def queued(self) -> int:
        return len(self._waiters)

    async def acquire(self) -> None:
        """Waits for a free slot and takes it."""
        if self._active < self._limit and not self._waiters:
            self._active += 1
            return

        fut = asyncio.get_running_loop().create_future()
        self._waiters.append(fut)
        try:
            await fut
        except asyncio.CancelledError:
            if fut.done() and not fut.cancelled():
                # The slot was handed over before the cancellation landed.
                self.release()
            else:
                try:
                    self._waiters.remove(fut)
                except ValueError:
                    pass
            raise

    def release(self) -> None:
        """Frees a slot and hands it to the longest-waiting acquirer, if any."""
        if self._active <= 0:
            raise RuntimeError("release() called without a matching acquire()")
        self._active -= 1
        self._grant_waiting()

    def _grant_waiting(self) -> None:
        while self._waiters and self._active < self._limit:
            fut = self._waiters.popleft()
            if fut.done():
                continue
            self._active += 1
            fut.set_result(None)


class ConcurrencyLimiter:
    """Limits how many jobs are in flight at once."""

    def __init__(self, max_concurrent: int):
        """Initializes the limiter.

        Args:
            max_concurrent: Maximum number of tasks executing simultaneously.
        """
        self._gate = SlotGate(max_concurrent)
        self.max_concurrent = max_concurrent
        self.total_executed = 0
        logger.info(f"ConcurrencyLimiter initialized: {max_concurrent} max concurrent")

    @property
    def running(self) -> int:
        return self._gate.active

    @property
    def queued(self) -> int:
        return self._gate.queued

    async def run(self, task: Callable[[], Awaitable[T]]) -> T:
        """Runs task once a slot is free; the slot is released however task ends."""
        await self._gate.acquire()
        try:
            result = await task()
            self.total_executed += 1
            return result
        finally:
            self._gate.release()

    def get_stats(self) -> Dict[str, Any]:
        return {
            "running": self.running,
            "queued": self.queued,
            "total_executed": self.total_executed,
        }
