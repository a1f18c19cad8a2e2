"""Adaptive gate for bandwidth-heavy provider calls.

Generation requests carry several reference images inline, so uploading is
throttled separately from overall job concurrency. The gate watches how long
recent uploads took and lowers its own ceiling while the connection is slow.
"""

import asyncio
import logging
import time
from collections import deque
from statistics import mean
from typing import Any, Awaitable, Callable, Deque, Dict, TypeVar

from genbatch.infrastructure.resilience.concurrency import SlotGate

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_MAX_UPLOADS = 3
DEFAULT_BASE_TIMEOUT_SECONDS = 10.0
DEFAULT_FALLBACK_CONCURRENCY = 2
MAX_ADAPTIVE_TIMEOUT_SECONDS = 60.0
HISTORY_SIZE = 10
TIMEOUT_WINDOW = 5       # samples averaged for the adaptive timeout
TREND_WINDOW = 3         # samples averaged for slow-mode decisions
MIN_SAMPLES = 3
SLOW_ENTER_SECONDS = 20.0
SLOW_EXIT_SECONDS = 15.0


class SlotLease:
    """One-shot release handle for an upload slot.

    Both the timeout timer and the call's own completion path hold the same
    lease; only the first release() has any effect.
    """

    def __init__(self, on_release: Callable[[], None]):
        self._on_release = on_release
        self.released = False

    def release(self) -> bool:
        """Releases the slot. Returns False if it was already released."""
        if self.released:
            return False
        self.released = True
        self._on_release()
        return True


class UploadLimiter:
    """Concurrency gate with an adaptive timeout and self-adjusting ceiling."""

    def __init__(
        self,
        max_uploads: int = DEFAULT_MAX_UPLOADS,
        base_timeout: float = DEFAULT_BASE_TIMEOUT_SECONDS,
        fallback_concurrency: int = DEFAULT_FALLBACK_CONCURRENCY,
        clock: Callable[[], float] = time.monotonic,
    ):
        """Initializes the upload limiter.

        Args:
            max_uploads: Initial number of simultaneous uploads.
            base_timeout: Slot timeout in seconds before enough samples exist.
            fallback_concurrency: Ceiling used while the connection is slow.
            clock: Monotonic time source in seconds.
        """
        self._gate = SlotGate(max_uploads)
        self.base_timeout = base_timeout
        self.fallback_concurrency = fallback_concurrency
        self._clock = clock
        self.recent_durations: Deque[float] = deque(maxlen=HISTORY_SIZE)
        self.total_uploads = 0
        self.slow_connection_detected = False
        logger.info(
            f"UploadLimiter initialized: {max_uploads} max concurrent uploads, "
            f"base timeout {base_timeout}s, fallback {fallback_concurrency}"
        )

    @property
    def max_uploads(self) -> int:
        return self._gate.limit

    @property
    def uploading(self) -> int:
        return self._gate.active

    @property
    def queued(self) -> int:
        return self._gate.queued

    async def acquire_slot(self) -> None:
        await self._gate.acquire()

    def release_slot(self) -> None:
        self._gate.release()

    def get_adaptive_timeout(self) -> float:
        """Base timeout until enough samples exist, then twice the recent mean (capped)."""
        if len(self.recent_durations) < MIN_SAMPLES:
            return self.base_timeout
        recent = list(self.recent_durations)[-TIMEOUT_WINDOW:]
        return max(self.base_timeout, min(mean(recent) * 2, MAX_ADAPTIVE_TIMEOUT_SECONDS))

    def record_duration(self, seconds: float) -> None:
        """Adds a sample and applies the slow-connection hysteresis."""
        self.recent_durations.append(seconds)
        if len(self.recent_durations) < TREND_WINDOW:
            return

        trend = mean(list(self.recent_durations)[-TREND_WINDOW:])
        if trend > SLOW_ENTER_SECONDS and not self.slow_connection_detected:
            logger.warning(
                f"Slow connection detected (avg {trend:.1f}s), reducing upload concurrency "
                f"to {self.fallback_concurrency}"
            )
            self.slow_connection_detected = True
            self._gate.limit = self.fallback_concurrency
        elif trend < SLOW_EXIT_SECONDS and self.slow_connection_detected:
            logger.info(
                f"Connection improved (avg {trend:.1f}s), restoring upload concurrency "
                f"to {self.fallback_concurrency + 1}"
            )
            self.slow_connection_detected = False
            self._gate.limit = self.fallback_concurrency + 1

    def _release_lease(self) -> None:
        self.release_slot()
        self.total_uploads += 1

    def _expire(self, lease: SlotLease, timeout: float) -> None:
        if lease.release():
            logger.debug(f"Upload still running after {timeout:.1f}s, slot released early")

    async def wrap_call(self, request: Callable[[], Awaitable[T]]) -> T:
        """Runs request under an upload slot.

        The slot is freed exactly once: when the adaptive timeout fires or
        when the request finishes, whichever comes first. The request itself
        is not cancelled by the slot timeout.
        """
        await self.acquire_slot()

        start = self._clock()
        timeout = self.get_adaptive_timeout()
        lease = SlotLease(self._release_lease)
        timer = asyncio.get_running_loop().call_later(timeout, self._expire, lease, timeout)

        try:
            result = await request()
        finally:
            timer.cancel()
            lease.release()

        self.record_duration(min(self._clock() - start, timeout))
        return result

    def get_stats(self) -> Dict[str, Any]:
        return {
            "uploading": self.uploading,
            "queued": self.queued,
            "total_uploads": self.total_uploads,
            "avg_upload_time": round(mean(self.recent_durations), 3) if self.recent_durations else 0.0,
            "max_uploads": self.max_uploads,
            "slow_connection": self.slow_connection_detected,
        }
