"""Consecutive-failure circuit breaker.

Open/closed is recomputed from the failure counter and the last failure
timestamp on every check; there is no timer-driven state transition.
"""

import logging
import time
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)

DEFAULT_FAILURE_THRESHOLD = 5
DEFAULT_COOLDOWN_SECONDS = 60.0


class CircuitBreaker:
    """Blocks new attempts after `threshold` consecutive failures, for `cooldown` seconds."""

    def __init__(
        self,
        threshold: int = DEFAULT_FAILURE_THRESHOLD,
        cooldown: float = DEFAULT_COOLDOWN_SECONDS,
        clock: Callable[[], float] = time.monotonic,
    ):
        if threshold <= 0:
            raise ValueError("threshold must be positive.")
        self.threshold = threshold
        self.cooldown = cooldown
        self._clock = clock
        self.failures = 0
        self.last_failure: Optional[float] = None
        self.total_breaks = 0
        logger.info(f"CircuitBreaker initialized: {threshold} failure threshold, {cooldown}s cooldown")

    @property
    def is_open(self) -> bool:
        if self.failures < self.threshold:
            return False
        return self._clock() - (self.last_failure or 0.0) <= self.cooldown

    def can_proceed(self) -> bool:
        """True unless the breaker is open. Resets itself once the cooldown has elapsed."""
        if self.failures < self.threshold:
            return True

        since_failure = self._clock() - (self.last_failure or 0.0)
        if since_failure > self.cooldown:
            logger.info("Circuit breaker: cooldown period elapsed, resetting")
            self.failures = 0
            return True

        return False

    def record_failure(self) -> None:
        self.failures += 1
        self.last_failure = self._clock()

        if self.failures == self.threshold:
            self.total_breaks += 1
            logger.warning(
                f"Circuit breaker: {self.failures} consecutive failures, pausing for {self.cooldown:.0f}s"
            )

    def record_success(self) -> None:
        self.failures = 0

    def get_stats(self) -> Dict[str, Any]:
        return {
            "failures": self.failures,
            "is_open": self.failures >= self.threshold,
            "total_breaks": self.total_breaks,
        }
