"""Executing provider calls with automatic retries.

Retries use a fixed schedule of backoff delays. Whether a failure is worth
retrying is decided by the ErrorKind attached to it where it was raised;
anything else aborts immediately and propagates unchanged.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, FrozenSet, Optional, Tuple, TypeVar

from genbatch.domain.models.errors import ErrorKind, classify_error

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class RetryPolicy:
    """Attempt budget, backoff schedule and the failure kinds worth retrying."""
    max_attempts: int
    delays: Tuple[float, ...]
    retryable: FrozenSet[ErrorKind]

    def delay_for(self, attempt: int) -> float:
        """Delay after the given (1-based) failed attempt."""
        return self.delays[min(attempt, len(self.delays)) - 1]


GENERATION_RETRY_POLICY = RetryPolicy(
    max_attempts=3,
    delays=(1.0, 2.0, 4.0),
    retryable=frozenset({ErrorKind.GATEWAY_TIMEOUT, ErrorKind.TIMEOUT, ErrorKind.SERVER_ERROR}),
)

VIDEO_RETRY_POLICY = RetryPolicy(
    max_attempts=2,
    delays=(5.0,),
    retryable=frozenset({ErrorKind.GATEWAY_TIMEOUT, ErrorKind.TIMEOUT}),
)


async def call_with_retry(
    func: Callable[[], Awaitable[T]],
    policy: RetryPolicy,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    label: str = "call",
    on_retry: Optional[Callable[[int, float, Exception], None]] = None,
) -> T:
    """Executes func, retrying retryable failures according to policy.

    Args:
        func: Zero-argument coroutine function performing the provider call.
        policy: Attempt budget and backoff schedule.
        sleep: Coroutine used for backoff waits.
        label: Name used in log messages.
        on_retry: Called with (attempt, delay, error) before each backoff wait.

    Returns:
        The result of the first successful attempt.

    Raises:
        Exception: The last error, unchanged, once it is non-retryable or the
            attempt budget is spent.
    """
    for attempt in range(1, policy.max_attempts + 1):
        try:
            if attempt > 1:
                logger.info(f"{label}: retry attempt {attempt}/{policy.max_attempts}")
            return await func()
        except Exception as e:
            kind = classify_error(e)
            if kind not in policy.retryable:
                logger.debug(f"{label}: non-retryable error on attempt {attempt}: {e}")
                raise
            if attempt >= policy.max_attempts:
                logger.error(f"{label}: max attempts ({policy.max_attempts}) reached. Last error: {e}")
                raise

            delay = policy.delay_for(attempt)
            logger.warning(f"{label}: {e} - waiting {delay:.1f}s before retry")
            if on_retry:
                on_retry(attempt, delay, e)
            await sleep(delay)

    raise RuntimeError("unreachable: retry loop exited without result")  # pragma: no cover
