"""Per-run admission-control state.

Every limiter, the breaker and the progress tracker are built fresh for each
run and handed to the pipeline explicitly; nothing is shared across runs.
"""

import logging
from dataclasses import dataclass
from typing import Any, Dict, Optional

from genbatch.domain.interfaces.user_interface import UserInterface
from genbatch.domain.models.job import RunSettings
from genbatch.infrastructure.monitoring.progress import ProgressTracker
from genbatch.infrastructure.resilience.circuit_breaker import CircuitBreaker
from genbatch.infrastructure.resilience.concurrency import ConcurrencyLimiter
from genbatch.infrastructure.resilience.rate_limiter import RateLimiter
from genbatch.infrastructure.resilience.upload_limiter import UploadLimiter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RunLimits:
    """Provider limits. Hard-coded, not read from the run configuration."""
    vision_requests_per_minute: int = 10   # Gemini free tier
    max_concurrent_jobs: int = 2           # FAL.ai hard limit
    max_uploads: int = 3
    upload_base_timeout: float = 10.0
    upload_fallback_concurrency: int = 2
    breaker_threshold: int = 5
    breaker_cooldown: float = 60.0


@dataclass
class RunContext:
    concurrency: ConcurrencyLimiter
    upload_limiter: UploadLimiter
    breaker: CircuitBreaker
    progress: ProgressTracker
    rate_limiter: Optional[RateLimiter] = None

    @classmethod
    def create(
        cls,
        settings: RunSettings,
        limits: RunLimits = RunLimits(),
        ui: Optional[UserInterface] = None,
    ) -> "RunContext":
        """Builds fresh limiters for one run. The rate limiter exists only when vision analysis is on."""
        rate_limiter = None
        if settings.vision_enabled:
            rate_limiter = RateLimiter(limits.vision_requests_per_minute)
        return cls(
            concurrency=ConcurrencyLimiter(limits.max_concurrent_jobs),
            upload_limiter=UploadLimiter(
                limits.max_uploads, limits.upload_base_timeout, limits.upload_fallback_concurrency,
            ),
            breaker=CircuitBreaker(limits.breaker_threshold, limits.breaker_cooldown),
            progress=ProgressTracker(ui),
            rate_limiter=rate_limiter,
        )

    def stats(self) -> Dict[str, Any]:
        stats = {
            "concurrency": self.concurrency.get_stats(),
            "uploads": self.upload_limiter.get_stats(),
            "breaker": self.breaker.get_stats(),
        }
        if self.rate_limiter:
            stats["vision_rate_limiter"] = self.rate_limiter.get_stats()
        return stats
