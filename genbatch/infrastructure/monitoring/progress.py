"""Run-level progress aggregation.

Consumes pipeline events, keeps counts and timing for the current run, and
renders throttled progress updates plus the final summary through the
injected UserInterface.
"""

import logging
import time
from typing import Any, Callable, Dict, Optional

from genbatch.domain.events.job_events import (
    DomainEvent, JobDeferred, JobFailed, JobSkipped, JobStarted, JobSucceeded, RetryScheduled, VideoFailed,
)
from genbatch.domain.interfaces.user_interface import UserInterface

logger = logging.getLogger(__name__)

PROGRESS_INTERVAL_SECONDS = 2.0


def format_duration(seconds: int) -> str:
    """Formats whole seconds as '42s', '3m 5s' or '2h 10m'."""
    if seconds < 60:
        return f"{seconds}s"
    if seconds < 3600:
        return f"{seconds // 60}m {seconds % 60}s"
    return f"{seconds // 3600}h {(seconds % 3600) // 60}m"


def make_progress_bar(percentage: int, width: int = 30) -> str:
    filled = round((percentage / 100) * width)
    return "=" * filled + "-" * (width - filled)


class ProgressTracker:
    """Counts jobs and timing for one run."""

    def __init__(self, ui: Optional[UserInterface] = None, clock: Callable[[], float] = time.monotonic):
        self.ui = ui
        self._clock = clock
        self.total = 0
        self.processed = 0
        self.succeeded = 0
        self.failed = 0
        self.deferred = 0
        self.skipped = 0
        self.retries = 0
        self.video_failures = 0
        self.current_job = ""
        self.start_time = clock()
        self.last_update: Optional[float] = None

    def add_to_total(self, count: int) -> None:
        """Adds a fetched page to the expected total."""
        self.total += count

    def increment(self, success: bool = True) -> None:
        self.processed += 1
        if success:
            self.succeeded += 1
        else:
            self.failed += 1
        self.maybe_show_progress()

    def handle_event(self, event: DomainEvent) -> None:
        """Updates counts from a pipeline event."""
        if isinstance(event, JobStarted):
            self.current_job = f"{event.job_id}: {event.prompt_preview}"
        elif isinstance(event, (JobSucceeded, JobSkipped)):
            if isinstance(event, JobSkipped):
                self.skipped += 1
            self.increment(True)
        elif isinstance(event, JobFailed):
            self.increment(False)
        elif isinstance(event, JobDeferred):
            # Deferred jobs stay pending for the next run.
            self.deferred += 1
            self.total = max(self.processed, self.total - 1)
        elif isinstance(event, RetryScheduled):
            self.retries += 1
        elif isinstance(event, VideoFailed):
            self.video_failures += 1

    @property
    def elapsed(self) -> float:
        return self._clock() - self.start_time

    @property
    def percentage(self) -> int:
        return round((self.processed / self.total) * 100) if self.total > 0 else 0

    def maybe_show_progress(self) -> None:
        now = self._clock()
        if (self.last_update is not None
                and now - self.last_update < PROGRESS_INTERVAL_SECONDS
                and self.processed < self.total):
            return
        self.last_update = now
        self.show_progress()

    def show_progress(self) -> None:
        snapshot = self.snapshot()
        logger.info(
            f"Processed: {self.processed}/{self.total} jobs | "
            f"Success: {self.succeeded} | Failed: {self.failed}"
        )
        if self.ui:
            self.ui.display_progress(snapshot)

    def snapshot(self) -> Dict[str, Any]:
        elapsed = self.elapsed
        rate = self.processed / elapsed if elapsed > 0 else 0.0
        remaining = self.total - self.processed
        eta = round(remaining / rate) if remaining > 0 and rate > 0 else 0
        return {
            "total": self.total,
            "processed": self.processed,
            "percentage": self.percentage,
            "success": self.succeeded,
            "failed": self.failed,
            "deferred": self.deferred,
            "skipped": self.skipped,
            "retries": self.retries,
            "video_failures": self.video_failures,
            "current_job": self.current_job,
            "elapsed": round(elapsed),
            "rate": round(rate, 2),
            "eta": eta,
            "bar": make_progress_bar(self.percentage),
        }

    def show_final_summary(self) -> None:
        snapshot = self.snapshot()
        processed = self.processed
        success_pct = round(self.succeeded / processed * 100) if processed else 0
        failed_pct = round(self.failed / processed * 100) if processed else 0
        logger.info(
            f"FINAL SUMMARY: {processed} jobs, {self.succeeded} succeeded ({success_pct}%), "
            f"{self.failed} failed ({failed_pct}%), {self.deferred} deferred, "
            f"total time {format_duration(round(self.elapsed))}"
        )
        if self.ui:
            self.ui.display_summary(snapshot)
