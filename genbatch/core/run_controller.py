"""
Run trigger surface shared by the web server.

Starts at most one BatchDriver run at a time as an asyncio task, and
reports live status from the run's ProgressTracker plus the recent log lines.
"""

import asyncio
import logging
import time
from pathlib import Path
from typing import Any, Callable, Dict, Optional

from genbatch.core.services.batch_driver import BatchDriver
from genbatch.domain.models.errors import ConfigurationError
from genbatch.domain.models.job import BatchTally
from genbatch.infrastructure.filesystem.local_fs import LocalFileSystem
from genbatch.infrastructure.monitoring.logger_setup import RunLogBuffer

logger = logging.getLogger(__name__)

STATUS_LOG_LINES = 10


class RunController:
    """Owns the single in-process batch run."""

    def __init__(
        self,
        driver_factory: Callable[[], BatchDriver],
        downloads: LocalFileSystem,
        log_buffer: Optional[RunLogBuffer] = None,
    ):
        self.driver_factory = driver_factory
        self.downloads = downloads
        self.log_buffer = log_buffer
        self.driver: Optional[BatchDriver] = None
        self.last_tally: Optional[BatchTally] = None
        self.error: Optional[str] = None
        self._task: Optional[asyncio.Task] = None
        self._started_at: Optional[float] = None
        self._finished_at: Optional[float] = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> bool:
        """Starts a run unless one is already in progress. Must be called from the event loop."""
        if self.is_running:
            logger.info("Run already in progress, ignoring trigger")
            return False

        if self.log_buffer:
            self.log_buffer.clear()
        self.last_tally = None
        self._started_at = time.monotonic()
        self._finished_at = None
        try:
            self.driver = self.driver_factory()
        except ConfigurationError as e:
            logger.error(f"Cannot start batch run: {e}")
            self.error = str(e)
            self._finished_at = self._started_at
            return False

        self.error = None
        self._task = asyncio.get_running_loop().create_task(self._run(self.driver))
        logger.info("Batch run started")
        return True

    async def _run(self, driver: BatchDriver) -> None:
        try:
            self.last_tally = await driver.run()
        except Exception as e:
            logger.error(f"Batch run failed: {e}", exc_info=True)
            self.error = str(e) or e.__class__.__name__
        finally:
            self._finished_at = time.monotonic()

    async def wait(self) -> None:
        """Waits for the current run, if any, to finish."""
        if self._task is not None:
            await self._task

    def _elapsed(self) -> int:
        if self._started_at is None:
            return 0
        end = self._finished_at if self._finished_at is not None else time.monotonic()
        return round(end - self._started_at)

    def status(self) -> Dict[str, Any]:
        progress = {"total": 0, "processed": 0, "percentage": 0, "success": 0, "failed": 0}
        current_job = ""
        context = self.driver.context if self.driver else None
        if context is not None:
            snapshot = context.progress.snapshot()
            progress = {key: snapshot[key] for key in progress}
            current_job = snapshot["current_job"]

        return {
            "isRunning": self.is_running,
            "progress": progress,
            "currentJob": current_job,
            "elapsed": self._elapsed(),
            "logs": self.log_buffer.recent(STATUS_LOG_LINES) if self.log_buffer else [],
            "error": self.error,
            "downloadReady": not self.is_running and bool(self.downloads.list_files()),
        }

    async def bundle(self, archive_path: Path) -> int:
        """Zips every downloaded artifact into archive_path.

        Raises:
            FileNotFoundError: If nothing has been downloaded yet.
        """
        return await self.downloads.create_archive(archive_path)
