"""
Core service driving a whole run over the pending-job queue.

Loads the run configuration, builds fresh per-run state and providers,
prepares the base reference images, then pages through pending jobs and
runs each page through the concurrency gate until the queue is drained.
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from functools import partial
from pathlib import Path
from typing import Any, Awaitable, Callable, List, Optional, Set

from genbatch.core.run_context import RunContext, RunLimits
from genbatch.core.services.job_pipeline import JobPipeline
from genbatch.core.services.references import prepare_reference_images
from genbatch.domain.interfaces.artifact_sink import ArtifactSink
from genbatch.domain.interfaces.generation_provider import GenerationProvider
from genbatch.domain.interfaces.job_store import JobStore
from genbatch.domain.interfaces.user_interface import UserInterface
from genbatch.domain.interfaces.vision_provider import VisionProvider
from genbatch.domain.models.job import BatchTally, JobOutcome, RunSettings
from genbatch.infrastructure.filesystem.local_fs import LocalFileSystem

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 100


@dataclass
class Providers:
    """Provider clients built for one run."""
    generator: GenerationProvider
    vision: Optional[VisionProvider] = None

    async def aclose(self) -> None:
        for provider in (self.generator, self.vision):
            close = getattr(provider, "aclose", None)
            if close is not None:
                await close()


ProviderFactory = Callable[[RunSettings, RunContext], Providers]


class BatchDriver:
    """Runs every pending job, one page at a time."""

    def __init__(
        self,
        store: JobStore,
        sink: ArtifactSink,
        provider_factory: ProviderFactory,
        ui: Optional[UserInterface],
        downloads_dir: Path,
        page_size: int = DEFAULT_PAGE_SIZE,
        limits: Optional[RunLimits] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        if page_size <= 0:
            raise ValueError("page_size must be positive.")
        self.store = store
        self.sink = sink
        self.provider_factory = provider_factory
        self.ui = ui
        self.downloads = LocalFileSystem(downloads_dir)
        self.page_size = page_size
        self.limits = limits or RunLimits()
        self._sleep = sleep
        # Exposed for live status while a run is in progress.
        self.context: Optional[RunContext] = None

    async def run(self) -> BatchTally:
        """Processes every pending job.

        Returns:
            Tally of the run.

        Raises:
            ConfigurationError: If the run configuration is missing or invalid.
            ProviderError: If the configuration, reference images, or a page of
                jobs cannot be fetched.
        """
        start = time.monotonic()
        tally = BatchTally()
        logger.info("Starting batch generation run")

        settings = await self.store.load_run_settings()
        self._log_settings(settings)

        self.context = RunContext.create(settings, self.limits, self.ui)
        context = self.context
        providers: Optional[Providers] = None
        try:
            providers = self.provider_factory(settings, context)
            reference_images = await prepare_reference_images(settings.reference_urls, self.sink)
            self.downloads.ensure_root()

            pipeline = JobPipeline(
                store=self.store,
                generator=providers.generator,
                sink=self.sink,
                settings=settings,
                context=context,
                reference_images=reference_images,
                downloads_dir=self.downloads.root,
                vision=providers.vision,
                sleep=self._sleep,
                on_event=context.progress.handle_event,
            )

            seen: Set[str] = set()
            while True:
                fetched = await self.store.list_pending_jobs(settings.enable_video, self.page_size)
                if not fetched:
                    logger.info("No more pending jobs")
                    break

                # Jobs whose record did not change (e.g. a failed video) match the pending filter again.
                jobs = [job for job in fetched if job.job_id not in seen]
                if not jobs:
                    logger.warning(f"All {len(fetched)} jobs in this page were already processed in this run, stopping")
                    break
                seen.update(job.job_id for job in jobs)

                logger.info(f"Fetched page {tally.pages + 1}: {len(jobs)} jobs")
                context.progress.add_to_total(len(jobs))
                outcomes: List[JobOutcome] = await asyncio.gather(
                    *(context.concurrency.run(partial(pipeline.process, job)) for job in jobs)
                )
                tally.add(outcomes)

                if len(fetched) < self.page_size:
                    break
                if not any(outcome.is_terminal for outcome in outcomes):
                    # Every job is still pending; fetching again would return the same page.
                    logger.warning("No job in this page reached a final state, stopping until the next run")
                    break
        finally:
            tally.elapsed = time.monotonic() - start
            context.progress.show_final_summary()
            logger.debug(f"Run stats: {context.stats()}")
            if providers is not None:
                await providers.aclose()

        logger.info(
            f"Run finished: {tally.processed} processed, {tally.succeeded} succeeded, "
            f"{tally.failed} failed, {tally.deferred} deferred in {tally.pages} pages"
        )
        return tally

    @staticmethod
    def _log_settings(settings: RunSettings) -> None:
        logger.info(
            f"Configuration: {settings.image_count} images at {settings.image_size}, "
            f"unsafe content {'enabled' if settings.allow_unsafe else 'disabled'}, "
            f"video {'enabled (' + str(settings.video_duration) + 's)' if settings.enable_video else 'disabled'}, "
            f"vision analysis {'enabled' if settings.vision_enabled else 'disabled'}"
        )
        logger.info(
            f"References: {len(settings.face_references)} face, {len(settings.body_references)} body "
            f"(using {len(settings.reference_urls)})"
        )
