"""
Core service running a single generation job end to end.

Decides whether a job needs work at all, consults the circuit breaker,
optionally rewrites the prompt through vision analysis, generates images
(and optionally a video) with retries, downloads what it can, and writes
results or classified failures back to the job store.
"""

import asyncio
import logging
from pathlib import Path
from typing import Any, Awaitable, Callable, List, Optional

from genbatch.core.run_context import RunContext
from genbatch.core.services.references import to_data_uri
from genbatch.domain.events.job_events import (
    DomainEvent, JobDeferred, JobFailed, JobSkipped, JobStarted, JobSucceeded, RetryScheduled, VideoFailed,
)
from genbatch.domain.interfaces.artifact_sink import ArtifactSink
from genbatch.domain.interfaces.generation_provider import GenerationProvider
from genbatch.domain.interfaces.job_store import (
    FIELD_ARTIFACT_URLS, FIELD_ERROR, FIELD_PROMPT, FIELD_VIDEO_URLS, JobStore,
)
from genbatch.domain.interfaces.vision_provider import VisionProvider
from genbatch.domain.models.common import ArtifactUrl, DataUri, PromptText
from genbatch.domain.models.errors import ProviderError, classify_error, is_transient
from genbatch.domain.models.job import Job, JobOutcome, JobStatus, RunSettings
from genbatch.infrastructure.resilience.retry import GENERATION_RETRY_POLICY, VIDEO_RETRY_POLICY, call_with_retry

logger = logging.getLogger(__name__)

MAX_PERSISTED_ERROR_LENGTH = 200
PROMPT_PREVIEW_LENGTH = 50


class JobPipeline:
    """Runs one job through skip check, breaker, generation and persistence."""

    def __init__(
        self,
        store: JobStore,
        generator: GenerationProvider,
        sink: ArtifactSink,
        settings: RunSettings,
        context: RunContext,
        reference_images: List[DataUri],
        downloads_dir: Path,
        vision: Optional[VisionProvider] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
        on_event: Optional[Callable[[DomainEvent], None]] = None,
    ):
        """Initializes the JobPipeline.

        Args:
            store: Job store the results are written back to.
            generator: Image and video generation provider.
            sink: Fetches reference images and downloads artifacts.
            settings: Run settings read from the configuration record.
            context: Per-run limiters, breaker and progress tracker.
            reference_images: Base reference images, already encoded as data URIs.
            downloads_dir: Local directory for best-effort artifact copies.
            vision: Vision provider; only used when the settings enable analysis.
            sleep: Coroutine used for retry backoff.
            on_event: Receives every domain event the pipeline emits.
        """
        self.store = store
        self.generator = generator
        self.sink = sink
        self.settings = settings
        self.context = context
        self.reference_images = list(reference_images)
        self.downloads_dir = Path(downloads_dir)
        self.vision = vision
        self._sleep = sleep
        self._on_event = on_event

    def _emit(self, event: DomainEvent) -> None:
        if self._on_event:
            self._on_event(event)

    def _needs_video(self, job: Job) -> bool:
        return self.settings.enable_video and not job.has_video

    async def process(self, job: Job) -> JobOutcome:
        """Processes one job and returns its outcome. Never raises for job-level failures."""
        if job.has_artifacts and not self._needs_video(job):
            logger.info(f"Skipping job {job.job_id} - already has generated images")
            self._emit(JobSkipped(job.job_id))
            return JobOutcome(job.job_id, JobStatus.SKIPPED, artifact_count=len(job.artifact_urls))

        if not self.context.breaker.can_proceed():
            logger.warning(f"Circuit breaker open - deferring job {job.job_id}")
            self._emit(JobDeferred(job.job_id))
            return JobOutcome(job.job_id, JobStatus.DEFERRED)

        self._emit(JobStarted(job.job_id, job.prompt[:PROMPT_PREVIEW_LENGTH]))
        logger.info(f"Processing job {job.job_id}: \"{job.prompt[:PROMPT_PREVIEW_LENGTH]}...\"")

        try:
            if not job.has_artifacts:
                await self._generate_images(job)
            if self._needs_video(job):
                await self._generate_video(job)
        except Exception as e:
            return await self._handle_failure(job, e)

        self.context.breaker.record_success()
        self._emit(JobSucceeded(job.job_id, len(job.artifact_urls)))
        logger.info(f"Job {job.job_id} completed ({len(job.artifact_urls)} images)")
        return JobOutcome(job.job_id, JobStatus.SUCCEEDED, artifact_count=len(job.artifact_urls))

    async def _prepare_references(self, job: Job) -> List[str]:
        """Base references plus the job's own reference image, rewriting the prompt via vision when enabled."""
        references: List[str] = list(self.reference_images)
        if not job.reference_image_url:
            return references

        analyze = self.settings.vision_enabled and self.vision is not None
        try:
            media = await self.sink.fetch(job.reference_image_url)
        except ProviderError as e:
            if analyze:
                raise
            logger.warning(f"Could not fetch reference image for job {job.job_id}: {e}; using base references")
            return references

        if analyze:
            if self.context.rate_limiter:
                await self.context.rate_limiter.acquire()
            logger.info(f"Analyzing reference image for job {job.job_id}")
            description = await self.vision.analyze(
                media.content, media.mime_type, self.settings.vision_prompt_template,
            )
            await self.store.update_job(job.job_id, {FIELD_PROMPT: description})
            if not job.video_prompt:
                job.video_prompt = PromptText(description)
            job.prompt = PromptText(description)

        references.append(to_data_uri(media))
        return references

    def _retry_callback(self, job: Job, operation: str) -> Callable[[int, float, Exception], None]:
        def on_retry(attempt: int, delay: float, error: Exception) -> None:
            self._emit(RetryScheduled(job.job_id, operation, attempt + 1, delay, classify_error(error)))
        return on_retry

    async def _download(self, url: str, filename: str) -> None:
        """Best-effort local copy; failures are logged only."""
        try:
            await self.sink.download(url, self.downloads_dir / filename)
            logger.info(f"Downloaded: {filename}")
        except (ProviderError, OSError) as e:
            logger.warning(f"Download failed for {filename}: {e}")

    async def _generate_images(self, job: Job) -> None:
        references = await self._prepare_references(job)
        logger.info(f"Job {job.job_id}: generating {self.settings.image_count} images with {len(references)} references")

        urls: List[ArtifactUrl] = await call_with_retry(
            lambda: self.generator.generate(
                job.prompt, references, self.settings.image_count,
                self.settings.image_size, self.settings.allow_unsafe,
            ),
            GENERATION_RETRY_POLICY,
            sleep=self._sleep,
            label=f"{self.generator.name} job {job.job_id}",
            on_retry=self._retry_callback(job, "generate"),
        )
        logger.info(f"Job {job.job_id}: generated {len(urls)} images")

        for index, url in enumerate(urls, start=1):
            await self._download(url, f"{job.job_id}_{index}.png")

        await self.store.update_job(job.job_id, {FIELD_ARTIFACT_URLS: urls, FIELD_ERROR: None})
        job.artifact_urls = list(urls)
        job.error = None

    async def _generate_video(self, job: Job) -> None:
        """Generates the secondary video. Failures are recorded on the job and never propagate."""
        try:
            video_url = await call_with_retry(
                lambda: self.generator.generate_video(
                    job.artifact_urls[0], job.effective_video_prompt, self.settings.video_duration,
                ),
                VIDEO_RETRY_POLICY,
                sleep=self._sleep,
                label=f"Video job {job.job_id}",
                on_retry=self._retry_callback(job, "generate_video"),
            )
            await self._download(video_url, f"{job.job_id}_video.mp4")
            await self.store.update_job(job.job_id, {FIELD_VIDEO_URLS: [video_url]})
            job.video_urls = [video_url]
            logger.info(f"Job {job.job_id}: video generated")
        except Exception as e:
            message = f"Video generation failed: {e}"
            logger.error(f"Job {job.job_id}: {message}")
            self._emit(VideoFailed(job.job_id, message))
            try:
                await self.store.update_job(job.job_id, {FIELD_ERROR: message[:MAX_PERSISTED_ERROR_LENGTH]})
            except Exception as persist_error:
                logger.error(f"Could not record video failure for job {job.job_id}: {persist_error}")

    async def _handle_failure(self, job: Job, error: Exception) -> JobOutcome:
        kind = classify_error(error)
        message = str(error) or error.__class__.__name__

        if is_transient(error):
            # Left pending for the next run; the breaker only counts hard failures.
            logger.warning(f"Job {job.job_id}: transient failure ({kind.value}), leaving for retry: {message}")
            self._emit(JobFailed(job.job_id, message, transient=True, error_kind=kind))
            return JobOutcome(job.job_id, JobStatus.TRANSIENT_FAILURE, error=message)

        logger.error(f"Job {job.job_id} failed: {message}")
        self.context.breaker.record_failure()
        try:
            await self.store.update_job(job.job_id, {FIELD_ERROR: message[:MAX_PERSISTED_ERROR_LENGTH]})
            job.error = message[:MAX_PERSISTED_ERROR_LENGTH]
        except Exception as persist_error:
            logger.error(f"Could not record failure for job {job.job_id}: {persist_error}")
        self._emit(JobFailed(job.job_id, message, transient=False, error_kind=kind))
        return JobOutcome(job.job_id, JobStatus.FAILED, error=message)
