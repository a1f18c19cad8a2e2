"""Domain models for generation jobs, run settings and outcomes."""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .common import ArtifactUrl, JobId, PromptText
from .errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_IMAGE_SIZE = "2048x2048"
DEFAULT_IMAGE_COUNT = 6
MAX_IMAGE_COUNT = 6
VIDEO_DURATIONS = (5, 10)
DEFAULT_VIDEO_DURATION = 5
DEFAULT_VISION_PROMPT = "Describe this image in detail for AI art generation"
MAX_REFERENCES_PER_SET = 2


@dataclass
class Job:
    """A generation job as read from the job store.

    Mutated in place as the pipeline advances (prompt rewritten by vision
    analysis, artifact and video URLs filled in, error recorded).
    """
    job_id: JobId
    prompt: PromptText
    video_prompt: Optional[PromptText] = None
    reference_image_url: Optional[str] = None
    artifact_urls: List[ArtifactUrl] = field(default_factory=list)
    video_urls: List[ArtifactUrl] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def has_artifacts(self) -> bool:
        return len(self.artifact_urls) > 0

    @property
    def has_video(self) -> bool:
        return len(self.video_urls) > 0

    @property
    def effective_video_prompt(self) -> PromptText:
        return self.video_prompt or self.prompt


class JobStatus(str, Enum):
    SUCCEEDED = "succeeded"
    SKIPPED = "skipped"
    DEFERRED = "deferred"
    TRANSIENT_FAILURE = "transient_failure"
    FAILED = "failed"


@dataclass
class JobOutcome:
    """Result of running one job through the pipeline."""
    job_id: JobId
    status: JobStatus
    error: Optional[str] = None
    artifact_count: int = 0

    @property
    def success(self) -> bool:
        return self.status in (JobStatus.SUCCEEDED, JobStatus.SKIPPED)

    @property
    def is_terminal(self) -> bool:
        """False when the job stays pending for a later run."""
        return self.status not in (JobStatus.DEFERRED, JobStatus.TRANSIENT_FAILURE)


@dataclass
class BatchTally:
    """Cumulative counts for one run, owned by the batch driver."""
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    deferred: int = 0
    pages: int = 0
    elapsed: float = 0.0

    def add(self, outcomes: List[JobOutcome]) -> None:
        self.pages += 1
        for outcome in outcomes:
            self.processed += 1
            if outcome.success:
                self.succeeded += 1
            elif outcome.status == JobStatus.DEFERRED:
                self.deferred += 1
            else:
                self.failed += 1


def parse_image_size(size: str) -> Tuple[int, int]:
    """Parses "<width>x<height>" into integers."""
    try:
        width, height = (int(part) for part in size.lower().split("x"))
    except ValueError as e:
        raise ConfigurationError(f"Invalid image size '{size}', expected WIDTHxHEIGHT") from e
    if width <= 0 or height <= 0:
        raise ConfigurationError(f"Invalid image size '{size}', dimensions must be positive")
    return width, height


def _attachment_urls(value: Any) -> List[str]:
    if not value:
        return []
    return [item["url"] for item in value if isinstance(item, dict) and item.get("url")]


@dataclass
class RunSettings:
    """Per-run settings read once from the store's configuration record."""
    generation_api_key: str
    face_references: List[str] = field(default_factory=list)
    body_references: List[str] = field(default_factory=list)
    vision_api_key: Optional[str] = None
    vision_prompt_template: str = DEFAULT_VISION_PROMPT
    allow_unsafe: bool = False
    image_size: str = DEFAULT_IMAGE_SIZE
    image_count: int = DEFAULT_IMAGE_COUNT
    enable_video: bool = False
    video_duration: int = DEFAULT_VIDEO_DURATION

    @property
    def vision_enabled(self) -> bool:
        return bool(self.vision_api_key)

    @property
    def reference_urls(self) -> List[str]:
        """Face references first, then body references, each capped."""
        return (self.face_references[:MAX_REFERENCES_PER_SET]
                + self.body_references[:MAX_REFERENCES_PER_SET])

    @classmethod
    def from_record(cls, fields: Dict[str, Any]) -> "RunSettings":
        """Builds settings from the raw configuration record fields.

        Out-of-range image counts and video durations fall back to defaults
        with a warning. A missing generation key or an empty reference set
        is fatal.

        Raises:
            ConfigurationError: If required settings are missing.
        """
        api_key = fields.get("FAL_API_KEY")
        if not api_key:
            raise ConfigurationError("FAL_API_KEY not found in run configuration")

        image_count = fields.get("num_images", DEFAULT_IMAGE_COUNT)
        if isinstance(image_count, bool) or not isinstance(image_count, int) \
                or not 1 <= image_count <= MAX_IMAGE_COUNT:
            logger.warning(f"Invalid num_images value: {image_count!r}, using default: {DEFAULT_IMAGE_COUNT}")
            image_count = DEFAULT_IMAGE_COUNT

        video_duration = fields.get("Video_Duration") or DEFAULT_VIDEO_DURATION
        if video_duration not in VIDEO_DURATIONS:
            logger.warning(f"Invalid Video_Duration: {video_duration!r}, using default: {DEFAULT_VIDEO_DURATION}")
            video_duration = DEFAULT_VIDEO_DURATION

        image_size = fields.get("Image_Size") or DEFAULT_IMAGE_SIZE
        parse_image_size(image_size)

        settings = cls(
            generation_api_key=api_key,
            face_references=_attachment_urls(fields.get("Face_Reference")),
            body_references=_attachment_urls(fields.get("Body_Reference")),
            vision_api_key=fields.get("Gemini_API_Key") or None,
            vision_prompt_template=fields.get("Gemini_Prompt_Template") or DEFAULT_VISION_PROMPT,
            allow_unsafe=bool(fields.get("Enable_NSFW", False)),
            image_size=image_size,
            image_count=image_count,
            enable_video=bool(fields.get("Enable_Video", False)),
            video_duration=int(video_duration),
        )
        if not settings.face_references and not settings.body_references:
            raise ConfigurationError("No Face_Reference or Body_Reference found in run configuration")
        return settings
