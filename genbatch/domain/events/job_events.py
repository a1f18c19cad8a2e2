"""Domain Events emitted while a job moves through the pipeline.

Examples include events for when jobs are skipped, deferred by the circuit
breaker, retried, or reach a terminal outcome.
"""

from dataclasses import dataclass, field
import time
from typing import Optional

from genbatch.domain.models.common import JobId
from genbatch.domain.models.errors import ErrorKind


@dataclass
class DomainEvent:
    """Base class for domain events."""
    pass


@dataclass
class JobStarted(DomainEvent):
    """Event triggered when a job begins provider work."""
    job_id: JobId
    prompt_preview: str = ""
    timestamp: float = field(default_factory=time.time)


@dataclass
class JobSkipped(DomainEvent):
    """Event triggered when a job already has its artifacts."""
    job_id: JobId
    timestamp: float = field(default_factory=time.time)


@dataclass
class JobDeferred(DomainEvent):
    """Event triggered when the circuit breaker is open and the job is left for a later run."""
    job_id: JobId
    timestamp: float = field(default_factory=time.time)


@dataclass
class RetryScheduled(DomainEvent):
    """Event triggered when a retry is scheduled for a failed provider call."""
    job_id: JobId
    operation: str  # 'generate' or 'generate_video'
    attempt_number: int
    delay_seconds: float
    error_kind: Optional[ErrorKind] = None
    timestamp: float = field(default_factory=time.time)


@dataclass
class JobSucceeded(DomainEvent):
    """Event triggered when a job completes."""
    job_id: JobId
    artifact_count: int
    timestamp: float = field(default_factory=time.time)


@dataclass
class JobFailed(DomainEvent):
    """Event triggered when a job fails, transiently or permanently."""
    job_id: JobId
    error_message: str
    transient: bool
    error_kind: Optional[ErrorKind] = None
    timestamp: float = field(default_factory=time.time)


@dataclass
class VideoFailed(DomainEvent):
    """Event triggered when secondary video generation fails for a job."""
    job_id: JobId
    error_message: str
    timestamp: float = field(default_factory=time.time)
