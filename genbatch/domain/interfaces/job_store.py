"""Interface for the record store holding generation jobs.

Defines the contract for paging pending jobs, writing partial job updates,
and reading the single run configuration record.
"""

import abc
from typing import Any, Dict, List

from genbatch.domain.models.common import JobId
from genbatch.domain.models.job import Job, RunSettings

# Logical field names accepted by update_job().
FIELD_PROMPT = "prompt"
FIELD_ARTIFACT_URLS = "artifact_urls"
FIELD_VIDEO_URLS = "video_urls"
FIELD_ERROR = "error"


class JobStore(abc.ABC):
    """Abstract Base Class for job store operations."""

    @abc.abstractmethod
    async def load_run_settings(self) -> RunSettings:
        """Reads the run configuration record.

        Raises:
            ConfigurationError: If no configuration record exists or it is invalid.
            ProviderError: If the store request fails.
        """
        pass

    @abc.abstractmethod
    async def list_pending_jobs(self, include_missing_video: bool, max_count: int) -> List[Job]:
        """Lists jobs still lacking output.

        Args:
            include_missing_video: Also return jobs that have images but no video.
            max_count: Page size.

        Returns:
            At most max_count jobs.
        """
        pass

    @abc.abstractmethod
    async def update_job(self, job_id: JobId, fields: Dict[str, Any]) -> None:
        """Applies a partial update to a job.

        Args:
            job_id: The job to update.
            fields: Logical field names ('prompt', 'artifact_urls', 'video_urls',
                'error') mapped to new values; None clears a field.
        """
        pass
