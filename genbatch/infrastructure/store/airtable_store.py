"""Concrete implementation of the JobStore interface backed by Airtable.

Jobs live in the "Generation" table, the run configuration in the single
record of the "Configuration" table.
"""

import logging
from typing import Any, Dict, List, Optional, Tuple

import httpx

from genbatch.domain.interfaces.job_store import (
    FIELD_ARTIFACT_URLS, FIELD_ERROR, FIELD_PROMPT, FIELD_VIDEO_URLS, JobStore,
)
from genbatch.domain.models.common import ArtifactUrl, Attachment, JobId, PromptText
from genbatch.domain.models.errors import ConfigurationError
from genbatch.domain.models.job import Job, RunSettings
from genbatch.infrastructure.http import build_client, send_request

logger = logging.getLogger(__name__)

API_URL = "https://api.airtable.com/v0"
JOBS_TABLE = "Generation"
CONFIG_TABLE = "Configuration"

# Airtable column names
COL_PROMPT = "Prompt"
COL_VIDEO_PROMPT = "Video_Prompt"
COL_IMAGES = "Generated Images"
COL_VIDEOS = "Generated_Videos"
COL_PROMPT_IMAGE = "Prompt_Image"
COL_ERROR = "Error Message"

_COLUMNS = {
    FIELD_PROMPT: COL_PROMPT,
    FIELD_ARTIFACT_URLS: COL_IMAGES,
    FIELD_VIDEO_URLS: COL_VIDEOS,
    FIELD_ERROR: COL_ERROR,
}
_URL_FIELDS = (FIELD_ARTIFACT_URLS, FIELD_VIDEO_URLS)


def pending_filter(include_missing_video: bool) -> str:
    """Airtable formula selecting jobs that still lack output."""
    if include_missing_video:
        return (f"OR({{{COL_IMAGES}}}=BLANK(), "
                f"AND(NOT({{{COL_IMAGES}}}=BLANK()), {{{COL_VIDEOS}}}=BLANK()))")
    return f"{{{COL_IMAGES}}}=BLANK()"


def _urls(attachments: Any) -> List[ArtifactUrl]:
    return [ArtifactUrl(a["url"]) for a in attachments or [] if isinstance(a, dict) and a.get("url")]


def job_from_record(record: Dict[str, Any]) -> Job:
    fields = record.get("fields") or {}
    prompt_images = _urls(fields.get(COL_PROMPT_IMAGE))
    return Job(
        job_id=JobId(record["id"]),
        prompt=PromptText(fields.get(COL_PROMPT) or ""),
        video_prompt=PromptText(fields[COL_VIDEO_PROMPT]) if fields.get(COL_VIDEO_PROMPT) else None,
        reference_image_url=prompt_images[0] if prompt_images else None,
        artifact_urls=_urls(fields.get(COL_IMAGES)),
        video_urls=_urls(fields.get(COL_VIDEOS)),
        error=fields.get(COL_ERROR),
    )


def to_airtable_fields(fields: Dict[str, Any]) -> Dict[str, Any]:
    """Maps logical field names to Airtable columns; URL lists become attachments."""
    mapped: Dict[str, Any] = {}
    for name, value in fields.items():
        if name not in _COLUMNS:
            raise ValueError(f"Unknown job field: {name}")
        if name in _URL_FIELDS and value is not None:
            value = [Attachment(url=url) for url in value]
        mapped[_COLUMNS[name]] = value
    return mapped


class AirtableJobStore(JobStore):
    """Job store backed by the Airtable REST API."""

    def __init__(self, token: str, base_id: str, client: Optional[httpx.AsyncClient] = None):
        """Initializes the store.

        Args:
            token: Airtable personal access token.
            base_id: Airtable base holding the Generation and Configuration tables.
            client: Optional pre-configured httpx client (tests inject a mock transport).
        """
        if not token or not base_id:
            raise ConfigurationError("Airtable token and base id are required")
        self.base_url = f"{API_URL}/{base_id}"
        self._headers = {"Authorization": f"Bearer {token}"}
        self._client = client or build_client()
        logger.info(f"AirtableJobStore initialized for base: {base_id}")

    async def _request(self, method: str, table_path: str, **kwargs: Any) -> Dict[str, Any]:
        response = await send_request(
            self._client, method, f"{self.base_url}/{table_path}", "Airtable",
            headers=self._headers, **kwargs,
        )
        return response.json()

    async def load_run_settings(self) -> RunSettings:
        data = await self._request("GET", CONFIG_TABLE, params={"maxRecords": 1})
        records = data.get("records") or []
        if not records or not records[0].get("fields"):
            raise ConfigurationError("No configuration record found in Airtable")
        return RunSettings.from_record(records[0]["fields"])

    async def list_pending_jobs(self, include_missing_video: bool, max_count: int) -> List[Job]:
        params: List[Tuple[str, Any]] = [("filterByFormula", pending_filter(include_missing_video))]
        for column in (COL_PROMPT, COL_VIDEO_PROMPT, COL_IMAGES, COL_VIDEOS, COL_PROMPT_IMAGE):
            params.append(("fields[]", column))
        params.append(("maxRecords", max_count))

        data = await self._request("GET", JOBS_TABLE, params=params)
        jobs = [job_from_record(record) for record in data.get("records") or []]
        logger.debug(f"Fetched {len(jobs)} pending jobs (max {max_count})")
        return jobs

    async def update_job(self, job_id: JobId, fields: Dict[str, Any]) -> None:
        await self._request("PATCH", f"{JOBS_TABLE}/{job_id}", json={"fields": to_airtable_fields(fields)})
        logger.debug(f"Updated job {job_id}: {sorted(fields)}")

    async def aclose(self) -> None:
        await self._client.aclose()
