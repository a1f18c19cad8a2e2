"""Concrete implementation of the ArtifactSink interface over HTTP.

Uses httpx for transfers and aiofiles for async file writes.
"""

import logging
from pathlib import Path
from typing import Optional

import aiofiles
import httpx

from genbatch.domain.interfaces.artifact_sink import ArtifactSink, FetchedMedia
from genbatch.infrastructure.http import build_client, raise_for_status, send_request, translate_transport_error

logger = logging.getLogger(__name__)

CHUNK_SIZE = 64 * 1024


class HttpArtifactSink(ArtifactSink):
    """Fetches media into memory and streams artifacts to local files."""

    def __init__(self, client: Optional[httpx.AsyncClient] = None):
        self._client = client or build_client()

    async def fetch(self, url: str, default_mime_type: str = "image/png") -> FetchedMedia:
        response = await send_request(self._client, "GET", url, "Download")
        mime_type = response.headers.get("content-type", default_mime_type).split(";")[0].strip()
        return FetchedMedia(content=response.content, mime_type=mime_type or default_mime_type)

    async def download(self, url: str, destination: Path) -> None:
        """Streams url into destination, via a .part file renamed on completion."""
        destination.parent.mkdir(parents=True, exist_ok=True)
        partial = destination.with_name(destination.name + ".part")
        try:
            async with self._client.stream("GET", url) as response:
                if not response.is_success:
                    await response.aread()
                    raise_for_status(response, "Download")
                async with aiofiles.open(partial, mode="wb") as f:
                    async for chunk in response.aiter_bytes(CHUNK_SIZE):
                        await f.write(chunk)
        except httpx.HTTPError as e:
            partial.unlink(missing_ok=True)
            raise translate_transport_error(e, "Download") from e
        except Exception:
            partial.unlink(missing_ok=True)
            raise
        partial.replace(destination)
        logger.debug(f"Downloaded {url} -> {destination}")

    async def aclose(self) -> None:
        await self._client.aclose()
