"""Interface for transferring media between remote URLs and local storage."""

import abc
from dataclasses import dataclass
from pathlib import Path


@dataclass
class FetchedMedia:
    """Media bytes held in memory along with their content type."""
    content: bytes
    mime_type: str


class ArtifactSink(abc.ABC):
    """Abstract Base Class for media fetch and download operations."""

    @abc.abstractmethod
    async def fetch(self, url: str, default_mime_type: str = "image/png") -> FetchedMedia:
        """Downloads a remote file into memory.

        Raises:
            ProviderError: If the download fails.
        """
        pass

    @abc.abstractmethod
    async def download(self, url: str, destination: Path) -> None:
        """Streams a remote file to a local path.

        Raises:
            ProviderError: If the download fails.
        """
        pass
