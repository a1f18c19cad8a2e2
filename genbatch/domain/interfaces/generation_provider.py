"""Interface for media generation providers.

Defines the contract for turning a prompt plus reference images into
generated image URLs, and an image into a short video.
"""

import abc
from typing import List

from genbatch.domain.models.common import ArtifactUrl, PromptText


class GenerationProvider(abc.ABC):
    """Abstract Base Class for image and video generation."""

    @property
    @abc.abstractmethod
    def name(self) -> str:
        pass

    @abc.abstractmethod
    async def generate(
        self,
        prompt: PromptText,
        reference_images: List[str],
        count: int,
        size: str,
        allow_unsafe: bool,
    ) -> List[ArtifactUrl]:
        """Generates images asynchronously.

        Args:
            prompt: Text prompt.
            reference_images: Reference image URLs or data URIs.
            count: Number of images to produce (1-6).
            size: "<width>x<height>".
            allow_unsafe: Disables the provider's safety checker.

        Returns:
            URLs of the generated images (never empty).

        Raises:
            ProviderError: Tagged with the failure kind.
        """
        pass

    @abc.abstractmethod
    async def generate_video(
        self,
        image_url: ArtifactUrl,
        prompt: PromptText,
        duration_seconds: int,
        cfg_scale: float = 0.5,
    ) -> ArtifactUrl:
        """Generates a video from a source image.

        Raises:
            ProviderError: Tagged with the failure kind.
        """
        pass
