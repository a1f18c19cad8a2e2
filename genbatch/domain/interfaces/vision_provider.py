"""Interface for vision-analysis providers."""

import abc

from genbatch.domain.models.common import PromptText


class VisionProvider(abc.ABC):
    """Abstract Base Class for describing an image as text."""

    @abc.abstractmethod
    async def analyze(self, image_bytes: bytes, mime_type: str, prompt_template: str) -> PromptText:
        """Returns a text description of the image.

        Raises:
            ProviderError: On quota or invalid-input failures.
        """
        pass
