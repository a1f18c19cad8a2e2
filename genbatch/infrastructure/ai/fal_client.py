"""Concrete implementation of the GenerationProvider interface using FAL.ai.

Images come from the Seedream v4 edit model, videos from Kling v2.5 turbo pro
image-to-video. Image requests carry the reference images inline, so they go
through the UploadLimiter when one is supplied.
"""

import json
import logging
from typing import Any, Dict, List, Optional

import httpx

from genbatch.domain.interfaces.generation_provider import GenerationProvider
from genbatch.domain.models.common import ArtifactUrl, PromptText
from genbatch.domain.models.errors import ConfigurationError, ErrorKind, ProviderError
from genbatch.domain.models.job import parse_image_size
from genbatch.infrastructure.http import build_client, send_request
from genbatch.infrastructure.resilience.upload_limiter import UploadLimiter

logger = logging.getLogger(__name__)

IMAGE_ENDPOINT = "https://fal.run/fal-ai/bytedance/seedream/v4/edit"
VIDEO_ENDPOINT = "https://fal.run/fal-ai/kling-video/v2.5-turbo/pro/image-to-video"
VIDEO_NEGATIVE_PROMPT = "blur, distort, low quality"


class FalClient(GenerationProvider):
    """FAL.ai implementation of the GenerationProvider interface."""

    def __init__(
        self,
        api_key: str,
        upload_limiter: Optional[UploadLimiter] = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """Initializes the FAL client.

        Args:
            api_key: FAL API key.
            upload_limiter: Gate for the bandwidth-heavy image requests.
            client: Optional pre-configured httpx client.
        """
        if not api_key:
            raise ConfigurationError("FAL API key not provided.")
        self._headers = {"Authorization": f"Key {api_key}", "Content-Type": "application/json"}
        self.upload_limiter = upload_limiter
        self._client = client or build_client()
        logger.info("FalClient initialized")

    @property
    def name(self) -> str:
        return "FAL.ai Seedream"

    async def _post(self, url: str, body: str, service: str) -> Dict[str, Any]:
        response = await send_request(self._client, "POST", url, service, headers=self._headers, content=body)
        return response.json()

    async def generate(
        self,
        prompt: PromptText,
        reference_images: List[str],
        count: int,
        size: str,
        allow_unsafe: bool,
    ) -> List[ArtifactUrl]:
        width, height = parse_image_size(size)
        body = json.dumps({
            "prompt": prompt,
            "image_urls": reference_images,
            "num_images": count,
            "image_size": {"width": width, "height": height},
            "enable_safety_checker": not allow_unsafe,
        })
        logger.info(f"[FAL] Generating {count} images, uploading {round(len(body) / 1024)}KB payload...")

        async def request() -> Dict[str, Any]:
            return await self._post(IMAGE_ENDPOINT, body, "FAL API")

        if self.upload_limiter:
            result = await self.upload_limiter.wrap_call(request)
        else:
            result = await request()

        urls = [ArtifactUrl(image["url"]) for image in result.get("images") or [] if image.get("url")]
        if not urls:
            raise ProviderError("FAL returned no images", ErrorKind.VALIDATION)

        logger.info(f"[FAL] Generated {len(urls)} images")
        return urls

    async def generate_video(
        self,
        image_url: ArtifactUrl,
        prompt: PromptText,
        duration_seconds: int,
        cfg_scale: float = 0.5,
    ) -> ArtifactUrl:
        logger.info("[FAL Video] Generating video...")
        body = json.dumps({
            "image_url": image_url,
            "prompt": prompt,
            "duration": str(duration_seconds),
            "cfg_scale": cfg_scale,
            "negative_prompt": VIDEO_NEGATIVE_PROMPT,
        })
        result = await self._post(VIDEO_ENDPOINT, body, "FAL Video API")

        video_url = (result.get("video") or {}).get("url")
        if not video_url:
            raise ProviderError("FAL returned no video URL", ErrorKind.VALIDATION)

        logger.info("[FAL Video] Generated video")
        return ArtifactUrl(video_url)

    async def aclose(self) -> None:
        await self._client.aclose()
