"""Concrete implementation of the VisionProvider interface using the Gemini API."""

import base64
import logging
from typing import Any, Dict, Optional

import httpx

from genbatch.domain.interfaces.vision_provider import VisionProvider
from genbatch.domain.models.common import PromptText
from genbatch.domain.models.errors import ConfigurationError, ErrorKind, ProviderError
from genbatch.infrastructure.http import build_client, send_request

logger = logging.getLogger(__name__)

API_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"


class GeminiClient(VisionProvider):
    """Gemini implementation of the VisionProvider interface."""

    DEFAULT_MODEL = "gemini-2.5-flash"

    def __init__(self, api_key: str, model: Optional[str] = None, client: Optional[httpx.AsyncClient] = None):
        if not api_key:
            raise ConfigurationError("Gemini API key not provided.")
        self._headers = {"x-goog-api-key": api_key, "Content-Type": "application/json"}
        self.model = model or self.DEFAULT_MODEL
        self._client = client or build_client()
        logger.info(f"GeminiClient initialized for model: {self.model}")

    @staticmethod
    def _extract_text(data: Dict[str, Any]) -> Optional[str]:
        try:
            return data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError):
            return None

    async def analyze(self, image_bytes: bytes, mime_type: str, prompt_template: str) -> PromptText:
        payload = {
            "contents": [{
                "parts": [
                    {"inline_data": {"mime_type": mime_type, "data": base64.b64encode(image_bytes).decode("ascii")}},
                    {"text": prompt_template},
                ]
            }]
        }
        response = await send_request(
            self._client, "POST", API_URL.format(model=self.model), "Gemini API",
            headers=self._headers, json=payload,
        )

        text = self._extract_text(response.json())
        if not text:
            raise ProviderError("Gemini returned no text", ErrorKind.VALIDATION)

        logger.info(f"Gemini response: \"{text[:100]}...\"")
        return PromptText(text)

    async def aclose(self) -> None:
        await self._client.aclose()
