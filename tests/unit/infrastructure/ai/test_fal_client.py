import json

import httpx
import pytest

from genbatch.domain.models.errors import ConfigurationError, ErrorKind, ProviderError
from genbatch.infrastructure.ai.fal_client import IMAGE_ENDPOINT, VIDEO_ENDPOINT, FalClient
from genbatch.infrastructure.resilience.upload_limiter import UploadLimiter


def make_client(handler, upload_limiter=None):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return FalClient(api_key="fal-key", upload_limiter=upload_limiter, client=client)


def test_init_requires_key():
    with pytest.raises(ConfigurationError, match="FAL API key not provided"):
        FalClient(api_key="")


@pytest.mark.asyncio
async def test_generate_sends_seedream_request():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"images": [{"url": "https://fal.media/1.png"}, {"url": "https://fal.media/2.png"}]})

    limiter = UploadLimiter()
    client = make_client(handler, upload_limiter=limiter)

    urls = await client.generate("a cat", ["data:image/png;base64,AAAA"], 2, "1024x768", allow_unsafe=True)

    assert urls == ["https://fal.media/1.png", "https://fal.media/2.png"]
    assert seen["url"] == IMAGE_ENDPOINT
    assert seen["auth"] == "Key fal-key"
    assert seen["body"] == {
        "prompt": "a cat",
        "image_urls": ["data:image/png;base64,AAAA"],
        "num_images": 2,
        "image_size": {"width": 1024, "height": 768},
        "enable_safety_checker": False,
    }
    assert limiter.total_uploads == 1
    assert len(limiter.recent_durations) == 1


@pytest.mark.asyncio
async def test_generate_empty_result_is_validation_error():
    client = make_client(lambda request: httpx.Response(200, json={"images": []}))

    with pytest.raises(ProviderError) as exc_info:
        await client.generate("a cat", [], 1, "2048x2048", allow_unsafe=False)

    assert exc_info.value.kind == ErrorKind.VALIDATION


@pytest.mark.asyncio
async def test_gateway_timeout_status_classified():
    client = make_client(lambda request: httpx.Response(524, text="A timeout occurred"))

    with pytest.raises(ProviderError) as exc_info:
        await client.generate("a cat", [], 1, "2048x2048", allow_unsafe=False)

    assert exc_info.value.kind == ErrorKind.GATEWAY_TIMEOUT
    assert exc_info.value.status_code == 524


@pytest.mark.asyncio
async def test_transport_timeout_classified():
    def handler(request):
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(ProviderError) as exc_info:
        await make_client(handler).generate("a cat", [], 1, "2048x2048", allow_unsafe=False)

    assert exc_info.value.kind == ErrorKind.TIMEOUT


@pytest.mark.asyncio
async def test_generate_video_sends_kling_request():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"video": {"url": "https://fal.media/v.mp4"}})

    video = await make_client(handler).generate_video("https://fal.media/1.png", "she waves", 10)

    assert video == "https://fal.media/v.mp4"
    assert seen["url"] == VIDEO_ENDPOINT
    assert seen["body"] == {
        "image_url": "https://fal.media/1.png",
        "prompt": "she waves",
        "duration": "10",
        "cfg_scale": 0.5,
        "negative_prompt": "blur, distort, low quality",
    }


@pytest.mark.asyncio
async def test_generate_video_without_url_is_validation_error():
    client = make_client(lambda request: httpx.Response(200, json={"video": {}}))

    with pytest.raises(ProviderError) as exc_info:
        await client.generate_video("https://fal.media/1.png", "she waves", 5)

    assert exc_info.value.kind == ErrorKind.VALIDATION
