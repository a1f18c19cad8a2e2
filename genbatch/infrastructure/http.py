"""Shared httpx request helper.

Translates transport failures and non-2xx responses into ProviderError with
the matching ErrorKind, so every adapter reports failures the same way.
"""

import logging
from typing import Any

import httpx

from genbatch.domain.models.errors import ErrorKind, ProviderError

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 300.0
ERROR_BODY_PREVIEW = 200


def build_client(timeout: float = DEFAULT_TIMEOUT_SECONDS) -> httpx.AsyncClient:
    """Pooled keep-alive client with a long per-call timeout."""
    return httpx.AsyncClient(
        timeout=httpx.Timeout(timeout, connect=30.0),
        limits=httpx.Limits(max_connections=100, max_keepalive_connections=10, keepalive_expiry=30.0),
        follow_redirects=True,
    )


def raise_for_status(response: httpx.Response, service: str) -> None:
    if response.is_success:
        return
    raise ProviderError.from_status(
        response.status_code,
        f"{service} error {response.status_code}: {response.text[:ERROR_BODY_PREVIEW]}",
    )


def translate_transport_error(exc: httpx.HTTPError, service: str) -> ProviderError:
    if isinstance(exc, httpx.TimeoutException):
        return ProviderError(f"{service} request timeout: {exc}", ErrorKind.TIMEOUT)
    return ProviderError(f"{service} request failed: {type(exc).__name__}: {exc}", ErrorKind.NETWORK)


async def send_request(
    client: httpx.AsyncClient,
    method: str,
    url: str,
    service: str,
    **kwargs: Any,
) -> httpx.Response:
    """Sends a request and returns the response, raising ProviderError on failure."""
    try:
        response = await client.request(method, url, **kwargs)
    except httpx.HTTPError as e:
        logger.debug(f"{service} {method} {url} failed: {e}")
        raise translate_transport_error(e, service) from e
    raise_for_status(response, service)
    return response
