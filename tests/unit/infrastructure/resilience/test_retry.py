import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from genbatch.domain.models.errors import ErrorKind, ProviderError
from genbatch.infrastructure.resilience.retry import (
    GENERATION_RETRY_POLICY, VIDEO_RETRY_POLICY, RetryPolicy, call_with_retry,
)


def unavailable():
    return ProviderError.from_status(503, "FAL API error 503: Service Unavailable")


@pytest.mark.asyncio
async def test_server_errors_retried_with_backoff(sleeper):
    func = AsyncMock(side_effect=[unavailable(), unavailable(), ["https://fal.media/1.png"]])

    result = await call_with_retry(func, GENERATION_RETRY_POLICY, sleep=sleeper)

    assert result == ["https://fal.media/1.png"]
    assert func.await_count == 3
    assert sleeper.calls == [1.0, 2.0]


@pytest.mark.asyncio
async def test_gives_up_after_max_attempts(sleeper):
    func = AsyncMock(side_effect=unavailable())

    with pytest.raises(ProviderError) as exc_info:
        await call_with_retry(func, GENERATION_RETRY_POLICY, sleep=sleeper)

    assert exc_info.value.kind == ErrorKind.SERVER_ERROR
    assert func.await_count == 3
    assert sleeper.calls == [1.0, 2.0]


@pytest.mark.asyncio
async def test_validation_error_not_retried(sleeper):
    func = AsyncMock(side_effect=ProviderError.from_status(400, "bad prompt"))

    with pytest.raises(ProviderError):
        await call_with_retry(func, GENERATION_RETRY_POLICY, sleep=sleeper)

    assert func.await_count == 1
    assert sleeper.calls == []


@pytest.mark.asyncio
async def test_throttling_not_retried_in_loop(sleeper):
    func = AsyncMock(side_effect=ProviderError.from_status(429, "Too Many Requests"))

    with pytest.raises(ProviderError):
        await call_with_retry(func, GENERATION_RETRY_POLICY, sleep=sleeper)

    assert func.await_count == 1


@pytest.mark.asyncio
async def test_plain_timeouts_are_retried(sleeper):
    func = AsyncMock(side_effect=[asyncio.TimeoutError(), "ok"])

    assert await call_with_retry(func, GENERATION_RETRY_POLICY, sleep=sleeper) == "ok"
    assert sleeper.calls == [1.0]


@pytest.mark.asyncio
async def test_unclassified_errors_propagate_unchanged(sleeper):
    error = KeyError("images")
    func = AsyncMock(side_effect=error)

    with pytest.raises(KeyError) as exc_info:
        await call_with_retry(func, GENERATION_RETRY_POLICY, sleep=sleeper)

    assert exc_info.value is error
    assert sleeper.calls == []


@pytest.mark.asyncio
async def test_video_policy_retries_gateway_timeout_once(sleeper):
    func = AsyncMock(side_effect=ProviderError.from_status(504, "Gateway Timeout"))

    with pytest.raises(ProviderError):
        await call_with_retry(func, VIDEO_RETRY_POLICY, sleep=sleeper)

    assert func.await_count == 2
    assert sleeper.calls == [5.0]


@pytest.mark.asyncio
async def test_video_policy_does_not_retry_server_errors(sleeper):
    func = AsyncMock(side_effect=unavailable())

    with pytest.raises(ProviderError):
        await call_with_retry(func, VIDEO_RETRY_POLICY, sleep=sleeper)

    assert func.await_count == 1


@pytest.mark.asyncio
async def test_on_retry_called_before_each_wait(sleeper):
    first, second = unavailable(), ProviderError.from_status(524, "origin timeout")
    func = AsyncMock(side_effect=[first, second, "ok"])
    on_retry = MagicMock()

    await call_with_retry(func, GENERATION_RETRY_POLICY, sleep=sleeper, on_retry=on_retry)

    assert on_retry.call_args_list[0].args == (1, 1.0, first)
    assert on_retry.call_args_list[1].args == (2, 2.0, second)


def test_delay_for_clamps_to_last_delay():
    policy = RetryPolicy(max_attempts=5, delays=(1.0, 2.0), retryable=frozenset())
    assert [policy.delay_for(n) for n in (1, 2, 3, 4)] == [1.0, 2.0, 2.0, 2.0]
