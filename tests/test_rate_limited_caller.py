"""Tests for RateLimitedCaller and RetryPolicy."""

import asyncio

import pytest

from dermascan.services.ai.analysis.caller import RateLimitedCaller, RetryPolicy
from dermascan.services.ai.analysis.contracts import AnalysisKind, InferenceRequest
from dermascan.services.ai.analysis.errors import (
    AuthError,
    ErrorKind,
    MalformedResponseError,
    NetworkError,
    NotAnalyzableError,
    RateLimitError,
    ValidationError,
)
from dermascan.services.ai.analysis.validator import ResponseValidator
from fakes import RecordingSleep, ScriptedProvider, skin_json


def _request(image="img-1", index=1):
    return InferenceRequest(kind=AnalysisKind.SKIN, image_b64=image, prompt="prompt", index=index)


def _caller(provider, sleep, **policy):
    return RateLimitedCaller(
        provider,
        policy=RetryPolicy(**policy) if policy else None,
        inter_call_delay_seconds=2.0,
        sleep=sleep,
    )


class TestRetryPolicy:
    def test_linear_backoff(self):
        policy = RetryPolicy(base_delay_seconds=1.5)
        assert [policy.delay(n) for n in (1, 2, 3)] == [1.5, 3.0, 4.5]

    def test_classification(self):
        policy = RetryPolicy()
        assert policy.is_fatal(AuthError())
        assert policy.is_fatal(RateLimitError())
        assert policy.is_retryable(NetworkError())
        assert policy.is_retryable(MalformedResponseError())
        assert not policy.is_retryable(ValidationError())
        assert not policy.is_retryable(NotAnalyzableError())
        assert not policy.is_fatal(NetworkError())

    def test_custom_fatal_predicate(self):
        policy = RetryPolicy(fatal_errors=(AuthError, RateLimitError, NetworkError))
        assert policy.is_fatal(NetworkError())
        assert not policy.is_retryable(NetworkError())


@pytest.mark.asyncio
async def test_success_first_attempt_returns_raw_text():
    provider = ScriptedProvider({"img-1": ["hello"]})
    sleep = RecordingSleep()

    result = await _caller(provider, sleep).call(_request())

    assert result.ok
    assert result.value == "hello"
    assert result.attempts == 1
    assert sleep.delays == []


@pytest.mark.asyncio
async def test_network_error_retried_with_linear_backoff():
    provider = ScriptedProvider({"img-1": [NetworkError("down"), NetworkError("down"), skin_json()]})
    sleep = RecordingSleep()
    validator = ResponseValidator("skin")

    result = await _caller(provider, sleep, base_delay_seconds=1.0).call(_request(), accept=validator.validate)

    assert result.ok
    assert result.attempts == 3
    assert result.value.scores["hydration"] == 70
    assert sleep.delays == [1.0, 2.0]


@pytest.mark.asyncio
async def test_retries_exhausted_returns_last_error():
    provider = ScriptedProvider({"img-1": [NetworkError("a"), NetworkError("b"), NetworkError("c")]})
    sleep = RecordingSleep()

    result = await _caller(provider, sleep).call(_request())

    assert not result.ok
    assert not result.fatal
    assert result.error.kind == ErrorKind.NETWORK
    assert result.error.message == "c"
    assert result.attempts == 3
    assert len(provider.calls) == 3
    # No sleep after the final attempt
    assert sleep.delays == [1.0, 2.0]


@pytest.mark.asyncio
async def test_malformed_response_is_retried():
    provider = ScriptedProvider({"img-1": ["kein json", skin_json(hydration=61)]})
    sleep = RecordingSleep()
    validator = ResponseValidator("skin")

    result = await _caller(provider, sleep).call(_request(), accept=validator.validate)

    assert result.ok
    assert result.attempts == 2
    assert result.value.scores["hydration"] == 61


@pytest.mark.asyncio
@pytest.mark.parametrize("error", [AuthError("bad key"), RateLimitError("quota")])
async def test_fatal_errors_abort_without_retry(error):
    provider = ScriptedProvider({"img-1": [error, skin_json()]})
    sleep = RecordingSleep()

    result = await _caller(provider, sleep).call(_request())

    assert result.fatal
    assert result.error is error
    assert result.attempts == 1
    assert len(provider.calls) == 1
    assert sleep.delays == []


@pytest.mark.asyncio
async def test_validation_error_not_retried():
    provider = ScriptedProvider({"img-1": [skin_json(hydration=250), skin_json()]})
    sleep = RecordingSleep()
    validator = ResponseValidator("skin")

    result = await _caller(provider, sleep).call(_request(), accept=validator.validate)

    assert result.error.kind == ErrorKind.VALIDATION
    assert result.attempts == 1
    assert not result.fatal


@pytest.mark.asyncio
async def test_not_analyzable_not_retried():
    provider = ScriptedProvider({"img-1": ['{"error": true, "message": "unscharf"}']})
    validator = ResponseValidator("skin")

    result = await _caller(provider, RecordingSleep()).call(_request(), accept=validator.validate)

    assert result.error.kind == ErrorKind.NOT_ANALYZABLE
    assert result.error.explanation == "unscharf"
    assert result.attempts == 1


@pytest.mark.asyncio
async def test_unexpected_exception_classified_as_network():
    provider = ScriptedProvider({"img-1": [KeyError("boom"), "ok"]})

    result = await _caller(provider, RecordingSleep()).call(_request())

    assert result.ok
    assert result.attempts == 2


@pytest.mark.asyncio
async def test_pause_between_images_uses_fixed_delay():
    sleep = RecordingSleep()
    caller = _caller(ScriptedProvider(), sleep)

    await caller.pause_between_images()
    await caller.pause_between_images()

    assert sleep.delays == [2.0, 2.0]


@pytest.mark.asyncio
async def test_zero_inter_call_delay_skips_sleep():
    sleep = RecordingSleep()
    caller = RateLimitedCaller(ScriptedProvider(), inter_call_delay_seconds=0, sleep=sleep)

    await caller.pause_between_images()

    assert sleep.delays == []


@pytest.mark.asyncio
async def test_cancellation_during_backoff_propagates():
    provider = ScriptedProvider({"img-1": [NetworkError("down"), "never"]})

    async def cancelled_sleep(seconds):
        raise asyncio.CancelledError()

    caller = RateLimitedCaller(provider, sleep=cancelled_sleep)

    with pytest.raises(asyncio.CancelledError):
        await caller.call(_request())
    assert len(provider.calls) == 1


@pytest.mark.asyncio
async def test_calls_are_independent():
    provider = ScriptedProvider(default="ok")
    caller = _caller(provider, RecordingSleep())

    first = await caller.call(_request("a", 1))
    second = await caller.call(_request("b", 2))

    assert first.attempts == second.attempts == 1
    assert provider.calls == ["a", "b"]
