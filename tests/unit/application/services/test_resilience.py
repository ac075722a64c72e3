"""Tests for error classification and retry with backoff."""

from unittest.mock import AsyncMock

import httpx
import pytest

from stepwise.application.services.resilience import (
    ErrorClass,
    RetryPolicy,
    call_with_retry,
    classify_error,
    extract_retry_after,
    parse_retry_seconds,
)
from stepwise.domain.errors import ValidationCode, ValidationError
from stepwise.domain.ports.provider_port import (
    AuthError,
    MalformedRequestError,
    ModelNotFoundError,
    NetworkError,
    ProviderError,
    ProviderTimeoutError,
    RateLimitError,
    ServerError,
)


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


def fixed_rng(value: float):
    return lambda: value


def http_status_error(status: int, headers: dict[str, str] | None = None) -> httpx.HTTPStatusError:
    request = httpx.Request("POST", "https://api.example.test/v1/complete")
    response = httpx.Response(status, request=request, headers=headers)
    return httpx.HTTPStatusError("boom", request=request, response=response)


class TestClassifyError:
    @pytest.mark.parametrize(
        "error",
        [
            NetworkError("reset"),
            RateLimitError("slow down"),
            ServerError("bad gateway", status=502),
            ProviderTimeoutError("timeout"),
            ProviderError("overloaded", status=529),
            TimeoutError(),
            ConnectionError(),
            httpx.ConnectError("refused"),
            httpx.ReadTimeout("slow"),
        ],
    )
    def test_retryable(self, error):
        assert classify_error(error) == ErrorClass.RETRYABLE

    @pytest.mark.parametrize(
        "error",
        [
            AuthError("bad key", status=401),
            MalformedRequestError("bad json", status=400),
            ModelNotFoundError("no model", status=404),
            ProviderError("teapot", status=418),
            ProviderError("unknown"),
            ValidationError(ValidationCode.CYCLE, "cycle"),
            ValueError("surprise"),
        ],
    )
    def test_fatal(self, error):
        assert classify_error(error) == ErrorClass.FATAL

    def test_http_status_errors(self):
        assert classify_error(http_status_error(503)) == ErrorClass.RETRYABLE
        assert classify_error(http_status_error(429)) == ErrorClass.RETRYABLE
        assert classify_error(http_status_error(401)) == ErrorClass.FATAL

    def test_from_status_mapping(self):
        assert isinstance(ProviderError.from_status(429, "x", 5), RateLimitError)
        assert isinstance(ProviderError.from_status(401, "x"), AuthError)
        assert isinstance(ProviderError.from_status(404, "x"), ModelNotFoundError)
        assert isinstance(ProviderError.from_status(500, "x"), ServerError)
        assert isinstance(ProviderError.from_status(422, "x"), MalformedRequestError)


class TestRetryAfter:
    @pytest.mark.parametrize(
        ("message", "expected"),
        [
            ("Rate limited. Please try again in 20 seconds", 20.0),
            ("retry in 7", 7.0),
            ("please wait 3 before retrying", 3.0),
            ("limit resets in 12s", 12.0),
            ("rate limit exceeded", None),
        ],
    )
    def test_parse_retry_seconds(self, message, expected):
        assert parse_retry_seconds(message) == expected

    def test_explicit_hint_wins(self):
        assert extract_retry_after(RateLimitError("wait 9", retry_after=5)) == 5

    def test_header_hint(self):
        assert extract_retry_after(http_status_error(429, {"retry-after": "4"})) == 4.0

    def test_non_rate_limit_has_no_hint(self):
        assert extract_retry_after(ServerError("retry in 5", status=503)) is None


class TestRetryPolicy:
    def test_exponential_backoff_capped(self):
        policy = RetryPolicy(base_delay_s=1, multiplier=2, max_delay_s=5, jitter=0)
        assert [policy.backoff(n) for n in range(1, 6)] == [1, 2, 4, 5, 5]

    def test_jitter_bounds(self):
        policy = RetryPolicy(base_delay_s=1, jitter=0.1)
        assert policy.compute_delay(1, fixed_rng(0.0)) == pytest.approx(0.9)
        assert policy.compute_delay(1, fixed_rng(1.0)) == pytest.approx(1.1)

    def test_retry_after_only_extends(self):
        policy = RetryPolicy(jitter=0.1)
        assert policy.compute_delay(1, fixed_rng(0.0), retry_after=5) == pytest.approx(5.0)
        assert policy.compute_delay(1, fixed_rng(1.0), retry_after=5) == pytest.approx(5.5)

    def test_presets(self):
        assert RetryPolicy.no_retry().max_attempts == 1
        assert RetryPolicy.aggressive().max_attempts > RetryPolicy().max_attempts


class TestCallWithRetry:
    async def test_retryable_then_success(self, sleep):
        operation = AsyncMock(side_effect=[NetworkError("reset"), ServerError("502", 502), "ok"])
        policy = RetryPolicy(base_delay_s=1, multiplier=2, jitter=0)

        result = await call_with_retry(operation, policy, sleep=sleep, rng=fixed_rng(0.5))

        assert result == "ok"
        assert operation.await_count == 3
        assert sleep.delays == [1, 2]

    async def test_fatal_is_not_retried(self, sleep):
        operation = AsyncMock(side_effect=AuthError("bad key", status=401))

        with pytest.raises(AuthError):
            await call_with_retry(operation, RetryPolicy(), sleep=sleep)

        assert operation.await_count == 1
        assert sleep.delays == []

    async def test_exhausted_raises_last_error(self, sleep):
        errors = [NetworkError("one"), NetworkError("two"), NetworkError("three")]
        operation = AsyncMock(side_effect=errors)

        with pytest.raises(NetworkError, match="three"):
            await call_with_retry(operation, RetryPolicy(max_attempts=3), sleep=sleep)

        assert operation.await_count == 3
        assert len(sleep.delays) == 2

    async def test_rate_limit_hint_is_honoured(self, sleep):
        operation = AsyncMock(side_effect=[RateLimitError("slow down", retry_after=5), "ok"])

        result = await call_with_retry(
            operation, RetryPolicy(jitter=0.1), sleep=sleep, rng=fixed_rng(0.5)
        )

        assert result == "ok"
        assert operation.await_count == 2
        assert len(sleep.delays) == 1
        assert 5.0 <= sleep.delays[0] <= 5.5

    async def test_lambda_wrapping_a_coroutine_is_awaited(self, sleep):
        calls: list[str] = []

        async def request(prompt: str) -> str:
            calls.append(prompt)
            if len(calls) == 1:
                raise NetworkError("reset")
            return f"reply to {prompt}"

        result = await call_with_retry(
            lambda: request("hello"), RetryPolicy(jitter=0), sleep=sleep, rng=fixed_rng(0.5)
        )

        assert result == "reply to hello"
        assert calls == ["hello", "hello"]
        assert len(sleep.delays) == 1
