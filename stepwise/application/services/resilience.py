"""Retry with exponential backoff for provider calls.

Errors are split into retryable (connection, timeout, rate limit, 5xx) and
fatal (auth, malformed request, not found, other 4xx, anything unknown).
Retrying is driven by tenacity with a wait strategy that honours
server-specified retry-after hints.
"""

import asyncio
import random
import re
from collections.abc import Awaitable, Callable
from enum import Enum
from typing import Any, TypeVar

import httpx
from loguru import logger
from pydantic import BaseModel, Field
from tenacity import AsyncRetrying, RetryCallState, retry_if_exception, stop_after_attempt

from stepwise.domain.errors import StepwiseError
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

T = TypeVar("T")

SleepFn = Callable[[float], Awaitable[Any]]
RandomFn = Callable[[], float]

_RETRY_AFTER_PATTERNS = [
    re.compile(r"(\d+(?:\.\d+)?)\s*seconds?", re.IGNORECASE),
    re.compile(r"(\d+(?:\.\d+)?)\s*s\b", re.IGNORECASE),
    re.compile(r"retry in (\d+(?:\.\d+)?)", re.IGNORECASE),
    re.compile(r"wait (\d+(?:\.\d+)?)", re.IGNORECASE),
]


class ErrorClass(str, Enum):
    RETRYABLE = "retryable"
    FATAL = "fatal"


def _classify_status(status: int) -> ErrorClass:
    if status in (408, 429) or status >= 500:
        return ErrorClass.RETRYABLE
    return ErrorClass.FATAL


def classify_error(exc: BaseException) -> ErrorClass:
    if isinstance(exc, (NetworkError, RateLimitError, ServerError, ProviderTimeoutError)):
        return ErrorClass.RETRYABLE
    if isinstance(exc, (AuthError, MalformedRequestError, ModelNotFoundError)):
        return ErrorClass.FATAL
    if isinstance(exc, ProviderError):
        if exc.status is None:
            return ErrorClass.FATAL
        return _classify_status(exc.status)
    if isinstance(exc, StepwiseError):
        return ErrorClass.FATAL
    if isinstance(exc, httpx.HTTPStatusError):
        return _classify_status(exc.response.status_code)
    if isinstance(exc, (httpx.TransportError, TimeoutError, ConnectionError)):
        return ErrorClass.RETRYABLE
    return ErrorClass.FATAL


def is_retryable(exc: BaseException) -> bool:
    return classify_error(exc) == ErrorClass.RETRYABLE


def parse_retry_seconds(message: str) -> float | None:
    """Pull a wait hint like "try again in 5 seconds" out of an error message."""
    for pattern in _RETRY_AFTER_PATTERNS:
        match = pattern.search(message)
        if match:
            return float(match.group(1))
    return None


def extract_retry_after(exc: BaseException) -> float | None:
    """Server-specified minimum wait carried by a rate-limit error, if any."""
    if isinstance(exc, RateLimitError):
        if exc.retry_after is not None:
            return exc.retry_after
        return parse_retry_seconds(exc.message)
    if isinstance(exc, httpx.HTTPStatusError) and exc.response.status_code == 429:
        header = exc.response.headers.get("retry-after")
        if header is not None:
            try:
                return float(header)
            except ValueError:
                return None
    return None


class RetryPolicy(BaseModel):
    """Backoff settings. `max_attempts` counts the first try."""

    max_attempts: int = Field(default=4, ge=1)
    base_delay_s: float = Field(default=0.1, ge=0)
    max_delay_s: float = Field(default=30.0, ge=0)
    multiplier: float = Field(default=2.0, ge=1)
    jitter: float = Field(default=0.1, ge=0, le=1)

    @classmethod
    def no_retry(cls) -> "RetryPolicy":
        return cls(max_attempts=1)

    @classmethod
    def aggressive(cls) -> "RetryPolicy":
        return cls(max_attempts=6, base_delay_s=0.05, max_delay_s=10.0, multiplier=1.5, jitter=0.2)

    def backoff(self, attempt: int) -> float:
        """Un-jittered delay after the given failed attempt (1-based)."""
        return min(self.max_delay_s, self.base_delay_s * self.multiplier ** (attempt - 1))

    def compute_delay(
        self,
        attempt: int,
        rng: RandomFn = random.random,
        retry_after: float | None = None,
    ) -> float:
        # retry-after is a floor: jitter may only extend it
        if retry_after is not None:
            return retry_after * (1 + self.jitter * rng())
        factor = 1 + self.jitter * (2 * rng() - 1)
        return self.backoff(attempt) * factor


class _BackoffWait:
    """tenacity wait strategy built from a RetryPolicy."""

    def __init__(self, policy: RetryPolicy, rng: RandomFn) -> None:
        self.policy = policy
        self.rng = rng

    def __call__(self, retry_state: RetryCallState) -> float:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        retry_after = extract_retry_after(exc) if exc is not None else None
        return self.policy.compute_delay(retry_state.attempt_number, self.rng, retry_after)


def _log_retry(retry_state: RetryCallState) -> None:
    exc = retry_state.outcome.exception() if retry_state.outcome else None
    delay = retry_state.next_action.sleep if retry_state.next_action else 0.0
    logger.warning(
        f"[PROVIDER] Retry {retry_state.attempt_number} after {type(exc).__name__}: "
        f"{str(exc)[:100]} (waiting {delay:.2f}s)"
    )


async def call_with_retry(
    operation: Callable[[], Awaitable[T]],
    policy: RetryPolicy | None = None,
    sleep: SleepFn = asyncio.sleep,
    rng: RandomFn = random.random,
) -> T:
    """Run `operation`, retrying retryable failures per `policy`.

    Fatal errors propagate on the first attempt. When attempts run out the
    last error is raised unchanged.
    """
    policy = policy or RetryPolicy()
    retrying = AsyncRetrying(
        sleep=sleep,
        retry=retry_if_exception(is_retryable),
        stop=stop_after_attempt(policy.max_attempts),
        wait=_BackoffWait(policy, rng),
        before_sleep=_log_retry,
        reraise=True,
    )
    async for attempt in retrying:
        with attempt:
            return await operation()
    raise AssertionError("retry loop exited without a result")
