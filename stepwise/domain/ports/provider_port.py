from abc import ABC, abstractmethod
from collections.abc import AsyncIterator
from typing import Any

from stepwise.domain.entities.conversation import (
    Message,
    ProviderResponse,
    StreamEvent,
    ToolDefinition,
)
from stepwise.domain.errors import StepwiseError


class ProviderError(StepwiseError):
    """Failure reported by a model provider.

    Subclasses map onto the retry classifier; see
    `stepwise.application.services.resilience.classify_error`.
    """

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.status = status

    @staticmethod
    def from_status(
        status: int, message: str, retry_after: float | None = None
    ) -> "ProviderError":
        """Build the matching error for an HTTP status code."""
        if status == 429:
            return RateLimitError(message, retry_after=retry_after)
        if status in (401, 403):
            return AuthError(message, status=status)
        if status == 404:
            return ModelNotFoundError(message, status=status)
        if status in (408, 504):
            return ProviderTimeoutError(message, status=status)
        if status >= 500:
            return ServerError(message, status=status)
        return MalformedRequestError(message, status=status)


class NetworkError(ProviderError):
    """Connection could not be established or was dropped."""


class RateLimitError(ProviderError):
    def __init__(self, message: str, retry_after: float | None = None) -> None:
        super().__init__(message, status=429)
        self.retry_after = retry_after


class AuthError(ProviderError):
    pass


class ServerError(ProviderError):
    pass


class ProviderTimeoutError(ProviderError):
    pass


class MalformedRequestError(ProviderError):
    pass


class ModelNotFoundError(ProviderError):
    pass


class ProviderPort(ABC):
    """Port for a language model backend."""

    @abstractmethod
    async def complete(
        self,
        messages: list[Message],
        tools: list[ToolDefinition],
        options: dict[str, Any] | None = None,
    ) -> ProviderResponse:
        """Send the conversation and tool catalog, return one response.

        Raises:
            ProviderError: On any provider-side failure.
        """

    @abstractmethod
    def stream(
        self,
        messages: list[Message],
        tools: list[ToolDefinition],
        options: dict[str, Any] | None = None,
    ) -> AsyncIterator[StreamEvent]:
        """Stream incremental events ending with a `done` event."""
