from stepwise.domain.ports.clock_port import ClockPort, SystemClock
from stepwise.domain.ports.plan_repo_port import AtomicStoragePort, PlanRepoPort
from stepwise.domain.ports.provider_port import (
    AuthError,
    MalformedRequestError,
    ModelNotFoundError,
    NetworkError,
    ProviderError,
    ProviderPort,
    ProviderTimeoutError,
    RateLimitError,
    ServerError,
)
from stepwise.domain.ports.tool_port import ToolExecutionContext, ToolPort, ToolResult

__all__ = [
    # Clock
    "ClockPort",
    "SystemClock",
    # Storage
    "AtomicStoragePort",
    "PlanRepoPort",
    # Provider
    "AuthError",
    "MalformedRequestError",
    "ModelNotFoundError",
    "NetworkError",
    "ProviderError",
    "ProviderPort",
    "ProviderTimeoutError",
    "RateLimitError",
    "ServerError",
    # Tools
    "ToolExecutionContext",
    "ToolPort",
    "ToolResult",
]
