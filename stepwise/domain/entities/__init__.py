from stepwise.domain.entities.approval_request import DEFAULT_APPROVAL_WINDOW, ApprovalRequest
from stepwise.domain.entities.conversation import (
    ContentBlock,
    Message,
    ProviderResponse,
    StreamEvent,
    ToolCall,
    ToolDefinition,
    ToolResultBlock,
    Usage,
)
from stepwise.domain.entities.plan import Plan
from stepwise.domain.entities.task import HistoryEntry, PlanTask, ToolCallRecord

__all__ = [
    "DEFAULT_APPROVAL_WINDOW",
    "ApprovalRequest",
    # Conversation
    "ContentBlock",
    "Message",
    "ProviderResponse",
    "StreamEvent",
    "ToolCall",
    "ToolDefinition",
    "ToolResultBlock",
    "Usage",
    # Plan
    "HistoryEntry",
    "Plan",
    "PlanTask",
    "ToolCallRecord",
]
