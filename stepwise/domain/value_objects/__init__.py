from stepwise.domain.value_objects.approval_enums import ApprovalDecision, ApprovalPolicy
from stepwise.domain.value_objects.capability import (
    DANGEROUS_CAPABILITIES,
    Capability,
    requires_approval,
)
from stepwise.domain.value_objects.finish_reason import FinishReason
from stepwise.domain.value_objects.plan_status import PlanStatus, is_terminal_plan_status
from stepwise.domain.value_objects.task_kind import TaskKind
from stepwise.domain.value_objects.task_status import TaskStatus, TaskStatusKind
from stepwise.domain.value_objects.tool_category import ToolCategory

__all__ = [
    # Approval
    "ApprovalDecision",
    "ApprovalPolicy",
    # Capabilities
    "DANGEROUS_CAPABILITIES",
    "Capability",
    "requires_approval",
    # Provider
    "FinishReason",
    # Plan
    "PlanStatus",
    "is_terminal_plan_status",
    "TaskKind",
    "TaskStatus",
    "TaskStatusKind",
    # Tools
    "ToolCategory",
]
