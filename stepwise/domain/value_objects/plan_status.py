from enum import Enum


class PlanStatus(str, Enum):
    DRAFT = "draft"
    PENDING_APPROVAL = "pending_approval"
    APPROVED = "approved"
    REJECTED = "rejected"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


TERMINAL_PLAN_STATUSES = frozenset(
    {
        PlanStatus.REJECTED,
        PlanStatus.COMPLETED,
        PlanStatus.CANCELLED,
    }
)


def is_terminal_plan_status(status: PlanStatus) -> bool:
    return status in TERMINAL_PLAN_STATUSES
