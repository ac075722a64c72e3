from datetime import datetime, timedelta
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from stepwise.domain.value_objects import ApprovalDecision, Capability

DEFAULT_APPROVAL_WINDOW = timedelta(minutes=5)


class ApprovalRequest(BaseModel):
    """A pending human confirmation for one tool call.

    Lives only in memory for the current session.
    """

    id: UUID = Field(default_factory=uuid4)
    tool_name: str
    description: str
    input: dict[str, Any] = {}
    capabilities: frozenset[Capability] = frozenset()
    created_at: datetime
    window: timedelta = DEFAULT_APPROVAL_WINDOW
    decision: ApprovalDecision = ApprovalDecision.PENDING
    reason: str | None = None
    resolved_at: datetime | None = None

    def time_remaining(self, now: datetime) -> timedelta:
        remaining = self.window - (now - self.created_at)
        return max(remaining, timedelta(0))

    def is_expired(self, now: datetime) -> bool:
        return self.time_remaining(now) == timedelta(0)

    @property
    def is_resolved(self) -> bool:
        return self.decision != ApprovalDecision.PENDING

    @property
    def is_approved(self) -> bool:
        return self.decision == ApprovalDecision.APPROVED

    def resolve(self, decision: ApprovalDecision, now: datetime, reason: str | None = None) -> bool:
        """Record a decision. Returns False if the request was already resolved."""
        if self.is_resolved:
            return False
        self.decision = decision
        self.reason = reason
        self.resolved_at = now
        return True

    def resolve_if_expired(self, now: datetime) -> bool:
        """Time out a pending request once its window has elapsed.

        Returns True only for the call that performed the transition.
        """
        if self.is_resolved or not self.is_expired(now):
            return False
        return self.resolve(ApprovalDecision.TIMED_OUT, now, "approval window elapsed")
