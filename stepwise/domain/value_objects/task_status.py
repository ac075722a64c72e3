from enum import Enum

from pydantic import BaseModel, ConfigDict, model_validator


class TaskStatusKind(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    SKIPPED = "skipped"
    FAILED = "failed"
    BLOCKED = "blocked"


class TaskStatus(BaseModel):
    """Task status as a kind plus an optional payload.

    Only BLOCKED carries a reason; the other kinds are bare.
    """

    model_config = ConfigDict(frozen=True)

    kind: TaskStatusKind
    reason: str | None = None

    @model_validator(mode="after")
    def _check_payload(self) -> "TaskStatus":
        if self.kind == TaskStatusKind.BLOCKED and not self.reason:
            raise ValueError("blocked status requires a reason")
        if self.kind != TaskStatusKind.BLOCKED and self.reason is not None:
            raise ValueError(f"{self.kind.value} status carries no reason")
        return self

    @classmethod
    def pending(cls) -> "TaskStatus":
        return cls(kind=TaskStatusKind.PENDING)

    @classmethod
    def in_progress(cls) -> "TaskStatus":
        return cls(kind=TaskStatusKind.IN_PROGRESS)

    @classmethod
    def completed(cls) -> "TaskStatus":
        return cls(kind=TaskStatusKind.COMPLETED)

    @classmethod
    def skipped(cls) -> "TaskStatus":
        return cls(kind=TaskStatusKind.SKIPPED)

    @classmethod
    def failed(cls) -> "TaskStatus":
        return cls(kind=TaskStatusKind.FAILED)

    @classmethod
    def blocked(cls, reason: str) -> "TaskStatus":
        return cls(kind=TaskStatusKind.BLOCKED, reason=reason)

    @property
    def is_terminal(self) -> bool:
        """Completed and skipped tasks count as done for plan completion."""
        return self.kind in (TaskStatusKind.COMPLETED, TaskStatusKind.SKIPPED)

    def __str__(self) -> str:
        if self.reason:
            return f"{self.kind.value}({self.reason})"
        return self.kind.value
