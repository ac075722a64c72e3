from datetime import datetime
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, field_validator

from stepwise.domain.value_objects import TaskKind, TaskStatus, TaskStatusKind

MIN_COMPLEXITY = 1
MAX_COMPLEXITY = 5
DEFAULT_COMPLEXITY = 3
DEFAULT_MAX_RETRIES = 3


def clamp_complexity(value: int) -> int:
    return max(MIN_COMPLEXITY, min(MAX_COMPLEXITY, value))


class HistoryEntry(BaseModel):
    """Narrative step in a task's execution history."""

    timestamp: datetime
    text: str


class ToolCallRecord(BaseModel):
    tool_name: str
    summary: str
    success: bool = True
    input: dict[str, Any] | None = None
    timestamp: datetime


class PlanTask(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    order: int
    title: str
    description: str = ""
    kind: TaskKind = TaskKind.OTHER
    dependencies: list[UUID] = []
    complexity: int = DEFAULT_COMPLEXITY
    acceptance_criteria: list[str] = []
    status: TaskStatus = Field(default_factory=TaskStatus.pending)
    notes: str | None = None
    completed_at: datetime | None = None
    history: list[HistoryEntry] = []
    tool_calls: list[ToolCallRecord] = []
    retry_count: int = 0
    max_retries: int = DEFAULT_MAX_RETRIES
    artifacts: list[str] = []
    reflection: str | None = None

    @field_validator("complexity")
    @classmethod
    def _clamp_complexity(cls, value: int) -> int:
        return clamp_complexity(value)

    @property
    def status_kind(self) -> TaskStatusKind:
        return self.status.kind

    def is_pending(self) -> bool:
        return self.status.kind == TaskStatusKind.PENDING

    def is_completed(self) -> bool:
        return self.status.kind == TaskStatusKind.COMPLETED

    def can_retry(self) -> bool:
        return self.retry_count < self.max_retries

    def transition_to(self, status: TaskStatus) -> None:
        self.status = status

    def add_history(self, text: str, at: datetime) -> None:
        self.history.append(HistoryEntry(timestamp=at, text=text))

    def add_tool_call(self, record: ToolCallRecord) -> None:
        self.tool_calls.append(record)
