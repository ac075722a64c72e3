from datetime import datetime
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from stepwise.domain.entities.task import PlanTask
from stepwise.domain.value_objects import PlanStatus, TaskStatusKind


class Plan(BaseModel):
    id: UUID = Field(default_factory=uuid4)
    session_id: UUID
    title: str
    description: str
    context: str = ""
    tasks: list[PlanTask] = []
    risks: list[str] = []
    test_strategy: str = ""
    technical_stack: list[str] = []
    status: PlanStatus = PlanStatus.DRAFT
    created_at: datetime
    updated_at: datetime
    approved_at: datetime | None = None

    def get_task(self, task_id: UUID) -> PlanTask | None:
        return next((t for t in self.tasks if t.id == task_id), None)

    def get_task_by_order(self, order: int) -> PlanTask | None:
        return next((t for t in self.tasks if t.order == order), None)

    def in_progress_task(self) -> PlanTask | None:
        return next(
            (t for t in self.tasks if t.status.kind == TaskStatusKind.IN_PROGRESS),
            None,
        )

    def is_complete(self) -> bool:
        """All tasks completed or skipped."""
        return bool(self.tasks) and all(t.status.is_terminal for t in self.tasks)

    def progress_percentage(self) -> float:
        if not self.tasks:
            return 0.0
        done = sum(1 for t in self.tasks if t.status.is_terminal)
        return done / len(self.tasks) * 100

    def transition_to(self, status: PlanStatus, at: datetime) -> None:
        self.status = status
        self.updated_at = at

    def touch(self, at: datetime) -> None:
        self.updated_at = at
