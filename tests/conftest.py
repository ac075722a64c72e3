from datetime import UTC, datetime, timedelta
from pathlib import Path
from uuid import UUID, uuid4

import pytest

from stepwise.domain.entities.plan import Plan
from stepwise.domain.ports.clock_port import ClockPort
from stepwise.domain.ports.plan_repo_port import PlanRepoPort


class FakeClock(ClockPort):
    def __init__(self, start: datetime | None = None) -> None:
        self.current = start or datetime(2025, 1, 1, 12, 0, tzinfo=UTC)

    def now(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)


class InMemoryPlanRepo(PlanRepoPort):
    """Keeps deep copies so tests can tell what was actually saved."""

    def __init__(self) -> None:
        self.plans: dict[UUID, Plan] = {}
        self.saves = 0

    async def save(self, plan: Plan) -> None:
        self.plans[plan.session_id] = plan.model_copy(deep=True)
        self.saves += 1

    async def load(self, session_id: UUID) -> Plan | None:
        plan = self.plans.get(session_id)
        return plan.model_copy(deep=True) if plan else None

    async def delete(self, session_id: UUID) -> None:
        self.plans.pop(session_id, None)

    async def list_sessions(self) -> list[UUID]:
        return list(self.plans)


@pytest.fixture
def temp_state_dir(tmp_path: Path) -> Path:
    state_dir = tmp_path / ".stepwise"
    state_dir.mkdir()
    return state_dir


@pytest.fixture
def session_id() -> UUID:
    return uuid4()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def memory_repo() -> InMemoryPlanRepo:
    return InMemoryPlanRepo()
