from collections.abc import Iterable
from uuid import UUID

from loguru import logger

from stepwise.application.services.plan_engine import (
    PlanEngine,
    PlanStatusReport,
    PlanSummary,
    TaskRef,
)
from stepwise.domain.entities.plan import Plan
from stepwise.domain.entities.task import DEFAULT_COMPLEXITY, PlanTask, ToolCallRecord
from stepwise.domain.ports.clock_port import ClockPort
from stepwise.domain.ports.plan_repo_port import PlanRepoPort
from stepwise.domain.value_objects import TaskKind


class ManagePlan:
    """Plan operations for front ends and the plan tool.

    Every mutating call is followed by a full-snapshot save through the repo.
    """

    def __init__(self, engine: PlanEngine, plan_repo: PlanRepoPort):
        self.engine = engine
        self.plan_repo = plan_repo

    @classmethod
    async def open(
        cls,
        session_id: UUID,
        plan_repo: PlanRepoPort,
        clock: ClockPort | None = None,
    ) -> "ManagePlan":
        """Restore the session's stored plan, if any."""
        plan = await plan_repo.load(session_id)
        if plan is not None:
            logger.info(f"Loaded plan for session {session_id}: {plan.title} ({plan.status.value})")
        return cls(PlanEngine(session_id, plan=plan, clock=clock), plan_repo)

    @property
    def plan(self) -> Plan:
        return self.engine.plan

    async def _persist(self) -> None:
        await self.plan_repo.save(self.engine.plan)

    async def create(
        self,
        title: str,
        description: str,
        context: str = "",
        risks: list[str] | None = None,
        test_strategy: str = "",
        technical_stack: list[str] | None = None,
    ) -> Plan:
        plan = self.engine.create(
            title, description, context, risks, test_strategy, technical_stack
        )
        await self._persist()
        return plan

    async def discard(self) -> None:
        self.engine.discard()
        await self.plan_repo.delete(self.engine.session_id)

    async def add_task(
        self,
        title: str,
        description: str = "",
        kind: TaskKind | str | None = None,
        dependencies: Iterable[TaskRef] | None = None,
        complexity: int = DEFAULT_COMPLEXITY,
        criteria: list[str] | None = None,
        task_id: UUID | None = None,
    ) -> UUID:
        new_id = self.engine.add_task(
            title, description, kind, dependencies, complexity, criteria, task_id
        )
        await self._persist()
        return new_id

    async def update(self, **fields: object) -> Plan:
        plan = self.engine.update(**fields)  # type: ignore[arg-type]
        await self._persist()
        return plan

    async def update_task(self, ref: TaskRef, **fields: object) -> PlanTask:
        task = self.engine.update_task(ref, **fields)  # type: ignore[arg-type]
        await self._persist()
        return task

    async def finalize(self) -> Plan:
        plan = self.engine.finalize()
        await self._persist()
        return plan

    async def approve(self) -> Plan:
        plan = self.engine.approve()
        await self._persist()
        return plan

    async def reject(self, reason: str | None = None) -> Plan:
        plan = self.engine.reject(reason)
        await self._persist()
        return plan

    async def cancel(self, reason: str = "") -> Plan:
        plan = self.engine.cancel(reason)
        await self._persist()
        return plan

    async def start_task(self, ref: TaskRef) -> PlanTask:
        task = self.engine.start_task(ref)
        await self._persist()
        return task

    async def complete_task(
        self, ref: TaskRef, output: str | None = None, artifacts: list[str] | None = None
    ) -> PlanTask:
        task = self.engine.complete_task(ref, output, artifacts)
        await self._persist()
        return task

    async def skip_task(self, ref: TaskRef, reason: str) -> PlanTask:
        task = self.engine.skip_task(ref, reason)
        await self._persist()
        return task

    async def fail_task(self, ref: TaskRef, reason: str) -> PlanTask:
        task = self.engine.fail_task(ref, reason)
        await self._persist()
        return task

    async def block_task(self, ref: TaskRef, reason: str) -> PlanTask:
        task = self.engine.block_task(ref, reason)
        await self._persist()
        return task

    async def record_tool_call(
        self,
        ref: TaskRef,
        tool_name: str,
        summary: str,
        success: bool = True,
        input: dict[str, object] | None = None,
    ) -> ToolCallRecord:
        record = self.engine.record_tool_call(ref, tool_name, summary, success, input)
        await self._persist()
        return record

    async def reflect(self, ref: TaskRef, text: str, should_retry: bool = False) -> PlanTask:
        task = self.engine.reflect(ref, text, should_retry)
        await self._persist()
        return task

    def status(self) -> PlanStatusReport:
        return self.engine.status()

    def next_task(self) -> PlanTask | None:
        return self.engine.next_task()

    def summary(self) -> PlanSummary:
        return self.engine.summary()
