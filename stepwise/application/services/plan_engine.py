"""Plan engine: task graph, plan lifecycle and task transitions.

The engine is synchronous and owns the in-memory plan for one session.
Persistence is the caller's job (see `ManagePlan`), performed after every
mutating call.
"""

from collections.abc import Iterable
from uuid import UUID

from loguru import logger
from pydantic import BaseModel

from stepwise.domain.entities.plan import Plan
from stepwise.domain.entities.task import (
    DEFAULT_COMPLEXITY,
    PlanTask,
    ToolCallRecord,
    clamp_complexity,
)
from stepwise.domain.errors import StateError, ValidationCode, ValidationError
from stepwise.domain.ports.clock_port import ClockPort, SystemClock
from stepwise.domain.services.task_graph import creates_cycle, topological_order
from stepwise.domain.value_objects import (
    PlanStatus,
    TaskKind,
    TaskStatus,
    TaskStatusKind,
    is_terminal_plan_status,
)

MAX_TITLE_LENGTH = 200
MAX_DESCRIPTION_LENGTH = 5000
MAX_CONTEXT_LENGTH = 5000

TaskRef = UUID | int | str

EXECUTING_STATUSES = frozenset({PlanStatus.APPROVED, PlanStatus.IN_PROGRESS})


class PlanSummary(BaseModel):
    total: int
    completed: int
    failed: int
    skipped: int
    pending: int
    in_progress: int
    blocked: int
    progress_percentage: float
    success_rate: float
    total_retries: int
    total_tool_calls: int


class PlanStatusReport(BaseModel):
    plan_id: UUID
    title: str
    status: PlanStatus
    task_count: int
    progress_percentage: float
    current_task: str | None = None
    next_task: str | None = None


def _check_text(value: str, field: str, max_length: int, required: bool = True) -> str:
    if required and not value.strip():
        raise ValidationError(ValidationCode.INVALID_INPUT, f"{field} must not be empty")
    if len(value) > max_length:
        raise ValidationError(
            ValidationCode.OVERSIZED_INPUT,
            f"{field} too long: {len(value)} chars (max {max_length})",
        )
    return value


class PlanEngine:
    """Plan operations for a single session.

    Tasks can be addressed by id, by 1-based order number, or by a string
    holding either.
    """

    def __init__(
        self,
        session_id: UUID,
        plan: Plan | None = None,
        clock: ClockPort | None = None,
    ) -> None:
        if plan is not None and plan.session_id != session_id:
            raise StateError(f"Plan {plan.id} is owned by another session")
        self.session_id = session_id
        self.clock = clock or SystemClock()
        self._plan = plan
        self._order_cache: list[UUID] | None = None

    # ------------------------------------------------------------------
    # Accessors
    # ------------------------------------------------------------------

    @property
    def has_plan(self) -> bool:
        return self._plan is not None

    @property
    def plan(self) -> Plan:
        if self._plan is None:
            raise StateError("No plan exists for this session; create one first")
        return self._plan

    def get_task(self, ref: TaskRef) -> PlanTask:
        plan = self.plan
        task: PlanTask | None = None
        if isinstance(ref, str):
            ref = self._parse_ref(ref)
        if isinstance(ref, UUID):
            task = plan.get_task(ref)
        elif isinstance(ref, int):
            task = plan.get_task_by_order(ref)
        if task is None:
            raise ValidationError(ValidationCode.UNKNOWN_TASK, f"Unknown task: {ref}")
        return task

    @staticmethod
    def _parse_ref(ref: str) -> UUID | int:
        ref = ref.strip().lstrip("#")
        if ref.isdigit():
            return int(ref)
        try:
            return UUID(ref)
        except ValueError:
            raise ValidationError(
                ValidationCode.UNKNOWN_TASK, f"Not a task id or order: {ref!r}"
            ) from None

    def execution_order(self) -> list[UUID]:
        """Topological order of the task graph, cached until dependencies change."""
        if self._order_cache is None:
            report = topological_order(self.plan.tasks)
            self._order_cache = report.order
        return self._order_cache

    def _invalidate_order(self) -> None:
        self._order_cache = None

    # ------------------------------------------------------------------
    # Planning
    # ------------------------------------------------------------------

    def create(
        self,
        title: str,
        description: str,
        context: str = "",
        risks: list[str] | None = None,
        test_strategy: str = "",
        technical_stack: list[str] | None = None,
    ) -> Plan:
        if self._plan is not None:
            raise StateError(
                f"Plan '{self._plan.title}' already exists for this session; discard it first"
            )
        _check_text(title, "title", MAX_TITLE_LENGTH)
        _check_text(description, "description", MAX_DESCRIPTION_LENGTH, required=False)
        _check_text(context, "context", MAX_CONTEXT_LENGTH, required=False)

        now = self.clock.now()
        self._plan = Plan(
            session_id=self.session_id,
            title=title.strip(),
            description=description,
            context=context,
            risks=list(risks or []),
            test_strategy=test_strategy,
            technical_stack=list(technical_stack or []),
            created_at=now,
            updated_at=now,
        )
        self._invalidate_order()
        logger.info(f"Plan created: {self._plan.title} ({self._plan.id})")
        return self._plan

    def discard(self) -> None:
        if self._plan is not None:
            logger.info(f"Plan discarded: {self._plan.title}")
        self._plan = None
        self._invalidate_order()

    def _require_status(self, *allowed: PlanStatus, action: str) -> Plan:
        plan = self.plan
        if plan.status not in allowed:
            expected = ", ".join(s.value for s in allowed)
            raise StateError(
                f"Cannot {action}: plan is {plan.status.value} (expected {expected})"
            )
        return plan

    def _resolve_dependencies(
        self, plan: Plan, dependencies: Iterable[TaskRef], own_id: UUID, own_order: int
    ) -> list[UUID]:
        resolved: list[UUID] = []
        for dep in dependencies:
            if isinstance(dep, str):
                dep = self._parse_ref(dep)
            if isinstance(dep, int):
                if dep == own_order:
                    raise ValidationError(
                        ValidationCode.CYCLE, f"Task #{own_order} cannot depend on itself"
                    )
                target = plan.get_task_by_order(dep)
                if target is None:
                    raise ValidationError(
                        ValidationCode.UNKNOWN_DEPENDENCY, f"Unknown dependency: task #{dep}"
                    )
                dep_id = target.id
            else:
                dep_id = dep
                if dep_id == own_id:
                    raise ValidationError(
                        ValidationCode.CYCLE, f"Task {own_id} cannot depend on itself"
                    )
                if plan.get_task(dep_id) is None:
                    raise ValidationError(
                        ValidationCode.UNKNOWN_DEPENDENCY, f"Unknown dependency: {dep_id}"
                    )
            if dep_id not in resolved:
                resolved.append(dep_id)
        return resolved

    def add_task(
        self,
        title: str,
        description: str = "",
        kind: TaskKind | str | None = None,
        dependencies: Iterable[TaskRef] | None = None,
        complexity: int = DEFAULT_COMPLEXITY,
        criteria: list[str] | None = None,
        task_id: UUID | None = None,
    ) -> UUID:
        """Append a task to a draft plan and return its id.

        Raises:
            ValidationError: Unknown dependency, cycle, or bad input.
            StateError: Plan is not a draft.
        """
        plan = self._require_status(PlanStatus.DRAFT, action="add task")
        _check_text(title, "task title", MAX_TITLE_LENGTH)
        _check_text(description, "task description", MAX_DESCRIPTION_LENGTH, required=False)

        order = len(plan.tasks) + 1
        task = PlanTask(
            order=order,
            title=title.strip(),
            description=description,
            kind=TaskKind.parse(kind),
            complexity=complexity,
            acceptance_criteria=list(criteria or []),
        )
        if task_id is not None:
            if plan.get_task(task_id) is not None:
                raise ValidationError(
                    ValidationCode.INVALID_INPUT, f"Task id already in plan: {task_id}"
                )
            task.id = task_id

        task.dependencies = self._resolve_dependencies(
            plan, dependencies or [], task.id, order
        )
        if creates_cycle(plan.tasks, task.id, task.dependencies):
            raise ValidationError(
                ValidationCode.CYCLE, f"Adding '{task.title}' would create a dependency cycle"
            )

        plan.tasks.append(task)
        plan.touch(self.clock.now())
        self._invalidate_order()
        logger.info(f"Task #{order} added: {task.title}")
        return task.id

    def update(
        self,
        title: str | None = None,
        description: str | None = None,
        context: str | None = None,
        risks: list[str] | None = None,
        test_strategy: str | None = None,
        technical_stack: list[str] | None = None,
    ) -> Plan:
        plan = self._require_status(PlanStatus.DRAFT, action="update plan")
        if title is not None:
            plan.title = _check_text(title, "title", MAX_TITLE_LENGTH).strip()
        if description is not None:
            plan.description = _check_text(
                description, "description", MAX_DESCRIPTION_LENGTH, required=False
            )
        if context is not None:
            plan.context = _check_text(context, "context", MAX_CONTEXT_LENGTH, required=False)
        if risks is not None:
            plan.risks = list(risks)
        if test_strategy is not None:
            plan.test_strategy = test_strategy
        if technical_stack is not None:
            plan.technical_stack = list(technical_stack)
        plan.touch(self.clock.now())
        return plan

    def update_task(
        self,
        ref: TaskRef,
        title: str | None = None,
        description: str | None = None,
        dependencies: Iterable[TaskRef] | None = None,
        complexity: int | None = None,
        criteria: list[str] | None = None,
    ) -> PlanTask:
        plan = self._require_status(PlanStatus.DRAFT, action="update task")
        task = self.get_task(ref)
        if dependencies is not None:
            resolved = self._resolve_dependencies(plan, dependencies, task.id, task.order)
            others = [t for t in plan.tasks if t.id != task.id]
            if creates_cycle(others, task.id, resolved):
                raise ValidationError(
                    ValidationCode.CYCLE, f"New dependencies of '{task.title}' form a cycle"
                )
            task.dependencies = resolved
            self._invalidate_order()
        if title is not None:
            task.title = _check_text(title, "task title", MAX_TITLE_LENGTH).strip()
        if description is not None:
            task.description = _check_text(
                description, "task description", MAX_DESCRIPTION_LENGTH, required=False
            )
        if complexity is not None:
            task.complexity = clamp_complexity(complexity)
        if criteria is not None:
            task.acceptance_criteria = list(criteria)
        plan.touch(self.clock.now())
        return task

    def finalize(self) -> Plan:
        """Validate the graph and submit the draft for approval.

        The plan stays a draft when validation fails.
        """
        plan = self._require_status(PlanStatus.DRAFT, action="finalize")
        if not plan.tasks:
            raise ValidationError(ValidationCode.EMPTY_PLAN, "Cannot finalize a plan without tasks")

        report = topological_order(plan.tasks)
        if report.missing:
            task_id, dep = report.missing[0]
            raise ValidationError(
                ValidationCode.UNKNOWN_DEPENDENCY,
                f"Task {task_id} depends on unknown task {dep}",
            )
        if report.cyclic:
            titles = ", ".join(self.get_task(t).title for t in report.cyclic)
            raise ValidationError(ValidationCode.CYCLE, f"Dependency cycle among: {titles}")

        self._order_cache = report.order
        plan.transition_to(PlanStatus.PENDING_APPROVAL, self.clock.now())
        logger.info(f"Plan finalized with {len(plan.tasks)} tasks: {plan.title}")
        return plan

    def approve(self) -> Plan:
        plan = self._require_status(PlanStatus.PENDING_APPROVAL, action="approve")
        now = self.clock.now()
        plan.approved_at = now
        plan.transition_to(PlanStatus.APPROVED, now)
        plan.transition_to(PlanStatus.IN_PROGRESS, now)
        logger.info(f"Plan approved: {plan.title}")
        return plan

    def reject(self, reason: str | None = None) -> Plan:
        plan = self._require_status(PlanStatus.PENDING_APPROVAL, action="reject")
        plan.transition_to(PlanStatus.REJECTED, self.clock.now())
        logger.info(f"Plan rejected: {plan.title}" + (f" ({reason})" if reason else ""))
        return plan

    def cancel(self, reason: str = "") -> Plan:
        plan = self.plan
        if is_terminal_plan_status(plan.status):
            raise StateError(f"Cannot cancel: plan is already {plan.status.value}")
        plan.transition_to(PlanStatus.CANCELLED, self.clock.now())
        logger.info(f"Plan cancelled: {plan.title}" + (f" ({reason})" if reason else ""))
        return plan

    # ------------------------------------------------------------------
    # Execution
    # ------------------------------------------------------------------

    def _dependencies_met(self, task: PlanTask) -> bool:
        plan = self.plan
        for dep in task.dependencies:
            dep_task = plan.get_task(dep)
            if dep_task is None or not dep_task.is_completed():
                return False
        return True

    def next_task(self) -> PlanTask | None:
        """Lowest-order pending task whose dependencies are all completed."""
        plan = self.plan
        index = {t.id: i for i, t in enumerate(plan.tasks)}
        ready = [
            task
            for task_id in self.execution_order()
            if (task := plan.get_task(task_id)) is not None
            and task.is_pending()
            and self._dependencies_met(task)
        ]
        if not ready:
            return None
        return min(ready, key=lambda t: (t.order, index[t.id]))

    def _require_executing(self, action: str) -> Plan:
        return self._require_status(*EXECUTING_STATUSES, action=action)

    def _begin(self, plan: Plan, task: PlanTask) -> None:
        if not self._dependencies_met(task):
            pending = [
                str(dep_task.order)
                for dep in task.dependencies
                if (dep_task := plan.get_task(dep)) is not None and not dep_task.is_completed()
            ]
            raise StateError(
                f"Task #{task.order} has unfinished dependencies: #{', #'.join(pending)}"
            )
        now = self.clock.now()
        task.transition_to(TaskStatus.in_progress())
        task.add_history("Started", now)
        if plan.status != PlanStatus.IN_PROGRESS:
            plan.transition_to(PlanStatus.IN_PROGRESS, now)
        plan.touch(now)

    def start_task(self, ref: TaskRef) -> PlanTask:
        plan = self._require_executing("start task")
        task = self.get_task(ref)
        if not task.is_pending():
            raise StateError(f"Task #{task.order} is not pending (current status: {task.status})")
        self._begin(plan, task)
        logger.info(f"Task #{task.order} started: {task.title}")
        return task

    def complete_task(
        self,
        ref: TaskRef,
        output: str | None = None,
        artifacts: list[str] | None = None,
    ) -> PlanTask:
        """Mark a task completed.

        A pending task with satisfied dependencies is started implicitly.
        Completing an already completed task changes nothing.
        """
        task = self.get_task(ref)
        if task.is_completed():
            logger.debug(f"Task #{task.order} already completed, ignoring")
            return task
        plan = self._require_executing("complete task")
        if task.is_pending():
            self._begin(plan, task)
        elif task.status.kind != TaskStatusKind.IN_PROGRESS:
            raise StateError(f"Cannot complete task #{task.order}: status is {task.status}")

        now = self.clock.now()
        task.transition_to(TaskStatus.completed())
        task.completed_at = now
        if artifacts:
            task.artifacts.extend(artifacts)
        task.add_history(f"Completed: {output}" if output else "Completed", now)
        plan.touch(now)
        logger.info(f"Task #{task.order} completed: {task.title}")
        self._complete_plan_if_done(plan)
        return task

    def _complete_plan_if_done(self, plan: Plan) -> None:
        if plan.is_complete() and plan.status == PlanStatus.IN_PROGRESS:
            plan.transition_to(PlanStatus.COMPLETED, self.clock.now())
            logger.info(f"Plan completed: {plan.title}")

    def skip_task(self, ref: TaskRef, reason: str) -> PlanTask:
        plan = self._require_executing("skip task")
        task = self.get_task(ref)
        if task.status.is_terminal:
            raise StateError(f"Cannot skip task #{task.order}: status is {task.status}")
        now = self.clock.now()
        task.transition_to(TaskStatus.skipped())
        task.notes = reason
        task.add_history(f"Skipped: {reason}", now)
        plan.touch(now)
        logger.info(f"Task #{task.order} skipped: {reason}")
        self._complete_plan_if_done(plan)
        return task

    def fail_task(self, ref: TaskRef, reason: str) -> PlanTask:
        plan = self._require_executing("fail task")
        task = self.get_task(ref)
        if task.status.kind != TaskStatusKind.IN_PROGRESS:
            raise StateError(f"Cannot fail task #{task.order}: status is {task.status}")
        now = self.clock.now()
        task.transition_to(TaskStatus.failed())
        task.retry_count += 1
        task.notes = reason
        task.add_history(f"Failed (attempt {task.retry_count}): {reason}", now)
        plan.touch(now)
        logger.warning(
            f"Task #{task.order} failed ({task.retry_count}/{task.max_retries}): {reason}"
        )
        return task

    def block_task(self, ref: TaskRef, reason: str) -> PlanTask:
        plan = self._require_executing("block task")
        task = self.get_task(ref)
        if task.status.kind not in (TaskStatusKind.PENDING, TaskStatusKind.IN_PROGRESS):
            raise StateError(f"Cannot block task #{task.order}: status is {task.status}")
        now = self.clock.now()
        task.transition_to(TaskStatus.blocked(reason))
        task.add_history(f"Blocked: {reason}", now)
        plan.touch(now)
        return task

    def record_tool_call(
        self,
        ref: TaskRef,
        tool_name: str,
        summary: str,
        success: bool = True,
        input: dict[str, object] | None = None,
    ) -> ToolCallRecord:
        task = self.get_task(ref)
        now = self.clock.now()
        record = ToolCallRecord(
            tool_name=tool_name,
            summary=summary,
            success=success,
            input=input,
            timestamp=now,
        )
        task.add_tool_call(record)
        task.add_history(f"{'✓' if success else '✗'} {tool_name}: {summary}", now)
        self.plan.touch(now)
        return record

    def reflect(self, ref: TaskRef, text: str, should_retry: bool = False) -> PlanTask:
        """Store a reflection; optionally send a failed or blocked task back to pending."""
        task = self.get_task(ref)
        now = self.clock.now()
        task.reflection = text
        task.add_history(f"Reflection: {text}", now)
        retryable = task.status.kind in (TaskStatusKind.FAILED, TaskStatusKind.BLOCKED)
        if should_retry and retryable:
            if task.can_retry():
                task.transition_to(TaskStatus.pending())
                task.add_history("Reset to pending for retry", now)
                logger.info(f"Task #{task.order} queued for retry {task.retry_count + 1}")
            else:
                logger.warning(f"Task #{task.order} exhausted {task.max_retries} retries")
        self.plan.touch(now)
        return task

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def summary(self) -> PlanSummary:
        tasks = self.plan.tasks
        counts = {kind: 0 for kind in TaskStatusKind}
        for task in tasks:
            counts[task.status.kind] += 1
        total = len(tasks)
        completed = counts[TaskStatusKind.COMPLETED]
        failed = counts[TaskStatusKind.FAILED]
        attempted = completed + failed
        return PlanSummary(
            total=total,
            completed=completed,
            failed=failed,
            skipped=counts[TaskStatusKind.SKIPPED],
            pending=counts[TaskStatusKind.PENDING],
            in_progress=counts[TaskStatusKind.IN_PROGRESS],
            blocked=counts[TaskStatusKind.BLOCKED],
            progress_percentage=self.plan.progress_percentage(),
            success_rate=completed / attempted * 100 if attempted else 0.0,
            total_retries=sum(t.retry_count for t in tasks),
            total_tool_calls=sum(len(t.tool_calls) for t in tasks),
        )

    def status(self) -> PlanStatusReport:
        plan = self.plan
        current = plan.in_progress_task()
        upcoming = self.next_task()
        return PlanStatusReport(
            plan_id=plan.id,
            title=plan.title,
            status=plan.status,
            task_count=len(plan.tasks),
            progress_percentage=plan.progress_percentage(),
            current_task=f"#{current.order} {current.title}" if current else None,
            next_task=f"#{upcoming.order} {upcoming.title}" if upcoming else None,
        )
