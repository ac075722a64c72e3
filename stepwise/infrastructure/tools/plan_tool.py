import json
from typing import Any

from loguru import logger

from stepwise.application.use_cases.manage_plan import ManagePlan
from stepwise.domain.errors import PersistenceError, StateError, ToolExecutionError, ValidationError
from stepwise.domain.ports.tool_port import ToolExecutionContext, ToolPort, ToolResult
from stepwise.domain.value_objects import Capability, TaskKind, ToolCategory

OPERATIONS = [
    "create",
    "add_task",
    "update_plan",
    "update_task",
    "finalize",
    "status",
    "next_task",
    "start_task",
    "complete_task",
    "skip_task",
    "reflect",
    "record_tool_call",
    "summary",
]

_PLAN_FIELDS = ("title", "description", "context", "risks", "test_strategy", "technical_stack")


def _dump(payload: Any) -> str:
    return json.dumps(payload, indent=2, default=str)


class PlanTool(ToolPort):
    """Model-facing access to the session plan.

    Approval and rejection are human decisions and are not offered here.
    """

    name = "plan"
    description = (
        "Create and manage a structured task plan: create/add_task/update_plan/finalize "
        "while planning, next_task/start_task/complete_task/skip_task/reflect while "
        "executing, status/summary to inspect"
    )
    capabilities = frozenset({Capability.READ})
    category = ToolCategory.MULTI_OPERATION
    signature_field = "operation"
    signature_refinement = "title"

    def __init__(self, manager: ManagePlan):
        self.manager = manager

    @property
    def input_schema(self) -> dict[str, Any]:
        string_list = {"type": "array", "items": {"type": "string"}}
        return {
            "type": "object",
            "properties": {
                "operation": {"type": "string", "enum": OPERATIONS},
                "title": {"type": "string", "description": "Plan or task title"},
                "description": {"type": "string"},
                "context": {"type": "string", "description": "Context and assumptions"},
                "risks": string_list,
                "test_strategy": {"type": "string"},
                "technical_stack": string_list,
                "task_type": {"type": "string", "enum": [k.value for k in TaskKind]},
                "dependencies": {
                    "type": "array",
                    "items": {"type": "integer"},
                    "description": "Task order numbers that must complete first",
                },
                "complexity": {"type": "integer", "minimum": 1, "maximum": 5, "default": 3},
                "acceptance_criteria": string_list,
                "task_order": {"type": "integer", "minimum": 1},
                "success": {"type": "boolean", "default": True},
                "output": {"type": "string"},
                "artifacts": string_list,
                "reflection": {"type": "string"},
                "should_retry": {"type": "boolean", "default": False},
                "tool_name": {"type": "string"},
                "summary": {"type": "string"},
                "reason": {"type": "string"},
            },
            "required": ["operation"],
        }

    def validate_input(self, input: dict[str, Any]) -> None:
        super().validate_input(input)
        if input["operation"] not in OPERATIONS:
            raise ToolExecutionError(self.name, f"Unknown operation: {input['operation']}")

    @staticmethod
    def _int_field(input: dict[str, Any], field: str, default: int | None = None) -> int:
        value = input.get(field, default)
        if value is None:
            raise ToolExecutionError("plan", f"{field} is required for this operation")
        try:
            return int(value)
        except (TypeError, ValueError) as e:
            raise ToolExecutionError("plan", f"{field} must be an integer, got {value!r}") from e

    def _task_order(self, input: dict[str, Any]) -> int:
        return self._int_field(input, "task_order")

    async def execute(self, input: dict[str, Any], context: ToolExecutionContext) -> ToolResult:
        operation = input["operation"]
        try:
            payload = await self._dispatch(operation, input)
        except (ValidationError, StateError) as e:
            logger.info(f"[PLAN] {operation} rejected: {e}")
            details = e.to_dict() if isinstance(e, ValidationError) else {"error": "state"}
            return ToolResult(success=False, error=str(e), metadata=details)
        except PersistenceError as e:
            raise ToolExecutionError(self.name, f"Plan could not be saved: {e}") from e
        return ToolResult.ok(_dump(payload), operation=operation)

    async def _dispatch(self, operation: str, input: dict[str, Any]) -> Any:
        m = self.manager
        if operation == "create":
            plan = await m.create(
                input.get("title", ""),
                input.get("description", ""),
                context=input.get("context", ""),
                risks=input.get("risks"),
                test_strategy=input.get("test_strategy", ""),
                technical_stack=input.get("technical_stack"),
            )
            return {"plan_id": plan.id, "status": plan.status.value, "title": plan.title}
        if operation == "add_task":
            task_id = await m.add_task(
                input.get("title", ""),
                input.get("description", ""),
                kind=input.get("task_type"),
                dependencies=input.get("dependencies", []),
                complexity=self._int_field(input, "complexity", 3),
                criteria=input.get("acceptance_criteria"),
            )
            task = m.engine.get_task(task_id)
            return {"task_id": task_id, "task_order": task.order, "title": task.title}
        if operation == "update_plan":
            fields = {k: input[k] for k in _PLAN_FIELDS if k in input}
            plan = await m.update(**fields)
            return {"plan_id": plan.id, "updated": sorted(fields)}
        if operation == "update_task":
            fields = {
                key: input[src]
                for key, src in (
                    ("title", "title"),
                    ("description", "description"),
                    ("dependencies", "dependencies"),
                    ("criteria", "acceptance_criteria"),
                )
                if src in input
            }
            if "complexity" in input:
                fields["complexity"] = self._int_field(input, "complexity")
            task = await m.update_task(self._task_order(input), **fields)
            return {"task_order": task.order, "updated": sorted(fields)}
        if operation == "finalize":
            plan = await m.finalize()
            return {
                "status": plan.status.value,
                "tasks": len(plan.tasks),
                "message": "Plan submitted for approval",
            }
        if operation == "status":
            return m.status().model_dump(mode="json")
        if operation == "next_task":
            task = m.next_task()
            if task is None:
                return {"next_task": None}
            return {"next_task": task.model_dump(mode="json", exclude={"history", "tool_calls"})}
        if operation == "start_task":
            task = await m.start_task(self._task_order(input))
            return {"task_order": task.order, "status": str(task.status)}
        if operation == "complete_task":
            order = self._task_order(input)
            if input.get("success", True):
                task = await m.complete_task(order, input.get("output"), input.get("artifacts"))
            else:
                task = await m.fail_task(order, input.get("output") or "task failed")
            return {
                "task_order": task.order,
                "status": str(task.status),
                "retry_count": task.retry_count,
                "plan_status": m.plan.status.value,
            }
        if operation == "skip_task":
            task = await m.skip_task(self._task_order(input), input.get("reason", "skipped"))
            return {"task_order": task.order, "status": str(task.status)}
        if operation == "reflect":
            task = await m.reflect(
                self._task_order(input),
                input.get("reflection", ""),
                should_retry=bool(input.get("should_retry", False)),
            )
            return {"task_order": task.order, "status": str(task.status)}
        if operation == "record_tool_call":
            record = await m.record_tool_call(
                self._task_order(input),
                input.get("tool_name", "unknown"),
                input.get("summary", ""),
                success=bool(input.get("success", True)),
            )
            return record.model_dump(mode="json")
        return m.summary().model_dump(mode="json")
