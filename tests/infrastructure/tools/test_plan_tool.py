"""Tests for the model-facing plan tool."""

import json
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

from stepwise.application.services.plan_engine import PlanEngine
from stepwise.application.use_cases.manage_plan import ManagePlan
from stepwise.domain.errors import PersistenceError, ToolExecutionError
from stepwise.domain.ports.tool_port import ToolExecutionContext
from stepwise.domain.value_objects import PlanStatus, TaskStatusKind
from stepwise.infrastructure.tools import PlanTool


@pytest.fixture
async def manager(session_id, memory_repo, clock) -> ManagePlan:
    return await ManagePlan.open(session_id, memory_repo, clock)


@pytest.fixture
def tool(manager) -> PlanTool:
    return PlanTool(manager)


@pytest.fixture
def context(tmp_path: Path, session_id) -> ToolExecutionContext:
    return ToolExecutionContext(session_id=session_id, working_dir=tmp_path)


async def run(tool: PlanTool, context, /, **input):
    result = await tool.execute(input, context)
    return result, json.loads(result.output) if result.success else None


async def build_plan(tool, context):
    await run(tool, context, operation="create", title="Release", description="Cut a release")
    await run(tool, context, operation="add_task", title="Bump version")
    await run(tool, context, operation="add_task", title="Tag", dependencies=[1])
    await run(tool, context, operation="finalize")


async def test_create_and_add(tool, context):
    result, payload = await run(
        tool, context, operation="create", title="Release", risks=["flaky CI"]
    )
    assert result.success
    assert payload["status"] == "draft"

    _, task = await run(
        tool, context, operation="add_task", title="Bump", task_type="build"
    )
    assert task["task_order"] == 1


async def test_validation_error_returned_as_failed_result(tool, context):
    await run(tool, context, operation="create", title="Release")

    result, _ = await run(tool, context, operation="add_task", title="Tag", dependencies=[5])

    assert not result.success
    assert result.metadata["code"] == "unknown_dependency"


async def test_state_error_returned_as_failed_result(tool, context):
    result, _ = await run(tool, context, operation="finalize")
    assert not result.success
    assert result.metadata == {"error": "state"}


async def test_plan_tool_cannot_approve(tool, context, manager):
    await build_plan(tool, context)
    assert "approve" not in tool.input_schema["properties"]["operation"]["enum"]
    with pytest.raises(ToolExecutionError, match="Unknown operation"):
        tool.validate_input({"operation": "approve"})
    assert manager.plan.status == PlanStatus.PENDING_APPROVAL


async def test_execution_flow(tool, context, manager):
    await build_plan(tool, context)
    await manager.approve()

    _, nxt = await run(tool, context, operation="next_task")
    assert nxt["next_task"]["title"] == "Bump version"

    await run(tool, context, operation="start_task", task_order=1)
    _, done = await run(tool, context, operation="complete_task", task_order=1, output="1.2.0")
    assert done["status"] == "completed"

    _, failed = await run(
        tool, context, operation="complete_task", task_order=2, success=False
    )
    assert not failed

    await run(tool, context, operation="start_task", task_order=2)
    _, failed = await run(
        tool, context, operation="complete_task", task_order=2, success=False, output="no perms"
    )
    assert failed["status"] == "failed"
    assert failed["retry_count"] == 1

    _, reflected = await run(
        tool,
        context,
        operation="reflect",
        task_order=2,
        reflection="use the deploy key",
        should_retry=True,
    )
    assert reflected["status"] == "pending"

    _, status = await run(tool, context, operation="status")
    assert status["next_task"] == "#2 Tag"


async def test_task_order_required(tool, context):
    with pytest.raises(ToolExecutionError, match="task_order"):
        await tool.execute({"operation": "start_task"}, context)


async def test_non_integer_fields_rejected(tool, context, manager):
    await run(tool, context, operation="create", title="Release")

    with pytest.raises(ToolExecutionError, match="complexity must be an integer"):
        await tool.execute({"operation": "add_task", "title": "Tag", "complexity": "high"}, context)
    with pytest.raises(ToolExecutionError, match="task_order must be an integer"):
        await tool.execute({"operation": "update_task", "task_order": "x"}, context)

    assert manager.plan.tasks == []


async def test_record_and_summary(tool, context, manager):
    await build_plan(tool, context)
    await manager.approve()
    await run(tool, context, operation="start_task", task_order=1)

    _, record = await run(
        tool, context, operation="record_tool_call", task_order=1, tool_name="bash", summary="make"
    )
    assert record["tool_name"] == "bash"

    await run(tool, context, operation="skip_task", task_order=2, reason="tag later")
    _, summary = await run(tool, context, operation="summary")
    assert summary["total_tool_calls"] == 1
    assert summary["skipped"] == 1
    assert manager.plan.get_task_by_order(2).status.kind == TaskStatusKind.SKIPPED


async def test_update_operations(tool, context, manager):
    await run(tool, context, operation="create", title="Release")
    await run(tool, context, operation="add_task", title="Bump")
    _, updated = await run(tool, context, operation="update_plan", context="monorepo")
    assert updated["updated"] == ["context"]

    _, task = await run(
        tool, context, operation="update_task", task_order=1, complexity=9, title="Bump!"
    )
    assert task["updated"] == ["complexity", "title"]
    assert manager.plan.tasks[0].complexity == 5


async def test_persistence_failure_raises(session_id, clock, context):
    repo = AsyncMock()
    repo.save.side_effect = PersistenceError("mismatch")
    tool = PlanTool(ManagePlan(PlanEngine(session_id, clock=clock), repo))

    with pytest.raises(ToolExecutionError, match="could not be saved"):
        await tool.execute({"operation": "create", "title": "Release"}, context)
