from rich.table import Table
from rich.text import Text

from stepwise.application.services.plan_engine import PlanSummary
from stepwise.cli.theme import theme
from stepwise.domain.entities.plan import Plan
from stepwise.domain.value_objects import PlanStatus, TaskStatus, TaskStatusKind

TASK_STATUS_ICONS: dict[TaskStatusKind, str] = {
    TaskStatusKind.PENDING: "○",
    TaskStatusKind.IN_PROGRESS: "⟳",
    TaskStatusKind.COMPLETED: "✓",
    TaskStatusKind.SKIPPED: "↷",
    TaskStatusKind.FAILED: "✗",
    TaskStatusKind.BLOCKED: "⊘",
}

_TASK_STYLES: dict[TaskStatusKind, str] = {
    TaskStatusKind.PENDING: theme.STATUS_PENDING,
    TaskStatusKind.IN_PROGRESS: theme.STATUS_ACTIVE,
    TaskStatusKind.COMPLETED: theme.STATUS_DONE,
    TaskStatusKind.SKIPPED: theme.STATUS_SKIPPED,
    TaskStatusKind.FAILED: theme.STATUS_FAILED,
    TaskStatusKind.BLOCKED: theme.STATUS_BLOCKED,
}


def task_status_style(status: TaskStatus) -> str:
    return _TASK_STYLES[status.kind]


def plan_status_style(status: PlanStatus) -> str:
    if status == PlanStatus.COMPLETED:
        return theme.STATUS_DONE
    if status in (PlanStatus.REJECTED, PlanStatus.CANCELLED):
        return theme.STATUS_FAILED
    if status == PlanStatus.IN_PROGRESS:
        return theme.STATUS_ACTIVE
    return theme.INFO


def format_plan_table(plan: Plan) -> Table:
    """Render a plan's tasks in order with status and dependencies."""
    title = Text.assemble(
        (plan.title, theme.HEADER),
        "  ",
        (plan.status.value, plan_status_style(plan.status)),
    )
    table = Table(title=title, title_justify="left")
    table.add_column("#", style=theme.INFO, justify="right")
    table.add_column("Task")
    table.add_column("Kind", style=theme.DIM)
    table.add_column("Deps", style=theme.DIM)
    table.add_column("Cx", justify="right")
    table.add_column("Status")

    orders = {t.id: t.order for t in plan.tasks}
    for task in plan.tasks:
        deps = ", ".join(f"#{orders[d]}" for d in task.dependencies if d in orders) or "-"
        icon = TASK_STATUS_ICONS[task.status.kind]
        table.add_row(
            str(task.order),
            task.title,
            task.kind.value,
            deps,
            str(task.complexity),
            Text(f"{icon} {task.status}", style=task_status_style(task.status)),
        )
    return table


def format_summary(summary: PlanSummary) -> str:
    return (
        f"{summary.completed}/{summary.total} completed "
        f"({summary.progress_percentage:.0f}%), "
        f"{summary.failed} failed, {summary.skipped} skipped, {summary.pending} pending"
        + (f", {summary.blocked} blocked" if summary.blocked else "")
        + f" | retries: {summary.total_retries}, tool calls: {summary.total_tool_calls}"
    )
