import asyncio
from collections.abc import Awaitable, Callable
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from stepwise.application.use_cases.manage_plan import ManagePlan
from stepwise.cli.commands._session import resolve_session_id
from stepwise.cli.formatters.plan_formatter import (
    format_plan_table,
    format_summary,
    plan_status_style,
)
from stepwise.cli.theme import theme
from stepwise.domain.errors import StepwiseError
from stepwise.infrastructure.persistence.json_plan_repo import JsonPlanRepo

console = Console()

STATE_DIR_OPTION = typer.Option(None, "--state-dir", help="State directory")


def _state_dir(state_dir: Path | None) -> Path:
    return state_dir or Path.cwd() / ".stepwise"


async def _open(session: str, state_dir: Path | None) -> ManagePlan:
    repo = JsonPlanRepo(_state_dir(state_dir))
    session_id = await resolve_session_id(session, repo, console)
    if session_id is None:
        raise typer.Exit(1)
    manager = await ManagePlan.open(session_id, repo)
    if not manager.engine.has_plan:
        console.print(f"[{theme.ERROR_BOLD}]No plan for session:[/] {session_id}")
        raise typer.Exit(1)
    return manager


def _run(action: Callable[[], Awaitable[None]]) -> None:
    try:
        asyncio.run(action())
    except StepwiseError as e:
        console.print(f"[{theme.ERROR_BOLD}]Error:[/] {e}")
        raise typer.Exit(1) from e


def show_plan(
    session: str = typer.Argument(..., help="Session ID (full or short prefix)"),
    state_dir: Path | None = STATE_DIR_OPTION,
) -> None:
    """Show a session's plan."""

    async def _show() -> None:
        manager = await _open(session, state_dir)
        plan = manager.plan
        console.print(format_plan_table(plan))
        if plan.description:
            console.print(f"[{theme.DIM}]{plan.description}[/]")
        for risk in plan.risks:
            console.print(f"[{theme.WARNING}]Risk:[/] {risk}")
        console.print(format_summary(manager.summary()))

    _run(_show)


def list_plans(state_dir: Path | None = STATE_DIR_OPTION) -> None:
    """List stored plans."""

    async def _list() -> None:
        repo = JsonPlanRepo(_state_dir(state_dir))
        session_ids = await repo.list_sessions()
        if not session_ids:
            console.print(f"[{theme.DIM}]No plans found[/]")
            return

        table = Table(title="Plans")
        table.add_column("Session", style=theme.INFO)
        table.add_column("Title")
        table.add_column("Tasks", justify="right")
        table.add_column("Status")
        for sid in session_ids:
            plan = await repo.load(sid)
            if plan:
                table.add_row(
                    sid.hex[:8],
                    plan.title[:50],
                    str(len(plan.tasks)),
                    f"[{plan_status_style(plan.status)}]{plan.status.value}[/]",
                )
        console.print(table)

    _run(_list)


def approve_plan(
    session: str = typer.Argument(..., help="Session ID (full or short prefix)"),
    state_dir: Path | None = STATE_DIR_OPTION,
) -> None:
    """Approve a plan awaiting approval."""

    async def _approve() -> None:
        manager = await _open(session, state_dir)
        plan = await manager.approve()
        console.print(f"[{theme.SUCCESS_BOLD}]Approved:[/] {plan.title} ({plan.status.value})")

    _run(_approve)


def reject_plan(
    session: str = typer.Argument(..., help="Session ID (full or short prefix)"),
    reason: str | None = typer.Option(None, "--reason", "-r", help="Why the plan was rejected"),
    state_dir: Path | None = STATE_DIR_OPTION,
) -> None:
    """Reject a plan awaiting approval."""

    async def _reject() -> None:
        manager = await _open(session, state_dir)
        plan = await manager.reject(reason)
        console.print(f"[{theme.WARNING_BOLD}]Rejected:[/] {plan.title}")

    _run(_reject)


def cancel_plan(
    session: str = typer.Argument(..., help="Session ID (full or short prefix)"),
    state_dir: Path | None = STATE_DIR_OPTION,
) -> None:
    """Cancel a plan that has not finished."""

    async def _cancel() -> None:
        manager = await _open(session, state_dir)
        plan = await manager.cancel("cancelled from CLI")
        console.print(f"[{theme.WARNING_BOLD}]Cancelled:[/] {plan.title}")

    _run(_cancel)
