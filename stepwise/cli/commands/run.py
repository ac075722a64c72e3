import asyncio
import contextlib
import signal
from datetime import timedelta
from pathlib import Path
from uuid import UUID, uuid4

import typer
from loguru import logger
from rich.console import Console
from rich.panel import Panel

from stepwise.application.dto.loop_result import LoopEvent, LoopOutcome, LoopResult
from stepwise.application.dto.session_config import CONFIG_FILE_NAME, SessionConfig
from stepwise.application.orchestrator import Orchestrator
from stepwise.application.services.approval_gate import ApprovalGate
from stepwise.application.services.tool_registry import ToolRegistry
from stepwise.application.use_cases.manage_plan import ManagePlan
from stepwise.cli.approval_prompt import ConsoleApprovalHandler
from stepwise.cli.formatters.event_formatter import format_event
from stepwise.cli.formatters.plan_formatter import format_plan_table, format_summary
from stepwise.cli.theme import theme
from stepwise.domain.errors import StepwiseError
from stepwise.domain.value_objects import ApprovalPolicy
from stepwise.infrastructure.persistence.json_plan_repo import JsonPlanRepo
from stepwise.infrastructure.providers.scripted_provider import ScriptedProvider
from stepwise.infrastructure.tools import default_tools

console = Console()

_OUTCOME_BORDERS = {
    LoopOutcome.COMPLETED: theme.BORDER_INFO,
    LoopOutcome.LOOP_DETECTED: theme.BORDER_WARNING,
    LoopOutcome.CEILING_REACHED: theme.BORDER_WARNING,
    LoopOutcome.CANCELLED: theme.BORDER_ERROR,
}


def run_session(
    prompt: str = typer.Argument(..., help="What the assistant should do"),
    script: Path = typer.Option(..., "--script", "-s", help="Provider script (JSON)"),
    auto_approve: bool = typer.Option(
        False, "--auto-approve", "-y", help="Run dangerous tools without asking"
    ),
    max_iterations: int | None = typer.Option(None, "--max-iterations", help="Tool round limit"),
    read_only: bool = typer.Option(False, "--read-only", help="Refuse tools that modify anything"),
    stream: bool = typer.Option(False, "--stream", help="Use the streaming provider API"),
    session: str | None = typer.Option(None, "--session", help="Continue an existing session"),
    workdir: Path | None = typer.Option(None, "--workdir", "-w", help="Working directory"),
    state_dir: Path | None = typer.Option(None, "--state-dir", help="State directory"),
    config_file: Path | None = typer.Option(None, "--config", help="Config file (JSON)"),
) -> None:
    """Run an assistant session against a scripted provider."""
    working_dir = (workdir or Path.cwd()).resolve()
    config = SessionConfig.load(
        config_file or (state_dir or working_dir / ".stepwise") / CONFIG_FILE_NAME,
        working_dir=working_dir,
        state_dir=state_dir,
        auto_approve=auto_approve or None,
        max_iterations=max_iterations,
        read_only=read_only or None,
        stream=stream or None,
    )
    session_id = UUID(session) if session else uuid4()

    try:
        result = asyncio.run(_run(prompt, script, config, session_id))
    except StepwiseError as e:
        console.print(f"[{theme.ERROR_BOLD}]Error:[/] {e}")
        raise typer.Exit(1) from e

    if result.outcome != LoopOutcome.COMPLETED:
        raise typer.Exit(2)


def _print_event(event: LoopEvent) -> None:
    rendered = format_event(event)
    if rendered is not None:
        console.print(rendered)


async def _run(prompt: str, script: Path, config: SessionConfig, session_id: UUID) -> LoopResult:
    repo = JsonPlanRepo(config.resolved_state_dir)
    manager = await ManagePlan.open(session_id, repo)
    registry = ToolRegistry(default_tools(manager))
    gate = ApprovalGate(
        policy=ApprovalPolicy.AUTO_APPROVE if config.auto_approve else ApprovalPolicy.ASK,
        handler=ConsoleApprovalHandler(console),
        window=timedelta(seconds=config.approval_window_s),
    )
    orchestrator = Orchestrator(
        provider=ScriptedProvider.from_file(script),
        registry=registry,
        approval_gate=gate,
        config=config,
        plan=manager,
        session_id=session_id,
        on_event=_print_event,
    )

    cancel_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    with contextlib.suppress(NotImplementedError):
        loop.add_signal_handler(signal.SIGINT, cancel_event.set)

    logger.info(f"Starting session {session_id}: {prompt[:100]}")
    console.print(f"[{theme.DIM}]Session {session_id}[/]")
    try:
        result = await orchestrator.run(prompt, cancel_event=cancel_event)
    finally:
        with contextlib.suppress(NotImplementedError):
            loop.remove_signal_handler(signal.SIGINT)

    console.print(
        Panel(
            result.text or "(no response)",
            title=f"{result.outcome.value} after {result.iterations} iterations",
            border_style=_OUTCOME_BORDERS[result.outcome],
        )
    )
    if result.diagnostic and result.outcome != LoopOutcome.COMPLETED:
        console.print(f"[{theme.WARNING}]{result.diagnostic}[/]")
    if manager.engine.has_plan:
        console.print(format_plan_table(manager.plan))
        console.print(format_summary(manager.summary()))
    console.print(
        f"[{theme.DIM}]tokens: {result.usage.input_tokens} in / {result.usage.output_tokens} out[/]"
    )
    return result
