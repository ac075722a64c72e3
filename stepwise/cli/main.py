import sys
from pathlib import Path

import typer
from loguru import logger

from stepwise.cli.commands import plan, run


def setup_logging(verbose: bool = False, log_file: Path | None = None) -> None:
    """Configure loguru logging."""
    logger.remove()

    file_path = log_file or Path("stepwise.log")
    logger.add(
        file_path,
        format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {name}:{function}:{line} - {message}",
        level="DEBUG",
        rotation="10 MB",
        encoding="utf-8",
    )

    if verbose:
        logger.add(
            sys.stderr,
            format="{time:HH:mm:ss} | {level: <8} | {message}",
            level="DEBUG",
        )


app = typer.Typer(
    name="stepwise",
    help="Stepwise - plan-driven assistant with approval-gated tools",
    no_args_is_help=True,
)

app.command(name="run")(run.run_session)

# Plan subcommand group
plan_app = typer.Typer(help="Plan management commands")
plan_app.command(name="show")(plan.show_plan)
plan_app.command(name="list")(plan.list_plans)
plan_app.command(name="approve")(plan.approve_plan)
plan_app.command(name="reject")(plan.reject_plan)
plan_app.command(name="cancel")(plan.cancel_plan)
app.add_typer(plan_app, name="plan")


@app.callback()
def main(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output", is_eager=True),
    log_file: Path | None = typer.Option(None, "--log-file", help="Log file path"),
) -> None:
    """Stepwise - plan-driven assistant with approval-gated tools."""
    setup_logging(verbose=verbose, log_file=log_file)


if __name__ == "__main__":
    app()
