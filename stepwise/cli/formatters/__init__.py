from stepwise.cli.formatters.event_formatter import format_event
from stepwise.cli.formatters.plan_formatter import (
    format_plan_table,
    format_summary,
    task_status_style,
)

__all__ = ["format_event", "format_plan_table", "format_summary", "task_status_style"]
