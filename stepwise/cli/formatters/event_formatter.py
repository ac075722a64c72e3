from rich.text import Text

from stepwise.application.dto.loop_result import LoopEvent
from stepwise.cli.theme import theme

# Display verbs for bundled tools
TOOL_OPERATIONS: dict[str, str] = {
    "bash": "Run",
    "read_file": "Read",
    "write_file": "Write",
    "edit_file": "Update",
    "ls": "List",
    "glob": "Search",
    "grep": "Search",
    "http_fetch": "Fetch",
    "plan": "Plan",
}


def _truncate(text: str, max_len: int) -> str:
    if len(text) <= max_len:
        return text
    return text[: max_len - 3] + "..."


def format_event(event: LoopEvent) -> Text | None:
    """Render a loop event as one line, or None for events not shown."""
    if event.kind == "tool_call":
        operation = TOOL_OPERATIONS.get(event.tool_name or "", event.tool_name or "Tool")
        return Text.assemble(
            ("● ", theme.TOOL_OPERATION),
            (operation, theme.TOOL_OPERATION),
            (f"({_truncate(event.content, 80)})", theme.TOOL_ARGS),
        )
    if event.kind == "tool_result" and event.is_error:
        return Text(f"  ⎿ {_truncate(event.content, 200)}", style=theme.ERROR)
    if event.kind == "denied":
        return Text(f"  ⎿ {event.tool_name}: {event.content}", style=theme.WARNING)
    if event.kind == "diagnostic":
        return Text(event.content, style=theme.WARNING_BOLD)
    if event.kind == "text":
        return Text(event.content)
    return None
