from uuid import UUID

from rich.console import Console

from stepwise.cli.theme import theme
from stepwise.infrastructure.persistence.json_plan_repo import JsonPlanRepo


async def resolve_session_id(session_str: str, repo: JsonPlanRepo, console: Console) -> UUID | None:
    """Resolve a session ID string to a full UUID.

    Supports both full UUIDs and short prefixes (minimum 4 characters).
    Returns None if not found or ambiguous.
    """
    try:
        return UUID(session_str)
    except ValueError:
        pass

    prefix = session_str.lower().replace("-", "")
    if len(prefix) < 4:
        console.print(f"[{theme.ERROR}]Session ID prefix must be at least 4 characters[/]")
        return None

    session_ids = await repo.list_sessions()
    matches = [sid for sid in session_ids if sid.hex.startswith(prefix)]

    if not matches:
        console.print(f"[{theme.ERROR}]No plan found for session prefix: {prefix}[/]")
        return None
    if len(matches) > 1:
        console.print(
            f"[{theme.ERROR}]Ambiguous prefix '{prefix}' matches {len(matches)} sessions:[/]"
        )
        for m in matches[:5]:
            console.print(f"  [{theme.DIM}]{m}[/]")
        return None
    return matches[0]
