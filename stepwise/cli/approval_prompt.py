import asyncio
import json

from rich.console import Console
from rich.panel import Panel
from rich.prompt import Confirm
from rich.text import Text

from stepwise.cli.theme import theme
from stepwise.domain.entities.approval_request import ApprovalRequest
from stepwise.domain.value_objects import DANGEROUS_CAPABILITIES


def render_request(request: ApprovalRequest) -> Panel:
    body = Text()
    body.append(f"{request.description}\n\n")
    body.append("Capabilities: ")
    for i, capability in enumerate(sorted(request.capabilities, key=lambda c: c.value)):
        style = (
            theme.CAPABILITY_DANGEROUS
            if capability in DANGEROUS_CAPABILITIES
            else theme.CAPABILITY_SAFE
        )
        body.append(("" if i == 0 else ", ") + capability.value, style=style)
    body.append("\n\n")
    body.append(json.dumps(request.input, indent=2, default=str)[:2000], style=theme.DIM)
    body.append(
        f"\n\nAuto-deny in {int(request.window.total_seconds())}s", style=theme.DIM_ITALIC
    )
    return Panel(
        body,
        title=f"Approve {request.tool_name}?",
        border_style=theme.BORDER_WARNING,
    )


class ConsoleApprovalHandler:
    """Asks the user on the terminal; the gate bounds the wait.

    A blocking stdin read cannot be cancelled. When the gate gives up on a
    prompt, its reader thread keeps waiting for a line, so the next request
    first waits for that line and discards it instead of racing it for input.
    """

    def __init__(self, console: Console):
        self.console = console
        self._stale: asyncio.Future[bool] | None = None

    async def __call__(self, request: ApprovalRequest) -> bool:
        if self._stale is not None and not self._stale.done():
            self.console.print(f"[{theme.DIM}]Press Enter to dismiss the expired prompt[/]")
            await asyncio.wait([self._stale])
        self._stale = None

        self.console.print(render_request(request))
        answer = asyncio.ensure_future(
            asyncio.to_thread(
                Confirm.ask, f"[{theme.PROMPT}]Allow this call?[/]", console=self.console
            )
        )
        try:
            return await asyncio.shield(answer)
        except asyncio.CancelledError:
            self._stale = answer
            self.console.print(
                f"\n[{theme.WARNING}]Approval window elapsed, so {request.tool_name} was denied. "
                "The next line you type is ignored.[/]"
            )
            raise
