import asyncio
import os
import re
import signal
import time
from typing import Any

from loguru import logger

from stepwise.domain.errors import ToolExecutionError
from stepwise.domain.ports.tool_port import ToolExecutionContext, ToolPort, ToolResult
from stepwise.domain.value_objects import Capability, ToolCategory

MAX_OUTPUT_CHARS = 30_000

# Refused regardless of approval
ALWAYS_DANGEROUS = [
    r"rm\s+-rf\s+/(\s|$)",
    r"rm\s+-rf\s+~",
    r"git\s+reset\s+--hard",
    r"git\s+clean\s+-fdx",
    r"mkfs(\.\w+)?\s",
    r":\(\)\s*\{\s*:\|:&\s*\};:",
]


def is_always_dangerous(command: str) -> bool:
    return any(re.search(pattern, command) for pattern in ALWAYS_DANGEROUS)


def _kill_process_group(process: asyncio.subprocess.Process) -> None:
    try:
        # start_new_session makes the shell the group leader
        os.killpg(process.pid, signal.SIGKILL)
    except OSError:
        if process.returncode is None:
            process.kill()


def _truncate(text: str) -> str:
    if len(text) <= MAX_OUTPUT_CHARS:
        return text
    return text[:MAX_OUTPUT_CHARS] + f"\n... [truncated {len(text) - MAX_OUTPUT_CHARS} chars]"


class BashTool(ToolPort):
    name = "bash"
    description = "Run a shell command in the working directory"
    capabilities = frozenset({Capability.EXECUTE})
    category = ToolCategory.MUTATION
    signature_field = "command"

    @property
    def input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "command": {"type": "string"},
                "timeout_s": {"type": "number", "description": "Overrides the session timeout"},
            },
            "required": ["command"],
        }

    async def execute(self, input: dict[str, Any], context: ToolExecutionContext) -> ToolResult:
        command = str(input["command"])
        if is_always_dangerous(command):
            raise ToolExecutionError(self.name, f"Command refused: '{command}'")

        # The registry enforces the session timeout around the whole call
        timeout_s = min(float(input.get("timeout_s", context.timeout_s)), context.timeout_s)
        start = time.monotonic()
        process = await asyncio.create_subprocess_shell(
            command,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
            cwd=str(context.working_dir),
            env={**os.environ, **context.env} if context.env else None,
            start_new_session=True,
        )

        completed = False
        try:
            stdout, stderr = await asyncio.wait_for(process.communicate(), timeout=timeout_s)
            completed = True
        except TimeoutError as e:
            raise ToolExecutionError(
                self.name, f"Command timed out after {timeout_s:g}s: {command}"
            ) from e
        finally:
            # Also reached when the caller cancels us mid-command
            if not completed:
                _kill_process_group(process)
                await process.wait()
                logger.warning(f"[BASH] killed unfinished command: {command[:100]}")

        duration_ms = int((time.monotonic() - start) * 1000)
        exit_code = process.returncode or 0
        out = stdout.decode("utf-8", errors="replace")
        err = stderr.decode("utf-8", errors="replace")
        logger.debug(f"[BASH] exit={exit_code} in {duration_ms}ms: {command[:100]}")

        combined = out
        if err:
            combined = f"{out}\n[stderr]\n{err}" if out else err
        if exit_code != 0:
            return ToolResult(
                success=False,
                output=_truncate(combined),
                error=f"Exit code {exit_code}: {_truncate(err or out)[:500]}",
                metadata={"exit_code": exit_code, "duration_ms": duration_ms},
            )
        return ToolResult.ok(_truncate(combined), exit_code=0, duration_ms=duration_ms)
