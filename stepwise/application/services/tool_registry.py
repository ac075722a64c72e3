import asyncio
from collections.abc import Iterable
from typing import Any

from loguru import logger

from stepwise.domain.entities.conversation import ToolDefinition
from stepwise.domain.errors import ToolExecutionError
from stepwise.domain.ports.tool_port import ToolExecutionContext, ToolPort, ToolResult


class ToolRegistry:
    """Tools available to one session.

    Constructed explicitly and handed to the orchestrator; there is no
    process-wide registry.
    """

    def __init__(self, tools: Iterable[ToolPort] = ()):
        self._tools: dict[str, ToolPort] = {}
        for tool in tools:
            self.register(tool)

    def register(self, tool: ToolPort) -> None:
        if tool.name in self._tools:
            raise ValueError(f"Tool already registered: {tool.name}")
        self._tools[tool.name] = tool
        logger.debug(f"Registered tool: {tool.name}")

    def get(self, name: str) -> ToolPort | None:
        return self._tools.get(name)

    def has_tool(self, name: str) -> bool:
        return name in self._tools

    def list_tools(self) -> list[str]:
        return sorted(self._tools)

    def definitions(self) -> list[ToolDefinition]:
        return [self._tools[name].definition() for name in self.list_tools()]

    async def execute(
        self,
        name: str,
        input: dict[str, Any],
        context: ToolExecutionContext,
    ) -> ToolResult:
        """Validate and run a tool under the context's timeout.

        Raises:
            ToolExecutionError: Unknown tool, read-only violation, invalid
                input, timeout, or a failure inside the tool.
        """
        tool = self.get(name)
        if tool is None:
            raise ToolExecutionError(name, "Tool not found")
        if context.read_only and tool.requires_approval:
            raise ToolExecutionError(
                name, "Tool modifies the system and is unavailable in read-only mode"
            )
        tool.validate_input(input)

        try:
            return await asyncio.wait_for(tool.execute(input, context), timeout=context.timeout_s)
        except TimeoutError as e:
            raise ToolExecutionError(name, f"Timed out after {context.timeout_s:g}s") from e
        except ToolExecutionError:
            raise
        except OSError as e:
            raise ToolExecutionError(name, str(e)) from e
        except Exception as e:
            logger.warning(f"Tool {name} failed with {type(e).__name__}: {e}")
            raise ToolExecutionError(name, f"{type(e).__name__}: {e}") from e
