from stepwise.application.use_cases.manage_plan import ManagePlan
from stepwise.domain.ports.tool_port import ToolPort
from stepwise.infrastructure.tools.filesystem import (
    EditFileTool,
    ListDirectoryTool,
    ReadFileTool,
    WriteFileTool,
)
from stepwise.infrastructure.tools.http_fetch import HttpFetchTool
from stepwise.infrastructure.tools.plan_tool import PlanTool
from stepwise.infrastructure.tools.search import GlobTool, GrepTool
from stepwise.infrastructure.tools.shell import BashTool


def default_tools(manager: ManagePlan | None = None, network: bool = True) -> list[ToolPort]:
    """Bundled tool set; the plan tool is included when a plan manager is given."""
    tools: list[ToolPort] = [
        ListDirectoryTool(),
        ReadFileTool(),
        GlobTool(),
        GrepTool(),
        WriteFileTool(),
        EditFileTool(),
        BashTool(),
    ]
    if network:
        tools.append(HttpFetchTool())
    if manager is not None:
        tools.append(PlanTool(manager))
    return tools


__all__ = [
    "BashTool",
    "EditFileTool",
    "GlobTool",
    "GrepTool",
    "HttpFetchTool",
    "ListDirectoryTool",
    "PlanTool",
    "ReadFileTool",
    "WriteFileTool",
    "default_tools",
]
