import asyncio
import re
from pathlib import Path
from typing import Any

from stepwise.domain.errors import ToolExecutionError
from stepwise.domain.ports.tool_port import ToolExecutionContext, ToolPort, ToolResult
from stepwise.domain.value_objects import Capability, ToolCategory
from stepwise.infrastructure.tools._workspace import display_path, resolve_in_workspace

MAX_MATCHES = 200
SKIPPED_DIRS = frozenset({".git", ".stepwise", "__pycache__", "node_modules", ".venv"})


def _visible(path: Path, root: Path) -> bool:
    return not any(part in SKIPPED_DIRS for part in path.relative_to(root).parts)


class GlobTool(ToolPort):
    name = "glob"
    description = "Find files matching a glob pattern"
    capabilities = frozenset({Capability.READ})
    category = ToolCategory.EXPLORATION
    signature_field = "pattern"

    @property
    def input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "pattern": {"type": "string", "description": "e.g. **/*.py"},
                "path": {"type": "string", "default": "."},
            },
            "required": ["pattern"],
        }

    async def execute(self, input: dict[str, Any], context: ToolExecutionContext) -> ToolResult:
        root = resolve_in_workspace(self.name, context.working_dir, input.get("path", "."))
        pattern = str(input["pattern"])

        def _find() -> list[Path]:
            return sorted(p for p in root.glob(pattern) if p.is_file() and _visible(p, root))

        matches = await asyncio.to_thread(_find)
        lines = [display_path(context.working_dir, p) for p in matches[:MAX_MATCHES]]
        if len(matches) > MAX_MATCHES:
            lines.append(f"... and {len(matches) - MAX_MATCHES} more")
        return ToolResult.ok("\n".join(lines) or "No files found", count=len(matches))


class GrepTool(ToolPort):
    name = "grep"
    description = "Search file contents with a regular expression"
    capabilities = frozenset({Capability.READ})
    category = ToolCategory.EXPLORATION
    signature_field = "pattern"
    signature_refinement = "path"

    @property
    def input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "pattern": {"type": "string"},
                "path": {"type": "string", "default": "."},
                "glob": {"type": "string", "default": "**/*"},
                "ignore_case": {"type": "boolean", "default": False},
            },
            "required": ["pattern"],
        }

    async def execute(self, input: dict[str, Any], context: ToolExecutionContext) -> ToolResult:
        root = resolve_in_workspace(self.name, context.working_dir, input.get("path", "."))
        flags = re.IGNORECASE if input.get("ignore_case") else 0
        try:
            regex = re.compile(str(input["pattern"]), flags)
        except re.error as e:
            raise ToolExecutionError(self.name, f"Invalid pattern: {e}") from e

        def _search() -> list[str]:
            hits: list[str] = []
            files = [root] if root.is_file() else sorted(root.glob(input.get("glob", "**/*")))
            for path in files:
                if not path.is_file() or (path != root and not _visible(path, root)):
                    continue
                try:
                    text = path.read_text(encoding="utf-8")
                except (UnicodeDecodeError, OSError):
                    continue
                for number, line in enumerate(text.splitlines(), start=1):
                    if regex.search(line):
                        hits.append(f"{display_path(context.working_dir, path)}:{number}:{line}")
                        if len(hits) >= MAX_MATCHES:
                            return hits
            return hits

        hits = await asyncio.to_thread(_search)
        return ToolResult.ok("\n".join(hits) or "No matches", count=len(hits))
