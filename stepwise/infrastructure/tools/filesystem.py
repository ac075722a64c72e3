import asyncio
from typing import Any

import aiofiles

from stepwise.domain.errors import ToolExecutionError
from stepwise.domain.ports.tool_port import ToolExecutionContext, ToolPort, ToolResult
from stepwise.domain.value_objects import Capability, ToolCategory
from stepwise.infrastructure.persistence.atomic_io import atomic_write
from stepwise.infrastructure.tools._workspace import display_path, resolve_in_workspace

MAX_READ_LINES = 2000
MAX_LIST_ENTRIES = 500


class ListDirectoryTool(ToolPort):
    name = "ls"
    description = "List files and directories at a path inside the working directory"
    capabilities = frozenset({Capability.READ})
    category = ToolCategory.EXPLORATION
    signature_field = "path"

    @property
    def input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "path": {"type": "string", "description": "Directory to list", "default": "."},
            },
        }

    async def execute(self, input: dict[str, Any], context: ToolExecutionContext) -> ToolResult:
        path = resolve_in_workspace(self.name, context.working_dir, input.get("path", "."))
        if not path.is_dir():
            raise ToolExecutionError(self.name, f"Not a directory: {input.get('path', '.')}")

        entries = await asyncio.to_thread(lambda: sorted(path.iterdir()))
        lines = [f"{e.name}/" if e.is_dir() else e.name for e in entries[:MAX_LIST_ENTRIES]]
        if len(entries) > MAX_LIST_ENTRIES:
            lines.append(f"... and {len(entries) - MAX_LIST_ENTRIES} more")
        return ToolResult.ok("\n".join(lines), count=len(entries))


class ReadFileTool(ToolPort):
    name = "read_file"
    description = "Read a text file, optionally a window of lines"
    capabilities = frozenset({Capability.READ})
    category = ToolCategory.EXPLORATION
    signature_field = "file_path"

    @property
    def input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "file_path": {"type": "string"},
                "offset": {"type": "integer", "description": "First line, 1-based"},
                "limit": {"type": "integer", "description": "Number of lines"},
            },
            "required": ["file_path"],
        }

    async def execute(self, input: dict[str, Any], context: ToolExecutionContext) -> ToolResult:
        path = resolve_in_workspace(self.name, context.working_dir, input["file_path"])
        if not path.is_file():
            raise ToolExecutionError(self.name, f"File not found: {input['file_path']}")

        async with aiofiles.open(path, encoding="utf-8", errors="replace") as f:
            content = await f.read()

        lines = content.splitlines()
        offset = max(int(input.get("offset", 1)), 1)
        limit = int(input.get("limit", MAX_READ_LINES))
        window = lines[offset - 1 : offset - 1 + limit]
        numbered = "\n".join(f"{offset + i:6d}\t{line}" for i, line in enumerate(window))
        return ToolResult.ok(numbered, total_lines=len(lines))


class WriteFileTool(ToolPort):
    name = "write_file"
    description = "Create or overwrite a file with the given content"
    capabilities = frozenset({Capability.WRITE})
    category = ToolCategory.MUTATION
    signature_field = "file_path"

    @property
    def input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "file_path": {"type": "string"},
                "content": {"type": "string"},
            },
            "required": ["file_path", "content"],
        }

    async def execute(self, input: dict[str, Any], context: ToolExecutionContext) -> ToolResult:
        path = resolve_in_workspace(self.name, context.working_dir, input["file_path"])
        content = str(input["content"])
        await atomic_write(path, content)
        shown = display_path(context.working_dir, path)
        return ToolResult.ok(f"Wrote {len(content)} chars to {shown}", path=shown)


class EditFileTool(ToolPort):
    name = "edit_file"
    description = "Replace an exact string in a file"
    capabilities = frozenset({Capability.WRITE})
    category = ToolCategory.MUTATION
    signature_field = "file_path"

    @property
    def input_schema(self) -> dict[str, Any]:
        return {
            "type": "object",
            "properties": {
                "file_path": {"type": "string"},
                "old_string": {"type": "string"},
                "new_string": {"type": "string"},
                "replace_all": {"type": "boolean", "default": False},
            },
            "required": ["file_path", "old_string", "new_string"],
        }

    async def execute(self, input: dict[str, Any], context: ToolExecutionContext) -> ToolResult:
        path = resolve_in_workspace(self.name, context.working_dir, input["file_path"])
        if not path.is_file():
            raise ToolExecutionError(self.name, f"File not found: {input['file_path']}")

        try:
            async with aiofiles.open(path, encoding="utf-8") as f:
                content = await f.read()
        except UnicodeDecodeError as e:
            raise ToolExecutionError(
                self.name, f"File is not valid UTF-8 text: {input['file_path']}"
            ) from e

        old, new = str(input["old_string"]), str(input["new_string"])
        occurrences = content.count(old) if old else 0
        if occurrences == 0:
            raise ToolExecutionError(self.name, "old_string not found in file")
        if occurrences > 1 and not input.get("replace_all", False):
            raise ToolExecutionError(
                self.name,
                f"old_string occurs {occurrences} times; pass replace_all or add context",
            )

        replaced = occurrences if input.get("replace_all") else 1
        await atomic_write(path, content.replace(old, new, replaced))
        return ToolResult.ok(
            f"Replaced {replaced} occurrence(s) in {display_path(context.working_dir, path)}",
            replacements=replaced,
        )
