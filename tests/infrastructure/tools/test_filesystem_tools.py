"""Tests for the bundled filesystem and search tools."""

from pathlib import Path

import pytest

from stepwise.domain.errors import ToolExecutionError
from stepwise.domain.ports.tool_port import ToolExecutionContext
from stepwise.infrastructure.tools import (
    EditFileTool,
    GlobTool,
    GrepTool,
    ListDirectoryTool,
    ReadFileTool,
    WriteFileTool,
)
from stepwise.infrastructure.tools._workspace import resolve_in_workspace


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    (tmp_path / "src").mkdir()
    (tmp_path / "src" / "app.py").write_text("import os\n\ndef main():\n    return 1\n")
    (tmp_path / "src" / "util.py").write_text("def helper():\n    return 'main'\n")
    (tmp_path / "README.md").write_text("# Demo\n")
    (tmp_path / ".git").mkdir()
    (tmp_path / ".git" / "config.py").write_text("main = True\n")
    return tmp_path


@pytest.fixture
def context(workspace: Path) -> ToolExecutionContext:
    return ToolExecutionContext(working_dir=workspace)


class TestWorkspace:
    def test_relative_path_resolved(self, workspace):
        resolved = resolve_in_workspace("t", workspace, "src/app.py")
        assert resolved == workspace.resolve() / "src" / "app.py"

    def test_escape_rejected(self, workspace):
        with pytest.raises(ToolExecutionError, match="outside the working directory"):
            resolve_in_workspace("t", workspace, "../etc/passwd")

    def test_absolute_outside_rejected(self, workspace):
        with pytest.raises(ToolExecutionError):
            resolve_in_workspace("t", workspace, "/etc/passwd")

    def test_root_itself_allowed(self, workspace):
        assert resolve_in_workspace("t", workspace, ".") == workspace.resolve()


class TestListDirectory:
    async def test_lists_entries(self, context):
        result = await ListDirectoryTool().execute({}, context)
        lines = result.output.splitlines()
        assert "src/" in lines
        assert "README.md" in lines

    async def test_not_a_directory(self, context):
        with pytest.raises(ToolExecutionError, match="Not a directory"):
            await ListDirectoryTool().execute({"path": "README.md"}, context)


class TestReadFile:
    async def test_numbered_lines(self, context):
        result = await ReadFileTool().execute({"file_path": "src/app.py"}, context)
        assert result.success
        assert result.output.splitlines()[0] == "     1\timport os"
        assert result.metadata["total_lines"] == 4

    async def test_window(self, context):
        result = await ReadFileTool().execute(
            {"file_path": "src/app.py", "offset": 3, "limit": 1}, context
        )
        assert result.output == "     3\tdef main():"

    async def test_missing_file(self, context):
        with pytest.raises(ToolExecutionError, match="File not found"):
            await ReadFileTool().execute({"file_path": "nope.py"}, context)


class TestWriteAndEdit:
    async def test_write_creates_parents(self, context, workspace):
        result = await WriteFileTool().execute(
            {"file_path": "docs/notes.md", "content": "hello"}, context
        )
        assert result.success
        assert (workspace / "docs" / "notes.md").read_text() == "hello"
        assert result.metadata["path"] == "docs/notes.md"

    async def test_edit_single_occurrence(self, context, workspace):
        await EditFileTool().execute(
            {"file_path": "src/app.py", "old_string": "return 1", "new_string": "return 2"},
            context,
        )
        assert "return 2" in (workspace / "src" / "app.py").read_text()

    async def test_edit_ambiguous_requires_replace_all(self, context, workspace):
        target = workspace / "dup.txt"
        target.write_text("x x x")
        tool = EditFileTool()
        with pytest.raises(ToolExecutionError, match="occurs 3 times"):
            await tool.execute(
                {"file_path": "dup.txt", "old_string": "x", "new_string": "y"}, context
            )

        result = await tool.execute(
            {"file_path": "dup.txt", "old_string": "x", "new_string": "y", "replace_all": True},
            context,
        )
        assert result.metadata["replacements"] == 3
        assert target.read_text() == "y y y"

    async def test_edit_missing_string(self, context):
        with pytest.raises(ToolExecutionError, match="not found"):
            await EditFileTool().execute(
                {"file_path": "README.md", "old_string": "absent", "new_string": "x"}, context
            )

    async def test_edit_binary_file_rejected(self, context, workspace):
        target = workspace / "logo.bin"
        target.write_bytes(b"\xff\xfe\x00binary")
        with pytest.raises(ToolExecutionError, match="not valid UTF-8"):
            await EditFileTool().execute(
                {"file_path": "logo.bin", "old_string": "binary", "new_string": "x"}, context
            )
        assert target.read_bytes() == b"\xff\xfe\x00binary"

    def test_write_tools_need_approval(self):
        assert WriteFileTool().requires_approval
        assert EditFileTool().requires_approval
        assert not ReadFileTool().requires_approval


class TestSearch:
    async def test_glob_skips_hidden_dirs(self, context):
        result = await GlobTool().execute({"pattern": "**/*.py"}, context)
        assert result.output.splitlines() == ["src/app.py", "src/util.py"]

    async def test_glob_no_match(self, context):
        result = await GlobTool().execute({"pattern": "*.rs"}, context)
        assert result.output == "No files found"

    async def test_grep(self, context):
        result = await GrepTool().execute({"pattern": r"def \w+"}, context)
        assert result.output.splitlines() == [
            "src/app.py:3:def main():",
            "src/util.py:1:def helper():",
        ]

    async def test_grep_scoped_to_file(self, context):
        result = await GrepTool().execute({"pattern": "main", "path": "src/util.py"}, context)
        assert result.metadata["count"] == 1

    async def test_grep_invalid_pattern(self, context):
        with pytest.raises(ToolExecutionError, match="Invalid pattern"):
            await GrepTool().execute({"pattern": "("}, context)
