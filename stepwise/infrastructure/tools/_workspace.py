from pathlib import Path

from stepwise.domain.errors import ToolExecutionError


def resolve_in_workspace(tool_name: str, working_dir: Path, raw: str) -> Path:
    """Resolve a user-supplied path, refusing anything outside the working directory."""
    root = working_dir.resolve()
    candidate = Path(raw.replace("\\", "/")).expanduser()
    if not candidate.is_absolute():
        candidate = root / candidate
    resolved = candidate.resolve()
    if resolved != root and root not in resolved.parents:
        raise ToolExecutionError(tool_name, f"Path is outside the working directory: {raw}")
    return resolved


def display_path(working_dir: Path, path: Path) -> str:
    try:
        return str(path.relative_to(working_dir.resolve())) or "."
    except ValueError:
        return str(path)
