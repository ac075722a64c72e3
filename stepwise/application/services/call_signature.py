"""Normalized identities for proposed tool calls."""

import hashlib
import json
import re
from typing import Any

from pydantic import BaseModel, ConfigDict

from stepwise.domain.value_objects import ToolCategory

MAX_TARGET_LENGTH = 100

_REPEATED_SLASHES = re.compile(r"/{2,}")


class CallSignature(BaseModel):
    model_config = ConfigDict(frozen=True)

    tool_name: str
    discriminator: str
    category: ToolCategory

    @property
    def key(self) -> str:
        return f"{self.tool_name}:{self.discriminator}"

    def __str__(self) -> str:
        return self.key


def normalize_path(path: str) -> str:
    """Collapse cosmetic differences between equivalent paths."""
    normalized = path.strip().replace("\\", "/")
    normalized = _REPEATED_SLASHES.sub("/", normalized)
    while normalized.startswith("./"):
        normalized = normalized[2:]
    if len(normalized) > 1:
        normalized = normalized.rstrip("/")
    return normalized or "."


def normalize_command(command: str) -> str:
    return " ".join(command.split())[:MAX_TARGET_LENGTH]


def _input_digest(input: dict[str, Any]) -> str:
    canonical = json.dumps(input, sort_keys=True, default=str)
    return hashlib.sha256(canonical.encode()).hexdigest()[:12]


def build_signature(
    tool_name: str,
    input: dict[str, Any],
    category: ToolCategory = ToolCategory.OTHER,
    target_field: str | None = None,
    refinement_field: str | None = None,
) -> CallSignature:
    """Derive the signature of one proposed call.

    Exploration and mutation tools are keyed by their primary target, plus
    an optional scope such as a search path.
    Multi-operation tools are keyed by the sub-operation, refined by an
    optional distinguishing field. Anything else falls back to a digest
    of the full input.
    """
    if category == ToolCategory.MULTI_OPERATION:
        operation = str(input.get(target_field or "operation", "unknown"))
        refinement = input.get(refinement_field) if refinement_field else None
        discriminator = f"{operation}:{refinement}" if refinement else operation
    elif category in (ToolCategory.EXPLORATION, ToolCategory.MUTATION) and target_field:
        raw = str(input.get(target_field, ""))
        if target_field == "command":
            discriminator = normalize_command(raw)
        else:
            discriminator = normalize_path(raw)[:MAX_TARGET_LENGTH]
        if refinement_field and input.get(refinement_field):
            discriminator = f"{discriminator}:{normalize_path(str(input[refinement_field]))}"
    else:
        discriminator = _input_digest(input)
    return CallSignature(tool_name=tool_name, discriminator=discriminator, category=category)
