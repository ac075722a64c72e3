from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, Field

from stepwise.domain.entities.conversation import ToolDefinition
from stepwise.domain.errors import ToolExecutionError
from stepwise.domain.value_objects import Capability, ToolCategory, requires_approval

DEFAULT_TOOL_TIMEOUT_S = 30.0


class ToolExecutionContext(BaseModel):
    session_id: UUID = Field(default_factory=uuid4)
    working_dir: Path
    timeout_s: float = DEFAULT_TOOL_TIMEOUT_S
    read_only: bool = False
    env: dict[str, str] = {}


class ToolResult(BaseModel):
    success: bool
    output: str = ""
    error: str | None = None
    metadata: dict[str, Any] = {}

    @classmethod
    def ok(cls, output: str, **metadata: Any) -> "ToolResult":
        return cls(success=True, output=output, metadata=metadata)

    @classmethod
    def fail(cls, error: str) -> "ToolResult":
        return cls(success=False, error=error)

    def as_text(self) -> str:
        if self.success:
            return self.output
        return f"Error: {self.error}"


class ToolPort(ABC):
    """Port for one model-callable tool.

    Subclasses declare their identity and capabilities as class attributes.
    """

    name: str
    description: str
    capabilities: frozenset[Capability] = frozenset({Capability.READ})
    category: ToolCategory = ToolCategory.OTHER
    # Input field holding the primary target, used for call signatures
    signature_field: str | None = None
    # Input field refining a multi-operation signature
    signature_refinement: str | None = None

    @property
    @abstractmethod
    def input_schema(self) -> dict[str, Any]:
        """JSON schema of accepted input."""

    @abstractmethod
    async def execute(self, input: dict[str, Any], context: ToolExecutionContext) -> ToolResult:
        """Run the tool.

        Raises:
            ToolExecutionError: When the tool cannot complete.
        """

    def validate_input(self, input: dict[str, Any]) -> None:
        """Check required fields from the schema."""
        for field in self.input_schema.get("required", []):
            if field not in input:
                raise ToolExecutionError(self.name, f"missing required field '{field}'")

    @property
    def requires_approval(self) -> bool:
        return requires_approval(self.capabilities)

    def definition(self) -> ToolDefinition:
        return ToolDefinition(
            name=self.name,
            description=self.description,
            input_schema=self.input_schema,
        )
