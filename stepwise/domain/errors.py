"""Error taxonomy shared by the plan engine, persistence and tools.

Provider failures live beside the provider port.
"""

from enum import Enum


class StepwiseError(Exception):
    """Base class for all errors raised by stepwise."""


class ValidationCode(str, Enum):
    UNKNOWN_DEPENDENCY = "unknown_dependency"
    CYCLE = "cycle"
    EMPTY_PLAN = "empty_plan"
    OVERSIZED_INPUT = "oversized_input"
    INVALID_INPUT = "invalid_input"
    UNKNOWN_TASK = "unknown_task"


class ValidationError(StepwiseError):
    """Input rejected locally. Never retried."""

    def __init__(self, code: ValidationCode, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message

    def to_dict(self) -> dict[str, str]:
        return {"error": "validation", "code": self.code.value, "message": self.message}


class StateError(StepwiseError):
    """Operation is not valid for the current plan or task status."""


class PersistenceError(StepwiseError):
    """Stored document does not match what was written, or cannot be read."""


class ToolExecutionError(StepwiseError):
    """A tool failed while running. Reported back to the model as a tool result."""

    def __init__(self, tool_name: str, message: str) -> None:
        super().__init__(f"{tool_name}: {message}")
        self.tool_name = tool_name
        self.message = message
