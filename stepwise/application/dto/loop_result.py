from enum import Enum

from pydantic import BaseModel, Field

from stepwise.domain.entities.conversation import Message, Usage


class LoopOutcome(str, Enum):
    COMPLETED = "completed"
    LOOP_DETECTED = "loop_detected"
    CEILING_REACHED = "ceiling_reached"
    CANCELLED = "cancelled"


class LoopResult(BaseModel):
    outcome: LoopOutcome
    text: str
    iterations: int
    diagnostic: str | None = None
    usage: Usage = Field(default_factory=Usage)
    messages: list[Message] = []

    @property
    def is_final(self) -> bool:
        return self.outcome == LoopOutcome.COMPLETED


class LoopEvent(BaseModel):
    """Progress notification for front ends while the loop runs."""

    kind: str  # "text" | "text_delta" | "tool_call" | "tool_result" | "denied" | "diagnostic"
    content: str
    tool_name: str | None = None
    is_error: bool = False
