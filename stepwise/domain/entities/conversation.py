from typing import Any, Literal

from pydantic import BaseModel, Field

from stepwise.domain.value_objects import FinishReason


class ToolCall(BaseModel):
    id: str
    name: str
    input: dict[str, Any] = {}


class ContentBlock(BaseModel):
    type: Literal["text"] = "text"
    text: str


class ToolResultBlock(BaseModel):
    tool_call_id: str
    tool_name: str
    content: str
    is_error: bool = False


class Message(BaseModel):
    role: Literal["system", "user", "assistant", "tool"]
    content: list[ContentBlock] = []
    tool_calls: list[ToolCall] = []
    tool_results: list[ToolResultBlock] = []

    @classmethod
    def user(cls, text: str) -> "Message":
        return cls(role="user", content=[ContentBlock(text=text)])

    @classmethod
    def system(cls, text: str) -> "Message":
        return cls(role="system", content=[ContentBlock(text=text)])

    @property
    def text(self) -> str:
        return "".join(block.text for block in self.content)


class Usage(BaseModel):
    input_tokens: int = 0
    output_tokens: int = 0

    def __add__(self, other: "Usage") -> "Usage":
        return Usage(
            input_tokens=self.input_tokens + other.input_tokens,
            output_tokens=self.output_tokens + other.output_tokens,
        )


class ProviderResponse(BaseModel):
    content: list[ContentBlock] = []
    tool_calls: list[ToolCall] = []
    finish_reason: FinishReason = FinishReason.STOP
    usage: Usage = Field(default_factory=Usage)

    @property
    def text(self) -> str:
        return "".join(block.text for block in self.content)


class ToolDefinition(BaseModel):
    """Catalog entry sent to the provider."""

    name: str
    description: str
    input_schema: dict[str, Any]


class StreamEvent(BaseModel):
    """Incremental provider output.

    A stream ends with a single `done` event whose response holds the
    complete terminal shape.
    """

    type: Literal["text_delta", "tool_call", "done"]
    text: str | None = None
    tool_call: ToolCall | None = None
    response: ProviderResponse | None = None
