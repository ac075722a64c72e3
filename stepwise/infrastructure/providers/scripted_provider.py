"""Deterministic provider replaying a JSON script.

Each script step is either a response::

    {"text": "...", "tool_calls": [{"name": "ls", "input": {"path": "."}}]}

or a simulated failure::

    {"error": {"status": 429, "message": "slow down", "retry_after": 5}}

Once the script is exhausted the provider answers with a final message.
"""

import json
from collections.abc import AsyncIterator
from pathlib import Path
from typing import Any

from loguru import logger

from stepwise.domain.entities.conversation import (
    ContentBlock,
    Message,
    ProviderResponse,
    StreamEvent,
    ToolCall,
    ToolDefinition,
    Usage,
)
from stepwise.domain.ports.provider_port import ProviderError, ProviderPort
from stepwise.domain.value_objects import FinishReason

EXHAUSTED_TEXT = "Script finished."


class ScriptedProvider(ProviderPort):
    def __init__(self, steps: list[dict[str, Any]]):
        self.steps = list(steps)
        self.calls: list[list[Message]] = []
        self._position = 0

    @classmethod
    def from_file(cls, path: Path) -> "ScriptedProvider":
        data = json.loads(path.read_text(encoding="utf-8"))
        steps = data["steps"] if isinstance(data, dict) else data
        logger.debug(f"Loaded provider script with {len(steps)} steps: {path}")
        return cls(steps)

    def _next_step(self, messages: list[Message]) -> ProviderResponse:
        self.calls.append(list(messages))
        if self._position >= len(self.steps):
            return ProviderResponse(content=[ContentBlock(text=EXHAUSTED_TEXT)])
        step = self.steps[self._position]
        self._position += 1

        if "error" in step:
            error = step["error"]
            raise ProviderError.from_status(
                int(error.get("status", 500)),
                error.get("message", "scripted failure"),
                error.get("retry_after"),
            )

        tool_calls = [
            ToolCall(
                id=call.get("id", f"call_{self._position}_{i}"),
                name=call["name"],
                input=call.get("input", {}),
            )
            for i, call in enumerate(step.get("tool_calls", []))
        ]
        text = step.get("text", "")
        finish = FinishReason.TOOL_USE if tool_calls else FinishReason.STOP
        if step.get("finish_reason"):
            finish = FinishReason(step["finish_reason"])
        return ProviderResponse(
            content=[ContentBlock(text=text)] if text else [],
            tool_calls=tool_calls,
            finish_reason=finish,
            usage=Usage(
                input_tokens=sum(len(m.text.split()) for m in messages),
                output_tokens=len(text.split()),
            ),
        )

    async def complete(
        self,
        messages: list[Message],
        tools: list[ToolDefinition],
        options: dict[str, Any] | None = None,
    ) -> ProviderResponse:
        return self._next_step(messages)

    async def stream(
        self,
        messages: list[Message],
        tools: list[ToolDefinition],
        options: dict[str, Any] | None = None,
    ) -> AsyncIterator[StreamEvent]:
        response = self._next_step(messages)
        for word in response.text.split(" ") if response.text else []:
            yield StreamEvent(type="text_delta", text=word + " ")
        for call in response.tool_calls:
            yield StreamEvent(type="tool_call", tool_call=call)
        yield StreamEvent(type="done", response=response)
