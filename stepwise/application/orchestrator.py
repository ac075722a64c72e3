"""Orchestration loop: provider round trips, approval, tool execution.

One `Orchestrator.run` drives a single session until the model stops asking
for tools, the loop detector trips, the iteration ceiling is reached, or the
caller cancels. Fatal provider errors propagate.
"""

import asyncio
import random
from collections.abc import Callable
from typing import Any
from uuid import UUID, uuid4

from loguru import logger

from stepwise.application.dto.loop_result import LoopEvent, LoopOutcome, LoopResult
from stepwise.application.dto.session_config import SessionConfig
from stepwise.application.services.approval_gate import ApprovalGate
from stepwise.application.services.call_signature import CallSignature, build_signature
from stepwise.application.services.loop_detector import LoopDetector
from stepwise.application.services.resilience import RandomFn, SleepFn, call_with_retry
from stepwise.application.services.tool_registry import ToolRegistry
from stepwise.application.use_cases.manage_plan import ManagePlan
from stepwise.domain.entities.conversation import (
    Message,
    ProviderResponse,
    ToolCall,
    ToolResultBlock,
    Usage,
)
from stepwise.domain.errors import ToolExecutionError
from stepwise.domain.ports.provider_port import ProviderError, ProviderPort
from stepwise.domain.ports.tool_port import ToolExecutionContext
from stepwise.domain.value_objects import FinishReason, ToolCategory

EventCallback = Callable[[LoopEvent], None]

_SUMMARY_FIELDS = ("file_path", "path", "command", "pattern", "url", "operation")


def _summarize_tool_input(tool_input: dict[str, Any] | None) -> str:
    """Short human-readable view of a tool call's input."""
    if not tool_input:
        return ""
    for field in _SUMMARY_FIELDS:
        if field in tool_input:
            value = str(tool_input[field])
            return value[:100] + "..." if len(value) > 100 else value
    rendered = ", ".join(f"{k}={v}" for k, v in tool_input.items())
    return rendered[:100] + "..." if len(rendered) > 100 else rendered


class Orchestrator:
    def __init__(
        self,
        provider: ProviderPort,
        registry: ToolRegistry,
        approval_gate: ApprovalGate,
        config: SessionConfig | None = None,
        plan: ManagePlan | None = None,
        loop_detector: LoopDetector | None = None,
        session_id: UUID | None = None,
        on_event: EventCallback | None = None,
        sleep: SleepFn = asyncio.sleep,
        rng: RandomFn = random.random,
    ):
        self.provider = provider
        self.registry = registry
        self.approval_gate = approval_gate
        self.config = config or SessionConfig()
        self.plan = plan
        self.loop_detector = loop_detector or LoopDetector(self.config.loop_detector)
        self.session_id = session_id or (plan.engine.session_id if plan else uuid4())
        self.on_event = on_event
        self._sleep = sleep
        self._rng = rng

    def _emit(
        self, kind: str, content: str, tool_name: str | None = None, is_error: bool = False
    ) -> None:
        if self.on_event:
            self.on_event(
                LoopEvent(kind=kind, content=content, tool_name=tool_name, is_error=is_error)
            )

    def _context(self) -> ToolExecutionContext:
        return ToolExecutionContext(
            session_id=self.session_id,
            working_dir=self.config.working_dir,
            timeout_s=self.config.tool_timeout_s,
            read_only=self.config.read_only,
        )

    # ------------------------------------------------------------------
    # Provider
    # ------------------------------------------------------------------

    async def _request(self, conversation: list[Message]) -> ProviderResponse:
        tools = self.registry.definitions()
        if not self.config.stream:
            return await self.provider.complete(conversation, tools)

        async for event in self.provider.stream(conversation, tools):
            if event.type == "text_delta" and event.text:
                self._emit("text_delta", event.text)
            elif event.type == "done" and event.response is not None:
                return event.response
        raise ProviderError("Stream ended without a final response")

    async def _call_provider(self, conversation: list[Message]) -> ProviderResponse:
        return await call_with_retry(
            lambda: self._request(conversation),
            policy=self.config.retry,
            sleep=self._sleep,
            rng=self._rng,
        )

    # ------------------------------------------------------------------
    # Tools
    # ------------------------------------------------------------------

    def _signature(self, call: ToolCall) -> CallSignature:
        tool = self.registry.get(call.name)
        if tool is None:
            return build_signature(call.name, call.input)
        return build_signature(
            call.name,
            call.input,
            category=tool.category,
            target_field=tool.signature_field,
            refinement_field=tool.signature_refinement,
        )

    async def _record_on_active_task(self, call: ToolCall, summary: str, success: bool) -> None:
        if self.plan is None or not self.plan.engine.has_plan:
            return
        tool = self.registry.get(call.name)
        if tool is not None and tool.category == ToolCategory.MULTI_OPERATION:
            return
        task = self.plan.plan.in_progress_task()
        if task is None:
            return
        await self.plan.record_tool_call(task.id, call.name, summary, success, call.input)

    async def _run_tool(self, call: ToolCall, context: ToolExecutionContext) -> ToolResultBlock:
        tool = self.registry.get(call.name)
        if tool is None:
            logger.warning(f"[TOOL] Unknown tool requested: {call.name}")
            return ToolResultBlock(
                tool_call_id=call.id,
                tool_name=call.name,
                content=f"Tool not found: {call.name}",
                is_error=True,
            )

        summary = _summarize_tool_input(call.input)
        outcome = await self.approval_gate.decide(
            call.name, f"{tool.description} ({summary})", call.input, tool.capabilities
        )
        if not outcome.approved:
            self._emit("denied", outcome.message, tool_name=call.name, is_error=True)
            return ToolResultBlock(
                tool_call_id=call.id,
                tool_name=call.name,
                content=outcome.message,
                is_error=True,
            )

        logger.info(f"[TOOL] {call.name}: {summary}")
        self._emit("tool_call", summary, tool_name=call.name)
        try:
            result = await self.registry.execute(call.name, call.input, context)
        except ToolExecutionError as e:
            logger.warning(f"[TOOL] {call.name} failed: {e.message}")
            await self._record_on_active_task(call, f"{summary} -> {e.message}", success=False)
            self._emit("tool_result", e.message, tool_name=call.name, is_error=True)
            return ToolResultBlock(
                tool_call_id=call.id,
                tool_name=call.name,
                content=f"Error: {e.message}",
                is_error=True,
            )

        await self._record_on_active_task(call, summary, success=result.success)
        text = result.as_text()
        self._emit("tool_result", text, tool_name=call.name, is_error=not result.success)
        return ToolResultBlock(
            tool_call_id=call.id,
            tool_name=call.name,
            content=text,
            is_error=not result.success,
        )

    # ------------------------------------------------------------------
    # Loop
    # ------------------------------------------------------------------

    async def run(
        self,
        prompt: str | None = None,
        history: list[Message] | None = None,
        cancel_event: asyncio.Event | None = None,
    ) -> LoopResult:
        """Drive the conversation until a terminal outcome.

        Cancellation is only honoured at the top of an iteration; a tool
        that has started always runs to completion.

        Raises:
            ProviderError: When a fatal error occurs or retries run out.
        """
        conversation: list[Message] = list(history or [])
        if self.config.system_prompt and not any(m.role == "system" for m in conversation):
            conversation.insert(0, Message.system(self.config.system_prompt))
        if prompt:
            conversation.append(Message.user(prompt))

        context = self._context()
        usage = Usage()
        last_text = ""
        iteration = 0

        def result(outcome: LoopOutcome, text: str, diagnostic: str | None = None) -> LoopResult:
            return LoopResult(
                outcome=outcome,
                text=text,
                iterations=iteration,
                diagnostic=diagnostic,
                usage=usage,
                messages=conversation,
            )

        while True:
            if cancel_event is not None and cancel_event.is_set():
                logger.info(f"Session {self.session_id} cancelled after {iteration} iterations")
                return result(LoopOutcome.CANCELLED, last_text, "Cancelled by user")

            response = await self._call_provider(conversation)
            usage = usage + response.usage
            if response.text:
                last_text = response.text
                self._emit("text", response.text)

            if not response.tool_calls:
                if response.finish_reason != FinishReason.STOP:
                    logger.debug(f"Final response ended with {response.finish_reason.value}")
                conversation.append(Message(role="assistant", content=response.content))
                iteration += 1
                return result(LoopOutcome.COMPLETED, response.text)

            for call in response.tool_calls:
                trip = self.loop_detector.observe(self._signature(call))
                if trip is not None:
                    self._emit("diagnostic", trip.diagnostic, tool_name=call.name, is_error=True)
                    return result(LoopOutcome.LOOP_DETECTED, last_text, trip.diagnostic)

            tool_results: list[ToolResultBlock] = []
            for call in response.tool_calls:
                tool_results.append(await self._run_tool(call, context))

            conversation.append(
                Message(role="assistant", content=response.content, tool_calls=response.tool_calls)
            )
            conversation.append(Message(role="tool", tool_results=tool_results))

            iteration += 1
            logger.debug(
                f"Iteration {iteration}/{self.config.max_iterations}: "
                f"{len(response.tool_calls)} tool calls"
            )
            if iteration >= self.config.max_iterations:
                diagnostic = (
                    f"Reached the maximum of {self.config.max_iterations} tool iterations "
                    "without a final answer"
                )
                logger.warning(diagnostic)
                self._emit("diagnostic", diagnostic, is_error=True)
                return result(LoopOutcome.CEILING_REACHED, last_text, diagnostic)