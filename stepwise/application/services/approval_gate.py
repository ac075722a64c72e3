"""Capability-based human confirmation for tool calls."""

import asyncio
from collections.abc import Awaitable, Callable
from datetime import timedelta
from typing import Any
from uuid import UUID

from loguru import logger
from pydantic import BaseModel

from stepwise.domain.entities.approval_request import DEFAULT_APPROVAL_WINDOW, ApprovalRequest
from stepwise.domain.ports.clock_port import ClockPort, SystemClock
from stepwise.domain.value_objects import (
    ApprovalDecision,
    ApprovalPolicy,
    Capability,
    requires_approval,
)

# Front-end callback: return True to approve, False to deny
ApprovalHandler = Callable[[ApprovalRequest], Awaitable[bool]]

DENIED_MESSAGE = "User denied permission to execute this tool"
NO_HANDLER_MESSAGE = "Tool requires approval but no approval mechanism configured"


def timed_out_message(window: timedelta) -> str:
    return f"Approval request timed out after {int(window.total_seconds())}s; tool was not executed"


class ApprovalOutcome(BaseModel):
    approved: bool
    decision: ApprovalDecision
    message: str = ""
    request: ApprovalRequest | None = None


class ApprovalGate:
    def __init__(
        self,
        policy: ApprovalPolicy = ApprovalPolicy.ASK,
        handler: ApprovalHandler | None = None,
        clock: ClockPort | None = None,
        window: timedelta = DEFAULT_APPROVAL_WINDOW,
    ):
        self.policy = policy
        self.handler = handler
        self.clock = clock or SystemClock()
        self.window = window
        self._pending: dict[UUID, ApprovalRequest] = {}

    def needs_approval(self, capabilities: frozenset[Capability]) -> bool:
        if self.policy == ApprovalPolicy.AUTO_APPROVE:
            return False
        return requires_approval(capabilities)

    def create_request(
        self,
        tool_name: str,
        description: str,
        input: dict[str, Any],
        capabilities: frozenset[Capability],
    ) -> ApprovalRequest:
        request = ApprovalRequest(
            tool_name=tool_name,
            description=description,
            input=input,
            capabilities=capabilities,
            created_at=self.clock.now(),
            window=self.window,
        )
        self._pending[request.id] = request
        return request

    def pending_requests(self) -> list[ApprovalRequest]:
        return list(self._pending.values())

    def resolve(self, request: ApprovalRequest, approved: bool, reason: str | None = None) -> bool:
        """Record a human decision. Expired requests time out instead."""
        if self.expire(request):
            return False
        decision = ApprovalDecision.APPROVED if approved else ApprovalDecision.DENIED
        changed = request.resolve(decision, self.clock.now(), reason)
        if changed:
            self._pending.pop(request.id, None)
            if approved:
                logger.info(f"[APPROVAL] Approved {request.tool_name}")
            else:
                logger.info(f"[APPROVAL] Denied {request.tool_name} by user")
        return changed

    def expire(self, request: ApprovalRequest, force: bool = False) -> bool:
        """Time out a request whose window has elapsed.

        Returns True only for the call that performed the transition, so the
        timeout is logged exactly once.
        """
        now = self.clock.now()
        if force and not request.is_resolved:
            changed = request.resolve(ApprovalDecision.TIMED_OUT, now, "approval window elapsed")
        else:
            changed = request.resolve_if_expired(now)
        if changed:
            self._pending.pop(request.id, None)
            logger.warning(
                f"[APPROVAL] Request for {request.tool_name} timed out after "
                f"{int(request.window.total_seconds())}s, treating as denied"
            )
        return changed

    def sweep(self) -> list[ApprovalRequest]:
        """Expire every pending request past its window."""
        return [r for r in list(self._pending.values()) if self.expire(r)]

    async def decide(
        self,
        tool_name: str,
        description: str,
        input: dict[str, Any],
        capabilities: frozenset[Capability],
    ) -> ApprovalOutcome:
        """Decide whether a tool call may run, waiting on the handler if needed."""
        if not self.needs_approval(capabilities):
            return ApprovalOutcome(approved=True, decision=ApprovalDecision.APPROVED)

        request = self.create_request(tool_name, description, input, capabilities)

        if self.handler is None:
            request.resolve(ApprovalDecision.DENIED, self.clock.now(), NO_HANDLER_MESSAGE)
            self._pending.pop(request.id, None)
            logger.warning(f"[APPROVAL] {tool_name} needs approval but no handler is configured")
            return ApprovalOutcome(
                approved=False,
                decision=ApprovalDecision.DENIED,
                message=NO_HANDLER_MESSAGE,
                request=request,
            )

        remaining = request.time_remaining(self.clock.now()).total_seconds()
        try:
            approved = await asyncio.wait_for(self.handler(request), timeout=remaining)
        except TimeoutError:
            self.expire(request, force=True)
        else:
            self.resolve(request, approved)

        if request.decision == ApprovalDecision.APPROVED:
            return ApprovalOutcome(approved=True, decision=request.decision, request=request)
        if request.decision == ApprovalDecision.TIMED_OUT:
            message = timed_out_message(request.window)
        else:
            message = DENIED_MESSAGE
        return ApprovalOutcome(
            approved=False, decision=request.decision, message=message, request=request
        )
