"""Tests for the approval gate."""

import asyncio
from datetime import timedelta

import pytest

from stepwise.application.services.approval_gate import (
    DENIED_MESSAGE,
    NO_HANDLER_MESSAGE,
    ApprovalGate,
)
from stepwise.domain.entities.approval_request import ApprovalRequest
from stepwise.domain.value_objects import ApprovalDecision, ApprovalPolicy, Capability

WRITE = frozenset({Capability.WRITE})
READ = frozenset({Capability.READ})
EXECUTE = frozenset({Capability.EXECUTE})


def answering(value: bool):
    seen: list[ApprovalRequest] = []

    async def handler(request: ApprovalRequest) -> bool:
        seen.append(request)
        return value

    handler.seen = seen  # type: ignore[attr-defined]
    return handler


class TestNeedsApproval:
    def test_read_only_capabilities_pass(self, clock):
        gate = ApprovalGate(clock=clock)
        assert not gate.needs_approval(READ)
        assert not gate.needs_approval(frozenset({Capability.NETWORK}))

    def test_dangerous_capabilities_need_approval(self, clock):
        gate = ApprovalGate(clock=clock)
        assert gate.needs_approval(WRITE)
        assert gate.needs_approval(EXECUTE)
        assert gate.needs_approval(frozenset({Capability.READ, Capability.SYSTEM_MODIFICATION}))

    def test_auto_approve_policy(self, clock):
        gate = ApprovalGate(policy=ApprovalPolicy.AUTO_APPROVE, clock=clock)
        assert not gate.needs_approval(EXECUTE)


class TestDecide:
    async def test_safe_tool_runs_without_handler(self, clock):
        gate = ApprovalGate(clock=clock)
        outcome = await gate.decide("ls", "list", {"path": "."}, READ)
        assert outcome.approved
        assert outcome.request is None

    async def test_auto_approve_skips_handler(self, clock):
        handler = answering(False)
        gate = ApprovalGate(policy=ApprovalPolicy.AUTO_APPROVE, handler=handler, clock=clock)
        outcome = await gate.decide("bash", "run", {"command": "ls"}, EXECUTE)
        assert outcome.approved
        assert handler.seen == []

    async def test_no_handler_denies(self, clock):
        gate = ApprovalGate(clock=clock)
        outcome = await gate.decide("write_file", "write", {"file_path": "a"}, WRITE)
        assert not outcome.approved
        assert outcome.decision == ApprovalDecision.DENIED
        assert outcome.message == NO_HANDLER_MESSAGE
        assert gate.pending_requests() == []

    async def test_handler_approves(self, clock):
        handler = answering(True)
        gate = ApprovalGate(handler=handler, clock=clock)
        outcome = await gate.decide("bash", "run", {"command": "make"}, EXECUTE)
        assert outcome.approved
        assert outcome.request.decision == ApprovalDecision.APPROVED
        assert handler.seen[0].input == {"command": "make"}
        assert gate.pending_requests() == []

    async def test_handler_denies(self, clock):
        gate = ApprovalGate(handler=answering(False), clock=clock)
        outcome = await gate.decide("bash", "run", {"command": "make"}, EXECUTE)
        assert not outcome.approved
        assert outcome.decision == ApprovalDecision.DENIED
        assert outcome.message == DENIED_MESSAGE

    async def test_slow_handler_times_out(self, clock):
        async def never_answers(request: ApprovalRequest) -> bool:
            await asyncio.sleep(5)
            return True

        gate = ApprovalGate(handler=never_answers, clock=clock, window=timedelta(seconds=0.05))
        outcome = await gate.decide("bash", "run", {"command": "make"}, EXECUTE)
        assert not outcome.approved
        assert outcome.decision == ApprovalDecision.TIMED_OUT
        assert "timed out" in outcome.message
        assert gate.pending_requests() == []

    async def test_answer_after_window_counts_as_timeout(self, clock):
        async def late(request: ApprovalRequest) -> bool:
            clock.advance(301)
            return True

        gate = ApprovalGate(handler=late, clock=clock)
        outcome = await gate.decide("bash", "run", {"command": "make"}, EXECUTE)
        assert not outcome.approved
        assert outcome.decision == ApprovalDecision.TIMED_OUT


class TestExpiry:
    def test_request_window(self, clock):
        gate = ApprovalGate(clock=clock)
        request = gate.create_request("bash", "run", {}, EXECUTE)
        assert request.time_remaining(clock.now()) == timedelta(minutes=5)
        clock.advance(120)
        assert request.time_remaining(clock.now()) == timedelta(minutes=3)
        clock.advance(600)
        assert request.time_remaining(clock.now()) == timedelta(0)

    def test_sweep_expires_exactly_once(self, clock):
        gate = ApprovalGate(clock=clock)
        request = gate.create_request("bash", "run", {}, EXECUTE)

        assert gate.sweep() == []
        clock.advance(300)
        assert gate.sweep() == [request]
        assert gate.sweep() == []
        assert not gate.expire(request)
        assert request.decision == ApprovalDecision.TIMED_OUT

    def test_resolve_after_expiry_is_rejected(self, clock):
        gate = ApprovalGate(clock=clock)
        request = gate.create_request("bash", "run", {}, EXECUTE)
        clock.advance(301)
        assert not gate.resolve(request, approved=True)
        assert request.decision == ApprovalDecision.TIMED_OUT

    def test_resolve_once(self, clock):
        gate = ApprovalGate(clock=clock)
        request = gate.create_request("bash", "run", {}, EXECUTE)
        assert gate.resolve(request, approved=False, reason="no")
        assert not gate.resolve(request, approved=True)
        assert request.decision == ApprovalDecision.DENIED
        assert request.reason == "no"

    @pytest.mark.parametrize("seconds", [0, 150, 299])
    def test_not_expired_inside_window(self, clock, seconds):
        gate = ApprovalGate(clock=clock)
        request = gate.create_request("bash", "run", {}, EXECUTE)
        clock.advance(seconds)
        assert not gate.expire(request)
        assert gate.pending_requests() == [request]
