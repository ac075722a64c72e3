from stepwise.application.services.approval_gate import (
    ApprovalGate,
    ApprovalHandler,
    ApprovalOutcome,
)
from stepwise.application.services.call_signature import CallSignature, build_signature
from stepwise.application.services.loop_detector import LoopDetector, LoopDetectorConfig, LoopTrip
from stepwise.application.services.plan_engine import PlanEngine, PlanStatusReport, PlanSummary
from stepwise.application.services.resilience import (
    ErrorClass,
    RetryPolicy,
    call_with_retry,
    classify_error,
)

__all__ = [
    # Approval
    "ApprovalGate",
    "ApprovalHandler",
    "ApprovalOutcome",
    # Loop detection
    "CallSignature",
    "LoopDetector",
    "LoopDetectorConfig",
    "LoopTrip",
    "build_signature",
    # Plan
    "PlanEngine",
    "PlanStatusReport",
    "PlanSummary",
    # Retry
    "ErrorClass",
    "RetryPolicy",
    "call_with_retry",
    "classify_error",
]
