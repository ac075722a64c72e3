from enum import Enum


class ApprovalDecision(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    DENIED = "denied"
    TIMED_OUT = "timed_out"


class ApprovalPolicy(str, Enum):
    ASK = "ask"
    AUTO_APPROVE = "auto_approve"
