from stepwise.application.dto.loop_result import LoopEvent, LoopOutcome, LoopResult
from stepwise.application.dto.session_config import SessionConfig

__all__ = ["LoopEvent", "LoopOutcome", "LoopResult", "SessionConfig"]
