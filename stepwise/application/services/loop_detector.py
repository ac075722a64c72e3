from collections import deque

from loguru import logger
from pydantic import BaseModel, Field

from stepwise.application.services.call_signature import CallSignature
from stepwise.domain.value_objects import ToolCategory


class LoopDetectorConfig(BaseModel):
    capacity: int = Field(default=15, ge=1)
    exploration_threshold: int = Field(default=10, ge=1)
    mutation_threshold: int = Field(default=2, ge=1)
    default_threshold: int = Field(default=3, ge=1)


class LoopTrip(BaseModel):
    signature: CallSignature
    threshold: int

    @property
    def diagnostic(self) -> str:
        return (
            f"Loop detected: '{self.signature.key}' was requested {self.threshold} times in a "
            f"row. Stopping before running it again; try a different approach."
        )


class LoopDetector:
    """Bounded history of recent call signatures.

    A call trips the detector when the `threshold` most recently recorded
    signatures all equal it, so `threshold` identical calls run and the
    next one is refused. Refused calls are not recorded.
    """

    def __init__(self, config: LoopDetectorConfig | None = None):
        self.config = config or LoopDetectorConfig()
        self._history: deque[CallSignature] = deque(maxlen=self.config.capacity)

    def threshold_for(self, category: ToolCategory) -> int:
        if category == ToolCategory.EXPLORATION:
            return self.config.exploration_threshold
        if category == ToolCategory.MUTATION:
            return self.config.mutation_threshold
        return self.config.default_threshold

    def check(self, signature: CallSignature) -> LoopTrip | None:
        """Return a trip without recording, or None if the call may proceed."""
        threshold = self.threshold_for(signature.category)
        if len(self._history) < threshold:
            return None
        recent = list(self._history)[-threshold:]
        if all(s.key == signature.key for s in recent):
            return LoopTrip(signature=signature, threshold=threshold)
        return None

    def record(self, signature: CallSignature) -> None:
        self._history.append(signature)

    def observe(self, signature: CallSignature) -> LoopTrip | None:
        """Check then record when the call is allowed."""
        trip = self.check(signature)
        if trip is not None:
            logger.warning(f"[LOOP] {trip.diagnostic}")
            return trip
        self.record(signature)
        return None

    def consecutive_count(self, signature: CallSignature) -> int:
        count = 0
        for previous in reversed(self._history):
            if previous.key != signature.key:
                break
            count += 1
        return count

    def reset(self) -> None:
        self._history.clear()

    def __len__(self) -> int:
        return len(self._history)
