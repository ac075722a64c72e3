from abc import ABC, abstractmethod
from datetime import UTC, datetime


class ClockPort(ABC):
    @abstractmethod
    def now(self) -> datetime:
        """Current instant, timezone-aware UTC."""


class SystemClock(ClockPort):
    def now(self) -> datetime:
        return datetime.now(UTC)
