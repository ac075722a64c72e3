from abc import ABC, abstractmethod
from pathlib import Path
from uuid import UUID

from stepwise.domain.entities.plan import Plan


class AtomicStoragePort(ABC):
    """Whole-document storage with atomic replace."""

    @abstractmethod
    async def atomic_replace(self, path: Path, data: bytes) -> None:
        """Replace the document at `path` without ever exposing a partial write."""

    @abstractmethod
    async def read(self, path: Path) -> bytes | None:
        """Return the document bytes, or None if absent."""

    @abstractmethod
    async def delete(self, path: Path) -> None:
        """Remove the document if present."""


class PlanRepoPort(ABC):
    """Port for plan persistence, one plan per session."""

    @abstractmethod
    async def save(self, plan: Plan) -> None:
        """Persist the full plan snapshot and verify it by reading back.

        Raises:
            PersistenceError: If the stored document does not match.
        """

    @abstractmethod
    async def load(self, session_id: UUID) -> Plan | None:
        """Load the plan owned by a session."""

    @abstractmethod
    async def delete(self, session_id: UUID) -> None:
        """Discard a session's plan."""

    @abstractmethod
    async def list_sessions(self) -> list[UUID]:
        """List sessions with a stored plan."""
