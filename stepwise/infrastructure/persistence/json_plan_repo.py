from pathlib import Path
from uuid import UUID

from loguru import logger
from pydantic import ValidationError as ModelValidationError

from stepwise.domain.entities.plan import Plan
from stepwise.domain.errors import PersistenceError
from stepwise.domain.ports.plan_repo_port import AtomicStoragePort, PlanRepoPort
from stepwise.infrastructure.persistence._paths import PlanPathBuilder
from stepwise.infrastructure.persistence.async_file_lock import async_file_lock
from stepwise.infrastructure.persistence.atomic_io import FileAtomicStorage

MAX_PLAN_FILE_SIZE = 10 * 1024 * 1024


class JsonPlanRepo(PlanRepoPort):
    """File-based JSON storage, one document per session."""

    def __init__(self, state_dir: Path, storage: AtomicStoragePort | None = None) -> None:
        self.state_dir = state_dir
        self.paths = PlanPathBuilder(state_dir)
        self.storage = storage or FileAtomicStorage()

    def _decode(self, data: bytes, path: Path) -> Plan:
        if len(data) > MAX_PLAN_FILE_SIZE:
            raise PersistenceError(f"Plan file too large: {len(data)} bytes ({path})")
        try:
            return Plan.model_validate_json(data)
        except ModelValidationError as e:
            raise PersistenceError(f"Unreadable plan document {path}: {e}") from e

    async def save(self, plan: Plan) -> None:
        """Save plan snapshot and verify it by reading back.

        Uses atomic replace under a per-session file lock.
        """
        path = self.paths.plan_path(plan.session_id)
        async with async_file_lock(self.paths.lock_path(plan.session_id)):
            await self.storage.atomic_replace(path, plan.model_dump_json(indent=2).encode())
            data = await self.storage.read(path)

        if data is None:
            logger.error("Integrity fault: plan {} missing after write ({})", plan.id, path)
            raise PersistenceError(f"Plan {plan.id} missing after write")
        try:
            saved = self._decode(data, path)
        except PersistenceError:
            logger.error("Integrity fault: plan {} unreadable after write", plan.id)
            raise
        if saved.id != plan.id or saved.status != plan.status:
            logger.error(
                "Integrity fault: plan {} read back as {} ({}), expected {}",
                plan.id,
                saved.id,
                saved.status.value,
                plan.status.value,
            )
            raise PersistenceError(
                f"Plan {plan.id} read back with status {saved.status.value}, "
                f"expected {plan.status.value}"
            )
        logger.info("Saved plan snapshot: {} ({})", plan.id, plan.status.value)

    async def load(self, session_id: UUID) -> Plan | None:
        path = self.paths.plan_path(session_id)
        if not path.exists():
            logger.debug("Plan not found for session: {}", session_id)
            return None

        async with async_file_lock(self.paths.lock_path(session_id)):
            data = await self.storage.read(path)
        if data is None:
            return None
        return self._decode(data, path)

    async def delete(self, session_id: UUID) -> None:
        path = self.paths.plan_path(session_id)
        async with async_file_lock(self.paths.lock_path(session_id)):
            await self.storage.delete(path)
        logger.info("Deleted plan for session: {}", session_id)

    async def list_sessions(self) -> list[UUID]:
        plans_dir = self.paths.plans_dir
        if not plans_dir.exists():
            return []

        session_ids: list[UUID] = []
        for session_dir in sorted(plans_dir.iterdir()):
            if session_dir.is_dir() and (session_dir / "plan.json").exists():
                try:
                    session_ids.append(UUID(hex=session_dir.name))
                except ValueError:
                    logger.warning("Invalid session directory name: {}", session_dir.name)
        return session_ids
