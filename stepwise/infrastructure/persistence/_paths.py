from pathlib import Path
from uuid import UUID


class PlanPathBuilder:
    def __init__(self, state_dir: Path) -> None:
        self.state_dir = state_dir

    @property
    def plans_dir(self) -> Path:
        return self.state_dir / "plans"

    def session_dir(self, session_id: UUID) -> Path:
        return self.plans_dir / session_id.hex

    def plan_path(self, session_id: UUID) -> Path:
        return self.session_dir(session_id) / "plan.json"

    def lock_path(self, session_id: UUID) -> Path:
        return self.session_dir(session_id) / ".lock"
