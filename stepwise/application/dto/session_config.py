import json
from pathlib import Path

from pydantic import BaseModel, Field

from stepwise.application.services.loop_detector import LoopDetectorConfig
from stepwise.application.services.resilience import RetryPolicy

DEFAULT_MAX_ITERATIONS = 20
DEFAULT_APPROVAL_WINDOW_S = 300.0
DEFAULT_TOOL_TIMEOUT_S = 30.0
CONFIG_FILE_NAME = "config.json"


class SessionConfig(BaseModel):
    max_iterations: int = Field(default=DEFAULT_MAX_ITERATIONS, ge=1)
    auto_approve: bool = False
    approval_window_s: float = Field(default=DEFAULT_APPROVAL_WINDOW_S, gt=0)
    tool_timeout_s: float = Field(default=DEFAULT_TOOL_TIMEOUT_S, gt=0)
    read_only: bool = False
    stream: bool = False
    working_dir: Path = Field(default_factory=Path.cwd)
    state_dir: Path | None = None
    system_prompt: str | None = None
    retry: RetryPolicy = Field(default_factory=RetryPolicy)
    loop_detector: LoopDetectorConfig = Field(default_factory=LoopDetectorConfig)

    @property
    def resolved_state_dir(self) -> Path:
        return self.state_dir or self.working_dir / ".stepwise"

    @classmethod
    def load(cls, path: Path | None, **overrides: object) -> "SessionConfig":
        """Read a JSON config file if present, then apply non-None overrides."""
        data: dict[str, object] = {}
        if path is not None and path.exists():
            data = json.loads(path.read_text(encoding="utf-8"))
        data.update({k: v for k, v in overrides.items() if v is not None})
        return cls.model_validate(data)
