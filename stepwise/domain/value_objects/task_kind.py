from enum import Enum


class TaskKind(str, Enum):
    RESEARCH = "research"
    EDIT = "edit"
    CREATE = "create"
    DELETE = "delete"
    TEST = "test"
    REFACTOR = "refactor"
    DOCUMENTATION = "documentation"
    CONFIGURATION = "configuration"
    BUILD = "build"
    OTHER = "other"

    @classmethod
    def parse(cls, value: "str | TaskKind | None") -> "TaskKind":
        """Map free-form model input onto the closed set, unknown kinds become OTHER."""
        if isinstance(value, TaskKind):
            return value
        if not value:
            return cls.OTHER
        normalized = value.strip().lower()
        aliases = {"docs": "documentation", "config": "configuration", "modify": "edit"}
        normalized = aliases.get(normalized, normalized)
        try:
            return cls(normalized)
        except ValueError:
            return cls.OTHER
