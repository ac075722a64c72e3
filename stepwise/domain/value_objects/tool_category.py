from enum import Enum


class ToolCategory(str, Enum):
    """Grouping used by the loop detector to pick a repeat threshold."""

    EXPLORATION = "exploration"
    MUTATION = "mutation"
    MULTI_OPERATION = "multi_operation"
    OTHER = "other"
