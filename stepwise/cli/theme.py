"""Rich styles used across the stepwise CLI.

Every color lives here so commands and formatters never hard-code markup.
"""


class Theme:
    # Outcome indicators
    SUCCESS_BOLD = "bold green"
    ERROR = "red"
    ERROR_BOLD = "bold red"
    WARNING = "yellow"
    WARNING_BOLD = "bold yellow"
    INFO = "cyan"

    # Text
    HEADER = "bold"
    DIM = "grey62"
    DIM_ITALIC = "grey62 italic"

    # Approval prompt
    PROMPT = "cyan"
    CAPABILITY_DANGEROUS = "bold red"
    CAPABILITY_SAFE = "green"

    # Plan and task status
    STATUS_DONE = "bold green"
    STATUS_ACTIVE = "bold yellow"
    STATUS_PENDING = "grey62"
    STATUS_FAILED = "bold red"
    STATUS_BLOCKED = "red"
    STATUS_SKIPPED = "magenta"

    # Result panels
    BORDER_INFO = "blue"
    BORDER_ERROR = "red"
    BORDER_WARNING = "yellow"

    # Tool activity lines
    TOOL_OPERATION = "light_steel_blue"
    TOOL_ARGS = "grey74"


theme = Theme()
