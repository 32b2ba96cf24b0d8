"""Exception types raised by unillm."""


class UnillmError(Exception):
    """Base class for unillm errors."""


class ToolSchemaError(UnillmError, ValueError):
    """A tool definition is structurally invalid for the target provider."""

    def __init__(self, tool_name: str, message: str) -> None:
        self.tool_name = tool_name
        super().__init__(f"Invalid tool definition {tool_name!r}: {message}")
