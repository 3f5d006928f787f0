"""Custom exceptions for Grok CLI."""


class GrokCliError(Exception):
    """Base exception for Grok CLI."""

    pass


class ConfigurationError(GrokCliError):
    """Configuration-related errors."""

    pass


class LLMError(GrokCliError):
    """LLM-related errors."""

    pass


class LLMAPIError(LLMError):
    """LLM API errors (rate limit, auth, etc.)."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class LLMResponseError(LLMError):
    """Model returned a payload without a usable assistant message."""

    pass


class ToolError(GrokCliError):
    """Tool execution errors."""

    pass


class ToolExecutionError(ToolError):
    """Tool execution failed."""

    def __init__(self, tool_name: str, message: str):
        super().__init__(f"Tool '{tool_name}' failed: {message}")
        self.tool_name = tool_name


class ToolArgumentError(ToolError):
    """Tool call arguments are not a JSON object."""

    def __init__(self, tool_name: str, message: str):
        super().__init__(f"Invalid arguments for {tool_name}: {message}")
        self.tool_name = tool_name


class ToolNotFoundError(ToolError):
    """Tool not found in registry."""

    def __init__(self, tool_name: str):
        super().__init__(f"Tool not found: {tool_name}")
        self.tool_name = tool_name
