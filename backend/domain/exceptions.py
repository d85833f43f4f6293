"""
Domain exceptions for the weather agent.

Each exception carries the message that is safe to show to API clients
(``public_message``); the constructor message and ``details`` are for logs only.
"""
from typing import Optional, Dict, Any


GENERIC_ERROR_MESSAGE = "Something went wrong"
UNRELIABLE_ANSWER_MESSAGE = "Could not get reliable weather information"


class WeatherAgentError(Exception):
    """Base exception for all weather agent failures."""

    public_message: str = GENERIC_ERROR_MESSAGE
    status_code: int = 500

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(self.message)


class ProviderError(WeatherAgentError):
    """Raised when the LLM provider cannot be reached or keeps failing."""


class EmptyReplyError(ProviderError):
    """Raised when the provider answers without any usable message."""


class ModelProtocolViolationError(WeatherAgentError):
    """Raised when the model does not follow the tool-calling contract."""

    public_message = UNRELIABLE_ANSWER_MESSAGE


class InvalidToolArgumentsError(ModelProtocolViolationError):
    """Raised when tool arguments are not valid JSON or do not match the tool schema."""

    def __init__(self, tool_name: str, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            f"Invalid arguments for tool '{tool_name}': {message}",
            details={"tool_name": tool_name, **(details or {})}
        )
        self.tool_name = tool_name


class UnknownToolError(WeatherAgentError):
    """Raised when the model requests a tool that is not registered."""

    def __init__(self, tool_name: str):
        super().__init__(f"Unsupported tool: {tool_name}", details={"tool_name": tool_name})
        self.tool_name = tool_name

    @property
    def public_message(self) -> str:
        return self.message


class ToolExecutionError(WeatherAgentError):
    """Raised when a local tool executor fails."""

    def __init__(self, tool_name: str, message: str):
        super().__init__(f"Tool '{tool_name}' failed: {message}", details={"tool_name": tool_name})
        self.tool_name = tool_name


class ResponseParseError(WeatherAgentError):
    """Raised when the final structured answer does not match the response schema."""

    public_message = "Could not parse weather information"


class ConversationError(WeatherAgentError):
    """Raised when a message would break the conversation ordering rules."""


class ToolRegistryError(Exception):
    """Raised at startup when the tool registry is inconsistent."""
