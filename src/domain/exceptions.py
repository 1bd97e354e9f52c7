"""
domain.exceptions - Custom exception hierarchy for the conversational agent.

All domain-level errors inherit from DomainError so callers can catch
broad or specific exceptions as needed.
"""


class DomainError(Exception):
    """Base exception for all domain-level errors."""


class NotFoundError(DomainError):
    """Raised when a referenced thread or tool does not exist."""


class ThreadNotFoundError(NotFoundError):
    """Raised when a thread id does not match any stored thread."""

    def __init__(self, thread_id: str):
        super().__init__(f"Thread not found: {thread_id}")
        self.thread_id = thread_id


class ToolNotFoundError(NotFoundError):
    """Raised when no ready tool provider exposes the requested tool."""

    def __init__(self, tool_name: str):
        super().__init__(f"Tool not found: {tool_name}")
        self.tool_name = tool_name


class ToolExecutionError(DomainError):
    """Raised when a tool provider fails to execute a call."""


class ToolConnectionError(DomainError):
    """Raised when a tool provider cannot be connected."""


class UpstreamError(DomainError):
    """Raised when the LLM completion call fails."""


class DataIntegrityError(DomainError):
    """Raised when stored conversation data is malformed."""


class RepositoryError(DomainError):
    """Raised when a database operation fails."""


class DuplicateMessageError(RepositoryError):
    """Raised when a message id is already present in the store."""


class EmptyMessageError(DomainError, ValueError):
    """Raised when a chat turn is started with an empty user message."""
