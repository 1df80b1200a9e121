"""Exceptions raised by gitgpt.

Only transport failures and primary persistence failures reach the user.
Decode noise, compaction failures and checkpoint failures are reported as
result values instead (see ``CompactionStatus`` and ``CheckpointStatus``).
"""


class GitGPTError(Exception):
    """Base class for all gitgpt errors."""


class TransportError(GitGPTError):
    """The provider rejected a request or the connection failed.

    Attributes:
        status_code: HTTP status returned by the provider, if any.
    """

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code

    def __str__(self) -> str:
        message = super().__str__()
        if self.status_code is not None:
            return f"{self.status_code} {message}"
        return message


class ConversationNotFound(GitGPTError, LookupError):
    """No persisted conversation exists for the requested id."""

    def __init__(self, conversation_id: str) -> None:
        super().__init__(f"conversation not found: {conversation_id}")
        self.conversation_id = conversation_id


class PersistenceError(GitGPTError):
    """Reading or writing the primary transcript snapshot failed."""


class ConfigError(GitGPTError, ValueError):
    """Invalid configuration value."""
