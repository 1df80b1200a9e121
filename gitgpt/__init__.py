"""gitgpt - Command-line chat with resumable transcripts.

Long conversations within a bounded context window.
Older turns are folded into a rolling summary before they are resent,
and every transcript is saved with a history of checkpoints.

Example:
    >>> from openai import OpenAI
    >>> from gitgpt import ChatSession, ChatConfig, FileTranscriptStore, OpenAITransport
    >>>
    >>> config = ChatConfig.from_env()
    >>> transport = OpenAITransport(OpenAI(api_key=config.api_key), model=config.model)
    >>> session = ChatSession(transport, FileTranscriptStore(config.data_dir), config)
    >>> reply = session.chat("Help me design a distributed system")
"""

from gitgpt.compactor import (
    CompactionNotice,
    CompactionPolicy,
    CompactionResult,
    CompactionStatus,
    compression_ratio,
)
from gitgpt.config import ChatConfig, CompactionConfig
from gitgpt.errors import (
    ConfigError,
    ConversationNotFound,
    GitGPTError,
    PersistenceError,
    TransportError,
)
from gitgpt.backends.base import Transport
from gitgpt.models import SUMMARY_MARKER, Conversation, Role, Turn, generate_conversation_id
from gitgpt.session import ChatSession, PendingTurn
from gitgpt.storage import FileTranscriptStore, MemoryTranscriptStore
from gitgpt.stream import StreamDecoder, decode_stream
from gitgpt.token_counter import estimate_tokens

__version__ = "0.1.0"

__all__ = [
    # Core
    "ChatSession",
    "PendingTurn",
    "ChatConfig",
    "CompactionConfig",
    "CompactionPolicy",
    "CompactionResult",
    "CompactionStatus",
    "CompactionNotice",
    "compression_ratio",
    "StreamDecoder",
    "decode_stream",
    "estimate_tokens",
    # Models
    "Conversation",
    "Turn",
    "Role",
    "SUMMARY_MARKER",
    "generate_conversation_id",
    # Transports
    "Transport",
    # Storage
    "MemoryTranscriptStore",
    "FileTranscriptStore",
    # Errors
    "GitGPTError",
    "TransportError",
    "ConversationNotFound",
    "PersistenceError",
    "ConfigError",
    # Version
    "__version__",
]


# Lazy import for OpenAITransport to avoid importing openai up front
def __getattr__(name: str):
    if name == "OpenAITransport":
        from gitgpt.backends.openai import OpenAITransport
        return OpenAITransport
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
