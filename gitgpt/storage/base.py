"""Base protocol for transcript stores."""

from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol, runtime_checkable

from gitgpt.models import Conversation, Turn


class CheckpointStatus(Enum):
    """Outcome of recording a checkpoint."""
    RECORDED = "recorded"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class Checkpoint:
    """A historical snapshot recorded alongside the primary transcript.

    Attributes:
        version: 1-based position in the conversation's checkpoint log.
        timestamp: When the checkpoint was recorded.
        turns: The turn sequence at that time.
    """
    version: int
    timestamp: str
    turns: tuple[Turn, ...]

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "version": self.version,
            "timestamp": self.timestamp,
            "turns": [t.to_dict() for t in self.turns],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Checkpoint":
        """Create from dictionary."""
        return cls(
            version=int(data["version"]),
            timestamp=data.get("timestamp", ""),
            turns=tuple(Turn.from_dict(t) for t in data.get("turns", [])),
        )


@dataclass(frozen=True)
class PersistResult:
    """Result of ``TranscriptStore.persist``.

    Attributes:
        saved: Whether the snapshot was written (False for empty transcripts).
        checkpoint: Outcome of the best-effort checkpoint.
        version: Checkpoint version recorded, if any.
    """
    saved: bool
    checkpoint: CheckpointStatus = CheckpointStatus.SKIPPED
    version: int | None = None


@runtime_checkable
class TranscriptStore(Protocol):
    """Protocol that all transcript stores must implement.

    A store keeps one snapshot per conversation id plus an append-only log
    of checkpoints, one per successful persist.
    """

    def load(self, conversation_id: str) -> Conversation:
        """Load a conversation.

        Raises:
            ConversationNotFound: If no record exists for the id.
            PersistenceError: If the record cannot be read.
        """
        ...

    def persist(self, conversation: Conversation) -> PersistResult:
        """Write a full snapshot of the conversation, then checkpoint it.

        An empty conversation is not written. Checkpoint failures are
        reported in the result and never raised.

        Raises:
            PersistenceError: If the snapshot cannot be written.
        """
        ...

    def list_ids(self) -> list[str]:
        """List stored conversation ids in ascending order."""
        ...

    def checkpoints(self, conversation_id: str) -> list[Checkpoint]:
        """List the checkpoints recorded for a conversation, oldest first."""
        ...

    def load_checkpoint(self, conversation_id: str, version: int) -> Conversation:
        """Rebuild the conversation as it was at a checkpoint.

        Raises:
            ConversationNotFound: If the conversation or version does not exist.
        """
        ...
