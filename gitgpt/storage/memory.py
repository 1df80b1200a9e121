"""In-memory transcript store.

Same semantics as the file store, but nothing survives the process.
Useful for tests and for embedding the chat session elsewhere.
"""

from datetime import datetime, timezone

from gitgpt.errors import ConversationNotFound
from gitgpt.models import Conversation
from gitgpt.storage.base import Checkpoint, CheckpointStatus, PersistResult


class MemoryTranscriptStore:
    """In-memory transcript store.

    Example:
        >>> store = MemoryTranscriptStore()
        >>> store.persist(Conversation(turns=(Turn.user("Hello"),)))
        PersistResult(saved=True, checkpoint=<CheckpointStatus.RECORDED: 'recorded'>, version=1)
    """

    def __init__(self) -> None:
        """Initialize empty storage."""
        self._records: dict[str, Conversation] = {}
        self._history: dict[str, list[Checkpoint]] = {}

    def load(self, conversation_id: str) -> Conversation:
        try:
            return self._records[conversation_id]
        except KeyError:
            raise ConversationNotFound(conversation_id) from None

    def persist(self, conversation: Conversation) -> PersistResult:
        if not conversation.turns:
            return PersistResult(saved=False)

        self._records[conversation.id] = conversation

        history = self._history.setdefault(conversation.id, [])
        checkpoint = Checkpoint(
            version=len(history) + 1,
            timestamp=datetime.now(timezone.utc).isoformat(),
            turns=conversation.turns,
        )
        history.append(checkpoint)
        return PersistResult(saved=True, checkpoint=CheckpointStatus.RECORDED, version=checkpoint.version)

    def list_ids(self) -> list[str]:
        return sorted(self._records)

    def checkpoints(self, conversation_id: str) -> list[Checkpoint]:
        return list(self._history.get(conversation_id, []))

    def load_checkpoint(self, conversation_id: str, version: int) -> Conversation:
        current = self.load(conversation_id)
        for checkpoint in self._history.get(conversation_id, []):
            if checkpoint.version == version:
                return current.with_turns(checkpoint.turns)
        raise ConversationNotFound(f"{conversation_id}@{version}")

    def clear(self) -> None:
        """Drop all records and checkpoints."""
        self._records = {}
        self._history = {}
