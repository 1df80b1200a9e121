"""Chat session orchestration.

A ChatSession drives one conversation turn by turn:

    1. Appends the user message to a pending copy of the conversation
    2. Runs the compaction policy on the pending copy
    3. Streams the reply through the transport and stream decoder
    4. Appends the assistant reply and swaps in the new snapshot
    5. Persists the snapshot

Nothing is committed until the reply stream is exhausted, so a transport
error or an interrupted reply leaves the conversation as it was before the
turn.
"""

import logging
from typing import Callable, Iterator

from gitgpt.backends.base import Transport
from gitgpt.compactor import CompactionNotice, CompactionPolicy, CompactionResult, CompactionStatus
from gitgpt.config import ChatConfig
from gitgpt.models import Conversation, Turn
from gitgpt.storage.base import PersistResult, TranscriptStore
from gitgpt.storage.memory import MemoryTranscriptStore
from gitgpt.stream import decode_stream
from gitgpt.token_counter import estimate_tokens

logger = logging.getLogger(__name__)


class PendingTurn:
    """A user turn that has been prepared but not yet answered.

    Attributes:
        context: Turns that will be sent to the provider.
        compaction: Result of the compaction check for this turn.
        reply: Full assistant reply, set once the stream completes.
    """

    def __init__(
        self,
        session: "ChatSession",
        base: Conversation,
        pending: Conversation,
        compaction: CompactionResult,
    ) -> None:
        self._session = session
        self._base = base
        self._pending = pending
        self._started = False
        self.compaction = compaction
        self.reply: str | None = None

    @property
    def context(self) -> tuple[Turn, ...]:
        return self._pending.turns

    @property
    def estimated_tokens(self) -> int:
        """Estimated cost of the context, for display before sending."""
        return estimate_tokens(self._pending.turns)

    def stream(self) -> Iterator[str]:
        """Send the context and yield reply deltas as they arrive.

        The turn is committed and persisted after the last delta. Closing
        the iterator early discards the turn.

        Raises:
            TransportError: If the provider request fails.
            PersistenceError: If the committed snapshot cannot be written.
        """
        if self._started:
            raise RuntimeError("turn has already been sent")
        self._started = True

        parts: list[str] = []
        chunks = self._session.transport.send(self.context, model=self._session.config.model)
        for delta in decode_stream(chunks):
            parts.append(delta)
            yield delta

        self.reply = "".join(parts)
        self._session._commit(
            self._base,
            self._pending.append(Turn.assistant(self.reply)),
            self.compaction,
        )


class ChatSession:
    """Client-side chat session with automatic context compaction.

    Example:
        >>> from openai import OpenAI
        >>> from gitgpt import ChatSession, ChatConfig, FileTranscriptStore, OpenAITransport
        >>>
        >>> config = ChatConfig.from_env()
        >>> session = ChatSession(
        ...     OpenAITransport(OpenAI()),
        ...     FileTranscriptStore(config.data_dir),
        ...     config,
        ... )
        >>> turn = session.begin_turn("Help me write a parser")
        >>> for delta in turn.stream():
        ...     print(delta, end="")
    """

    def __init__(
        self,
        transport: Transport,
        store: TranscriptStore | None = None,
        config: ChatConfig | None = None,
        conversation: Conversation | None = None,
        on_compact: Callable[[CompactionNotice], None] | None = None,
    ) -> None:
        """Initialize the session.

        Args:
            transport: Provider transport for replies and summaries.
            store: Transcript store. Uses MemoryTranscriptStore if None.
            config: Chat configuration. Defaults are used if None.
            conversation: Conversation to resume. A new one is started if None.
            on_compact: Optional callback called when a turn that
                compacted the history is committed.
        """
        self._transport = transport
        self._store = store or MemoryTranscriptStore()
        self._config = config or ChatConfig()
        self._conversation = conversation or Conversation()
        self._on_compact = on_compact
        self._policy = CompactionPolicy(transport, self._config.compaction)

        # Stats tracking
        self._compaction_count: int = 0
        self._failed_compactions: int = 0
        self._cooldown_remaining: int = 0

    @property
    def transport(self) -> Transport:
        """The transport being used."""
        return self._transport

    @property
    def store(self) -> TranscriptStore:
        """The transcript store being used."""
        return self._store

    @property
    def config(self) -> ChatConfig:
        """The chat configuration."""
        return self._config

    @property
    def conversation(self) -> Conversation:
        """The current committed conversation snapshot."""
        return self._conversation

    @property
    def compaction_count(self) -> int:
        """Number of times compaction has fired in this session."""
        return self._compaction_count

    def begin_turn(self, message: str) -> PendingTurn:
        """Prepare a user turn: append it and run the compaction check.

        Args:
            message: User message.

        Returns:
            A PendingTurn whose ``stream()`` sends it.
        """
        base = self._conversation
        pending = base.append(Turn.user(message))

        compaction = self._check_compaction(pending)
        if compaction.compacted:
            pending = pending.with_turns(compaction.turns)

        return PendingTurn(self, base, pending, compaction)

    def chat(self, message: str) -> str:
        """Send a message and return the complete reply."""
        turn = self.begin_turn(message)
        for _ in turn.stream():
            pass
        return turn.reply or ""

    def compact_now(self) -> CompactionResult:
        """Compact the conversation regardless of its token cost.

        The compacted conversation is persisted on success.
        """
        result = self._policy.compact(self._conversation.turns, force=True)
        self._record_compaction(result)
        if result.compacted:
            self._conversation = self._conversation.with_turns(result.turns)
            self._store.persist(self._conversation)
        return result

    def save(self) -> PersistResult:
        """Persist the current conversation."""
        return self._store.persist(self._conversation)

    def estimate_tokens(self) -> int:
        """Estimated cost of the current conversation."""
        return estimate_tokens(self._conversation.turns)

    def get_stats(self) -> dict:
        """Get session statistics.

        Returns:
            Dictionary with stats:
            - conversation_id: Id of the current conversation
            - turn_count: Turns in the active context
            - estimated_tokens: Estimated cost of the active context
            - threshold: Cost that triggers compaction
            - compaction_count: Successful compactions this session
            - failed_compactions: Failed compaction attempts this session
            - has_summary: Whether the context starts with a rolling summary
        """
        return {
            "conversation_id": self._conversation.id,
            "turn_count": len(self._conversation.turns),
            "estimated_tokens": self.estimate_tokens(),
            "threshold": self._config.compaction.threshold_tokens,
            "compaction_count": self._compaction_count,
            "failed_compactions": self._failed_compactions,
            "has_summary": self._conversation.summary is not None,
        }

    def _check_compaction(self, pending: Conversation) -> CompactionResult:
        if self._cooldown_remaining > 0:
            self._cooldown_remaining -= 1
            return CompactionResult(CompactionStatus.SKIPPED, pending.turns, reason="cooling down")

        result = self._policy.compact(pending.turns)
        # Successes are recorded when the turn commits
        if result.status is CompactionStatus.FAILED:
            self._record_compaction(result)
        return result

    def _record_compaction(self, result: CompactionResult) -> None:
        if result.status is CompactionStatus.FAILED:
            self._failed_compactions += 1
            self._cooldown_remaining = self._config.compaction.failure_cooldown_turns
        elif result.compacted:
            self._compaction_count += 1
            if self._on_compact and result.notice:
                self._on_compact(result.notice)

    def _commit(
        self,
        base: Conversation,
        conversation: Conversation,
        compaction: CompactionResult | None = None,
    ) -> None:
        if self._conversation is not base:
            raise RuntimeError("conversation changed while the turn was in flight")
        self._conversation = conversation
        if compaction is not None and compaction.compacted:
            self._record_compaction(compaction)
        logger.debug("Committed turn %d of %s", len(conversation.turns), conversation.id)
        self._store.persist(conversation)
