"""Conversation data model.

Turns and conversations are immutable: every change (a new turn, a
compacted history) produces a new snapshot instead of editing one in place.
"""

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterable


# Reserved prefix marking the rolling summary turn at index 0.
SUMMARY_MARKER = "[Conversation Summary]"
# Marker written by older transcripts; read as SUMMARY_MARKER on load.
LEGACY_SUMMARY_MARKER = "[對話摘要]"


class Role(str, Enum):
    """Who authored a turn."""
    SYSTEM = "system"
    USER = "user"
    ASSISTANT = "assistant"


@dataclass(frozen=True)
class Turn:
    """A single message in a conversation.

    Attributes:
        role: Author of the message.
        content: Message text.
    """
    role: Role
    content: str

    @classmethod
    def user(cls, content: str) -> "Turn":
        return cls(Role.USER, content)

    @classmethod
    def assistant(cls, content: str) -> "Turn":
        return cls(Role.ASSISTANT, content)

    @classmethod
    def system(cls, content: str) -> "Turn":
        return cls(Role.SYSTEM, content)

    @property
    def is_summary(self) -> bool:
        """Whether this turn is a rolling summary."""
        return self.role is Role.SYSTEM and self.content.startswith(SUMMARY_MARKER)

    @property
    def summary_body(self) -> str:
        """Summary text without the marker line (empty for normal turns)."""
        if not self.is_summary:
            return ""
        return self.content[len(SUMMARY_MARKER):].lstrip("\n")

    def to_dict(self) -> dict[str, str]:
        """Convert to the ``{"role", "content"}`` wire shape."""
        return {"role": self.role.value, "content": self.content}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Turn":
        """Create from a ``{"role", "content"}`` mapping.

        Raises:
            ValueError: If the role is not one of system/user/assistant.
        """
        return cls(Role(data["role"]), str(data.get("content") or ""))


def make_summary_turn(summary: str, previous: Turn | None = None) -> Turn:
    """Build a rolling summary, appending to a previous one if given."""
    existing = previous.summary_body + "\n\n" if previous and previous.is_summary else ""
    return Turn.system(f"{SUMMARY_MARKER}\n{existing}{summary}")


def generate_conversation_id(now: datetime | None = None) -> str:
    """Generate a sortable, timestamp-derived conversation id.

    Ids have the form ``YYYYMMDDHHMMSS`` in UTC, so lexicographic order
    is chronological order.
    """
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).strftime("%Y%m%d%H%M%S")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class Conversation:
    """An ordered, append-only sequence of turns identified by id.

    Attributes:
        id: Conversation identifier.
        created_at: ISO-8601 creation timestamp.
        turns: The active turn sequence.
    """
    id: str = field(default_factory=generate_conversation_id)
    created_at: str = field(default_factory=_now_iso)
    turns: tuple[Turn, ...] = ()

    def append(self, turn: Turn) -> "Conversation":
        """Return a new snapshot with ``turn`` appended."""
        return replace(self, turns=self.turns + (turn,))

    def with_turns(self, turns: Iterable[Turn]) -> "Conversation":
        """Return a new snapshot holding ``turns``."""
        return replace(self, turns=tuple(turns))

    @property
    def summary(self) -> Turn | None:
        """The rolling summary, if the history has been compacted."""
        if self.turns and self.turns[0].is_summary:
            return self.turns[0]
        return None

    def to_dict(self) -> dict[str, Any]:
        """Convert to the persisted record shape."""
        return {
            "id": self.id,
            "createdAt": self.created_at,
            "turns": [t.to_dict() for t in self.turns],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Conversation":
        """Create from a persisted record.

        Older records stored turns under ``messages`` and marked their
        summary with LEGACY_SUMMARY_MARKER; both forms are read.
        """
        raw_turns = data.get("turns")
        if raw_turns is None:
            raw_turns = data.get("messages", [])
        turns = [Turn.from_dict(t) for t in raw_turns]

        if turns and turns[0].role is Role.SYSTEM and turns[0].content.startswith(LEGACY_SUMMARY_MARKER):
            body = turns[0].content[len(LEGACY_SUMMARY_MARKER):]
            turns[0] = Turn.system(SUMMARY_MARKER + body)

        return cls(
            id=str(data["id"]),
            created_at=data.get("createdAt") or _now_iso(),
            turns=tuple(turns),
        )
