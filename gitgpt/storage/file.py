"""File-backed transcript store with a checkpoint log.

Layout under the data directory::

    <id>.json              current snapshot {id, createdAt, turns}
    history/<id>.jsonl     one checkpoint per persist, oldest first

Snapshots are rewritten whole on every persist and replaced atomically, so
a crash mid-write leaves the previous snapshot intact. The checkpoint log
is best effort: if it cannot be written the snapshot still counts as saved.
"""

import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path

from gitgpt.errors import ConversationNotFound, PersistenceError
from gitgpt.models import Conversation
from gitgpt.storage.base import Checkpoint, CheckpointStatus, PersistResult

logger = logging.getLogger(__name__)


def _is_safe_id(conversation_id: str) -> bool:
    return (
        bool(conversation_id)
        and Path(conversation_id).name == conversation_id
        and not conversation_id.startswith(".")
    )


class FileTranscriptStore:
    """Transcript store keeping one JSON file per conversation.

    Example:
        >>> store = FileTranscriptStore("~/.gitgpt/conversations")
        >>> result = store.persist(conversation)
        >>> store.load(conversation.id) == conversation
        True
    """

    def __init__(self, data_dir: str | Path) -> None:
        """Initialize the store, creating the data directory if needed.

        Args:
            data_dir: Directory holding snapshots and the checkpoint log.
        """
        self._data_dir = Path(data_dir).expanduser()
        self._history_dir = self._data_dir / "history"
        self._data_dir.mkdir(parents=True, exist_ok=True)

    @property
    def data_dir(self) -> Path:
        """Directory holding the snapshots."""
        return self._data_dir

    def snapshot_path(self, conversation_id: str) -> Path:
        """Path of the snapshot file for a conversation."""
        return self._data_dir / f"{conversation_id}.json"

    def history_path(self, conversation_id: str) -> Path:
        """Path of the checkpoint log for a conversation."""
        return self._history_dir / f"{conversation_id}.jsonl"

    def load(self, conversation_id: str) -> Conversation:
        if not _is_safe_id(conversation_id):
            raise ConversationNotFound(conversation_id)

        path = self.snapshot_path(conversation_id)
        try:
            with open(path, encoding="utf-8") as f:
                data = json.load(f)
        except FileNotFoundError:
            raise ConversationNotFound(conversation_id) from None
        except (OSError, json.JSONDecodeError) as e:
            raise PersistenceError(f"cannot read {path}: {e}") from e

        try:
            return Conversation.from_dict(data)
        except (KeyError, TypeError, ValueError) as e:
            raise PersistenceError(f"malformed conversation record {path}: {e}") from e

    def persist(self, conversation: Conversation) -> PersistResult:
        if not conversation.turns:
            return PersistResult(saved=False)
        if not _is_safe_id(conversation.id):
            raise PersistenceError(f"invalid conversation id: {conversation.id!r}")

        self._write_snapshot(conversation)

        try:
            version = self._record_checkpoint(conversation)
        except OSError:
            logger.debug("Could not record checkpoint for %s", conversation.id, exc_info=True)
            return PersistResult(saved=True, checkpoint=CheckpointStatus.FAILED)

        return PersistResult(saved=True, checkpoint=CheckpointStatus.RECORDED, version=version)

    def list_ids(self) -> list[str]:
        return sorted(p.stem for p in self._data_dir.glob("*.json") if p.is_file())

    def checkpoints(self, conversation_id: str) -> list[Checkpoint]:
        if not _is_safe_id(conversation_id):
            return []

        path = self.history_path(conversation_id)
        if not path.exists():
            return []

        checkpoints = []
        with open(path, encoding="utf-8", errors="replace") as f:
            for line in f:
                if not line.strip():
                    continue
                try:
                    checkpoints.append(Checkpoint.from_dict(json.loads(line)))
                except (json.JSONDecodeError, KeyError, ValueError):
                    # A torn final line from an interrupted append
                    logger.debug("Skipping unreadable checkpoint in %s", path)
        return checkpoints

    def load_checkpoint(self, conversation_id: str, version: int) -> Conversation:
        current = self.load(conversation_id)
        for checkpoint in self.checkpoints(conversation_id):
            if checkpoint.version == version:
                return current.with_turns(checkpoint.turns)
        raise ConversationNotFound(f"{conversation_id}@{version}")

    def _write_snapshot(self, conversation: Conversation) -> None:
        path = self.snapshot_path(conversation.id)
        tmp_name = None
        try:
            with tempfile.NamedTemporaryFile(
                "w",
                encoding="utf-8",
                dir=self._data_dir,
                prefix=f".{conversation.id}.",
                suffix=".tmp",
                delete=False,
            ) as f:
                tmp_name = f.name
                json.dump(conversation.to_dict(), f, ensure_ascii=False, indent=2)
                f.flush()
                os.fsync(f.fileno())
            os.replace(tmp_name, path)
        except OSError as e:
            if tmp_name is not None:
                Path(tmp_name).unlink(missing_ok=True)
            raise PersistenceError(f"cannot write {path}: {e}") from e

    def _record_checkpoint(self, conversation: Conversation) -> int:
        self._history_dir.mkdir(parents=True, exist_ok=True)
        path = self.history_path(conversation.id)

        existing = self.checkpoints(conversation.id)
        version = existing[-1].version + 1 if existing else 1

        # A torn last line from an interrupted append has no newline
        separator = ""
        if path.exists() and path.stat().st_size > 0:
            with open(path, "rb") as f:
                f.seek(-1, os.SEEK_END)
                if f.read(1) != b"\n":
                    separator = "\n"

        checkpoint = Checkpoint(
            version=version,
            timestamp=datetime.now(timezone.utc).isoformat(),
            turns=conversation.turns,
        )
        with open(path, "a", encoding="utf-8") as f:
            f.write(separator + json.dumps(checkpoint.to_dict(), ensure_ascii=False) + "\n")
        return version
