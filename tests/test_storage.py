"""Tests for transcript stores."""

import json
from datetime import datetime, timedelta, timezone

import pytest

from gitgpt.errors import ConversationNotFound, PersistenceError
from gitgpt.models import Conversation, Turn, generate_conversation_id
from gitgpt.storage import CheckpointStatus, FileTranscriptStore, MemoryTranscriptStore


def make_conversation(conversation_id: str = "20250101120000", count: int = 2) -> Conversation:
    turns = tuple(
        Turn.user(f"question {i}") if i % 2 == 0 else Turn.assistant(f"answer {i}")
        for i in range(count)
    )
    return Conversation(id=conversation_id, created_at="2025-01-01T12:00:00+00:00", turns=turns)


@pytest.fixture(params=["memory", "file"])
def store(request, tmp_path):
    """Each behavioural test runs against both stores."""
    if request.param == "memory":
        return MemoryTranscriptStore()
    return FileTranscriptStore(tmp_path / "conversations")


class TestTranscriptStore:
    """Behaviour shared by all transcript stores."""

    def test_persist_and_load(self, store):
        """Test that a persisted conversation loads back unchanged."""
        conversation = make_conversation()

        result = store.persist(conversation)

        assert result.saved is True
        assert store.load(conversation.id) == conversation

    def test_persist_replaces_snapshot(self, store):
        """Test that each persist writes the full latest state."""
        conversation = make_conversation()
        store.persist(conversation)

        grown = conversation.append(Turn.user("follow up"))
        store.persist(grown)

        assert store.load(conversation.id).turns == grown.turns

    def test_empty_conversation_not_saved(self, store):
        """Test that persisting no turns is a no-op."""
        conversation = Conversation(id="20250101120000")

        result = store.persist(conversation)

        assert result.saved is False
        assert result.checkpoint is CheckpointStatus.SKIPPED
        assert store.list_ids() == []
        with pytest.raises(ConversationNotFound):
            store.load(conversation.id)

    def test_load_unknown_id(self, store):
        """Test that an unknown id raises ConversationNotFound."""
        with pytest.raises(ConversationNotFound):
            store.load("19990101000000")

    def test_not_found_is_lookup_error(self, store):
        """Test that callers can catch a missing conversation as LookupError."""
        with pytest.raises(LookupError):
            store.load("missing")

    def test_list_ids_sorted(self, store):
        """Test that ids are listed in ascending order."""
        for conversation_id in ["20250103000000", "20250101000000", "20250102000000"]:
            store.persist(make_conversation(conversation_id))

        assert store.list_ids() == ["20250101000000", "20250102000000", "20250103000000"]

    def test_checkpoint_per_persist(self, store):
        """Test that every persist records a numbered checkpoint."""
        conversation = make_conversation()
        first = store.persist(conversation)
        second = store.persist(conversation.append(Turn.user("more")))

        assert first.checkpoint is CheckpointStatus.RECORDED
        assert (first.version, second.version) == (1, 2)

        checkpoints = store.checkpoints(conversation.id)
        assert [c.version for c in checkpoints] == [1, 2]
        assert checkpoints[0].turns == conversation.turns
        assert len(checkpoints[1].turns) == 3

    def test_load_checkpoint(self, store):
        """Test that an earlier transcript state can be recovered."""
        conversation = make_conversation()
        store.persist(conversation)
        store.persist(conversation.with_turns([Turn.system("[Conversation Summary]\n- s")]))

        restored = store.load_checkpoint(conversation.id, 1)

        assert restored.turns == conversation.turns
        assert restored.id == conversation.id

    def test_load_unknown_checkpoint(self, store):
        """Test that a missing version raises ConversationNotFound."""
        conversation = make_conversation()
        store.persist(conversation)

        with pytest.raises(ConversationNotFound):
            store.load_checkpoint(conversation.id, 5)

    def test_no_checkpoints_for_unknown_id(self, store):
        assert store.checkpoints("missing") == []


class TestFileTranscriptStore:
    """Tests specific to the file-backed store."""

    def test_record_shape(self, tmp_path):
        """Test the persisted JSON record fields."""
        store = FileTranscriptStore(tmp_path)
        conversation = make_conversation()

        store.persist(conversation)

        data = json.loads(store.snapshot_path(conversation.id).read_text(encoding="utf-8"))
        assert set(data) == {"id", "createdAt", "turns"}
        assert data["id"] == conversation.id
        assert data["createdAt"] == conversation.created_at
        assert data["turns"][0] == {"role": "user", "content": "question 0"}

    def test_non_ascii_content(self, tmp_path):
        """Test that CJK text is stored readably and loads back."""
        store = FileTranscriptStore(tmp_path)
        conversation = Conversation(id="20250101000000", turns=(Turn.user("你好"),))

        store.persist(conversation)

        assert "你好" in store.snapshot_path(conversation.id).read_text(encoding="utf-8")
        assert store.load(conversation.id).turns[0].content == "你好"

    def test_survives_reopen(self, tmp_path):
        """Test that a new store instance sees earlier conversations."""
        conversation = make_conversation()
        FileTranscriptStore(tmp_path).persist(conversation)

        reopened = FileTranscriptStore(tmp_path)

        assert reopened.load(conversation.id) == conversation
        assert len(reopened.checkpoints(conversation.id)) == 1

    def test_checkpoint_versions_continue_after_reopen(self, tmp_path):
        conversation = make_conversation()
        FileTranscriptStore(tmp_path).persist(conversation)

        result = FileTranscriptStore(tmp_path).persist(conversation)

        assert result.version == 2

    def test_torn_checkpoint_line(self, tmp_path):
        """Test that an interrupted append does not spoil later checkpoints."""
        store = FileTranscriptStore(tmp_path)
        conversation = make_conversation()
        store.persist(conversation)
        with open(store.history_path(conversation.id), "a", encoding="utf-8") as f:
            f.write('{"version": 2, "turns": [{"role": "us')

        second = store.persist(conversation.append(Turn.user("more")))
        third = store.persist(conversation.append(Turn.user("again")))

        assert (second.version, third.version) == (2, 3)
        checkpoints = store.checkpoints(conversation.id)
        assert [c.version for c in checkpoints] == [1, 2, 3]
        assert checkpoints[1].turns[-1] == Turn.user("more")

    def test_legacy_messages_key(self, tmp_path):
        """Test that records storing turns under "messages" still load."""
        store = FileTranscriptStore(tmp_path)
        store.snapshot_path("20240101000000").write_text(json.dumps({
            "id": "20240101000000",
            "createdAt": "2024-01-01T00:00:00.000Z",
            "messages": [{"role": "user", "content": "hi"}],
        }), encoding="utf-8")

        conversation = store.load("20240101000000")

        assert conversation.turns == (Turn.user("hi"),)

    def test_legacy_summary_marker(self, tmp_path):
        """Test that an older summary turn loads as the rolling summary."""
        store = FileTranscriptStore(tmp_path)
        store.snapshot_path("20240101000000").write_text(json.dumps({
            "id": "20240101000000",
            "createdAt": "2024-01-01T00:00:00.000Z",
            "messages": [
                {"role": "system", "content": "[對話摘要]\n- earlier facts"},
                {"role": "user", "content": "hi"},
            ],
        }), encoding="utf-8")

        conversation = store.load("20240101000000")

        assert conversation.summary is not None
        assert conversation.summary.content == "[Conversation Summary]\n- earlier facts"
        assert conversation.summary.summary_body == "- earlier facts"

    def test_malformed_record(self, tmp_path):
        """Test that an unreadable record raises PersistenceError."""
        store = FileTranscriptStore(tmp_path)
        store.snapshot_path("20240101000000").write_text("{oops", encoding="utf-8")

        with pytest.raises(PersistenceError):
            store.load("20240101000000")

    def test_unknown_role(self, tmp_path):
        store = FileTranscriptStore(tmp_path)
        store.snapshot_path("20240101000000").write_text(json.dumps({
            "id": "20240101000000",
            "turns": [{"role": "tool", "content": "x"}],
        }), encoding="utf-8")

        with pytest.raises(PersistenceError):
            store.load("20240101000000")

    def test_unsafe_id(self, tmp_path):
        """Test that ids cannot escape the data directory."""
        store = FileTranscriptStore(tmp_path / "data")

        with pytest.raises(ConversationNotFound):
            store.load("../secret")
        with pytest.raises(PersistenceError):
            store.persist(make_conversation("../secret"))

    def test_no_temp_files_left(self, tmp_path):
        """Test that the atomic write cleans up after itself."""
        store = FileTranscriptStore(tmp_path)
        store.persist(make_conversation())

        assert [p.name for p in tmp_path.iterdir() if p.is_file()] == ["20250101120000.json"]

    def test_checkpoint_failure_does_not_block_snapshot(self, tmp_path, monkeypatch):
        """Test that a failed checkpoint is reported, not raised."""
        store = FileTranscriptStore(tmp_path)

        def broken_checkpoint(conversation):
            raise OSError("disk full")

        monkeypatch.setattr(store, "_record_checkpoint", broken_checkpoint)
        conversation = make_conversation()

        result = store.persist(conversation)

        assert result.saved is True
        assert result.checkpoint is CheckpointStatus.FAILED
        assert store.load(conversation.id) == conversation

    def test_snapshot_failure_raises(self, tmp_path, monkeypatch):
        """Test that a failed primary write raises PersistenceError."""
        store = FileTranscriptStore(tmp_path)
        previous = make_conversation()
        store.persist(previous)

        def broken_replace(src, dst):
            raise OSError("read-only file system")

        monkeypatch.setattr("gitgpt.storage.file.os.replace", broken_replace)

        with pytest.raises(PersistenceError):
            store.persist(previous.append(Turn.user("lost?")))

        monkeypatch.undo()
        assert store.load(previous.id) == previous
        assert not list(tmp_path.glob("*.tmp"))
        assert not list(tmp_path.glob(".*.tmp"))


class TestConversationIds:
    """Tests for conversation id generation."""

    def test_format(self):
        now = datetime(2025, 3, 4, 5, 6, 7, tzinfo=timezone.utc)

        assert generate_conversation_id(now) == "20250304050607"

    def test_lexicographic_order_is_chronological(self):
        """Test that sorting ids sorts by creation time."""
        start = datetime(2025, 12, 31, 23, 59, 0, tzinfo=timezone.utc)
        times = [start + timedelta(seconds=s) for s in (0, 30, 61, 3600, 86400 * 40)]
        ids = [generate_conversation_id(t) for t in times]

        assert sorted(ids) == ids

    def test_converted_to_utc(self):
        local = datetime(2025, 1, 1, 8, 0, 0, tzinfo=timezone(timedelta(hours=8)))

        assert generate_conversation_id(local) == "20250101000000"

    def test_default_conversation_gets_id(self):
        conversation = Conversation()

        assert len(conversation.id) == 14
        assert conversation.id.isdigit()
