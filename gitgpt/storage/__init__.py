"""Transcript stores for conversation persistence."""

from gitgpt.storage.base import Checkpoint, CheckpointStatus, PersistResult, TranscriptStore
from gitgpt.storage.memory import MemoryTranscriptStore
from gitgpt.storage.file import FileTranscriptStore

__all__ = [
    "TranscriptStore",
    "Checkpoint",
    "CheckpointStatus",
    "PersistResult",
    "MemoryTranscriptStore",
    "FileTranscriptStore",
]
