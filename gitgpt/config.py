"""Configuration dataclasses for gitgpt."""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping

from gitgpt.errors import ConfigError


DEFAULT_DATA_DIR = Path.home() / ".gitgpt" / "conversations"


@dataclass
class CompactionConfig:
    """Configuration for context compaction.

    Attributes:
        threshold_tokens: Estimated cost at which compaction is considered.
        keep_recent: Number of most recent turns kept verbatim.
        summary_model: Model used for the summarization request.
        failure_cooldown_turns: Turns to skip compaction after a failed
            attempt. 0 retries on the very next turn.
    """

    threshold_tokens: int = 3_000
    keep_recent: int = 6
    summary_model: str = "gpt-4o-mini"
    failure_cooldown_turns: int = 0

    def __post_init__(self) -> None:
        if self.threshold_tokens <= 0:
            raise ConfigError("threshold_tokens must be positive")
        if self.keep_recent <= 0:
            raise ConfigError("keep_recent must be positive")
        if self.failure_cooldown_turns < 0:
            raise ConfigError("failure_cooldown_turns must not be negative")
        if not self.summary_model:
            raise ConfigError("summary_model must not be empty")

    @property
    def min_turns(self) -> int:
        """Compaction needs strictly more turns than this."""
        return self.keep_recent + 2


@dataclass
class ChatConfig:
    """Configuration for a chat session.

    Attributes:
        model: Model used for replies.
        data_dir: Directory holding persisted conversations.
        api_key: Provider API key (``OPENAI_API_KEY`` when loaded from env).
        base_url: Optional provider base URL.
        compaction: Compaction settings.
    """

    model: str = "gpt-4o"
    data_dir: Path = DEFAULT_DATA_DIR
    api_key: str | None = None
    base_url: str | None = None
    compaction: CompactionConfig = field(default_factory=CompactionConfig)

    def __post_init__(self) -> None:
        if not self.model:
            raise ConfigError("model must not be empty")
        self.data_dir = Path(self.data_dir).expanduser()

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "ChatConfig":
        """Build a config from environment variables.

        Reads ``OPENAI_API_KEY``, ``OPENAI_BASE_URL``, ``GITGPT_HOME``,
        ``GITGPT_MODEL``, ``GITGPT_SUMMARY_MODEL``,
        ``GITGPT_COMPACT_THRESHOLD`` and ``GITGPT_KEEP_RECENT``.

        Raises:
            ConfigError: If a numeric variable is not an integer.
        """
        env = os.environ if environ is None else environ

        compaction = CompactionConfig(
            threshold_tokens=_int_env(env, "GITGPT_COMPACT_THRESHOLD", 3_000),
            keep_recent=_int_env(env, "GITGPT_KEEP_RECENT", 6),
            summary_model=env.get("GITGPT_SUMMARY_MODEL") or "gpt-4o-mini",
        )

        home = env.get("GITGPT_HOME")
        data_dir = Path(home) / "conversations" if home else DEFAULT_DATA_DIR

        return cls(
            model=env.get("GITGPT_MODEL") or "gpt-4o",
            data_dir=data_dir,
            api_key=env.get("OPENAI_API_KEY") or None,
            base_url=env.get("OPENAI_BASE_URL") or None,
            compaction=compaction,
        )


def _int_env(env: Mapping[str, str], name: str, default: int) -> int:
    value = env.get(name)
    if not value:
        return default
    try:
        return int(value)
    except ValueError:
        raise ConfigError(f"{name} must be an integer (got {value!r})") from None
