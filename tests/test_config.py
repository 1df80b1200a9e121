"""Tests for configuration."""

from pathlib import Path

import pytest

from gitgpt.config import DEFAULT_DATA_DIR, ChatConfig, CompactionConfig
from gitgpt.errors import ConfigError


class TestCompactionConfig:
    """Tests for CompactionConfig class."""

    def test_default_values(self):
        """Test default configuration values."""
        config = CompactionConfig()

        assert config.threshold_tokens == 3_000
        assert config.keep_recent == 6
        assert config.summary_model == "gpt-4o-mini"
        assert config.failure_cooldown_turns == 0
        assert config.min_turns == 8

    def test_validation_positive_threshold(self):
        """Test that threshold_tokens must be positive."""
        with pytest.raises(ValueError, match="threshold_tokens must be positive"):
            CompactionConfig(threshold_tokens=0)

    def test_validation_positive_keep_recent(self):
        """Test that keep_recent must be positive."""
        with pytest.raises(ConfigError, match="keep_recent must be positive"):
            CompactionConfig(keep_recent=0)

    def test_validation_cooldown(self):
        with pytest.raises(ConfigError):
            CompactionConfig(failure_cooldown_turns=-1)


class TestChatConfig:
    """Tests for ChatConfig class."""

    def test_default_values(self):
        config = ChatConfig()

        assert config.model == "gpt-4o"
        assert config.data_dir == DEFAULT_DATA_DIR
        assert config.api_key is None
        assert isinstance(config.compaction, CompactionConfig)

    def test_data_dir_coerced_to_path(self):
        config = ChatConfig(data_dir="/tmp/gitgpt")

        assert config.data_dir == Path("/tmp/gitgpt")

    def test_from_env(self):
        """Test that environment variables populate the config."""
        config = ChatConfig.from_env({
            "OPENAI_API_KEY": "sk-test",
            "OPENAI_BASE_URL": "http://localhost:8080/v1",
            "GITGPT_HOME": "/srv/gitgpt",
            "GITGPT_MODEL": "gpt-4.1",
            "GITGPT_SUMMARY_MODEL": "gpt-4.1-mini",
            "GITGPT_COMPACT_THRESHOLD": "8000",
            "GITGPT_KEEP_RECENT": "4",
        })

        assert config.api_key == "sk-test"
        assert config.base_url == "http://localhost:8080/v1"
        assert config.data_dir == Path("/srv/gitgpt/conversations")
        assert config.model == "gpt-4.1"
        assert config.compaction.summary_model == "gpt-4.1-mini"
        assert config.compaction.threshold_tokens == 8000
        assert config.compaction.keep_recent == 4

    def test_from_empty_env(self):
        """Test that an empty environment gives the defaults."""
        config = ChatConfig.from_env({})

        assert config.api_key is None
        assert config.model == "gpt-4o"
        assert config.data_dir == DEFAULT_DATA_DIR
        assert config.compaction == CompactionConfig()

    def test_from_env_bad_integer(self):
        with pytest.raises(ConfigError, match="GITGPT_KEEP_RECENT"):
            ChatConfig.from_env({"GITGPT_KEEP_RECENT": "six"})
