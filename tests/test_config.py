"""Tests for environment-driven settings."""

import os
from unittest.mock import patch

import pytest

from collab_story.config import DEFAULT_DATABASE_URL, ConfigError, load_env_file, load_settings


class TestLoadSettings:

    def test_defaults(self):
        with patch.dict(os.environ, {}, clear=True):
            settings = load_settings()

        assert settings.store_backend == "postgres"
        assert settings.database_url == DEFAULT_DATABASE_URL
        assert settings.db_advisory_lock is True
        assert settings.append_lock_timeout == 10.0
        assert settings.policy.sentence_words == 15
        assert settings.policy.max_word_length == 240
        assert settings.log_level == "INFO"

    def test_overrides(self):
        env = {
            "STORE_BACKEND": "Memory",
            "DATABASE_URL": "postgresql://db:5432/other",
            "SENTENCE_WORDS": "5",
            "MAX_WORD_LENGTH": "16",
            "DB_ADVISORY_LOCK": "false",
            "APPEND_LOCK_TIMEOUT": "-1",
            "LOG_FILE": "",
        }
        with patch.dict(os.environ, env, clear=True):
            settings = load_settings()

        assert settings.store_backend == "memory"
        assert settings.database_url == "postgresql://db:5432/other"
        assert settings.policy.sentence_words == 5
        assert settings.policy.max_word_length == 16
        assert settings.db_advisory_lock is False
        assert settings.append_lock_timeout == -1.0
        assert settings.log_file is None

    @pytest.mark.parametrize("value", ["1", "true", "TRUE"])
    def test_logs_enable_forces_debug(self, value):
        with patch.dict(os.environ, {"LOGS_ENABLE": value, "LOG_LEVEL": "ERROR"}, clear=True):
            assert load_settings().log_level == "DEBUG"

    def test_rejects_unknown_backend(self):
        with patch.dict(os.environ, {"STORE_BACKEND": "mysql"}, clear=True):
            with pytest.raises(ConfigError, match="STORE_BACKEND"):
                load_settings()

    @pytest.mark.parametrize("value", ["abc", "0", "-3"])
    def test_rejects_bad_capacity(self, value):
        with patch.dict(os.environ, {"PARAGRAPH_SENTENCES": value}, clear=True):
            with pytest.raises(ConfigError, match="PARAGRAPH_SENTENCES"):
                load_settings()


class TestEnvFile:

    def test_env_file_does_not_override(self, tmp_path):
        env_path = tmp_path / ".env"
        env_path.write_text("DATABASE_URL=postgresql://from-file/db\nTITLE_WORDS=3\n")

        with patch.dict(os.environ, {"DATABASE_URL": "postgresql://from-env/db"}, clear=True):
            load_env_file(env_path)
            settings = load_settings()

        assert settings.database_url == "postgresql://from-env/db"
        assert settings.policy.title_words == 3
