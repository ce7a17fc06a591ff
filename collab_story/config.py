"""
Runtime configuration.

All settings come from environment variables (optionally loaded from a
project-root .env file by the entry points). See load_settings().
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from collab_story.weaving.policy import CapacityPolicy

PROJECT_ROOT = Path(__file__).parent.parent

DEFAULT_DATABASE_URL = "postgresql://localhost:5432/collab_story"
DEFAULT_LOG_FILE = "/tmp/collab-story.log"

STORE_BACKENDS = ("postgres", "memory")


class ConfigError(ValueError):
    """Raised when an environment variable holds an unusable value."""
    pass


@dataclass(frozen=True)
class Settings:
    """Resolved process settings."""

    store_backend: str
    database_url: str
    db_connect_timeout: int
    db_statement_timeout_ms: int
    db_advisory_lock: bool
    append_lock_timeout: float
    policy: CapacityPolicy
    log_level: str
    log_file: Optional[str]


def load_env_file(path: Optional[Path] = None) -> None:
    """Load a .env file into os.environ without overriding existing values."""
    load_dotenv(path or PROJECT_ROOT / ".env")


def _get_int(name: str, default: int, minimum: Optional[int] = None) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        value = int(raw)
    except ValueError:
        raise ConfigError(f"{name} must be an integer, got {raw!r}")
    if minimum is not None and value < minimum:
        raise ConfigError(f"{name} must be >= {minimum}, got {value}")
    return value


def _get_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def get_database_url() -> str:
    """Get database connection string from environment."""
    return os.getenv("DATABASE_URL", DEFAULT_DATABASE_URL)


def load_policy() -> CapacityPolicy:
    """Build the capacity policy from environment overrides."""
    defaults = CapacityPolicy()
    return CapacityPolicy(
        title_words=_get_int("TITLE_WORDS", defaults.title_words, minimum=1),
        sentence_words=_get_int("SENTENCE_WORDS", defaults.sentence_words, minimum=1),
        paragraph_sentences=_get_int(
            "PARAGRAPH_SENTENCES", defaults.paragraph_sentences, minimum=1
        ),
        story_paragraphs=_get_int("STORY_PARAGRAPHS", defaults.story_paragraphs, minimum=1),
        max_word_length=_get_int("MAX_WORD_LENGTH", defaults.max_word_length, minimum=1),
    )


def load_settings() -> Settings:
    """
    Read all settings from the environment.

    Raises:
        ConfigError: If any variable is malformed
    """
    backend = os.getenv("STORE_BACKEND", "postgres").strip().lower()
    if backend not in STORE_BACKENDS:
        raise ConfigError(
            f"STORE_BACKEND must be one of {', '.join(STORE_BACKENDS)}, got {backend!r}"
        )

    # LOGS_ENABLE is the legacy debug switch; it wins over LOG_LEVEL
    log_level = os.getenv("LOG_LEVEL", "INFO").upper()
    if _get_bool("LOGS_ENABLE", False):
        log_level = "DEBUG"

    lock_timeout = _get_int("APPEND_LOCK_TIMEOUT", 10, minimum=-1)

    return Settings(
        store_backend=backend,
        database_url=get_database_url(),
        db_connect_timeout=_get_int("DB_CONNECT_TIMEOUT", 5, minimum=1),
        db_statement_timeout_ms=_get_int("DB_STATEMENT_TIMEOUT_MS", 5000, minimum=0),
        db_advisory_lock=_get_bool("DB_ADVISORY_LOCK", True),
        append_lock_timeout=float(lock_timeout),
        policy=load_policy(),
        log_level=log_level,
        log_file=os.getenv("LOG_FILE", DEFAULT_LOG_FILE) or None,
    )
