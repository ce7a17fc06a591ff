"""
FastAPI Dependency Injection

Provides the process-wide store, append engine and query service for API
endpoints. The engine is a singleton: its lock is what serializes appends
within this process.
"""

import logging
from functools import lru_cache

from collab_story.config import Settings, load_settings
from collab_story.db.store import Store
from collab_story.observability import InMemoryMetrics
from collab_story.weaving.services import AppendEngine, StoryQueryService

logger = logging.getLogger(__name__)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return load_settings()


def build_store(settings: Settings) -> Store:
    """Create the Store selected by STORE_BACKEND."""
    if settings.store_backend == "memory":
        from collab_story.db.memory_store import InMemoryStore

        logger.warning("Using in-memory store; stories are lost on restart")
        return InMemoryStore(policy=settings.policy)

    from collab_story.db.postgres_store import PostgresStore

    return PostgresStore(
        settings.database_url,
        policy=settings.policy,
        connect_timeout=settings.db_connect_timeout,
        statement_timeout_ms=settings.db_statement_timeout_ms,
        advisory_lock=settings.db_advisory_lock,
    )


@lru_cache(maxsize=1)
def get_store() -> Store:
    """FastAPI dependency for the shared Store."""
    return build_store(get_settings())


@lru_cache(maxsize=1)
def get_metrics() -> InMemoryMetrics:
    """FastAPI dependency for the shared metrics sink."""
    return InMemoryMetrics()


@lru_cache(maxsize=1)
def get_engine() -> AppendEngine:
    """FastAPI dependency for the shared AppendEngine."""
    settings = get_settings()
    return AppendEngine(
        get_store(),
        policy=settings.policy,
        lock_timeout=settings.append_lock_timeout,
        metrics=get_metrics(),
    )


def get_query_service() -> StoryQueryService:
    """FastAPI dependency for StoryQueryService."""
    return StoryQueryService(get_store())
