"""PostgreSQL connection helpers."""

import logging
from contextlib import contextmanager
from pathlib import Path
from typing import Generator, Optional

import psycopg2
from psycopg2.extras import RealDictCursor

from collab_story.config import get_database_url

logger = logging.getLogger(__name__)

SCHEMA_PATH = Path(__file__).parent / "schema.sql"


def connect(
    dsn: Optional[str] = None,
    connect_timeout: int = 5,
    statement_timeout_ms: int = 0,
):
    """Open a connection with RealDictCursor rows and the given timeouts."""
    options = None
    if statement_timeout_ms:
        options = f"-c statement_timeout={statement_timeout_ms}"
    return psycopg2.connect(
        dsn or get_database_url(),
        cursor_factory=RealDictCursor,
        connect_timeout=connect_timeout,
        options=options,
    )


@contextmanager
def get_connection(dsn: Optional[str] = None) -> Generator:
    """Get a database connection context manager."""
    conn = connect(dsn)
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()


def init_db(dsn: Optional[str] = None) -> None:
    """Initialize database schema."""
    with open(SCHEMA_PATH) as f:
        schema_sql = f.read()

    with get_connection(dsn) as conn:
        with conn.cursor() as cur:
            cur.execute(schema_sql)
    logger.info("Database schema applied")
