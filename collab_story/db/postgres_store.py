"""
PostgreSQL Store.

One connection per transaction, rows as dicts (RealDictCursor). Write
transactions take a transaction-scoped advisory lock first so that appends
from several processes sharing one database are serialized.
"""

import functools
import logging
from contextlib import contextmanager
from typing import Iterator, List, Optional

import psycopg2
import psycopg2.errors

from collab_story.weaving.policy import DEFAULT_POLICY, CapacityPolicy, count_words

from .connection import connect
from .models import Paragraph, Sentence, Story
from .store import (
    ClosedContainer,
    CommitError,
    ConflictError,
    EntityNotFound,
    Store,
    StoreError,
)

logger = logging.getLogger(__name__)

# Arbitrary application-wide key for pg_advisory_xact_lock
APPEND_LOCK_KEY = 7_081_512

STORY_COLUMNS = "id, title, title_complete, finished, created_at, updated_at"
PARAGRAPH_COLUMNS = "id, story_id, finished"
SENTENCE_COLUMNS = "id, paragraph_id, finished, content"


def _translate_errors(method):
    """Map psycopg2 exceptions raised by a transaction method to StoreError types."""

    @functools.wraps(method)
    def wrapper(self, *args, **kwargs):
        try:
            return method(self, *args, **kwargs)
        except psycopg2.errors.ForeignKeyViolation as e:
            raise EntityNotFound("parent", args[0] if args else -1) from e
        except psycopg2.errors.UniqueViolation as e:
            raise ConflictError(f"{method.__name__}: {e.pgerror or e}") from e
        except psycopg2.Error as e:
            raise StoreError(f"{method.__name__}: {e}") from e

    return wrapper


class PostgresTransaction:
    """StoreTransaction bound to one open psycopg2 connection."""

    def __init__(self, conn, policy: CapacityPolicy):
        self.db = conn
        self._policy = policy

    def _fetchone(self, sql: str, params=()) -> Optional[dict]:
        with self.db.cursor() as cur:
            cur.execute(sql, params)
            return cur.fetchone()

    def _fetchall(self, sql: str, params=()) -> List[dict]:
        with self.db.cursor() as cur:
            cur.execute(sql, params)
            return cur.fetchall()

    def _execute(self, sql: str, params=()) -> int:
        with self.db.cursor() as cur:
            cur.execute(sql, params)
            return cur.rowcount

    @_translate_errors
    def acquire_append_lock(self) -> None:
        self._fetchone("SELECT pg_advisory_xact_lock(%s)", (APPEND_LOCK_KEY,))

    @_translate_errors
    def ping(self) -> None:
        self._fetchone("SELECT 1 AS ok")

    # ========================================================================
    # Stories
    # ========================================================================

    @_translate_errors
    def get_unfinished_story(self) -> Optional[Story]:
        row = self._fetchone(
            f"SELECT {STORY_COLUMNS} FROM stories WHERE NOT finished ORDER BY id LIMIT 1"
        )
        return Story(**row) if row else None

    @_translate_errors
    def create_story(self) -> Story:
        row = self._fetchone(
            f"INSERT INTO stories DEFAULT VALUES RETURNING {STORY_COLUMNS}"
        )
        return Story(**row)

    @_translate_errors
    def get_story(self, story_id: int) -> Optional[Story]:
        row = self._fetchone(
            f"SELECT {STORY_COLUMNS} FROM stories WHERE id = %s", (story_id,)
        )
        return Story(**row) if row else None

    @_translate_errors
    def append_to_story_title(self, story_id: int, word: str) -> Story:
        row = self._fetchone(
            "SELECT title, title_complete FROM stories WHERE id = %s FOR UPDATE",
            (story_id,),
        )
        if not row:
            raise EntityNotFound("story", story_id)
        if row["title_complete"]:
            raise ClosedContainer(f"title of story {story_id} is already complete")

        title = f"{row['title']} {word}" if row["title"] else word
        updated = self._fetchone(
            f"""
            UPDATE stories
            SET title = %s, title_complete = %s, updated_at = NOW()
            WHERE id = %s
            RETURNING {STORY_COLUMNS}
            """,
            (title, self._policy.title_complete(count_words(title)), story_id),
        )
        return Story(**updated)

    @_translate_errors
    def mark_story_finished(self, story_id: int) -> None:
        count = self._execute(
            "UPDATE stories SET finished = TRUE, updated_at = NOW() WHERE id = %s",
            (story_id,),
        )
        if count == 0:
            raise EntityNotFound("story", story_id)

    @_translate_errors
    def count_finished_paragraphs(self, story_id: int) -> int:
        row = self._fetchone(
            "SELECT COUNT(*) AS count FROM paragraphs WHERE story_id = %s AND finished",
            (story_id,),
        )
        return row["count"]

    # ========================================================================
    # Paragraphs
    # ========================================================================

    @_translate_errors
    def get_unfinished_paragraph(self, story_id: int) -> Optional[Paragraph]:
        row = self._fetchone(
            f"""
            SELECT {PARAGRAPH_COLUMNS} FROM paragraphs
            WHERE story_id = %s AND NOT finished
            ORDER BY id LIMIT 1
            """,
            (story_id,),
        )
        return Paragraph(**row) if row else None

    @_translate_errors
    def create_paragraph(self, story_id: int) -> Paragraph:
        try:
            row = self._fetchone(
                f"INSERT INTO paragraphs (story_id) VALUES (%s) RETURNING {PARAGRAPH_COLUMNS}",
                (story_id,),
            )
        except psycopg2.errors.ForeignKeyViolation as e:
            raise EntityNotFound("story", story_id) from e
        self._touch_story(story_id)
        return Paragraph(**row)

    @_translate_errors
    def get_paragraph(self, paragraph_id: int) -> Optional[Paragraph]:
        row = self._fetchone(
            f"SELECT {PARAGRAPH_COLUMNS} FROM paragraphs WHERE id = %s", (paragraph_id,)
        )
        return Paragraph(**row) if row else None

    @_translate_errors
    def mark_paragraph_finished(self, paragraph_id: int) -> None:
        count = self._execute(
            "UPDATE paragraphs SET finished = TRUE WHERE id = %s", (paragraph_id,)
        )
        if count == 0:
            raise EntityNotFound("paragraph", paragraph_id)

    @_translate_errors
    def count_finished_sentences(self, paragraph_id: int) -> int:
        row = self._fetchone(
            "SELECT COUNT(*) AS count FROM sentences WHERE paragraph_id = %s AND finished",
            (paragraph_id,),
        )
        return row["count"]

    # ========================================================================
    # Sentences
    # ========================================================================

    @_translate_errors
    def get_unfinished_sentence(self, paragraph_id: int) -> Optional[Sentence]:
        row = self._fetchone(
            f"""
            SELECT {SENTENCE_COLUMNS} FROM sentences
            WHERE paragraph_id = %s AND NOT finished
            ORDER BY id LIMIT 1
            """,
            (paragraph_id,),
        )
        return Sentence(**row) if row else None

    @_translate_errors
    def create_sentence(self, paragraph_id: int, word: str) -> Sentence:
        try:
            row = self._fetchone(
                f"""
                INSERT INTO sentences (paragraph_id, content, finished)
                VALUES (%s, %s, %s)
                RETURNING {SENTENCE_COLUMNS}
                """,
                (paragraph_id, word, self._policy.sentence_complete(1)),
            )
        except psycopg2.errors.ForeignKeyViolation as e:
            raise EntityNotFound("paragraph", paragraph_id) from e
        self._touch_paragraph_story(paragraph_id)
        return Sentence(**row)

    @_translate_errors
    def append_to_sentence(self, sentence_id: int, word: str) -> Sentence:
        row = self._fetchone(
            "SELECT paragraph_id, finished, content FROM sentences WHERE id = %s FOR UPDATE",
            (sentence_id,),
        )
        if not row:
            raise EntityNotFound("sentence", sentence_id)
        if row["finished"]:
            raise ClosedContainer(f"sentence {sentence_id} is already finished")

        content = f"{row['content']} {word}" if row["content"] else word
        updated = self._fetchone(
            f"""
            UPDATE sentences SET content = %s, finished = %s
            WHERE id = %s
            RETURNING {SENTENCE_COLUMNS}
            """,
            (content, self._policy.sentence_complete(count_words(content)), sentence_id),
        )
        self._touch_paragraph_story(row["paragraph_id"])
        return Sentence(**updated)

    def _touch_story(self, story_id: int) -> None:
        count = self._execute(
            "UPDATE stories SET updated_at = NOW() WHERE id = %s", (story_id,)
        )
        if count == 0:
            raise EntityNotFound("story", story_id)

    def _touch_paragraph_story(self, paragraph_id: int) -> None:
        count = self._execute(
            """
            UPDATE stories SET updated_at = NOW()
            WHERE id = (SELECT story_id FROM paragraphs WHERE id = %s)
            """,
            (paragraph_id,),
        )
        if count == 0:
            raise EntityNotFound("paragraph", paragraph_id)

    # ========================================================================
    # Listing
    # ========================================================================

    @_translate_errors
    def list_stories(self, limit: int, offset: int) -> List[Story]:
        rows = self._fetchall(
            f"SELECT {STORY_COLUMNS} FROM stories ORDER BY id LIMIT %s OFFSET %s",
            (limit, offset),
        )
        return [Story(**r) for r in rows]

    @_translate_errors
    def count_stories(self) -> int:
        return self._fetchone("SELECT COUNT(*) AS count FROM stories")["count"]

    @_translate_errors
    def list_paragraphs(self, story_id: int) -> List[Paragraph]:
        rows = self._fetchall(
            f"SELECT {PARAGRAPH_COLUMNS} FROM paragraphs WHERE story_id = %s ORDER BY id",
            (story_id,),
        )
        return [Paragraph(**r) for r in rows]

    @_translate_errors
    def list_sentences(self, paragraph_id: int) -> List[Sentence]:
        rows = self._fetchall(
            f"SELECT {SENTENCE_COLUMNS} FROM sentences WHERE paragraph_id = %s ORDER BY id",
            (paragraph_id,),
        )
        return [Sentence(**r) for r in rows]


class PostgresStore(Store):
    """Store backed by PostgreSQL via psycopg2."""

    def __init__(
        self,
        dsn: str,
        policy: CapacityPolicy = DEFAULT_POLICY,
        connect_timeout: int = 5,
        statement_timeout_ms: int = 5000,
        advisory_lock: bool = True,
    ):
        self.dsn = dsn
        self.policy = policy
        self.connect_timeout = connect_timeout
        self.statement_timeout_ms = statement_timeout_ms
        self.advisory_lock = advisory_lock

    def _connect(self):
        try:
            return connect(
                self.dsn,
                connect_timeout=self.connect_timeout,
                statement_timeout_ms=self.statement_timeout_ms,
            )
        except psycopg2.Error as e:
            raise StoreError(f"cannot connect to database: {e}") from e

    @contextmanager
    def transaction(self, write: bool = True) -> Iterator[PostgresTransaction]:
        conn = self._connect()
        tx = PostgresTransaction(conn, self.policy)
        try:
            if write and self.advisory_lock:
                tx.acquire_append_lock()
            yield tx
        except BaseException:
            try:
                conn.rollback()
            except psycopg2.Error as e:
                # Original exception is more useful to the caller
                logger.warning(f"Rollback failed: {e}")
            raise
        else:
            try:
                conn.commit()
            except psycopg2.Error as e:
                raise CommitError(f"commit failed: {e}") from e
        finally:
            conn.close()

    def ping(self) -> None:
        with self.transaction(write=False) as tx:
            tx.ping()
