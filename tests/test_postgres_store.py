"""
PostgresStore Tests

psycopg2 is mocked; these tests check SQL parameters, transaction
boundaries and error mapping, not a live database.
"""

from datetime import datetime, timezone
from unittest.mock import MagicMock, patch

import psycopg2
import psycopg2.errors
import pytest

from collab_story.db.postgres_store import APPEND_LOCK_KEY, PostgresStore
from collab_story.db.store import (
    ClosedContainer,
    CommitError,
    ConflictError,
    EntityNotFound,
    StoreError,
)


# -----------------------------------------------------------------------------
# Fixtures
# -----------------------------------------------------------------------------

@pytest.fixture
def mock_conn():
    """Create a mock database connection and its cursor."""
    conn = MagicMock()
    cursor = MagicMock()
    conn.cursor.return_value.__enter__.return_value = cursor
    conn.cursor.return_value.__exit__.return_value = False
    return conn, cursor


@pytest.fixture
def store(mock_conn):
    conn, _ = mock_conn
    with patch("collab_story.db.postgres_store.connect", return_value=conn):
        yield PostgresStore("postgresql://test/collab", statement_timeout_ms=1000)


@pytest.fixture
def story_row():
    now = datetime.now(timezone.utc)
    return {
        "id": 4,
        "title": "Dark Forest",
        "title_complete": True,
        "finished": False,
        "created_at": now,
        "updated_at": now,
    }


def executed_sql(cursor):
    return [c[0][0] for c in cursor.execute.call_args_list]


def find_call(cursor, fragment):
    for c in cursor.execute.call_args_list:
        if fragment in c[0][0]:
            return c
    raise AssertionError(f"no statement containing {fragment!r}")


# -----------------------------------------------------------------------------
# Transactions
# -----------------------------------------------------------------------------

class TestTransactions:

    def test_write_transaction_locks_then_commits(self, store, mock_conn):
        conn, cursor = mock_conn

        with store.transaction():
            pass

        sql, params = cursor.execute.call_args_list[0][0]
        assert "pg_advisory_xact_lock" in sql
        assert params == (APPEND_LOCK_KEY,)
        conn.commit.assert_called_once()
        conn.rollback.assert_not_called()
        conn.close.assert_called_once()

    def test_read_transaction_skips_lock(self, store, mock_conn):
        conn, cursor = mock_conn

        with store.transaction(write=False):
            pass

        cursor.execute.assert_not_called()
        conn.commit.assert_called_once()

    def test_advisory_lock_can_be_disabled(self, mock_conn):
        conn, cursor = mock_conn
        with patch("collab_story.db.postgres_store.connect", return_value=conn):
            store = PostgresStore("postgresql://test/collab", advisory_lock=False)
            with store.transaction():
                pass

        cursor.execute.assert_not_called()

    def test_exception_rolls_back(self, store, mock_conn):
        conn, _ = mock_conn

        with pytest.raises(RuntimeError):
            with store.transaction():
                raise RuntimeError("boom")

        conn.rollback.assert_called_once()
        conn.commit.assert_not_called()
        conn.close.assert_called_once()

    def test_rollback_failure_keeps_original_error(self, store, mock_conn):
        conn, _ = mock_conn
        conn.rollback.side_effect = psycopg2.InterfaceError("connection already closed")

        with pytest.raises(RuntimeError, match="boom"):
            with store.transaction():
                raise RuntimeError("boom")

    def test_commit_failure_raises_commit_error(self, store, mock_conn):
        conn, _ = mock_conn
        conn.commit.side_effect = psycopg2.OperationalError("server closed the connection")

        with pytest.raises(CommitError):
            with store.transaction():
                pass
        conn.close.assert_called_once()

    def test_connect_failure_raises_store_error(self):
        with patch(
            "collab_story.db.postgres_store.connect",
            side_effect=psycopg2.OperationalError("connection refused"),
        ):
            store = PostgresStore("postgresql://test/collab")
            with pytest.raises(StoreError, match="cannot connect"):
                with store.transaction():
                    pass

    def test_connect_receives_timeouts(self, mock_conn):
        conn, _ = mock_conn
        with patch("collab_story.db.postgres_store.connect", return_value=conn) as connect:
            store = PostgresStore(
                "postgresql://test/collab", connect_timeout=3, statement_timeout_ms=250
            )
            with store.transaction(write=False):
                pass

        connect.assert_called_once_with(
            "postgresql://test/collab", connect_timeout=3, statement_timeout_ms=250
        )


# -----------------------------------------------------------------------------
# Entity operations
# -----------------------------------------------------------------------------

class TestOperations:

    def test_get_unfinished_story(self, store, mock_conn, story_row):
        _, cursor = mock_conn
        cursor.fetchone.return_value = story_row

        with store.transaction(write=False) as tx:
            story = tx.get_unfinished_story()

        assert story.id == 4
        assert story.title == "Dark Forest"
        assert "NOT finished" in executed_sql(cursor)[0]

    def test_get_unfinished_story_none(self, store, mock_conn):
        _, cursor = mock_conn
        cursor.fetchone.return_value = None

        with store.transaction(write=False) as tx:
            assert tx.get_unfinished_story() is None

    def test_append_to_story_title_completes(self, store, mock_conn, story_row):
        _, cursor = mock_conn
        cursor.fetchone.side_effect = [
            {"title": "Dark", "title_complete": False},
            story_row,
        ]

        with store.transaction(write=False) as tx:
            story = tx.append_to_story_title(4, "Forest")

        assert story.title_complete is True
        _, params = find_call(cursor, "UPDATE stories")[0]
        assert params == ("Dark Forest", True, 4)

    def test_append_to_sentence_finishes_at_fifteen(self, store, mock_conn):
        _, cursor = mock_conn
        content = " ".join(f"w{i}" for i in range(14))
        cursor.fetchone.side_effect = [
            {"paragraph_id": 3, "finished": False, "content": content},
            {"id": 7, "paragraph_id": 3, "finished": True, "content": content + " end"},
        ]
        cursor.rowcount = 1

        with store.transaction(write=False) as tx:
            sentence = tx.append_to_sentence(7, "end")

        assert sentence.finished is True
        _, params = find_call(cursor, "UPDATE sentences")[0]
        assert params == (content + " end", True, 7)
        assert any("UPDATE stories SET updated_at" in s for s in executed_sql(cursor))

    def test_append_to_sentence_below_capacity(self, store, mock_conn):
        _, cursor = mock_conn
        cursor.fetchone.side_effect = [
            {"paragraph_id": 3, "finished": False, "content": "Once"},
            {"id": 7, "paragraph_id": 3, "finished": False, "content": "Once upon"},
        ]
        cursor.rowcount = 1

        with store.transaction(write=False) as tx:
            tx.append_to_sentence(7, "upon")

        _, params = find_call(cursor, "UPDATE sentences")[0]
        assert params == ("Once upon", False, 7)

    def test_append_to_finished_sentence(self, store, mock_conn):
        _, cursor = mock_conn
        cursor.fetchone.return_value = {"paragraph_id": 3, "finished": True, "content": "x"}

        with pytest.raises(ClosedContainer):
            with store.transaction(write=False) as tx:
                tx.append_to_sentence(7, "more")

    def test_append_to_missing_sentence(self, store, mock_conn):
        _, cursor = mock_conn
        cursor.fetchone.return_value = None

        with pytest.raises(EntityNotFound):
            with store.transaction(write=False) as tx:
                tx.append_to_sentence(7, "more")

    def test_foreign_key_violation_is_entity_not_found(self, store, mock_conn):
        _, cursor = mock_conn
        cursor.execute.side_effect = psycopg2.errors.ForeignKeyViolation("no story")

        with pytest.raises(EntityNotFound) as exc_info:
            with store.transaction(write=False) as tx:
                tx.create_paragraph(99)
        assert exc_info.value.kind == "story"

    def test_create_paragraph_touches_story(self, store, mock_conn):
        _, cursor = mock_conn
        cursor.fetchone.return_value = {"id": 2, "story_id": 4, "finished": False}

        with store.transaction(write=False) as tx:
            paragraph = tx.create_paragraph(4)

        assert paragraph.story_id == 4
        sql, params = find_call(cursor, "UPDATE stories SET updated_at")[0]
        assert params == (4,)
        assert not hasattr(tx, "touch_story")

    def test_unique_violation_is_conflict(self, store, mock_conn):
        _, cursor = mock_conn
        cursor.execute.side_effect = psycopg2.errors.UniqueViolation("duplicate open story")

        with pytest.raises(ConflictError):
            with store.transaction(write=False) as tx:
                tx.create_story()

    def test_driver_error_is_store_error(self, store, mock_conn):
        _, cursor = mock_conn
        cursor.execute.side_effect = psycopg2.OperationalError("canceling statement due to statement timeout")

        with pytest.raises(StoreError) as exc_info:
            with store.transaction(write=False) as tx:
                tx.get_unfinished_story()
        assert not isinstance(exc_info.value, EntityNotFound)

    def test_mark_missing_paragraph(self, store, mock_conn):
        _, cursor = mock_conn
        cursor.rowcount = 0

        with pytest.raises(EntityNotFound):
            with store.transaction(write=False) as tx:
                tx.mark_paragraph_finished(42)

    def test_counts(self, store, mock_conn):
        _, cursor = mock_conn
        cursor.fetchone.return_value = {"count": 6}

        with store.transaction(write=False) as tx:
            assert tx.count_finished_paragraphs(4) == 6
            assert tx.count_finished_sentences(3) == 6

    def test_ping(self, store, mock_conn):
        _, cursor = mock_conn
        cursor.fetchone.return_value = {"ok": 1}

        store.ping()

        assert executed_sql(cursor) == ["SELECT 1 AS ok"]
