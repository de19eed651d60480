"""
Unit tests for bookyr/db/connection.py.

psycopg2.connect is patched, so no database is needed.
"""

from unittest.mock import MagicMock, patch

import psycopg2
import pytest
from psycopg2.extras import RealDictCursor

from bookyr.db.connection import get_db_connection, get_db_cursor, init_schema


@pytest.fixture
def mock_conn():
    conn = MagicMock()
    with patch("bookyr.db.connection.psycopg2.connect", return_value=conn) as mock_connect:
        conn.connect_mock = mock_connect
        yield conn


def test_connects_with_timeout_and_application_name(mock_conn):
    with get_db_connection():
        pass
    kwargs = mock_conn.connect_mock.call_args[1]
    assert kwargs['application_name'] == 'bookyr'
    assert kwargs['connect_timeout'] == 10


def test_commits_and_closes_on_success(mock_conn):
    with get_db_connection() as conn:
        assert conn is mock_conn
    mock_conn.commit.assert_called_once()
    mock_conn.rollback.assert_not_called()
    mock_conn.close.assert_called_once()


def test_rolls_back_and_reraises(mock_conn):
    with pytest.raises(ValueError, match="hold conflict"):
        with get_db_connection():
            raise ValueError("hold conflict")
    mock_conn.rollback.assert_called_once()
    mock_conn.commit.assert_not_called()
    mock_conn.close.assert_called_once()


def test_unreachable_database_propagates():
    with patch("bookyr.db.connection.psycopg2.connect",
               side_effect=psycopg2.OperationalError("connection refused")):
        with pytest.raises(psycopg2.OperationalError):
            with get_db_connection():
                pass


def test_cursor_is_dict_cursor_by_default(mock_conn):
    with get_db_cursor() as cur:
        assert cur is mock_conn.cursor.return_value
    mock_conn.cursor.assert_called_once_with(cursor_factory=RealDictCursor)
    cur.close.assert_called_once()


def test_cursor_closed_when_block_raises(mock_conn):
    with pytest.raises(LookupError):
        with get_db_cursor(dict_cursor=False) as cur:
            raise LookupError("missing")
    mock_conn.cursor.assert_called_once_with(cursor_factory=None)
    cur.close.assert_called_once()
    mock_conn.rollback.assert_called_once()


def test_init_schema_runs_schema_file(mock_conn):
    init_schema()
    sql = mock_conn.cursor.return_value.execute.call_args[0][0]
    assert "CREATE TABLE" in sql.upper()
    assert "hold_requests" in sql
    mock_conn.commit.assert_called_once()
