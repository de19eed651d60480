"""
Database Connection Management
One PostgreSQL connection per unit of work: committed when the block exits
cleanly, rolled back when it raises. A hold's status change and the
freeze/unfreeze it causes commit together.
"""

import psycopg2
from psycopg2.extras import RealDictCursor
from contextlib import contextmanager
from pathlib import Path
import logging

from bookyr.config import config

logger = logging.getLogger(__name__)

SCHEMA_FILE = Path(__file__).parent / "schema.sql"
APPLICATION_NAME = "bookyr"


def _connect():
    try:
        return psycopg2.connect(
            config.DATABASE_URL,
            connect_timeout=config.DB_CONNECT_TIMEOUT_SECONDS,
            application_name=APPLICATION_NAME,
        )
    except psycopg2.OperationalError as e:
        logger.error(f"Cannot reach the booking database: {e}")
        raise


@contextmanager
def get_db_connection():
    """
    Usage:
        with get_db_connection() as conn:
            cur = conn.cursor()
            cur.execute("SELECT * FROM booking_opportunities WHERE artist_id = %s", ('artist-1',))
    """
    conn = _connect()
    try:
        yield conn
        conn.commit()
    except Exception as e:
        conn.rollback()
        logger.error(f"Transaction rolled back: {type(e).__name__}: {e}")
        raise
    finally:
        conn.close()


@contextmanager
def get_db_cursor(dict_cursor=True):
    """
    Cursor inside its own transaction. Rows come back as dicts unless
    dict_cursor is False.

        with get_db_cursor() as cur:
            cur.execute("SELECT * FROM hold_requests WHERE id = %s FOR UPDATE", ('hold-1',))
            hold = cur.fetchone()
    """
    with get_db_connection() as conn:
        cursor_factory = RealDictCursor if dict_cursor else None
        cur = conn.cursor(cursor_factory=cursor_factory)
        try:
            yield cur
        finally:
            cur.close()


def init_schema() -> None:
    """Create all tables and indexes from schema.sql (idempotent)."""
    sql = SCHEMA_FILE.read_text(encoding="utf-8")
    with get_db_cursor(dict_cursor=False) as cur:
        cur.execute(sql)
    logger.info(f"Schema applied from {SCHEMA_FILE.name}")
