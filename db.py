"""
Database connection utilities for the service master.
Supports both SQLite (local dev) and PostgreSQL (production).

When DATABASE_URL is set, uses PostgreSQL with connection pooling.
Otherwise, falls back to SQLite with WAL mode and foreign keys enforced.
"""

import os
import re
import sqlite3
import logging
from contextlib import contextmanager

from config import Config

logger = logging.getLogger(__name__)

SERVICE_DB = os.path.join(Config.DATA_DIR, Config.SERVICE_DB_FILE)

_DATABASE_URL = Config.DATABASE_URL
_pg_pool = None


def _get_pg_pool():
    """Lazily initialize the PostgreSQL connection pool."""
    global _pg_pool
    if _pg_pool is None and _DATABASE_URL:
        from psycopg2 import pool
        try:
            _pg_pool = pool.ThreadedConnectionPool(minconn=1, maxconn=10, dsn=_DATABASE_URL)
            logger.info("PostgreSQL connection pool initialized (1-10 connections)")
        except Exception as e:
            logger.error(f"Failed to initialize PostgreSQL pool: {e}")
            raise
    return _pg_pool


def is_postgres():
    """Check if we're using PostgreSQL."""
    return bool(_DATABASE_URL)


def _convert_sqlite_to_pg(sql):
    """Convert the SQLite dialect used by the service modules to PostgreSQL.

    Handles placeholders, auto-increment keys and RETURNING id for inserts.
    """
    sql = sql.replace('?', '%s')
    sql = sql.replace('INTEGER PRIMARY KEY AUTOINCREMENT', 'SERIAL PRIMARY KEY')
    sql = re.sub(r'\bREAL\b', 'DOUBLE PRECISION', sql)

    stripped = sql.strip()
    upper = stripped.upper()
    if upper.startswith('INSERT') and 'VALUES' in upper and 'RETURNING' not in upper:
        sql = stripped.rstrip(';') + ' RETURNING id'
    return sql


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def get_database_error():
    """Return the base DB-API error class for the current backend."""
    if is_postgres():
        import psycopg2
        return psycopg2.Error
    return sqlite3.Error


# ---------------------------------------------------------------------------
# PostgreSQL Row/Cursor/Connection Wrappers
# ---------------------------------------------------------------------------

class _PgRow(dict):
    """Dict row that also supports positional access like sqlite3.Row."""

    def __getitem__(self, key):
        if isinstance(key, int):
            return list(self.values())[key]
        return super().__getitem__(key)


class _PgCursorWrapper:
    """Wrap a psycopg2 cursor so rows come back dict-like."""

    def __init__(self, cursor):
        self._cursor = cursor
        self._lastrowid = None

    def execute(self, sql, params=None):
        converted = _convert_sqlite_to_pg(sql)
        self._cursor.execute(converted, params)
        if converted.rstrip().upper().endswith('RETURNING ID'):
            row = self._cursor.fetchone()
            self._lastrowid = row[0] if row else None
        return self

    def _wrap(self, row):
        names = [col.name for col in self._cursor.description]
        return _PgRow(zip(names, row))

    def fetchone(self):
        row = self._cursor.fetchone()
        return self._wrap(row) if row is not None else None

    def fetchall(self):
        return [self._wrap(r) for r in self._cursor.fetchall()]

    @property
    def lastrowid(self):
        return self._lastrowid

    @property
    def rowcount(self):
        return self._cursor.rowcount


class _PgConnWrapper:
    """Wrap a pooled psycopg2 connection with an sqlite3-like interface."""

    def __init__(self, conn):
        self._conn = conn

    def execute(self, sql, params=None):
        cursor = _PgCursorWrapper(self._conn.cursor())
        # Skip SQLite PRAGMAs on PostgreSQL
        if sql.strip().upper().startswith('PRAGMA'):
            return cursor
        return cursor.execute(sql, params)

    def cursor(self):
        return _PgCursorWrapper(self._conn.cursor())

    def commit(self):
        self._conn.commit()

    def rollback(self):
        self._conn.rollback()

    def close(self):
        # Return connection to pool instead of closing
        pool = _get_pg_pool()
        if pool:
            pool.putconn(self._conn)


# ---------------------------------------------------------------------------
# Connection Management
# ---------------------------------------------------------------------------

def _sqlite_connect(db_path):
    directory = os.path.dirname(db_path)
    if directory and not os.path.exists(directory):
        os.makedirs(directory, exist_ok=True)
    conn = sqlite3.connect(db_path)
    conn.execute('PRAGMA journal_mode=WAL')
    conn.execute('PRAGMA foreign_keys=ON')
    conn.row_factory = sqlite3.Row
    return conn


@contextmanager
def get_db(db_path=None):
    """
    Context manager for database connections. Commits on success,
    rolls back and re-raises on any error.

    Usage:
        with get_db() as conn:
            conn.execute('SELECT ...')

    Args:
        db_path: Path to SQLite database. Ignored when using PostgreSQL.
                 Defaults to SERVICE_DB.
    """
    if is_postgres():
        conn = _PgConnWrapper(_get_pg_pool().getconn())
    else:
        conn = _sqlite_connect(db_path or SERVICE_DB)
    try:
        yield conn
        conn.commit()
    except Exception:
        conn.rollback()
        raise
    finally:
        conn.close()
