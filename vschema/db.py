"""
Database access helpers.

Single source of truth for:
- Transactions (BEGIN/COMMIT, or SAVEPOINT when one is already open)
- Foreign-key enforcement toggling around migrations
- Persisted schema version (PRAGMA user_version, or a per-identifier table)
"""

import logging
import sqlite3
from collections.abc import Generator
from contextlib import contextmanager
from itertools import count

from vschema import config, safe_sql

logger = logging.getLogger(__name__)

_savepoints = count(1)


# ============================================================
# SCHEMA INTROSPECTION
# ============================================================


def table_exists(conn: sqlite3.Connection, table: str) -> bool:
    """Check if a table exists."""
    cursor = conn.execute(safe_sql.select_table_exists(), (table,))
    return cursor.fetchone() is not None


# ============================================================
# TRANSACTIONS
# ============================================================


@contextmanager
def transaction(conn: sqlite3.Connection) -> Generator[sqlite3.Connection, None, None]:
    """
    All-or-nothing scope.

    Opens BEGIN/COMMIT at top level. Inside an already-open transaction a
    SAVEPOINT is used instead, so only this scope's work is undone on error
    and the caller keeps control of the outer transaction.
    """
    if conn.in_transaction:
        name = f"vschema_{next(_savepoints)}"
        conn.execute(f"SAVEPOINT {name}")
        try:
            yield conn
        except BaseException:
            conn.execute(f"ROLLBACK TO SAVEPOINT {name}")
            conn.execute(f"RELEASE SAVEPOINT {name}")
            raise
        conn.execute(f"RELEASE SAVEPOINT {name}")
        return

    conn.execute("BEGIN")
    try:
        yield conn
    except BaseException:
        conn.rollback()
        raise
    conn.commit()


def foreign_keys_enabled(conn: sqlite3.Connection) -> bool:
    row = conn.execute("PRAGMA foreign_keys").fetchone()
    return bool(row and row[0])


@contextmanager
def foreign_keys_disabled(conn: sqlite3.Connection) -> Generator[None, None, None]:
    """
    Switch foreign-key enforcement off for the duration of the block.

    Table rebuilds drop and recreate referenced tables, which enforcement
    would reject. SQLite ignores this pragma inside a transaction, so when one
    is already open the setting is left untouched.
    """
    if conn.in_transaction or not foreign_keys_enabled(conn):
        yield
        return

    conn.execute("PRAGMA foreign_keys = OFF")
    logger.debug("db: foreign key enforcement disabled for migration")
    try:
        yield
    finally:
        conn.execute("PRAGMA foreign_keys = ON")
        logger.debug("db: foreign key enforcement restored")


# ============================================================
# SCHEMA VERSION
# ============================================================


def get_schema_version(conn: sqlite3.Connection) -> int:
    """Get current schema version from PRAGMA user_version."""
    cursor = conn.execute("PRAGMA user_version")
    return cursor.fetchone()[0]


def set_schema_version(conn: sqlite3.Connection, version: int):
    """Set schema version via PRAGMA user_version."""
    conn.execute(safe_sql.pragma_user_version_set(version))


class UserVersionStore:
    """Persists the version in PRAGMA user_version (one schema per database)."""

    table: str | None = None

    def read(self, conn: sqlite3.Connection) -> int:
        return get_schema_version(conn)

    def write(self, conn: sqlite3.Connection, version: int) -> None:
        set_schema_version(conn, version)


class TableVersionStore:
    """Persists the version in a bookkeeping table keyed by schema identifier."""

    def __init__(self, identifier: str, table: str | None = None):
        self.identifier = identifier
        self.table = table or config.VERSION_TABLE

    def read(self, conn: sqlite3.Connection) -> int:
        if not table_exists(conn, self.table):
            return 0
        row = conn.execute(safe_sql.select_version(self.table), (self.identifier,)).fetchone()
        if row is None:
            return 0
        try:
            return int(row[0])
        except (TypeError, ValueError):
            logger.warning(
                "db: corrupt version %r for schema %s in %s, treating as 0",
                row[0],
                self.identifier,
                self.table,
            )
            return 0

    def write(self, conn: sqlite3.Connection, version: int) -> None:
        if not isinstance(version, int) or version < 0:
            raise ValueError(f"Invalid schema version: {version!r}")
        conn.execute(safe_sql.create_version_table(self.table))
        conn.execute(safe_sql.upsert_version(self.table), (self.identifier, version))


def version_store(identifier: str | None) -> UserVersionStore | TableVersionStore:
    """Schemas with an identifier get a keyed row; others use PRAGMA user_version."""
    if identifier is None:
        return UserVersionStore()
    return TableVersionStore(identifier)
