"""
Centralized SQL construction with quoted identifiers.

All dynamic SQL assembly lives here. Table, column and index names are
quoted before interpolation. Values are always passed as parameterized ? —
never interpolated.

SQLite does not support parameterized identifiers (? works only for values,
not table/column names), so identifiers are wrapped in double quotes with
embedded quotes doubled. Column constraints, DEFAULT clauses, partial-index
predicates and set-value expressions are raw SQL supplied by the schema
author and are interpolated verbatim.
"""

# ruff: noqa: S608  All identifiers quoted via quote_identifier() before interpolation.

from __future__ import annotations

from collections.abc import Iterable


def quote_identifier(name: str) -> str:
    """Quote *name* as an SQL identifier.

    Embedded double quotes are doubled.
    """
    if not isinstance(name, str) or not name or "\x00" in name:
        raise ValueError(f"Invalid SQL identifier: {name!r}")
    return '"' + name.replace('"', '""') + '"'


def quote_all(names: Iterable[str]) -> list[str]:
    """Quote every name in *names*, preserving order."""
    return [quote_identifier(name) for name in names]


# ────────────────────────────────────────────────────────────
# PRAGMA helpers (SQLite metadata: ? cannot bind identifiers)
# ────────────────────────────────────────────────────────────


def pragma_table_info(table: str) -> str:
    """PRAGMA table_info for a quoted table name."""
    return f"PRAGMA table_info({quote_identifier(table)})"


def pragma_index_list(table: str) -> str:
    """PRAGMA index_list for a quoted table name."""
    return f"PRAGMA index_list({quote_identifier(table)})"


def pragma_index_info(index: str) -> str:
    """PRAGMA index_info for a quoted index name."""
    return f"PRAGMA index_info({quote_identifier(index)})"


def pragma_foreign_key_check(table: str | None = None) -> str:
    """PRAGMA foreign_key_check, for the whole database or restricted to one table."""
    if table is None:
        return "PRAGMA foreign_key_check"
    return f"PRAGMA foreign_key_check({quote_identifier(table)})"


def pragma_user_version_set(version: int) -> str:
    """PRAGMA user_version = N with int validation."""
    if not isinstance(version, int) or isinstance(version, bool) or version < 0:
        raise ValueError(f"Invalid schema version: {version!r}")
    return f"PRAGMA user_version = {version}"


# ────────────────────────────────────────────────────────────
# DDL: CREATE, DROP, ALTER
# ────────────────────────────────────────────────────────────


def create_table(table: str, definitions: Iterable[str], if_not_exists: bool = False) -> str:
    """Build CREATE TABLE from pre-rendered column and constraint definitions."""
    guard = "IF NOT EXISTS " if if_not_exists else ""
    body = ", ".join(definitions)
    return f"CREATE TABLE {guard}{quote_identifier(table)} ({body})"


def drop_table(table: str, if_exists: bool = False) -> str:
    """Build DROP TABLE [IF EXISTS]."""
    guard = "IF EXISTS " if if_exists else ""
    return f"DROP TABLE {guard}{quote_identifier(table)}"


def rename_table(table: str, new_name: str) -> str:
    """Build ALTER TABLE ... RENAME TO."""
    return f"ALTER TABLE {quote_identifier(table)} RENAME TO {quote_identifier(new_name)}"


def alter_add_column(table: str, column_definition: str) -> str:
    """Build ALTER TABLE ADD COLUMN.

    *column_definition* is rendered by Column.definition (name already quoted).
    """
    return f"ALTER TABLE {quote_identifier(table)} ADD COLUMN {column_definition}"


def create_index(
    index: str,
    table: str,
    columns: Iterable[str],
    where: str | None = None,
    unique: bool = False,
    if_not_exists: bool = False,
) -> str:
    """Build CREATE [UNIQUE] INDEX [IF NOT EXISTS] ... ON table (cols) [WHERE ...]."""
    parts = ["CREATE"]
    if unique:
        parts.append("UNIQUE")
    parts.append("INDEX")
    if if_not_exists:
        parts.append("IF NOT EXISTS")
    parts.append(quote_identifier(index))
    parts.append(f"ON {quote_identifier(table)} ({', '.join(quote_all(columns))})")
    if where:
        parts.append(f"WHERE {where}")
    return " ".join(parts)


def drop_index(index: str, if_exists: bool = False) -> str:
    """Build DROP INDEX [IF EXISTS]."""
    guard = "IF EXISTS " if if_exists else ""
    return f"DROP INDEX {guard}{quote_identifier(index)}"


def drop_view(view: str, if_exists: bool = False) -> str:
    """Build DROP VIEW [IF EXISTS]."""
    guard = "IF EXISTS " if if_exists else ""
    return f"DROP VIEW {guard}{quote_identifier(view)}"


# ────────────────────────────────────────────────────────────
# DML used by table rebuilds
# ────────────────────────────────────────────────────────────


def insert_from_select(
    target: str, columns: Iterable[str], expressions: Iterable[str], source: str
) -> str:
    """Build INSERT INTO target (cols) SELECT exprs FROM source.

    *expressions* are raw SQL evaluated against each row of *source*; the
    caller quotes plain column carry-overs.
    """
    cols = ", ".join(quote_all(columns))
    exprs = ", ".join(expressions)
    return f"INSERT INTO {quote_identifier(target)} ({cols}) SELECT {exprs} FROM {quote_identifier(source)}"


def insert_rowids_from(target: str, source: str) -> str:
    """Build INSERT INTO target (rowid) SELECT rowid FROM source.

    Copies one row per source row when no column carries over; every
    column of *target* takes its DEFAULT or NULL.
    """
    return f"INSERT INTO {quote_identifier(target)} (rowid) SELECT rowid FROM {quote_identifier(source)}"


# ────────────────────────────────────────────────────────────
# Version bookkeeping table
# ────────────────────────────────────────────────────────────


def create_version_table(table: str) -> str:
    """Build the per-identifier version table DDL."""
    return (
        f"CREATE TABLE IF NOT EXISTS {quote_identifier(table)} "
        "(identifier TEXT PRIMARY KEY NOT NULL, version INTEGER NOT NULL DEFAULT 0)"
    )


def select_version(table: str) -> str:
    """Build SELECT version for one identifier."""
    return f"SELECT version FROM {quote_identifier(table)} WHERE identifier = ?"


def upsert_version(table: str) -> str:
    """Build INSERT OR REPLACE of an identifier's version."""
    return f"INSERT OR REPLACE INTO {quote_identifier(table)} (identifier, version) VALUES (?, ?)"


def select_table_exists() -> str:
    """Build a sqlite_master lookup for a single table name."""
    return "SELECT name FROM sqlite_master WHERE type = 'table' AND name = ?"
