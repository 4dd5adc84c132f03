"""
Live database introspection — what actually exists, as opposed to what a
Schema declares.

Reads sqlite_master and the table_info / index_list / index_info PRAGMAs.
Used by resets (to enumerate droppable objects) and by tests to verify that a
migration produced the declared structure.
"""

import sqlite3
from dataclasses import dataclass, field

from vschema import safe_sql

# ────────────────────────────────────────────────────────────
# sqlite_master
# ────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class SchemaEntry:
    """One row of sqlite_master: a table, index, view or trigger."""

    type: str
    name: str
    table_name: str
    sql: str | None = None

    @property
    def is_internal(self) -> bool:
        return self.name.startswith("sqlite_")


@dataclass(frozen=True)
class SchemaInfo:
    entries: tuple[SchemaEntry, ...] = ()

    def _names(self, kind: str) -> list[str]:
        return [e.name for e in self.entries if e.type == kind and not e.is_internal]

    @property
    def table_names(self) -> list[str]:
        return self._names("table")

    @property
    def index_names(self) -> list[str]:
        return self._names("index")

    @property
    def view_names(self) -> list[str]:
        return self._names("view")

    def entry(self, name: str) -> SchemaEntry | None:
        for entry in self.entries:
            if entry.name == name:
                return entry
        return None

    def indexes_on(self, table_name: str) -> list[str]:
        return [
            e.name
            for e in self.entries
            if e.type == "index" and e.table_name == table_name and not e.is_internal
        ]


def schema_info(conn: sqlite3.Connection) -> SchemaInfo:
    """Read every object from sqlite_master."""
    cursor = conn.execute("SELECT type, name, tbl_name, sql FROM sqlite_master ORDER BY rowid")
    return SchemaInfo(
        entries=tuple(SchemaEntry(row[0], row[1], row[2], row[3]) for row in cursor.fetchall())
    )


# ────────────────────────────────────────────────────────────
# Tables, columns, indexes
# ────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class ColumnInfo:
    """One row of PRAGMA table_info."""

    position: int
    name: str
    type: str
    not_null: bool
    default_value: str | None
    primary_key_position: int


@dataclass
class IndexInfo:
    """One row of PRAGMA index_list, plus its columns from PRAGMA index_info."""

    name: str
    unique: bool
    origin: str
    partial: bool
    columns: list[str] = field(default_factory=list)


@dataclass
class TableInfo:
    name: str
    columns: list[ColumnInfo]
    indexes: list[IndexInfo]

    @property
    def column_names(self) -> list[str]:
        return [c.name for c in self.columns]

    @property
    def index_names(self) -> list[str]:
        return [i.name for i in self.indexes]

    def column(self, name: str) -> ColumnInfo | None:
        for column in self.columns:
            if column.name == name:
                return column
        return None

    def __getitem__(self, column_name: str) -> ColumnInfo | None:
        return self.column(column_name)

    def index(self, name: str) -> IndexInfo | None:
        for index in self.indexes:
            if index.name == name:
                return index
        return None


def table_info(conn: sqlite3.Connection, table: str) -> TableInfo | None:
    """Describe a live table, or None if it doesn't exist."""
    columns = [
        ColumnInfo(
            position=row[0],
            name=row[1],
            type=row[2] or "",
            not_null=bool(row[3]),
            default_value=row[4],
            primary_key_position=row[5],
        )
        for row in conn.execute(safe_sql.pragma_table_info(table)).fetchall()
    ]
    if not columns:
        return None

    indexes = [
        IndexInfo(name=row[1], unique=bool(row[2]), origin=row[3], partial=bool(row[4]))
        for row in conn.execute(safe_sql.pragma_index_list(table)).fetchall()
    ]
    for index in indexes:
        rows = conn.execute(safe_sql.pragma_index_info(index.name)).fetchall()
        index.columns = [row[2] for row in sorted(rows, key=lambda r: r[0])]

    return TableInfo(name=table, columns=columns, indexes=indexes)
