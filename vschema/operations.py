"""
Migration operations — the only thing the executor understands.

Each operation is a frozen dataclass. Structural operations render the exact
SQL they run through ``statements()``; the executor runs those statements in
order. Execute wraps an opaque callback that receives the live connection.

Every operation exposes ``kind`` (a stable tag used in logs and errors) and
``subject`` (the table or index it touches).
"""

import sqlite3
from collections.abc import Callable
from dataclasses import dataclass
from typing import ClassVar

from vschema import config, safe_sql
from vschema.model import Column, Index, Table

ExecuteCallback = Callable[[sqlite3.Connection], None]


@dataclass(frozen=True)
class Operation:
    kind: ClassVar[str] = "operation"

    @property
    def subject(self) -> str | None:
        return None

    def statements(self) -> list[str]:
        return []


@dataclass(frozen=True)
class CreateTable(Operation):
    kind: ClassVar[str] = "create_table"

    table: Table

    @property
    def subject(self) -> str:
        return self.table.name

    def statements(self) -> list[str]:
        return [self.table.create_sql()]


@dataclass(frozen=True)
class DropTable(Operation):
    kind: ClassVar[str] = "drop_table"

    name: str
    if_exists: bool = False

    @property
    def subject(self) -> str:
        return self.name

    def statements(self) -> list[str]:
        return [safe_sql.drop_table(self.name, if_exists=self.if_exists)]


@dataclass(frozen=True)
class RenameTable(Operation):
    """Rename a table. Indexes follow the table in SQLite; ``indexes`` records them retargeted."""

    kind: ClassVar[str] = "rename_table"

    from_name: str
    to_name: str
    indexes: tuple[Index, ...] = ()

    @property
    def subject(self) -> str:
        return self.from_name

    def statements(self) -> list[str]:
        return [safe_sql.rename_table(self.from_name, self.to_name)]


@dataclass(frozen=True)
class AddColumn(Operation):
    """Native ALTER TABLE ADD COLUMN — the additive-only path, no rebuild."""

    kind: ClassVar[str] = "add_column"

    table_name: str
    column: Column

    @property
    def subject(self) -> str:
        return f"{self.table_name}.{self.column.name}"

    def statements(self) -> list[str]:
        return [safe_sql.alter_add_column(self.table_name, self.column.definition)]


@dataclass(frozen=True)
class ColumnSource:
    """Where one rebuilt column's value comes from: raw SQL over the original row."""

    column: str
    expression: str


@dataclass(frozen=True)
class AlterTableRebuild(Operation):
    """
    Rebuild a table to reach a structure ALTER TABLE cannot express.

    Statements, in order:
      1. CREATE TABLE <temp> with the final structure
      2. INSERT INTO <temp> (cols) SELECT exprs FROM <original>,
         or a bare rowid copy when no column carries over
      3. DROP TABLE <original>   (drops its indexes with it)
      4. ALTER TABLE <temp> RENAME TO <final name>
      5. CREATE INDEX for every index that survived the rebuild
    """

    kind: ClassVar[str] = "alter_table"

    original_name: str
    final_table: Table
    column_plan: tuple[ColumnSource, ...]
    indexes_to_recreate: tuple[Index, ...] = ()

    @property
    def subject(self) -> str:
        return self.original_name

    @property
    def temp_name(self) -> str:
        return config.REBUILD_PREFIX + self.final_table.name

    def statements(self) -> list[str]:
        temp = self.temp_name
        sql = [self.final_table.create_sql(temp)]
        if self.column_plan:
            sql.append(
                safe_sql.insert_from_select(
                    temp,
                    [source.column for source in self.column_plan],
                    [source.expression for source in self.column_plan],
                    self.original_name,
                )
            )
        else:
            # No column carries over; keep the row count.
            sql.append(safe_sql.insert_rowids_from(temp, self.original_name))
        sql.append(safe_sql.drop_table(self.original_name))
        sql.append(safe_sql.rename_table(temp, self.final_table.name))
        sql.extend(index.create_sql() for index in self.indexes_to_recreate)
        return sql


@dataclass(frozen=True)
class CreateIndex(Operation):
    kind: ClassVar[str] = "create_index"

    index: Index
    if_not_exists: bool = False

    @property
    def subject(self) -> str:
        return self.index.name

    def statements(self) -> list[str]:
        return [self.index.create_sql(if_not_exists=self.if_not_exists)]


@dataclass(frozen=True)
class DropIndex(Operation):
    kind: ClassVar[str] = "drop_index"

    name: str
    if_exists: bool = False

    @property
    def subject(self) -> str:
        return self.name

    def statements(self) -> list[str]:
        return [safe_sql.drop_index(self.name, if_exists=self.if_exists)]


@dataclass(frozen=True)
class RenameIndex(Operation):
    """SQLite has no RENAME INDEX: drop the old index and create the renamed one."""

    kind: ClassVar[str] = "rename_index"

    from_name: str
    index: Index

    @property
    def subject(self) -> str:
        return self.from_name

    def statements(self) -> list[str]:
        return [safe_sql.drop_index(self.from_name), self.index.create_sql()]


@dataclass(frozen=True)
class Execute(Operation):
    """Opaque step; the schema model cannot see what the callback does."""

    kind: ClassVar[str] = "execute"

    callback: ExecuteCallback

    @property
    def subject(self) -> str | None:
        return getattr(self.callback, "__name__", None)
