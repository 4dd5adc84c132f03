"""
Versions and the DSL that declares them.

A VersionBuilder starts from the previous version's snapshot (empty for the
first version). Each DSL call edits a working copy of that snapshot and
appends the operations that justify the edit. build() freezes the result
into an immutable Version.

Builder blocks can be plain functions or context managers:

    def v1(v):
        with v.create_table("people") as t:
            t.primary_key("id")
            t.column("name", ColumnType.TEXT, "NOT NULL")
        v.create_index("people_names", on="people", columns=["name"], unique=True)

    def v2(v):
        with v.alter_table("people") as t:
            t.alter_column("name", rename_to="full_name")
"""

import logging
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass

from vschema import index_remap
from vschema.alter_table import TableAlterer
from vschema.errors import (
    DuplicateNameError,
    SchemaDeclarationError,
    UnknownColumnError,
    UnknownIndexError,
    UnknownTableError,
)
from vschema.model import Column, ColumnType, Index, PrimaryKey, Snapshot, Table, TableConstraint
from vschema.operations import (
    CreateIndex,
    CreateTable,
    DropIndex,
    DropTable,
    Execute,
    ExecuteCallback,
    Operation,
    RenameIndex,
    RenameTable,
)

logger = logging.getLogger(__name__)


# =============================================================================
# VERSION
# =============================================================================


@dataclass(frozen=True)
class Version:
    """One declared schema version: its snapshot and the operations that produced it."""

    number: int
    snapshot: Snapshot
    operations: tuple[Operation, ...]

    @property
    def tables(self) -> Mapping[str, Table]:
        return self.snapshot.tables

    @property
    def indexes(self) -> Mapping[str, Index]:
        return self.snapshot.indexes

    @property
    def table_names(self) -> list[str]:
        return self.snapshot.table_names

    @property
    def index_names(self) -> list[str]:
        return self.snapshot.index_names

    def table(self, name: str) -> Table | None:
        return self.snapshot.table(name)

    def index(self, name: str) -> Index | None:
        return self.snapshot.index(name)

    def __getitem__(self, table_name: str) -> Table | None:
        return self.snapshot.table(table_name)


# =============================================================================
# TABLE BUILDER
# =============================================================================


class TableBuilder:
    """DSL for declaring a new table's columns and constraints."""

    def __init__(self, name: str, on_complete: Callable[["TableBuilder"], None] | None = None):
        self.name = name
        self._on_complete = on_complete
        self.columns: list[Column] = []
        self.constraints: list[TableConstraint] = []
        self.primary_key_declaration: PrimaryKey | None = None

    def __enter__(self) -> "TableBuilder":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc_type is None and self._on_complete is not None:
            self._on_complete(self)
        return False

    def primary_key(self, name: str, autoincrement: bool = False) -> "TableBuilder":
        """Add an INTEGER primary key column. AUTOINCREMENT has special meaning in SQLite."""
        if self.primary_key_declaration is not None:
            raise SchemaDeclarationError(
                f"Table '{self.name}' already has primary key "
                f"'{self.primary_key_declaration.column}'"
            )
        self.column(name, ColumnType.INTEGER)
        self.primary_key_declaration = PrimaryKey(column=name, autoincrement=autoincrement)
        return self

    def column(
        self, name: str, type: ColumnType | str = ColumnType.TEXT, *constraints: str
    ) -> "TableBuilder":
        """Add a column, e.g. ``column("name", ColumnType.TEXT, "NOT NULL")``."""
        if any(c.name == name for c in self.columns):
            raise DuplicateNameError(f"Column '{name}' is declared twice in table '{self.name}'")
        self.columns.append(Column(name=name, type=type, constraints=constraints))
        return self

    def constraint(self, clause: str, name: str | None = None) -> "TableBuilder":
        """Add a table constraint, e.g. ``constraint("UNIQUE (first, last)")``."""
        self.constraints.append(TableConstraint(clause=clause, name=name))
        return self

    def build(self) -> Table:
        return Table(
            name=self.name,
            columns=self.columns,
            constraints=self.constraints,
            primary_key=self.primary_key_declaration,
        )


# =============================================================================
# VERSION BUILDER
# =============================================================================


class VersionBuilder:
    """DSL used to define the changes made in one version."""

    def __init__(self, number: int, previous: Snapshot | None = None):
        self.number = number
        previous = previous or Snapshot()
        self._tables: dict[str, Table] = dict(previous.tables)
        self._indexes: dict[str, Index] = dict(previous.indexes)
        self.operations: list[Operation] = []

    # ────────────────────────────────────────────────────────
    # Working snapshot
    # ────────────────────────────────────────────────────────

    @property
    def table_names(self) -> list[str]:
        return list(self._tables)

    @property
    def index_names(self) -> list[str]:
        return list(self._indexes)

    def table(self, name: str) -> Table | None:
        return self._tables.get(name)

    def index(self, name: str) -> Index | None:
        return self._indexes.get(name)

    def _require_table(self, name: str, action: str) -> Table:
        table = self._tables.get(name)
        if table is None:
            raise UnknownTableError(name, action)
        return table

    def _require_index(self, name: str, action: str) -> Index:
        index = self._indexes.get(name)
        if index is None:
            raise UnknownIndexError(name, action)
        return index

    def _emit(self, operation: Operation) -> None:
        logger.debug("version %d: %s %s", self.number, operation.kind, operation.subject)
        self.operations.append(operation)

    # ────────────────────────────────────────────────────────
    # Tables
    # ────────────────────────────────────────────────────────

    def create_table(
        self, name: str, block: Callable[[TableBuilder], None] | None = None
    ) -> TableBuilder:
        """Add a table. Pass *block*, or use the returned builder as a context manager."""
        if name in self._tables:
            raise DuplicateNameError(f"Unable to create table: '{name}' already exists")
        builder = TableBuilder(name, on_complete=self._add_table)
        if block is not None:
            block(builder)
            self._add_table(builder)
            builder._on_complete = None
        return builder

    def _add_table(self, builder: TableBuilder) -> None:
        if builder.name in self._tables:
            raise DuplicateNameError(f"Unable to create table: '{builder.name}' already exists")
        table = builder.build()
        self._tables[table.name] = table
        self._emit(CreateTable(table))

    def drop_table(self, name: str, if_exists: bool = False) -> None:
        """Remove a table and every index on it."""
        if name not in self._tables:
            if not if_exists:
                raise UnknownTableError(name, "drop table")
            self._emit(DropTable(name, if_exists=True))
            return

        for index in [i for i in self._indexes.values() if i.table_name == name]:
            del self._indexes[index.name]
            self._emit(DropIndex(index.name, if_exists=True))
        del self._tables[name]
        self._emit(DropTable(name, if_exists=if_exists))

    def rename_table(self, from_name: str, to_name: str) -> None:
        if to_name in self._tables:
            raise DuplicateNameError(f"Unable to rename table: '{to_name}' already exists.")
        table = self._require_table(from_name, "rename table")

        retargeted = index_remap.retarget(self._indexes.values(), from_name, to_name)
        self._indexes = {index.name: index for index in retargeted}
        self._tables = {
            (to_name if key == from_name else key): (table.renamed(to_name) if key == from_name else value)
            for key, value in self._tables.items()
        }
        moved = tuple(index for index in retargeted if index.table_name == to_name)
        self._emit(RenameTable(from_name, to_name, indexes=moved))

    def alter_table(
        self, name: str, block: Callable[[TableAlterer], None] | None = None
    ) -> TableAlterer:
        """Change a table. Pass *block*, or use the returned alterer as a context manager."""
        table = self._require_table(name, "alter table")
        alterer = TableAlterer(
            table, self._indexes.values(), on_complete=self._apply_alteration
        )
        if block is not None:
            block(alterer)
            self._apply_alteration(alterer)
            alterer._on_complete = None
        return alterer

    def _apply_alteration(self, alterer: TableAlterer) -> None:
        alteration = alterer.compile()
        self._tables[alteration.table.name] = alteration.table
        for index in alteration.dropped_indexes:
            self._indexes.pop(index.name, None)
        for index in alteration.indexes:
            self._indexes[index.name] = index
        for operation in alteration.operations:
            self._emit(operation)

    # ────────────────────────────────────────────────────────
    # Indexes
    # ────────────────────────────────────────────────────────

    def create_index(
        self,
        name: str,
        on: str,
        columns: Iterable[str] | str,
        unique: bool = False,
        where: str | None = None,
        if_not_exists: bool = False,
    ) -> Index:
        """Index *columns* of table *on*. *where* makes a partial index, e.g. ``"name IS NOT NULL"``."""
        if name in self._indexes:
            raise DuplicateNameError(f"Unable to create index: '{name}' already exists")
        table = self._require_table(on, f"create index '{name}'")

        columns = (columns,) if isinstance(columns, str) else tuple(columns)
        for column in columns:
            if not table.has_column(column):
                raise UnknownColumnError(on, column, f"create index '{name}'")

        index = Index(name=name, table_name=on, columns=columns, unique=unique, where=where)
        self._indexes[name] = index
        self._emit(CreateIndex(index, if_not_exists=if_not_exists))
        return index

    def drop_index(self, name: str, if_exists: bool = False) -> None:
        if name not in self._indexes:
            if not if_exists:
                raise UnknownIndexError(name, "drop index")
        else:
            del self._indexes[name]
        self._emit(DropIndex(name, if_exists=if_exists))

    def rename_index(self, from_name: str, to_name: str) -> Index:
        if to_name in self._indexes:
            raise DuplicateNameError(f"Unable to rename index: '{to_name}' already exists.")
        index = self._require_index(from_name, "rename index")

        renamed = index.renamed(to_name)
        self._indexes = {
            (to_name if key == from_name else key): (renamed if key == from_name else value)
            for key, value in self._indexes.items()
        }
        self._emit(RenameIndex(from_name, renamed))
        return renamed

    # ────────────────────────────────────────────────────────
    # Execute
    # ────────────────────────────────────────────────────────

    def execute(self, callback: ExecuteCallback) -> ExecuteCallback:
        """
        Run *callback* with the live connection during the migration.

        Keep callbacks to data changes: the schema model cannot see what they
        do, so structural changes made here can make later versions lose data.
        Returns *callback*, so this also works as a decorator.
        """
        self._emit(Execute(callback))
        return callback

    def build(self) -> Version:
        return Version(
            number=self.number,
            snapshot=Snapshot(tables=self._tables, indexes=self._indexes),
            operations=tuple(self.operations),
        )
