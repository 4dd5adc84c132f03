"""
Schema model — immutable value types describing one schema snapshot.

Column, TableConstraint, PrimaryKey, Table and Index are frozen dataclasses
holding tuples, so a snapshot can be shared between versions without one
version's edits leaking into another. Edits produce new values via the
``with_*`` / ``renamed`` helpers or ``dataclasses.replace``.
"""

import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field, replace
from enum import Enum
from types import MappingProxyType

from vschema import safe_sql
from vschema.errors import DuplicateNameError, SchemaDeclarationError, UnknownColumnError


class ColumnType(str, Enum):
    """Column affinity. NULL renders no type name, giving the column no affinity."""

    INTEGER = "INTEGER"
    REAL = "REAL"
    TEXT = "TEXT"
    BLOB = "BLOB"
    NULL = ""

    @classmethod
    def coerce(cls, value: "ColumnType | str") -> "ColumnType":
        if isinstance(value, cls):
            return value
        normalized = str(value).strip().upper()
        if normalized in ("NULL", "NONE", "ANY"):
            return cls.NULL
        try:
            return cls(normalized)
        except ValueError:
            raise SchemaDeclarationError(f"Unknown column type: {value!r}") from None


_DEFAULT_RE = re.compile(r"\bDEFAULT\s+", re.IGNORECASE)


def parse_default(clauses: Iterable[str]) -> str | None:
    """Extract the DEFAULT value from constraint clauses, as written.

    Handles quoted strings (with doubled quotes), parenthesised expressions,
    and bare tokens such as numbers, NULL or CURRENT_TIMESTAMP.
    """
    text = " ".join(clauses)
    match = _DEFAULT_RE.search(text)
    if not match:
        return None
    rest = text[match.end() :]
    if not rest:
        return None

    if rest[0] == "(":
        depth = 0
        for i, ch in enumerate(rest):
            if ch == "(":
                depth += 1
            elif ch == ")":
                depth -= 1
                if depth == 0:
                    return rest[: i + 1]
        return rest

    if rest[0] in ("'", '"'):
        quote = rest[0]
        i = 1
        while i < len(rest):
            if rest[i] == quote:
                if i + 1 < len(rest) and rest[i + 1] == quote:
                    i += 2
                    continue
                return rest[: i + 1]
            i += 1
        return rest

    return rest.split()[0]


# =============================================================================
# COLUMNS & CONSTRAINTS
# =============================================================================


@dataclass(frozen=True)
class Column:
    """A table column: name, affinity and raw constraint clauses in declaration order."""

    name: str
    type: ColumnType = ColumnType.TEXT
    constraints: tuple[str, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, "type", ColumnType.coerce(self.type))
        object.__setattr__(self, "constraints", tuple(self.constraints))

    @property
    def default_value(self) -> str | None:
        """The DEFAULT clause value, e.g. ``'anonymous'`` or ``0``."""
        return parse_default(self.constraints)

    @property
    def definition(self) -> str:
        return _render(self.name, self.type, (), self.constraints)

    def renamed(self, name: str) -> "Column":
        return replace(self, name=name)


@dataclass(frozen=True)
class TableConstraint:
    """A table-level constraint clause, e.g. ``UNIQUE (a, b)``, optionally named."""

    clause: str
    name: str | None = None

    @property
    def definition(self) -> str:
        if self.name:
            return f"CONSTRAINT {safe_sql.quote_identifier(self.name)} {self.clause}"
        return self.clause


@dataclass(frozen=True)
class PrimaryKey:
    """Single-column primary key declaration."""

    column: str
    autoincrement: bool = False

    @property
    def clauses(self) -> tuple[str, ...]:
        if self.autoincrement:
            return ("PRIMARY KEY", "AUTOINCREMENT")
        return ("PRIMARY KEY",)


def _render(name: str, column_type: ColumnType, leading: tuple, constraints: tuple) -> str:
    parts = [safe_sql.quote_identifier(name)]
    if column_type.value:
        parts.append(column_type.value)
    parts.extend(leading)
    parts.extend(constraints)
    return " ".join(parts)


# =============================================================================
# TABLES
# =============================================================================


@dataclass(frozen=True)
class Table:
    """A table at one schema version. Column order is the physical column order."""

    name: str
    columns: tuple[Column, ...] = ()
    constraints: tuple[TableConstraint, ...] = ()
    primary_key: PrimaryKey | None = None

    def __post_init__(self):
        object.__setattr__(self, "columns", tuple(self.columns))
        object.__setattr__(self, "constraints", tuple(self.constraints))

        seen: set[str] = set()
        for column in self.columns:
            if column.name in seen:
                raise DuplicateNameError(
                    f"Column '{column.name}' is declared twice in table '{self.name}'"
                )
            seen.add(column.name)

        named: set[str] = set()
        for constraint in self.constraints:
            if constraint.name is None:
                continue
            if constraint.name in named:
                raise DuplicateNameError(
                    f"Constraint '{constraint.name}' is declared twice in table '{self.name}'"
                )
            named.add(constraint.name)

        if self.primary_key is not None and self.primary_key.column not in seen:
            raise UnknownColumnError(self.name, self.primary_key.column, "declare primary key")

    @property
    def column_names(self) -> list[str]:
        return [c.name for c in self.columns]

    def column(self, name: str) -> Column | None:
        for column in self.columns:
            if column.name == name:
                return column
        return None

    def __getitem__(self, column_name: str) -> Column | None:
        return self.column(column_name)

    def has_column(self, name: str) -> bool:
        return self.column(name) is not None

    def column_definition(self, column: Column) -> str:
        """Render *column* as it appears in this table's CREATE TABLE."""
        leading: tuple = ()
        if self.primary_key is not None and self.primary_key.column == column.name:
            leading = self.primary_key.clauses
        return _render(column.name, column.type, leading, column.constraints)

    @property
    def definitions(self) -> list[str]:
        """Column definitions followed by table constraints, for CREATE TABLE."""
        return [self.column_definition(c) for c in self.columns] + [
            c.definition for c in self.constraints
        ]

    def create_sql(self, name: str | None = None) -> str:
        return safe_sql.create_table(name or self.name, self.definitions)

    def renamed(self, name: str) -> "Table":
        return replace(self, name=name)


# =============================================================================
# INDEXES
# =============================================================================


@dataclass(frozen=True)
class Index:
    """An index over named columns of one table, optionally UNIQUE and/or partial."""

    name: str
    table_name: str
    columns: tuple[str, ...]
    unique: bool = False
    where: str | None = None

    def __post_init__(self):
        object.__setattr__(self, "columns", tuple(self.columns))
        if not self.columns:
            raise SchemaDeclarationError(f"Index '{self.name}' must cover at least one column")

    def create_sql(self, if_not_exists: bool = False) -> str:
        return safe_sql.create_index(
            self.name,
            self.table_name,
            self.columns,
            where=self.where,
            unique=self.unique,
            if_not_exists=if_not_exists,
        )

    def renamed(self, name: str) -> "Index":
        return replace(self, name=name)

    def retargeted(self, table_name: str) -> "Index":
        return replace(self, table_name=table_name)


# =============================================================================
# SNAPSHOT
# =============================================================================


@dataclass(frozen=True)
class Snapshot:
    """Every table and index defined at one version, keyed by name.

    Construction validates that every index points at an existing table and
    only covers columns of that table.
    """

    tables: Mapping[str, Table] = field(default_factory=dict)
    indexes: Mapping[str, Index] = field(default_factory=dict)

    def __post_init__(self):
        tables = dict(self.tables)
        indexes = dict(self.indexes)
        for index in indexes.values():
            table = tables.get(index.table_name)
            if table is None:
                raise SchemaDeclarationError(
                    f"Index '{index.name}' refers to unknown table '{index.table_name}'"
                )
            for column in index.columns:
                if not table.has_column(column):
                    raise UnknownColumnError(table.name, column, f"index '{index.name}'")
        object.__setattr__(self, "tables", MappingProxyType(tables))
        object.__setattr__(self, "indexes", MappingProxyType(indexes))

    @property
    def table_names(self) -> list[str]:
        return list(self.tables)

    @property
    def index_names(self) -> list[str]:
        return list(self.indexes)

    def table(self, name: str) -> Table | None:
        return self.tables.get(name)

    def index(self, name: str) -> Index | None:
        return self.indexes.get(name)

    def indexes_on(self, table_name: str) -> list[Index]:
        return [i for i in self.indexes.values() if i.table_name == table_name]
