"""
Alter-Table Compiler — turn column/constraint edits into the cheapest correct operations.

SQLite's ALTER TABLE can append a column or rename a table, nothing else.
Dropping, renaming or retyping a column, changing constraints, or computing
values for existing rows all require rebuilding the table:

  create temp table → INSERT ... SELECT → drop original → rename temp → recreate indexes

TableAlterer records edits in declaration order against a working copy of
the table, raising declaration errors at the offending call. compile() then
emits either:

  - one AddColumn per added column, when every edit is a plain addition
    SQLite can express natively; or
  - exactly one AlterTableRebuild covering every edit in the block, no
    matter how many columns were touched.

Edits address columns by their name before the block started; a name that
matches no original column falls back to the current working name, which
covers columns added earlier in the same block.
"""

import logging
import re
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field, replace

from vschema import index_remap, safe_sql
from vschema.errors import DuplicateNameError, UnknownColumnError, UnknownConstraintError
from vschema.model import Column, ColumnType, Index, Table, TableConstraint
from vschema.operations import AddColumn, AlterTableRebuild, ColumnSource, Operation

logger = logging.getLogger(__name__)


# ────────────────────────────────────────────────────────────
# Native ADD COLUMN eligibility
# ────────────────────────────────────────────────────────────

# Clauses valid in CREATE TABLE but rejected by ALTER TABLE ADD COLUMN
_NOT_ADDABLE_PATTERNS = [
    re.compile(r"\bPRIMARY\s+KEY\b", re.IGNORECASE),
    re.compile(r"\bAUTOINCREMENT\b", re.IGNORECASE),
    re.compile(r"\bUNIQUE\b", re.IGNORECASE),
    re.compile(r"\bSTORED\b", re.IGNORECASE),
]
_NOT_NULL_RE = re.compile(r"\bNOT\s+NULL\b", re.IGNORECASE)
_REFERENCES_RE = re.compile(r"\bREFERENCES\b", re.IGNORECASE)
_TIME_DEFAULTS = {"CURRENT_TIME", "CURRENT_DATE", "CURRENT_TIMESTAMP"}


def can_add_natively(column: Column) -> bool:
    """
    Whether *column* can be appended with ALTER TABLE ADD COLUMN.

    SQLite restrictions on ALTER TABLE ADD COLUMN:
      - Cannot be PRIMARY KEY or AUTOINCREMENT
      - Cannot have UNIQUE constraint
      - Cannot be a STORED generated column
      - NOT NULL requires a non-NULL DEFAULT
      - DEFAULT cannot be CURRENT_* or a parenthesised expression
      - REFERENCES requires a NULL default
    """
    text = " ".join(column.constraints)
    if any(pattern.search(text) for pattern in _NOT_ADDABLE_PATTERNS):
        return False

    default = column.default_value
    is_null_default = default is None or default.upper() == "NULL"
    if _NOT_NULL_RE.search(text) and is_null_default:
        return False
    if default is not None and (default.startswith("(") or default.upper() in _TIME_DEFAULTS):
        return False
    if _REFERENCES_RE.search(text) and not is_null_default:
        return False
    return True


def _clauses(constraints: Iterable) -> tuple[str, ...]:
    """Accept ``"NOT NULL", "DEFAULT 0"`` or a single list of clauses."""
    flat: list[str] = []
    for item in constraints:
        if isinstance(item, (list, tuple)):
            flat.extend(item)
        else:
            flat.append(item)
    return tuple(flat)


@dataclass
class Alteration:
    """Result of compiling one alter_table block."""

    table: Table
    indexes: list[Index]
    dropped_indexes: list[Index] = field(default_factory=list)
    operations: list[Operation] = field(default_factory=list)

    @property
    def rebuilds(self) -> bool:
        return any(isinstance(op, AlterTableRebuild) for op in self.operations)


# =============================================================================
# TABLE ALTERER
# =============================================================================


class TableAlterer:
    """DSL for changing one table. Also usable as a context manager."""

    def __init__(
        self,
        table: Table,
        indexes: Iterable[Index] = (),
        on_complete: Callable[["TableAlterer"], None] | None = None,
    ):
        self.original = table
        self._indexes = [i for i in indexes if i.table_name == table.name]
        self._on_complete = on_complete

        self._columns: list[Column] = list(table.columns)
        # current column name -> column name in the original table
        self._origins: dict[str, str] = {c.name: c.name for c in table.columns}
        # current column name -> raw SQL computing its value from the original row
        self._values: dict[str, str] = {}
        self._constraints: list[TableConstraint] = list(table.constraints)
        self._primary_key = table.primary_key
        self._additions: list[Column] = []
        self._rebuild_reasons: list[str] = []

    def __enter__(self) -> "TableAlterer":
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        if exc_type is None and self._on_complete is not None:
            self._on_complete(self)
        return False

    @property
    def name(self) -> str:
        return self.original.name

    @property
    def table(self) -> Table:
        """The table as altered so far."""
        return Table(
            name=self.original.name,
            columns=self._columns,
            constraints=self._constraints,
            primary_key=self._primary_key,
        )

    @property
    def requires_rebuild(self) -> bool:
        return bool(self._rebuild_reasons)

    # ────────────────────────────────────────────────────────
    # Column lookup
    # ────────────────────────────────────────────────────────

    def _position(self, name: str, action: str) -> int:
        for i, column in enumerate(self._columns):
            if self._origins.get(column.name) == name:
                return i
        for i, column in enumerate(self._columns):
            if column.name == name:
                return i
        raise UnknownColumnError(self.original.name, name, action)

    def _ensure_free(self, name: str) -> None:
        if any(column.name == name for column in self._columns):
            raise DuplicateNameError(
                f"Unable to add '{name}' column to '{self.original.name}': column already exists."
            )

    def _rebuild(self, reason: str) -> None:
        self._rebuild_reasons.append(reason)

    # ────────────────────────────────────────────────────────
    # Column edits
    # ────────────────────────────────────────────────────────

    def add_column(
        self,
        name: str,
        type: ColumnType | str = ColumnType.TEXT,
        *constraints,
        set_value: str | None = None,
    ) -> "TableAlterer":
        """
        Append a column.

        *set_value* is an SQL expression computing the new column for existing
        rows; it may reference other columns of the original row, e.g.
        ``coalesce(name, email)``. Unlike a DEFAULT, it only applies to rows
        present at migration time, and it forces a rebuild.
        """
        self._ensure_free(name)
        column = Column(name=name, type=type, constraints=_clauses(constraints))
        self._columns.append(column)
        self._additions.append(column)

        if set_value is not None:
            self._values[name] = set_value
            self._rebuild(f"add {name} with set_value")
        elif not can_add_natively(column):
            self._rebuild(f"add {name} with constraints ADD COLUMN cannot express")
        return self

    def alter_column(
        self,
        name: str,
        rename_to: str | None = None,
        change_type_to: ColumnType | str | None = None,
        set_constraints: Iterable[str] | None = None,
        set_value: str | None = None,
    ) -> "TableAlterer":
        """
        Change an existing column.

        *set_constraints* replaces the column's constraints rather than adding
        to them. *set_value* recomputes the column for every row, e.g.
        ``ifnull(name, '')``; it is evaluated against the original row, so it
        uses the original column names.
        """
        position = self._position(name, "alter column")
        column = self._columns[position]
        altered = column

        if rename_to is not None and rename_to != column.name:
            self._ensure_free(rename_to)
            altered = altered.renamed(rename_to)
            if self._primary_key is not None and self._primary_key.column == column.name:
                self._primary_key = replace(self._primary_key, column=rename_to)
            if column.name in self._values:
                self._values[rename_to] = self._values.pop(column.name)
            # A column added in this block is simply added under its new name.
            if column.name in self._origins:
                self._origins[rename_to] = self._origins.pop(column.name)
                self._rebuild(f"rename {column.name} to {rename_to}")

        if change_type_to is not None:
            altered = Column(altered.name, change_type_to, altered.constraints)
            if altered.type != column.type:
                self._rebuild(f"retype {column.name}")

        if set_constraints is not None:
            altered = Column(altered.name, altered.type, _clauses(set_constraints))
            if altered.constraints != column.constraints:
                self._rebuild(f"constrain {column.name}")

        if set_value is not None:
            self._values[altered.name] = set_value
            self._rebuild(f"set value of {column.name}")

        self._columns[position] = altered
        self._additions = [altered if c is column else c for c in self._additions]
        return self

    def drop_column(self, name: str) -> "TableAlterer":
        """Remove a column. Indexes covering it are dropped with it."""
        position = self._position(name, "drop column")
        column = self._columns.pop(position)
        self._values.pop(column.name, None)
        self._additions = [c for c in self._additions if c is not column]
        if self._primary_key is not None and self._primary_key.column == column.name:
            self._primary_key = None

        if self._origins.pop(column.name, None) is not None:
            self._rebuild(f"drop {column.name}")
        return self

    # ────────────────────────────────────────────────────────
    # Table constraints
    # ────────────────────────────────────────────────────────

    def add_constraint(self, clause: str, name: str | None = None) -> "TableAlterer":
        """Add a table constraint, e.g. ``UNIQUE (a, b)`` or ``CHECK (x > 0)``."""
        if name is not None and any(c.name == name for c in self._constraints):
            raise DuplicateNameError(
                f"Unable to add constraint to '{self.original.name}': "
                f"'{name}' constraint already exists."
            )
        self._constraints.append(TableConstraint(clause=clause, name=name))
        self._rebuild(f"add constraint {name or clause}")
        return self

    def drop_constraint(self, clause: str | None = None, name: str | None = None) -> "TableAlterer":
        """Remove a table constraint by its clause or by its name."""
        if (clause is None) == (name is None):
            raise ValueError("drop_constraint() takes exactly one of clause or name")

        for i, constraint in enumerate(self._constraints):
            if (name is not None and constraint.name == name) or (
                clause is not None and constraint.clause == clause
            ):
                del self._constraints[i]
                self._rebuild(f"drop constraint {name or clause}")
                return self

        raise UnknownConstraintError(
            f"Unable to drop constraint from '{self.original.name}': "
            f"'{name or clause}' constraint not found."
        )

    def drop_all_constraints(self) -> "TableAlterer":
        if self._constraints:
            self._constraints = []
            self._rebuild("drop all constraints")
        return self

    # ────────────────────────────────────────────────────────
    # Compile
    # ────────────────────────────────────────────────────────

    def compile(self) -> Alteration:
        """Produce the final table, its indexes and the operations reaching them."""
        table = self.table

        if not self._rebuild_reasons:
            operations: list[Operation] = [AddColumn(table.name, column) for column in self._additions]
            return Alteration(table=table, indexes=list(self._indexes), operations=operations)

        plan: list[ColumnSource] = []
        for column in table.columns:
            if column.name in self._values:
                plan.append(ColumnSource(column.name, self._values[column.name]))
            elif column.name in self._origins:
                plan.append(
                    ColumnSource(column.name, safe_sql.quote_identifier(self._origins[column.name]))
                )

        column_map = {original: current for current, original in self._origins.items()}
        kept, dropped = index_remap.remap_columns(self._indexes, column_map)

        logger.debug(
            "alter_table: rebuilding %s (%s)", table.name, "; ".join(self._rebuild_reasons)
        )
        rebuild = AlterTableRebuild(
            original_name=self.original.name,
            final_table=table,
            column_plan=tuple(plan),
            indexes_to_recreate=tuple(kept),
        )
        return Alteration(table=table, indexes=kept, dropped_indexes=dropped, operations=[rebuild])
