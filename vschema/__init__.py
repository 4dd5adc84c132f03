# vschema - Versioned schema migrations for SQLite
"""
Exports for applications declaring and migrating schemas.
"""

from .alter_table import TableAlterer
from .config import MigrationOptions
from .errors import (
    DuplicateNameError,
    ForeignKeysEnforcedError,
    ForeignKeyViolationError,
    MigrationExecutionError,
    MigrationPreconditionError,
    SchemaDeclarationError,
    TargetVersionError,
    UnknownColumnError,
    UnknownConstraintError,
    UnknownDatabaseVersionError,
    UnknownIndexError,
    UnknownTableError,
    UnreachableVersionError,
    VersionNumberError,
    VSchemaError,
)
from .model import Column, ColumnType, Index, PrimaryKey, Snapshot, Table, TableConstraint
from .schema import Schema, SchemaBuilder
from .version import TableBuilder, Version, VersionBuilder

__all__ = [
    "Schema",
    "SchemaBuilder",
    "Version",
    "VersionBuilder",
    "TableBuilder",
    "TableAlterer",
    "MigrationOptions",
    "ColumnType",
    "Column",
    "TableConstraint",
    "PrimaryKey",
    "Table",
    "Index",
    "Snapshot",
    "VSchemaError",
    "SchemaDeclarationError",
    "DuplicateNameError",
    "UnknownTableError",
    "UnknownColumnError",
    "UnknownIndexError",
    "UnknownConstraintError",
    "VersionNumberError",
    "MigrationPreconditionError",
    "TargetVersionError",
    "UnknownDatabaseVersionError",
    "UnreachableVersionError",
    "ForeignKeysEnforcedError",
    "MigrationExecutionError",
    "ForeignKeyViolationError",
]
