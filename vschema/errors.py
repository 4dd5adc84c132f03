"""
Exception taxonomy.

Three families:
  SchemaDeclarationError     — raised while a Schema's versions are compiled,
                               never after the database has been touched.
  MigrationPreconditionError — raised by migrate() before any statement runs.
  MigrationExecutionError    — raised when a statement or execute() step fails;
                               the surrounding transaction has been rolled back.
"""


class VSchemaError(Exception):
    """Base class for every vschema error."""

    pass


# =============================================================================
# DECLARATION ERRORS
# =============================================================================


class SchemaDeclarationError(VSchemaError):
    """A version declaration is inconsistent with the snapshot it builds on."""

    pass


class DuplicateNameError(SchemaDeclarationError):
    """A table, index, column or constraint name is already taken."""

    pass


class UnknownTableError(SchemaDeclarationError):
    """A declaration refers to a table missing from the working snapshot."""

    def __init__(self, table: str, action: str):
        self.table = table
        super().__init__(f"Unable to {action}: table '{table}' doesn't exist")


class UnknownColumnError(SchemaDeclarationError):
    """A declaration refers to a column missing from its table."""

    def __init__(self, table: str, column: str, action: str):
        self.table = table
        self.column = column
        super().__init__(f"Unable to {action} in '{table}': column '{column}' doesn't exist")


class UnknownIndexError(SchemaDeclarationError):
    """A declaration refers to an index missing from the working snapshot."""

    def __init__(self, index: str, action: str):
        self.index = index
        super().__init__(f"Unable to {action}: index '{index}' doesn't exist")


class UnknownConstraintError(SchemaDeclarationError):
    """A table constraint to drop was not found."""

    pass


class VersionNumberError(SchemaDeclarationError):
    """Version numbers must be positive, unique and consecutive."""

    pass


# =============================================================================
# PRECONDITION ERRORS
# =============================================================================


class MigrationPreconditionError(VSchemaError):
    """migrate() was asked for something it cannot do; nothing was changed."""

    pass


class TargetVersionError(MigrationPreconditionError):
    """The requested target version is negative or not declared."""

    def __init__(self, target: int, latest: int):
        self.target = target
        self.latest = latest
        super().__init__(
            f"Unable to migrate to version {target}: schema declares versions up to {latest}"
        )


class UnknownDatabaseVersionError(MigrationPreconditionError):
    """The database records a version the schema does not declare."""

    def __init__(self, db_version: int):
        self.db_version = db_version
        super().__init__(f"The database version ({db_version}) isn't defined in the schema.")


class UnreachableVersionError(MigrationPreconditionError):
    """Migrations only walk forward; a lower non-zero target cannot be reached."""

    def __init__(self, from_version: int, to_version: int):
        self.from_version = from_version
        self.to_version = to_version
        super().__init__(f"Unable to migrate from {from_version} to {to_version}")


class ForeignKeysEnforcedError(MigrationPreconditionError):
    """
    A table would be dropped inside the caller's transaction while foreign keys
    are enforced.

    SQLite cannot switch enforcement off inside a transaction, so the drop would
    fire ON DELETE actions on referencing rows. Turn foreign keys off before
    opening the transaction, or migrate outside of it.
    """

    def __init__(self, action: str):
        self.action = action
        super().__init__(
            f"Unable to {action} inside an open transaction with foreign keys enforced"
        )


# =============================================================================
# EXECUTION ERRORS
# =============================================================================


class MigrationExecutionError(VSchemaError):
    """An operation failed while migrating; the migration was rolled back."""

    def __init__(self, version: int, operation, message: str):
        self.version = version
        self.operation = operation
        kind = getattr(operation, "kind", type(operation).__name__)
        subject = getattr(operation, "subject", None)
        target = f" '{subject}'" if subject else ""
        super().__init__(f"Version {version}: {kind}{target} failed: {message}")


class ForeignKeyViolationError(MigrationExecutionError):
    """A rebuilt table left rows that violate foreign keys."""

    def __init__(self, version: int, operation, violations: list[tuple]):
        self.violations = violations
        tables = sorted({f"{row[0]} REFERENCES {row[2]}" for row in violations})
        super().__init__(version, operation, f"migration violated foreign keys: {tables}")
