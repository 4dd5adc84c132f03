"""
Migration Executor — bring a live database to a target schema version.

  migrate(schema, conn)  — apply every version after the database's recorded
                           one, up to the target, inside one transaction.
  reset(schema, conn)    — drop everything the schema declares, record 0.

Preconditions are checked before any statement runs: the target range, the
recorded version, and that no table is dropped inside a caller's transaction
while foreign keys are enforced. Once statements run, any failure rolls the whole migration
back and surfaces as MigrationExecutionError; the recorded version is written
last, inside the same transaction, so it only ever names a fully applied
version.
"""

import logging
import sqlite3

from vschema import db, introspect, safe_sql
from vschema.config import MigrationOptions
from vschema.errors import (
    ForeignKeysEnforcedError,
    ForeignKeyViolationError,
    MigrationExecutionError,
    TargetVersionError,
    UnknownDatabaseVersionError,
    UnreachableVersionError,
)
from vschema.operations import AlterTableRebuild, DropTable, Execute, Operation
from vschema.version import Version

logger = logging.getLogger(__name__)


# ────────────────────────────────────────────────────────────
# Entry points
# ────────────────────────────────────────────────────────────


def migrate(
    schema,
    conn: sqlite3.Connection,
    to_version: int | None = None,
    options: MigrationOptions | None = None,
) -> bool:
    """
    Migrate *conn* to *to_version* (default: the latest declared version).

    Returns True when the database changed, False when it was already at the
    target. Only version 0 can be reached from above: it drops everything the
    schema declares.
    """
    options = options or MigrationOptions()
    latest = schema.latest_version_number
    target = latest if to_version is None else to_version

    if target < 0 or target > latest or (target != 0 and target < schema.first_version_number):
        raise TargetVersionError(target, latest)

    store = schema.version_store
    current = store.read(conn)
    unknown = current != 0 and not schema.declares(current)

    if unknown and not options.reset_unknown_versions:
        raise UnknownDatabaseVersionError(current)
    if not unknown:
        if current == target:
            logger.info("migrate: %s already at version %d", _label(schema), current)
            return False
        if target < current and target != 0:
            raise UnreachableVersionError(current, target)

    # Declaration errors surface here, before anything is written.
    if not unknown and target < current:
        schema.validate()
    versions = schema.versions_through(target)
    drops_tables = unknown or target < current or any(
        isinstance(operation, (AlterTableRebuild, DropTable))
        for version in versions
        if version.number > current
        for operation in version.operations
    )
    if drops_tables:
        _ensure_safe_drop(conn, f"migrate to version {target}")

    logger.info("migrate: %s %d -> %d", _label(schema), current, target)
    with db.foreign_keys_disabled(conn), db.transaction(conn):
        if unknown:
            logger.warning(
                "migrate: database version %d isn't declared by %s, dropping all tables",
                current,
                _label(schema),
            )
            _drop_everything(conn, store)
            current = 0
        elif target < current:
            _drop_declared(schema, conn)
            current = 0

        for version in versions:
            if version.number > current:
                _apply_version(conn, version, options)

        store.write(conn, target)

    logger.info("migrate: %s now at version %d", _label(schema), target)
    return True


def reset(schema, conn: sqlite3.Connection) -> None:
    """Drop every table and index any version of *schema* declares, then record version 0."""
    schema.validate()
    _ensure_safe_drop(conn, "reset")
    store = schema.version_store
    with db.foreign_keys_disabled(conn), db.transaction(conn):
        _drop_declared(schema, conn)
        store.write(conn, 0)
    logger.info("migrate: %s reset to version 0", _label(schema))


def _ensure_safe_drop(conn: sqlite3.Connection, action: str) -> None:
    """Refuse to drop tables where enforcement would cascade into referencing rows."""
    if conn.in_transaction and db.foreign_keys_enabled(conn):
        logger.error("migrate: refusing to %s, foreign keys are enforced in an open transaction", action)
        raise ForeignKeysEnforcedError(action)


# ────────────────────────────────────────────────────────────
# Applying versions
# ────────────────────────────────────────────────────────────


def _apply_version(conn: sqlite3.Connection, version: Version, options: MigrationOptions) -> None:
    logger.info("migrate: applying version %d (%d operations)", version.number, len(version.operations))
    for operation in version.operations:
        try:
            _apply_operation(conn, operation)
        except MigrationExecutionError:
            raise
        except Exception as e:
            logger.error(
                "migrate: version %d %s %s failed: %s",
                version.number,
                operation.kind,
                operation.subject,
                e,
            )
            raise MigrationExecutionError(version.number, operation, str(e)) from e

        if options.check_foreign_keys and isinstance(operation, AlterTableRebuild):
            _check_foreign_keys(conn, version, operation)


def _apply_operation(conn: sqlite3.Connection, operation: Operation) -> None:
    logger.info("migrate:   %s %s", operation.kind, operation.subject)
    if isinstance(operation, Execute):
        operation.callback(conn)
        return
    for statement in operation.statements():
        logger.debug("migrate:     %s", statement)
        conn.execute(statement)


def _check_foreign_keys(conn: sqlite3.Connection, version: Version, operation: Operation) -> None:
    violations = [tuple(row) for row in conn.execute(safe_sql.pragma_foreign_key_check()).fetchall()]
    if violations:
        logger.error(
            "migrate: version %d %s %s left %d foreign key violations",
            version.number,
            operation.kind,
            operation.subject,
            len(violations),
        )
        raise ForeignKeyViolationError(version.number, operation, violations)


# ────────────────────────────────────────────────────────────
# Dropping
# ────────────────────────────────────────────────────────────


def _drop_declared(schema, conn: sqlite3.Connection) -> None:
    """Drop every table and index named by any declared version, newest first."""
    tables: list[str] = []
    indexes: list[str] = []
    for version in reversed(schema.versions):
        indexes.extend(name for name in version.index_names if name not in indexes)
        tables.extend(name for name in version.table_names if name not in tables)

    for name in indexes:
        conn.execute(safe_sql.drop_index(name, if_exists=True))
    for name in tables:
        conn.execute(safe_sql.drop_table(name, if_exists=True))
    logger.info("migrate: dropped %d tables, %d indexes", len(tables), len(indexes))


def _drop_everything(conn: sqlite3.Connection, store) -> None:
    """Drop every user table and view, keeping the version bookkeeping table."""
    info = introspect.schema_info(conn)
    for name in info.view_names:
        conn.execute(safe_sql.drop_view(name, if_exists=True))
    dropped = 0
    for name in info.table_names:
        if name == store.table:
            continue
        conn.execute(safe_sql.drop_table(name, if_exists=True))
        dropped += 1
    logger.info("migrate: dropped %d tables", dropped)


def _label(schema) -> str:
    return f"schema {schema.identifier!r}" if schema.identifier is not None else "schema"
