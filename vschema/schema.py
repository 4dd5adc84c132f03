"""
Schema — an ordered, immutable sequence of versions.

Versions are declared up front, as functions receiving a VersionBuilder:

    def declare(s):
        @s.version(1)
        def v1(v):
            with v.create_table("people") as t:
                t.primary_key("id")
                t.column("name", ColumnType.TEXT, "NOT NULL")

        @s.version(2)
        def v2(v):
            with v.alter_table("people") as t:
                t.add_column("email", ColumnType.TEXT)

    schema = Schema(identifier="people", declare=declare)
    schema.migrate(conn)

Version numbers are checked when declared. Version bodies run lazily, in
order, the first time a version's snapshot is needed; each compiled Version
is cached, so every body runs at most once per Schema.
"""

import logging
import sqlite3
import threading
from collections.abc import Callable

from vschema import db, migrate as executor
from vschema.config import MigrationOptions
from vschema.errors import SchemaDeclarationError, VersionNumberError
from vschema.model import Snapshot, Table
from vschema.operations import Operation
from vschema.version import Version, VersionBuilder

logger = logging.getLogger(__name__)

VersionBlock = Callable[[VersionBuilder], None]


class SchemaBuilder:
    """Collects version declarations. ``version()`` also works as a decorator."""

    def __init__(self):
        self.declarations: list[tuple[int, VersionBlock]] = []

    def version(self, number: int, block: VersionBlock | None = None):
        self._check_number(number)
        if block is None:

            def decorator(fn: VersionBlock) -> VersionBlock:
                self.declarations.append((number, fn))
                return fn

            return decorator

        self.declarations.append((number, block))
        return block

    def _check_number(self, number) -> None:
        if not isinstance(number, int) or isinstance(number, bool) or number < 1:
            raise VersionNumberError(f"Version numbers must be positive integers, got {number!r}")
        if not self.declarations:
            return
        last = self.declarations[-1][0]
        if number <= last:
            raise VersionNumberError(f"Version {number} is declared after version {last}")
        if number != last + 1:
            raise VersionNumberError(
                f"Version {number} skips version {last + 1}; versions must be consecutive"
            )


class Schema:
    """
    A versioned schema.

    *identifier* selects where the migrated version is stored: ``None`` uses
    ``PRAGMA user_version``, anything else a row in the version table, so
    several schemas can share one database file.
    """

    def __init__(self, identifier: str | None = None, declare: Callable[[SchemaBuilder], None] | None = None):
        builder = SchemaBuilder()
        if declare is not None:
            declare(builder)
        if not builder.declarations:
            raise VersionNumberError("A schema must declare at least one version")

        self.identifier = identifier
        self._declarations = tuple(builder.declarations)
        self._versions: list[Version] = []
        self._lock = threading.Lock()

    def __repr__(self) -> str:
        return (
            f"Schema(identifier={self.identifier!r}, "
            f"versions={self.first_version_number}..{self.latest_version_number})"
        )

    # ────────────────────────────────────────────────────────
    # Version numbers (no compilation needed)
    # ────────────────────────────────────────────────────────

    @property
    def first_version_number(self) -> int:
        return self._declarations[0][0]

    @property
    def latest_version_number(self) -> int:
        return self._declarations[-1][0]

    @property
    def version_numbers(self) -> list[int]:
        return [number for number, _ in self._declarations]

    def declares(self, number: int) -> bool:
        return self.first_version_number <= number <= self.latest_version_number

    @property
    def version_store(self) -> db.UserVersionStore | db.TableVersionStore:
        return db.version_store(self.identifier)

    # ────────────────────────────────────────────────────────
    # Lazy snapshot chain
    # ────────────────────────────────────────────────────────

    def _compile_through(self, number: int) -> list[Version]:
        with self._lock:
            needed = number - self.first_version_number + 1
            while len(self._versions) < needed:
                position = len(self._versions)
                version_number, block = self._declarations[position]
                previous = self._versions[-1].snapshot if self._versions else Snapshot()

                builder = VersionBuilder(version_number, previous)
                try:
                    block(builder)
                    version = builder.build()
                except SchemaDeclarationError as e:
                    logger.error("schema: version %d is invalid: %s", version_number, e)
                    raise

                logger.debug(
                    "schema: compiled version %d (%d operations)",
                    version_number,
                    len(version.operations),
                )
                self._versions.append(version)
            return self._versions[: max(needed, 0)]

    def version(self, number: int) -> Version | None:
        """The compiled version *number*, or None if it isn't declared. Version 0 is the empty schema."""
        if number == 0:
            return Version(number=0, snapshot=Snapshot(), operations=())
        if not self.declares(number):
            return None
        return self._compile_through(number)[-1]

    @property
    def latest_version(self) -> Version:
        return self._compile_through(self.latest_version_number)[-1]

    @property
    def versions(self) -> list[Version]:
        return list(self._compile_through(self.latest_version_number))

    def versions_through(self, number: int) -> list[Version]:
        """Every declared version up to and including *number*, compiled."""
        return list(self._compile_through(number))

    def __getitem__(self, table_name: str) -> Table | None:
        """A table as declared by the latest version."""
        return self.latest_version.table(table_name)

    def operations(self, from_version: int, to_version: int) -> list[tuple[int, Operation]]:
        """The (version number, operation) pairs migrating *from_version* to *to_version*."""
        if to_version > self.latest_version_number:
            raise VersionNumberError(
                f"Version {to_version} isn't declared (latest is {self.latest_version_number})"
            )
        if to_version < self.first_version_number:
            return []
        return [
            (version.number, operation)
            for version in self._compile_through(to_version)
            if from_version < version.number <= to_version
            for operation in version.operations
        ]

    def validate(self) -> Version:
        """Compile every version, raising the first declaration error. Returns the latest."""
        return self.versions[-1]

    # ────────────────────────────────────────────────────────
    # Database
    # ────────────────────────────────────────────────────────

    def database_version(self, conn: sqlite3.Connection) -> int:
        return self.version_store.read(conn)

    def migrate(
        self,
        conn: sqlite3.Connection,
        to_version: int | None = None,
        options: MigrationOptions | None = None,
    ) -> bool:
        """Migrate *conn* to *to_version* (default: latest). Returns whether anything changed."""
        return executor.migrate(self, conn, to_version=to_version, options=options)

    def reset(self, conn: sqlite3.Connection) -> None:
        """Drop every table this schema has ever declared and record version 0."""
        executor.reset(self, conn)
