"""
Tests for Schema declaration and the lazy snapshot chain.
"""

import threading

import pytest

from vschema import ColumnType, Schema
from vschema.errors import UnknownColumnError, VersionNumberError
from vschema.operations import AddColumn, CreateTable
from vschema.schema import SchemaBuilder

# =============================================================================
# DECLARATION
# =============================================================================


def _declare(s):
    @s.version(1)
    def v1(v):
        with v.create_table("people") as t:
            t.primary_key("id")
            t.column("name", ColumnType.TEXT, "NOT NULL")

    @s.version(2)
    def v2(v):
        with v.alter_table("people") as t:
            t.add_column("email", ColumnType.TEXT)


class TestSchemaBuilder:
    """Version numbers are validated as they are declared."""

    def test_decorator_returns_function(self):
        s = SchemaBuilder()

        def v1(v):
            pass

        assert s.version(1)(v1) is v1
        assert s.declarations == [(1, v1)]

    @pytest.mark.parametrize("number", [0, -1, 1.5, True, "1"])
    def test_invalid_numbers(self, number):
        with pytest.raises(VersionNumberError):
            SchemaBuilder().version(number, lambda v: None)

    def test_must_be_consecutive(self):
        s = SchemaBuilder()
        s.version(1, lambda v: None)
        with pytest.raises(VersionNumberError):
            s.version(3, lambda v: None)

    def test_no_duplicates_or_reordering(self):
        s = SchemaBuilder()
        s.version(1, lambda v: None)
        s.version(2, lambda v: None)
        with pytest.raises(VersionNumberError):
            s.version(2, lambda v: None)
        with pytest.raises(VersionNumberError):
            s.version(1, lambda v: None)

    def test_first_version_may_be_above_one(self):
        schema = Schema(declare=lambda s: s.version(5, lambda v: None))
        assert schema.first_version_number == 5
        assert schema.latest_version_number == 5
        assert schema.latest_version.number == 5

    def test_empty_schema_rejected(self):
        with pytest.raises(VersionNumberError):
            Schema()


# =============================================================================
# LAZY CHAIN
# =============================================================================


class TestLazyChain:
    """Version bodies run once, in order, only when needed."""

    def test_bodies_run_lazily_and_once(self):
        calls = []

        def declare(s):
            s.version(1, lambda v: calls.append(1))
            s.version(2, lambda v: calls.append(2))

        schema = Schema(declare=declare)
        assert calls == []

        schema.version(1)
        assert calls == [1]

        schema.version(2)
        schema.version(2)
        schema.validate()
        assert calls == [1, 2]

    def test_concurrent_access_compiles_once(self):
        calls = []
        schema = Schema(declare=lambda s: s.version(1, lambda v: calls.append(1)))

        threads = [threading.Thread(target=schema.validate) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert calls == [1]

    def test_declaration_error_surfaces_on_access(self):
        def declare(s):
            s.version(1, lambda v: v.create_table("t", lambda t: t.column("a")))
            s.version(2, lambda v: v.alter_table("t", lambda t: t.drop_column("missing")))

        schema = Schema(declare=declare)
        assert schema.version(1).table_names == ["t"]
        with pytest.raises(UnknownColumnError):
            schema.validate()


# =============================================================================
# INSPECTION
# =============================================================================


class TestInspection:
    """Versions, tables and operations can be inspected without a database."""

    def test_version_snapshots(self):
        schema = Schema(declare=_declare)
        assert schema.version(1)["people"].column_names == ["id", "name"]
        assert schema.version(2)["people"].column_names == ["id", "name", "email"]
        assert schema["people"].column_names == ["id", "name", "email"]
        assert schema["missing"] is None

    def test_version_zero_is_empty(self):
        assert Schema(declare=_declare).version(0).table_names == []

    def test_undeclared_version(self):
        schema = Schema(declare=_declare)
        assert schema.version(3) is None
        assert schema.version(-1) is None

    def test_latest_version_snapshot(self):
        schema = Schema(declare=_declare)
        latest = schema.latest_version
        assert latest.number == 2
        assert latest.table_names == ["people"]
        assert latest is schema.version(2)

    def test_operations_between_versions(self):
        schema = Schema(declare=_declare)

        everything = schema.operations(0, 2)
        assert [(n, type(op)) for n, op in everything] == [(1, CreateTable), (2, AddColumn)]

        assert [n for n, _ in schema.operations(1, 2)] == [2]
        assert schema.operations(2, 2) == []

    def test_operations_beyond_latest(self):
        with pytest.raises(VersionNumberError):
            Schema(declare=_declare).operations(0, 9)

    def test_repr(self):
        assert repr(Schema("app", _declare)) == "Schema(identifier='app', versions=1..2)"
