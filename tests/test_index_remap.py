"""
Tests for index remapping across rebuilds and renames.
"""

from vschema.index_remap import remap_columns, retarget
from vschema.model import Index


class TestRemapColumns:
    """Indexes follow renamed columns and disappear with dropped ones."""

    def test_renamed_column_rewritten(self):
        index = Index("by_email", "people", ("email",), unique=True)
        kept, dropped = remap_columns([index], {"email": "contact_email"})
        assert dropped == []
        assert kept == [Index("by_email", "people", ("contact_email",), unique=True)]

    def test_index_losing_a_column_is_dropped(self):
        index = Index("by_pair", "people", ("first", "last"))
        kept, dropped = remap_columns([index], {"first": "first"})
        assert kept == []
        assert dropped == [index]

    def test_where_is_not_rewritten(self):
        index = Index("partial", "people", ("email",), where="email IS NOT NULL")
        kept, _ = remap_columns([index], {"email": "mail"})
        assert kept[0].columns == ("mail",)
        assert kept[0].where == "email IS NOT NULL"

    def test_order_preserved(self):
        indexes = [Index("a", "t", ("x",)), Index("b", "t", ("y",)), Index("c", "t", ("z",))]
        kept, dropped = remap_columns(indexes, {"x": "x", "z": "z"})
        assert [i.name for i in kept] == ["a", "c"]
        assert [i.name for i in dropped] == ["b"]


class TestRetarget:
    """Table renames move their indexes along."""

    def test_only_matching_table_retargeted(self):
        on_people = Index("p", "people", ("name",))
        on_pets = Index("q", "pets", ("name",))
        result = retarget([on_people, on_pets], "people", "persons")
        assert result[0].table_name == "persons"
        assert result[1] is on_pets
