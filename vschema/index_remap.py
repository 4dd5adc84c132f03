"""
Index remapping — keep indexes valid across table rebuilds and renames.

A rebuild drops the original table, and SQLite drops its indexes with it.
Every index on the table is therefore either recreated afterwards, with its
columns rewritten through the rebuild's old→new column map, or removed from
the snapshot when one of its columns no longer exists.

Partial-index predicates (``Index.where``) are raw SQL and are never
rewritten. A predicate naming a renamed or dropped column fails when the
index is recreated, which aborts the migration.
"""

import logging
from collections.abc import Iterable, Mapping

from vschema.model import Index

logger = logging.getLogger(__name__)


def remap_columns(
    indexes: Iterable[Index], column_map: Mapping[str, str]
) -> tuple[list[Index], list[Index]]:
    """
    Rewrite index columns through *column_map* (old name → new name).

    Columns absent from the map were dropped. Returns ``(kept, dropped)``:
    kept indexes have every column rewritten; dropped indexes lost at least
    one column and must not be recreated.
    """
    kept: list[Index] = []
    dropped: list[Index] = []
    for index in indexes:
        if all(column in column_map for column in index.columns):
            kept.append(Index(
                name=index.name,
                table_name=index.table_name,
                columns=tuple(column_map[column] for column in index.columns),
                unique=index.unique,
                where=index.where,
            ))
        else:
            missing = [c for c in index.columns if c not in column_map]
            logger.debug("index_remap: dropping index %s (lost columns %s)", index.name, missing)
            dropped.append(index)
    return kept, dropped


def retarget(indexes: Iterable[Index], from_table: str, to_table: str) -> list[Index]:
    """Point every index on *from_table* at *to_table*; other indexes pass through."""
    return [
        index.retargeted(to_table) if index.table_name == from_table else index
        for index in indexes
    ]
