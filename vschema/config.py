"""
Centralized configuration for vschema.

Values that vary by deployment belong here.
Override via environment variables where marked.
"""

import os

from pydantic import BaseModel

# ============================================================
# Version bookkeeping
# ============================================================

VERSION_TABLE: str = os.environ.get("VSCHEMA_VERSION_TABLE", "_vschema_versions")
"""Table holding per-identifier version numbers. Schemas without an identifier use PRAGMA user_version."""

# ============================================================
# Table rebuilds
# ============================================================

REBUILD_PREFIX: str = os.environ.get("VSCHEMA_REBUILD_PREFIX", "_vschema_rebuild_")
"""Prefix of the temporary table a rebuild copies rows into before renaming it into place."""

CHECK_FOREIGN_KEYS: bool = os.environ.get("VSCHEMA_CHECK_FOREIGN_KEYS", "1").lower() not in (
    "0",
    "false",
    "no",
)
"""Run PRAGMA foreign_key_check after every rebuild and fail the migration on violations."""


class MigrationOptions(BaseModel):
    """Per-call switches for Schema.migrate()."""

    model_config = {"frozen": True}

    reset_unknown_versions: bool = False
    check_foreign_keys: bool = CHECK_FOREIGN_KEYS
