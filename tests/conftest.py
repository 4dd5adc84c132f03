"""
Test configuration — ensures repo root is in sys.path + database fixtures.

Every test gets its own file-backed SQLite database under tmp_path; nothing
is shared between tests.
"""

import sqlite3
import sys
from pathlib import Path

import pytest

# Add repo root to sys.path so tests can import vschema.*
REPO_ROOT = Path(__file__).parent.parent
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))


@pytest.fixture
def db_path(tmp_path) -> Path:
    """Path of a fresh, not-yet-created database file."""
    return tmp_path / "test.db"


@pytest.fixture
def db(db_path):
    """Open connection with foreign keys enforced, as applications use it."""
    conn = sqlite3.connect(str(db_path))
    conn.execute("PRAGMA foreign_keys=ON")
    yield conn
    conn.close()
