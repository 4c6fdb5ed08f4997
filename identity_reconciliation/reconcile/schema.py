"""
Schema definitions for the contacts database.

Design Decisions:
    1. One table holds every contact; clusters are derived, never stored
    2. linked_id is a self-referential foreign key (NULL for primaries)
    3. Timestamps are ISO-8601 TEXT with microseconds so creation order is
       visible in the column itself; id breaks ties
    4. Rows are soft-deleted through deleted_at and never removed
    5. schema_meta records the schema version
"""

import sqlite3
from pathlib import Path
from typing import List
import logging

logger = logging.getLogger(__name__)

# Schema version for migration tracking
SCHEMA_VERSION = "1.0.0"

CONTACT_TABLE = "contact"

SCHEMA_DDL = """
-- =============================================================================
-- contact: every known identifier set, primary or secondary
-- =============================================================================
-- A primary has linked_id NULL. A secondary's linked_id names its primary.
--
CREATE TABLE IF NOT EXISTS contact (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    phone_number TEXT,
    email TEXT,
    linked_id INTEGER REFERENCES contact(id),
    link_precedence TEXT NOT NULL CHECK (link_precedence IN ('primary', 'secondary')),
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    deleted_at TEXT
);

CREATE INDEX IF NOT EXISTS idx_contact_email
    ON contact(email);

CREATE INDEX IF NOT EXISTS idx_contact_phone_number
    ON contact(phone_number);

CREATE INDEX IF NOT EXISTS idx_contact_linked_id
    ON contact(linked_id);

-- =============================================================================
-- schema_meta: key/value metadata
-- =============================================================================
CREATE TABLE IF NOT EXISTS schema_meta (
    key TEXT PRIMARY KEY,
    value TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

INSERT OR REPLACE INTO schema_meta (key, value, updated_at)
VALUES ('schema_version', '{schema_version}', datetime('now'));
""".format(
    schema_version=SCHEMA_VERSION
)

REQUIRED_TABLES = frozenset({CONTACT_TABLE, "schema_meta"})


def create_schema(db_path: Path) -> None:
    """
    Create the contacts schema if it doesn't exist.

    Idempotent. The parent directory is created if needed.

    Args:
        db_path: Path to the contacts database file.

    Raises:
        sqlite3.Error: If schema creation fails.
    """
    db_path.parent.mkdir(parents=True, exist_ok=True)

    logger.info(f"Creating/verifying schema at: {db_path}")

    conn = sqlite3.connect(str(db_path))
    try:
        conn.execute("PRAGMA foreign_keys = ON;")
        conn.executescript(SCHEMA_DDL)
        conn.commit()

        logger.info(f"Schema created/verified successfully (version {SCHEMA_VERSION})")
    except sqlite3.Error as e:
        logger.error(f"Schema creation failed: {e}")
        raise
    finally:
        conn.close()


def get_table_names(db_path: Path) -> List[str]:
    """Get all table names in the contacts database."""
    conn = sqlite3.connect(str(db_path))
    try:
        cursor = conn.execute("SELECT name FROM sqlite_master WHERE type='table' ORDER BY name;")
        return [row[0] for row in cursor.fetchall()]
    finally:
        conn.close()


def verify_schema(db_path: Path) -> bool:
    """
    Verify that the schema exists and has all required tables.

    Returns:
        True if schema is valid, False otherwise.
    """
    if not db_path.exists():
        return False

    existing_tables = set(get_table_names(db_path))
    return REQUIRED_TABLES.issubset(existing_tables)
