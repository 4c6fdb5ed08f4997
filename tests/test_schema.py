"""Tests for the contacts schema."""

import sqlite3
from pathlib import Path

import pytest

from identity_reconciliation.reconcile.schema import (
    SCHEMA_VERSION,
    create_schema,
    get_table_names,
    verify_schema,
)


class TestCreateSchema:
    """Tests for create_schema."""

    def test_creates_tables(self, tmp_path: Path):
        db_path = tmp_path / "nested" / "contacts.db"

        create_schema(db_path)

        tables = get_table_names(db_path)
        assert "contact" in tables
        assert "schema_meta" in tables

    def test_is_idempotent(self, contacts_db: Path):
        create_schema(contacts_db)
        create_schema(contacts_db)
        assert verify_schema(contacts_db)

    def test_records_version(self, contacts_db: Path):
        conn = sqlite3.connect(str(contacts_db))
        try:
            row = conn.execute(
                "SELECT value FROM schema_meta WHERE key = 'schema_version'"
            ).fetchone()
        finally:
            conn.close()
        assert row[0] == SCHEMA_VERSION

    def test_creates_lookup_indexes(self, contacts_db: Path):
        conn = sqlite3.connect(str(contacts_db))
        try:
            indexes = {
                row[0]
                for row in conn.execute("SELECT name FROM sqlite_master WHERE type = 'index'")
            }
        finally:
            conn.close()
        assert {"idx_contact_email", "idx_contact_phone_number", "idx_contact_linked_id"} <= indexes

    def test_rejects_unknown_precedence(self, contacts_db: Path):
        conn = sqlite3.connect(str(contacts_db))
        try:
            with pytest.raises(sqlite3.IntegrityError):
                conn.execute(
                    "INSERT INTO contact (email, link_precedence, created_at, updated_at) "
                    "VALUES ('a@x.com', 'tertiary', 'x', 'x')"
                )
        finally:
            conn.close()


class TestVerifySchema:
    """Tests for verify_schema."""

    def test_missing_file(self, tmp_path: Path):
        assert verify_schema(tmp_path / "absent.db") is False

    def test_empty_database(self, tmp_path: Path):
        db_path = tmp_path / "empty.db"
        sqlite3.connect(str(db_path)).close()
        assert verify_schema(db_path) is False

    def test_valid(self, contacts_db: Path):
        assert verify_schema(contacts_db) is True
