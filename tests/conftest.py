"""
Pytest fixtures for Identity Reconciliation tests.

Fixture Categories:
    1. Database fixtures (schema-initialized contacts.db, open connections)
    2. Storage fixtures (SQLite-backed store, in-memory fake store)
    3. Seeding helpers for building clusters with chosen creation times

Design Notes:
    - Fixtures use tmp_path for isolation between tests
    - The fake store implements the same ContactStore operations so the
      reconciliation core can be tested without SQLite
"""

import logging
import sqlite3
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Optional

import pytest

from identity_reconciliation.config import Config
from identity_reconciliation.database import DatabaseConnection
from identity_reconciliation.reconcile.models import Contact, PRIMARY, SECONDARY, sort_by_creation
from identity_reconciliation.reconcile.schema import create_schema
from identity_reconciliation.reconcile.storage import SQLiteContactStore

BASE_TIME = datetime(2024, 1, 1, tzinfo=timezone.utc)


def iso_at(seconds: int) -> str:
    """Timestamp `seconds` after BASE_TIME in the stored format."""
    return (BASE_TIME + timedelta(seconds=seconds)).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def pytest_configure(config):
    config.addinivalue_line("markers", "property: Hypothesis property-based tests")
    config.addinivalue_line("markers", "integration: tests that use real threads and files")


# =============================================================================
# In-memory store
# =============================================================================


class InMemoryContactStore:
    """
    ContactStore kept in a dict.

    Timestamps advance one second per insert so creation order is
    unambiguous. Every mutating call is appended to `writes`.
    """

    def __init__(self):
        self.contacts: Dict[int, Contact] = {}
        self.writes: List[tuple] = []
        self._next_id = 1
        self._tick = 0

    def _now(self) -> str:
        self._tick += 1
        return iso_at(self._tick)

    def add(
        self,
        email: Optional[str] = None,
        phone_number: Optional[str] = None,
        linked_id: Optional[int] = None,
        link_precedence: str = PRIMARY,
        created_at: Optional[str] = None,
        deleted_at: Optional[str] = None,
    ) -> Contact:
        """Seed a contact without recording a write."""
        now = created_at or self._now()
        contact = Contact(
            id=self._next_id,
            email=email,
            phone_number=phone_number,
            linked_id=linked_id,
            link_precedence=link_precedence,
            created_at=now,
            updated_at=now,
            deleted_at=deleted_at,
        )
        self.contacts[contact.id] = contact
        self._next_id += 1
        return contact

    def _live(self) -> Iterable[Contact]:
        return (c for c in self.contacts.values() if c.deleted_at is None)

    def find_by_email_or_phone(self, email, phone_number):
        if not email and not phone_number:
            return []
        return sort_by_creation(
            [
                c
                for c in self._live()
                if (email and c.email == email) or (phone_number and c.phone_number == phone_number)
            ]
        )

    def get_by_id(self, contact_id):
        contact = self.contacts.get(contact_id)
        if contact is None or contact.deleted_at is not None:
            return None
        return contact

    def get_by_ids(self, contact_ids):
        wanted = set(contact_ids)
        return sort_by_creation([c for c in self._live() if c.id in wanted])

    def get_children(self, parent_id):
        return sort_by_creation([c for c in self._live() if c.linked_id == parent_id])

    def get_cluster_by_primary_id(self, primary_id):
        return sort_by_creation(
            [c for c in self._live() if c.id == primary_id or c.linked_id == primary_id]
        )

    def demote(self, contact_id, new_linked_id):
        self.writes.append(("demote", contact_id, new_linked_id))
        self.contacts[contact_id] = replace(
            self.contacts[contact_id],
            link_precedence=SECONDARY,
            linked_id=new_linked_id,
            updated_at=self._now(),
        )

    def repoint(self, old_linked_id, new_linked_id):
        self.writes.append(("repoint", old_linked_id, new_linked_id))
        moved = 0
        for contact in list(self.contacts.values()):
            if contact.linked_id == old_linked_id:
                self.contacts[contact.id] = replace(
                    contact, linked_id=new_linked_id, updated_at=self._now()
                )
                moved += 1
        return moved

    def insert(self, email, phone_number, linked_id, link_precedence):
        self.writes.append(("insert", email, phone_number, linked_id, link_precedence))
        return self.add(email, phone_number, linked_id, link_precedence)


@pytest.fixture
def fake_store() -> InMemoryContactStore:
    """Empty in-memory contact store."""
    return InMemoryContactStore()


@pytest.fixture
def restore_root_logger():
    """Put the root logger back the way pytest configured it."""
    root = logging.getLogger()
    handlers = list(root.handlers)
    level = root.level
    yield
    for handler in root.handlers:
        if handler not in handlers:
            handler.close()
    root.handlers = handlers
    root.setLevel(level)


# =============================================================================
# SQLite fixtures
# =============================================================================


@pytest.fixture
def contacts_db(tmp_path: Path) -> Path:
    """
    Create an empty contacts.db with schema.

    Returns:
        Path to the contacts database.
    """
    db_path = tmp_path / "contacts.db"
    create_schema(db_path)
    return db_path


@pytest.fixture
def config(contacts_db: Path) -> Config:
    """Config pointing at the temporary contacts database."""
    return Config(
        db_path=str(contacts_db),
        max_attempts=3,
        busy_timeout_ms=5000,
        transaction_mode="IMMEDIATE",
        journal_mode="WAL",
    )


@pytest.fixture
def db(config: Config):
    """Open DatabaseConnection on the temporary database."""
    with DatabaseConnection(config) as connection:
        yield connection


@pytest.fixture
def sqlite_store(db: DatabaseConnection) -> SQLiteContactStore:
    """SQLite-backed store in autocommit mode (each statement commits)."""
    return SQLiteContactStore(db.connection)


def seed_contact(
    conn: sqlite3.Connection,
    email: Optional[str] = None,
    phone_number: Optional[str] = None,
    linked_id: Optional[int] = None,
    link_precedence: str = PRIMARY,
    created_at: Optional[str] = None,
    deleted_at: Optional[str] = None,
) -> int:
    """Insert a contact row directly and return its id."""
    created_at = created_at or iso_at(0)
    cursor = conn.execute(
        """INSERT INTO contact
           (email, phone_number, linked_id, link_precedence, created_at, updated_at, deleted_at)
           VALUES (?, ?, ?, ?, ?, ?, ?)""",
        (email, phone_number, linked_id, link_precedence, created_at, created_at, deleted_at),
    )
    return cursor.lastrowid


def fetch_contact_rows(conn: sqlite3.Connection) -> List[tuple]:
    """All rows as (id, email, phone, linked_id, precedence), by id."""
    return [
        tuple(row)
        for row in conn.execute(
            "SELECT id, email, phone_number, linked_id, link_precedence FROM contact ORDER BY id"
        ).fetchall()
    ]
