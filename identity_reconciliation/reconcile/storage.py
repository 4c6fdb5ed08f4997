"""
Storage interface for contacts, and its SQLite implementation.

The reconciliation core only talks to a ContactStore. Every query here has a
fixed, parameterized shape; id sets are bound as one JSON array and expanded
with json_each, so no SQL text is built from values.

Soft-deleted rows (deleted_at set) are invisible to every read.
"""

import json
import sqlite3
from contextlib import closing
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Protocol
import logging

from identity_reconciliation.reconcile.models import (
    Contact,
    LinkPrecedence,
    PRIMARY,
    SECONDARY,
)

logger = logging.getLogger(__name__)

_CONTACT_COLUMNS = (
    "id, email, phone_number, linked_id, link_precedence, created_at, updated_at, deleted_at"
)

_ORDER = "ORDER BY created_at ASC, id ASC"

# Matcher shapes, one per combination of supplied identifiers
_FIND_BY_EMAIL = f"""
    SELECT {_CONTACT_COLUMNS} FROM contact
    WHERE deleted_at IS NULL AND email = ?
    {_ORDER};
"""

_FIND_BY_PHONE = f"""
    SELECT {_CONTACT_COLUMNS} FROM contact
    WHERE deleted_at IS NULL AND phone_number = ?
    {_ORDER};
"""

_FIND_BY_EMAIL_OR_PHONE = f"""
    SELECT {_CONTACT_COLUMNS} FROM contact
    WHERE deleted_at IS NULL AND (email = ? OR phone_number = ?)
    {_ORDER};
"""

_GET_BY_ID = f"""
    SELECT {_CONTACT_COLUMNS} FROM contact
    WHERE deleted_at IS NULL AND id = ?;
"""

_GET_BY_IDS = f"""
    SELECT {_CONTACT_COLUMNS} FROM contact
    WHERE deleted_at IS NULL AND id IN (SELECT value FROM json_each(?))
    {_ORDER};
"""

_GET_CHILDREN = f"""
    SELECT {_CONTACT_COLUMNS} FROM contact
    WHERE deleted_at IS NULL AND linked_id = ?
    {_ORDER};
"""

_GET_CLUSTER = f"""
    SELECT {_CONTACT_COLUMNS} FROM contact
    WHERE deleted_at IS NULL AND (id = ? OR linked_id = ?)
    {_ORDER};
"""

_DEMOTE = """
    UPDATE contact
    SET link_precedence = 'secondary', linked_id = ?, updated_at = ?
    WHERE id = ?;
"""

_REPOINT = """
    UPDATE contact
    SET linked_id = ?, updated_at = ?
    WHERE linked_id = ?;
"""

_INSERT = """
    INSERT INTO contact
        (email, phone_number, linked_id, link_precedence, created_at, updated_at)
    VALUES (?, ?, ?, ?, ?, ?);
"""


def _now_iso() -> str:
    """Get current UTC timestamp in ISO-8601 format with microseconds."""
    return datetime.now(tz=timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def row_to_contact(row: sqlite3.Row) -> Contact:
    """Convert a contact row into a Contact."""
    return Contact(
        id=row["id"],
        email=row["email"],
        phone_number=row["phone_number"],
        linked_id=row["linked_id"],
        link_precedence=row["link_precedence"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        deleted_at=row["deleted_at"],
    )


class ContactStore(Protocol):
    """Operations the reconciliation core needs from storage."""

    def find_by_email_or_phone(
        self, email: Optional[str], phone_number: Optional[str]
    ) -> List[Contact]: ...

    def get_by_id(self, contact_id: int) -> Optional[Contact]: ...

    def get_by_ids(self, contact_ids: Iterable[int]) -> List[Contact]: ...

    def get_children(self, parent_id: int) -> List[Contact]: ...

    def get_cluster_by_primary_id(self, primary_id: int) -> List[Contact]: ...

    def demote(self, contact_id: int, new_linked_id: int) -> None: ...

    def repoint(self, old_linked_id: int, new_linked_id: int) -> int: ...

    def insert(
        self,
        email: Optional[str],
        phone_number: Optional[str],
        linked_id: Optional[int],
        link_precedence: LinkPrecedence,
    ) -> Contact: ...


class SQLiteContactStore:
    """
    ContactStore over a SQLite connection.

    The store never begins or commits transactions; the caller wraps a whole
    request in DatabaseConnection.transaction().
    """

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn

    def _fetch_all(self, query: str, parameters: tuple) -> List[Contact]:
        with closing(self.conn.cursor()) as cursor:
            cursor.execute(query, parameters)
            return [row_to_contact(row) for row in cursor.fetchall()]

    def find_by_email_or_phone(
        self, email: Optional[str], phone_number: Optional[str]
    ) -> List[Contact]:
        if email and phone_number:
            return self._fetch_all(_FIND_BY_EMAIL_OR_PHONE, (email, phone_number))
        if email:
            return self._fetch_all(_FIND_BY_EMAIL, (email,))
        if phone_number:
            return self._fetch_all(_FIND_BY_PHONE, (phone_number,))
        return []

    def get_by_id(self, contact_id: int) -> Optional[Contact]:
        with closing(self.conn.cursor()) as cursor:
            cursor.execute(_GET_BY_ID, (contact_id,))
            row = cursor.fetchone()
            return row_to_contact(row) if row else None

    def get_by_ids(self, contact_ids: Iterable[int]) -> List[Contact]:
        ids = sorted(set(contact_ids))
        if not ids:
            return []
        return self._fetch_all(_GET_BY_IDS, (json.dumps(ids),))

    def get_children(self, parent_id: int) -> List[Contact]:
        return self._fetch_all(_GET_CHILDREN, (parent_id,))

    def get_cluster_by_primary_id(self, primary_id: int) -> List[Contact]:
        return self._fetch_all(_GET_CLUSTER, (primary_id, primary_id))

    def demote(self, contact_id: int, new_linked_id: int) -> None:
        with closing(self.conn.cursor()) as cursor:
            cursor.execute(_DEMOTE, (new_linked_id, _now_iso(), contact_id))
        logger.debug(f"Demoted contact {contact_id} under {new_linked_id}")

    def repoint(self, old_linked_id: int, new_linked_id: int) -> int:
        with closing(self.conn.cursor()) as cursor:
            cursor.execute(_REPOINT, (new_linked_id, _now_iso(), old_linked_id))
            moved = cursor.rowcount
        logger.debug(f"Repointed {moved} contacts from {old_linked_id} to {new_linked_id}")
        return moved

    def insert(
        self,
        email: Optional[str],
        phone_number: Optional[str],
        linked_id: Optional[int],
        link_precedence: LinkPrecedence,
    ) -> Contact:
        if link_precedence not in (PRIMARY, SECONDARY):
            raise ValueError(f"Unknown link precedence: {link_precedence!r}")

        now = _now_iso()
        with closing(self.conn.cursor()) as cursor:
            cursor.execute(_INSERT, (email, phone_number, linked_id, link_precedence, now, now))
            new_id = cursor.lastrowid

        created = self.get_by_id(new_id)
        if created is None:
            raise sqlite3.DatabaseError(f"Inserted contact {new_id} could not be read back")
        return created
