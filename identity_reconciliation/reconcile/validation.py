"""
Contact graph validation.

Checks that the stored contacts satisfy the cluster invariants. Run from the
CLI (`validate`) or the /diagnostics endpoint.

Validation Checks:
    1. Precedence and linkage agree (primaries unlinked, secondaries linked)
    2. Secondaries link directly to a live primary (no chains, no dangling links)
    3. Every contact carries at least one identifier
    4. Creation timestamps are ISO-8601
"""

import sqlite3
from contextlib import closing
from dataclasses import dataclass, field
from typing import List, Optional
import logging

logger = logging.getLogger(__name__)


@dataclass
class ValidationCheck:
    """Result of a single validation check."""

    name: str
    passed: bool
    message: str
    details: Optional[str] = None

    def to_dict(self) -> dict:
        return {
            "name": self.name,
            "passed": self.passed,
            "message": self.message,
            "details": self.details,
        }


@dataclass
class ValidationResult:
    """Result of all validation checks."""

    passed: bool
    checks: List[ValidationCheck] = field(default_factory=list)
    summary: str = ""

    def __str__(self) -> str:
        lines = []
        for check in self.checks:
            icon = "✓" if check.passed else "✗"
            lines.append(f"{icon} {check.name}: {check.message}")
            if check.details and not check.passed:
                lines.append(f"  → {check.details}")

        status = "All checks passed" if self.passed else "Some checks failed"
        lines.append(f"\n{status}.")
        return "\n".join(lines)

    def to_dict(self) -> dict:
        return {
            "passed": self.passed,
            "summary": self.summary,
            "checks": [c.to_dict() for c in self.checks],
        }


def _sample_ids(conn: sqlite3.Connection, query: str, limit: int = 10) -> List[int]:
    with closing(conn.cursor()) as cursor:
        cursor.execute(query)
        return [row[0] for row in cursor.fetchall()][:limit]


def check_precedence_consistency(conn: sqlite3.Connection) -> ValidationCheck:
    """Verify primaries have no link and secondaries have one."""
    bad = _sample_ids(
        conn,
        """
        SELECT id FROM contact
        WHERE deleted_at IS NULL
        AND ((link_precedence = 'primary' AND linked_id IS NOT NULL)
          OR (link_precedence = 'secondary' AND linked_id IS NULL))
        ORDER BY id;
        """,
    )
    passed = not bad
    return ValidationCheck(
        name="Precedence consistency",
        passed=passed,
        message="Primaries unlinked, secondaries linked" if passed else f"{len(bad)}+ inconsistent contacts",
        details=f"Contact ids: {bad}" if not passed else None,
    )


def check_secondaries_link_to_primaries(conn: sqlite3.Connection) -> ValidationCheck:
    """Verify every secondary's linked_id names a live primary."""
    bad = _sample_ids(
        conn,
        """
        SELECT s.id FROM contact s
        LEFT JOIN contact p ON p.id = s.linked_id AND p.deleted_at IS NULL
        WHERE s.deleted_at IS NULL
        AND s.linked_id IS NOT NULL
        AND (p.id IS NULL OR p.link_precedence != 'primary')
        ORDER BY s.id;
        """,
    )
    passed = not bad
    return ValidationCheck(
        name="One-hop linkage",
        passed=passed,
        message="All secondaries link to a primary" if passed else f"{len(bad)}+ broken links",
        details=f"Secondaries linked to a non-primary or missing contact: {bad}" if not passed else None,
    )


def check_identifiers_present(conn: sqlite3.Connection) -> ValidationCheck:
    """Verify no contact is missing both email and phone number."""
    bad = _sample_ids(
        conn,
        """
        SELECT id FROM contact
        WHERE deleted_at IS NULL AND email IS NULL AND phone_number IS NULL
        ORDER BY id;
        """,
    )
    passed = not bad
    return ValidationCheck(
        name="Identifiers present",
        passed=passed,
        message="Every contact has an email or phone" if passed else f"{len(bad)}+ empty contacts",
        details=f"Contact ids: {bad}" if not passed else None,
    )


def check_date_formats(conn: sqlite3.Connection) -> ValidationCheck:
    """Verify created_at values are ISO-8601."""
    with closing(conn.cursor()) as cursor:
        cursor.execute(
            """
            SELECT COUNT(*) FROM contact
            WHERE created_at NOT GLOB '[0-9][0-9][0-9][0-9]-[0-9][0-9]-[0-9][0-9]T*';
            """
        )
        invalid_count = cursor.fetchone()[0]

    passed = invalid_count == 0
    return ValidationCheck(
        name="Date formats",
        passed=passed,
        message="All dates valid" if passed else f"{invalid_count} invalid dates",
    )


def get_contact_counts(conn: sqlite3.Connection) -> dict:
    """Count live primaries and secondaries, and soft-deleted rows."""
    with closing(conn.cursor()) as cursor:
        cursor.execute(
            """
            SELECT
                SUM(CASE WHEN deleted_at IS NULL AND link_precedence = 'primary' THEN 1 ELSE 0 END),
                SUM(CASE WHEN deleted_at IS NULL AND link_precedence = 'secondary' THEN 1 ELSE 0 END),
                SUM(CASE WHEN deleted_at IS NOT NULL THEN 1 ELSE 0 END)
            FROM contact;
            """
        )
        primaries, secondaries, deleted = cursor.fetchone()

    return {
        "primaries": primaries or 0,
        "secondaries": secondaries or 0,
        "deleted": deleted or 0,
    }


def validate_contacts(conn: sqlite3.Connection) -> ValidationResult:
    """
    Run all validation checks against the contacts database.

    Args:
        conn: Open connection to the contacts database.

    Returns:
        ValidationResult with all check results.
    """
    checks = [
        check_precedence_consistency(conn),
        check_secondaries_link_to_primaries(conn),
        check_identifiers_present(conn),
        check_date_formats(conn),
    ]

    passed_count = sum(1 for c in checks if c.passed)
    result = ValidationResult(
        passed=passed_count == len(checks),
        checks=checks,
        summary=f"{passed_count}/{len(checks)} checks passed",
    )

    logger.info(f"Validation complete: {result.summary}")
    return result
