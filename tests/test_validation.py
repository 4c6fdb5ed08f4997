"""Tests for contact graph validation."""

from conftest import iso_at, seed_contact
from identity_reconciliation.reconcile.validation import (
    ValidationCheck,
    ValidationResult,
    check_date_formats,
    check_identifiers_present,
    check_precedence_consistency,
    check_secondaries_link_to_primaries,
    get_contact_counts,
    validate_contacts,
)


class TestChecks:
    """Tests for the individual checks."""

    def test_precedence_consistency(self, db):
        seed_contact(db.connection, email="a@x.com")
        assert check_precedence_consistency(db.connection).passed

        seed_contact(db.connection, email="b@x.com", link_precedence="secondary")
        check = check_precedence_consistency(db.connection)

        assert not check.passed
        assert "[2]" in check.details

    def test_primary_with_link_is_inconsistent(self, db):
        seed_contact(db.connection, email="a@x.com")
        seed_contact(db.connection, email="b@x.com", linked_id=1)

        assert not check_precedence_consistency(db.connection).passed

    def test_secondaries_link_to_primaries(self, db):
        seed_contact(db.connection, email="a@x.com")
        seed_contact(db.connection, email="b@x.com", linked_id=1, link_precedence="secondary")
        assert check_secondaries_link_to_primaries(db.connection).passed

    def test_chain_fails_linkage(self, db):
        seed_contact(db.connection, email="a@x.com")
        seed_contact(db.connection, email="b@x.com", linked_id=1, link_precedence="secondary")
        seed_contact(db.connection, email="c@x.com", linked_id=2, link_precedence="secondary")

        check = check_secondaries_link_to_primaries(db.connection)

        assert not check.passed
        assert "[3]" in check.details

    def test_link_to_deleted_primary_fails(self, db):
        seed_contact(db.connection, email="a@x.com", deleted_at=iso_at(5))
        seed_contact(db.connection, email="b@x.com", linked_id=1, link_precedence="secondary")

        assert not check_secondaries_link_to_primaries(db.connection).passed

    def test_identifiers_present(self, db):
        seed_contact(db.connection, email="a@x.com")
        assert check_identifiers_present(db.connection).passed

        seed_contact(db.connection)
        assert not check_identifiers_present(db.connection).passed

    def test_date_formats(self, db):
        seed_contact(db.connection, email="a@x.com")
        assert check_date_formats(db.connection).passed

        seed_contact(db.connection, email="b@x.com", created_at="yesterday")
        check = check_date_formats(db.connection)

        assert not check.passed
        assert check.message == "1 invalid dates"


class TestValidateContacts:
    """Tests for the full report."""

    def test_empty_database_passes(self, db):
        result = validate_contacts(db.connection)

        assert result.passed
        assert result.summary == "4/4 checks passed"

    def test_failure_is_reported(self, db):
        seed_contact(db.connection)

        result = validate_contacts(db.connection)

        assert not result.passed
        assert result.summary == "3/4 checks passed"
        assert "Some checks failed" in str(result)

    def test_to_dict(self):
        result = ValidationResult(
            passed=False,
            checks=[ValidationCheck(name="X", passed=False, message="bad", details="ids")],
            summary="0/1 checks passed",
        )

        assert result.to_dict() == {
            "passed": False,
            "summary": "0/1 checks passed",
            "checks": [{"name": "X", "passed": False, "message": "bad", "details": "ids"}],
        }


class TestGetContactCounts:
    """Tests for get_contact_counts."""

    def test_empty(self, db):
        assert get_contact_counts(db.connection) == {"primaries": 0, "secondaries": 0, "deleted": 0}

    def test_counts(self, db):
        seed_contact(db.connection, email="a@x.com")
        seed_contact(db.connection, email="b@x.com", linked_id=1, link_precedence="secondary")
        seed_contact(db.connection, email="c@x.com", deleted_at=iso_at(3))

        assert get_contact_counts(db.connection) == {"primaries": 1, "secondaries": 1, "deleted": 1}
