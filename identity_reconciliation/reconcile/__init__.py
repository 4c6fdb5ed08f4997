"""
Contact reconciliation core.

Resolves partial contact identifiers (email, phone number) into identity
clusters, each owned by a single primary contact.

Architecture Overview:
    request → normalizers → matching → primacy → writer → aggregate
                                 ↑          ↑         ↑
                                 └──── storage (ContactStore) ────┘

Key Design Decisions:
    1. The oldest contact in a cluster is its primary
    2. Secondaries always link directly to the primary
    3. A secondary is only added when it brings a new email or phone
    4. Storage is injected, so the core runs against SQLite or a fake
"""

from identity_reconciliation.reconcile.schema import create_schema, verify_schema, SCHEMA_VERSION
from identity_reconciliation.reconcile.models import (
    Contact,
    ContactAggregate,
    IdentifyRequest,
    LinkPrecedence,
    PRIMARY,
    SECONDARY,
)
from identity_reconciliation.reconcile.normalizers import normalize_identifier, build_request
from identity_reconciliation.reconcile.storage import ContactStore, SQLiteContactStore
from identity_reconciliation.reconcile.matching import find_matching_contacts, resolve_cluster
from identity_reconciliation.reconcile.primacy import (
    PrimacyDecision,
    arbitrate_primacy,
    select_true_primary,
)
from identity_reconciliation.reconcile.writer import has_new_information, record_new_information
from identity_reconciliation.reconcile.aggregate import build_aggregate
from identity_reconciliation.reconcile.identify import ReconcileResult, reconcile
from identity_reconciliation.reconcile.validation import validate_contacts, ValidationResult

__all__ = [
    # Schema
    "create_schema",
    "verify_schema",
    "SCHEMA_VERSION",
    # Models
    "Contact",
    "ContactAggregate",
    "IdentifyRequest",
    "LinkPrecedence",
    "PRIMARY",
    "SECONDARY",
    # Normalizers
    "normalize_identifier",
    "build_request",
    # Storage
    "ContactStore",
    "SQLiteContactStore",
    # Components
    "find_matching_contacts",
    "resolve_cluster",
    "PrimacyDecision",
    "arbitrate_primacy",
    "select_true_primary",
    "has_new_information",
    "record_new_information",
    "build_aggregate",
    # Flow
    "ReconcileResult",
    "reconcile",
    # Validation
    "validate_contacts",
    "ValidationResult",
]
