"""
The reconciliation flow for one identify request.

Steps:
    1. Match contacts by email or phone
    2. No match: create a new primary and answer with it alone
    3. Resolve the full cluster of the matches
    4. Keep the oldest primary, demote the rest
    5. Add a secondary if the request carries a new identifier
    6. Re-read the cluster and build the aggregate

Every step goes through the injected ContactStore. The caller owns the
transaction; this module never commits.
"""

from dataclasses import dataclass, field
from typing import List
import logging

from identity_reconciliation.reconcile.aggregate import build_aggregate
from identity_reconciliation.reconcile.matching import find_matching_contacts, resolve_cluster
from identity_reconciliation.reconcile.models import (
    ContactAggregate,
    IdentifyRequest,
    PRIMARY,
)
from identity_reconciliation.reconcile.primacy import arbitrate_primacy
from identity_reconciliation.reconcile.storage import ContactStore
from identity_reconciliation.reconcile.writer import record_new_information

logger = logging.getLogger(__name__)


@dataclass
class ReconcileResult:
    """Aggregate plus a record of what the request changed."""

    aggregate: ContactAggregate
    created_ids: List[int] = field(default_factory=list)
    demoted_ids: List[int] = field(default_factory=list)


def reconcile(store: ContactStore, request: IdentifyRequest) -> ReconcileResult:
    """
    Resolve a request to its cluster, creating or merging contacts as needed.

    Args:
        store: Contact storage, inside the request's transaction.
        request: Normalized request with at least one identifier.

    Returns:
        ReconcileResult for the request.
    """
    email, phone_number = request.email, request.phone_number

    matches = find_matching_contacts(store, email, phone_number)
    if not matches:
        created = store.insert(email, phone_number, None, PRIMARY)
        logger.info(f"Created primary contact {created.id}")
        return ReconcileResult(aggregate=build_aggregate([created]), created_ids=[created.id])

    cluster = resolve_cluster(store, matches)
    decision = arbitrate_primacy(store, cluster)
    primary_id = decision.primary.id

    created = record_new_information(store, primary_id, email, phone_number)

    final_cluster = store.get_cluster_by_primary_id(primary_id)
    return ReconcileResult(
        aggregate=build_aggregate(final_cluster),
        created_ids=[created.id] if created is not None else [],
        demoted_ids=list(decision.demoted_ids),
    )
