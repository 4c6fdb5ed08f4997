"""
Recording new identifiers against an existing cluster.
"""

from typing import Optional, Sequence, Set, Tuple
import logging

from identity_reconciliation.reconcile.models import Contact, SECONDARY
from identity_reconciliation.reconcile.storage import ContactStore

logger = logging.getLogger(__name__)


def known_identifiers(cluster: Sequence[Contact]) -> Tuple[Set[str], Set[str]]:
    """Collect the distinct non-null emails and phone numbers of a cluster."""
    emails = {c.email for c in cluster if c.email}
    phones = {c.phone_number for c in cluster if c.phone_number}
    return emails, phones


def has_new_information(
    cluster: Sequence[Contact],
    email: Optional[str],
    phone_number: Optional[str],
) -> bool:
    """
    Tell whether the request adds an email or phone the cluster lacks.

    Examples:
        A cluster holding a@x.com and 555 gains nothing from
        (a@x.com, None), (None, 555) or (a@x.com, 555), but does from
        (b@x.com, 555).
    """
    emails, phones = known_identifiers(cluster)
    return bool(
        (email and email not in emails) or (phone_number and phone_number not in phones)
    )


def record_new_information(
    store: ContactStore,
    primary_id: int,
    email: Optional[str],
    phone_number: Optional[str],
) -> Optional[Contact]:
    """
    Add a secondary contact when the request carries a new identifier.

    The cluster is re-read by primary id so the check sees any demotions
    made earlier in the same transaction.

    Args:
        store: Contact storage, inside the request's transaction.
        primary_id: Id of the cluster's primary.
        email: Trimmed email, or None.
        phone_number: Trimmed phone number, or None.

    Returns:
        The new secondary contact, or None if nothing was written.
    """
    cluster = store.get_cluster_by_primary_id(primary_id)
    if not has_new_information(cluster, email, phone_number):
        return None

    created = store.insert(email, phone_number, primary_id, SECONDARY)
    logger.info(f"Added secondary contact {created.id} to cluster {primary_id}")
    return created
