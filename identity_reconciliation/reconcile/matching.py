"""
Locating contacts and expanding them into clusters.

Resolution Strategy:
    1. Exact match on the trimmed email or phone number
    2. Expand the matches along linked_id in both directions until no new
       contact turns up
    3. Re-read the whole cluster in one query for a consistent snapshot

The expansion does not assume clusters are two levels deep: a merge in
progress, or older data, may leave secondaries linked to secondaries.
"""

from typing import Iterable, List, Optional, Set
import logging

from identity_reconciliation.reconcile.models import Contact
from identity_reconciliation.reconcile.storage import ContactStore

logger = logging.getLogger(__name__)


def find_matching_contacts(
    store: ContactStore,
    email: Optional[str],
    phone_number: Optional[str],
) -> List[Contact]:
    """
    Find contacts that share the email or the phone number.

    Args:
        store: Contact storage.
        email: Trimmed email, or None.
        phone_number: Trimmed phone number, or None.

    Returns:
        Matching contacts, oldest first. Empty if neither identifier is given.
    """
    if not email and not phone_number:
        return []

    matches = store.find_by_email_or_phone(email, phone_number)
    logger.debug(f"Matched {len(matches)} contacts for email={email!r} phone={phone_number!r}")
    return matches


def resolve_cluster(store: ContactStore, seeds: Iterable[Contact]) -> List[Contact]:
    """
    Compute every contact reachable from the seeds through linked_id.

    Walks an explicit stack with a visited-id set: for each contact, its
    parent (linked_id) and its children (contacts linked to it) are pushed
    unless already visited. The walk ends once the stack is empty; acyclic
    linkage keeps it finite, and the visited set stops it even if a cycle
    were present.

    Args:
        store: Contact storage.
        seeds: Contacts to start from; must not be empty.

    Returns:
        The full cluster, freshly read and ordered oldest first.
    """
    visited: Set[int] = set()
    stack: List[Contact] = list(seeds)

    if not stack:
        raise ValueError("resolve_cluster needs at least one seed contact")

    while stack:
        contact = stack.pop()
        if contact.id in visited:
            continue
        visited.add(contact.id)

        if contact.linked_id is not None and contact.linked_id not in visited:
            parent = store.get_by_id(contact.linked_id)
            if parent is not None:
                stack.append(parent)

        for child in store.get_children(contact.id):
            if child.id not in visited:
                stack.append(child)

    cluster = store.get_by_ids(visited)
    logger.debug(f"Resolved cluster of {len(cluster)} contacts: {[c.id for c in cluster]}")
    return cluster
