"""
Choosing a single primary for a resolved cluster.

When one request links contacts from previously separate clusters, the
merged cluster briefly holds several primaries. The oldest one (creation
time, then id) stays primary; every other primary is demoted to a secondary
of it, and whatever was linked to a demoted primary is relinked to the
survivor so that every secondary points straight at the primary.
"""

from dataclasses import dataclass, field
from typing import List, Sequence, Set
import logging

from identity_reconciliation.errors import InvariantViolation
from identity_reconciliation.reconcile.models import Contact, sort_by_creation
from identity_reconciliation.reconcile.storage import ContactStore

logger = logging.getLogger(__name__)


@dataclass
class PrimacyDecision:
    """Outcome of arbitration for one cluster."""

    primary: Contact
    demoted_ids: List[int] = field(default_factory=list)
    relinked_from_ids: List[int] = field(default_factory=list)

    @property
    def merged(self) -> bool:
        """True when two or more clusters were folded into one."""
        return bool(self.demoted_ids)


def select_true_primary(cluster: Sequence[Contact]) -> Contact:
    """
    Pick the oldest primary in a cluster.

    Raises:
        InvariantViolation: If the cluster has no primary at all.
    """
    primaries = [c for c in cluster if c.is_primary]
    if not primaries:
        raise InvariantViolation(
            "Resolved cluster has no primary contact",
            contact_ids=[c.id for c in cluster],
        )
    return min(primaries, key=lambda c: c.creation_key)


def arbitrate_primacy(store: ContactStore, cluster: Sequence[Contact]) -> PrimacyDecision:
    """
    Make the oldest primary the only primary of the cluster.

    Each newer primary is demoted under the true primary and its dependents
    are repointed in the same step, before the next one is handled. Any
    secondary still linked to something other than the true primary (a
    chain) has its link target's dependents repointed as well.

    Args:
        store: Contact storage, inside the request's transaction.
        cluster: The full resolved cluster.

    Returns:
        PrimacyDecision naming the surviving primary and what changed.
    """
    true_primary = select_true_primary(cluster)
    decision = PrimacyDecision(primary=true_primary)

    others = sort_by_creation(
        [c for c in cluster if c.is_primary and c.id != true_primary.id]
    )
    for demoted in others:
        store.demote(demoted.id, true_primary.id)
        moved = store.repoint(demoted.id, true_primary.id)
        decision.demoted_ids.append(demoted.id)
        logger.info(
            f"Merged cluster {demoted.id} into {true_primary.id} "
            f"({moved} dependents repointed)"
        )

    handled: Set[int] = {true_primary.id, *decision.demoted_ids}
    for contact in cluster:
        if contact.is_primary:
            continue
        if contact.linked_id is None:
            # A secondary with no owner; attach it directly
            store.demote(contact.id, true_primary.id)
            decision.relinked_from_ids.append(contact.id)
        elif contact.linked_id not in handled:
            store.repoint(contact.linked_id, true_primary.id)
            handled.add(contact.linked_id)
            decision.relinked_from_ids.append(contact.linked_id)

    if decision.relinked_from_ids:
        logger.warning(
            f"Flattened linkage chains in cluster {true_primary.id}: "
            f"{decision.relinked_from_ids}"
        )

    return decision
