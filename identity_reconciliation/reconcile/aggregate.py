"""
Projecting a cluster into the response the caller sees.
"""

from typing import Iterable, List, Optional, Sequence

from identity_reconciliation.errors import InvariantViolation
from identity_reconciliation.reconcile.models import Contact, ContactAggregate


def _unique_in_order(values: Iterable[Optional[str]]) -> List[str]:
    """Drop nulls and repeats, keeping the first occurrence of each value."""
    seen = set()
    result = []
    for value in values:
        if value and value not in seen:
            seen.add(value)
            result.append(value)
    return result


def build_aggregate(cluster: Sequence[Contact]) -> ContactAggregate:
    """
    Build the aggregate view of a final cluster.

    The primary's own email and phone come first, followed by the
    secondaries' values in cluster order with repeats dropped.

    Args:
        cluster: The cluster, ordered oldest first.

    Returns:
        ContactAggregate for the cluster.

    Raises:
        InvariantViolation: If the cluster does not have exactly one primary.
    """
    primaries = [c for c in cluster if c.is_primary]
    if len(primaries) != 1:
        raise InvariantViolation(
            f"Expected exactly one primary in cluster, found {len(primaries)}",
            contact_ids=[c.id for c in cluster],
        )

    primary = primaries[0]
    secondaries = [c for c in cluster if not c.is_primary]

    return ContactAggregate(
        primary_contact_id=primary.id,
        emails=_unique_in_order([primary.email] + [c.email for c in secondaries]),
        phone_numbers=_unique_in_order(
            [primary.phone_number] + [c.phone_number for c in secondaries]
        ),
        secondary_contact_ids=[c.id for c in secondaries],
    )
