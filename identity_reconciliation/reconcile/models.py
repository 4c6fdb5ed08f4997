"""
Data types shared by the reconciliation components.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Literal, Optional

# Type alias for link precedence values
LinkPrecedence = Literal["primary", "secondary"]

PRIMARY: LinkPrecedence = "primary"
SECONDARY: LinkPrecedence = "secondary"


@dataclass(frozen=True)
class Contact:
    """One row of the contact table."""

    id: int
    email: Optional[str]
    phone_number: Optional[str]
    linked_id: Optional[int]
    link_precedence: LinkPrecedence
    created_at: str
    updated_at: str
    deleted_at: Optional[str] = None

    @property
    def is_primary(self) -> bool:
        return self.link_precedence == PRIMARY

    @property
    def creation_key(self) -> tuple:
        """Sort key for creation order; id breaks timestamp ties."""
        return (self.created_at, self.id)


@dataclass(frozen=True)
class IdentifyRequest:
    """A request after trimming: at least one of the fields is set."""

    email: Optional[str]
    phone_number: Optional[str]


@dataclass
class ContactAggregate:
    """Caller-facing view of a cluster."""

    primary_contact_id: int
    emails: List[str] = field(default_factory=list)
    phone_numbers: List[str] = field(default_factory=list)
    secondary_contact_ids: List[int] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        """Serialise in the wire format: {"contact": {...}}."""
        return {
            "contact": {
                "primaryContactId": self.primary_contact_id,
                "emails": list(self.emails),
                "phoneNumbers": list(self.phone_numbers),
                "secondaryContactIds": list(self.secondary_contact_ids),
            }
        }


def sort_by_creation(contacts: List[Contact]) -> List[Contact]:
    """Return contacts ordered oldest first."""
    return sorted(contacts, key=lambda c: c.creation_key)
