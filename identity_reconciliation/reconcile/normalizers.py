"""
Input normalization for identify requests.

Design Decisions:
    1. Identifiers are only trimmed; case, formatting and country codes are
       kept exactly as the caller sent them
    2. Phone numbers may arrive as numbers and are coerced to strings
    3. Blank values are treated as absent
"""

from typing import Optional, Union

from identity_reconciliation.errors import ValidationError
from identity_reconciliation.reconcile.models import IdentifyRequest

RawIdentifier = Union[str, int, float, None]


def normalize_identifier(raw: RawIdentifier) -> Optional[str]:
    """
    Trim an identifier, turning blanks into None.

    Args:
        raw: Value from the request body.

    Returns:
        The trimmed string, or None when nothing is left.

    Examples:
        >>> normalize_identifier("  a@x.com ")
        'a@x.com'
        >>> normalize_identifier(5551234)
        '5551234'
        >>> normalize_identifier("   ") is None
        True
    """
    if raw is None or isinstance(raw, bool):
        return None

    if isinstance(raw, float) and raw.is_integer():
        raw = int(raw)

    trimmed = str(raw).strip()
    return trimmed or None


def build_request(email: RawIdentifier, phone_number: RawIdentifier) -> IdentifyRequest:
    """
    Normalize both identifiers and check that at least one remains.

    Raises:
        ValidationError: If neither identifier is present after trimming.
    """
    request = IdentifyRequest(
        email=normalize_identifier(email),
        phone_number=normalize_identifier(phone_number),
    )
    if request.email is None and request.phone_number is None:
        raise ValidationError("At least one of email or phoneNumber is required")
    return request
