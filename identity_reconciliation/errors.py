"""
Exception types raised by the reconciliation core and its storage layer.

The HTTP layer maps these onto responses: ValidationError is a client error,
StorageError and InvariantViolation are server errors.
"""

from typing import Optional


class ReconciliationError(Exception):
    """Base class for every error raised by this package."""


class ValidationError(ReconciliationError, ValueError):
    """The request carries neither an email nor a phone number."""


class StorageError(ReconciliationError):
    """
    A storage operation failed and the unit of work was rolled back.

    Attributes:
        attempts: How many times the transaction was run before giving up.
        transient: True when the final failure was a lock/serialization conflict.
    """

    def __init__(self, message: str, *, attempts: int = 1, transient: bool = False):
        super().__init__(message)
        self.attempts = attempts
        self.transient = transient


class InvariantViolation(ReconciliationError):
    """
    The stored contact graph broke a cluster invariant.

    Raised when a resolved cluster has no primary, or a final cluster does
    not have exactly one. Indicates a logic or data-corruption bug.
    """

    def __init__(self, message: str, *, contact_ids: Optional[list] = None):
        super().__init__(message)
        self.contact_ids = list(contact_ids or [])
