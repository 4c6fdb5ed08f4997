"""
Identity Reconciliation - consolidates contacts that share an email or phone number.

This package provides functionality to:
- Match incoming identifiers against stored contacts
- Merge overlapping clusters under their oldest primary contact
- Serve the reconciled identity over HTTP
"""

__version__ = "0.1.0"

from identity_reconciliation.config import get_config, Config
from identity_reconciliation.database import DatabaseConnection
from identity_reconciliation.service import IdentityService, IdentifyOutcome

__all__ = [
    "get_config",
    "Config",
    "DatabaseConnection",
    "IdentityService",
    "IdentifyOutcome",
]
