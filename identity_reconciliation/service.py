"""
Identify service: one request, one transaction.

Wraps the reconciliation core in a database transaction so that matching,
cluster resolution, demotion and insertion either all commit or all roll
back. SQLite reports read-then-write conflicts between concurrent requests
as SQLITE_BUSY/SQLITE_LOCKED; when that happens the transaction is rolled
back and the whole request is run again from the start, up to the
configured number of attempts.
"""

import random
import sqlite3
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, List, Optional
import logging

from identity_reconciliation.database import DatabaseConnection, is_transient_error
from identity_reconciliation.errors import StorageError
from identity_reconciliation.reconcile.identify import reconcile
from identity_reconciliation.reconcile.models import ContactAggregate
from identity_reconciliation.reconcile.normalizers import RawIdentifier, build_request
from identity_reconciliation.reconcile.storage import ContactStore, SQLiteContactStore

logger = logging.getLogger(__name__)

# Seconds to wait before retry n is n * RETRY_BACKOFF_SECONDS plus up to one
# RETRY_BACKOFF_SECONDS of jitter
RETRY_BACKOFF_SECONDS = 0.02


@dataclass
class IdentifyOutcome:
    """Result of one identify call."""

    aggregate: ContactAggregate
    created_ids: List[int] = field(default_factory=list)
    demoted_ids: List[int] = field(default_factory=list)
    attempts: int = 1
    duration_seconds: float = 0.0

    def __str__(self) -> str:
        if self.demoted_ids:
            action = f"merged {self.demoted_ids}"
        elif self.created_ids:
            action = f"created {self.created_ids}"
        else:
            action = "lookup"
        return (
            f"Identify primary={self.aggregate.primary_contact_id} ({action})\n"
            f"  Emails: {self.aggregate.emails}\n"
            f"  Phones: {self.aggregate.phone_numbers}\n"
            f"  Secondaries: {self.aggregate.secondary_contact_ids}\n"
            f"  Attempts: {self.attempts}, Duration: {self.duration_seconds:.3f}s"
        )


class IdentityService:
    """
    Runs identify requests against one database connection.

    The connection is injected; the service never opens or closes it.
    """

    def __init__(
        self,
        db: DatabaseConnection,
        *,
        max_attempts: Optional[int] = None,
        retry_backoff: float = RETRY_BACKOFF_SECONDS,
        store_factory: Callable[[sqlite3.Connection], ContactStore] = SQLiteContactStore,
    ):
        self.db = db
        self.max_attempts = max_attempts or db.config.max_attempts
        self.retry_backoff = retry_backoff
        self.store_factory = store_factory

    def identify(
        self,
        email: RawIdentifier = None,
        phone_number: RawIdentifier = None,
    ) -> IdentifyOutcome:
        """
        Resolve identifiers to their cluster, creating or merging as needed.

        Args:
            email: Email from the request (trimmed here).
            phone_number: Phone number as string or number (trimmed here).

        Returns:
            IdentifyOutcome with the aggregate and what changed.

        Raises:
            ValidationError: If neither identifier is present.
            StorageError: If storage fails, or conflicts persist past max_attempts.
            InvariantViolation: If the stored graph breaks cluster invariants.
        """
        request = build_request(email, phone_number)
        start_time = datetime.now()

        for attempt in range(1, self.max_attempts + 1):
            try:
                with self.db.transaction() as conn:
                    result = reconcile(self.store_factory(conn), request)
            except sqlite3.Error as e:
                transient = is_transient_error(e)
                if transient and attempt < self.max_attempts:
                    logger.warning(
                        f"Conflict on attempt {attempt}/{self.max_attempts}, retrying: {e}"
                    )
                    time.sleep(self.retry_backoff * attempt + random.uniform(0, self.retry_backoff))
                    continue
                logger.error(f"Identify failed after {attempt} attempt(s): {e}")
                raise StorageError(
                    f"Storage operation failed: {e}", attempts=attempt, transient=transient
                ) from e

            duration = (datetime.now() - start_time).total_seconds()
            outcome = IdentifyOutcome(
                aggregate=result.aggregate,
                created_ids=result.created_ids,
                demoted_ids=result.demoted_ids,
                attempts=attempt,
                duration_seconds=duration,
            )
            logger.debug(str(outcome))
            return outcome

        # Loop always returns or raises; max_attempts is at least 1
        raise StorageError("Identify was not attempted", attempts=0)
