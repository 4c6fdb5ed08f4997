"""
Database connection module.

Provides the SQLite connection handle used by one request (or one CLI run),
with explicit transaction control and table metadata helpers.
"""

import sqlite3
from contextlib import closing, contextmanager
from typing import Iterator, List, Optional
import logging

from identity_reconciliation.config import Config
from identity_reconciliation.reconcile.schema import create_schema

logger = logging.getLogger(__name__)

# Primary result codes SQLite uses for lock and snapshot conflicts
TRANSIENT_ERROR_CODES = frozenset({sqlite3.SQLITE_BUSY, sqlite3.SQLITE_LOCKED})


def is_transient_error(exc: BaseException) -> bool:
    """
    Tell whether a SQLite error is a lock/serialization conflict.

    Covers SQLITE_BUSY (including BUSY_SNAPSHOT, raised when a read
    transaction tries to write after another connection committed) and
    SQLITE_LOCKED. Re-running the whole transaction is the cure for these.
    """
    if not isinstance(exc, sqlite3.OperationalError):
        return False
    code = getattr(exc, "sqlite_errorcode", None)
    if code is not None:
        return (code & 0xFF) in TRANSIENT_ERROR_CODES
    message = str(exc).lower()
    return "database is locked" in message or "database table is locked" in message


class DatabaseConnection:
    """
    Read-write connection manager for the contacts database.

    The connection runs in autocommit mode; every unit of work is wrapped in
    an explicit BEGIN/COMMIT through transaction().
    """

    def __init__(self, config: Config):
        """
        Initialize database connection.

        Args:
            config: Configuration object with database path and lock policy.
        """
        self.config = config
        self._connection: Optional[sqlite3.Connection] = None

    def __enter__(self):
        """Context manager entry."""
        self.connect()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()

    def connect(self) -> sqlite3.Connection:
        """
        Open the database, creating its directory if needed.

        Returns:
            SQLite connection object.

        Raises:
            sqlite3.Error: If connection fails.
        """
        if self._connection is not None:
            return self._connection

        self.config.ensure_db_dir()
        db_path = self.config.db_path_str

        try:
            # The handle may be created in one worker thread and used in another,
            # but it is never used by two requests at once.
            conn = sqlite3.connect(
                db_path,
                timeout=self.config.busy_timeout_ms / 1000,
                isolation_level=None,
                check_same_thread=False,
            )
            conn.row_factory = sqlite3.Row
            try:
                conn.execute("PRAGMA foreign_keys = ON;")
                conn.execute(f"PRAGMA busy_timeout = {int(self.config.busy_timeout_ms)};")
                conn.execute(f"PRAGMA journal_mode = {self.config.journal_mode};")
            except sqlite3.Error:
                conn.close()
                raise
            self._connection = conn
            logger.debug(f"Connected to database: {db_path}")
            return conn
        except sqlite3.Error as e:
            logger.error(f"Failed to connect to database: {e}")
            raise

    def close(self) -> None:
        """Close database connection."""
        if self._connection:
            self._connection.close()
            self._connection = None
            logger.debug("Database connection closed")

    @property
    def connection(self) -> sqlite3.Connection:
        """
        Get database connection.

        Raises:
            RuntimeError: If connection not established.
        """
        if self._connection is None:
            raise RuntimeError("Database connection not established. Call connect() first.")
        return self._connection

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """
        Run a block as one transaction.

        Commits when the block finishes and rolls back on any exception,
        which is then re-raised.

        Yields:
            The underlying connection.
        """
        conn = self.connection
        conn.execute(f"BEGIN {self.config.transaction_mode};")
        try:
            yield conn
        except BaseException:
            if conn.in_transaction:
                conn.execute("ROLLBACK;")
            raise
        else:
            conn.execute("COMMIT;")

    def _require_table_exists(self, table_name: str) -> str:
        """
        Validate a table name before interpolating into SQL.

        SQLite does not support binding identifiers, so we only allow table names
        that exist in sqlite_master.
        """
        if table_name not in self.get_table_names():
            raise ValueError(f"Unknown table name: {table_name!r}")
        return table_name

    def get_table_names(self) -> List[str]:
        """Get all table names in the database."""
        query = "SELECT name FROM sqlite_master WHERE type='table' ORDER BY name;"
        with closing(self.connection.cursor()) as cursor:
            cursor.execute(query)
            return [row[0] for row in cursor.fetchall()]

    def get_row_count(self, table_name: str) -> int:
        """Get row count for a table."""
        safe_table = self._require_table_exists(table_name)
        with closing(self.connection.cursor()) as cursor:
            cursor.execute(f'SELECT COUNT(*) FROM "{safe_table}";')
            result = cursor.fetchone()
            return result[0] if result else 0


def initialize_database(config: Config) -> None:
    """
    Prepare the contacts database before serving.

    Creates the directory and schema when missing, then switches the file to
    the configured journal mode (WAL persists in the file itself).

    Raises:
        sqlite3.Error: If the schema cannot be created.
    """
    config.ensure_db_dir()
    create_schema(config.db_path)
    with DatabaseConnection(config) as db:
        mode = db.connection.execute("PRAGMA journal_mode;").fetchone()[0]
        logger.info(f"Database ready at {config.db_path_str} (journal_mode={mode})")
