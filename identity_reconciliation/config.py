"""
Configuration module for the Identity Reconciliation service.

Handles configuration settings including the contacts database path and the
transaction/retry policy used by the reconciliation core.

Environment Variables:
    IDENTITY_DB_PATH: Path to the contacts SQLite database.
    IDENTITY_MAX_ATTEMPTS: How many times a conflicting transaction is run
        before the conflict is surfaced (default: 3).
    IDENTITY_BUSY_TIMEOUT_MS: How long SQLite waits on a held lock (default: 5000).
    IDENTITY_TRANSACTION_MODE: IMMEDIATE or DEFERRED (default: IMMEDIATE).
        IMMEDIATE takes the write lock at BEGIN, so concurrent writers queue
        on the busy timeout instead of failing on a stale snapshot.
    IDENTITY_JOURNAL_MODE: SQLite journal mode (default: WAL).
    HOST / PORT: Bind address for the HTTP server (default: 127.0.0.1:3000).
"""

import os
from pathlib import Path
from typing import Optional


class Config:
    """Configuration class for the Identity Reconciliation service."""

    # Default path for the contacts database
    DEFAULT_DB_DIR = Path.home() / ".identity_reconciliation"
    DEFAULT_DB_NAME = "contacts.db"

    DEFAULT_MAX_ATTEMPTS = 3
    DEFAULT_BUSY_TIMEOUT_MS = 5000
    DEFAULT_TRANSACTION_MODE = "IMMEDIATE"
    DEFAULT_JOURNAL_MODE = "WAL"
    DEFAULT_HOST = "127.0.0.1"
    DEFAULT_PORT = 3000

    TRANSACTION_MODES = ("DEFERRED", "IMMEDIATE")
    JOURNAL_MODES = ("WAL", "DELETE", "TRUNCATE", "PERSIST", "MEMORY")

    def __init__(
        self,
        db_path: Optional[str] = None,
        max_attempts: Optional[int] = None,
        busy_timeout_ms: Optional[int] = None,
        transaction_mode: Optional[str] = None,
        journal_mode: Optional[str] = None,
        host: Optional[str] = None,
        port: Optional[int] = None,
    ):
        """
        Initialize configuration.

        Explicit arguments win over environment variables, which win over
        the class defaults.

        Args:
            db_path: Optional path to the contacts database. If not provided,
                    uses IDENTITY_DB_PATH or ~/.identity_reconciliation/contacts.db
            max_attempts: Total runs of one transaction before a conflict is
                    reported as a storage error.
            busy_timeout_ms: SQLite busy timeout in milliseconds.
            transaction_mode: 'IMMEDIATE' (default) or 'DEFERRED'.
            journal_mode: SQLite journal mode, e.g. 'WAL'.
            host: HTTP bind host.
            port: HTTP bind port.

        Raises:
            ValueError: If any value is out of range.
        """
        env_db_path = os.getenv("IDENTITY_DB_PATH")
        if db_path:
            self._db_path = Path(db_path)
        elif env_db_path:
            self._db_path = Path(env_db_path)
        else:
            self._db_path = self.DEFAULT_DB_DIR / self.DEFAULT_DB_NAME

        self._max_attempts = _resolve_int(
            max_attempts, "IDENTITY_MAX_ATTEMPTS", self.DEFAULT_MAX_ATTEMPTS
        )
        if self._max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self._max_attempts}")

        self._busy_timeout_ms = _resolve_int(
            busy_timeout_ms, "IDENTITY_BUSY_TIMEOUT_MS", self.DEFAULT_BUSY_TIMEOUT_MS
        )
        if self._busy_timeout_ms < 0:
            raise ValueError(f"busy_timeout_ms must be >= 0, got {self._busy_timeout_ms}")

        self._transaction_mode = (
            transaction_mode
            or os.getenv("IDENTITY_TRANSACTION_MODE")
            or self.DEFAULT_TRANSACTION_MODE
        ).upper()
        if self._transaction_mode not in self.TRANSACTION_MODES:
            raise ValueError(f"Unknown transaction mode: {self._transaction_mode!r}")

        self._journal_mode = (
            journal_mode or os.getenv("IDENTITY_JOURNAL_MODE") or self.DEFAULT_JOURNAL_MODE
        ).upper()
        if self._journal_mode not in self.JOURNAL_MODES:
            raise ValueError(f"Unknown journal mode: {self._journal_mode!r}")

        self._host = host or os.getenv("HOST") or self.DEFAULT_HOST
        self._port = _resolve_int(port, "PORT", self.DEFAULT_PORT)

    @property
    def db_path(self) -> Path:
        """Get the contacts database file path."""
        return self._db_path

    @property
    def db_path_str(self) -> str:
        """Get the contacts database file path as a string."""
        return str(self._db_path)

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    @property
    def busy_timeout_ms(self) -> int:
        return self._busy_timeout_ms

    @property
    def transaction_mode(self) -> str:
        return self._transaction_mode

    @property
    def journal_mode(self) -> str:
        return self._journal_mode

    @property
    def host(self) -> str:
        return self._host

    @property
    def port(self) -> int:
        return self._port

    def validate(self) -> bool:
        """
        Validate that the database file exists and is readable and writable.

        Returns:
            True if the database exists and is accessible, False otherwise.
        """
        return self._db_path.exists() and os.access(self._db_path, os.R_OK | os.W_OK)

    def ensure_db_dir(self) -> None:
        """
        Ensure the database parent directory exists.

        Creates the directory if it doesn't exist.
        """
        self._db_path.parent.mkdir(parents=True, exist_ok=True)


def _resolve_int(value: Optional[int], env_name: str, default: int) -> int:
    """Pick an explicit value, then an environment variable, then the default."""
    if value is not None:
        return int(value)
    raw = os.getenv(env_name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{env_name} must be an integer, got {raw!r}") from None


# Global configuration instance
_config: Optional[Config] = None


def get_config(db_path: Optional[str] = None) -> Config:
    """
    Get or create the global configuration instance.

    Args:
        db_path: Optional path to the contacts database.

    Returns:
        Config instance.
    """
    global _config
    if _config is None or db_path is not None:
        _config = Config(db_path)
    return _config


def set_config(config: Optional[Config]) -> None:
    """
    Set the global configuration instance.

    Args:
        config: Config instance to use, or None to reset.
    """
    global _config
    _config = config
