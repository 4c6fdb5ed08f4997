#!/usr/bin/env python3
"""
Main entry point for the Identity Reconciliation service.

Provides a command-line interface to run the API server, prepare the
database, reconcile a single request and check the stored contact graph.
"""
from typing import List, Optional
import argparse
import json
import logging
import sqlite3
import sys

from identity_reconciliation.config import Config, set_config
from identity_reconciliation.database import DatabaseConnection, initialize_database
from identity_reconciliation.errors import ReconciliationError, ValidationError
from identity_reconciliation.logger_config import setup_logging
from identity_reconciliation.reconcile.schema import CONTACT_TABLE
from identity_reconciliation.reconcile.validation import get_contact_counts, validate_contacts
from identity_reconciliation.service import IdentityService

logger = logging.getLogger(__name__)


def print_section(title: str) -> None:
    """Print a formatted section title."""
    print(f"\n{'=' * 60}")
    print(title)
    print(f"{'=' * 60}\n")


def _parse_args(argv: List[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        description="Consolidate contacts that share an email or phone number."
    )
    parser.add_argument(
        "--db-path",
        default=None,
        help="Path to the contacts database (default: $IDENTITY_DB_PATH or "
        "~/.identity_reconciliation/contacts.db).",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Override LOG_LEVEL (DEBUG, INFO, WARNING, ERROR).",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the HTTP API.")
    serve.add_argument("--host", default=None, help="Bind host (default: $HOST or 127.0.0.1).")
    serve.add_argument("--port", type=int, default=None, help="Bind port (default: $PORT or 3000).")

    subparsers.add_parser("init-db", help="Create or verify the database schema.")

    identify = subparsers.add_parser("identify", help="Reconcile one email/phone pair.")
    identify.add_argument("--email", default=None, help="Email address.")
    identify.add_argument("--phone", default=None, help="Phone number.")

    subparsers.add_parser("validate", help="Check the stored contacts against cluster invariants.")
    subparsers.add_parser("stats", help="Print contact counts.")

    return parser.parse_args(argv)


def _serve(config: Config, logging_config: dict) -> int:
    import uvicorn

    from identity_reconciliation.api import create_app

    uvicorn.run(
        create_app(config),
        host=config.host,
        port=config.port,
        log_config=logging_config,
    )
    return 0


def _identify(config: Config, email: Optional[str], phone: Optional[str]) -> int:
    with DatabaseConnection(config) as db:
        outcome = IdentityService(db).identify(email=email, phone_number=phone)
    logger.info(f"Identify finished in {outcome.attempts} attempt(s)")
    print(json.dumps(outcome.aggregate.to_dict(), indent=2))
    return 0


def _validate(config: Config) -> int:
    with DatabaseConnection(config) as db:
        result = validate_contacts(db.connection)
    print_section("Contact Validation")
    print(result)
    return 0 if result.passed else 1


def _stats(config: Config) -> int:
    with DatabaseConnection(config) as db:
        counts = get_contact_counts(db.connection)
        total = db.get_row_count(CONTACT_TABLE)
    print_section("Contact Statistics")
    print(f"{'Total rows':20s}: {total:>10,}")
    for name, count in counts.items():
        print(f"{name.capitalize():20s}: {count:>10,}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    """Main function."""
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)

    level = logging.getLevelName(args.log_level.upper()) if args.log_level else None
    logging_config = setup_logging(level=level if isinstance(level, int) else None)

    port = getattr(args, "port", None)
    host = getattr(args, "host", None)
    config = Config(db_path=args.db_path, host=host, port=port)
    set_config(config)

    try:
        initialize_database(config)

        if args.command == "serve":
            return _serve(config, logging_config)
        if args.command == "init-db":
            print(f"Database ready: {config.db_path_str}")
            return 0
        if args.command == "identify":
            return _identify(config, args.email, args.phone)
        if args.command == "validate":
            return _validate(config)
        if args.command == "stats":
            return _stats(config)
    except ValidationError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 2
    except (ReconciliationError, sqlite3.Error, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        logger.exception("Error during execution")
        return 1

    return 1


if __name__ == "__main__":
    sys.exit(main())
