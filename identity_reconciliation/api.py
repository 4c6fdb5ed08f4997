"""
FastAPI backend for the Identity Reconciliation service.

Each request gets its own database connection through a dependency, and the
identify call runs as a single transaction inside IdentityService.

Run with `python main.py serve` (see main.py) or uvicorn directly:
    uvicorn identity_reconciliation.api:app
"""

from __future__ import annotations

import logging
import sqlite3
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Dict, Iterator, List, Optional, Union

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from identity_reconciliation.config import Config, get_config
from identity_reconciliation.database import DatabaseConnection, initialize_database
from identity_reconciliation.errors import InvariantViolation, StorageError, ValidationError
from identity_reconciliation.reconcile.schema import SCHEMA_VERSION, verify_schema
from identity_reconciliation.reconcile.validation import get_contact_counts, validate_contacts
from identity_reconciliation.service import IdentityService

logger = logging.getLogger(__name__)


class IdentifyBody(BaseModel):
    """Body of POST /identify."""

    email: Optional[str] = None
    phoneNumber: Optional[Union[str, int, float]] = None


class ContactPayload(BaseModel):
    primaryContactId: int
    emails: List[str]
    phoneNumbers: List[str]
    secondaryContactIds: List[int]


class IdentifyResponse(BaseModel):
    contact: ContactPayload


def get_db(request: Request) -> Iterator[DatabaseConnection]:
    """Open a connection for the duration of one request."""
    with DatabaseConnection(request.app.state.config) as db:
        yield db


def get_service(db: DatabaseConnection = Depends(get_db)) -> IdentityService:
    return IdentityService(db)


def create_app(config: Optional[Config] = None) -> FastAPI:
    """
    Build the application.

    Args:
        config: Configuration to serve with. Defaults to the global config,
                resolved when the app starts.

    Returns:
        FastAPI application.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        app.state.config = config or get_config()
        initialize_database(app.state.config)
        logger.info(f"Serving contacts from {app.state.config.db_path_str}")
        yield
        logger.info("Identity Reconciliation service shutting down")

    app = FastAPI(
        title="Identity Reconciliation API",
        version="0.1.0",
        description="Consolidates contacts sharing an email or phone number into one identity.",
        lifespan=lifespan,
    )

    @app.exception_handler(ValidationError)
    async def _validation_error(request: Request, exc: ValidationError) -> JSONResponse:
        return JSONResponse(status_code=400, content={"error": str(exc)})

    @app.exception_handler(RequestValidationError)
    async def _malformed_body(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=400,
            content={"error": "Malformed request body", "details": jsonable_errors(exc)},
        )

    @app.exception_handler(StorageError)
    async def _storage_error(request: Request, exc: StorageError) -> JSONResponse:
        logger.error(f"Storage error after {exc.attempts} attempt(s): {exc}")
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    @app.exception_handler(InvariantViolation)
    async def _invariant_violation(request: Request, exc: InvariantViolation) -> JSONResponse:
        logger.error(f"Invariant violation for contacts {exc.contact_ids}: {exc}")
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    @app.exception_handler(sqlite3.Error)
    async def _database_error(request: Request, exc: sqlite3.Error) -> JSONResponse:
        logger.error(f"Database error on {request.url.path}: {exc}")
        return JSONResponse(status_code=500, content={"error": "Internal server error"})

    @app.get("/")
    def root() -> Dict[str, Any]:
        return {"status": "ok", "message": "Identity Reconciliation Service"}

    @app.get("/health")
    def health(request: Request) -> Dict[str, Any]:
        """Health check - also verifies the schema is in place and the file is writable."""
        cfg: Config = request.app.state.config
        schema_ok = verify_schema(cfg.db_path)
        accessible = cfg.validate()
        return {
            "status": "ok" if schema_ok and accessible else "degraded",
            "db_exists": cfg.db_path.exists(),
            "db_accessible": accessible,
            "db_path": cfg.db_path_str,
            "schema_version": SCHEMA_VERSION if schema_ok else None,
        }

    @app.post("/identify", response_model=IdentifyResponse)
    def identify(
        body: IdentifyBody,
        service: IdentityService = Depends(get_service),
    ) -> Dict[str, Any]:
        outcome = service.identify(email=body.email, phone_number=body.phoneNumber)
        return outcome.aggregate.to_dict()

    @app.get("/diagnostics")
    def diagnostics(db: DatabaseConnection = Depends(get_db)) -> Dict[str, Any]:
        """Contact counts and the invariant validation report."""
        report = validate_contacts(db.connection)
        return {
            "status": "ok" if report.passed else "invalid",
            "counts": get_contact_counts(db.connection),
            "validation": report.to_dict(),
        }

    return app


def jsonable_errors(exc: RequestValidationError) -> List[Dict[str, Any]]:
    """Reduce pydantic errors to location and message."""
    return [
        {"loc": [str(part) for part in error.get("loc", ())], "msg": error.get("msg", "")}
        for error in exc.errors()
    ]


app = create_app()
