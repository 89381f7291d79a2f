"""FastAPI application instance and error translation."""
from __future__ import annotations

from typing import Callable

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.exceptions import HTTPException as StarletteHTTPException

from partyhub.core import Settings, get_logger, get_settings
from partyhub.core.security import SecurityProvider
from partyhub.db.session import get_sessionmaker
from partyhub.errors import PartyHubError
from partyhub.middleware.request_context import RequestContextMiddleware
from partyhub.routers import customers_router, parties_router, users_router
from partyhub.schemas import error_envelope
from partyhub.services import LegacySyncAdapter

LOGGER = get_logger(__name__)


def _validation_message(exc: RequestValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(item) for item in error.get("loc", ()) if item != "body")
        parts.append(f"{location}: {error.get('msg')}" if location else str(error.get("msg")))
    return "; ".join(parts) or "Invalid request"


def register_exception_handlers(app: FastAPI) -> None:
    """Translate typed errors into the ``{success, error}`` envelope."""

    @app.exception_handler(PartyHubError)
    async def handle_party_error(request: Request, exc: PartyHubError) -> JSONResponse:
        if exc.http_status >= 500:
            LOGGER.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        else:
            LOGGER.info(
                "%s %s rejected with %d: %s",
                request.method,
                request.url.path,
                exc.http_status,
                exc.message,
            )
        return JSONResponse(
            status_code=exc.http_status,
            content=error_envelope(exc.message, code=exc.code),
        )

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=error_envelope(_validation_message(exc), code="VALIDATION_ERROR"),
        )

    @app.exception_handler(SQLAlchemyError)
    async def handle_database_error(request: Request, exc: SQLAlchemyError) -> JSONResponse:
        LOGGER.exception("Database failure on %s %s", request.method, request.url.path, exc_info=exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=error_envelope("Internal server error", code="INTERNAL_ERROR"),
        )

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        return JSONResponse(
            status_code=exc.status_code,
            content=error_envelope(str(exc.detail)),
            headers=getattr(exc, "headers", None),
        )


def create_app(
    *,
    settings: Settings | None = None,
    session_factory: Callable[[], Session] | None = None,
    security_provider: SecurityProvider | None = None,
    legacy_sync: LegacySyncAdapter | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""

    settings = settings or get_settings()
    if session_factory is None:
        session_factory = get_sessionmaker()
    if legacy_sync is None:
        legacy_sync = LegacySyncAdapter(session_factory, enabled=settings.legacy.sync_enabled)

    app = FastAPI(title="Party Hub", version="0.1.0")
    app.state.settings = settings
    app.state.session_factory = session_factory
    app.state.security_provider = security_provider or SecurityProvider(settings.auth)
    app.state.legacy_sync = legacy_sync

    app.add_middleware(RequestContextMiddleware)
    register_exception_handlers(app)

    # Fixed sub-paths first so they win over ``/parties/{party_id}``.
    app.include_router(customers_router)
    app.include_router(users_router)
    app.include_router(parties_router)

    LOGGER.info(
        "FastAPI application initialised (tenant header=%s, legacy sync=%s)",
        settings.tenant.header_name,
        "on" if legacy_sync.enabled else "off",
    )
    return app
