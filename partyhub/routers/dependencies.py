"""Request-scoped dependencies shared by the routers.

Everything is read from ``request.app.state`` so the application factory
decides which session factory, token provider and legacy mirror are used.
"""
from __future__ import annotations

from collections.abc import Generator

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from partyhub.services import (
    CustomersService,
    PartyService,
    TenantAccessGuard,
    TenantContext,
)


def get_db_session(request: Request) -> Generator[Session, None, None]:
    """Yield a database session for the request lifecycle."""

    session = request.app.state.session_factory()
    try:
        yield session
    finally:
        session.close()


def get_guard(request: Request, session: Session = Depends(get_db_session)) -> TenantAccessGuard:
    return TenantAccessGuard(
        session,
        request.app.state.security_provider,
        request.app.state.settings.tenant,
    )


def get_tenant_context(
    request: Request,
    guard: TenantAccessGuard = Depends(get_guard),
) -> TenantContext:
    """Authenticate the caller and resolve the farm before any store access."""

    tenant_settings = request.app.state.settings.tenant
    return guard.check(
        authorization=request.headers.get("Authorization"),
        tenant_header=request.headers.get(tenant_settings.header_name),
        tenant_query=request.query_params.get(tenant_settings.query_param),
    )


def get_party_service(
    request: Request,
    session: Session = Depends(get_db_session),
) -> PartyService:
    return PartyService(session, sync=request.app.state.legacy_sync)


def get_customers_service(
    parties: PartyService = Depends(get_party_service),
    guard: TenantAccessGuard = Depends(get_guard),
) -> CustomersService:
    return CustomersService(parties, guard)


__all__ = [
    "get_customers_service",
    "get_db_session",
    "get_guard",
    "get_party_service",
    "get_tenant_context",
]
