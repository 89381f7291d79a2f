"""Farm members exposed through the party model.

System administrators never appear here, whatever memberships they hold.
"""
from __future__ import annotations

from fastapi import APIRouter, Depends

from partyhub.errors import NotFound
from partyhub.models import RoleType
from partyhub.schemas import PartyDetailOut, success_envelope
from partyhub.services import PartyService, TenantAccessGuard, TenantContext

from .dependencies import get_guard, get_party_service, get_tenant_context

router = APIRouter(prefix="/parties/users", tags=["users"])


@router.get("")
def list_users(
    context: TenantContext = Depends(get_tenant_context),
    guard: TenantAccessGuard = Depends(get_guard),
    service: PartyService = Depends(get_party_service),
) -> dict:
    members = guard.exclude_system_admins(context, service.get_employees(context.tenant_id))
    return success_envelope([PartyDetailOut.from_details(item) for item in members])


@router.get("/{party_id}")
def get_user(
    party_id: str,
    context: TenantContext = Depends(get_tenant_context),
    guard: TenantAccessGuard = Depends(get_guard),
    service: PartyService = Depends(get_party_service),
) -> dict:
    details = service.get_party(party_id)
    if details is None:
        raise NotFound(f"User {party_id} not found")
    guard.ensure_visible(context, details)
    if not service.has_role(party_id, RoleType.EMPLOYEE, context.tenant_id):
        raise NotFound(f"User {party_id} not found")
    details.roles = [
        role for role in details.roles if role.tenant_id in (None, context.tenant_id)
    ]
    return success_envelope(PartyDetailOut.from_details(details))
