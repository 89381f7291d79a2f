"""Generic party endpoints scoped to the caller's farm."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status

from partyhub.core.logger import get_logger, get_security_logger
from partyhub.errors import ConflictError, Forbidden, NotFound, ValidationError
from partyhub.models import RoleType
from partyhub.repositories import LegacyRepository
from partyhub.schemas import (
    AddRoleRequest,
    ContactInput,
    ContactOut,
    ContactUpdate,
    CreatePartyRequest,
    CreateRelationshipRequest,
    PartyDetailOut,
    RelationshipOut,
    RoleInput,
    RoleOut,
    UpdatePartyRequest,
    success_envelope,
)
from partyhub.services import PartyService, PartyWithDetails, TenantAccessGuard, TenantContext

from .dependencies import get_guard, get_party_service, get_tenant_context

router = APIRouter(prefix="/parties", tags=["parties"])
LOGGER = get_logger(__name__)
SECURITY_LOGGER = get_security_logger()


def _scoped_role(context: TenantContext, role_type: RoleType, tenant_id: str | None) -> str | None:
    """Tenant id to store for a role created through ``context``'s tenant."""

    if role_type == RoleType.SYSTEM_ADMIN:
        SECURITY_LOGGER.warning(
            "Attempt to grant SYSTEM_ADMIN through tenant path tenant=%s principal=%s",
            context.tenant_id,
            context.principal.user_id,
        )
        raise Forbidden("System administrator roles cannot be granted from a farm")
    if role_type.is_global:
        return tenant_id
    if tenant_id and tenant_id != context.tenant_id:
        raise Forbidden("Roles can only be granted within the current farm")
    return context.tenant_id


def _visible(
    context: TenantContext,
    guard: TenantAccessGuard,
    service: PartyService,
    party_id: str,
) -> PartyWithDetails:
    details = service.get_party(party_id)
    if details is None:
        raise NotFound(f"Party {party_id} not found")
    guard.ensure_visible(context, details)
    details.roles = [
        role for role in details.roles if role.tenant_id in (None, context.tenant_id)
    ]
    return details


@router.get("")
def list_parties(
    role: RoleType | None = Query(default=None),
    context: TenantContext = Depends(get_tenant_context),
    guard: TenantAccessGuard = Depends(get_guard),
    service: PartyService = Depends(get_party_service),
) -> dict:
    if role is None:
        parties = service.get_customers(context.tenant_id)
    else:
        parties = service.get_parties_by_role(context.tenant_id, role)
    visible = guard.exclude_system_admins(context, parties)
    return success_envelope([PartyDetailOut.from_details(item) for item in visible])


@router.post("", status_code=status.HTTP_201_CREATED)
def create_party(
    payload: CreatePartyRequest,
    context: TenantContext = Depends(get_tenant_context),
    service: PartyService = Depends(get_party_service),
) -> dict:
    roles = [
        RoleInput(
            role_type=role.role_type,
            tenant_id=_scoped_role(context, role.role_type, role.tenant_id),
            metadata=role.metadata,
        )
        for role in payload.roles
    ]
    if not any(role.tenant_id == context.tenant_id for role in roles):
        raise ValidationError("At least one role in the current farm is required")
    details = service.create_party(
        payload.display_name,
        payload.legal_name,
        payload.party_type,
        roles=roles,
        contacts=payload.contacts,
    )
    return success_envelope(PartyDetailOut.from_details(details))


@router.get("/{party_id}")
def get_party(
    party_id: str,
    context: TenantContext = Depends(get_tenant_context),
    guard: TenantAccessGuard = Depends(get_guard),
    service: PartyService = Depends(get_party_service),
) -> dict:
    details = _visible(context, guard, service, party_id)
    return success_envelope(PartyDetailOut.from_details(details))


@router.put("/{party_id}")
def update_party(
    party_id: str,
    payload: UpdatePartyRequest,
    context: TenantContext = Depends(get_tenant_context),
    guard: TenantAccessGuard = Depends(get_guard),
    service: PartyService = Depends(get_party_service),
) -> dict:
    _visible(context, guard, service, party_id)
    service.update_party(
        party_id,
        display_name=payload.display_name,
        legal_name=payload.legal_name,
    )
    details = _visible(context, guard, service, party_id)
    return success_envelope(PartyDetailOut.from_details(details))


@router.delete("/{party_id}")
def delete_party(
    party_id: str,
    context: TenantContext = Depends(get_tenant_context),
    guard: TenantAccessGuard = Depends(get_guard),
    service: PartyService = Depends(get_party_service),
) -> dict:
    _visible(context, guard, service, party_id)
    if LegacyRepository(service.session).count_orders(party_id, context.tenant_id):
        raise ConflictError("Party has existing orders; archive instead of delete")
    everywhere = service.require_party(party_id).roles
    if any(role.tenant_id != context.tenant_id for role in everywhere):
        raise ConflictError("Party holds roles outside this farm; remove the farm's roles instead")
    service.delete_party(party_id)
    return success_envelope({"id": party_id})


# -- roles -----------------------------------------------------------------
@router.post("/{party_id}/roles", status_code=status.HTTP_201_CREATED)
def add_role(
    party_id: str,
    payload: AddRoleRequest,
    context: TenantContext = Depends(get_tenant_context),
    guard: TenantAccessGuard = Depends(get_guard),
    service: PartyService = Depends(get_party_service),
) -> dict:
    _visible(context, guard, service, party_id)
    tenant_id = _scoped_role(context, payload.role_type, payload.tenant_id)
    role = service.add_role(party_id, payload.role_type, tenant_id, payload.metadata)
    return success_envelope(RoleOut.from_model(role))


@router.delete("/{party_id}/roles/{role_id}")
def remove_role(
    party_id: str,
    role_id: str,
    context: TenantContext = Depends(get_tenant_context),
    guard: TenantAccessGuard = Depends(get_guard),
    service: PartyService = Depends(get_party_service),
) -> dict:
    _visible(context, guard, service, party_id)
    role = service.get_role(role_id)
    if role is None or role.party_id != party_id or role.tenant_id != context.tenant_id:
        raise NotFound(f"Role {role_id} not found")
    service.remove_role(role_id)
    return success_envelope({"id": role_id})


# -- contacts --------------------------------------------------------------
@router.post("/{party_id}/contacts", status_code=status.HTTP_201_CREATED)
def add_contact(
    party_id: str,
    payload: ContactInput,
    context: TenantContext = Depends(get_tenant_context),
    guard: TenantAccessGuard = Depends(get_guard),
    service: PartyService = Depends(get_party_service),
) -> dict:
    _visible(context, guard, service, party_id)
    contact = service.add_contact(
        party_id,
        payload.type,
        payload.value,
        label=payload.label,
        is_primary=payload.is_primary,
    )
    return success_envelope(ContactOut.from_model(contact))


def _owned_contact(service: PartyService, party_id: str, contact_id: str) -> None:
    contact = service.get_contact(contact_id)
    if contact is None or contact.party_id != party_id:
        raise NotFound(f"Contact {contact_id} not found")


@router.put("/{party_id}/contacts/{contact_id}")
def update_contact(
    party_id: str,
    contact_id: str,
    payload: ContactUpdate,
    context: TenantContext = Depends(get_tenant_context),
    guard: TenantAccessGuard = Depends(get_guard),
    service: PartyService = Depends(get_party_service),
) -> dict:
    _visible(context, guard, service, party_id)
    _owned_contact(service, party_id, contact_id)
    contact = service.update_contact(
        contact_id,
        value=payload.value,
        label=payload.label,
        is_primary=payload.is_primary,
    )
    return success_envelope(ContactOut.from_model(contact))


@router.delete("/{party_id}/contacts/{contact_id}")
def delete_contact(
    party_id: str,
    contact_id: str,
    context: TenantContext = Depends(get_tenant_context),
    guard: TenantAccessGuard = Depends(get_guard),
    service: PartyService = Depends(get_party_service),
) -> dict:
    _visible(context, guard, service, party_id)
    _owned_contact(service, party_id, contact_id)
    service.delete_contact(contact_id)
    return success_envelope({"id": contact_id})


# -- relationships ---------------------------------------------------------
@router.get("/{party_id}/relationships")
def list_relationships(
    party_id: str,
    context: TenantContext = Depends(get_tenant_context),
    guard: TenantAccessGuard = Depends(get_guard),
    service: PartyService = Depends(get_party_service),
) -> dict:
    _visible(context, guard, service, party_id)
    links = service.get_relationships(party_id)
    return success_envelope([RelationshipOut.from_model(link) for link in links])


@router.post("/{party_id}/relationships", status_code=status.HTTP_201_CREATED)
def create_relationship(
    party_id: str,
    payload: CreateRelationshipRequest,
    context: TenantContext = Depends(get_tenant_context),
    guard: TenantAccessGuard = Depends(get_guard),
    service: PartyService = Depends(get_party_service),
) -> dict:
    _visible(context, guard, service, party_id)
    if payload.related_party_id != party_id:
        _visible(context, guard, service, payload.related_party_id)
    link = service.create_relationship(
        party_id,
        payload.related_party_id,
        payload.relationship,
        payload.metadata,
    )
    return success_envelope(RelationshipOut.from_model(link))
