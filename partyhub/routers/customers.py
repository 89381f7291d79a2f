"""Tenant-scoped customer endpoints."""
from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status

from partyhub.core.logger import get_logger
from partyhub.schemas import CreateCustomerRequest, UpdateCustomerRequest, success_envelope
from partyhub.services import CustomersService, TenantContext

from .dependencies import get_customers_service, get_tenant_context

router = APIRouter(prefix="/parties/customers", tags=["customers"])
LOGGER = get_logger(__name__)


@router.get("")
def list_customers(
    customer_type: str | None = Query(default=None, alias="type"),
    context: TenantContext = Depends(get_tenant_context),
    service: CustomersService = Depends(get_customers_service),
) -> dict:
    return success_envelope(service.list_customers(context, customer_type))


@router.post("", status_code=status.HTTP_201_CREATED)
def create_customer(
    payload: CreateCustomerRequest,
    context: TenantContext = Depends(get_tenant_context),
    service: CustomersService = Depends(get_customers_service),
) -> dict:
    return success_envelope(service.create_customer(context, payload))


@router.get("/{party_id}")
def get_customer(
    party_id: str,
    context: TenantContext = Depends(get_tenant_context),
    service: CustomersService = Depends(get_customers_service),
) -> dict:
    return success_envelope(service.get_customer(context, party_id))


@router.put("/{party_id}")
def update_customer(
    party_id: str,
    payload: UpdateCustomerRequest,
    context: TenantContext = Depends(get_tenant_context),
    service: CustomersService = Depends(get_customers_service),
) -> dict:
    return success_envelope(service.update_customer(context, party_id, payload))


@router.delete("/{party_id}")
def delete_customer(
    party_id: str,
    context: TenantContext = Depends(get_tenant_context),
    service: CustomersService = Depends(get_customers_service),
) -> dict:
    party_deleted = service.delete_customer(context, party_id)
    return success_envelope({"id": party_id, "partyDeleted": party_deleted})
