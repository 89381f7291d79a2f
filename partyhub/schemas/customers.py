"""Schemas for the tenant-scoped customer endpoints."""
from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import Field

from partyhub.models import PartyType, RoleType

from .party import CamelModel, ContactInput, ContactOut, PartyOut, RoleOut


class CreateCustomerRequest(CamelModel):
    display_name: str
    legal_name: str | None = None
    party_type: PartyType
    role_type: RoleType
    contacts: list[ContactInput] = Field(default_factory=list)
    metadata: dict[str, Any] | None = None


class UpdateCustomerRequest(CamelModel):
    """Partial update; ``contacts`` replaces the whole contact set when given."""

    display_name: str | None = None
    legal_name: str | None = None
    contacts: list[ContactInput] | None = None
    metadata: dict[str, Any] | None = None


class CustomerOut(CamelModel):
    party: PartyOut
    role: RoleOut | None = None
    contacts: list[ContactOut] = Field(default_factory=list)
    primary_email: str | None = None
    primary_phone: str | None = None
    primary_address: dict[str, Any] | str | None = None
    total_orders: int = 0
    total_revenue: float = 0.0
    last_order_date: datetime | None = None
