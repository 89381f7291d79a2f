"""Database models for the party domain and the legacy mirror tables."""
from __future__ import annotations

from .base import Base, new_id, utcnow
from .legacy import Customer, Farm, FarmUser, Order, Supplier, User
from .party import (
    CUSTOMER_ROLE_TYPES,
    GLOBAL_ROLE_TYPES,
    ContactType,
    Party,
    PartyContact,
    PartyRelationship,
    PartyRole,
    PartyType,
    RelationshipType,
    RoleType,
)

__all__ = [
    "Base",
    "new_id",
    "utcnow",
    "CUSTOMER_ROLE_TYPES",
    "GLOBAL_ROLE_TYPES",
    "ContactType",
    "Party",
    "PartyContact",
    "PartyRelationship",
    "PartyRole",
    "PartyType",
    "RelationshipType",
    "RoleType",
    "Customer",
    "Farm",
    "FarmUser",
    "Order",
    "Supplier",
    "User",
]
