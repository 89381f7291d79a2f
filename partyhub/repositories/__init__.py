"""Data access layer for parties and the legacy mirror tables."""

from .contact_repository import ContactRepository
from .legacy_repository import LegacyRepository, OrderAggregate
from .party_repository import PartyRepository
from .relationship_repository import RelationshipRepository
from .role_repository import RoleRepository

__all__ = [
    "ContactRepository",
    "LegacyRepository",
    "OrderAggregate",
    "PartyRepository",
    "RelationshipRepository",
    "RoleRepository",
]
