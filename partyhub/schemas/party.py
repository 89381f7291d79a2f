"""Request and response payloads for parties, roles, contacts and relationships."""
from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from partyhub.models import (
    ContactType,
    Party,
    PartyContact,
    PartyRelationship,
    PartyRole,
    PartyType,
    RelationshipType,
    RoleType,
)


class CamelModel(BaseModel):
    """Accepts snake_case or camelCase input and serializes to camelCase."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_json(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json")


class RoleInput(CamelModel):
    role_type: RoleType
    tenant_id: str | None = None
    metadata: dict[str, Any] | None = None


class ContactInput(CamelModel):
    type: ContactType
    value: str
    label: str | None = None
    is_primary: bool = False

    @field_validator("value")
    @classmethod
    def _value_not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("contact value must not be empty")
        return value.strip()


class ContactUpdate(CamelModel):
    value: str | None = None
    label: str | None = None
    is_primary: bool | None = None


class CreatePartyRequest(CamelModel):
    display_name: str
    legal_name: str | None = None
    party_type: PartyType
    roles: list[RoleInput] = Field(default_factory=list)
    contacts: list[ContactInput] = Field(default_factory=list)


class UpdatePartyRequest(CamelModel):
    display_name: str | None = None
    legal_name: str | None = None


class AddRoleRequest(CamelModel):
    role_type: RoleType
    tenant_id: str | None = None
    metadata: dict[str, Any] | None = None


class CreateRelationshipRequest(CamelModel):
    related_party_id: str
    relationship: RelationshipType
    metadata: dict[str, Any] | None = None


class PartyOut(CamelModel):
    id: str
    display_name: str
    legal_name: str | None = None
    party_type: PartyType
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_model(cls, party: Party) -> "PartyOut":
        return cls(
            id=party.id,
            display_name=party.display_name,
            legal_name=party.legal_name,
            party_type=party.party_type,
            created_at=party.created_at,
            updated_at=party.updated_at,
        )


class RoleOut(CamelModel):
    id: str
    party_id: str
    role_type: RoleType
    tenant_id: str | None = None
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime

    @classmethod
    def from_model(cls, role: PartyRole) -> "RoleOut":
        return cls(
            id=role.id,
            party_id=role.party_id,
            role_type=role.role_type,
            tenant_id=role.tenant_id,
            metadata=dict(role.role_metadata or {}),
            created_at=role.created_at,
        )


class ContactOut(CamelModel):
    id: str
    party_id: str
    type: ContactType
    label: str | None = None
    value: str
    is_primary: bool

    @classmethod
    def from_model(cls, contact: PartyContact) -> "ContactOut":
        return cls(
            id=contact.id,
            party_id=contact.party_id,
            type=contact.type,
            label=contact.label,
            value=contact.value,
            is_primary=contact.is_primary,
        )


class RelationshipOut(CamelModel):
    id: str
    party_id: str
    related_party_id: str
    relationship: RelationshipType
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: datetime

    @classmethod
    def from_model(cls, link: PartyRelationship) -> "RelationshipOut":
        return cls(
            id=link.id,
            party_id=link.party_id,
            related_party_id=link.related_party_id,
            relationship=link.relationship_type,
            metadata=dict(link.relationship_metadata or {}),
            created_at=link.created_at,
        )


class PartyDetailOut(PartyOut):
    roles: list[RoleOut] = Field(default_factory=list)
    contacts: list[ContactOut] = Field(default_factory=list)

    @classmethod
    def from_details(cls, details) -> "PartyDetailOut":
        """Build from a ``PartyWithDetails`` service result."""

        base = PartyOut.from_model(details.party)
        return cls(
            **base.model_dump(),
            roles=[RoleOut.from_model(role) for role in details.roles],
            contacts=[ContactOut.from_model(contact) for contact in details.contacts],
        )
