"""Party, role, contact and relationship models."""
from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Enum as SQLEnum,
    ForeignKey,
    Index,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import ID_TYPE, Base, new_id, utcnow


class PartyType(str, Enum):
    """Enumeration of supported party types."""

    PERSON = "PERSON"
    ORGANIZATION = "ORGANIZATION"


class RoleType(str, Enum):
    """Capabilities a party can hold, optionally within a tenant."""

    FARM = "FARM"
    CUSTOMER_B2B = "CUSTOMER_B2B"
    CUSTOMER_B2C = "CUSTOMER_B2C"
    USER = "USER"
    SUPPLIER = "SUPPLIER"
    DISTRIBUTOR = "DISTRIBUTOR"
    EMPLOYEE = "EMPLOYEE"
    SYSTEM_ADMIN = "SYSTEM_ADMIN"

    @property
    def is_global(self) -> bool:
        """Global roles never carry a tenant id."""

        return self in GLOBAL_ROLE_TYPES

    @property
    def is_customer(self) -> bool:
        return self in CUSTOMER_ROLE_TYPES


GLOBAL_ROLE_TYPES = frozenset({RoleType.USER, RoleType.SYSTEM_ADMIN})
CUSTOMER_ROLE_TYPES = frozenset({RoleType.CUSTOMER_B2B, RoleType.CUSTOMER_B2C})


class ContactType(str, Enum):
    """Channels through which a party can be reached."""

    EMAIL = "EMAIL"
    PHONE = "PHONE"
    MOBILE = "MOBILE"
    FAX = "FAX"
    ADDRESS = "ADDRESS"
    URL = "URL"
    SOCIAL = "SOCIAL"
    OTHER = "OTHER"


class RelationshipType(str, Enum):
    """Directed link kinds between two parties."""

    OWNS = "OWNS"
    MANAGES = "MANAGES"
    EMPLOYS = "EMPLOYS"
    SUPPLIES = "SUPPLIES"
    DISTRIBUTES = "DISTRIBUTES"
    MEMBER_OF = "MEMBER_OF"
    PARENT_OF = "PARENT_OF"
    SUBSIDIARY_OF = "SUBSIDIARY_OF"
    RELATED_TO = "RELATED_TO"


class Party(Base):
    """Any person or organization participating in the system."""

    __tablename__ = "parties"

    id: Mapped[str] = mapped_column(ID_TYPE, primary_key=True, default=new_id)
    display_name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    legal_name: Mapped[str | None] = mapped_column(String(255))
    party_type: Mapped[PartyType] = mapped_column(
        SQLEnum(PartyType, native_enum=False, length=32), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    roles: Mapped[list["PartyRole"]] = relationship(
        back_populates="party", cascade="all, delete-orphan"
    )
    contacts: Mapped[list["PartyContact"]] = relationship(
        back_populates="party", cascade="all, delete-orphan"
    )
    outgoing_relationships: Mapped[list["PartyRelationship"]] = relationship(
        foreign_keys="PartyRelationship.party_id",
        back_populates="party",
        cascade="all, delete-orphan",
    )
    incoming_relationships: Mapped[list["PartyRelationship"]] = relationship(
        foreign_keys="PartyRelationship.related_party_id",
        back_populates="related_party",
        cascade="all, delete-orphan",
    )


class PartyRole(Base):
    """A capability held by a party, pinned to a tenant unless global."""

    __tablename__ = "party_roles"
    __table_args__ = (
        Index("ix_party_roles_tenant_role", "tenant_id", "role_type"),
        Index("ix_party_roles_party_role_tenant", "party_id", "role_type", "tenant_id"),
    )

    id: Mapped[str] = mapped_column(ID_TYPE, primary_key=True, default=new_id)
    party_id: Mapped[str] = mapped_column(
        ForeignKey("parties.id", ondelete="CASCADE"), nullable=False, index=True
    )
    role_type: Mapped[RoleType] = mapped_column(
        SQLEnum(RoleType, native_enum=False, length=32), nullable=False
    )
    tenant_id: Mapped[str | None] = mapped_column(String(64))
    # ``metadata`` is reserved on declarative classes; keep the column name.
    role_metadata: Mapped[dict[str, Any]] = mapped_column(
        "metadata", JSON, nullable=False, default=dict
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    party: Mapped[Party] = relationship(back_populates="roles")


class PartyContact(Base):
    """A typed contact channel for a party."""

    __tablename__ = "party_contacts"
    __table_args__ = (Index("ix_party_contacts_party_type", "party_id", "type"),)

    id: Mapped[str] = mapped_column(ID_TYPE, primary_key=True, default=new_id)
    party_id: Mapped[str] = mapped_column(
        ForeignKey("parties.id", ondelete="CASCADE"), nullable=False, index=True
    )
    type: Mapped[ContactType] = mapped_column(
        SQLEnum(ContactType, native_enum=False, length=32), nullable=False
    )
    label: Mapped[str | None] = mapped_column(String(128))
    value: Mapped[str] = mapped_column(String(1024), nullable=False)
    is_primary: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    party: Mapped[Party] = relationship(back_populates="contacts")


class PartyRelationship(Base):
    """Directed, typed link from ``party_id`` to ``related_party_id``."""

    __tablename__ = "party_relationships"

    id: Mapped[str] = mapped_column(ID_TYPE, primary_key=True, default=new_id)
    party_id: Mapped[str] = mapped_column(
        ForeignKey("parties.id", ondelete="CASCADE"), nullable=False, index=True
    )
    related_party_id: Mapped[str] = mapped_column(
        ForeignKey("parties.id", ondelete="CASCADE"), nullable=False, index=True
    )
    relationship_type: Mapped[RelationshipType] = mapped_column(
        "relationship", SQLEnum(RelationshipType, native_enum=False, length=32), nullable=False
    )
    relationship_metadata: Mapped[dict[str, Any]] = mapped_column(
        "metadata", JSON, nullable=False, default=dict
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    party: Mapped[Party] = relationship(
        foreign_keys=[party_id], back_populates="outgoing_relationships"
    )
    related_party: Mapped[Party] = relationship(
        foreign_keys=[related_party_id], back_populates="incoming_relationships"
    )
