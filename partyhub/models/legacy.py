"""Pre-existing denormalized tables kept consistent with the party model.

Each mirrored entity carries a nullable ``party_id`` back-reference once it
has been migrated.
"""
from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import ID_TYPE, Base, new_id, utcnow

_PARTY_FK = "parties.id"


class Farm(Base):
    """Tenant record."""

    __tablename__ = "farms"

    id: Mapped[str] = mapped_column(ID_TYPE, primary_key=True, default=new_id)
    farm_name: Mapped[str] = mapped_column(String(255), nullable=False)
    business_name: Mapped[str | None] = mapped_column(String(255))
    subdomain: Mapped[str | None] = mapped_column(String(64), unique=True)
    owner_id: Mapped[str | None] = mapped_column(ID_TYPE)
    subscription_plan: Mapped[str | None] = mapped_column(String(64))
    subscription_status: Mapped[str | None] = mapped_column(String(64))
    settings: Mapped[dict[str, Any] | None] = mapped_column(JSON)
    party_id: Mapped[str | None] = mapped_column(
        ForeignKey(_PARTY_FK, ondelete="SET NULL"), index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )


class User(Base):
    """Login account; the source of authenticated principals."""

    __tablename__ = "users"

    id: Mapped[str] = mapped_column(ID_TYPE, primary_key=True, default=new_id)
    first_name: Mapped[str] = mapped_column(String(120), nullable=False)
    last_name: Mapped[str] = mapped_column(String(120), nullable=False)
    email: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    phone: Mapped[str | None] = mapped_column(String(64))
    position: Mapped[str | None] = mapped_column(String(120))
    department: Mapped[str | None] = mapped_column(String(120))
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_system_admin: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    system_role: Mapped[str | None] = mapped_column(String(64))
    party_id: Mapped[str | None] = mapped_column(
        ForeignKey(_PARTY_FK, ondelete="SET NULL"), index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )

    memberships: Mapped[list["FarmUser"]] = relationship(back_populates="user")

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


class FarmUser(Base):
    """Tenant membership of a user."""

    __tablename__ = "farm_users"
    __table_args__ = (UniqueConstraint("farm_id", "user_id", name="uq_farm_users_farm_user"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    farm_id: Mapped[str] = mapped_column(ForeignKey("farms.id"), nullable=False, index=True)
    user_id: Mapped[str] = mapped_column(ForeignKey("users.id"), nullable=False, index=True)
    role: Mapped[str] = mapped_column(String(64), nullable=False, default="TEAM_MEMBER")
    permissions: Mapped[list[str] | None] = mapped_column(JSON)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    user: Mapped[User] = relationship(back_populates="memberships")


class Customer(Base):
    """Denormalized customer row scoped to a farm."""

    __tablename__ = "customers"

    id: Mapped[str] = mapped_column(ID_TYPE, primary_key=True, default=new_id)
    farm_id: Mapped[str] = mapped_column(ForeignKey("farms.id"), nullable=False, index=True)
    party_id: Mapped[str | None] = mapped_column(
        ForeignKey(_PARTY_FK, ondelete="SET NULL"), index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    business_name: Mapped[str | None] = mapped_column(String(255))
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    phone: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    type: Mapped[str] = mapped_column(String(8), nullable=False, default="B2C")
    street: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    city: Mapped[str] = mapped_column(String(128), nullable=False, default="")
    state: Mapped[str] = mapped_column(String(64), nullable=False, default="")
    zip_code: Mapped[str] = mapped_column(String(32), nullable=False, default="")
    country: Mapped[str] = mapped_column(String(64), nullable=False, default="USA")
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="ACTIVE")
    payment_terms: Mapped[str] = mapped_column(String(32), nullable=False, default="NET_30")
    credit_limit: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0)
    order_frequency: Mapped[str] = mapped_column(String(32), nullable=False, default="WEEKLY")
    preferred_varieties: Mapped[str] = mapped_column(String(1024), nullable=False, default="")
    tax_id: Mapped[str | None] = mapped_column(String(64))
    business_type: Mapped[str | None] = mapped_column(String(64))
    created_by: Mapped[str | None] = mapped_column(ID_TYPE)
    updated_by: Mapped[str | None] = mapped_column(ID_TYPE)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )


class Supplier(Base):
    """Denormalized supplier row scoped to a farm."""

    __tablename__ = "suppliers"

    id: Mapped[str] = mapped_column(ID_TYPE, primary_key=True, default=new_id)
    farm_id: Mapped[str] = mapped_column(ForeignKey("farms.id"), nullable=False, index=True)
    party_id: Mapped[str | None] = mapped_column(
        ForeignKey(_PARTY_FK, ondelete="SET NULL"), index=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    contact: Mapped[str | None] = mapped_column(String(255))
    email: Mapped[str | None] = mapped_column(String(255))
    phone: Mapped[str | None] = mapped_column(String(64))
    address: Mapped[str | None] = mapped_column(String(1024))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow
    )


class Order(Base):
    """Sales order; only the columns the party model relies on."""

    __tablename__ = "orders"

    id: Mapped[str] = mapped_column(ID_TYPE, primary_key=True, default=new_id)
    order_number: Mapped[str] = mapped_column(String(64), nullable=False)
    farm_id: Mapped[str] = mapped_column(ForeignKey("farms.id"), nullable=False, index=True)
    customer_id: Mapped[str | None] = mapped_column(
        ForeignKey("customers.id", ondelete="SET NULL"), index=True
    )
    customer_party_id: Mapped[str | None] = mapped_column(
        ForeignKey(_PARTY_FK, ondelete="SET NULL"), index=True
    )
    total: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False, default=0)
    order_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="PENDING")

    customer: Mapped[Customer | None] = relationship()
