"""Best-effort mirror of party writes into the legacy denormalized tables.

The party model is the source of truth. Mirroring happens after the party
transaction commits, each mirror in its own transaction; a failure is logged
and never reaches the caller.
"""
from __future__ import annotations

import json
from decimal import Decimal, InvalidOperation
from typing import Any, Callable

from sqlalchemy.orm import Session, sessionmaker

from partyhub.core.logger import get_logger, log_context
from partyhub.models import (
    ContactType,
    Customer,
    Farm,
    Party,
    PartyContact,
    PartyRole,
    PartyType,
    RoleType,
    Supplier,
    User,
)
from partyhub.repositories import ContactRepository, LegacyRepository, PartyRepository, RoleRepository

from .party_service import RemovedRole, pick_contact

LOGGER = get_logger(__name__)

LEGACY_KINDS: dict[str, type] = {
    "farm": Farm,
    "user": User,
    "customer": Customer,
    "supplier": Supplier,
}


def parse_address(value: str | None) -> dict[str, Any] | str | None:
    """Structured address when ``value`` is a JSON object, else the raw string."""

    if not value:
        return None
    try:
        parsed = json.loads(value)
    except (TypeError, ValueError):
        return value
    return parsed if isinstance(parsed, dict) else value


def _decimal(value: Any) -> Decimal | None:
    if value is None:
        return None
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError):
        return None


def _split_name(display_name: str) -> tuple[str, str]:
    first, _, last = display_name.strip().partition(" ")
    return first, last.strip()


class LegacySyncAdapter:
    """Upserts legacy rows for mirrored roles of a party."""

    def __init__(
        self,
        session_factory: Callable[[], Session] | sessionmaker,
        *,
        enabled: bool = True,
    ) -> None:
        self._session_factory = session_factory
        self.enabled = enabled

    # -- notifications from the party service ------------------------------
    def sync_party(self, party_id: str) -> None:
        """Mirror every mirrored role the party currently holds."""

        if not self.enabled:
            return
        with log_context.scope(party_id=party_id):
            try:
                role_ids = self._role_ids(party_id)
            except Exception:
                LOGGER.exception("Could not load roles for legacy mirror")
                return
            for role_id in role_ids:
                self._run(
                    f"mirror role {role_id}",
                    lambda session, rid=role_id: self._mirror_role(session, rid),
                )

    def role_removed(self, removed: RemovedRole) -> None:
        """Delete the legacy customer or supplier row for a removed role."""

        if not self.enabled or removed.tenant_id is None:
            return
        if removed.role_type.is_customer:
            model: type = Customer
        elif removed.role_type == RoleType.SUPPLIER:
            model = Supplier
        else:
            return

        def _delete(session: Session) -> None:
            legacy = LegacyRepository(session)
            if removed.legacy_id is not None:
                row = session.get(model, removed.legacy_id)
                if row is not None and row.party_id not in (None, removed.party_id):
                    row = None
            elif model is Customer:
                row = legacy.get_customer_for(removed.party_id, removed.tenant_id)
            else:
                row = legacy.get_supplier_for(removed.party_id, removed.tenant_id)
            if row is not None:
                legacy.delete(row)
                LOGGER.info(
                    "Deleted legacy %s row id=%s tenant=%s",
                    model.__tablename__,
                    row.id,
                    removed.tenant_id,
                )

        with log_context.scope(party_id=removed.party_id):
            self._run(f"remove legacy row for role {removed.role_id}", _delete)

    def resolve_party(self, kind: str, legacy_id: str) -> str | None:
        """Party id stored on a legacy row (``farm``, ``user``, ``customer``, ``supplier``)."""

        model = LEGACY_KINDS.get(kind)
        if model is None:
            raise ValueError(f"Unknown legacy kind: {kind!r}")
        session = self._session_factory()
        try:
            return LegacyRepository(session).resolve_party_id(model, legacy_id)
        finally:
            session.close()

    # -- plumbing ----------------------------------------------------------
    def _role_ids(self, party_id: str) -> list[str]:
        session = self._session_factory()
        try:
            return [role.id for role in RoleRepository(session).list_for_party(party_id)]
        finally:
            session.close()

    def _run(self, description: str, action: Callable[[Session], None]) -> None:
        session = self._session_factory()
        try:
            action(session)
            session.commit()
        except Exception:
            session.rollback()
            LOGGER.exception("Legacy mirror failed: %s", description)
        finally:
            session.close()

    def _mirror_role(self, session: Session, role_id: str) -> None:
        role = RoleRepository(session).get(role_id)
        if role is None:
            return
        party = PartyRepository(session).get(role.party_id)
        if party is None:
            return
        contacts = ContactRepository(session).list_for_party(party.id)
        legacy = LegacyRepository(session)

        if role.role_type.is_customer:
            self._mirror_customer(legacy, party, role, contacts)
        elif role.role_type == RoleType.SUPPLIER:
            self._mirror_supplier(legacy, party, role, contacts)
        elif role.role_type == RoleType.FARM:
            self._mirror_farm(legacy, party, role)
        elif role.role_type in (RoleType.USER, RoleType.EMPLOYEE):
            self._mirror_user(legacy, party, role, contacts)

    # -- mirrors -----------------------------------------------------------
    def _mirror_customer(
        self,
        legacy: LegacyRepository,
        party: Party,
        role: PartyRole,
        contacts: list[PartyContact],
    ) -> None:
        email = pick_contact(contacts, ContactType.EMAIL)
        if email is None:
            LOGGER.warning(
                "Customer has no email; legacy customers row not written tenant=%s", role.tenant_id
            )
            return
        phone = pick_contact(contacts, ContactType.PHONE, ContactType.MOBILE)
        address = pick_contact(contacts, ContactType.ADDRESS)
        metadata = role.role_metadata or {}

        row = legacy.get_customer_for(party.id, role.tenant_id)
        created = row is None
        if row is None:
            row = Customer(farm_id=role.tenant_id, party_id=party.id)

        row.name = party.display_name
        row.business_name = (
            party.legal_name or party.display_name
            if party.party_type == PartyType.ORGANIZATION
            else None
        )
        row.email = email.value
        row.phone = phone.value if phone else ""
        row.type = "B2B" if role.role_type == RoleType.CUSTOMER_B2B else "B2C"

        parsed = parse_address(address.value if address else None)
        if isinstance(parsed, dict):
            row.street = str(parsed.get("street") or "")
            row.city = str(parsed.get("city") or "")
            row.state = str(parsed.get("state") or "")
            row.zip_code = str(parsed.get("zipCode") or parsed.get("zip_code") or "")
            row.country = str(parsed.get("country") or "USA")
        elif parsed:
            row.street = parsed
        elif created:
            row.street = ""

        for column in ("payment_terms", "order_frequency", "preferred_varieties", "status"):
            if metadata.get(column) is not None:
                setattr(row, column, metadata[column])
        for column in ("tax_id", "business_type"):
            if column in metadata:
                setattr(row, column, metadata[column])
        credit_limit = _decimal(metadata.get("credit_limit"))
        if credit_limit is not None:
            row.credit_limit = credit_limit

        if created:
            legacy.add(row)
        LOGGER.debug("Mirrored customer into legacy row id=%s tenant=%s", row.id, role.tenant_id)

    def _mirror_supplier(
        self,
        legacy: LegacyRepository,
        party: Party,
        role: PartyRole,
        contacts: list[PartyContact],
    ) -> None:
        email = pick_contact(contacts, ContactType.EMAIL)
        phone = pick_contact(contacts, ContactType.PHONE, ContactType.MOBILE)
        address = pick_contact(contacts, ContactType.ADDRESS)
        metadata = role.role_metadata or {}

        row = legacy.get_supplier_for(party.id, role.tenant_id)
        created = row is None
        if row is None:
            row = Supplier(farm_id=role.tenant_id, party_id=party.id)
        row.name = party.display_name
        row.email = email.value if email else None
        row.phone = phone.value if phone else None
        row.address = address.value if address else None
        if metadata.get("contact") is not None:
            row.contact = metadata["contact"]
        if created:
            legacy.add(row)

    def _mirror_farm(self, legacy: LegacyRepository, party: Party, role: PartyRole) -> None:
        metadata = role.role_metadata or {}
        rows = legacy.get_by_party(Farm, party.id)
        row = rows[0] if rows else legacy.get_farm(role.tenant_id)
        created = row is None
        if row is None:
            row = Farm(id=role.tenant_id)
        row.party_id = party.id
        row.farm_name = party.display_name
        row.business_name = party.legal_name
        for column in ("subscription_plan", "subscription_status", "settings"):
            if column in metadata:
                setattr(row, column, metadata[column])
        if created:
            legacy.add(row)

    def _mirror_user(
        self,
        legacy: LegacyRepository,
        party: Party,
        role: PartyRole,
        contacts: list[PartyContact],
    ) -> None:
        user = legacy.get_user_by_party(party.id)
        if user is None:
            # Accounts are created by the login system, never from here.
            LOGGER.debug("No legacy user linked to party; nothing to mirror")
            return
        metadata = role.role_metadata or {}

        if role.role_type == RoleType.USER:
            first, last = _split_name(party.display_name)
            user.first_name = first
            user.last_name = last
            email = pick_contact(contacts, ContactType.EMAIL)
            if email is not None:
                user.email = email.value
            phone = pick_contact(contacts, ContactType.PHONE, ContactType.MOBILE)
            user.phone = phone.value if phone else user.phone
            for column in ("position", "department"):
                if column in metadata:
                    setattr(user, column, metadata[column])
            return

        membership = legacy.get_active_membership(role.tenant_id, user.id)
        if membership is None:
            LOGGER.debug("No active membership for employee role tenant=%s", role.tenant_id)
            return
        if metadata.get("role"):
            membership.role = metadata["role"]
        if "permissions" in metadata:
            membership.permissions = list(metadata["permissions"] or [])


__all__ = ["LEGACY_KINDS", "LegacySyncAdapter", "parse_address"]
