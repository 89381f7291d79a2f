"""Party service: the single mutation and query surface over the party stores."""
from __future__ import annotations

from collections.abc import Iterable, Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Mapping

from sqlalchemy.orm import Session

from partyhub.core.logger import get_logger
from partyhub.errors import ConflictError, NotFound, ValidationError
from partyhub.models import (
    CUSTOMER_ROLE_TYPES,
    ContactType,
    Party,
    PartyContact,
    PartyRelationship,
    PartyRole,
    PartyType,
    RelationshipType,
    RoleType,
)
from partyhub.repositories import (
    ContactRepository,
    LegacyRepository,
    PartyRepository,
    RelationshipRepository,
    RoleRepository,
)
from partyhub.schemas import ContactInput, RoleInput, merge_role_metadata, normalize_role_metadata

if TYPE_CHECKING:  # pragma: no cover
    from .legacy_sync import LegacySyncAdapter

LOGGER = get_logger(__name__)


@dataclass
class PartyWithDetails:
    party: Party
    roles: list[PartyRole] = field(default_factory=list)
    contacts: list[PartyContact] = field(default_factory=list)

    @property
    def id(self) -> str:
        return self.party.id

    def roles_of(self, *role_types: RoleType) -> list[PartyRole]:
        return [role for role in self.roles if role.role_type in role_types]


@dataclass(frozen=True)
class RemovedRole:
    """Snapshot of a deleted role, handed to the legacy mirror after commit."""

    role_id: str
    party_id: str
    role_type: RoleType
    tenant_id: str | None
    legacy_id: str | None = None


def pick_contact(contacts: Iterable[PartyContact], *types: ContactType) -> PartyContact | None:
    """Primary contact of the first type that has one, else the first of any listed type."""

    items = list(contacts)
    for contact_type in types:
        for contact in items:
            if contact.type == contact_type and contact.is_primary:
                return contact
    for contact_type in types:
        for contact in items:
            if contact.type == contact_type:
                return contact
    return None


def _coerce(enum_type, value: Any, label: str):
    try:
        return enum_type(value)
    except ValueError as exc:
        raise ValidationError(f"Invalid {label}: {value!r}") from exc


def _check_tenant(role_type: RoleType, tenant_id: str | None) -> str | None:
    tenant = tenant_id.strip() if isinstance(tenant_id, str) else tenant_id
    if role_type.is_global:
        if tenant:
            raise ValidationError(f"{role_type.value} is a global role and cannot carry a tenant id")
        return None
    if not tenant:
        raise ValidationError(f"{role_type.value} role requires a tenant id")
    return tenant


def _validate_contacts(contacts: Sequence[ContactInput]) -> None:
    seen_primary: set[ContactType] = set()
    for contact in contacts:
        if not contact.value or not contact.value.strip():
            raise ValidationError("Contact value must not be empty")
        if contact.is_primary:
            if contact.type in seen_primary:
                raise ValidationError(
                    f"More than one primary {ContactType(contact.type).value} contact supplied"
                )
            seen_primary.add(contact.type)


class PartyService:
    """Transactional operations over parties, roles, contacts and relationships.

    Every public operation runs inside :meth:`transaction`. Scopes nest: only
    the outermost one commits, after which the legacy mirror (when configured)
    is told about every party touched and every mirrored role removed.
    The service does not check tenant membership; callers pass an already
    guarded tenant id.
    """

    def __init__(
        self,
        session: Session,
        *,
        sync: "LegacySyncAdapter | None" = None,
        parties: PartyRepository | None = None,
        roles: RoleRepository | None = None,
        contacts: ContactRepository | None = None,
        relationships: RelationshipRepository | None = None,
        legacy: LegacyRepository | None = None,
    ) -> None:
        self._session = session
        self._sync = sync
        self._parties = parties or PartyRepository(session)
        self._roles = roles or RoleRepository(session)
        self._contacts = contacts or ContactRepository(session)
        self._relationships = relationships or RelationshipRepository(session)
        self._legacy = legacy or LegacyRepository(session)
        self._depth = 0
        self._touched: dict[str, None] = {}
        self._removed: list[RemovedRole] = []

    @property
    def session(self) -> Session:
        return self._session

    # -- transactions ------------------------------------------------------
    @contextmanager
    def transaction(self) -> Iterator[Session]:
        """Run the enclosed block atomically; nested scopes join the outer one."""

        outermost = self._depth == 0
        self._depth += 1
        try:
            yield self._session
            if outermost:
                self._session.commit()
        except Exception:
            if outermost:
                self._session.rollback()
                self._touched.clear()
                self._removed.clear()
            raise
        finally:
            self._depth -= 1
        if outermost:
            self._notify_sync()

    def _notify_sync(self) -> None:
        touched = list(self._touched)
        removed = list(self._removed)
        self._touched.clear()
        self._removed.clear()
        if self._sync is None:
            return
        for role in removed:
            self._sync.role_removed(role)
        for party_id in touched:
            self._sync.sync_party(party_id)

    def _touch(self, party_id: str) -> None:
        self._touched[party_id] = None

    def _lock(self, party_id: str) -> Party:
        party = self._parties.lock_party(party_id)
        if party is None:
            raise NotFound(f"Party {party_id} not found")
        return party

    # -- parties -----------------------------------------------------------
    def create_party(
        self,
        display_name: str,
        legal_name: str | None,
        party_type: PartyType | str,
        roles: Sequence[RoleInput] = (),
        contacts: Sequence[ContactInput] = (),
    ) -> PartyWithDetails:
        """Create a party with its roles and contacts in one transaction."""

        if not display_name or not display_name.strip():
            raise ValidationError("displayName is required")
        resolved_type = _coerce(PartyType, party_type, "party type")

        prepared_roles: list[tuple[RoleType, str | None, dict[str, Any]]] = []
        keys: set[tuple[RoleType, str | None]] = set()
        for role in roles:
            role_type = _coerce(RoleType, role.role_type, "role type")
            tenant_id = _check_tenant(role_type, role.tenant_id)
            key = (role_type, tenant_id)
            if key in keys:
                raise ValidationError(
                    f"Duplicate {role_type.value} role for tenant {tenant_id or '(global)'}"
                )
            keys.add(key)
            prepared_roles.append((role_type, tenant_id, normalize_role_metadata(role_type, role.metadata)))
        _validate_contacts(contacts)

        with self.transaction():
            party = self._parties.add(
                Party(
                    display_name=display_name.strip(),
                    legal_name=legal_name or None,
                    party_type=resolved_type,
                )
            )
            for role_type, tenant_id, metadata in prepared_roles:
                self._roles.add(
                    PartyRole(
                        party_id=party.id,
                        role_type=role_type,
                        tenant_id=tenant_id,
                        role_metadata=metadata,
                    )
                )
            for contact in contacts:
                self._contacts.add(self._new_contact(party.id, contact))
            self._touch(party.id)
            details = self._details(party)

        LOGGER.info(
            "Created party id=%s type=%s roles=%d contacts=%d",
            party.id,
            resolved_type.value,
            len(details.roles),
            len(details.contacts),
        )
        return details

    def get_party(self, party_id: str) -> PartyWithDetails | None:
        party = self._parties.get(party_id)
        if party is None:
            return None
        return self._details(party)

    def require_party(self, party_id: str) -> PartyWithDetails:
        details = self.get_party(party_id)
        if details is None:
            raise NotFound(f"Party {party_id} not found")
        return details

    def update_party(
        self,
        party_id: str,
        *,
        display_name: str | None = None,
        legal_name: str | None = None,
    ) -> PartyWithDetails:
        with self.transaction():
            party = self._lock(party_id)
            if display_name is not None:
                if not display_name.strip():
                    raise ValidationError("displayName must not be empty")
                party.display_name = display_name.strip()
            if legal_name is not None:
                party.legal_name = legal_name or None
            self._session.flush()
            self._touch(party.id)
            details = self._details(party)
        return details

    def delete_party(self, party_id: str) -> None:
        """Delete a party with all its roles, contacts and relationships.

        Checks for dependent domain records (orders) are the caller's job.
        """

        with self.transaction():
            party = self._parties.get(party_id)
            if party is None:
                raise NotFound(f"Party {party_id} not found")
            snapshots = [self._snapshot(role) for role in self._roles.list_for_party(party_id)]
            self._parties.delete(party)
            self._removed.extend(snapshots)
            self._touched.pop(party_id, None)
        LOGGER.info("Deleted party id=%s roles=%d", party_id, len(snapshots))

    # -- queries by role ---------------------------------------------------
    def get_parties_by_role(
        self, tenant_id: str, role_type: RoleType | str
    ) -> list[PartyWithDetails]:
        """Parties holding ``role_type`` within ``tenant_id``.

        For global role types the party must also hold some role in the
        tenant; the returned roles are the tenant's plus the global one.
        """

        resolved = _coerce(RoleType, role_type, "role type")
        if not tenant_id:
            raise ValidationError("tenant id is required")
        if not resolved.is_global:
            return self._parties_with_roles(tenant_id, (resolved,))

        in_tenant = set(self._roles.party_ids_in_tenant(tenant_id))
        holders = [
            party_id
            for party_id in self._roles.party_ids_with_role((resolved,), tenant_id=None)
            if party_id in in_tenant
        ]
        return self._assemble(holders, tenant_id, include_global=(resolved,))

    def get_customers(
        self, tenant_id: str, kind: RoleType | str | None = None
    ) -> list[PartyWithDetails]:
        """Parties holding a customer role in ``tenant_id``; ``kind`` narrows to B2B or B2C."""

        if kind is None:
            role_types: tuple[RoleType, ...] = tuple(sorted(CUSTOMER_ROLE_TYPES, key=lambda r: r.value))
        else:
            value = kind.value if isinstance(kind, RoleType) else str(kind).upper()
            if not value.startswith("CUSTOMER_"):
                value = f"CUSTOMER_{value}"
            resolved = _coerce(RoleType, value, "customer type")
            if not resolved.is_customer:
                raise ValidationError(f"{resolved.value} is not a customer role")
            role_types = (resolved,)
        return self._parties_with_roles(tenant_id, role_types)

    def get_suppliers(self, tenant_id: str) -> list[PartyWithDetails]:
        return self._parties_with_roles(tenant_id, (RoleType.SUPPLIER,))

    def get_employees(self, tenant_id: str) -> list[PartyWithDetails]:
        return self._parties_with_roles(tenant_id, (RoleType.EMPLOYEE,))

    def _parties_with_roles(
        self, tenant_id: str, role_types: Sequence[RoleType]
    ) -> list[PartyWithDetails]:
        party_ids = self._roles.party_ids_with_role(role_types, tenant_id=tenant_id)
        return self._assemble(party_ids, tenant_id)

    def _assemble(
        self,
        party_ids: Iterable[str],
        tenant_id: str,
        *,
        include_global: Sequence[RoleType] = (),
    ) -> list[PartyWithDetails]:
        parties = self._parties.get_many(party_ids)
        ids = [party.id for party in parties]
        roles = self._roles.list_for_parties(ids, tenant_id=tenant_id, include_global=include_global)
        contacts = self._contacts.list_for_parties(ids)
        return [
            PartyWithDetails(party=party, roles=roles[party.id], contacts=contacts[party.id])
            for party in parties
        ]

    def _details(self, party: Party) -> PartyWithDetails:
        return PartyWithDetails(
            party=party,
            roles=self._roles.list_for_party(party.id),
            contacts=self._contacts.list_for_party(party.id),
        )

    # -- roles -------------------------------------------------------------
    def add_role(
        self,
        party_id: str,
        role_type: RoleType | str,
        tenant_id: str | None = None,
        metadata: Mapping[str, Any] | None = None,
    ) -> PartyRole:
        resolved = _coerce(RoleType, role_type, "role type")
        tenant = _check_tenant(resolved, tenant_id)
        normalized = normalize_role_metadata(resolved, metadata)
        with self.transaction():
            self._lock(party_id)
            if self._roles.find(party_id, resolved, tenant) is not None:
                raise ConflictError(
                    f"Party {party_id} already holds {resolved.value} for tenant {tenant or '(global)'}"
                )
            role = self._roles.add(
                PartyRole(
                    party_id=party_id,
                    role_type=resolved,
                    tenant_id=tenant,
                    role_metadata=normalized,
                )
            )
            self._touch(party_id)
        LOGGER.info("Added role %s to party id=%s tenant=%s", resolved.value, party_id, tenant)
        return role

    def get_role(self, role_id: str) -> PartyRole | None:
        return self._roles.get(role_id)

    def update_role_metadata(
        self,
        role_id: str,
        metadata: Mapping[str, Any] | None,
        *,
        merge: bool = True,
    ) -> PartyRole:
        with self.transaction():
            role = self._roles.get(role_id)
            if role is None:
                raise NotFound(f"Role {role_id} not found")
            if merge:
                updated = merge_role_metadata(role.role_type, role.role_metadata, metadata)
            else:
                updated = normalize_role_metadata(role.role_type, metadata)
            # JSON columns only track reassignment.
            role.role_metadata = updated
            self._session.flush()
            self._touch(role.party_id)
        return role

    def remove_role(self, role_id: str) -> None:
        """Hard-delete a role; the party and its contacts stay."""

        with self.transaction():
            role = self._roles.get(role_id)
            if role is None:
                raise NotFound(f"Role {role_id} not found")
            snapshot = self._snapshot(role)
            self._roles.delete(role)
            self._removed.append(snapshot)
            self._touch(snapshot.party_id)
        LOGGER.info(
            "Removed role %s from party id=%s tenant=%s",
            snapshot.role_type.value,
            snapshot.party_id,
            snapshot.tenant_id,
        )

    def _snapshot(self, role: PartyRole) -> RemovedRole:
        """Capture a role before deletion, with the legacy row it mirrors.

        Legacy back-references are set to NULL when the party goes, so the
        row id has to be read while the party still exists.
        """

        legacy_row = None
        if role.tenant_id is not None:
            if role.role_type.is_customer:
                legacy_row = self._legacy.get_customer_for(role.party_id, role.tenant_id)
            elif role.role_type == RoleType.SUPPLIER:
                legacy_row = self._legacy.get_supplier_for(role.party_id, role.tenant_id)
        return RemovedRole(
            role_id=role.id,
            party_id=role.party_id,
            role_type=role.role_type,
            tenant_id=role.tenant_id,
            legacy_id=legacy_row.id if legacy_row is not None else None,
        )

    def has_role(
        self,
        party_id: str,
        role_type: RoleType | str,
        tenant_id: str | None = None,
    ) -> bool:
        """Whether the party holds ``role_type``; without a tenant id any tenant matches."""

        resolved = _coerce(RoleType, role_type, "role type")
        if tenant_id is None and not resolved.is_global:
            return any(role.role_type == resolved for role in self._roles.list_for_party(party_id))
        return self._roles.find(party_id, resolved, tenant_id) is not None

    # -- contacts ----------------------------------------------------------
    def _new_contact(self, party_id: str, contact: ContactInput) -> PartyContact:
        return PartyContact(
            party_id=party_id,
            type=_coerce(ContactType, contact.type, "contact type"),
            value=contact.value.strip(),
            label=contact.label,
            is_primary=bool(contact.is_primary),
        )

    def add_contact(
        self,
        party_id: str,
        type: ContactType | str,
        value: str,
        label: str | None = None,
        is_primary: bool = False,
    ) -> PartyContact:
        """Add a contact; a primary one first demotes the other primaries of its type."""

        contact_type = _coerce(ContactType, type, "contact type")
        if not value or not value.strip():
            raise ValidationError("Contact value must not be empty")
        with self.transaction():
            self._lock(party_id)
            if is_primary:
                self._contacts.clear_primary(party_id, contact_type)
            contact = self._contacts.add(
                PartyContact(
                    party_id=party_id,
                    type=contact_type,
                    value=value.strip(),
                    label=label,
                    is_primary=bool(is_primary),
                )
            )
            self._touch(party_id)
        return contact

    def get_contact(self, contact_id: str) -> PartyContact | None:
        return self._contacts.get(contact_id)

    def update_contact(
        self,
        contact_id: str,
        *,
        value: str | None = None,
        label: str | None = None,
        is_primary: bool | None = None,
    ) -> PartyContact:
        with self.transaction():
            contact = self._contacts.get(contact_id)
            if contact is None:
                raise NotFound(f"Contact {contact_id} not found")
            self._lock(contact.party_id)
            if value is not None:
                if not value.strip():
                    raise ValidationError("Contact value must not be empty")
                contact.value = value.strip()
            if label is not None:
                contact.label = label
            if is_primary is not None:
                if is_primary:
                    self._contacts.clear_primary(
                        contact.party_id, contact.type, exclude_id=contact.id
                    )
                contact.is_primary = is_primary
            self._session.flush()
            self._touch(contact.party_id)
        return contact

    def replace_contacts(
        self, party_id: str, contacts: Sequence[ContactInput]
    ) -> list[PartyContact]:
        """Swap the whole contact set of a party."""

        _validate_contacts(contacts)
        with self.transaction():
            self._lock(party_id)
            self._contacts.delete_for_party(party_id)
            created = [self._contacts.add(self._new_contact(party_id, contact)) for contact in contacts]
            self._touch(party_id)
        return created

    def delete_contact(self, contact_id: str) -> None:
        with self.transaction():
            contact = self._contacts.get(contact_id)
            if contact is None:
                raise NotFound(f"Contact {contact_id} not found")
            party_id = contact.party_id
            self._contacts.delete(contact)
            self._touch(party_id)

    def get_primary_contact(
        self, party_id: str, type: ContactType | str
    ) -> PartyContact | None:
        return self._contacts.get_primary(party_id, _coerce(ContactType, type, "contact type"))

    # -- relationships -----------------------------------------------------
    def create_relationship(
        self,
        party_id: str,
        related_party_id: str,
        relationship: RelationshipType | str,
        metadata: Mapping[str, Any] | None = None,
    ) -> PartyRelationship:
        if party_id == related_party_id:
            raise ValidationError("A party cannot have a relationship with itself")
        relationship_type = _coerce(RelationshipType, relationship, "relationship")
        with self.transaction():
            for identifier in (party_id, related_party_id):
                if self._parties.get(identifier) is None:
                    raise NotFound(f"Party {identifier} not found")
            link = self._relationships.add(
                PartyRelationship(
                    party_id=party_id,
                    related_party_id=related_party_id,
                    relationship_type=relationship_type,
                    relationship_metadata=dict(metadata or {}),
                )
            )
        return link

    def get_relationships(self, party_id: str) -> list[PartyRelationship]:
        return self._relationships.list_for_party(party_id)


__all__ = ["PartyService", "PartyWithDetails", "RemovedRole", "pick_contact"]
