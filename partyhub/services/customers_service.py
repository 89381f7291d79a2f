"""Customer use cases behind the ``/parties/customers`` endpoints."""
from __future__ import annotations

from decimal import Decimal

from partyhub.core.logger import get_logger
from partyhub.errors import NotFound, ValidationError
from partyhub.models import CUSTOMER_ROLE_TYPES, ContactType, RoleType
from partyhub.repositories import LegacyRepository, OrderAggregate
from partyhub.schemas import (
    ContactOut,
    CreateCustomerRequest,
    CustomerOut,
    PartyOut,
    RoleInput,
    RoleOut,
    UpdateCustomerRequest,
)

from .legacy_sync import parse_address
from .party_service import PartyService, PartyWithDetails, pick_contact
from .tenant_guard import TenantAccessGuard, TenantContext

LOGGER = get_logger(__name__)


class CustomersService:
    """Tenant-scoped customer listing, creation, update and deletion."""

    def __init__(
        self,
        parties: PartyService,
        guard: TenantAccessGuard,
        legacy: LegacyRepository | None = None,
    ) -> None:
        self._parties = parties
        self._guard = guard
        self._legacy = legacy or LegacyRepository(parties.session)

    def list_customers(self, context: TenantContext, kind: str | None = None) -> list[CustomerOut]:
        parties = self._parties.get_customers(context.tenant_id, kind)
        visible = self._guard.exclude_system_admins(context, parties)
        aggregates = self._legacy.order_aggregates((item.id for item in visible), context.tenant_id)
        return [self._entry(item, aggregates[item.id]) for item in visible]

    def get_customer(self, context: TenantContext, party_id: str) -> CustomerOut:
        details = self._load(context, party_id)
        return self._entry(details, self._legacy.order_aggregate(party_id, context.tenant_id))

    def create_customer(
        self, context: TenantContext, request: CreateCustomerRequest
    ) -> CustomerOut:
        role_type = RoleType(request.role_type)
        if role_type not in CUSTOMER_ROLE_TYPES:
            raise ValidationError("roleType must be CUSTOMER_B2B or CUSTOMER_B2C")
        details = self._parties.create_party(
            request.display_name,
            request.legal_name,
            request.party_type,
            roles=[
                RoleInput(
                    role_type=role_type,
                    tenant_id=context.tenant_id,
                    metadata=request.metadata,
                )
            ],
            contacts=request.contacts,
        )
        LOGGER.info("Created customer party id=%s tenant=%s", details.id, context.tenant_id)
        empty = OrderAggregate(total_orders=0, total_revenue=Decimal(0), last_order_date=None)
        return self._entry(details, empty)

    def update_customer(
        self,
        context: TenantContext,
        party_id: str,
        request: UpdateCustomerRequest,
    ) -> CustomerOut:
        details = self._load(context, party_id)
        with self._parties.transaction():
            if request.display_name is not None or request.legal_name is not None:
                self._parties.update_party(
                    party_id,
                    display_name=request.display_name,
                    legal_name=request.legal_name,
                )
            if request.contacts is not None:
                self._parties.replace_contacts(party_id, request.contacts)
            if request.metadata is not None:
                for role in details.roles_of(*CUSTOMER_ROLE_TYPES):
                    self._parties.update_role_metadata(role.id, request.metadata, merge=True)
        return self.get_customer(context, party_id)

    def delete_customer(self, context: TenantContext, party_id: str) -> bool:
        """Remove the tenant's customer roles; returns ``True`` when the party itself went too.

        A customer with orders in the tenant cannot be deleted.
        """

        details = self._load(context, party_id)
        if self._legacy.count_orders(party_id, context.tenant_id):
            raise ValidationError("Customer has existing orders; archive instead of delete")

        with self._parties.transaction():
            legacy_row = self._legacy.get_customer_for(party_id, context.tenant_id)
            if legacy_row is not None:
                self._legacy.delete(legacy_row)
            for role in details.roles_of(*CUSTOMER_ROLE_TYPES):
                self._parties.remove_role(role.id)
            remaining = self._parties.get_party(party_id)
            party_deleted = remaining is not None and not remaining.roles
            if party_deleted:
                self._parties.delete_party(party_id)
        LOGGER.info(
            "Deleted customer party id=%s tenant=%s party_removed=%s",
            party_id,
            context.tenant_id,
            party_deleted,
        )
        return party_deleted

    # -- helpers -----------------------------------------------------------
    def _load(self, context: TenantContext, party_id: str) -> PartyWithDetails:
        details = self._parties.get_party(party_id)
        if details is None:
            raise NotFound(f"Customer {party_id} not found")
        self._guard.ensure_visible(context, details)
        tenant_roles = [
            role
            for role in details.roles_of(*CUSTOMER_ROLE_TYPES)
            if role.tenant_id == context.tenant_id
        ]
        if not tenant_roles:
            raise NotFound(f"Customer {party_id} not found")
        return PartyWithDetails(party=details.party, roles=tenant_roles, contacts=details.contacts)

    @staticmethod
    def _entry(details: PartyWithDetails, aggregate: OrderAggregate) -> CustomerOut:
        customer_roles = details.roles_of(*CUSTOMER_ROLE_TYPES)
        email = pick_contact(details.contacts, ContactType.EMAIL)
        phone = pick_contact(details.contacts, ContactType.PHONE, ContactType.MOBILE)
        address = pick_contact(details.contacts, ContactType.ADDRESS)
        return CustomerOut(
            party=PartyOut.from_model(details.party),
            role=RoleOut.from_model(customer_roles[0]) if customer_roles else None,
            contacts=[ContactOut.from_model(contact) for contact in details.contacts],
            primary_email=email.value if email else None,
            primary_phone=phone.value if phone else None,
            primary_address=parse_address(address.value) if address else None,
            total_orders=aggregate.total_orders,
            total_revenue=float(aggregate.total_revenue),
            last_order_date=aggregate.last_order_date,
        )
