"""One-shot migration of legacy rows into the party model.

Stages run in order (farms, users, customers, suppliers, orders) because
later stages reference party ids created by earlier ones. Every legacy row is
migrated in its own transaction, which also writes the row's ``party_id``
back-reference; rows that already carry one are skipped, so the job can be
re-run after any interruption without creating duplicates.
"""
from __future__ import annotations

import threading
from dataclasses import dataclass, field
from typing import Any, Callable

from sqlalchemy.orm import Session, sessionmaker

from partyhub.core.logger import get_logger, log_context, progress_manager, timeit
from partyhub.models import (
    ContactType,
    Customer,
    Farm,
    Order,
    Party,
    PartyContact,
    PartyRole,
    PartyType,
    RoleType,
    Supplier,
    User,
)
from partyhub.repositories import LegacyRepository
from partyhub.schemas import ContactInput, RoleInput

from .party_service import PartyService
from .tenant_guard import user_is_system_admin

LOGGER = get_logger(__name__)

STAGES: tuple[str, ...] = ("farms", "users", "customers", "suppliers", "orders")


@dataclass
class StageResult:
    name: str
    migrated: int = 0
    skipped: int = 0
    failed: int = 0


@dataclass
class BackfillReport:
    stages: list[StageResult] = field(default_factory=list)
    unlinked_orders: list[str] = field(default_factory=list)
    cancelled: bool = False

    def stage(self, name: str) -> StageResult:
        for result in self.stages:
            if result.name == name:
                return result
        raise KeyError(name)

    @property
    def total_migrated(self) -> int:
        return sum(result.migrated for result in self.stages)

    @property
    def total_failed(self) -> int:
        return sum(result.failed for result in self.stages)


@dataclass(frozen=True)
class VerificationReport:
    """Migration coverage counts."""

    parties: int
    roles: int
    contacts: int
    farms: tuple[int, int]
    users: tuple[int, int]
    customers: tuple[int, int]
    suppliers: tuple[int, int]
    orders: tuple[int, int]

    @property
    def complete(self) -> bool:
        return all(
            linked == total
            for linked, total in (self.farms, self.users, self.customers, self.suppliers, self.orders)
        )


def _contact(type: ContactType, value: str | None, *, primary: bool = False) -> ContactInput | None:
    if not value or not str(value).strip():
        return None
    return ContactInput(type=type, value=str(value), is_primary=primary)


def _compact(items: list[Any]) -> list[Any]:
    return [item for item in items if item is not None]


def _without_none(values: dict[str, Any]) -> dict[str, Any]:
    return {key: value for key, value in values.items() if value is not None}


class BackfillMigrator:
    """Idempotent, resumable conversion of farms, users, customers and suppliers."""

    def __init__(
        self,
        session_factory: Callable[[], Session] | sessionmaker,
        *,
        cancel_event: threading.Event | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._cancel = cancel_event or threading.Event()

    def cancel(self) -> None:
        """Stop before the next stage starts; the running stage completes."""

        self._cancel.set()

    def run(self) -> BackfillReport:
        report = BackfillReport()
        handlers = {
            "farms": lambda: self._migrate_rows("farms", Farm, self._migrate_farm),
            "users": lambda: self._migrate_rows("users", User, self._migrate_user),
            "customers": lambda: self._migrate_rows("customers", Customer, self._migrate_customer),
            "suppliers": lambda: self._migrate_rows("suppliers", Supplier, self._migrate_supplier),
            "orders": lambda: self._link_orders(report),
        }
        for name in STAGES:
            if self._cancel.is_set():
                LOGGER.warning("Backfill cancelled before stage %s", name)
                report.cancelled = True
                break
            with log_context.scope(stage=name):
                with timeit(f"Backfill stage {name}", logger=LOGGER, unit="rows") as timer:
                    result = handlers[name]()
                    timer.set_total(result.migrated)
            report.stages.append(result)
            LOGGER.info(
                "Stage %s: migrated=%d skipped=%d failed=%d",
                name,
                result.migrated,
                result.skipped,
                result.failed,
            )
        if report.unlinked_orders:
            LOGGER.warning(
                "%d orders reference customers without a party: %s",
                len(report.unlinked_orders),
                ", ".join(report.unlinked_orders),
            )
        return report

    # -- generic stage loop ------------------------------------------------
    def _migrate_rows(
        self,
        name: str,
        model: type,
        migrate: Callable[[PartyService, Any], None],
    ) -> StageResult:
        result = StageResult(name=name)
        session = self._session_factory()
        try:
            legacy = LegacyRepository(session)
            result.skipped = legacy.count_linked(model)
            pending = legacy.pending_ids(model)
        finally:
            session.close()

        rows = progress_manager.track(
            pending, description=f"Migrating {name}", total=len(pending), unit="rows"
        )
        for row_id in rows:
            session = self._session_factory()
            try:
                service = PartyService(session)
                row = session.get(model, row_id)
                if row is None or row.party_id is not None:
                    result.skipped += 1
                    continue
                with service.transaction():
                    migrate(service, row)
                result.migrated += 1
            except Exception:
                result.failed += 1
                LOGGER.exception("Failed to migrate %s row id=%s", name, row_id)
            finally:
                session.close()
        return result

    # -- per-row migrations ------------------------------------------------
    def _migrate_farm(self, service: PartyService, farm: Farm) -> None:
        details = service.create_party(
            farm.farm_name,
            farm.business_name or farm.farm_name,
            PartyType.ORGANIZATION,
            roles=[
                RoleInput(
                    role_type=RoleType.FARM,
                    tenant_id=farm.id,
                    metadata=_without_none(
                        {
                            "subscription_plan": farm.subscription_plan,
                            "subscription_status": farm.subscription_status,
                            "settings": farm.settings,
                        }
                    ),
                )
            ],
        )
        farm.party_id = details.id

    def _migrate_user(self, service: PartyService, user: User) -> None:
        legacy = LegacyRepository(service.session)
        is_admin = user_is_system_admin(user)
        roles = [
            RoleInput(
                role_type=RoleType.USER,
                metadata=_without_none(
                    {
                        "is_system_admin": is_admin,
                        "system_role": user.system_role,
                        "position": user.position,
                        "department": user.department,
                    }
                ),
            )
        ]
        if is_admin:
            roles.append(RoleInput(role_type=RoleType.SYSTEM_ADMIN, metadata={"notes": "backfill"}))
        for membership in legacy.active_memberships_for_user(user.id):
            roles.append(
                RoleInput(
                    role_type=RoleType.EMPLOYEE,
                    tenant_id=membership.farm_id,
                    metadata=_without_none(
                        {"role": membership.role, "permissions": membership.permissions}
                    ),
                )
            )
        details = service.create_party(
            f"{user.first_name} {user.last_name}".strip() or user.email,
            None,
            PartyType.PERSON,
            roles=roles,
            contacts=_compact(
                [
                    _contact(ContactType.EMAIL, user.email, primary=True),
                    _contact(ContactType.PHONE, user.phone, primary=True),
                ]
            ),
        )
        user.party_id = details.id

    def _migrate_customer(self, service: PartyService, customer: Customer) -> None:
        is_business = customer.type == "B2B" or bool(customer.business_name)
        address = ", ".join(
            part
            for part in (customer.street, customer.city, customer.state, customer.zip_code, customer.country)
            if part
        )
        details = service.create_party(
            (customer.business_name or "").strip() or customer.name,
            customer.business_name,
            PartyType.ORGANIZATION if is_business else PartyType.PERSON,
            roles=[
                RoleInput(
                    role_type=RoleType.CUSTOMER_B2B if customer.type == "B2B" else RoleType.CUSTOMER_B2C,
                    tenant_id=customer.farm_id,
                    metadata=_without_none(
                        {
                            "tax_id": customer.tax_id,
                            "payment_terms": customer.payment_terms,
                            "credit_limit": float(customer.credit_limit)
                            if customer.credit_limit is not None
                            else None,
                            "order_frequency": customer.order_frequency,
                            "preferred_varieties": customer.preferred_varieties or None,
                            "business_type": customer.business_type,
                            "status": customer.status,
                        }
                    ),
                )
            ],
            contacts=_compact(
                [
                    _contact(ContactType.EMAIL, customer.email, primary=True),
                    _contact(ContactType.PHONE, customer.phone, primary=True),
                    _contact(ContactType.ADDRESS, address, primary=True),
                ]
            ),
        )
        customer.party_id = details.id

    def _migrate_supplier(self, service: PartyService, supplier: Supplier) -> None:
        details = service.create_party(
            supplier.name,
            None,
            PartyType.ORGANIZATION,
            roles=[
                RoleInput(
                    role_type=RoleType.SUPPLIER,
                    tenant_id=supplier.farm_id,
                    metadata=_without_none({"contact": supplier.contact}),
                )
            ],
            contacts=_compact(
                [
                    _contact(ContactType.EMAIL, supplier.email, primary=True),
                    _contact(ContactType.PHONE, supplier.phone, primary=True),
                    _contact(ContactType.ADDRESS, supplier.address, primary=True),
                ]
            ),
        )
        supplier.party_id = details.id

    def _link_orders(self, report: BackfillReport) -> StageResult:
        result = StageResult(name="orders")
        session = self._session_factory()
        try:
            legacy = LegacyRepository(session)
            result.skipped = legacy.count_linked_orders()
            for order in list(legacy.unlinked_orders()):
                customer = order.customer
                if customer is None or customer.party_id is None:
                    report.unlinked_orders.append(order.order_number)
                    result.failed += 1
                    continue
                order.customer_party_id = customer.party_id
                result.migrated += 1
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()
        return result

    # -- verification ------------------------------------------------------
    def verify(self) -> VerificationReport:
        session = self._session_factory()
        try:
            legacy = LegacyRepository(session)

            def coverage(model: type) -> tuple[int, int]:
                return legacy.count_linked(model), legacy.count(model)

            report = VerificationReport(
                parties=legacy.count(Party),
                roles=legacy.count(PartyRole),
                contacts=legacy.count(PartyContact),
                farms=coverage(Farm),
                users=coverage(User),
                customers=coverage(Customer),
                suppliers=coverage(Supplier),
                orders=(legacy.count_linked_orders(), legacy.count(Order)),
            )
        finally:
            session.close()
        LOGGER.info(
            "Verification: parties=%d roles=%d contacts=%d farms=%s users=%s customers=%s "
            "suppliers=%s orders=%s",
            report.parties,
            report.roles,
            report.contacts,
            "%d/%d" % report.farms,
            "%d/%d" % report.users,
            "%d/%d" % report.customers,
            "%d/%d" % report.suppliers,
            "%d/%d" % report.orders,
        )
        return report


__all__ = [
    "BackfillMigrator",
    "BackfillReport",
    "STAGES",
    "StageResult",
    "VerificationReport",
]
