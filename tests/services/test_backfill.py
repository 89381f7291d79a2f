import threading
from decimal import Decimal

import pytest
from sqlalchemy import func, select
from sqlalchemy.orm import sessionmaker

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
from partyhub.services import BackfillMigrator
from partyhub.services.backfill import STAGES


@pytest.fixture
def legacy_rows(session_factory: sessionmaker, tenants: None) -> None:
    with session_factory() as session:
        session.add_all(
            [
                Customer(
                    id="cust-gv",
                    farm_id="farm-1",
                    name="Green Valley Grocery",
                    business_name="Green Valley Grocery LLC",
                    email="orders@gv.com",
                    phone="555-0100",
                    type="B2B",
                    street="12 Orchard Rd",
                    city="Fresno",
                    state="CA",
                    zip_code="93650",
                    payment_terms="NET_15",
                    credit_limit=Decimal("2500"),
                ),
                Customer(
                    id="cust-jamie",
                    farm_id="farm-2",
                    name="Jamie Home",
                    email="jamie@home.test",
                    type="B2C",
                ),
                Supplier(
                    id="sup-seed",
                    farm_id="farm-1",
                    name="Seed Source",
                    contact="Ana",
                    email="sales@seeds.test",
                ),
            ]
        )
        session.flush()
        session.add_all(
            [
                Order(id="ord-1", order_number="SO-1001", farm_id="farm-1", customer_id="cust-gv", total=Decimal("120.50")),
                Order(id="ord-2", order_number="SO-1002", farm_id="farm-2", customer_id="cust-jamie", total=Decimal("18")),
            ]
        )
        session.commit()


def _roles(session_factory: sessionmaker, party_id: str) -> set[tuple[RoleType, str | None]]:
    with session_factory() as session:
        roles = session.execute(select(PartyRole).where(PartyRole.party_id == party_id)).scalars()
        return {(role.role_type, role.tenant_id) for role in roles}


def _count(session_factory: sessionmaker, model: type) -> int:
    with session_factory() as session:
        return int(session.execute(select(func.count()).select_from(model)).scalar())


def test_run_migrates_every_stage(session_factory: sessionmaker, legacy_rows: None) -> None:
    report = BackfillMigrator(session_factory).run()

    assert [stage.name for stage in report.stages] == list(STAGES)
    assert [report.stage(name).migrated for name in STAGES] == [2, 2, 2, 1, 2]
    assert report.total_failed == 0
    assert not report.cancelled
    assert report.unlinked_orders == []

    with session_factory() as session:
        member = session.get(User, "user-member")
        admin = session.get(User, "user-admin")
        customer = session.get(Customer, "cust-gv")
        jamie = session.get(Customer, "cust-jamie")
        farm = session.get(Farm, "farm-1")
        order = session.get(Order, "ord-1")
        assert order.customer_party_id == customer.party_id
        gv_party = session.get(Party, customer.party_id)
        assert gv_party.party_type == PartyType.ORGANIZATION
        assert gv_party.display_name == "Green Valley Grocery LLC"
        assert gv_party.legal_name == "Green Valley Grocery LLC"
        assert session.get(Party, jamie.party_id).party_type == PartyType.PERSON
        assert session.get(Party, farm.party_id).display_name == "Sunrise Microgreens"
        address = session.execute(
            select(PartyContact.value).where(
                PartyContact.party_id == customer.party_id,
                PartyContact.type == ContactType.ADDRESS,
            )
        ).scalar_one()
        assert address == "12 Orchard Rd, Fresno, CA, 93650, USA"
        gv_role = session.execute(
            select(PartyRole).where(PartyRole.party_id == customer.party_id)
        ).scalar_one()
        assert gv_role.role_metadata["payment_terms"] == "NET_15"
        assert gv_role.role_metadata["credit_limit"] == 2500.0

    assert _roles(session_factory, member.party_id) == {
        (RoleType.USER, None),
        (RoleType.EMPLOYEE, "farm-1"),
        (RoleType.EMPLOYEE, "farm-2"),
    }
    assert _roles(session_factory, admin.party_id) == {
        (RoleType.USER, None),
        (RoleType.SYSTEM_ADMIN, None),
        (RoleType.EMPLOYEE, "farm-1"),
    }
    assert _roles(session_factory, customer.party_id) == {(RoleType.CUSTOMER_B2B, "farm-1")}
    assert _roles(session_factory, jamie.party_id) == {(RoleType.CUSTOMER_B2C, "farm-2")}


def test_rerun_is_idempotent(session_factory: sessionmaker, legacy_rows: None) -> None:
    migrator = BackfillMigrator(session_factory)
    migrator.run()
    parties = _count(session_factory, Party)

    again = migrator.run()

    assert again.total_migrated == 0
    assert [again.stage(name).skipped for name in STAGES] == [2, 2, 2, 1, 2]
    assert _count(session_factory, Party) == parties
    assert migrator.verify().complete


def test_failed_row_does_not_stop_the_stage(session_factory: sessionmaker, legacy_rows: None) -> None:
    with session_factory() as session:
        session.get(Customer, "cust-jamie").name = "   "
        session.commit()

    report = BackfillMigrator(session_factory).run()

    assert report.stage("customers").migrated == 1
    assert report.stage("customers").failed == 1
    assert report.unlinked_orders == ["SO-1002"]
    assert report.stage("orders").failed == 1

    verification = BackfillMigrator(session_factory).verify()
    assert verification.customers == (1, 2)
    assert verification.orders == (1, 2)
    assert not verification.complete


def test_order_without_customer_is_reported(session_factory: sessionmaker, legacy_rows: None) -> None:
    with session_factory() as session:
        session.add(Order(id="ord-3", order_number="SO-1003", farm_id="farm-1", customer_id=None))
        session.commit()

    report = BackfillMigrator(session_factory).run()

    assert report.unlinked_orders == ["SO-1003"]
    assert report.stage("orders").migrated == 2


def test_cancel_stops_before_the_next_stage(session_factory: sessionmaker, legacy_rows: None) -> None:
    event = threading.Event()
    migrator = BackfillMigrator(session_factory, cancel_event=event)
    migrator.cancel()

    report = migrator.run()

    assert report.cancelled
    assert report.stages == []
    assert event.is_set()
    assert _count(session_factory, Party) == 0

    resumed = BackfillMigrator(session_factory).run()
    assert not resumed.cancelled
    assert resumed.stage("customers").migrated == 2


def test_verify_counts_before_any_migration(session_factory: sessionmaker, legacy_rows: None) -> None:
    report = BackfillMigrator(session_factory).verify()

    assert report.parties == 0
    assert report.farms == (0, 2)
    assert report.users == (0, 2)
    assert report.suppliers == (0, 1)
    assert not report.complete
