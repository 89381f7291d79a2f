import json
import logging
from decimal import Decimal

import pytest
from sqlalchemy import select
from sqlalchemy.orm import Session, sessionmaker

from partyhub.models import ContactType, Customer, Farm, FarmUser, Party, PartyType, RoleType, Supplier, User
from partyhub.schemas import ContactInput, RoleInput
from partyhub.services import BackfillMigrator, LegacySyncAdapter, PartyService
from partyhub.services.legacy_sync import parse_address

ADDRESS = json.dumps(
    {"street": "12 Orchard Rd", "city": "Fresno", "state": "CA", "zipCode": "93650", "country": "USA"}
)


@pytest.fixture
def adapter(session_factory: sessionmaker, tenants: None) -> LegacySyncAdapter:
    return LegacySyncAdapter(session_factory)


@pytest.fixture
def service(session: Session, adapter: LegacySyncAdapter) -> PartyService:
    return PartyService(session, sync=adapter)


def _rows(session_factory: sessionmaker, model: type, party_id: str) -> list:
    with session_factory() as fresh:
        return list(fresh.execute(select(model).where(model.party_id == party_id)).scalars())


def _green_valley(service: PartyService, tenant: str = "farm-1", email: bool = True):
    contacts = [
        ContactInput(type=ContactType.PHONE, value="555-0100", is_primary=True),
        ContactInput(type=ContactType.ADDRESS, value=ADDRESS, is_primary=True),
    ]
    if email:
        contacts.append(ContactInput(type=ContactType.EMAIL, value="orders@gv.com", is_primary=True))
    return service.create_party(
        "Green Valley Grocery",
        "Green Valley Grocery LLC",
        PartyType.ORGANIZATION,
        roles=[
            RoleInput(
                role_type=RoleType.CUSTOMER_B2B,
                tenant_id=tenant,
                metadata={"paymentTerms": "NET_15", "creditLimit": 2500},
            )
        ],
        contacts=contacts,
    )


def test_customer_role_is_mirrored(service: PartyService, session_factory: sessionmaker) -> None:
    party = _green_valley(service)

    [row] = _rows(session_factory, Customer, party.id)
    assert row.farm_id == "farm-1"
    assert row.name == "Green Valley Grocery"
    assert row.business_name == "Green Valley Grocery LLC"
    assert row.email == "orders@gv.com"
    assert row.phone == "555-0100"
    assert row.type == "B2B"
    assert (row.street, row.city, row.state, row.zip_code) == ("12 Orchard Rd", "Fresno", "CA", "93650")
    assert row.payment_terms == "NET_15"
    assert row.credit_limit == Decimal("2500.00")


def test_contact_change_updates_the_same_row(service: PartyService, session_factory: sessionmaker) -> None:
    party = _green_valley(service)
    email = next(contact for contact in party.contacts if contact.type == ContactType.EMAIL)

    service.update_contact(email.id, value="buying@gv.com")

    [row] = _rows(session_factory, Customer, party.id)
    assert row.email == "buying@gv.com"


def test_customer_without_email_is_not_mirrored(
    service: PartyService, session_factory: sessionmaker, caplog: pytest.LogCaptureFixture
) -> None:
    with caplog.at_level(logging.WARNING):
        party = _green_valley(service, email=False)

    assert _rows(session_factory, Customer, party.id) == []
    assert any("no email" in record.getMessage() for record in caplog.records)


def test_removed_role_deletes_legacy_row(service: PartyService, session_factory: sessionmaker) -> None:
    party = _green_valley(service)
    assert len(_rows(session_factory, Customer, party.id)) == 1

    service.remove_role(party.roles[0].id)

    assert _rows(session_factory, Customer, party.id) == []
    assert service.get_party(party.id) is not None


def test_deleted_party_is_not_recreated_by_backfill(
    service: PartyService, session_factory: sessionmaker
) -> None:
    party = _green_valley(service)
    service.add_role(party.id, RoleType.SUPPLIER, "farm-1", {"contact": "Dana"})
    assert len(_rows(session_factory, Supplier, party.id)) == 1

    service.delete_party(party.id)

    with session_factory() as fresh:
        assert fresh.execute(select(Customer)).scalars().all() == []
        assert fresh.execute(select(Supplier)).scalars().all() == []

    report = BackfillMigrator(session_factory).run()

    assert report.stage("customers").migrated == 0
    assert report.stage("suppliers").migrated == 0
    with session_factory() as fresh:
        names = set(fresh.execute(select(Party.display_name)).scalars())
    assert "Green Valley Grocery" not in names


def test_supplier_role_is_mirrored(service: PartyService, session_factory: sessionmaker) -> None:
    party = service.create_party(
        "Seed Source",
        None,
        PartyType.ORGANIZATION,
        roles=[RoleInput(role_type=RoleType.SUPPLIER, tenant_id="farm-2", metadata={"contact": "Ana"})],
        contacts=[
            ContactInput(type=ContactType.EMAIL, value="sales@seeds.test"),
            ContactInput(type=ContactType.MOBILE, value="555-0177"),
        ],
    )

    [row] = _rows(session_factory, Supplier, party.id)
    assert (row.farm_id, row.name, row.contact) == ("farm-2", "Seed Source", "Ana")
    assert (row.email, row.phone, row.address) == ("sales@seeds.test", "555-0177", None)


def test_farm_role_links_existing_farm(service: PartyService, session_factory: sessionmaker) -> None:
    party = service.create_party(
        "Sunrise Microgreens Co",
        "Sunrise Microgreens LLC",
        PartyType.ORGANIZATION,
        roles=[RoleInput(role_type=RoleType.FARM, tenant_id="farm-1", metadata={"subscriptionPlan": "PRO"})],
    )

    with session_factory() as fresh:
        farm = fresh.get(Farm, "farm-1")
        assert farm.party_id == party.id
        assert farm.farm_name == "Sunrise Microgreens Co"
        assert farm.subscription_plan == "PRO"


def test_user_and_employee_roles_update_account(
    service: PartyService, session: Session, session_factory: sessionmaker
) -> None:
    party = service.create_party(
        "Maya Lopez",
        None,
        PartyType.PERSON,
        roles=[
            RoleInput(role_type=RoleType.USER, metadata={"position": "Grower"}),
            RoleInput(role_type=RoleType.EMPLOYEE, tenant_id="farm-2", metadata={"role": "MANAGER"}),
        ],
    )
    session.get(User, "user-member").party_id = party.id
    session.commit()

    service.update_party(party.id, display_name="Maya Lopez Reyes")

    with session_factory() as fresh:
        user = fresh.get(User, "user-member")
        assert (user.first_name, user.last_name, user.position) == ("Maya", "Lopez Reyes", "Grower")
        membership = fresh.execute(
            select(FarmUser).where(FarmUser.user_id == "user-member", FarmUser.farm_id == "farm-2")
        ).scalar_one()
        assert membership.role == "MANAGER"


def test_mirror_failure_never_reaches_the_caller(
    service: PartyService, session_factory: sessionmaker, caplog: pytest.LogCaptureFixture
) -> None:
    with caplog.at_level(logging.ERROR):
        party = _green_valley(service, tenant="farm-without-row")

    assert service.get_party(party.id) is not None
    assert _rows(session_factory, Customer, party.id) == []
    assert any("Legacy mirror failed" in record.getMessage() for record in caplog.records)


def test_disabled_adapter_writes_nothing(session: Session, session_factory: sessionmaker, tenants: None) -> None:
    service = PartyService(session, sync=LegacySyncAdapter(session_factory, enabled=False))

    party = _green_valley(service)

    assert _rows(session_factory, Customer, party.id) == []


def test_resolve_party(service: PartyService, adapter: LegacySyncAdapter, session_factory: sessionmaker) -> None:
    party = _green_valley(service)
    [row] = _rows(session_factory, Customer, party.id)

    assert adapter.resolve_party("customer", row.id) == party.id
    assert adapter.resolve_party("supplier", "missing") is None
    with pytest.raises(ValueError):
        adapter.resolve_party("invoice", row.id)


@pytest.mark.parametrize(
    ("value", "expected"),
    [
        (None, None),
        ("", None),
        ("1 Main St, Fresno", "1 Main St, Fresno"),
        ('{"city": "Fresno"}', {"city": "Fresno"}),
        ("[1, 2]", "[1, 2]"),
    ],
)
def test_parse_address(value, expected) -> None:
    assert parse_address(value) == expected
