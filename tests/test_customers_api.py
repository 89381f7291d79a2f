from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import delete, select
from sqlalchemy.orm import sessionmaker

from partyhub.models import Customer, Order

GREEN_VALLEY = {
    "displayName": "Green Valley Grocery",
    "legalName": "Green Valley Grocery LLC",
    "partyType": "ORGANIZATION",
    "roleType": "CUSTOMER_B2B",
    "contacts": [
        {"type": "EMAIL", "value": "orders@gv.com", "isPrimary": True},
        {"type": "PHONE", "value": "555-0100", "isPrimary": True},
        {
            "type": "ADDRESS",
            "value": '{"street": "12 Orchard Rd", "city": "Fresno", "state": "CA", "zipCode": "93650"}',
            "isPrimary": True,
        },
    ],
    "metadata": {"paymentTerms": "NET_15", "creditLimit": 2500},
}


def _create(client: TestClient, headers: dict, payload: dict | None = None) -> dict:
    response = client.post("/parties/customers", json=payload or GREEN_VALLEY, headers=headers)
    assert response.status_code == 201, response.text
    return response.json()["data"]


def test_create_customer_is_scoped_to_the_calling_farm(client: TestClient, auth_headers) -> None:
    created = _create(client, auth_headers("farm-1"))

    assert created["party"]["displayName"] == "Green Valley Grocery"
    assert created["role"]["roleType"] == "CUSTOMER_B2B"
    assert created["role"]["tenantId"] == "farm-1"
    assert created["primaryEmail"] == "orders@gv.com"
    assert created["primaryAddress"]["city"] == "Fresno"
    assert created["totalOrders"] == 0

    farm_one = client.get("/parties/customers", headers=auth_headers("farm-1")).json()
    farm_two = client.get("/parties/customers", headers=auth_headers("farm-2")).json()

    assert farm_one["success"] is True
    assert [item["party"]["id"] for item in farm_one["data"]] == [created["party"]["id"]]
    assert farm_two == {"success": True, "data": []}


def test_customer_is_invisible_from_other_farm(client: TestClient, auth_headers) -> None:
    party_id = _create(client, auth_headers("farm-1"))["party"]["id"]

    response = client.get(f"/parties/customers/{party_id}", headers=auth_headers("farm-2"))

    assert response.status_code == 404
    assert response.json()["success"] is False


def test_list_filters_by_type(client: TestClient, auth_headers) -> None:
    headers = auth_headers()
    _create(client, headers)
    _create(
        client,
        headers,
        {
            "displayName": "Jamie Home",
            "partyType": "PERSON",
            "roleType": "CUSTOMER_B2C",
            "contacts": [{"type": "EMAIL", "value": "jamie@home.test"}],
        },
    )

    b2c = client.get("/parties/customers", params={"type": "B2C"}, headers=headers).json()["data"]
    everyone = client.get("/parties/customers", headers=headers).json()["data"]

    assert [item["party"]["displayName"] for item in b2c] == ["Jamie Home"]
    assert len(everyone) == 2


def test_create_legacy_row_is_mirrored(
    client: TestClient, auth_headers, session_factory: sessionmaker
) -> None:
    party_id = _create(client, auth_headers())["party"]["id"]

    with session_factory() as session:
        row = session.execute(select(Customer).where(Customer.party_id == party_id)).scalar_one()
    assert (row.farm_id, row.email, row.type, row.city) == ("farm-1", "orders@gv.com", "B2B", "Fresno")


@pytest.mark.parametrize(
    ("change", "message"),
    [
        ({"roleType": "SUPPLIER"}, "roleType"),
        ({"roleType": "NOT_A_ROLE"}, "roleType"),
        ({"displayName": "   "}, "displayName"),
        ({"contacts": [{"type": "EMAIL", "value": ""}]}, "contact"),
    ],
)
def test_create_rejects_invalid_payloads(client: TestClient, auth_headers, change, message) -> None:
    response = client.post("/parties/customers", json={**GREEN_VALLEY, **change}, headers=auth_headers())

    assert response.status_code == 400
    body = response.json()
    assert body["success"] is False
    assert message in body["error"]


def test_update_customer(client: TestClient, auth_headers, session_factory: sessionmaker) -> None:
    headers = auth_headers()
    party_id = _create(client, headers)["party"]["id"]

    response = client.put(
        f"/parties/customers/{party_id}",
        json={
            "displayName": "Green Valley Market",
            "contacts": [{"type": "EMAIL", "value": "buying@gv.com", "isPrimary": True}],
            "metadata": {"creditLimit": 5000},
        },
        headers=headers,
    )

    assert response.status_code == 200, response.text
    data = response.json()["data"]
    assert data["party"]["displayName"] == "Green Valley Market"
    assert data["primaryEmail"] == "buying@gv.com"
    assert data["primaryPhone"] is None
    assert data["role"]["metadata"] == {"payment_terms": "NET_15", "credit_limit": 5000.0}

    with session_factory() as session:
        row = session.execute(select(Customer).where(Customer.party_id == party_id)).scalar_one()
    assert (row.name, row.email, row.credit_limit) == ("Green Valley Market", "buying@gv.com", Decimal("5000"))


def test_delete_with_orders_is_rejected_until_orders_are_gone(
    client: TestClient, auth_headers, session_factory: sessionmaker
) -> None:
    headers = auth_headers()
    party_id = _create(client, headers)["party"]["id"]
    with session_factory() as session:
        session.add(
            Order(
                id="ord-1",
                order_number="SO-1001",
                farm_id="farm-1",
                customer_party_id=party_id,
                total=Decimal("120.50"),
            )
        )
        session.commit()

    detail = client.get(f"/parties/customers/{party_id}", headers=headers).json()["data"]
    assert detail["totalOrders"] == 1
    assert detail["totalRevenue"] == pytest.approx(120.5)

    blocked = client.delete(f"/parties/customers/{party_id}", headers=headers)
    assert blocked.status_code == 400
    assert "orders" in blocked.json()["error"]

    with session_factory() as session:
        session.execute(delete(Order).where(Order.id == "ord-1"))
        session.commit()

    deleted = client.delete(f"/parties/customers/{party_id}", headers=headers)
    assert deleted.status_code == 200
    assert deleted.json()["data"] == {"id": party_id, "partyDeleted": True}
    assert client.get(f"/parties/customers/{party_id}", headers=headers).status_code == 404
    with session_factory() as session:
        assert session.execute(select(Customer).where(Customer.party_id == party_id)).first() is None


def test_delete_keeps_party_holding_other_roles(client: TestClient, auth_headers) -> None:
    headers = auth_headers()
    party_id = _create(client, headers)["party"]["id"]
    added = client.post(
        f"/parties/{party_id}/roles",
        json={"roleType": "SUPPLIER"},
        headers=headers,
    )
    assert added.status_code == 201, added.text

    deleted = client.delete(f"/parties/customers/{party_id}", headers=headers)

    assert deleted.json()["data"]["partyDeleted"] is False
    party = client.get(f"/parties/{party_id}", headers=headers).json()["data"]
    assert [role["roleType"] for role in party["roles"]] == ["SUPPLIER"]


def test_tenant_and_credentials_are_required(client: TestClient, auth_headers) -> None:
    missing_tenant = client.get("/parties/customers", headers=auth_headers(None))
    assert missing_tenant.status_code == 400
    assert missing_tenant.json()["success"] is False

    via_query = client.get("/parties/customers", params={"farmId": "farm-2"}, headers=auth_headers(None))
    assert via_query.status_code == 200

    assert client.get("/parties/customers", headers={"X-Farm-ID": "farm-1"}).status_code == 401
    assert client.get("/parties/customers", headers=auth_headers("farm-3")).status_code == 403


def test_system_admin_is_refused_on_tenant_paths(client: TestClient, auth_headers) -> None:
    response = client.get("/parties/customers", headers=auth_headers("farm-1", user_id="user-admin"))

    assert response.status_code == 403
    assert response.json()["code"] == "FORBIDDEN"


def test_request_id_is_echoed(client: TestClient, auth_headers) -> None:
    headers = {**auth_headers(), "X-Request-ID": "req-42"}

    response = client.get("/parties/customers", headers=headers)

    assert response.headers["X-Request-ID"] == "req-42"
