import pytest
from fastapi.testclient import TestClient

from stockledger.database import get_db
from stockledger.main import app
from stockledger.services import auth_service


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


def _auth(user) -> dict:
    return {"Authorization": f"Bearer {auth_service.create_access_token(user.id, user.username)}"}


@pytest.fixture
def staff(db):
    return auth_service.create_user(db, "packer", role="staff")


@pytest.fixture
def listed_product(client, seller):
    resp = client.post(
        "/api/v1/products",
        json={"sku": "MUG-1", "name": "Mug", "price": 9.5, "quantity": 10},
        headers=_auth(seller),
    )
    assert resp.status_code == 201
    return resp.json()


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_identity_is_required(client, seller):
    assert client.get("/api/v1/auth/me").status_code == 401
    assert client.get("/api/v1/auth/me", headers={"Authorization": "Bearer junk"}).status_code == 401

    resp = client.get("/api/v1/auth/me", headers=_auth(seller))
    assert resp.status_code == 200
    assert resp.json()["role"] == "seller"


def test_token_cookie_is_accepted(client, seller):
    client.cookies.set("token", auth_service.create_access_token(seller.id, seller.username))
    assert client.get("/api/v1/auth/me").json()["username"] == "seller-a"


def test_created_product_records_initial_stock(client, seller, listed_product):
    assert listed_product["quantity"] == 10
    assert listed_product["is_low_stock"] is True

    logs = client.get(f"/api/v1/products/{listed_product['id']}/inventory-logs", headers=_auth(seller)).json()
    assert [(e["operation_type"], e["stock_before"], e["stock_after"]) for e in logs] == [("restock", 0, 10)]
    assert logs[0]["performed_by"] == seller.id
    assert logs[0]["product_name"] == "Mug"


def test_apply_inventory_change(client, seller, listed_product):
    resp = client.post(
        f"/api/v1/products/{listed_product['id']}/inventory",
        json={"operation_type": "Restock", "quantity": 15, "reason": "delivery"},
        headers=_auth(seller),
    )

    assert resp.status_code == 200
    body = resp.json()
    assert (body["stock_before"], body["stock_after"], body["quantity_delta"]) == (10, 25, 15)
    assert body["operation_type"] == "restock"
    assert body["is_low_stock"] is False

    product = client.get(f"/api/v1/products/{listed_product['id']}", headers=_auth(seller)).json()
    assert product["quantity"] == 25


def test_error_kinds_are_distinguishable(client, seller, listed_product):
    url = f"/api/v1/products/{listed_product['id']}/inventory"

    resp = client.post(url, json={"operation_type": "sale", "quantity": 100}, headers=_auth(seller))
    assert resp.status_code == 409
    assert resp.json() == {
        "code": "insufficient_stock",
        "detail": resp.json()["detail"],
        "requested": 100,
        "available": 10,
    }

    resp = client.post(url, json={"operation_type": "shipped", "quantity": 1}, headers=_auth(seller))
    assert resp.status_code == 422
    assert resp.json()["code"] == "invalid_operation_type"
    assert "shipped" in resp.json()["detail"]

    resp = client.post(url, json={"operation_type": "sale", "quantity": 0}, headers=_auth(seller))
    assert resp.status_code == 422
    assert resp.json()["code"] == "invalid_quantity"

    resp = client.post(url, json={"operation_type": "adjustment", "quantity": -1}, headers=_auth(seller))
    assert resp.status_code == 422
    assert "adjusted stock cannot be negative" in resp.json()["detail"]

    resp = client.post(url, json={"operation_type": "restock", "quantity": 10**20}, headers=_auth(seller))
    assert resp.status_code == 422
    assert resp.json()["code"] == "invalid_quantity"

    resp = client.post(url, json={"operation_type": "sale"}, headers=_auth(seller))
    assert resp.status_code == 422
    assert resp.json()["code"] == "invalid_quantity"

    # nothing above touched the stock
    product = client.get(f"/api/v1/products/{listed_product['id']}", headers=_auth(seller)).json()
    assert product["quantity"] == 10


def test_string_quantity_is_rejected_by_the_schema(client, seller, listed_product):
    resp = client.post(
        f"/api/v1/products/{listed_product['id']}/inventory",
        json={"operation_type": "sale", "quantity": "5"},
        headers=_auth(seller),
    )
    assert resp.status_code == 422


def test_sellers_cannot_touch_other_sellers_products(client, other_seller, staff, listed_product):
    url = f"/api/v1/products/{listed_product['id']}"

    assert client.get(url, headers=_auth(other_seller)).status_code == 404
    resp = client.post(f"{url}/inventory", json={"operation_type": "sale", "quantity": 1}, headers=_auth(other_seller))
    assert resp.status_code == 404
    assert client.get(f"{url}/inventory-logs", headers=_auth(other_seller)).status_code == 404

    assert client.post(f"{url}/inventory", json={"operation_type": "sale", "quantity": 1}, headers=_auth(staff)).status_code == 403


def test_audit_log_is_owner_filtered(client, admin, seller, other_seller, listed_product):
    other = client.post(
        "/api/v1/products",
        json={"sku": "CUP-1", "name": "Cup", "price": 3.0, "quantity": 2},
        headers=_auth(other_seller),
    ).json()
    client.post(
        f"/api/v1/products/{listed_product['id']}/inventory",
        json={"operation_type": "sale", "quantity": 1},
        headers=_auth(seller),
    )

    mine = client.get("/api/v1/inventory/logs", headers=_auth(seller)).json()
    assert [(e["product_id"], e["operation_type"]) for e in mine] == [
        (listed_product["id"], "sale"),
        (listed_product["id"], "restock"),
    ]

    everything = client.get("/api/v1/inventory/logs", headers=_auth(admin)).json()
    assert {e["product_id"] for e in everything} == {listed_product["id"], other["id"]}
    assert len(everything) == 3

    restocks = client.get("/api/v1/inventory/logs", params={"operation_type": "restock"}, headers=_auth(admin)).json()
    assert len(restocks) == 2

    resp = client.get("/api/v1/inventory/logs", params={"operation_type": "bogus"}, headers=_auth(admin))
    assert resp.status_code == 422


def test_order_checkout_and_cancel(client, admin, listed_product):
    resp = client.post(
        "/api/v1/orders",
        json={"items": [{"product_id": listed_product["id"], "quantity": 4}]},
        headers=_auth(admin),
    )
    assert resp.status_code == 201
    order = resp.json()
    assert order["status"] == "confirmed"

    product = client.get(f"/api/v1/products/{listed_product['id']}", headers=_auth(admin)).json()
    assert product["quantity"] == 6

    resp = client.post(f"/api/v1/orders/{order['id']}/cancel", headers=_auth(admin))
    assert resp.status_code == 200
    assert resp.json()["status"] == "cancelled"

    resp = client.post(f"/api/v1/orders/{order['id']}/cancel", headers=_auth(admin))
    assert resp.status_code == 400
    assert resp.json()["code"] == "invalid_order_state"

    product = client.get(f"/api/v1/products/{listed_product['id']}", headers=_auth(admin)).json()
    assert product["quantity"] == 10


def test_order_beyond_stock_is_a_conflict(client, staff, listed_product):
    resp = client.post(
        "/api/v1/orders",
        json={"items": [{"product_id": listed_product["id"], "quantity": 11}]},
        headers=_auth(staff),
    )
    assert resp.status_code == 409
    assert resp.json()["code"] == "insufficient_stock"

    orders = client.get("/api/v1/orders", headers=_auth(staff)).json()
    assert [o["status"] for o in orders] == ["cancelled"]
