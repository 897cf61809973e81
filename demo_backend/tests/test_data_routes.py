"""
Tests for the bearer-protected data routes: orders, inventory, dashboard summary.
"""
import pytest

ORDER = {
    "customer_id": "CUST-001",
    "items": [
        {"sku": "SKU-001", "quantity": 2, "price_cents": 9999},
        {"sku": "SKU-002", "quantity": 1, "price_cents": 8999},
    ],
}


@pytest.mark.parametrize(
    "method,path",
    [
        ("get", "/api/orders"),
        ("get", "/api/inventory"),
        ("get", "/api/dashboard"),
    ],
)
def test_data_routes_require_bearer(client, seeded, method, path):
    r = getattr(client, method)(path)
    assert r.status_code == 401
    assert r.headers.get("WWW-Authenticate") == "Bearer"


def test_invalid_bearer_401(client, seeded):
    r = client.get("/api/orders", headers={"Authorization": "Bearer not.a.jwt"})
    assert r.status_code == 401
    assert r.headers.get("WWW-Authenticate") == "Bearer"


def test_create_order_computes_total(client, auth_headers):
    r = client.post("/api/orders", json=ORDER, headers={**auth_headers, "Idempotency-Key": "idem_test_1"})
    assert r.status_code == 201
    order = r.json()["order"]
    assert order["status"] == "pending"
    assert order["total_cents"] == 2 * 9999 + 8999
    assert order["idempotency_key"] == "idem_test_1"
    assert [i["sku"] for i in order["items"]] == ["SKU-001", "SKU-002"]


def test_create_order_replay_returns_original(client, auth_headers):
    headers = {**auth_headers, "Idempotency-Key": "idem_test_replay"}
    first = client.post("/api/orders", json=ORDER, headers=headers)
    second = client.post("/api/orders", json=ORDER, headers=headers)
    assert first.status_code == 201
    assert second.status_code == 200
    assert second.json()["order"]["id"] == first.json()["order"]["id"]
    assert client.get("/api/orders", headers=auth_headers).json()["total"] == 1


def test_create_order_key_in_body(client, auth_headers):
    body = {**ORDER, "idempotency_key": "idem_body_key"}
    first = client.post("/api/orders", json=body, headers=auth_headers)
    second = client.post("/api/orders", json=body, headers=auth_headers)
    assert (first.status_code, second.status_code) == (201, 200)


def test_create_order_without_key_gets_one(client, auth_headers):
    r = client.post("/api/orders", json=ORDER, headers=auth_headers)
    assert r.status_code == 201
    assert r.json()["order"]["idempotency_key"].startswith("idem_")


@pytest.mark.parametrize(
    "body",
    [
        {"items": ORDER["items"]},
        {"customer_id": "CUST-001", "items": []},
        {"customer_id": "CUST-001", "items": [{"sku": "SKU-001", "quantity": 0, "price_cents": 1}]},
        {"customer_id": "CUST-001", "items": [{"sku": "SKU-001", "quantity": "2", "price_cents": 1}]},
        {"customer_id": "CUST-001", "items": [{"sku": "SKU-001", "quantity": True, "price_cents": 1}]},
        {"customer_id": "CUST-001", "items": [{"sku": "SKU-001", "quantity": 1, "price_cents": False}]},
    ],
)
def test_create_order_validation(client, auth_headers, body):
    r = client.post("/api/orders", json=body, headers=auth_headers)
    assert r.status_code == 400


def test_list_orders_filters_and_pages(client, auth_headers):
    ids = []
    for n in range(3):
        r = client.post("/api/orders", json=ORDER, headers={**auth_headers, "Idempotency-Key": f"idem_page_{n}"})
        ids.append(r.json()["order"]["id"])
    client.patch(f"/api/orders/{ids[0]}", json={"status": "shipped"}, headers=auth_headers)

    r = client.get("/api/orders", params={"status": "pending"}, headers=auth_headers)
    assert r.json()["total"] == 2

    r = client.get("/api/orders", params={"limit": 1, "offset": 1}, headers=auth_headers)
    data = r.json()
    assert data["total"] == 3
    assert len(data["orders"]) == 1


def test_update_order_status(client, auth_headers):
    order_id = client.post("/api/orders", json=ORDER, headers=auth_headers).json()["order"]["id"]
    r = client.patch(f"/api/orders/{order_id}", json={"status": "confirmed"}, headers=auth_headers)
    assert r.status_code == 200
    assert r.json()["order"]["status"] == "confirmed"

    assert client.patch(f"/api/orders/{order_id}", json={"status": "lost"}, headers=auth_headers).status_code == 400
    assert client.patch("/api/orders/ord-missing", json={"status": "confirmed"}, headers=auth_headers).status_code == 404


def test_inventory_search(client, auth_headers):
    r = client.get("/api/inventory", headers=auth_headers)
    assert [i["sku"] for i in r.json()["items"]] == ["SKU-001", "SKU-002", "SKU-003", "SKU-004", "SKU-005"]

    r = client.get("/api/inventory", params={"sku": "sku-003"}, headers=auth_headers)
    assert [i["name"] for i in r.json()["items"]] == ["Widget C"]

    # Matches on name too
    r = client.get("/api/inventory", params={"sku": "widget e"}, headers=auth_headers)
    assert [i["sku"] for i in r.json()["items"]] == ["SKU-005"]


def test_inventory_update(client, auth_headers):
    r = client.patch("/api/inventory", json={"id": "2", "quantity": 40}, headers=auth_headers)
    assert r.status_code == 200
    item = r.json()
    assert (item["sku"], item["quantity"], item["minThreshold"]) == ("SKU-002", 40, 15)

    assert client.patch("/api/inventory", json={"id": "99", "quantity": 1}, headers=auth_headers).status_code == 404
    assert client.patch("/api/inventory", json={"id": "2"}, headers=auth_headers).status_code == 400
    assert client.patch("/api/inventory", json={"id": "2", "quantity": True}, headers=auth_headers).status_code == 400


def test_dashboard_summary(client, auth_headers):
    client.post("/api/orders", json=ORDER, headers=auth_headers)
    r = client.get("/api/dashboard", headers=auth_headers)
    assert r.status_code == 200
    data = r.json()
    assert data["ordersCount"] == 1
    assert data["revenueCents"] == 2 * 9999 + 8999
    # Widgets B, C and E are at or below their thresholds
    assert [i["sku"] for i in data["lowInventory"]] == ["SKU-002", "SKU-003", "SKU-005"]
    assert data["stockAlerts"] == 3
    assert len(data["recentOrders"]) == 1
