import uuid

import pytest

ADDRESS = {"street": "1 Dairy Lane", "city": "Leeds", "region": "Yorkshire", "postal": "LS1 1AA"}


@pytest.fixture
def cart(products):
    return {str(products[0]["id"]): 2, str(products[1]["id"]): 1}


# ---- catalog ----

def test_public_catalog_hides_unavailable(client, products):
    body = client.get("/products").json()
    names = [p["name"] for p in body["items"]]

    assert "Salted Butter" not in names
    assert body["count"] == 3
    assert body["loading"] is False
    assert body["error"] is None


def test_catalog_filters_and_sort(client, products):
    body = client.get("/products", params={"is_organic": True, "sort_by": "price", "order": "desc"}).json()
    assert [p["name"] for p in body["items"]] == ["Whole Milk", "Greek Yogurt"]
    assert body["items"][0]["price"] == 3.99
    assert body["items"][0]["isOrganic"] is True

    # Empty category means no category filter
    assert client.get("/products", params={"category": ""}).json()["count"] == 3


def test_catalog_pagination(client, products):
    body = client.get("/products", params={"page": 2, "page_size": 2, "sort_by": "price"}).json()
    assert body["page"] == 2
    assert [p["name"] for p in body["items"]] == ["Farmhouse Cheddar"]


def test_admin_sees_unavailable(client, products, admin_headers):
    assert client.get("/products", headers=admin_headers).json()["count"] == 4


def test_bad_sort_column(client):
    assert client.get("/products", params={"sort_by": "password_hash"}).status_code == 400


def test_single_product_and_categories(client, products):
    assert client.get(f"/products/{products[0]['id']}").json()["name"] == "Whole Milk"
    assert client.get(f"/products/{products[3]['id']}").status_code == 404
    assert client.get("/products/categories").json() == ["butter", "cheese", "milk", "yogurt"]


def test_product_admin_crud(client, admin_headers, customer_headers, data_client):
    payload = {"name": "Clotted Cream", "category": "cream", "price": 2.75, "isOrganic": True}
    assert client.post("/products", json=payload, headers=customer_headers).status_code == 403

    created = client.post("/products", json=payload, headers=admin_headers)
    assert created.status_code == 201
    pid = created.json()["id"]

    patched = client.patch(f"/products/{pid}", json={"price": 2.95, "available": False}, headers=admin_headers)
    assert patched.json()["price"] == 2.95
    assert patched.json()["available"] is False

    assert client.patch(f"/products/{pid}", json={"name": None}, headers=admin_headers).status_code == 400
    assert client.patch("/products/9999", json={"price": 1}, headers=admin_headers).status_code == 404

    assert client.delete(f"/products/{pid}", headers=admin_headers).status_code == 204
    assert data_client.find_one("products", id=pid) is None


def test_product_validation(client, admin_headers):
    resp = client.post("/products", json={"name": "", "price": -1}, headers=admin_headers)
    assert resp.status_code == 422


# ---- direct checkout ----

def test_checkout_creates_paid_order(client, customer_headers, cart, data_client):
    resp = client.post("/orders/checkout", json={"cart": cart, "address": ADDRESS}, headers=customer_headers)

    assert resp.status_code == 201
    body = resp.json()
    assert body["state"] == "complete"
    assert body["total"] == 15.96

    order = client.get(f"/orders/{body['orderId']}", headers=customer_headers).json()
    assert order["paymentStatus"] == "paid"
    assert order["orderStatus"] == "processing"
    assert {i["productName"] for i in order["items"]} == {"Whole Milk", "Farmhouse Cheddar"}


def test_checkout_incomplete_address(client, customer_headers, cart, gateway, data_client):
    resp = client.post("/orders/checkout", json={"cart": cart, "address": {**ADDRESS, "city": ""}},
                       headers=customer_headers)
    assert resp.status_code == 400
    assert "city" in resp.json()["detail"]
    assert gateway.attempts == 0
    assert data_client.select("orders", count_exact=True).count == 0


def test_checkout_payment_declined(client, customer_headers, cart, gateway, data_client):
    gateway.should_fail = True
    resp = client.post("/orders/checkout", json={"cart": cart, "address": ADDRESS}, headers=customer_headers)

    assert resp.status_code == 402
    assert data_client.select("orders", count_exact=True).count == 0


def test_checkout_empty_cart(client, customer_headers):
    resp = client.post("/orders/checkout", json={"cart": {}, "address": ADDRESS}, headers=customer_headers)
    assert resp.status_code == 400


def test_checkout_requires_login(client, cart):
    resp = client.post("/orders/checkout", json={"cart": cart, "address": ADDRESS})
    assert resp.status_code in (401, 403)


def test_checkout_retry_with_same_key(client, customer_headers, cart, data_client, gateway):
    payload = {"cart": cart, "address": ADDRESS, "idempotencyKey": uuid.uuid4().hex}
    first = client.post("/orders/checkout", json=payload, headers=customer_headers).json()
    second = client.post("/orders/checkout", json=payload, headers=customer_headers).json()

    assert first["orderId"] == second["orderId"]
    assert data_client.select("orders", count_exact=True).count == 1
    assert gateway.attempts == 1


def test_checkout_key_of_another_customer(client, customer_headers, make_user, cart, data_client, gateway):
    from utils.tokenJWT import create_access_token

    payload = {"cart": cart, "address": ADDRESS, "idempotencyKey": "same-key"}
    client.post("/orders/checkout", json=payload, headers=customer_headers)

    other = make_user(email="neighbour@example.com")
    other_headers = {"Authorization": f"Bearer {create_access_token({'sub': other['auth_id'], 'role': 'user'})}"}
    resp = client.post("/orders/checkout", json=payload, headers=other_headers)

    assert resp.status_code == 400
    assert gateway.attempts == 1
    assert data_client.select("orders", filters={"user_id": other["id"]}, count_exact=True).count == 0


# ---- order history ----

def test_order_history_is_private(client, customer_headers, make_user, cart):
    from utils.tokenJWT import create_access_token

    client.post("/orders/checkout", json={"cart": cart, "address": ADDRESS}, headers=customer_headers)

    mine = client.get("/orders", headers=customer_headers).json()
    assert mine["count"] == 1
    assert len(mine["items"][0]["items"]) == 2

    other = make_user(email="neighbour@example.com")
    other_headers = {"Authorization": f"Bearer {create_access_token({'sub': other['auth_id'], 'role': 'user'})}"}
    assert client.get("/orders", headers=other_headers).json()["count"] == 0

    order_id = mine["items"][0]["id"]
    assert client.get(f"/orders/{order_id}", headers=other_headers).status_code == 404


def test_order_history_status_filter(client, customer_headers, cart):
    client.post("/orders/checkout", json={"cart": cart, "address": ADDRESS}, headers=customer_headers)
    body = client.get("/orders", params={"order_status": "confirmed"}, headers=customer_headers).json()
    assert body == {"items": [], "count": 0, "page": 1, "pageSize": 10, "loading": False, "error": None}
