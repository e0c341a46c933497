from decimal import Decimal

import pytest

from schemas.order import DeliveryAddress
from services.orders import create_order

ADDRESS = DeliveryAddress(street="1 Dairy Lane", city="Leeds", region="Yorkshire", postal="LS1 1AA")


@pytest.fixture
def orders(data_client, customer):
    return [
        create_order(data_client, user_id=customer["id"], address=ADDRESS, lines=[], total=Decimal("12.00"),
                     order_status="processing", payment_status="paid"),
        create_order(data_client, user_id=customer["id"], address=ADDRESS, lines=[], total=Decimal("8.50"),
                     order_status="pending", payment_status="pending"),
    ]


def test_admin_routes_require_admin(client, customer_headers):
    assert client.get("/admin/orders", headers=customer_headers).status_code == 403
    assert client.get("/admin/customers", headers=customer_headers).status_code == 403
    assert client.get("/admin/logs", headers=customer_headers).status_code == 403


def test_filter_by_status_with_no_matches(client, admin_headers, orders):
    body = client.get("/admin/orders", params={"order_status": "confirmed"}, headers=admin_headers).json()
    assert body["items"] == []
    assert body["count"] == 0
    assert body["loading"] is False
    assert body["error"] is None


def test_list_filter_and_sort(client, admin_headers, orders):
    body = client.get("/admin/orders", params={"payment_status": "", "sort_by": "total_amount", "order": "asc"},
                      headers=admin_headers).json()
    assert [o["totalAmount"] for o in body["items"]] == [8.5, 12.0]

    paid = client.get("/admin/orders", params={"payment_status": "paid"}, headers=admin_headers).json()
    assert paid["count"] == 1


def test_status_changes(client, admin_headers, orders, db):
    oid = orders[0]["id"]
    resp = client.patch(f"/admin/orders/{oid}/status", json={"status": "confirmed"}, headers=admin_headers)
    assert resp.status_code == 200
    assert resp.json()["orderStatus"] == "confirmed"

    resp = client.patch(f"/admin/orders/{oid}/status", json={"status": "failed", "type": "payment"},
                        headers=admin_headers)
    assert resp.json()["paymentStatus"] == "failed"

    client.patch(f"/admin/orders/{oid}/status", json={"status": "cancelled"}, headers=admin_headers)
    resp = client.patch(f"/admin/orders/{oid}/status", json={"status": "processing"}, headers=admin_headers)
    assert resp.status_code == 400

    assert client.patch("/admin/orders/999/status", json={"status": "confirmed"},
                        headers=admin_headers).status_code == 404


def test_delete_order(client, admin_headers, orders, data_client):
    oid = orders[1]["id"]
    assert client.delete(f"/admin/orders/{oid}", headers=admin_headers).status_code == 204
    assert data_client.find_one("orders", id=oid) is None
    assert client.delete(f"/admin/orders/{oid}", headers=admin_headers).status_code == 404


def test_customers(client, admin_headers, customer, make_user, orders):
    make_user(email="fresh@example.com", city="York")

    body = client.get("/admin/customers", headers=admin_headers).json()
    # Admins are not customers
    assert body["count"] == 2
    assert client.get("/admin/customers", params={"city": "York"}, headers=admin_headers).json()["count"] == 1

    detail = client.get(f"/admin/customers/{customer['id']}", headers=admin_headers).json()
    assert detail["email"] == customer["email"]


def test_customer_stats(client, admin_headers, customer, make_user, orders, data_client):
    make_user(email="fresh@example.com")
    data_client.update("orders", orders[0]["id"], {"recurring_delivery": True})

    stats = client.get("/admin/customers/stats", headers=admin_headers).json()
    assert stats == {"total": 2, "active": 1, "new": 2, "recurring": 1}


def test_delete_customer(client, admin, admin_headers, customer, make_user, orders, data_client):
    assert client.delete(f"/admin/customers/{customer['id']}", headers=admin_headers).status_code == 409
    assert client.delete(f"/admin/customers/{admin['id']}", headers=admin_headers).status_code == 400

    idle = make_user(email="idle@example.com")
    data_client.upsert("delivery_preferences", {"user_id": idle["id"], "days": ["monday"]}, on="user_id")
    assert client.delete(f"/admin/customers/{idle['id']}", headers=admin_headers).status_code == 204
    assert data_client.find_one("users", id=idle["id"]) is None
    assert data_client.find_one("delivery_preferences", user_id=idle["id"]) is None


def test_audit_log_listing(client, admin_headers, orders):
    client.patch(f"/admin/orders/{orders[0]['id']}/status", json={"status": "confirmed"}, headers=admin_headers)

    logs = client.get("/admin/logs", params={"action": "status"}, headers=admin_headers).json()
    assert logs["total"] == 1
    entry = logs["items"][0]
    assert entry["resource"] == "orders"
    assert entry["meta"]["new"] == "confirmed"
    assert entry["userEmail"] == "admin@example.com"
    assert logs["pageSize"] == 20


def test_audit_log_filters(client, admin, admin_headers, orders, db):
    from utils.audit import write_log

    write_log(db, user_id=None, action="LOGIN", resource="auth", status="FAIL", ip="10.0.0.1")
    client.delete(f"/admin/orders/{orders[1]['id']}", headers=admin_headers)

    failed = client.get("/admin/logs", params={"status": "fail"}, headers=admin_headers).json()
    assert [e["action"] for e in failed["items"]] == ["LOGIN"]
    assert failed["items"][0]["userEmail"] is None

    mine = client.get("/admin/logs", params={"user_id": admin["id"], "resource": "ord"}, headers=admin_headers).json()
    assert [e["action"] for e in mine["items"]] == ["ORDER_DELETE"]

    # Blank text filters are ignored
    assert client.get("/admin/logs", params={"action": " "}, headers=admin_headers).json()["total"] == 2

    assert client.get("/admin/logs", params={"date_from": "2030-01-02", "date_to": "2030-01-01"},
                      headers=admin_headers).status_code == 400
    assert client.get("/admin/logs", params={"date_from": "2100-01-01"},
                      headers=admin_headers).json()["total"] == 0
