from decimal import Decimal

import pytest

from schemas.cart import CartLine
from schemas.order import DeliveryAddress
from services.orders import (
    IdempotencyConflict, InvalidStatusChange, OrderCreationError, OrphanedOrderError,
    create_order, get_order, get_order_by_session, update_order_status,
)
from services.records import create_record, delete_record, update_record
from utils.data_client import DataClient, DataClientError, RecordNotFound

ADDRESS = DeliveryAddress(street="1 Dairy Lane", city="Leeds", region="Yorkshire", postal="LS1 1AA")


def _lines(products):
    return [
        CartLine(product_id=products[0]["id"], name="Whole Milk", price=Decimal("3.99"), quantity=2),
        CartLine(product_id=products[1]["id"], name="Farmhouse Cheddar", price=Decimal("4.99"), quantity=1),
    ]


def test_create_order_writes_header_and_items(data_client, customer, products):
    order = create_order(data_client, user_id=customer["id"], address=ADDRESS,
                         lines=_lines(products), total=Decimal("15.96"), stripe_session_id="cs_1")

    full = get_order(data_client, order["id"])
    assert [i["quantity"] for i in full["items"]] == [2, 1]
    assert full["items"][0]["unit_price"] == Decimal("3.99")
    assert full["items"][0]["subtotal"] == Decimal("7.98")
    assert full["items"][1]["product_name"] == "Farmhouse Cheddar"
    assert get_order_by_session(data_client, "cs_1")["id"] == order["id"]
    assert get_order_by_session(data_client, "cs_missing") is None


def test_unknown_product_fails_and_removes_header(data_client, customer):
    bad = [CartLine(product_id=999, name="Ghost", price=Decimal("1.00"), quantity=1)]

    with pytest.raises(OrderCreationError):
        create_order(data_client, user_id=customer["id"], address=ADDRESS, lines=bad, total=Decimal("3.99"))

    assert data_client.select("orders", count_exact=True).count == 0


def test_failed_compensation_is_reported_as_orphan(db, customer, caplog):
    class NoCleanup(DataClient):
        def delete(self, table, record_id):
            raise DataClientError("store unavailable")

    client = NoCleanup(db)
    bad = [CartLine(product_id=999, name="Ghost", price=Decimal("1.00"), quantity=1)]

    with pytest.raises(OrphanedOrderError) as exc:
        create_order(client, user_id=customer["id"], address=ADDRESS, lines=bad, total=Decimal("3.99"))

    assert client.find_one("orders", id=exc.value.order_id) is not None
    assert any(r.levelname == "CRITICAL" for r in caplog.records)


def test_idempotency_key_returns_existing_order(data_client, customer, products):
    first = create_order(data_client, user_id=customer["id"], address=ADDRESS, lines=_lines(products),
                         total=Decimal("15.96"), idempotency_key="k-1")
    second = create_order(data_client, user_id=customer["id"], address=ADDRESS, lines=_lines(products),
                          total=Decimal("15.96"), idempotency_key="k-1")

    assert first["id"] == second["id"]
    assert data_client.select("order_items", count_exact=True).count == 2


def test_idempotency_key_is_scoped_to_its_owner(data_client, customer, make_user, products):
    create_order(data_client, user_id=customer["id"], address=ADDRESS, lines=_lines(products),
                 total=Decimal("15.96"), idempotency_key="k-1")
    other = make_user(email="other@example.com")

    with pytest.raises(IdempotencyConflict):
        create_order(data_client, user_id=other["id"], address=ADDRESS, lines=_lines(products),
                     total=Decimal("15.96"), idempotency_key="k-1")

    assert data_client.select("orders", filters={"user_id": other["id"]}, count_exact=True).count == 0


def test_status_rules(data_client, customer, products):
    order = create_order(data_client, user_id=customer["id"], address=ADDRESS, lines=_lines(products),
                         total=Decimal("15.96"))

    assert update_order_status(data_client, order["id"], "confirmed")["order_status"] == "confirmed"
    assert update_order_status(data_client, order["id"], "paid", kind="payment")["payment_status"] == "paid"

    with pytest.raises(InvalidStatusChange):
        update_order_status(data_client, order["id"], "shipped")
    with pytest.raises(InvalidStatusChange):
        update_order_status(data_client, order["id"], "confirmed", kind="payment")

    update_order_status(data_client, order["id"], "delivered")
    with pytest.raises(InvalidStatusChange):
        update_order_status(data_client, order["id"], "processing")

    with pytest.raises(RecordNotFound):
        update_order_status(data_client, 12345, "confirmed")


def test_record_helpers(data_client):
    product = create_record(data_client, "products", {"name": "Kefir", "price": Decimal("2.10")})
    assert update_record(data_client, "products", product["id"], {"price": Decimal("2.30")})["price"] == Decimal("2.30")
    assert delete_record(data_client, "products", product["id"]) is True
    assert data_client.find_one("products", id=product["id"]) is None

    with pytest.raises(RecordNotFound):
        update_record(data_client, "products", product["id"], {"price": Decimal("1.00")})


def test_record_helpers_propagate_store_errors(data_client):
    # name is NOT NULL
    with pytest.raises(DataClientError):
        create_record(data_client, "products", {"price": Decimal("1.00")})
