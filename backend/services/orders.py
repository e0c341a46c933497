# backend/services/orders.py
import logging
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional

from models.order import OrderStatus, PaymentStatus, TERMINAL_ORDER_STATUSES
from schemas.cart import CartLine
from schemas.order import DeliveryAddress
from utils.data_client import DataClient, DataClientError, RecordNotFound

logger = logging.getLogger(__name__)


class OrderCreationError(Exception):
    """The order could not be written; no order is left behind."""


class OrphanedOrderError(OrderCreationError):
    """Items failed and the header could not be removed either."""

    def __init__(self, order_id, message: str):
        super().__init__(message)
        self.order_id = order_id


class InvalidStatusChange(ValueError):
    pass


class IdempotencyConflict(ValueError):
    """The idempotency key is already attached to another customer's order."""


def find_order_for_key(client: DataClient, user_id: int, idempotency_key: Optional[str]) -> Optional[Dict[str, Any]]:
    if not idempotency_key:
        return None
    existing = client.find_one("orders", idempotency_key=idempotency_key)
    if existing is None:
        return None
    if existing["user_id"] != user_id:
        logger.warning("Idempotency key %s reused by user %s", idempotency_key, user_id)
        raise IdempotencyConflict("This checkout token belongs to another order")
    return existing


def create_order(
    client: DataClient,
    *,
    user_id: int,
    address: DeliveryAddress,
    lines: List[CartLine],
    total: Decimal,
    delivery_date: Optional[date] = None,
    payment_method: str = "card",
    payment_status: str = PaymentStatus.PENDING.value,
    order_status: str = OrderStatus.PROCESSING.value,
    notes: Optional[str] = None,
    stripe_session_id: Optional[str] = None,
    payment_intent_id: Optional[str] = None,
    idempotency_key: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Writes the order header, then its line items.

    If the items fail, the header is deleted again (compensating delete). This
    is two separate commits, not a transaction.
    """
    existing = find_order_for_key(client, user_id, idempotency_key)
    if existing:
        logger.info("Order %s already recorded for idempotency key %s", existing["id"], idempotency_key)
        return existing

    header = {
        "user_id": user_id,
        "delivery_street": address.street.strip(),
        "delivery_city": address.city.strip(),
        "delivery_region": address.region.strip(),
        "delivery_postal": address.postal.strip(),
        "delivery_date": delivery_date,
        "payment_method": payment_method,
        "payment_status": payment_status,
        "order_status": order_status,
        "total_amount": total,
        "notes": notes,
        "stripe_session_id": stripe_session_id,
        "payment_intent_id": payment_intent_id,
        "idempotency_key": idempotency_key,
    }
    try:
        order = client.insert("orders", [header])[0]
    except DataClientError as e:
        logger.error("Error creating order: %s", e)
        raise OrderCreationError(f"Failed to create order: {e}") from e

    items = [
        {
            "order_id": order["id"],
            "product_id": line.product_id,
            "quantity": line.quantity,
            "unit_price": line.price,
            "subtotal": line.line_total,
        }
        for line in lines
    ]
    try:
        client.insert("order_items", items)
    except DataClientError as e:
        logger.error("Error creating order items for order %s: %s", order["id"], e)
        try:
            client.delete("orders", order["id"])
        except DataClientError as cleanup_error:
            logger.critical(
                "Orphaned order header %s: items failed (%s) and delete failed (%s)",
                order["id"], e, cleanup_error,
            )
            raise OrphanedOrderError(order["id"], f"Failed to create order items: {e}") from e
        raise OrderCreationError(f"Failed to create order items: {e}") from e

    return order


def list_order_items(client: DataClient, order_id: int) -> List[Dict[str, Any]]:
    rows = client.select("order_items", filters={"order_id": order_id}, order_by="id").rows
    names = {}
    for row in rows:
        pid = row["product_id"]
        if pid not in names:
            product = client.get("products", pid)
            names[pid] = product["name"] if product else "Removed product"
        row["product_name"] = names[pid]
    return rows


def get_order(client: DataClient, order_id: int) -> Dict[str, Any]:
    order = client.get("orders", order_id)
    if order is None:
        raise RecordNotFound(f"Order {order_id} not found")
    order["items"] = list_order_items(client, order_id)
    return order


def get_order_by_session(client: DataClient, session_id: str) -> Optional[Dict[str, Any]]:
    order = client.find_one("orders", stripe_session_id=session_id)
    if order is None:
        return None
    order["items"] = list_order_items(client, order["id"])
    return order


def update_order_status(client: DataClient, order_id: int, status: str, kind: str = "delivery") -> Dict[str, Any]:
    order = client.get("orders", order_id)
    if order is None:
        raise RecordNotFound(f"Order {order_id} not found")

    if kind == "payment":
        allowed = {s.value for s in PaymentStatus}
        field = "payment_status"
    else:
        allowed = {s.value for s in OrderStatus}
        field = "order_status"
        if order["order_status"] in TERMINAL_ORDER_STATUSES and status != order["order_status"]:
            raise InvalidStatusChange(f"Cannot change status from {order['order_status']}")

    if status not in allowed:
        raise InvalidStatusChange(f"Unknown {kind} status: {status}")

    return client.update("orders", order_id, {field: status})[0]
