# backend/routes/stripe.py
import json
import logging
from datetime import date
from decimal import Decimal

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session

from config import settings
from database import get_db
from models.order import OrderStatus, PaymentStatus, TERMINAL_ORDER_STATUSES
from schemas.order import DeliveryAddress
from services.checkout import load_live_lines, order_totals
from services.orders import OrderCreationError, create_order
from utils.audit import client_ip, write_log
from utils.data_client import DataClient, DataClientError
from utils.stripe_client import verify_stripe_signature

router = APIRouter(prefix="/stripe", tags=["Stripe"])
logger = logging.getLogger(__name__)

FAILED_EVENTS = {"checkout.session.expired", "checkout.session.async_payment_failed"}


def _order_from_metadata(client: DataClient, session: dict) -> dict:
    """Recreate an order whose pending row never made it to the database."""
    meta = session.get("metadata") or {}
    cart = json.loads(meta.get("cart") or "{}")
    lines, problems, _ = load_live_lines(client, cart)
    if problems:
        logger.warning("Session %s references unknown products: %s", session["id"], problems)

    if session.get("amount_total") is not None:
        total = (Decimal(session["amount_total"]) / 100).quantize(Decimal("0.01"))
    else:
        _, _, total = order_totals(lines, settings.DELIVERY_FEE)

    return create_order(
        client,
        user_id=int(meta["user_id"]),
        address=DeliveryAddress(
            street=meta.get("street", ""), city=meta.get("city", ""),
            region=meta.get("region", ""), postal=meta.get("postal", ""),
        ),
        lines=lines,
        total=total,
        delivery_date=date.fromisoformat(meta["delivery_date"]) if meta.get("delivery_date") else None,
        payment_status=PaymentStatus.PAID.value,
        order_status=OrderStatus.CONFIRMED.value,
        stripe_session_id=session["id"],
        payment_intent_id=session.get("payment_intent"),
    )


@router.post("/webhook")
async def stripe_webhook(
    request: Request,
    db: Session = Depends(get_db),
    stripe_signature: str = Header(None, alias="Stripe-Signature"),
):
    if stripe_signature is None:
        raise HTTPException(status_code=400, detail="Missing Stripe-Signature header")

    body = await request.body()
    if not verify_stripe_signature(stripe_signature, body, settings.STRIPE_WEBHOOK_SECRET):
        logger.warning("Stripe signature verification failed")
        raise HTTPException(status_code=400, detail="Signature verification failed")

    try:
        event = json.loads(body)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid payload")

    event_type = event.get("type")
    session = (event.get("data") or {}).get("object") or {}
    session_id = session.get("id")
    logger.info("Stripe event %s for session %s", event_type, session_id)
    if not session_id:
        return {"received": True}

    client = DataClient(db)
    order = client.find_one("orders", stripe_session_id=session_id)

    try:
        if event_type == "checkout.session.completed":
            if order is None:
                order = _order_from_metadata(client, session)
            else:
                changes = {"payment_status": PaymentStatus.PAID.value}
                if session.get("payment_intent"):
                    changes["payment_intent_id"] = session["payment_intent"]
                if order["order_status"] not in TERMINAL_ORDER_STATUSES:
                    changes["order_status"] = OrderStatus.CONFIRMED.value
                order = client.update("orders", order["id"], changes)[0]
        elif event_type in FAILED_EVENTS and order is not None:
            order = client.update("orders", order["id"], {"payment_status": PaymentStatus.FAILED.value})[0]
    except (OrderCreationError, DataClientError, KeyError, ValueError) as e:
        logger.exception("Failed to settle order for session %s: %s", session_id, e)
        raise HTTPException(status_code=500, detail="Failed to update order after payment")

    if order is not None:
        write_log(
            db, user_id=order["user_id"], action="STRIPE_WEBHOOK", resource="orders",
            ip=client_ip(request), meta={"order_id": order["id"], "event": event_type},
        )
    return {"received": True}
