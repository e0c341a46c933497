# backend/routes/checkout.py
import json
import logging

import httpx
from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from config import settings
from database import get_db
from models.order import OrderStatus, PaymentStatus
from models.users import User
from schemas.order import CheckoutSessionRequest, CheckoutSessionResponse
from services.checkout import load_live_lines, order_totals
from services.orders import OrderCreationError, create_order
from utils.audit import client_ip, write_log
from utils.data_client import DataClient
from utils.stripe_client import StripeClient, get_stripe_client
from utils.tokenJWT import get_current_user

router = APIRouter(prefix="/checkout", tags=["Checkout"])
logger = logging.getLogger(__name__)


# Start a hosted checkout: the pending order is recorded up front and keyed by
# the session id, the webhook settles it once the customer has paid.
@router.post("/session", response_model=CheckoutSessionResponse)
async def create_checkout_session(
    payload: CheckoutSessionRequest,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    stripe: StripeClient = Depends(get_stripe_client),
):
    missing = payload.address.missing_fields()
    if missing:
        raise HTTPException(status_code=400, detail=f"Please fill in your delivery address: {', '.join(missing)}")

    cart = {str(pid): qty for pid, qty in payload.cart.items() if qty > 0}
    if not cart:
        raise HTTPException(status_code=400, detail="Cart is empty")

    client = DataClient(db)
    lines, problems, _ = load_live_lines(client, cart)
    if problems:
        raise HTTPException(status_code=400, detail="; ".join(problems))

    _, fee, total = order_totals(lines, settings.DELIVERY_FEE)
    stripe_lines = [line.model_dump() for line in lines]
    stripe_lines.append({"name": "Delivery fee", "price": fee, "quantity": 1})

    # Enough to rebuild the order if the pending row is ever missing
    metadata = {
        "user_id": current_user.id,
        "street": payload.address.street,
        "city": payload.address.city,
        "region": payload.address.region,
        "postal": payload.address.postal,
        "delivery_date": payload.delivery_date.isoformat() if payload.delivery_date else "",
        "cart": json.dumps(cart),
    }

    try:
        session = await stripe.create_checkout_session(stripe_lines, metadata)
    except (httpx.RequestError, httpx.HTTPStatusError) as e:
        write_log(db, user_id=current_user.id, action="CHECKOUT_SESSION", resource="orders", status="FAIL",
                  ip=client_ip(request), meta={"error": str(e)})
        raise HTTPException(status_code=502, detail="Error communicating with the payment provider")

    try:
        order = create_order(
            client,
            user_id=current_user.id,
            address=payload.address,
            lines=lines,
            total=total,
            delivery_date=payload.delivery_date,
            payment_method="card",
            payment_status=PaymentStatus.PENDING.value,
            order_status=OrderStatus.PENDING.value,
            stripe_session_id=session["id"],
        )
    except OrderCreationError as e:
        logger.error("Checkout session %s has no order: %s", session["id"], e)
        raise HTTPException(status_code=500, detail="There was a problem processing your order")

    write_log(db, user_id=current_user.id, action="CHECKOUT_SESSION", resource="orders",
              ip=client_ip(request), meta={"order_id": order["id"], "session_id": session["id"]})
    return {"session_id": session["id"], "url": session.get("url"), "order_id": order["id"]}
