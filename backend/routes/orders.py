# backend/routes/orders.py
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.orm import Session

from database import get_db
from models.users import User
from schemas.order import CheckoutRequest, CheckoutResponse, OrderOut, OrdersPage
from services.auth import AuthSession, INITIAL_SESSION, SessionContext
from services.cart import Cart
from services.checkout import CheckoutFlow, CheckoutState, CheckoutValidationError
from services.fetch import DataFeed, FetchOptions, OrderBy, page_response
from services.orders import OrderCreationError, OrphanedOrderError, get_order, get_order_by_session, list_order_items
from utils.audit import client_ip, write_log
from utils.data_client import DataClient, RecordNotFound
from utils.local_storage import MemoryStorage
from utils.payments import get_payment_gateway
from utils.tokenJWT import bearer_scheme, get_current_user

router = APIRouter(prefix="/orders", tags=["Orders"])
logger = logging.getLogger(__name__)


def _is_admin(user: User) -> bool:
    return (user.role or "").upper() == "ADMIN"


def _visible_to(order: dict, user: User) -> bool:
    return order["user_id"] == user.id or _is_admin(user)


# Place an order: cart in, charge through the payment gateway, order out
@router.post("/checkout", response_model=CheckoutResponse, status_code=201)
async def checkout(
    payload: CheckoutRequest,
    request: Request,
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
    gateway=Depends(get_payment_gateway),
):
    client = DataClient(db)
    context = SessionContext()
    context.set_session(
        AuthSession(access_token=credentials.credentials, user=client.get("users", current_user.id)),
        INITIAL_SESSION,
    )

    # The request carries the cart; it lives only for this checkout
    cart = Cart(MemoryStorage())
    for product_id, quantity in payload.cart.items():
        cart.set_quantity(product_id, quantity)

    flow = CheckoutFlow(context, cart, client, gateway, idempotency_key=payload.idempotency_key)
    if flow.start() == CheckoutState.ERROR:
        raise HTTPException(status_code=400, detail=flow.message)

    try:
        state = await flow.submit(
            payload.address,
            delivery_date=payload.delivery_date,
            payment_method=payload.payment_method,
            notes=payload.notes,
        )
    except CheckoutValidationError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except OrphanedOrderError as e:
        write_log(db, user_id=current_user.id, action="ORDER_CREATE", resource="orders", status="FAIL",
                  ip=client_ip(request), meta={"orphaned_order_id": e.order_id})
        raise HTTPException(status_code=500, detail=flow.message)
    except OrderCreationError:
        write_log(db, user_id=current_user.id, action="ORDER_CREATE", resource="orders", status="FAIL",
                  ip=client_ip(request))
        raise HTTPException(status_code=500, detail=flow.message)

    if state == CheckoutState.ERROR:
        raise HTTPException(status_code=502, detail=flow.message)
    if state != CheckoutState.COMPLETE:
        write_log(db, user_id=current_user.id, action="PAYMENT", resource="orders", status="FAIL",
                  ip=client_ip(request), meta={"message": flow.message})
        raise HTTPException(status_code=402, detail=flow.message)

    _, _, total = flow.totals
    write_log(db, user_id=current_user.id, action="ORDER_CREATE", resource="orders",
              ip=client_ip(request), meta={"order_id": flow.order_id, "total": str(total)})
    return {"order_id": flow.order_id, "state": state.value, "total": total}


# Order history of the signed-in customer, newest first
@router.get("", response_model=OrdersPage)
def list_my_orders(
    order_status: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    client = DataClient(db)
    options = FetchOptions(
        table="orders",
        filters={"user_id": current_user.id, "order_status": order_status},
        order_by=OrderBy(column="created_at", ascending=False),
        limit=page_size,
        page=page,
    )
    result = DataFeed(client).refresh(options)
    if result.error:
        raise HTTPException(status_code=502, detail=result.error)
    for order in result.items:
        order["items"] = list_order_items(client, order["id"])
    return page_response(result, options)


# Lookup used by the payment confirmation page after a hosted checkout
@router.get("/by-session/{session_id}", response_model=OrderOut)
def get_order_for_session(
    session_id: str,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    order = get_order_by_session(DataClient(db), session_id)
    if not order or not _visible_to(order, current_user):
        raise HTTPException(status_code=404, detail="Order not found")
    return order


# Get details of a specific order
@router.get("/{order_id}", response_model=OrderOut)
def get_order_detail(
    order_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    try:
        order = get_order(DataClient(db), order_id)
    except RecordNotFound:
        order = None
    if not order or not _visible_to(order, current_user):
        raise HTTPException(status_code=404, detail="Order not found or forbidden")
    return order
