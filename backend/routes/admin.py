# backend/routes/admin.py
from datetime import datetime, timezone
from typing import Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from database import get_db
from models.order import Order
from models.users import User
from schemas.order import OrderOut, OrdersPage, OrderStatusPatch
from schemas.user import CustomersPage, CustomerStats, UserResponse
from services.fetch import DataFeed, FetchOptions, OrderBy, page_response
from services.orders import InvalidStatusChange, get_order, list_order_items, update_order_status
from services.records import delete_record
from utils.audit import client_ip, write_log
from utils.data_client import DataClient, DataClientError, RecordNotFound
from utils.tokenJWT import role_required

router = APIRouter(prefix="/admin", tags=["Admin"])

admin_only = role_required("admin")


def _month_start(now: Optional[datetime] = None) -> datetime:
    now = now or datetime.now(timezone.utc)
    return now.replace(day=1, hour=0, minute=0, second=0, microsecond=0, tzinfo=None)


# ==========================================
#  ORDERS
# ==========================================
@router.get("/orders", response_model=OrdersPage)
def list_orders(
    order_status: Optional[str] = Query(None),
    payment_status: Optional[str] = Query(None),
    user_id: Optional[int] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    sort_by: Literal["id", "created_at", "total_amount", "delivery_date"] = "created_at",
    order: Literal["asc", "desc"] = "desc",
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_only),
):
    client = DataClient(db)
    options = FetchOptions(
        table="orders",
        filters={"order_status": order_status, "payment_status": payment_status, "user_id": user_id},
        order_by=OrderBy(column=sort_by, ascending=(order == "asc")),
        limit=page_size,
        page=page,
    )
    result = DataFeed(client).refresh(options)
    if result.error:
        raise HTTPException(status_code=502, detail=result.error)
    for row in result.items:
        row["items"] = list_order_items(client, row["id"])
    return page_response(result, options)


# Change payment or delivery status; delivered/cancelled orders are final
@router.patch("/orders/{order_id}/status", response_model=OrderOut)
def change_order_status(
    order_id: int,
    payload: OrderStatusPatch,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_only),
):
    client = DataClient(db)
    try:
        before = get_order(client, order_id)
        update_order_status(client, order_id, payload.status, kind=payload.type)
    except RecordNotFound:
        raise HTTPException(status_code=404, detail="Order not found")
    except InvalidStatusChange as e:
        raise HTTPException(status_code=400, detail=str(e))

    field = "payment_status" if payload.type == "payment" else "order_status"
    write_log(db, user_id=current_user.id, action="ORDER_STATUS_CHANGE", resource="orders",
              ip=client_ip(request),
              meta={"order_id": order_id, "field": field, "old": before[field], "new": payload.status})
    return get_order(client, order_id)


@router.delete("/orders/{order_id}", status_code=204)
def delete_order(
    order_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_only),
):
    client = DataClient(db)
    if client.get("orders", order_id) is None:
        raise HTTPException(status_code=404, detail="Order not found")
    try:
        delete_record(client, "orders", order_id)
    except DataClientError as e:
        raise HTTPException(status_code=500, detail=f"Could not delete order: {e}")
    write_log(db, user_id=current_user.id, action="ORDER_DELETE", resource="orders",
              ip=client_ip(request), meta={"order_id": order_id})


# ==========================================
#  CUSTOMERS
# ==========================================
@router.get("/customers", response_model=CustomersPage)
def list_customers(
    role: Optional[str] = Query("user", description="Filter by role; empty for everyone"),
    city: Optional[str] = Query(None),
    region: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    sort_by: Literal["id", "email", "last_name", "created_at"] = "created_at",
    order: Literal["asc", "desc"] = "desc",
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_only),
):
    options = FetchOptions(
        table="users",
        filters={"role": role, "city": city, "region": region},
        order_by=OrderBy(column=sort_by, ascending=(order == "asc")),
        limit=page_size,
        page=page,
    )
    result = DataFeed(DataClient(db)).refresh(options)
    if result.error:
        raise HTTPException(status_code=502, detail=result.error)
    return page_response(result, options)


# Customer counts: all, ordered this month, joined this month, on recurring delivery this month
@router.get("/customers/stats", response_model=CustomerStats)
def customer_stats(db: Session = Depends(get_db), current_user: User = Depends(admin_only)):
    since = _month_start()

    total = db.query(func.count(User.id)).filter(User.role == "user").scalar()
    new = db.query(func.count(User.id)).filter(User.role == "user", User.created_at >= since).scalar()
    active = db.query(func.count(func.distinct(Order.user_id))).filter(Order.created_at >= since).scalar()
    recurring = (
        db.query(func.count(func.distinct(Order.user_id)))
        .filter(Order.created_at >= since, Order.recurring_delivery.is_(True))
        .scalar()
    )
    return {"total": total or 0, "active": active or 0, "new": new or 0, "recurring": recurring or 0}


@router.get("/customers/{user_id}", response_model=UserResponse)
def get_customer(user_id: int, db: Session = Depends(get_db), current_user: User = Depends(admin_only)):
    customer = DataClient(db).get("users", user_id)
    if not customer:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return customer


@router.delete("/customers/{user_id}", status_code=204)
def delete_customer(
    user_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_only),
):
    client = DataClient(db)
    customer = client.get("users", user_id)
    if not customer:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")

    # Prevent self-deletion
    if customer["id"] == current_user.id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="You cannot delete your own account")
    if client.find_one("orders", user_id=user_id):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Customer has orders and cannot be deleted")

    try:
        delete_record(client, "users", user_id)
    except DataClientError as e:
        raise HTTPException(status_code=500, detail=f"Could not delete user: {e}")
    write_log(db, user_id=current_user.id, action="USER_DELETE", resource="users",
              ip=client_ip(request), meta={"email": customer["email"]})
