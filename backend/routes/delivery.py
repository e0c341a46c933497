# backend/routes/delivery.py
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from database import get_db
from models.users import User
from schemas.delivery import (
    BlockedDateIn, BlockedDateOut,
    DeliveryPreferenceIn, DeliveryPreferenceOut,
    DeliverySettingsIn, DeliverySettingsOut,
)
from services.records import create_record, delete_record, update_record
from utils.audit import client_ip, write_log
from utils.data_client import DataClient, DataClientError
from utils.tokenJWT import get_current_user, role_required

router = APIRouter(prefix="/delivery", tags=["Delivery"])

admin_only = role_required("admin")


# ---- customer preferences ----
@router.get("/preferences", response_model=Optional[DeliveryPreferenceOut])
def get_preferences(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return DataClient(db).find_one("delivery_preferences", user_id=current_user.id)


# One row per customer: saving again overwrites the previous choice
@router.put("/preferences", response_model=DeliveryPreferenceOut)
def save_preferences(
    payload: DeliveryPreferenceIn,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if not payload.days:
        raise HTTPException(status_code=400, detail="Pick at least one delivery day")
    try:
        pref = DataClient(db).upsert(
            "delivery_preferences", {"user_id": current_user.id, **payload.model_dump()}, on="user_id",
        )
    except DataClientError as e:
        raise HTTPException(status_code=500, detail=f"Could not save preferences: {e}")

    write_log(db, user_id=current_user.id, action="DELIVERY_PREFERENCES", resource="delivery",
              ip=client_ip(request), meta={"days": pref["days"], "time_slot": pref["time_slot"]})
    return pref


# ---- zone and schedule (admin) ----
def _current_settings(client: DataClient) -> dict:
    row = client.find_one("delivery_settings")
    if row is None:
        # Column defaults describe the initial zone
        row = create_record(client, "delivery_settings", {})
    return row


@router.get("/settings", response_model=DeliverySettingsOut)
def get_delivery_settings(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return _current_settings(DataClient(db))


@router.put("/settings", response_model=DeliverySettingsOut)
def save_delivery_settings(
    payload: DeliverySettingsIn,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_only),
):
    client = DataClient(db)
    current = _current_settings(client)
    try:
        saved = update_record(client, "delivery_settings", current["id"], payload.model_dump())
    except DataClientError as e:
        raise HTTPException(status_code=500, detail=f"Could not save delivery settings: {e}")

    write_log(db, user_id=current_user.id, action="DELIVERY_SETTINGS", resource="delivery",
              ip=client_ip(request), meta=payload.model_dump())
    return saved


# ---- blocked dates ----
@router.get("/blocked-dates", response_model=List[BlockedDateOut])
def list_blocked_dates(db: Session = Depends(get_db), current_user: User = Depends(get_current_user)):
    return DataClient(db).select("blocked_dates", order_by="date").rows


@router.post("/blocked-dates", response_model=BlockedDateOut, status_code=201)
def block_date(
    payload: BlockedDateIn,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_only),
):
    client = DataClient(db)
    if client.find_one("blocked_dates", date=payload.date):
        raise HTTPException(status_code=409, detail="Date is already blocked")
    try:
        row = create_record(client, "blocked_dates", payload.model_dump())
    except DataClientError as e:
        raise HTTPException(status_code=500, detail=f"Could not block date: {e}")

    write_log(db, user_id=current_user.id, action="DATE_BLOCK", resource="delivery",
              ip=client_ip(request), meta={"date": payload.date.isoformat()})
    return row


@router.delete("/blocked-dates/{blocked_id}", status_code=204)
def unblock_date(
    blocked_id: int,
    request: Request,
    db: Session = Depends(get_db),
    current_user: User = Depends(admin_only),
):
    client = DataClient(db)
    row = client.get("blocked_dates", blocked_id)
    if row is None:
        raise HTTPException(status_code=404, detail="Blocked date not found")
    delete_record(client, "blocked_dates", blocked_id)
    write_log(db, user_id=current_user.id, action="DATE_UNBLOCK", resource="delivery",
              ip=client_ip(request), meta={"date": row["date"].isoformat()})
