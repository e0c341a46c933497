# backend/schemas/delivery.py
import datetime
from typing import List, Literal, Optional

from pydantic import Field, field_validator

from schemas.base import AppModel
from models.delivery import DELIVERY_WEEKDAYS

TimeSlot = Literal["morning", "afternoon", "evening"]


def _normalize_days(days: List[str]) -> List[str]:
    cleaned = []
    for day in days:
        d = day.strip().lower()
        if d not in DELIVERY_WEEKDAYS:
            raise ValueError(f"Deliveries only run on {', '.join(DELIVERY_WEEKDAYS)}")
        if d not in cleaned:
            cleaned.append(d)
    # Keep weekday order stable regardless of input order
    return sorted(cleaned, key=DELIVERY_WEEKDAYS.index)


class DeliveryPreferenceIn(AppModel):
    days: List[str] = Field(default_factory=lambda: ["wednesday", "friday"])
    time_slot: TimeSlot = "morning"
    address: Optional[str] = None
    notes: Optional[str] = None
    contact_before_delivery: bool = False
    leave_at_door: bool = True

    @field_validator("days")
    @classmethod
    def _days(cls, v):
        return _normalize_days(v)


class DeliveryPreferenceOut(DeliveryPreferenceIn):
    id: int
    user_id: int


class DeliverySettingsIn(AppModel):
    origin_lat: float = Field(ge=-90, le=90)
    origin_lng: float = Field(ge=-180, le=180)
    radius_km: float = Field(ge=1, le=50)
    days: List[str]
    cutoff_time: str = Field(pattern=r"^([01]\d|2[0-3]):[0-5]\d$")

    @field_validator("days")
    @classmethod
    def _days(cls, v):
        return _normalize_days(v)


class DeliverySettingsOut(DeliverySettingsIn):
    id: int


class BlockedDateIn(AppModel):
    date: datetime.date
    reason: Optional[str] = None


class BlockedDateOut(BlockedDateIn):
    id: int
