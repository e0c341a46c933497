# backend/models/delivery.py
from sqlalchemy import Column, Integer, String, Float, Boolean, Date, ForeignKey, JSON, DateTime, CheckConstraint, func
from database import Base

# Weekdays the dairy delivers on
DELIVERY_WEEKDAYS = ("monday", "wednesday", "friday")


# One row per user, upserted from the preferences page
class DeliveryPreference(Base):
    __tablename__ = "delivery_preferences"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    days = Column(JSON, nullable=False, default=list)
    time_slot = Column(String, nullable=False, default="morning")
    address = Column(String, nullable=True)
    notes = Column(String, nullable=True)
    contact_before_delivery = Column(Boolean, nullable=False, default=False)
    leave_at_door = Column(Boolean, nullable=False, default=True)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


# Delivery zone and weekly schedule configured by an admin (single row)
class DeliverySettings(Base):
    __tablename__ = "delivery_settings"

    id = Column(Integer, primary_key=True, index=True)
    origin_lat = Column(Float, nullable=False, default=51.505)
    origin_lng = Column(Float, nullable=False, default=-0.09)
    radius_km = Column(Float, CheckConstraint("radius_km >= 1 AND radius_km <= 50"), nullable=False, default=5)
    days = Column(JSON, nullable=False, default=lambda: list(DELIVERY_WEEKDAYS))
    cutoff_time = Column(String, nullable=False, default="17:00")


class BlockedDate(Base):
    __tablename__ = "blocked_dates"

    id = Column(Integer, primary_key=True, index=True)
    date = Column(Date, unique=True, nullable=False)
    reason = Column(String, nullable=True)
