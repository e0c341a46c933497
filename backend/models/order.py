import enum
from sqlalchemy import Column, Integer, String, Numeric, Boolean, Date, ForeignKey, DateTime, func
from sqlalchemy.orm import relationship
from database import Base


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    CONFIRMED = "confirmed"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"


# Statuses an admin can no longer move away from
TERMINAL_ORDER_STATUSES = {OrderStatus.DELIVERED.value, OrderStatus.CANCELLED.value}


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    # Structured delivery address
    delivery_street = Column(String, nullable=False)
    delivery_city = Column(String, nullable=False)
    delivery_region = Column(String, nullable=False)
    delivery_postal = Column(String, nullable=False)
    delivery_date = Column(Date, nullable=True)

    payment_method = Column(String, nullable=False, default="card")
    payment_status = Column(String, nullable=False, default=PaymentStatus.PENDING.value, index=True)
    order_status = Column(String, nullable=False, default=OrderStatus.PENDING.value, index=True)
    total_amount = Column(Numeric(10, 2), nullable=False)

    notes = Column(String, nullable=True)
    recurring_delivery = Column(Boolean, nullable=False, default=False)

    # Hosted checkout integration details
    stripe_session_id = Column(String, nullable=True, unique=True, index=True)
    payment_intent_id = Column(String, nullable=True)

    # Client-generated token so a resubmitted checkout maps to the same order
    idempotency_key = Column(String, nullable=True, unique=True, index=True)

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    items = relationship("OrderItem", back_populates="order", cascade="all, delete-orphan")
    user = relationship("User")


class OrderItem(Base):
    __tablename__ = "order_items"
    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(Integer, ForeignKey("orders.id", ondelete="CASCADE"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False)
    quantity = Column(Integer, nullable=False)
    # Price captured when the order was placed, not a live reference
    unit_price = Column(Numeric(10, 2), nullable=False)
    subtotal = Column(Numeric(10, 2), nullable=False)

    order = relationship("Order", back_populates="items")
    product = relationship("Product")
