from datetime import date, datetime
from typing import Dict, List, Literal, Optional

from pydantic import Field

from schemas.base import AppModel, Money

PaymentStatusValue = Literal["pending", "paid", "failed"]
OrderStatusValue = Literal["pending", "processing", "confirmed", "delivered", "cancelled"]


# Structured delivery address. Blank parts are rejected by the checkout flow,
# not here, so the caller gets the flow's own validation message.
class DeliveryAddress(AppModel):
    street: str = ""
    city: str = ""
    region: str = ""
    postal: str = ""

    def missing_fields(self) -> List[str]:
        return [name for name in ("street", "city", "region", "postal") if not getattr(self, name).strip()]

    def one_line(self) -> str:
        return ", ".join(p.strip() for p in (self.street, self.city, self.region, self.postal) if p.strip())


class OrderItemOut(AppModel):
    id: int
    order_id: int
    product_id: int
    quantity: int
    unit_price: Money
    subtotal: Money
    product_name: Optional[str] = None


class OrderOut(AppModel):
    id: int
    user_id: int
    delivery_street: str
    delivery_city: str
    delivery_region: str
    delivery_postal: str
    delivery_date: Optional[date] = None
    payment_method: str
    payment_status: str
    order_status: str
    total_amount: Money
    notes: Optional[str] = None
    recurring_delivery: bool = False
    stripe_session_id: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    items: List[OrderItemOut] = Field(default_factory=list)


# Schema for paginated order lists
class OrdersPage(AppModel):
    items: List[OrderOut]
    count: int
    page: int
    page_size: Optional[int] = None
    loading: bool = False
    error: Optional[str] = None


# Schema for updating order status
class OrderStatusPatch(AppModel):
    status: str
    type: Literal["payment", "delivery"] = "delivery"


# Direct checkout: cart travels with the request, payment is the mock gateway
class CheckoutRequest(AppModel):
    cart: Dict[int, int]
    address: DeliveryAddress
    delivery_date: Optional[date] = None
    payment_method: str = "card"
    notes: Optional[str] = None
    idempotency_key: Optional[str] = None


class CheckoutResponse(AppModel):
    order_id: int
    state: str
    total: Money


# Hosted checkout: the client is redirected to the payment page
class CheckoutSessionRequest(AppModel):
    cart: Dict[int, int]
    address: DeliveryAddress
    delivery_date: Optional[date] = None


class CheckoutSessionResponse(AppModel):
    session_id: str
    url: Optional[str] = None
    order_id: Optional[int] = None
