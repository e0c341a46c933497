# backend/services/checkout.py
"""
Checkout state machine:

    loading -> error | collecting_address
    collecting_address -> processing_payment | error  (store unreachable)
    processing_payment -> payment_failed -> collecting_address
    processing_payment -> order_created -> complete
    processing_payment -> error            (order could not be written)

Prices and availability are re-read from the live catalog when the flow
starts and again right before charging, so a stale cached snapshot never
decides what the customer pays.
"""
import enum
import logging
import uuid
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional, Tuple

from config import settings
from models.order import OrderStatus, PaymentStatus
from schemas.cart import CartLine
from schemas.order import DeliveryAddress
from services.auth import SessionContext
from services.cart import Cart, CENT
from services.orders import IdempotencyConflict, OrderCreationError, create_order, find_order_for_key
from utils.data_client import DataClient, DataClientError

logger = logging.getLogger(__name__)

LOGIN_PATH = "/login"
CATALOG_PATH = "/products"
CHECKOUT_PATH = "/checkout"


class CheckoutState(str, enum.Enum):
    LOADING = "loading"
    ERROR = "error"
    COLLECTING_ADDRESS = "collecting_address"
    PROCESSING_PAYMENT = "processing_payment"
    PAYMENT_FAILED = "payment_failed"
    ORDER_CREATED = "order_created"
    COMPLETE = "complete"


TRANSITIONS = {
    CheckoutState.LOADING: {CheckoutState.ERROR, CheckoutState.COLLECTING_ADDRESS},
    CheckoutState.COLLECTING_ADDRESS: {CheckoutState.PROCESSING_PAYMENT, CheckoutState.ERROR},
    CheckoutState.PROCESSING_PAYMENT: {
        CheckoutState.PAYMENT_FAILED, CheckoutState.ORDER_CREATED, CheckoutState.ERROR,
    },
    CheckoutState.PAYMENT_FAILED: {CheckoutState.COLLECTING_ADDRESS},
    CheckoutState.ORDER_CREATED: {CheckoutState.COMPLETE},
    CheckoutState.ERROR: set(),
    CheckoutState.COMPLETE: set(),
}


class CheckoutValidationError(ValueError):
    pass


class InvalidTransition(RuntimeError):
    pass


def order_totals(lines: List[CartLine], delivery_fee: Decimal) -> Tuple[Decimal, Decimal, Decimal]:
    subtotal = sum((line.line_total for line in lines), Decimal("0")).quantize(CENT)
    fee = Decimal(str(delivery_fee)).quantize(CENT)
    return subtotal, fee, (subtotal + fee).quantize(CENT)


def load_live_lines(client: DataClient, cart_items: Dict[str, int]) -> Tuple[List[CartLine], List[str], List[dict]]:
    """Join cart entries with the authoritative catalog.

    Returns the priced lines, a list of problems (unknown or unavailable
    products) and the product rows that were read.
    """
    lines, problems, products = [], [], []
    for pid, qty in cart_items.items():
        try:
            product = client.get("products", int(pid))
        except ValueError:
            product = None
        if product is None:
            problems.append(f"Product {pid} is no longer sold")
            continue
        products.append(product)
        if not product["available"]:
            problems.append(f"{product['name']} is currently unavailable")
            continue
        lines.append(CartLine(
            product_id=product["id"],
            name=product["name"],
            price=product["price"],
            quantity=qty,
            image_url=product.get("image_url"),
        ))
    return lines, problems, products


class CheckoutFlow:
    def __init__(
        self,
        context: SessionContext,
        cart: Cart,
        client: DataClient,
        gateway,
        delivery_fee: Optional[Decimal] = None,
        idempotency_key: Optional[str] = None,
    ):
        self.context = context
        self.cart = cart
        self.client = client
        self.gateway = gateway
        self.delivery_fee = settings.DELIVERY_FEE if delivery_fee is None else delivery_fee
        # One token per checkout attempt; a resubmission maps to the same order
        self.idempotency_key = idempotency_key or uuid.uuid4().hex

        self.state = CheckoutState.LOADING
        self.lines: List[CartLine] = []
        self.problems: List[str] = []
        self.message: Optional[str] = None
        self.redirect: Optional[str] = None
        self.redirect_from: Optional[str] = None
        self.order_id: Optional[int] = None

    def _move(self, new_state: CheckoutState) -> None:
        if new_state not in TRANSITIONS[self.state]:
            raise InvalidTransition(f"Cannot go from {self.state.value} to {new_state.value}")
        logger.debug("Checkout %s -> %s", self.state.value, new_state.value)
        self.state = new_state

    def _refresh_lines(self) -> None:
        lines, problems, products = load_live_lines(self.client, self.cart.items())
        self.lines, self.problems = lines, problems
        self.cart.merge_cached_products(products)

    @property
    def totals(self) -> Tuple[Decimal, Decimal, Decimal]:
        return order_totals(self.lines, self.delivery_fee)

    def start(self) -> CheckoutState:
        if not self.context.is_authenticated():
            self.message = "Please log in to complete your order."
            self.redirect, self.redirect_from = LOGIN_PATH, CHECKOUT_PATH
            self._move(CheckoutState.ERROR)
        elif self.cart.is_empty():
            self.message = "Your cart is empty. Please add products before checkout."
            self.redirect = CATALOG_PATH
            self._move(CheckoutState.ERROR)
        else:
            try:
                self._refresh_lines()
            except DataClientError as e:
                self.message = f"There was a problem loading your cart: {e}"
                self._move(CheckoutState.ERROR)
            else:
                self._move(CheckoutState.COLLECTING_ADDRESS)
        return self.state

    def validate(self, address: DeliveryAddress) -> None:
        """Checks made before anything leaves the process."""
        missing = address.missing_fields()
        if missing:
            self.message = f"Please fill in your delivery address: {', '.join(missing)}"
            raise CheckoutValidationError(self.message)
        if self.cart.is_empty():
            self.message = "Your cart is empty."
            raise CheckoutValidationError(self.message)

    def _finish(self, order_id: int) -> CheckoutState:
        self.order_id = order_id
        self._move(CheckoutState.ORDER_CREATED)
        self.cart.clear()
        self._move(CheckoutState.COMPLETE)
        return self.state

    async def submit(
        self,
        address: DeliveryAddress,
        delivery_date: Optional[date] = None,
        payment_method: str = "card",
        notes: Optional[str] = None,
    ) -> CheckoutState:
        if self.state != CheckoutState.COLLECTING_ADDRESS:
            raise InvalidTransition(f"Cannot submit while {self.state.value}")

        self.validate(address)
        user_id = self.context.current_user()["id"]
        try:
            existing = find_order_for_key(self.client, user_id, self.idempotency_key)
            if existing is None:
                self._refresh_lines()
        except IdempotencyConflict as e:
            self.message = str(e)
            raise CheckoutValidationError(self.message) from e
        except DataClientError as e:
            self.message = f"There was a problem loading your cart: {e}"
            self._move(CheckoutState.ERROR)
            return self.state

        if existing is None and self.problems:
            self.message = "; ".join(self.problems)
            raise CheckoutValidationError(self.message)

        _, _, total = self.totals
        self._move(CheckoutState.PROCESSING_PAYMENT)
        self.message = None

        if existing is not None:
            # Already paid for under this key; do not charge again
            logger.info("Checkout resubmitted for order %s", existing["id"])
            return self._finish(existing["id"])

        result = await self.gateway.attempt(total)

        if not result.success:
            # Nothing has been written; the customer can try again
            self._move(CheckoutState.PAYMENT_FAILED)
            self.message = result.error or "Payment failed. Please try again."
            self._move(CheckoutState.COLLECTING_ADDRESS)
            return self.state

        try:
            order = create_order(
                self.client,
                user_id=user_id,
                address=address,
                lines=self.lines,
                total=total,
                delivery_date=delivery_date,
                payment_method=payment_method,
                payment_status=PaymentStatus.PAID.value,
                order_status=OrderStatus.PROCESSING.value,
                notes=notes,
                payment_intent_id=result.reference,
                idempotency_key=self.idempotency_key,
            )
        except OrderCreationError:
            self.message = "There was a problem processing your order. Please try again."
            self._move(CheckoutState.ERROR)
            raise

        self._finish(order["id"])
        logger.info("Order %s placed for %s", self.order_id, total)
        return self.state
