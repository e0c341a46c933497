# backend/utils/stripe_client.py
import hashlib
import hmac
import logging
import time
from decimal import Decimal
from typing import Any, Dict, List, Optional
from urllib.parse import urljoin

import httpx

from config import settings

logger = logging.getLogger(__name__)

# Seconds a webhook signature timestamp may lag behind our clock
SIGNATURE_TOLERANCE = 300


class StripeClient:
    def __init__(self):
        self.api_url = settings.STRIPE_API_URL
        self.secret_key = settings.STRIPE_SECRET_KEY
        self.currency = settings.CURRENCY
        # {CHECKOUT_SESSION_ID} is filled in by Stripe on redirect
        self.success_url = urljoin(settings.FRONTEND_URL, "/order-confirmation") + "?session_id={CHECKOUT_SESSION_ID}"
        self.cancel_url = urljoin(settings.FRONTEND_URL, "/cart")

    def build_session_form(self, lines: List[Dict[str, Any]], metadata: Dict[str, str]) -> Dict[str, str]:
        """Flatten line items into Stripe's bracketed form encoding."""
        form = {
            "mode": "payment",
            "payment_method_types[0]": "card",
            "success_url": self.success_url,
            "cancel_url": self.cancel_url,
        }
        for i, line in enumerate(lines):
            prefix = f"line_items[{i}]"
            form[f"{prefix}[quantity]"] = str(line["quantity"])
            form[f"{prefix}[price_data][currency]"] = self.currency
            form[f"{prefix}[price_data][unit_amount]"] = str(int((Decimal(str(line["price"])) * 100).to_integral_value()))
            form[f"{prefix}[price_data][product_data][name]"] = line.get("name") or "Product"
        for key, value in metadata.items():
            form[f"metadata[{key}]"] = str(value)
        return form

    async def create_checkout_session(self, lines: List[Dict[str, Any]], metadata: Dict[str, str]) -> Dict[str, Any]:
        url = urljoin(self.api_url, "/v1/checkout/sessions")
        headers = {"Authorization": f"Bearer {self.secret_key}"}
        async with httpx.AsyncClient(timeout=10.0) as client:
            try:
                response = await client.post(url, data=self.build_session_form(lines, metadata), headers=headers)
                response.raise_for_status()
                return response.json()
            except (httpx.RequestError, httpx.HTTPStatusError) as e:
                try:
                    resp_text = e.response.text if getattr(e, "response", None) is not None else str(e)
                except Exception:
                    resp_text = str(e)
                logger.error(f"Stripe create session error: {resp_text}")
                raise


def verify_stripe_signature(header: Optional[str], payload: bytes, secret: str, now: Optional[int] = None) -> bool:
    """Checks a ``Stripe-Signature`` header (``t=...,v1=...``) against the raw body."""
    if not header or not secret:
        return False
    try:
        parts = [p.split("=", 1) for p in header.split(",")]
        timestamp = next(v for k, v in parts if k.strip() == "t")
        signatures = [v for k, v in parts if k.strip() == "v1"]
    except (StopIteration, ValueError):
        return False

    if not signatures:
        return False
    try:
        if abs((now or int(time.time())) - int(timestamp)) > SIGNATURE_TOLERANCE:
            return False
    except ValueError:
        return False

    signed = f"{timestamp}.".encode("utf-8") + payload
    expected = hmac.new(secret.encode("utf-8"), signed, hashlib.sha256).hexdigest()
    return any(hmac.compare_digest(expected, s) for s in signatures)


def sign_stripe_payload(payload: bytes, secret: str, timestamp: Optional[int] = None) -> str:
    """Builds a ``Stripe-Signature`` header value; used for local webhook testing."""
    ts = timestamp or int(time.time())
    digest = hmac.new(secret.encode("utf-8"), f"{ts}.".encode("utf-8") + payload, hashlib.sha256).hexdigest()
    return f"t={ts},v1={digest}"


stripe_client = StripeClient()


def get_stripe_client() -> StripeClient:
    return stripe_client
