# backend/utils/payments.py
import asyncio
import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from config import settings

logger = logging.getLogger(__name__)


@dataclass
class PaymentResult:
    success: bool
    reference: Optional[str] = None
    error: Optional[str] = None


class MockPaymentGateway:
    """In-process stand-in for card payment: waits a fixed delay, then answers."""

    def __init__(self, delay: Optional[float] = None, should_fail: Optional[bool] = None):
        self.delay = settings.MOCK_PAYMENT_DELAY_SECONDS if delay is None else delay
        self.should_fail = settings.MOCK_PAYMENT_SHOULD_FAIL if should_fail is None else should_fail
        self.attempts = 0

    async def attempt(self, amount: Decimal) -> PaymentResult:
        self.attempts += 1
        if self.delay:
            await asyncio.sleep(self.delay)

        if self.should_fail:
            logger.info("Mock payment of %s declined", amount)
            return PaymentResult(success=False, error="Payment failed. Please try again.")

        reference = f"pi_{uuid.uuid4().hex[:14]}"
        logger.info("Mock payment of %s accepted (%s)", amount, reference)
        return PaymentResult(success=True, reference=reference)


def get_payment_gateway() -> MockPaymentGateway:
    return MockPaymentGateway()
