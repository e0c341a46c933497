from decimal import Decimal
from typing import Optional

from pydantic import Field

from schemas.base import AppModel, Money


# A cart entry joined with its product details
class CartLine(AppModel):
    product_id: int
    name: str
    price: Money
    quantity: int = Field(ge=1)
    image_url: Optional[str] = None

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity
