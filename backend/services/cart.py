# backend/services/cart.py
"""Shopping cart held in local storage, keyed purely by product id."""
import logging
from decimal import Decimal
from typing import Any, Dict, List

from schemas.cart import CartLine
from utils.local_storage import CART_KEY, PRODUCTS_KEY

logger = logging.getLogger(__name__)

CENT = Decimal("0.01")


class Cart:
    def __init__(self, storage):
        self.storage = storage
        self._items: Dict[str, int] = self._load()

    def _load(self) -> Dict[str, int]:
        raw = self.storage.get_json(CART_KEY, default={})
        if not isinstance(raw, dict):
            return {}
        items = {}
        for pid, qty in raw.items():
            try:
                qty = int(qty)
            except (TypeError, ValueError):
                continue
            if qty >= 1:
                items[str(pid)] = qty
        return items

    def _persist(self) -> None:
        self.storage.set_json(CART_KEY, self._items)

    # ---- mutations ----
    def add(self, product_id) -> int:
        pid = str(product_id)
        self._items[pid] = self._items.get(pid, 0) + 1
        self._persist()
        return self._items[pid]

    def remove(self, product_id) -> int:
        pid = str(product_id)
        qty = self._items.get(pid, 0) - 1
        if qty <= 0:
            self._items.pop(pid, None)
            qty = 0
        else:
            self._items[pid] = qty
        self._persist()
        return qty

    def set_quantity(self, product_id, quantity: int) -> int:
        pid = str(product_id)
        if quantity <= 0:
            self._items.pop(pid, None)
            quantity = 0
        else:
            self._items[pid] = int(quantity)
        self._persist()
        return quantity

    def clear(self) -> None:
        self._items = {}
        self._persist()

    # ---- reads ----
    def items(self) -> Dict[str, int]:
        return dict(self._items)

    def quantity(self, product_id) -> int:
        return self._items.get(str(product_id), 0)

    def is_empty(self) -> bool:
        return not self._items

    def item_count(self) -> int:
        return sum(self._items.values())

    # ---- catalog snapshot ----
    def cache_products(self, products: List[Dict[str, Any]]) -> None:
        self.storage.set_json(PRODUCTS_KEY, products)

    def cached_products(self) -> List[Dict[str, Any]]:
        products = self.storage.get_json(PRODUCTS_KEY, default=[])
        return products if isinstance(products, list) else []

    def merge_cached_products(self, products: List[Dict[str, Any]]) -> None:
        """Overwrite snapshot entries with fresher rows, keeping the rest."""
        if not products:
            return
        by_id = {str(p.get("id")): p for p in self.cached_products()}
        for product in products:
            by_id[str(product["id"])] = product
        self.cache_products(list(by_id.values()))

    def line_items(self) -> List[CartLine]:
        """Cart entries joined with the cached catalog; unknown ids are skipped."""
        by_id = {str(p.get("id")): p for p in self.cached_products()}
        lines = []
        for pid, qty in self._items.items():
            product = by_id.get(pid)
            if product is None:
                logger.debug("Cart entry %s has no cached product", pid)
                continue
            lines.append(CartLine(
                product_id=product["id"],
                name=product.get("name") or product.get("title") or "",
                price=Decimal(str(product.get("price", 0))),
                quantity=qty,
                image_url=product.get("image_url"),
            ))
        return lines

    def subtotal(self) -> Decimal:
        return sum((line.line_total for line in self.line_items()), Decimal("0")).quantize(CENT)
