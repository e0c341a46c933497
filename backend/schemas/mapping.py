# backend/schemas/mapping.py
from typing import Any, Dict

from schemas.delivery import BlockedDateOut, DeliveryPreferenceOut, DeliverySettingsOut
from schemas.order import OrderItemOut, OrderOut
from schemas.product import ProductOut
from schemas.user import UserResponse

# One schema per stored entity
ENTITY_SCHEMAS = {
    "products": ProductOut,
    "orders": OrderOut,
    "order_items": OrderItemOut,
    "users": UserResponse,
    "delivery_preferences": DeliveryPreferenceOut,
    "delivery_settings": DeliverySettingsOut,
    "blocked_dates": BlockedDateOut,
}


def to_model(table: str, row: Dict[str, Any]):
    return ENTITY_SCHEMAS[table].model_validate(row)


def to_app(table: str, row: Dict[str, Any]) -> Dict[str, Any]:
    """Translate a storage row (snake_case) to the app's camelCase shape."""
    return to_model(table, row).model_dump(by_alias=True, mode="json")
