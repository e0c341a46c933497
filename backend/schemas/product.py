# backend/schemas/product.py
from datetime import datetime
from typing import Optional, List

from pydantic import Field

from schemas.base import AppModel, Money


# Shared base attributes for product entities
class ProductBase(AppModel):
    name: str = Field(min_length=1)
    description: Optional[str] = None
    category: Optional[str] = None
    price: Money = Field(ge=0)
    is_organic: bool = False
    available: bool = True
    stock_quantity: int = Field(default=0, ge=0)
    image_url: Optional[str] = None


class ProductCreate(ProductBase):
    pass


# Schema for partial product updates
class ProductUpdate(AppModel):
    """Schema for PATCH requests - all fields optional."""
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    category: Optional[str] = None
    price: Optional[Money] = Field(None, ge=0)
    is_organic: Optional[bool] = None
    available: Optional[bool] = None
    stock_quantity: Optional[int] = Field(None, ge=0)
    image_url: Optional[str] = None


class ProductOut(ProductBase):
    id: int
    created_at: Optional[datetime] = None


# Paginated response for product listings
class ProductListPage(AppModel):
    items: List[ProductOut]
    count: int
    page: int
    page_size: Optional[int] = None
    loading: bool = False
    error: Optional[str] = None
