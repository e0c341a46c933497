# backend/models/product.py
from sqlalchemy import Column, Integer, String, Boolean, Numeric, DateTime, CheckConstraint, func
from database import Base

# A dairy product offered in the shop catalog.
# Shoppers only read these rows; admins create, edit and delete them.
class Product(Base):
    __tablename__ = "products"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String, nullable=False, index=True)
    description = Column(String, nullable=True)
    category = Column(String, nullable=True, index=True)

    # Unit price in the shop currency
    price = Column(Numeric(10, 2), CheckConstraint("price >= 0"), nullable=False)

    is_organic = Column(Boolean, nullable=False, default=False)
    available = Column(Boolean, nullable=False, default=True, index=True)
    stock_quantity = Column(Integer, CheckConstraint("stock_quantity >= 0"), nullable=False, default=0)

    image_url = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
