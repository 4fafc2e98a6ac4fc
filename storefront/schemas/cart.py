"""
Schemas for cart endpoints.
"""
from datetime import datetime
from decimal import Decimal
from typing import List

from pydantic import Field

from .base import BaseSchema, Money


class CartItemAdd(BaseSchema):
    product_id: int
    quantity: int = Field(1, ge=1)


class CartItemUpdate(BaseSchema):
    quantity: int = Field(..., ge=1)


class CartLineRead(BaseSchema):
    id: int
    product_id: int
    product_name: str
    sku: str
    quantity: int
    unit_price: Money
    line_total: Money
    available_stock: int
    added_at: datetime


class CartView(BaseSchema):
    items: List[CartLineRead] = []
    item_count: int = 0
    subtotal: Money = Decimal("0.00")
    tax: Money = Decimal("0.00")
    shipping_fee: Money = Decimal("0.00")
    discount: Money = Decimal("0.00")
    total: Money = Decimal("0.00")


class CartCount(BaseSchema):
    count: int
