"""
Schemas for order endpoints.
"""
from datetime import date, datetime
from typing import List, Optional

from pydantic import Field, field_validator

from storefront.core.enums import OrderStatus, PaymentStatus
from .base import BaseSchema, TimestampedSchema, Money


class PlaceOrderRequest(BaseSchema):
    shipping_address: str = Field(..., min_length=1, max_length=500)
    shipping_phone: str = Field(..., min_length=1, max_length=20)
    payment_method: str = Field("COD", max_length=50)
    notes: Optional[str] = Field(None, max_length=500)
    coupon_code: Optional[str] = Field(None, max_length=50)

    @field_validator('coupon_code', mode='before')
    @classmethod
    def blank_coupon_is_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v.strip() if isinstance(v, str) else v


class OrderStatusUpdate(BaseSchema):
    status: OrderStatus
    reason: Optional[str] = Field(None, max_length=500)


class PaymentStatusUpdate(BaseSchema):
    payment_status: PaymentStatus


class CancelOrderRequest(BaseSchema):
    reason: Optional[str] = Field(None, max_length=500)


class StockAllocationRead(BaseSchema):
    warehouse_id: int
    quantity: int


class OrderItemRead(BaseSchema):
    id: int
    product_id: int
    product_name: str
    sku: str
    quantity: int
    unit_price: Money
    discount_amount: Money
    total_price: Money
    allocations: List[StockAllocationRead] = []


class OrderSummary(TimestampedSchema):
    id: int
    order_number: str
    status: OrderStatus
    payment_status: PaymentStatus
    total_amount: Money
    item_count: int
    placed_at: datetime


class OrderRead(OrderSummary):
    customer_id: int
    payment_method: Optional[str] = None
    subtotal: Money
    shipping_fee: Money
    tax: Money
    discount: Money
    coupon_code: Optional[str] = None
    shipping_address: Optional[str] = None
    shipping_phone: Optional[str] = None
    tracking_number: Optional[str] = None
    notes: Optional[str] = None
    cancel_reason: Optional[str] = None
    shipped_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    items: List[OrderItemRead] = []


class TrackingEvent(BaseSchema):
    label: str
    description: str
    location: Optional[str] = None
    occurred_at: datetime


class TrackingInfo(BaseSchema):
    order_number: str
    status: OrderStatus
    tracking_number: Optional[str] = None
    estimated_delivery: Optional[date] = None
    events: List[TrackingEvent]
