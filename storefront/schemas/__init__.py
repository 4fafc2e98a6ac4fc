"""
Schema exports for the application.
"""

# Base schemas
from .base import BaseSchema, TimestampedSchema, PaginatedResponse, Money

# Inventory schemas
from .inventory import (
    WarehouseRead,
    InventoryRead,
    AvailabilityRead,
    StockAdjustRequest,
    StockTransferRequest,
    StockAlertRead,
)

# Cart schemas
from .cart import CartItemAdd, CartItemUpdate, CartLineRead, CartView, CartCount

# Order schemas
from .order import (
    PlaceOrderRequest,
    OrderStatusUpdate,
    PaymentStatusUpdate,
    CancelOrderRequest,
    StockAllocationRead,
    OrderItemRead,
    OrderRead,
    OrderSummary,
    TrackingEvent,
    TrackingInfo,
)
