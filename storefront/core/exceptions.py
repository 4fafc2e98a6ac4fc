from typing import Any, Dict, Optional


class BaseServiceError(Exception):
    """Base exception for all service-related errors.

    ``kind`` and ``detail`` are what callers render; nothing else about the
    failure is exposed outside the process.
    """
    kind = "SERVICE_ERROR"
    status_code = 400
    retryable = False

    def __init__(self, message: str, detail: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.detail = detail or {}

    def to_payload(self) -> Dict[str, Any]:
        return {"error": self.kind, "message": self.message, "detail": self.detail}


class OrderingError(BaseServiceError):
    """Base exception for business-rule failures in cart and order flows."""
    pass


class EmptyCartError(OrderingError):
    """Raised when checkout is attempted with no cart lines."""
    kind = "EMPTY_CART"

    def __init__(self, user_id: int):
        super().__init__("Cart is empty", {"user_id": user_id})


class ProductUnavailableError(OrderingError):
    """Raised when a product is missing or no longer active."""
    kind = "PRODUCT_UNAVAILABLE"
    status_code = 409

    def __init__(self, product_id: int, name: Optional[str] = None):
        label = name or f"#{product_id}"
        super().__init__(f"Product {label} is no longer available", {"product_id": product_id})
        self.product_id = product_id


class InsufficientStockError(OrderingError):
    """Raised when the requested quantity exceeds stock across all locations."""
    kind = "INSUFFICIENT_STOCK"
    status_code = 409

    def __init__(self, product_id: int, requested: int, available: int):
        super().__init__(
            f"Insufficient stock for product {product_id}: requested {requested}, available {available}",
            {"product_id": product_id, "requested": requested, "available": available},
        )
        self.product_id = product_id
        self.requested = requested
        self.available = available


class InvalidCouponError(OrderingError):
    """Raised when a coupon code fails validation."""
    kind = "INVALID_COUPON"

    def __init__(self, code: str, reason: str = "Coupon is not valid for this order"):
        super().__init__(reason, {"code": code})
        self.code = code


class IllegalStateTransitionError(OrderingError):
    """Raised when an order status change is not in the transition table."""
    kind = "ILLEGAL_STATE_TRANSITION"
    status_code = 409

    def __init__(self, order_id: int, current: str, requested: str):
        super().__init__(
            f"Order {order_id} cannot move from {current} to {requested}",
            {"order_id": order_id, "from": current, "to": requested},
        )
        self.current = current
        self.requested = requested


class NotFoundError(BaseServiceError):
    kind = "NOT_FOUND"
    status_code = 404


class OrderNotFoundError(NotFoundError):
    """Raised when an order does not exist or is not visible to the caller."""

    def __init__(self, order_id: int):
        super().__init__(f"Order {order_id} not found", {"order_id": order_id})
        self.order_id = order_id


class CartItemNotFoundError(NotFoundError):
    """Raised when a cart line does not exist for the user."""

    def __init__(self, item_id: int):
        super().__init__(f"Cart item {item_id} not found", {"cart_item_id": item_id})


class StockRecordNotFoundError(NotFoundError):
    """Raised when a product has no stock record to act on."""

    def __init__(self, product_id: int, warehouse_id: Optional[int] = None):
        detail = {"product_id": product_id}
        if warehouse_id is not None:
            detail["warehouse_id"] = warehouse_id
        super().__init__(f"No stock record for product {product_id}", detail)


class ValidationError(BaseServiceError):
    """Raised when data validation fails."""
    kind = "VALIDATION_ERROR"
    status_code = 422


class InventoryValidationError(ValidationError):
    """Raised when a stock operation is given invalid arguments."""
    pass


class PersistenceError(BaseServiceError):
    """Raised when the data layer fails. The transaction has been rolled back
    and the caller may retry."""
    kind = "PERSISTENCE_FAILURE"
    status_code = 503
    retryable = True

    def __init__(self, message: str = "Storage temporarily unavailable, please retry"):
        super().__init__(message, {"retryable": True})
