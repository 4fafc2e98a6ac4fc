"""
Core module exports.
"""
from .enums import (
    OrderStatus,
    PaymentStatus,
    LoyaltyTier,
    DiscountType,
    StockAlertType,
    StockMovement,
)

from .exceptions import (
    BaseServiceError,
    OrderingError,
    EmptyCartError,
    ProductUnavailableError,
    InsufficientStockError,
    InvalidCouponError,
    IllegalStateTransitionError,
    NotFoundError,
    OrderNotFoundError,
    CartItemNotFoundError,
    StockRecordNotFoundError,
    ValidationError,
    InventoryValidationError,
    PersistenceError,
)

from .utils import (
    generate_reference,
    paginate_query,
    utcnow,
)
