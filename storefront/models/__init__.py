from .activity_log import ActivityLog
from .product import Product
from .warehouse import Warehouse
from .inventory import Inventory
from .cart import CartItem
from .customer import Customer
from .coupon import Coupon
from .order import Order, OrderItem, StockAllocation

# This ensures all models are registered with SQLAlchemy
__all__ = [
    'ActivityLog',
    'Product',
    'Warehouse',
    'Inventory',
    'CartItem',
    'Customer',
    'Coupon',
    'Order',
    'OrderItem',
    'StockAllocation',
]
