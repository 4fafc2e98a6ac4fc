# storefront/models/order.py
"""
Order aggregate: header, frozen line snapshots and per-location allocations.

Lines copy name, sku and unit price at purchase time so later catalog edits
never rewrite history. Orders are never deleted; cancellation is a status.
"""

from sqlalchemy import (
    Column, Integer, String, DateTime, Numeric, ForeignKey, CheckConstraint, Enum as SAEnum,
)
from sqlalchemy.orm import relationship

from storefront.core.enums import OrderStatus, PaymentStatus
from storefront.database import Base, TimestampMixin


class Order(TimestampMixin, Base):
    __tablename__ = "orders"
    __table_args__ = (
        CheckConstraint("subtotal >= 0", name="ck_orders_subtotal"),
        CheckConstraint("shipping_fee >= 0", name="ck_orders_shipping_fee"),
        CheckConstraint("tax >= 0", name="ck_orders_tax"),
        CheckConstraint("discount >= 0", name="ck_orders_discount"),
        CheckConstraint("total_amount >= 0", name="ck_orders_total_amount"),
    )

    id = Column(Integer, primary_key=True)
    order_number = Column(String(50), unique=True, nullable=False, index=True)
    customer_id = Column(Integer, ForeignKey("customers.id"), nullable=False, index=True)

    status = Column(
        SAEnum(OrderStatus, name="orderstatus", native_enum=False, length=20),
        nullable=False,
        default=OrderStatus.PENDING,
        index=True,
    )
    payment_status = Column(
        SAEnum(PaymentStatus, name="paymentstatus", native_enum=False, length=20),
        nullable=False,
        default=PaymentStatus.PENDING,
        index=True,
    )
    payment_method = Column(String(50), nullable=True)

    # Monetary breakdown: total = subtotal + shipping_fee + tax - discount
    subtotal = Column(Numeric(18, 2), nullable=False)
    shipping_fee = Column(Numeric(18, 2), nullable=False, default=0)
    tax = Column(Numeric(18, 2), nullable=False, default=0)
    discount = Column(Numeric(18, 2), nullable=False, default=0)
    total_amount = Column(Numeric(18, 2), nullable=False)
    coupon_code = Column(String(50), nullable=True)

    # Shipping snapshot
    shipping_address = Column(String(500), nullable=True)
    shipping_phone = Column(String(20), nullable=True)
    tracking_number = Column(String(100), nullable=True, index=True)
    notes = Column(String(500), nullable=True)
    cancel_reason = Column(String(500), nullable=True)

    # Lifecycle timestamps, each stamped once
    placed_at = Column(DateTime, nullable=False, index=True)
    shipped_at = Column(DateTime, nullable=True)
    delivered_at = Column(DateTime, nullable=True)
    cancelled_at = Column(DateTime, nullable=True)

    customer = relationship("Customer", lazy="joined")
    items = relationship(
        "OrderItem",
        back_populates="order",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="OrderItem.id",
    )

    @property
    def item_count(self) -> int:
        return sum(item.quantity for item in self.items)

    def __repr__(self) -> str:
        return f"<Order id={self.id} number={self.order_number} status={self.status}>"


class OrderItem(Base):
    __tablename__ = "order_items"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_order_items_quantity"),
        CheckConstraint("unit_price >= 0", name="ck_order_items_unit_price"),
        CheckConstraint("discount_amount >= 0", name="ck_order_items_discount_amount"),
    )

    id = Column(Integer, primary_key=True)
    order_id = Column(Integer, ForeignKey("orders.id"), nullable=False, index=True)
    product_id = Column(Integer, ForeignKey("products.id"), nullable=False, index=True)

    # Snapshot of the catalog at purchase time
    product_name = Column(String(200), nullable=False)
    sku = Column(String(50), nullable=False)
    quantity = Column(Integer, nullable=False)
    unit_price = Column(Numeric(18, 2), nullable=False)
    discount_amount = Column(Numeric(18, 2), nullable=False, default=0)
    total_price = Column(Numeric(18, 2), nullable=False)

    order = relationship("Order", back_populates="items")
    allocations = relationship(
        "StockAllocation",
        back_populates="order_item",
        lazy="selectin",
        cascade="all, delete-orphan",
        order_by="StockAllocation.id",
    )


class StockAllocation(Base):
    """How much of one order line was taken from one stock record."""
    __tablename__ = "stock_allocations"
    __table_args__ = (
        CheckConstraint("quantity > 0", name="ck_stock_allocations_quantity"),
    )

    id = Column(Integer, primary_key=True)
    order_item_id = Column(Integer, ForeignKey("order_items.id"), nullable=False, index=True)
    inventory_id = Column(Integer, ForeignKey("inventories.id"), nullable=False, index=True)
    warehouse_id = Column(Integer, ForeignKey("warehouses.id"), nullable=False)
    quantity = Column(Integer, nullable=False)

    order_item = relationship("OrderItem", back_populates="allocations")
