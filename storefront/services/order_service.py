"""
Purpose: The order assembler. Turns a user's cart into a durable order.

Role: Orchestrates the cart, catalog, coupon, stock ledger and customer ledger
services inside one database transaction.

place_order() runs, in order:
- Preconditions: cart not empty, every product active with enough stock,
  coupon (if any) valid for the subtotal
- Customer ledger entry fetched or created
- Order header inserted as PENDING / payment PENDING
- Each line snapshotted and its quantity reserved, with the per-warehouse
  allocations stored so cancellation can put stock back exactly
- Purchase recorded on the customer ledger, coupon redeemed, cart cleared
- Commit, then a best-effort confirmation email

Any failure before the commit rolls the whole transaction back: no order, no
stock movement, cart untouched.
"""

import logging
from datetime import timedelta
from decimal import Decimal
from typing import Dict, Any, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.config import get_settings
from storefront.core.enums import OrderStatus, PaymentStatus
from storefront.core.exceptions import (
    BaseServiceError,
    EmptyCartError,
    InsufficientStockError,
    OrderNotFoundError,
    PersistenceError,
    ProductUnavailableError,
)
from storefront.core.utils import generate_reference, paginate_query, utcnow
from storefront.models.customer import Customer
from storefront.models.order import Order, OrderItem, StockAllocation
from storefront.schemas.order import PlaceOrderRequest, TrackingEvent, TrackingInfo
from storefront.services.activity_logger import ActivityLogger
from storefront.services.cart_service import CartService
from storefront.services.coupon_service import CouponService
from storefront.services.customer_service import CustomerService
from storefront.services.inventory_service import InventoryService
from storefront.services.notification_service import EmailNotificationService
from storefront.services.pricing import calculate_totals, line_total, to_money

logger = logging.getLogger(__name__)

# Days from placement until expected delivery, by current status
DELIVERY_ESTIMATE_DAYS = {
    OrderStatus.PENDING: 3,
    OrderStatus.CONFIRMED: 3,
    OrderStatus.PROCESSING: 2,
    OrderStatus.SHIPPED: 1,
    OrderStatus.DELIVERED: 0,
}


def generate_order_number() -> str:
    return generate_reference("ORD", "%Y%m%d%H%M%S", 1000, 9999)


class OrderService:
    def __init__(
        self,
        db: AsyncSession,
        notifier: Optional[EmailNotificationService] = None,
        inventory: Optional[InventoryService] = None,
        cart: Optional[CartService] = None,
        customers: Optional[CustomerService] = None,
        coupons: Optional[CouponService] = None,
    ):
        self.db = db
        self.notifier = notifier or EmailNotificationService(get_settings())
        self.inventory = inventory or InventoryService(db)
        self.cart = cart or CartService(db, inventory=self.inventory)
        self.customers = customers or CustomerService(db)
        self.coupons = coupons or CouponService(db)
        self.activity = ActivityLogger(db)

    async def place_order(
        self,
        user_id: int,
        request: PlaceOrderRequest,
        user_email: Optional[str] = None,
    ) -> Order:
        """
        Convert the user's cart into an order.

        Raises:
            EmptyCartError: the cart has no lines
            ProductUnavailableError: a product is missing or inactive
            InsufficientStockError: a product lacks stock, checked up front
                and again atomically while reserving
            InvalidCouponError: the coupon does not apply
            PersistenceError: the database failed; nothing was written
        """
        try:
            lines = await self.cart.get_lines(user_id)
            if not lines:
                raise EmptyCartError(user_id)

            for line in lines:
                product = line.product
                if product is None or not product.is_active:
                    raise ProductUnavailableError(line.product_id, product.name if product else None)
                available = await self.inventory.get_available(line.product_id)
                if available < line.quantity:
                    raise InsufficientStockError(line.product_id, line.quantity, available)

            priced = [(line.product.effective_price, line.quantity) for line in lines]
            discount = Decimal("0")
            if request.coupon_code:
                subtotal = calculate_totals(priced).subtotal
                discount = await self.coupons.validate_and_price(request.coupon_code, subtotal)
            totals = calculate_totals(priced, discount)

            customer = await self.customers.get_or_create(user_id, user_email)

            order = Order(
                order_number=generate_order_number(),
                customer_id=customer.id,
                status=OrderStatus.PENDING,
                payment_status=PaymentStatus.PENDING,
                payment_method=request.payment_method,
                subtotal=totals.subtotal,
                shipping_fee=totals.shipping_fee,
                tax=totals.tax,
                discount=totals.discount,
                total_amount=totals.total,
                coupon_code=request.coupon_code.upper() if request.coupon_code else None,
                shipping_address=request.shipping_address,
                shipping_phone=request.shipping_phone,
                notes=request.notes,
                placed_at=utcnow(),
                items=[],
            )
            self.db.add(order)

            # Reserve in product id order so concurrent checkouts lock rows consistently
            for line in sorted(lines, key=lambda line: line.product_id):
                product = line.product
                unit_price = to_money(product.effective_price)
                item = OrderItem(
                    product_id=product.id,
                    product_name=product.name,
                    sku=product.sku,
                    quantity=line.quantity,
                    unit_price=unit_price,
                    discount_amount=to_money(0),
                    total_price=line_total(unit_price, line.quantity),
                    allocations=[],
                )
                order.items.append(item)

                allocations = await self.inventory.reserve(product.id, line.quantity)
                item.allocations.extend(
                    StockAllocation(
                        inventory_id=allocation.inventory_id,
                        warehouse_id=allocation.warehouse_id,
                        quantity=allocation.quantity,
                    )
                    for allocation in allocations
                )

            await self.db.flush()

            self.customers.record_purchase(customer, totals.total)
            if order.coupon_code:
                await self.coupons.redeem(order.coupon_code)
            await self.cart.delete_lines(user_id)

            self.activity.log_order_event(
                "order_placed",
                order.id,
                {
                    "order_number": order.order_number,
                    "total_amount": str(order.total_amount),
                    "items": len(lines),
                },
                user_id=user_id,
            )
            await self.db.commit()
        except BaseServiceError as e:
            await self.db.rollback()
            logger.info("Order placement for user %s rejected: %s %s", user_id, e.kind, e.detail)
            raise
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Order placement for user %s failed: %s", user_id, e, exc_info=True)
            raise PersistenceError() from e

        logger.info(
            "Order %s placed by user %s: %d line(s), total %s",
            order.order_number, user_id, len(lines), order.total_amount,
        )

        order = await self._load(order.id)
        await self.notifier.notify_order_placed(user_email or customer.email, order)
        return order

    async def list_orders(self, user_id: int) -> List[Order]:
        result = await self.db.execute(
            select(Order)
            .join(Customer, Order.customer_id == Customer.id)
            .where(Customer.user_id == user_id)
            .order_by(Order.placed_at.desc(), Order.id.desc())
        )
        return list(result.unique().scalars().all())

    async def get_order(self, order_id: int, user_id: Optional[int] = None) -> Order:
        """
        Fetch one order. With user_id, orders owned by anyone else look
        exactly like missing ones.
        """
        order = await self._load(order_id)
        if order is None or (user_id is not None and order.customer.user_id != user_id):
            raise OrderNotFoundError(order_id)
        return order

    async def list_all_orders(
        self,
        page: int = 1,
        page_size: int = 20,
        status: Optional[OrderStatus] = None,
    ) -> Dict[str, Any]:
        query = select(Order).order_by(Order.placed_at.desc(), Order.id.desc())
        if status is not None:
            query = query.where(Order.status == status)
        page_data = await paginate_query(query, self.db, page=page, page_size=page_size)
        page_data["items"] = list(page_data["items"])
        return page_data

    async def get_tracking_info(self, order_id: int, user_id: int) -> TrackingInfo:
        order = await self.get_order(order_id, user_id)
        status = order.status
        placed = order.placed_at

        events = [TrackingEvent(
            label="Order Placed",
            description="Your order has been placed successfully",
            location="Online",
            occurred_at=placed,
        )]
        if status in (OrderStatus.CONFIRMED, OrderStatus.PROCESSING, OrderStatus.SHIPPED, OrderStatus.DELIVERED):
            events.append(TrackingEvent(
                label="Order Confirmed",
                description="Your order has been confirmed and is being prepared",
                location="Warehouse",
                occurred_at=placed + timedelta(hours=1),
            ))
        if status in (OrderStatus.PROCESSING, OrderStatus.SHIPPED, OrderStatus.DELIVERED):
            events.append(TrackingEvent(
                label="Processing",
                description="Your order is being processed",
                location="Warehouse",
                occurred_at=placed + timedelta(hours=6),
            ))
        if order.shipped_at:
            events.append(TrackingEvent(
                label="Shipped",
                description="Your order has been shipped",
                location="In Transit",
                occurred_at=order.shipped_at,
            ))
        if order.delivered_at:
            events.append(TrackingEvent(
                label="Delivered",
                description="Your order has been delivered successfully",
                location="Destination",
                occurred_at=order.delivered_at,
            ))
        if status == OrderStatus.CANCELLED:
            events.append(TrackingEvent(
                label="Cancelled",
                description=f"Order cancelled: {order.cancel_reason}" if order.cancel_reason else "Order has been cancelled",
                location="System",
                occurred_at=order.cancelled_at or order.updated_at,
            ))

        days = DELIVERY_ESTIMATE_DAYS.get(status)
        return TrackingInfo(
            order_number=order.order_number,
            status=status,
            tracking_number=order.tracking_number,
            estimated_delivery=(placed + timedelta(days=days)).date() if days is not None else None,
            events=sorted(events, key=lambda e: e.occurred_at, reverse=True),
        )

    async def _load(self, order_id: int) -> Optional[Order]:
        result = await self.db.execute(
            select(Order)
            .where(Order.id == order_id)
            .execution_options(populate_existing=True)
        )
        return result.unique().scalars().first()
