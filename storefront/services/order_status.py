"""
Purpose: The order state machine. The only place an order's status changes
after placement.

Role: Admin status updates, customer cancellations and payment status
updates. Legal moves come from ORDER_TRANSITIONS in storefront.core.enums.

Side effects by target status:
- SHIPPED: tracking number generated if missing, shipped_at stamped once
- DELIVERED: delivered_at stamped once, payment marked PAID
- CANCELLED: cancelled_at stamped once, reason stored, every line's stock
  returned to the records it was taken from, purchase reversed on the
  customer ledger

Each change commits on its own and is followed by a best-effort email.
"""

import logging
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.config import get_settings
from storefront.core.enums import OrderStatus, PaymentStatus
from storefront.core.exceptions import (
    BaseServiceError,
    IllegalStateTransitionError,
    OrderNotFoundError,
    PersistenceError,
)
from storefront.core.utils import generate_reference, utcnow
from storefront.models.order import Order
from storefront.services.activity_logger import ActivityLogger
from storefront.services.customer_service import CustomerService
from storefront.services.inventory_service import InventoryService
from storefront.services.notification_service import EmailNotificationService

logger = logging.getLogger(__name__)


def generate_tracking_number() -> str:
    return generate_reference("TRK", "%Y%m%d", 100000, 999999)


class OrderStateMachine:
    def __init__(
        self,
        db: AsyncSession,
        notifier: Optional[EmailNotificationService] = None,
        inventory: Optional[InventoryService] = None,
        customers: Optional[CustomerService] = None,
    ):
        self.db = db
        self.notifier = notifier or EmailNotificationService(get_settings())
        self.inventory = inventory or InventoryService(db)
        self.customers = customers or CustomerService(db)
        self.activity = ActivityLogger(db)

    async def transition(
        self,
        order_id: int,
        new_status: OrderStatus,
        reason: Optional[str] = None,
        actor_id: Optional[int] = None,
    ) -> Order:
        """
        Move an order to new_status (admin path).

        Raises:
            OrderNotFoundError: no such order
            IllegalStateTransitionError: the move is not in the transition
                table, including a move to the current status
        """
        order = await self._load(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return await self._apply(order, OrderStatus(new_status), reason, actor_id)

    async def cancel(self, order_id: int, user_id: int, reason: Optional[str] = None) -> Order:
        """Customer cancellation; only the owner may cancel."""
        order = await self._load(order_id)
        if order is None or order.customer.user_id != user_id:
            raise OrderNotFoundError(order_id)
        if not order.status.is_cancellable:
            raise IllegalStateTransitionError(order_id, order.status.value, OrderStatus.CANCELLED.value)
        return await self._apply(order, OrderStatus.CANCELLED, reason, user_id)

    async def update_payment_status(
        self,
        order_id: int,
        payment_status: PaymentStatus,
        actor_id: Optional[int] = None,
    ) -> Order:
        order = await self._load(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)

        previous = order.payment_status
        try:
            order.payment_status = PaymentStatus(payment_status)
            self.activity.log_order_event(
                "payment_status_changed",
                order.id,
                {"from": previous.value, "to": order.payment_status.value},
                user_id=actor_id,
            )
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Failed to update payment status of order %s: %s", order_id, e, exc_info=True)
            raise PersistenceError() from e

        logger.info("Order %s payment status %s -> %s", order.order_number, previous.value, order.payment_status.value)
        return order

    async def _apply(
        self,
        order: Order,
        target: OrderStatus,
        reason: Optional[str],
        actor_id: Optional[int],
    ) -> Order:
        order_id = order.id
        current = order.status
        if not current.can_transition_to(target):
            raise IllegalStateTransitionError(order_id, current.value, target.value)

        now = utcnow()
        try:
            # Compare-and-set on the stored status: a concurrent change makes this match nothing
            claimed = await self.db.execute(
                update(Order)
                .where(Order.id == order_id, Order.status == current)
                .values(status=target, updated_at=now)
                .execution_options(synchronize_session=False)
            )
            if claimed.rowcount != 1:
                raise IllegalStateTransitionError(order_id, current.value, target.value)

            order.status = target
            if target == OrderStatus.SHIPPED:
                if not order.tracking_number:
                    order.tracking_number = generate_tracking_number()
                if order.shipped_at is None:
                    order.shipped_at = now
            elif target == OrderStatus.DELIVERED:
                if order.delivered_at is None:
                    order.delivered_at = now
                if order.payment_status != PaymentStatus.PAID:
                    order.payment_status = PaymentStatus.PAID
            elif target == OrderStatus.CANCELLED:
                if order.cancelled_at is None:
                    order.cancelled_at = now
                order.cancel_reason = reason
                for item in order.items:
                    await self.inventory.release(item.product_id, item.quantity, allocations=item.allocations)
                customer = await self.customers.lock(order.customer_id)
                self.customers.reverse_purchase(customer, order.total_amount)

            self.activity.log_order_event(
                "order_status_changed",
                order_id,
                {"from": current.value, "to": target.value, "reason": reason},
                user_id=actor_id,
            )
            await self.db.commit()
        except BaseServiceError as e:
            await self.db.rollback()
            logger.warning("Order %s could not move to %s: %s", order_id, target.value, e.message)
            raise
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Failed to move order %s to %s: %s", order_id, target.value, e, exc_info=True)
            raise PersistenceError() from e

        logger.info("Order %s status %s -> %s", order.order_number, current.value, target.value)
        await self.notifier.notify_order_status_changed(order.customer.email, order)
        return order

    async def _load(self, order_id: int) -> Optional[Order]:
        result = await self.db.execute(
            select(Order)
            .where(Order.id == order_id)
            .execution_options(populate_existing=True)
        )
        return result.unique().scalars().first()
