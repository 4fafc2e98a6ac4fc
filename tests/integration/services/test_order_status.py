# tests/integration/services/test_order_status.py
from decimal import Decimal

import pytest
from sqlalchemy import select

from storefront.core.enums import LoyaltyTier, OrderStatus, PaymentStatus
from storefront.core.exceptions import IllegalStateTransitionError, OrderNotFoundError
from storefront.models import ActivityLog
from storefront.schemas.order import PlaceOrderRequest
from storefront.services.customer_service import CustomerService
from storefront.services.order_service import OrderService
from storefront.services.order_status import OrderStateMachine
from tests.fixtures.catalog import add_to_cart, seed_two_warehouses, stock_levels
from tests.integration.services.test_order_service import locked_customer_reads

USER = 101
EMAIL = "shopper@example.com"


async def place(session, notifier, quantity=7, **product_kwargs):
    """Seed stock (5, 3), order `quantity` units; returns (order, product_id, wh1_id, wh2_id)."""
    product, wh1, wh2 = await seed_two_warehouses(session, 5, 3, **product_kwargs)
    await add_to_cart(session, USER, product, quantity)
    await session.commit()
    order = await OrderService(session, notifier=notifier).place_order(
        USER,
        PlaceOrderRequest(shipping_address="12 Market Street", shipping_phone="0900000000"),
        EMAIL,
    )
    return order, product.id, wh1.id, wh2.id


async def walk(machine, order_id, *statuses):
    for status in statuses:
        await machine.transition(order_id, status)


@pytest.mark.asyncio
async def test_cancel_restores_stock_exactly(db_session, notifier):
    order, product_id, wh1, wh2 = await place(db_session, notifier)
    assert await stock_levels(db_session, product_id) == {wh1: 0, wh2: 1}

    cancelled = await OrderStateMachine(db_session, notifier=notifier).cancel(order.id, USER, "Too slow")

    assert cancelled.status == OrderStatus.CANCELLED
    assert cancelled.cancel_reason == "Too slow"
    assert cancelled.cancelled_at is not None
    assert await stock_levels(db_session, product_id) == {wh1: 5, wh2: 3}
    notifier.notify_order_status_changed.assert_awaited_once()


@pytest.mark.asyncio
async def test_cancel_reverses_customer_ledger(db_session, notifier):
    order, *_ = await place(db_session, notifier, quantity=5, price="1000000")
    customer = await CustomerService(db_session).get_by_user(USER)
    assert customer.membership_level == LoyaltyTier.SILVER

    await OrderStateMachine(db_session, notifier=notifier).cancel(order.id, USER)

    customer = await CustomerService(db_session).get_by_user(USER)
    assert customer.total_purchased == Decimal("0.00")
    assert customer.points == 0
    assert customer.membership_level == LoyaltyTier.BRONZE


@pytest.mark.asyncio
async def test_cancel_twice_is_rejected(db_session, notifier):
    order, product_id, wh1, wh2 = await place(db_session, notifier)
    machine = OrderStateMachine(db_session, notifier=notifier)
    await machine.cancel(order.id, USER)

    with pytest.raises(IllegalStateTransitionError):
        await machine.cancel(order.id, USER)

    assert await stock_levels(db_session, product_id) == {wh1: 5, wh2: 3}


@pytest.mark.asyncio
async def test_only_the_owner_can_cancel(db_session, notifier):
    order, product_id, wh1, wh2 = await place(db_session, notifier)

    with pytest.raises(OrderNotFoundError):
        await OrderStateMachine(db_session, notifier=notifier).cancel(order.id, USER + 1)

    assert await stock_levels(db_session, product_id) == {wh1: 0, wh2: 1}


@pytest.mark.asyncio
async def test_full_lifecycle_side_effects(db_session, notifier):
    order, *_ = await place(db_session, notifier, quantity=1)
    machine = OrderStateMachine(db_session, notifier=notifier)

    await walk(machine, order.id, OrderStatus.CONFIRMED, OrderStatus.PROCESSING)
    shipped = await machine.transition(order.id, OrderStatus.SHIPPED)
    tracking, shipped_at = shipped.tracking_number, shipped.shipped_at
    delivered = await machine.transition(order.id, OrderStatus.DELIVERED)

    assert tracking.startswith("TRK")
    assert delivered.tracking_number == tracking
    assert delivered.shipped_at == shipped_at
    assert delivered.delivered_at is not None
    assert delivered.payment_status == PaymentStatus.PAID
    assert notifier.notify_order_status_changed.await_count == 4


@pytest.mark.asyncio
@pytest.mark.parametrize("path,illegal", [
    ((), OrderStatus.SHIPPED),
    ((), OrderStatus.PENDING),
    ((OrderStatus.CONFIRMED, OrderStatus.PROCESSING), OrderStatus.CANCELLED),
    ((OrderStatus.CONFIRMED, OrderStatus.PROCESSING, OrderStatus.SHIPPED, OrderStatus.DELIVERED), OrderStatus.CANCELLED),
    ((OrderStatus.CONFIRMED,), OrderStatus.CONFIRMED),
])
async def test_illegal_transitions_are_rejected(db_session, notifier, path, illegal):
    order, product_id, wh1, wh2 = await place(db_session, notifier)
    machine = OrderStateMachine(db_session, notifier=notifier)
    await walk(machine, order.id, *path)
    expected = path[-1] if path else OrderStatus.PENDING

    with pytest.raises(IllegalStateTransitionError):
        await machine.transition(order.id, illegal)

    reloaded = await OrderService(db_session, notifier=notifier).get_order(order.id)
    assert reloaded.status == expected
    assert await stock_levels(db_session, product_id) == {wh1: 0, wh2: 1}


@pytest.mark.asyncio
async def test_transition_unknown_order(db_session, notifier):
    with pytest.raises(OrderNotFoundError):
        await OrderStateMachine(db_session, notifier=notifier).transition(404, OrderStatus.CONFIRMED)


@pytest.mark.asyncio
async def test_status_changes_are_logged(db_session, notifier):
    order, *_ = await place(db_session, notifier, quantity=1)

    await OrderStateMachine(db_session, notifier=notifier).transition(
        order.id, OrderStatus.CONFIRMED, reason="Payment verified", actor_id=1
    )

    result = await db_session.execute(
        select(ActivityLog).where(ActivityLog.action == "order_status_changed")
    )
    [entry] = result.scalars().all()
    assert entry.entity_id == str(order.id)
    assert entry.user_id == 1
    assert entry.details == {"from": "PENDING", "to": "CONFIRMED", "reason": "Payment verified"}


@pytest.mark.asyncio
async def test_update_payment_status(db_session, notifier):
    order, *_ = await place(db_session, notifier, quantity=1)

    updated = await OrderStateMachine(db_session, notifier=notifier).update_payment_status(
        order.id, PaymentStatus.REFUNDED, actor_id=1
    )

    assert updated.payment_status == PaymentStatus.REFUNDED
    assert updated.status == OrderStatus.PENDING


@pytest.mark.asyncio
async def test_cancel_reverses_ledger_under_row_lock(db_session, notifier, mocker):
    order, *_ = await place(db_session, notifier, quantity=1)
    execute_spy = mocker.spy(db_session, "execute")

    await OrderStateMachine(db_session, notifier=notifier).cancel(order.id, USER)

    assert locked_customer_reads(execute_spy)


@pytest.mark.asyncio
async def test_cancel_of_shipped_order_is_rejected_before_any_write(db_session, notifier, mocker):
    order, product_id, wh1, wh2 = await place(db_session, notifier, quantity=1)
    machine = OrderStateMachine(db_session, notifier=notifier)
    await walk(machine, order.id, OrderStatus.CONFIRMED, OrderStatus.PROCESSING, OrderStatus.SHIPPED)
    apply_spy = mocker.spy(machine, "_apply")

    with pytest.raises(IllegalStateTransitionError) as exc_info:
        await machine.cancel(order.id, USER)

    assert exc_info.value.detail["from"] == "SHIPPED"
    apply_spy.assert_not_called()
    assert await stock_levels(db_session, product_id) == {wh1: 4, wh2: 3}
