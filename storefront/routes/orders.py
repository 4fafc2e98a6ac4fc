"""Order routes: checkout, order history, tracking and the admin lifecycle."""
import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.enums import OrderStatus
from storefront.core.security import CurrentUser, get_current_user, require_admin
from storefront.dependencies import get_db, get_notifier
from storefront.schemas.base import PaginatedResponse
from storefront.schemas.order import (
    CancelOrderRequest,
    OrderRead,
    OrderStatusUpdate,
    OrderSummary,
    PaymentStatusUpdate,
    PlaceOrderRequest,
    TrackingInfo,
)
from storefront.services.notification_service import EmailNotificationService
from storefront.services.order_service import OrderService
from storefront.services.order_status import OrderStateMachine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/orders", tags=["orders"])
admin_router = APIRouter(prefix="/admin/orders", tags=["admin"], dependencies=[require_admin()])


@router.post("", response_model=OrderRead, status_code=status.HTTP_201_CREATED)
async def place_order(
    payload: PlaceOrderRequest,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    notifier: EmailNotificationService = Depends(get_notifier),
):
    """Check out the caller's cart."""
    return await OrderService(db, notifier=notifier).place_order(user.id, payload, user_email=user.email)


@router.get("", response_model=List[OrderSummary])
async def list_orders(
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await OrderService(db).list_orders(user.id)


@router.get("/{order_id}", response_model=OrderRead)
async def get_order(
    order_id: int,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await OrderService(db).get_order(order_id, user.id)


@router.get("/{order_id}/tracking", response_model=TrackingInfo)
async def get_tracking_info(
    order_id: int,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await OrderService(db).get_tracking_info(order_id, user.id)


@router.post("/{order_id}/cancel", response_model=OrderRead)
async def cancel_order(
    order_id: int,
    payload: Optional[CancelOrderRequest] = None,
    user: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    notifier: EmailNotificationService = Depends(get_notifier),
):
    reason = payload.reason if payload else None
    return await OrderStateMachine(db, notifier=notifier).cancel(order_id, user.id, reason)


@admin_router.get("", response_model=PaginatedResponse[OrderSummary])
async def list_all_orders(
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    status: Optional[OrderStatus] = Query(None, description="Filter by order status"),
    db: AsyncSession = Depends(get_db),
):
    return await OrderService(db).list_all_orders(page=page, page_size=page_size, status=status)


@admin_router.put("/{order_id}/status", response_model=OrderRead)
async def update_order_status(
    order_id: int,
    payload: OrderStatusUpdate,
    admin: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    notifier: EmailNotificationService = Depends(get_notifier),
):
    machine = OrderStateMachine(db, notifier=notifier)
    return await machine.transition(order_id, payload.status, reason=payload.reason, actor_id=admin.id)


@admin_router.put("/{order_id}/payment-status", response_model=OrderRead)
async def update_payment_status(
    order_id: int,
    payload: PaymentStatusUpdate,
    admin: CurrentUser = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    return await OrderStateMachine(db).update_payment_status(order_id, payload.payment_status, actor_id=admin.id)
