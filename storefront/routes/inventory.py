"""Stock ledger routes. Reads are open to any signed-in user; writes need admin."""
import logging
from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.exceptions import BaseServiceError, PersistenceError
from storefront.core.security import CurrentUser, get_current_user, require_admin
from storefront.dependencies import get_db
from storefront.schemas.inventory import (
    AvailabilityRead,
    InventoryRead,
    StockAdjustRequest,
    StockAlertRead,
    StockTransferRequest,
)
from storefront.services.inventory_service import InventoryService

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/inventory",
    tags=["inventory"],
    dependencies=[Depends(get_current_user)],
)


async def _finish(db: AsyncSession, operation, action: str) -> None:
    # The ledger never commits; these endpoints own their transaction
    try:
        await operation
        await db.commit()
    except BaseServiceError:
        await db.rollback()
        raise
    except SQLAlchemyError as e:
        await db.rollback()
        logger.error("Failed to commit %s: %s", action, e, exc_info=True)
        raise PersistenceError() from e


@router.get("/products/{product_id}", response_model=List[InventoryRead])
async def get_product_stock(product_id: int, db: AsyncSession = Depends(get_db)):
    return await InventoryService(db).get_stock_by_product(product_id)


@router.get("/products/{product_id}/available", response_model=AvailabilityRead)
async def get_product_availability(product_id: int, db: AsyncSession = Depends(get_db)):
    available = await InventoryService(db).get_available(product_id)
    return AvailabilityRead(product_id=product_id, available=available)


@router.get("/warehouses/{warehouse_id}", response_model=List[InventoryRead])
async def get_warehouse_stock(warehouse_id: int, db: AsyncSession = Depends(get_db)):
    return await InventoryService(db).get_stock_by_warehouse(warehouse_id)


@router.get("/alerts", response_model=List[StockAlertRead])
async def get_low_stock_alerts(db: AsyncSession = Depends(get_db)):
    return await InventoryService(db).get_low_stock_alerts()


@router.put("/adjust", response_model=InventoryRead, dependencies=[require_admin()])
async def adjust_stock(payload: StockAdjustRequest, db: AsyncSession = Depends(get_db)):
    service = InventoryService(db)
    await _finish(
        db,
        service.adjust(
            payload.product_id,
            payload.warehouse_id,
            payload.quantity,
            min_stock=payload.min_stock,
            max_stock=payload.max_stock,
        ),
        "stock adjustment",
    )
    records = await service.get_stock_by_product(payload.product_id)
    return next(r for r in records if r.warehouse_id == payload.warehouse_id)


@router.post("/transfer", response_model=List[InventoryRead], dependencies=[require_admin()])
async def transfer_stock(payload: StockTransferRequest, db: AsyncSession = Depends(get_db)):
    service = InventoryService(db)
    await _finish(
        db,
        service.transfer(
            payload.product_id,
            payload.from_warehouse_id,
            payload.to_warehouse_id,
            payload.quantity,
        ),
        "stock transfer",
    )
    return await service.get_stock_by_product(payload.product_id)
