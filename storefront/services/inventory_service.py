"""
Purpose: The stock ledger. Per (product, warehouse) availability with atomic
reserve / release / transfer / adjust operations.

Role: Leaf service used by the cart (availability checks), order placement
(reservations) and the order state machine (releases on cancellation).

Key features of this service:
- Never commits. Every write joins the caller's transaction, wrapped in a
  SAVEPOINT so a failed operation leaves no partial effect behind.
- Quantity changes are conditional UPDATEs (quantity >= n), so two
  transactions can never both consume the same unit. Rows are also read
  FOR UPDATE where the dialect supports it.
- When a planned deduction loses a race, the savepoint is rolled back and the
  reservation is re-planned from fresh balances a bounded number of times.
- Every movement is written to the activity log in the same transaction.
"""

import logging
from typing import Dict, Iterable, List, Optional, Sequence

from sqlalchemy import select, update, func
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from storefront.core.config import get_settings
from storefront.core.enums import StockAlertType, StockMovement
from storefront.core.exceptions import (
    InsufficientStockError,
    InventoryValidationError,
    PersistenceError,
    StockRecordNotFoundError,
)
from storefront.core.utils import utcnow
from storefront.models.inventory import Inventory, DEFAULT_MIN_STOCK, DEFAULT_MAX_STOCK
from storefront.schemas.inventory import StockAlertRead
from storefront.services.activity_logger import ActivityLogger
from storefront.services.allocation import (
    Allocation,
    AllocationShortfall,
    StockBalance,
    plan_release,
    plan_reservation,
)

logger = logging.getLogger(__name__)


class _StockMoved(Exception):
    """A conditional update matched no row: someone else changed the balance."""


class InventoryService:
    def __init__(
        self,
        db: AsyncSession,
        activity: Optional[ActivityLogger] = None,
        max_retries: Optional[int] = None,
    ):
        self.db = db
        self.activity = activity or ActivityLogger(db)
        if max_retries is None:
            max_retries = get_settings().RESERVATION_MAX_RETRIES
        if max_retries < 1:
            raise ValueError(f"max_retries must be at least 1, got {max_retries}")
        self.max_retries = max_retries

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    async def get_available(self, product_id: int) -> int:
        """Total quantity of a product across every warehouse."""
        total = await self.db.scalar(
            select(func.coalesce(func.sum(Inventory.quantity), 0))
            .where(Inventory.product_id == product_id)
        )
        return int(total or 0)

    async def get_available_many(self, product_ids: Iterable[int]) -> Dict[int, int]:
        ids = list(set(product_ids))
        if not ids:
            return {}
        result = await self.db.execute(
            select(Inventory.product_id, func.sum(Inventory.quantity))
            .where(Inventory.product_id.in_(ids))
            .group_by(Inventory.product_id)
        )
        available = {product_id: 0 for product_id in ids}
        available.update({product_id: int(total or 0) for product_id, total in result.all()})
        return available

    async def get_stock_by_product(self, product_id: int) -> List[Inventory]:
        result = await self.db.execute(
            select(Inventory)
            .options(selectinload(Inventory.warehouse))
            .where(Inventory.product_id == product_id)
            .order_by(Inventory.warehouse_id)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def get_stock_by_warehouse(self, warehouse_id: int) -> List[Inventory]:
        result = await self.db.execute(
            select(Inventory)
            .options(selectinload(Inventory.product), selectinload(Inventory.warehouse))
            .where(Inventory.warehouse_id == warehouse_id)
            .order_by(Inventory.product_id)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def get_low_stock_alerts(self) -> List[StockAlertRead]:
        """Every stock record at or below its low-stock threshold."""
        result = await self.db.execute(
            select(Inventory)
            .options(selectinload(Inventory.product), selectinload(Inventory.warehouse))
            .where(Inventory.quantity <= Inventory.min_stock)
            .order_by(Inventory.quantity, Inventory.product_id, Inventory.warehouse_id)
            .execution_options(populate_existing=True)
        )
        alerts = []
        for record in result.scalars().all():
            alerts.append(StockAlertRead(
                product_id=record.product_id,
                product_name=record.product.name if record.product else None,
                sku=record.product.sku if record.product else None,
                warehouse_id=record.warehouse_id,
                warehouse_name=record.warehouse.name if record.warehouse else None,
                current_stock=record.quantity,
                min_stock=record.min_stock,
                alert_type=StockAlertType.OUT_OF_STOCK if record.quantity == 0 else StockAlertType.LOW_STOCK,
            ))
        return alerts

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    async def reserve(self, product_id: int, quantity: int) -> List[Allocation]:
        """
        Deduct quantity from the product's warehouses, largest balance first.

        Returns:
            The applied allocations, one per touched stock record

        Raises:
            InsufficientStockError: all warehouses together hold less than quantity
            PersistenceError: the balances kept moving under us; retry later
        """
        if quantity <= 0:
            raise InventoryValidationError("Reservation quantity must be positive", {"quantity": quantity})

        for attempt in range(1, self.max_retries + 1):
            balances = await self._load_balances(product_id)
            try:
                plan = plan_reservation(balances, quantity)
            except AllocationShortfall as e:
                raise InsufficientStockError(product_id, quantity, e.available)

            try:
                async with self.db.begin_nested():
                    for step in plan:
                        if not await self._apply_delta(step.inventory_id, -step.quantity):
                            raise _StockMoved(step.inventory_id)
            except _StockMoved as moved:
                logger.warning(
                    "Stock record %s for product %s changed during reservation (attempt %d/%d), re-planning",
                    moved,
                    product_id,
                    attempt,
                    self.max_retries,
                )
                continue

            self.activity.log_stock_movement(
                StockMovement.RESERVE,
                product_id,
                {"quantity": quantity, "allocations": _describe(plan)},
            )
            logger.info("Reserved %d of product %s across %d warehouse(s)", quantity, product_id, len(plan))
            return plan

        logger.error("Gave up reserving product %s after %d attempts", product_id, self.max_retries)
        raise PersistenceError(f"Stock for product {product_id} is changing too quickly, please retry")

    async def release(
        self,
        product_id: int,
        quantity: int,
        allocations: Optional[Sequence] = None,
    ) -> List[Allocation]:
        """
        Return quantity to the product's warehouses.

        With allocations from an earlier reservation, each recorded quantity
        goes back to exactly the record it came from. Without them, stock is
        spread smallest balance first, up to each record's max_stock.
        """
        if quantity <= 0:
            raise InventoryValidationError("Release quantity must be positive", {"quantity": quantity})

        if allocations:
            plan = [Allocation(a.inventory_id, a.warehouse_id, a.quantity) for a in allocations]
            if sum(step.quantity for step in plan) != quantity:
                raise InventoryValidationError(
                    "Allocations do not add up to the released quantity",
                    {"product_id": product_id, "quantity": quantity},
                )
        else:
            balances = await self._load_balances(product_id)
            if not balances:
                raise StockRecordNotFoundError(product_id)
            plan = plan_release(balances, quantity)

        async with self.db.begin_nested():
            for step in plan:
                if not await self._apply_delta(step.inventory_id, step.quantity):
                    raise StockRecordNotFoundError(product_id, step.warehouse_id)

        self.activity.log_stock_movement(
            StockMovement.RELEASE,
            product_id,
            {"quantity": quantity, "allocations": _describe(plan)},
        )
        logger.info("Released %d of product %s to %d warehouse(s)", quantity, product_id, len(plan))
        return plan

    async def transfer(
        self,
        product_id: int,
        from_warehouse_id: int,
        to_warehouse_id: int,
        quantity: int,
    ) -> None:
        """Move stock between two warehouses in one step."""
        if quantity <= 0:
            raise InventoryValidationError("Transfer quantity must be positive", {"quantity": quantity})
        if from_warehouse_id == to_warehouse_id:
            raise InventoryValidationError(
                "Source and destination warehouses must differ",
                {"warehouse_id": from_warehouse_id},
            )

        # Lock every row of the product in id order, same as reserve()
        records = {r.warehouse_id: r for r in await self._load_records(product_id)}
        source = records.get(from_warehouse_id)
        if source is None:
            raise StockRecordNotFoundError(product_id, from_warehouse_id)

        async with self.db.begin_nested():
            if not await self._apply_delta(source.id, -quantity):
                raise InsufficientStockError(product_id, quantity, source.quantity)

            destination = records.get(to_warehouse_id)
            if destination is None:
                self.db.add(Inventory(
                    product_id=product_id,
                    warehouse_id=to_warehouse_id,
                    quantity=quantity,
                    min_stock=DEFAULT_MIN_STOCK,
                    max_stock=DEFAULT_MAX_STOCK,
                ))
                await self.db.flush()
            else:
                await self._apply_delta(destination.id, quantity)

        self.activity.log_stock_movement(
            StockMovement.TRANSFER,
            product_id,
            {"quantity": quantity, "from_warehouse_id": from_warehouse_id, "to_warehouse_id": to_warehouse_id},
        )
        logger.info(
            "Transferred %d of product %s from warehouse %s to %s",
            quantity, product_id, from_warehouse_id, to_warehouse_id,
        )

    async def adjust(
        self,
        product_id: int,
        warehouse_id: int,
        quantity: int,
        min_stock: Optional[int] = None,
        max_stock: Optional[int] = None,
    ) -> Inventory:
        """Manually set the absolute quantity (and optionally thresholds) of one record."""
        if quantity < 0:
            raise InventoryValidationError("Quantity cannot be negative", {"quantity": quantity})

        records = {r.warehouse_id: r for r in await self._load_records(product_id)}
        record = records.get(warehouse_id)
        previous = record.quantity if record is not None else None

        new_min = min_stock if min_stock is not None else (record.min_stock if record is not None else DEFAULT_MIN_STOCK)
        new_max = max_stock if max_stock is not None else (record.max_stock if record is not None else DEFAULT_MAX_STOCK)
        if new_min < 0 or new_max <= new_min:
            raise InventoryValidationError(
                "Thresholds must satisfy 0 <= min_stock < max_stock",
                {"min_stock": new_min, "max_stock": new_max},
            )

        async with self.db.begin_nested():
            if record is None:
                record = Inventory(
                    product_id=product_id,
                    warehouse_id=warehouse_id,
                    quantity=quantity,
                    min_stock=new_min,
                    max_stock=new_max,
                )
                self.db.add(record)
            else:
                record.quantity = quantity
                record.min_stock = new_min
                record.max_stock = new_max
                record.version_id = record.version_id + 1
            await self.db.flush()

        self.activity.log_stock_movement(
            StockMovement.ADJUST,
            product_id,
            {"warehouse_id": warehouse_id, "previous": previous, "quantity": quantity},
        )
        logger.info(
            "Adjusted product %s at warehouse %s: %s -> %d", product_id, warehouse_id, previous, quantity
        )
        return record

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    async def _load_records(self, product_id: int) -> List[Inventory]:
        result = await self.db.execute(
            select(Inventory)
            .where(Inventory.product_id == product_id)
            .order_by(Inventory.id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def _load_balances(self, product_id: int) -> List[StockBalance]:
        return [
            StockBalance(r.id, r.warehouse_id, r.quantity, r.max_stock)
            for r in await self._load_records(product_id)
        ]

    async def _apply_delta(self, inventory_id: int, delta: int) -> bool:
        """Add delta to one record; a deduction only applies if it keeps quantity >= 0."""
        stmt = update(Inventory).where(Inventory.id == inventory_id)
        if delta < 0:
            stmt = stmt.where(Inventory.quantity >= -delta)
        stmt = (
            stmt.values(
                quantity=Inventory.quantity + delta,
                version_id=Inventory.version_id + 1,
                updated_at=utcnow(),
            )
            .execution_options(synchronize_session=False)
        )
        result = await self.db.execute(stmt)
        return result.rowcount == 1


def _describe(plan: Sequence[Allocation]) -> List[Dict[str, int]]:
    return [
        {"inventory_id": step.inventory_id, "warehouse_id": step.warehouse_id, "quantity": step.quantity}
        for step in plan
    ]
