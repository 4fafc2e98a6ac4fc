"""
Purpose: The cart aggregator. Pending cart lines per user, priced against the
catalog and checked against the stock ledger.

Role: Feeds order placement. Public mutators commit their own transaction;
delete_lines() only flushes so checkout can clear the cart inside its own.

Key features of this service:
- One line per (user, product); adding an existing product increments it
  with an atomic UPDATE so parallel adds never lose a unit.
- A new-line insert that races another insert for the same product falls
  back to the increment.
- Quantities are checked against total stock across all warehouses. The
  check is advisory; reservation at checkout is what guarantees stock.
"""

import logging
from typing import List, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.exceptions import (
    BaseServiceError,
    CartItemNotFoundError,
    InsufficientStockError,
    PersistenceError,
    ValidationError,
)
from storefront.core.utils import utcnow
from storefront.models.cart import CartItem
from storefront.schemas.cart import CartLineRead, CartView
from storefront.services.catalog_service import CatalogService
from storefront.services.inventory_service import InventoryService
from storefront.services.pricing import calculate_totals, line_total

logger = logging.getLogger(__name__)


class CartService:
    def __init__(
        self,
        db: AsyncSession,
        inventory: Optional[InventoryService] = None,
        catalog: Optional[CatalogService] = None,
    ):
        self.db = db
        self.inventory = inventory or InventoryService(db)
        self.catalog = catalog or CatalogService(db)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------
    async def get_lines(self, user_id: int) -> List[CartItem]:
        result = await self.db.execute(
            select(CartItem)
            .where(CartItem.user_id == user_id)
            .order_by(CartItem.created_at, CartItem.id)
            .execution_options(populate_existing=True)
        )
        return list(result.unique().scalars().all())

    async def get_cart(self, user_id: int) -> CartView:
        """Lines with catalog prices, current availability and totals."""
        lines = await self.get_lines(user_id)
        if not lines:
            return CartView()

        available = await self.inventory.get_available_many(line.product_id for line in lines)
        items = []
        for line in lines:
            unit_price = line.product.effective_price
            items.append(CartLineRead(
                id=line.id,
                product_id=line.product_id,
                product_name=line.product.name,
                sku=line.product.sku,
                quantity=line.quantity,
                unit_price=unit_price,
                line_total=line_total(unit_price, line.quantity),
                available_stock=available.get(line.product_id, 0),
                added_at=line.created_at,
            ))

        totals = calculate_totals((item.unit_price, item.quantity) for item in items)
        return CartView(
            items=items,
            item_count=sum(item.quantity for item in items),
            subtotal=totals.subtotal,
            tax=totals.tax,
            shipping_fee=totals.shipping_fee,
            discount=totals.discount,
            total=totals.total,
        )

    async def get_item_count(self, user_id: int) -> int:
        total = await self.db.scalar(
            select(func.coalesce(func.sum(CartItem.quantity), 0)).where(CartItem.user_id == user_id)
        )
        return int(total or 0)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------
    async def add_item(self, user_id: int, product_id: int, quantity: int = 1) -> CartItem:
        """
        Add quantity of a product to the user's cart.

        Raises:
            ProductUnavailableError: product missing or inactive
            InsufficientStockError: the cumulative quantity exceeds stock
        """
        if quantity < 1:
            raise ValidationError("Quantity must be at least 1", {"quantity": quantity})

        try:
            await self.catalog.require_active(product_id)
            existing = await self._find_line(user_id, product_id)
            wanted = quantity + (existing.quantity if existing else 0)
            available = await self.inventory.get_available(product_id)
            if wanted > available:
                raise InsufficientStockError(product_id, wanted, available)

            if existing is not None:
                await self._increment(existing.id, quantity)
            else:
                try:
                    async with self.db.begin_nested():
                        self.db.add(CartItem(user_id=user_id, product_id=product_id, quantity=quantity))
                        await self.db.flush()
                except IntegrityError:
                    logger.info("Cart line for user %s product %s appeared concurrently", user_id, product_id)
                    raced = await self._find_line(user_id, product_id)
                    if raced is None:
                        raise
                    await self._increment(raced.id, quantity)

            await self.db.commit()
        except BaseServiceError:
            await self.db.rollback()
            raise
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Failed to add product %s to cart of user %s: %s", product_id, user_id, e, exc_info=True)
            raise PersistenceError() from e

        logger.info("User %s added %d x product %s to cart", user_id, quantity, product_id)
        return await self._find_line(user_id, product_id)

    async def update_item(self, user_id: int, item_id: int, quantity: int) -> CartItem:
        if quantity < 1:
            raise ValidationError("Quantity must be at least 1", {"quantity": quantity})

        try:
            line = await self._get_owned_line(user_id, item_id)
            available = await self.inventory.get_available(line.product_id)
            if quantity > available:
                raise InsufficientStockError(line.product_id, quantity, available)

            line.quantity = quantity
            await self.db.commit()
        except BaseServiceError:
            await self.db.rollback()
            raise
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Failed to update cart item %s: %s", item_id, e, exc_info=True)
            raise PersistenceError() from e

        return line

    async def remove_item(self, user_id: int, item_id: int) -> None:
        try:
            line = await self._get_owned_line(user_id, item_id)
            await self.db.delete(line)
            await self.db.commit()
        except BaseServiceError:
            await self.db.rollback()
            raise
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Failed to remove cart item %s: %s", item_id, e, exc_info=True)
            raise PersistenceError() from e

    async def clear_cart(self, user_id: int) -> int:
        try:
            removed = await self.delete_lines(user_id)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Failed to clear cart of user %s: %s", user_id, e, exc_info=True)
            raise PersistenceError() from e
        return removed

    async def delete_lines(self, user_id: int) -> int:
        """Delete every line of the user's cart without committing."""
        result = await self.db.execute(
            delete(CartItem)
            .where(CartItem.user_id == user_id)
            .execution_options(synchronize_session=False)
        )
        return result.rowcount

    async def merge_cart(self, from_user_id: int, to_user_id: int) -> int:
        """
        Move a guest cart into a user's cart.

        Shared products have their quantities summed into the user's line;
        the rest change owner. Stock is re-checked at checkout.

        Returns:
            Number of guest lines merged
        """
        if from_user_id == to_user_id:
            return 0

        try:
            guest_lines = await self.get_lines(from_user_id)
            target = {line.product_id: line for line in await self.get_lines(to_user_id)}

            for line in guest_lines:
                existing = target.get(line.product_id)
                if existing is not None:
                    await self.db.delete(line)
                    await self._increment(existing.id, line.quantity)
                else:
                    line.user_id = to_user_id

            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error("Error merging cart from user %s to user %s: %s", from_user_id, to_user_id, e, exc_info=True)
            raise PersistenceError() from e

        logger.info("Merged %d cart line(s) from user %s into user %s", len(guest_lines), from_user_id, to_user_id)
        return len(guest_lines)

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    async def _find_line(self, user_id: int, product_id: int) -> Optional[CartItem]:
        result = await self.db.execute(
            select(CartItem)
            .where(CartItem.user_id == user_id, CartItem.product_id == product_id)
            .execution_options(populate_existing=True)
        )
        return result.unique().scalars().first()

    async def _get_owned_line(self, user_id: int, item_id: int) -> CartItem:
        result = await self.db.execute(
            select(CartItem).where(CartItem.id == item_id, CartItem.user_id == user_id)
        )
        line = result.unique().scalars().first()
        if line is None:
            raise CartItemNotFoundError(item_id)
        return line

    async def _increment(self, item_id: int, quantity: int) -> None:
        await self.db.execute(
            update(CartItem)
            .where(CartItem.id == item_id)
            .values(quantity=CartItem.quantity + quantity, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
