"""
Purpose: Coupon validation, discount pricing and redemption counting.

Role: Collaborator for order placement. Coupon definitions are managed
elsewhere; this service only reads them and counts redemptions.
"""

import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.enums import DiscountType
from storefront.core.exceptions import InvalidCouponError
from storefront.core.utils import utcnow
from storefront.models.coupon import Coupon
from storefront.services.pricing import to_money

logger = logging.getLogger(__name__)


class CouponService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_code(self, code: str) -> Optional[Coupon]:
        result = await self.db.execute(select(Coupon).where(Coupon.code == code.upper()))
        return result.scalars().first()

    async def validate_and_price(self, code: str, subtotal: Decimal) -> Decimal:
        """
        Validate a coupon against an order subtotal and price its discount.

        Percentage discounts are capped by max_discount_amount when set, and
        no discount ever exceeds the subtotal.

        Raises:
            InvalidCouponError: unknown, inactive, expired, exhausted, or
                below the minimum order amount
        """
        coupon = await self.get_by_code(code)
        if coupon is None or not coupon.is_active:
            raise InvalidCouponError(code, "Coupon does not exist or is inactive")

        now = utcnow()
        if coupon.start_date and now < coupon.start_date:
            raise InvalidCouponError(code, "Coupon is not active yet")
        if coupon.end_date and now > coupon.end_date:
            raise InvalidCouponError(code, "Coupon has expired")
        if coupon.usage_limit is not None and coupon.used_count >= coupon.usage_limit:
            raise InvalidCouponError(code, "Coupon usage limit reached")
        if subtotal < (coupon.min_order_amount or 0):
            raise InvalidCouponError(
                code, f"Order must be at least {to_money(coupon.min_order_amount)} to use this coupon"
            )

        if coupon.discount_type == DiscountType.PERCENTAGE:
            discount = to_money(subtotal * coupon.discount_value / Decimal(100))
            if coupon.max_discount_amount is not None:
                discount = min(discount, to_money(coupon.max_discount_amount))
        else:
            discount = to_money(coupon.discount_value)

        discount = min(discount, to_money(subtotal))
        logger.debug("Coupon %s prices %s off a subtotal of %s", coupon.code, discount, subtotal)
        return discount

    async def redeem(self, code: str) -> None:
        """
        Count one use of a coupon inside the caller's transaction.

        The increment is conditional on the usage limit, so two checkouts
        racing for the last use cannot both succeed.
        """
        result = await self.db.execute(
            update(Coupon)
            .where(
                Coupon.code == code.upper(),
                (Coupon.usage_limit.is_(None)) | (Coupon.used_count < Coupon.usage_limit),
            )
            .values(used_count=Coupon.used_count + 1)
            .execution_options(synchronize_session=False)
        )
        if result.rowcount != 1:
            raise InvalidCouponError(code, "Coupon usage limit reached")
