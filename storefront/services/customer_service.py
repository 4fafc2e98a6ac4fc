"""
Purpose: The customer ledger. Lifetime purchase totals, loyalty points and
membership tier per user.

Role: Called by order placement (record_purchase) and cancellation
(reverse_purchase). Never commits; changes ride on the caller's transaction.
Rows are read with SELECT ... FOR UPDATE before they are changed.
"""

import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from storefront.core.enums import LoyaltyTier
from storefront.core.utils import generate_reference
from storefront.models.customer import Customer
from storefront.services.pricing import to_money

logger = logging.getLogger(__name__)

# Lifetime spend at which each tier starts, highest first
TIER_THRESHOLDS = (
    (LoyaltyTier.PLATINUM, Decimal("50000000")),
    (LoyaltyTier.GOLD, Decimal("20000000")),
    (LoyaltyTier.SILVER, Decimal("5000000")),
    (LoyaltyTier.BRONZE, Decimal("0")),
)

# One loyalty point per this much spent
POINTS_PER_CURRENCY_UNIT = Decimal("10000")


def tier_for(total_purchased: Decimal) -> LoyaltyTier:
    """
    Membership tier for a lifetime spend.

    Examples:
        tier_for(Decimal("4999999")) -> BRONZE
        tier_for(Decimal("5000000")) -> SILVER
        tier_for(Decimal("50000000")) -> PLATINUM
    """
    for tier, threshold in TIER_THRESHOLDS:
        if total_purchased >= threshold:
            return tier
    return LoyaltyTier.BRONZE


def points_for(amount: Decimal) -> int:
    if amount <= 0:
        return 0
    return int(amount // POINTS_PER_CURRENCY_UNIT)


class CustomerService:
    tier_for = staticmethod(tier_for)

    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_user(self, user_id: int, for_update: bool = False) -> Optional[Customer]:
        query = select(Customer).where(Customer.user_id == user_id)
        if for_update:
            query = query.with_for_update().execution_options(populate_existing=True)
        result = await self.db.execute(query)
        return result.scalars().first()

    async def lock(self, customer_id: int) -> Customer:
        """Re-read a ledger entry under a row lock held until the caller commits."""
        result = await self.db.execute(
            select(Customer)
            .where(Customer.id == customer_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalars().one()

    async def get_or_create(self, user_id: int, email: Optional[str] = None) -> Customer:
        """
        Find the user's ledger entry, creating an empty BRONZE one if missing.

        The entry comes back row-locked, so purchase totals read here cannot
        be overwritten by a concurrent checkout or cancellation.
        """
        customer = await self.get_by_user(user_id, for_update=True)
        if customer is not None:
            if email and customer.email != email:
                customer.email = email
            return customer

        customer = Customer(
            user_id=user_id,
            customer_code=generate_reference("CUS", "%Y%m%d", 1000, 9999),
            email=email,
            total_purchased=Decimal("0"),
            points=0,
            membership_level=LoyaltyTier.BRONZE,
        )
        try:
            async with self.db.begin_nested():
                self.db.add(customer)
                await self.db.flush()
        except IntegrityError:
            # Another checkout for the same user created it first
            logger.info("Customer for user %s created concurrently, reloading", user_id)
            customer = await self.get_by_user(user_id, for_update=True)
            if customer is None:
                raise
            return customer

        logger.info("Created customer %s for user %s", customer.customer_code, user_id)
        return customer

    def record_purchase(self, customer: Customer, amount: Decimal) -> Customer:
        """Add an order total to the ledger and recompute points and tier."""
        previous = customer.membership_level
        customer.total_purchased = to_money(customer.total_purchased + amount)
        customer.points = customer.points + points_for(amount)
        customer.membership_level = tier_for(customer.total_purchased)
        if customer.membership_level != previous:
            logger.info(
                "Customer %s moved from %s to %s", customer.customer_code, previous, customer.membership_level
            )
        return customer

    def reverse_purchase(self, customer: Customer, amount: Decimal) -> Customer:
        """Take a cancelled order total back off the ledger, never below zero."""
        customer.total_purchased = max(to_money(customer.total_purchased - amount), to_money(0))
        customer.points = max(customer.points - points_for(amount), 0)
        customer.membership_level = tier_for(customer.total_purchased)
        return customer
