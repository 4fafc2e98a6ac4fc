# tests/unit/services/test_customer_service.py
from decimal import Decimal
from unittest.mock import AsyncMock

import pytest

from storefront.core.enums import LoyaltyTier
from storefront.models.customer import Customer
from storefront.services.customer_service import CustomerService, points_for, tier_for


@pytest.mark.parametrize("amount, tier", [
    ("0", LoyaltyTier.BRONZE),
    ("4999999.99", LoyaltyTier.BRONZE),
    ("5000000", LoyaltyTier.SILVER),
    ("19999999", LoyaltyTier.SILVER),
    ("20000000", LoyaltyTier.GOLD),
    ("50000000", LoyaltyTier.PLATINUM),
    ("900000000", LoyaltyTier.PLATINUM),
])
def test_tier_breakpoints(amount, tier):
    assert tier_for(Decimal(amount)) == tier
    assert CustomerService.tier_for(Decimal(amount)) == tier


def test_points_one_per_ten_thousand():
    assert points_for(Decimal("2200000")) == 220
    assert points_for(Decimal("9999")) == 0
    assert points_for(Decimal("-5")) == 0


def _customer(total="0", points=0, level=LoyaltyTier.BRONZE):
    return Customer(
        user_id=1,
        customer_code="CUS2026101800001",
        total_purchased=Decimal(total),
        points=points,
        membership_level=level,
    )


def test_record_purchase_promotes_tier():
    # Arrange
    service = CustomerService(db=AsyncMock())
    customer = _customer(total="4000000", points=400)

    # Act
    service.record_purchase(customer, Decimal("2200000"))

    # Assert
    assert customer.total_purchased == Decimal("6200000.00")
    assert customer.points == 620
    assert customer.membership_level == LoyaltyTier.SILVER


def test_reverse_purchase_demotes_tier():
    service = CustomerService(db=AsyncMock())
    customer = _customer(total="6200000", points=620, level=LoyaltyTier.SILVER)

    service.reverse_purchase(customer, Decimal("2200000"))

    assert customer.total_purchased == Decimal("4000000.00")
    assert customer.points == 400
    assert customer.membership_level == LoyaltyTier.BRONZE


def test_reverse_purchase_never_goes_negative():
    service = CustomerService(db=AsyncMock())
    customer = _customer(total="1000", points=3)

    service.reverse_purchase(customer, Decimal("500000"))

    assert customer.total_purchased == Decimal("0.00")
    assert customer.points == 0
    assert customer.membership_level == LoyaltyTier.BRONZE
