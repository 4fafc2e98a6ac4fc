# tests/unit/services/test_pricing.py
from decimal import Decimal

import pytest

from storefront.services.pricing import (
    FLAT_SHIPPING_FEE,
    FREE_SHIPPING_THRESHOLD,
    calculate_totals,
    line_total,
    shipping_fee_for,
    to_money,
)


def test_two_items_at_one_million():
    totals = calculate_totals([(Decimal("1000000"), 2)])

    assert totals.subtotal == Decimal("2000000.00")
    assert totals.tax == Decimal("200000.00")
    assert totals.shipping_fee == Decimal("0.00")
    assert totals.discount == Decimal("0.00")
    assert totals.total == Decimal("2200000.00")


def test_small_order_pays_flat_shipping():
    totals = calculate_totals([(Decimal("100000"), 1)])

    assert totals.shipping_fee == FLAT_SHIPPING_FEE
    assert totals.total == Decimal("140000.00")


def test_threshold_subtotal_ships_free():
    assert shipping_fee_for(FREE_SHIPPING_THRESHOLD) == Decimal("0.00")
    assert shipping_fee_for(FREE_SHIPPING_THRESHOLD - Decimal("0.01")) == FLAT_SHIPPING_FEE


def test_totals_are_idempotent():
    lines = [(Decimal("199999.99"), 3), ("45000", 2)]

    assert calculate_totals(lines) == calculate_totals(lines)


def test_discount_is_capped_at_subtotal():
    totals = calculate_totals([(Decimal("1000"), 1)], discount=Decimal("5000"))

    assert totals.discount == Decimal("1000.00")
    # tax and shipping remain payable
    assert totals.total == Decimal("100.00") + FLAT_SHIPPING_FEE


def test_negative_discount_counts_as_none():
    totals = calculate_totals([(Decimal("1000"), 1)], discount=Decimal("-50"))

    assert totals.discount == Decimal("0.00")


def test_empty_cart_totals_are_zero():
    totals = calculate_totals([])

    assert totals.total == Decimal("0.00")
    assert totals.shipping_fee == Decimal("0.00")


@pytest.mark.parametrize("value, expected", [
    (10, Decimal("10.00")),
    ("0.125", Decimal("0.13")),
    (0.1, Decimal("0.10")),
])
def test_to_money_rounds_half_up(value, expected):
    assert to_money(value) == expected


def test_line_total_multiplies_rounded_unit_price():
    assert line_total("19.995", 3) == Decimal("60.00")
