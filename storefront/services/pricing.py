"""
Centralized cart and order totals.

Money is Decimal throughout, quantized to cents with ROUND_HALF_UP.
Tax is charged on the undiscounted subtotal; shipping is free once the
subtotal reaches the threshold.
"""

from dataclasses import dataclass
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Tuple, Union

TAX_RATE = Decimal("0.10")
FREE_SHIPPING_THRESHOLD = Decimal("500000")
FLAT_SHIPPING_FEE = Decimal("30000")

CENTS = Decimal("0.01")

Number = Union[Decimal, int, float, str]


def to_money(value: Number) -> Decimal:
    """
    Coerce a number to a Decimal rounded to cents.

    Examples:
        to_money(10) -> Decimal("10.00")
        to_money("0.125") -> Decimal("0.13")
    """
    if not isinstance(value, Decimal):
        # str() first so floats do not drag binary noise in
        value = Decimal(str(value))
    return value.quantize(CENTS, rounding=ROUND_HALF_UP)


@dataclass(frozen=True)
class Totals:
    subtotal: Decimal
    tax: Decimal
    shipping_fee: Decimal
    discount: Decimal
    total: Decimal


def line_total(unit_price: Number, quantity: int) -> Decimal:
    return to_money(to_money(unit_price) * quantity)


def shipping_fee_for(subtotal: Number) -> Decimal:
    """Flat fee below the free-shipping threshold, nothing at or above it."""
    if to_money(subtotal) >= FREE_SHIPPING_THRESHOLD:
        return to_money(0)
    return to_money(FLAT_SHIPPING_FEE)


def calculate_totals(lines: Iterable[Tuple[Number, int]], discount: Number = 0) -> Totals:
    """
    Compute totals for (unit_price, quantity) pairs.

    The discount is capped at the subtotal. Pure: the same lines always
    produce the same totals.

    Examples:
        [(1000000, 2)] -> subtotal 2000000, tax 200000, shipping 0, total 2200000
        [(100000, 1)]  -> subtotal 100000, tax 10000, shipping 30000, total 140000
    """
    subtotal = to_money(sum((line_total(price, qty) for price, qty in lines), Decimal("0")))
    if subtotal == 0:
        zero = to_money(0)
        return Totals(zero, zero, zero, zero, zero)

    tax = to_money(subtotal * TAX_RATE)
    shipping = shipping_fee_for(subtotal)
    applied_discount = min(max(to_money(discount), to_money(0)), subtotal)
    total = to_money(subtotal + tax + shipping - applied_discount)

    return Totals(
        subtotal=subtotal,
        tax=tax,
        shipping_fee=shipping,
        discount=applied_discount,
        total=total,
    )
