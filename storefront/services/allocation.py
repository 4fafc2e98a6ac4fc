"""
Multi-location stock allocation planning.

Pure functions: given the current balances of one product across warehouses,
work out which stock records to touch and by how much. Nothing here reads or
writes the database; InventoryService applies a plan inside one transaction,
and applies nothing when planning fails.

Reservation drains the largest stockpiles first so small regional stockpiles
stay intact for local fulfilment. Release refills the smallest stockpiles
first, without pushing any record over its high-stock threshold unless every
record is already full.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence


@dataclass(frozen=True)
class StockBalance:
    inventory_id: int
    warehouse_id: int
    quantity: int
    max_stock: Optional[int] = None


@dataclass(frozen=True)
class Allocation:
    inventory_id: int
    warehouse_id: int
    quantity: int


class AllocationShortfall(Exception):
    """The balances cannot cover the requested quantity."""

    def __init__(self, requested: int, available: int):
        super().__init__(f"requested {requested}, available {available}")
        self.requested = requested
        self.available = available


def plan_reservation(balances: Iterable[StockBalance], requested: int) -> List[Allocation]:
    """
    Greedy plan that deducts from the largest balance first.

    Ties are broken by warehouse id so the plan is deterministic.

    Example:
        balances (w1=5, w2=3), requested 7 -> [(w1, 5), (w2, 2)]

    Raises:
        ValueError: requested is not positive
        AllocationShortfall: the balances sum to less than requested
    """
    if requested <= 0:
        raise ValueError("requested quantity must be positive")

    candidates = sorted(
        (b for b in balances if b.quantity > 0),
        key=lambda b: (-b.quantity, b.warehouse_id),
    )
    available = sum(b.quantity for b in candidates)
    if available < requested:
        raise AllocationShortfall(requested, available)

    plan: List[Allocation] = []
    remaining = requested
    for balance in candidates:
        if remaining == 0:
            break
        take = min(balance.quantity, remaining)
        plan.append(Allocation(balance.inventory_id, balance.warehouse_id, take))
        remaining -= take

    return plan


def plan_release(balances: Sequence[StockBalance], quantity: int) -> List[Allocation]:
    """
    Plan returning stock, smallest balance first.

    Each record is filled up to its max_stock ceiling before moving to the
    next. Whatever still does not fit goes to the smallest record.

    Raises:
        ValueError: quantity is not positive, or there is nowhere to put it
    """
    if quantity <= 0:
        raise ValueError("release quantity must be positive")
    if not balances:
        raise ValueError("no stock records to release into")

    ordered = sorted(balances, key=lambda b: (b.quantity, b.warehouse_id))
    amounts: Dict[int, int] = {}
    remaining = quantity

    for balance in ordered:
        if remaining == 0:
            break
        if balance.max_stock is None:
            headroom = remaining
        else:
            headroom = max(0, balance.max_stock - balance.quantity)
        put = min(headroom, remaining)
        if put:
            amounts[balance.inventory_id] = put
            remaining -= put

    if remaining:
        smallest = ordered[0]
        amounts[smallest.inventory_id] = amounts.get(smallest.inventory_id, 0) + remaining

    by_id = {b.inventory_id: b for b in ordered}
    return [
        Allocation(inventory_id, by_id[inventory_id].warehouse_id, amount)
        for inventory_id, amount in amounts.items()
    ]
