# tests/unit/core/test_enums.py
import pytest

from storefront.core.enums import ORDER_TRANSITIONS, OrderStatus

ALLOWED = {
    (OrderStatus.PENDING, OrderStatus.CONFIRMED),
    (OrderStatus.PENDING, OrderStatus.CANCELLED),
    (OrderStatus.CONFIRMED, OrderStatus.PROCESSING),
    (OrderStatus.CONFIRMED, OrderStatus.CANCELLED),
    (OrderStatus.PROCESSING, OrderStatus.SHIPPED),
    (OrderStatus.SHIPPED, OrderStatus.DELIVERED),
}


@pytest.mark.parametrize("current", list(OrderStatus))
@pytest.mark.parametrize("target", list(OrderStatus))
def test_transition_table_matches_lifecycle(current, target):
    assert current.can_transition_to(target) == ((current, target) in ALLOWED)


def test_every_status_has_a_table_entry():
    assert set(ORDER_TRANSITIONS) == set(OrderStatus)


@pytest.mark.parametrize("status", [OrderStatus.DELIVERED, OrderStatus.CANCELLED])
def test_terminal_states(status):
    assert not ORDER_TRANSITIONS[status]
    assert not status.is_cancellable


def test_cancellable_states():
    cancellable = {status for status in OrderStatus if status.is_cancellable}

    assert cancellable == {OrderStatus.PENDING, OrderStatus.CONFIRMED}
