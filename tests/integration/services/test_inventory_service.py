# tests/integration/services/test_inventory_service.py
import pytest
from sqlalchemy import select

from storefront.core.enums import StockAlertType
from storefront.core.exceptions import (
    InsufficientStockError,
    InventoryValidationError,
    PersistenceError,
    StockRecordNotFoundError,
)
from storefront.models import ActivityLog
from storefront.services.allocation import Allocation
from storefront.services.inventory_service import InventoryService
from tests.fixtures.catalog import (
    add_stock,
    create_product,
    create_warehouse,
    seed_two_warehouses,
    stock_levels,
)


@pytest.mark.asyncio
async def test_get_available_sums_all_warehouses(db_session):
    product, _, _ = await seed_two_warehouses(db_session, 5, 3)

    assert await InventoryService(db_session).get_available(product.id) == 8


@pytest.mark.asyncio
async def test_get_available_for_unstocked_product_is_zero(db_session):
    product = await create_product(db_session)

    assert await InventoryService(db_session).get_available(product.id) == 0


@pytest.mark.asyncio
async def test_reserve_seven_from_five_and_three(db_session):
    # Arrange
    product, wh1, wh2 = await seed_two_warehouses(db_session, 5, 3)
    service = InventoryService(db_session)

    # Act
    plan = await service.reserve(product.id, 7)
    await db_session.commit()

    # Assert
    assert [(step.warehouse_id, step.quantity) for step in plan] == [(wh1.id, 5), (wh2.id, 2)]
    assert await stock_levels(db_session, product.id) == {wh1.id: 0, wh2.id: 1}


@pytest.mark.asyncio
async def test_reserve_more_than_available_changes_nothing(db_session):
    product, wh1, wh2 = await seed_two_warehouses(db_session, 5, 3)
    service = InventoryService(db_session)

    with pytest.raises(InsufficientStockError) as exc_info:
        await service.reserve(product.id, 10)

    assert exc_info.value.requested == 10
    assert exc_info.value.available == 8
    assert await stock_levels(db_session, product.id) == {wh1.id: 5, wh2.id: 3}


@pytest.mark.asyncio
async def test_reserve_rejects_non_positive_quantity(db_session):
    product, _, _ = await seed_two_warehouses(db_session)

    with pytest.raises(InventoryValidationError):
        await InventoryService(db_session).reserve(product.id, 0)


@pytest.mark.asyncio
async def test_reserve_replans_when_stock_moves(db_session, mocker):
    product, wh1, wh2 = await seed_two_warehouses(db_session, 5, 3)
    service = InventoryService(db_session)
    real_apply = service._apply_delta
    # First conditional update loses the race, the retry goes through
    mocker.patch.object(service, "_apply_delta", side_effect=_first_fails(real_apply))

    plan = await service.reserve(product.id, 4)
    await db_session.commit()

    assert plan == [Allocation(plan[0].inventory_id, wh1.id, 4)]
    assert await stock_levels(db_session, product.id) == {wh1.id: 1, wh2.id: 3}


@pytest.mark.asyncio
async def test_reserve_gives_up_after_max_retries(db_session, mocker):
    product, wh1, wh2 = await seed_two_warehouses(db_session, 5, 3)
    service = InventoryService(db_session, max_retries=2)
    mocker.patch.object(service, "_apply_delta", mocker.AsyncMock(return_value=False))

    with pytest.raises(PersistenceError):
        await service.reserve(product.id, 4)

    assert service._apply_delta.await_count == 2
    assert await stock_levels(db_session, product.id) == {wh1.id: 5, wh2.id: 3}


@pytest.mark.asyncio
async def test_explicit_zero_retries_is_rejected_not_defaulted(db_session):
    with pytest.raises(ValueError):
        InventoryService(db_session, max_retries=0)

    assert InventoryService(db_session, max_retries=1).max_retries == 1
    assert InventoryService(db_session).max_retries == 3


def _first_fails(real):
    calls = {"count": 0}

    async def apply(inventory_id, delta):
        calls["count"] += 1
        if calls["count"] == 1:
            return False
        return await real(inventory_id, delta)

    return apply


@pytest.mark.asyncio
async def test_release_with_allocations_is_exact_inverse(db_session):
    product, wh1, wh2 = await seed_two_warehouses(db_session, 5, 3)
    service = InventoryService(db_session)

    plan = await service.reserve(product.id, 7)
    await service.release(product.id, 7, allocations=plan)
    await db_session.commit()

    assert await stock_levels(db_session, product.id) == {wh1.id: 5, wh2.id: 3}


@pytest.mark.asyncio
async def test_release_without_allocations_refills_smallest(db_session):
    product, wh1, wh2 = await seed_two_warehouses(db_session, 5, 3)
    service = InventoryService(db_session)

    await service.release(product.id, 4)
    await db_session.commit()

    assert await stock_levels(db_session, product.id) == {wh1.id: 5, wh2.id: 7}


@pytest.mark.asyncio
async def test_release_allocations_must_match_quantity(db_session):
    product, wh1, _ = await seed_two_warehouses(db_session, 5, 3)
    service = InventoryService(db_session)

    with pytest.raises(InventoryValidationError):
        await service.release(product.id, 3, allocations=[Allocation(1, wh1.id, 2)])


@pytest.mark.asyncio
async def test_release_to_unstocked_product_fails(db_session):
    product = await create_product(db_session)

    with pytest.raises(StockRecordNotFoundError):
        await InventoryService(db_session).release(product.id, 2)


@pytest.mark.asyncio
async def test_transfer_moves_stock(db_session):
    product, wh1, wh2 = await seed_two_warehouses(db_session, 5, 3)

    await InventoryService(db_session).transfer(product.id, wh1.id, wh2.id, 4)
    await db_session.commit()

    assert await stock_levels(db_session, product.id) == {wh1.id: 1, wh2.id: 7}


@pytest.mark.asyncio
async def test_transfer_creates_destination_record(db_session):
    product, wh1, wh2 = await seed_two_warehouses(db_session, 5, 3)
    wh3 = await create_warehouse(db_session, "WH3", "East")
    await db_session.commit()

    await InventoryService(db_session).transfer(product.id, wh1.id, wh3.id, 2)
    await db_session.commit()

    assert await stock_levels(db_session, product.id) == {wh1.id: 3, wh2.id: 3, wh3.id: 2}


@pytest.mark.asyncio
async def test_transfer_more_than_source_holds(db_session):
    product, wh1, wh2 = await seed_two_warehouses(db_session, 5, 3)

    with pytest.raises(InsufficientStockError):
        await InventoryService(db_session).transfer(product.id, wh2.id, wh1.id, 4)

    assert await stock_levels(db_session, product.id) == {wh1.id: 5, wh2.id: 3}


@pytest.mark.asyncio
async def test_transfer_to_same_warehouse_is_invalid(db_session):
    product, wh1, _ = await seed_two_warehouses(db_session)

    with pytest.raises(InventoryValidationError):
        await InventoryService(db_session).transfer(product.id, wh1.id, wh1.id, 1)


@pytest.mark.asyncio
async def test_transfer_from_missing_record(db_session):
    product, wh1, _ = await seed_two_warehouses(db_session)
    wh3 = await create_warehouse(db_session, "WH3")

    with pytest.raises(StockRecordNotFoundError):
        await InventoryService(db_session).transfer(product.id, wh3.id, wh1.id, 1)


@pytest.mark.asyncio
async def test_adjust_sets_absolute_quantity(db_session):
    product, wh1, wh2 = await seed_two_warehouses(db_session, 5, 3)

    record = await InventoryService(db_session).adjust(product.id, wh2.id, 40, min_stock=5)
    await db_session.commit()

    assert record.quantity == 40
    assert record.min_stock == 5
    assert await stock_levels(db_session, product.id) == {wh1.id: 5, wh2.id: 40}


@pytest.mark.asyncio
async def test_adjust_creates_missing_record(db_session):
    product = await create_product(db_session)
    warehouse = await create_warehouse(db_session, "WH1")
    await db_session.commit()

    record = await InventoryService(db_session).adjust(product.id, warehouse.id, 12)
    await db_session.commit()

    assert record.min_stock == 10
    assert record.max_stock == 1000
    assert await stock_levels(db_session, product.id) == {warehouse.id: 12}


@pytest.mark.asyncio
async def test_adjust_rejects_inverted_thresholds(db_session):
    product, wh1, _ = await seed_two_warehouses(db_session)

    with pytest.raises(InventoryValidationError):
        await InventoryService(db_session).adjust(product.id, wh1.id, 5, min_stock=50, max_stock=20)


@pytest.mark.asyncio
async def test_low_stock_alerts(db_session):
    product = await create_product(db_session, sku="LOW-1", name="Cable")
    healthy = await create_product(db_session, sku="OK-1", name="Monitor")
    wh1 = await create_warehouse(db_session, "WH1")
    wh2 = await create_warehouse(db_session, "WH2")
    await add_stock(db_session, product, wh1, 0)
    await add_stock(db_session, product, wh2, 4)
    await add_stock(db_session, healthy, wh1, 50)
    await db_session.commit()

    alerts = await InventoryService(db_session).get_low_stock_alerts()

    assert [(a.product_id, a.warehouse_id, a.alert_type) for a in alerts] == [
        (product.id, wh1.id, StockAlertType.OUT_OF_STOCK),
        (product.id, wh2.id, StockAlertType.LOW_STOCK),
    ]
    assert alerts[0].product_name == "Cable"


@pytest.mark.asyncio
async def test_stock_listings(db_session):
    product, wh1, wh2 = await seed_two_warehouses(db_session, 5, 3)
    service = InventoryService(db_session)

    by_product = await service.get_stock_by_product(product.id)
    by_warehouse = await service.get_stock_by_warehouse(wh2.id)

    assert [(r.warehouse_id, r.quantity) for r in by_product] == [(wh1.id, 5), (wh2.id, 3)]
    assert by_product[0].warehouse.code == "WH1"
    assert [(r.product_id, r.quantity) for r in by_warehouse] == [(product.id, 3)]


@pytest.mark.asyncio
async def test_movements_are_logged(db_session):
    product, wh1, wh2 = await seed_two_warehouses(db_session, 5, 3)
    service = InventoryService(db_session)

    plan = await service.reserve(product.id, 2)
    await service.release(product.id, 2, allocations=plan)
    await service.transfer(product.id, wh1.id, wh2.id, 1)
    await service.adjust(product.id, wh1.id, 9)
    await db_session.commit()

    actions = (await db_session.execute(
        select(ActivityLog.action).where(ActivityLog.entity_type == "product").order_by(ActivityLog.id)
    )).scalars().all()
    assert actions == ["reserve", "release", "transfer", "adjust"]
