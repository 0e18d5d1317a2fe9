import asyncio
import uuid
from decimal import Decimal
from unittest.mock import patch

import pytest

from backhouse.core.errors import NotFound, ValidationFailure
from backhouse.models.inventory import InventoryItem
from backhouse.models.menu import EightySixEntry
from backhouse.models.order import Order, OrderStatus
from backhouse.monitor.low_stock import LowStockMonitor
from backhouse.processors.order_completion import (
    deduct_inventory_for_order,
    floored_deduction,
    on_order_completed,
)
from tests.factories import make_completed_order, make_ingredient, make_menu_item, require


def test_floored_deduction():
    assert floored_deduction(Decimal("10"), Decimal("2.5")) == Decimal("7.5")
    assert floored_deduction(Decimal("1.0"), Decimal("1.25")) == Decimal("0")
    with pytest.raises(ValidationFailure):
        floored_deduction(Decimal("1"), Decimal("-1"))


@pytest.mark.asyncio
async def test_burger_rush_deducts_86s_and_alerts(db, dispatcher, gateway):
    burger = await make_menu_item()
    beef = await make_ingredient(stock="1.0", par="5")
    await require(burger, beef, "0.25")
    order = await make_completed_order((burger, 5))

    report = await on_order_completed(order.id, dispatcher)

    assert (await InventoryItem.get(id=beef.id)).current_stock == Decimal("0")
    assert [o.menu_item_id for o in report.changed] == [burger.id]
    entry = await EightySixEntry.get(menu_item_id=burger.id, removed_at__isnull=True)
    assert entry.is_auto_generated is True
    assert "Ground Beef" in entry.reason

    state = gateway.events("menu-state-changed")
    assert len(state) == 1
    assert state[0]["data"]["available"] is False
    assert state[0]["roles"] is None

    sweep = await LowStockMonitor(dispatcher).sweep()
    assert sweep.created == [str(beef.id)]
    alerts = [a for a in gateway.events("inventory-alert") if a["data"]["item_id"] == str(beef.id)]
    assert alerts[0]["data"]["severity"] == "critical"
    assert alerts[0]["data"]["metadata"]["stock_percentage"] == 0


@pytest.mark.asyncio
async def test_shared_ingredient_is_summed_and_items_reconciled_once(db, dispatcher):
    burger = await make_menu_item()
    cheeseburger = await make_menu_item(name="Cheeseburger", price="13.99")
    beef = await make_ingredient(stock="10")
    await require(burger, beef, "0.25")
    await require(cheeseburger, beef, "0.25")
    order = await make_completed_order((burger, 2), (cheeseburger, 1), (burger, 1))

    touched = await deduct_inventory_for_order(order.id)

    assert sorted(touched) == sorted([burger.id, cheeseburger.id])
    assert (await InventoryItem.get(id=beef.id)).current_stock == Decimal("9")
    assert (await Order.get(id=order.id)).inventory_deducted is True


@pytest.mark.asyncio
async def test_second_run_does_not_deduct_again(db, dispatcher):
    burger = await make_menu_item()
    beef = await make_ingredient(stock="10")
    await require(burger, beef, "1")
    order = await make_completed_order((burger, 3))

    await on_order_completed(order.id, dispatcher)
    report = await on_order_completed(order.id, dispatcher)

    assert (await InventoryItem.get(id=beef.id)).current_stock == Decimal("7")
    assert len(report.outcomes) == 1
    assert report.changed == []


@pytest.mark.asyncio
async def test_item_without_requirements_is_still_reconciled(db, dispatcher):
    soda = await make_menu_item(name="Fountain Soda", price="2.50", category="drinks")
    order = await make_completed_order((soda, 2))

    report = await on_order_completed(order.id, dispatcher)

    assert [o.menu_item_id for o in report.succeeded] == [soda.id]
    assert report.changed == []


@pytest.mark.asyncio
async def test_one_failing_item_does_not_stop_the_rest(db, dispatcher):
    burger = await make_menu_item()
    salad = await make_menu_item(name="Caesar Salad", price="9.99", category="salads")
    beef = await make_ingredient(stock="0.5")
    lettuce = await make_ingredient(name="Romaine Lettuce", stock="0.2", unit="heads", category="produce")
    await require(burger, beef, "0.25")
    await require(salad, lettuce, "0.5")
    order = await make_completed_order((burger, 1), (salad, 1))

    from backhouse.services import eighty_six
    real_reconcile = eighty_six.reconcile

    async def flaky(menu_item_id):
        if menu_item_id == burger.id:
            raise RuntimeError("connection reset")
        return await real_reconcile(menu_item_id)

    with patch("backhouse.processors.batch.reconcile", side_effect=flaky):
        report = await on_order_completed(order.id, dispatcher)

    assert [o.menu_item_id for o in report.failed] == [burger.id]
    assert [o.menu_item_id for o in report.changed] == [salad.id]
    assert await EightySixEntry.filter(menu_item_id=salad.id, removed_at__isnull=True).count() == 1


@pytest.mark.asyncio
async def test_order_must_be_completed(db):
    burger = await make_menu_item()
    order = await make_completed_order((burger, 1))
    order.status = OrderStatus.READY
    await order.save()

    with pytest.raises(ValidationFailure):
        await deduct_inventory_for_order(order.id)


@pytest.mark.asyncio
async def test_unknown_order(db):
    with pytest.raises(NotFound):
        await deduct_inventory_for_order(uuid.uuid4())


@pytest.mark.asyncio
async def test_concurrent_completions_lose_no_deduction(db, dispatcher):
    burger = await make_menu_item()
    beef = await make_ingredient(stock="10")
    await require(burger, beef, "1")
    orders = [await make_completed_order((burger, 1)) for _ in range(5)]

    reports = await asyncio.gather(*(on_order_completed(o.id, dispatcher) for o in orders))

    assert (await InventoryItem.get(id=beef.id)).current_stock == Decimal("5")
    assert all(not r.failed for r in reports)
    assert await Order.filter(inventory_deducted=True).count() == 5
