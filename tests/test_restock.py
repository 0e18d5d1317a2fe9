import uuid
from decimal import Decimal

import pytest

from backhouse.core.errors import NotFound, ValidationFailure
from backhouse.models.menu import EightySixEntry
from backhouse.processors.restock import on_inventory_replenished, refresh_all_availability
from backhouse.services import eighty_six, inventory_service
from tests.factories import make_ingredient, make_menu_item, require


@pytest.mark.asyncio
async def test_restock_brings_burger_back(db, dispatcher, gateway):
    burger = await make_menu_item()
    beef = await make_ingredient(stock="0")
    await require(burger, beef, "0.25")
    await eighty_six.reconcile(burger.id)

    item = await inventory_service.restock(beef.id, Decimal("2.0"))
    report = await on_inventory_replenished(item.id, dispatcher)

    assert item.current_stock == Decimal("2.0")
    assert [o.menu_item_id for o in report.changed] == [burger.id]
    state = gateway.events("menu-state-changed")
    assert state[-1]["data"]["available"] is True
    assert state[-1]["data"]["change"] == "item-restored"
    assert await EightySixEntry.filter(menu_item_id=burger.id, removed_at__isnull=True).count() == 0


@pytest.mark.asyncio
async def test_restock_leaves_manual_86_alone(db, dispatcher, gateway):
    burger = await make_menu_item()
    beef = await make_ingredient(stock="0")
    await require(burger, beef, "0.25")
    await eighty_six.add_manual_entry(burger.id, reason="Supplier recall")

    await inventory_service.restock(beef.id, Decimal("10"))
    report = await on_inventory_replenished(beef.id, dispatcher)

    assert report.changed == []
    assert gateway.published == []
    assert await eighty_six.effective_availability(burger.id) is False


@pytest.mark.asyncio
async def test_restock_fans_out_to_every_dependent(db, dispatcher):
    lettuce = await make_ingredient(name="Romaine Lettuce", stock="0", unit="heads", category="produce")
    burger = await make_menu_item()
    salad = await make_menu_item(name="Caesar Salad", price="9.99", category="salads")
    await make_menu_item(name="Fountain Soda", price="2.50", category="drinks")
    await require(burger, lettuce, "0.1")
    await require(salad, lettuce, "0.5")

    report = await on_inventory_replenished(lettuce.id, dispatcher)

    assert sorted(o.menu_item_id for o in report.outcomes) == sorted([burger.id, salad.id])
    assert len(report.changed) == 2


@pytest.mark.asyncio
async def test_restock_validation(db):
    beef = await make_ingredient()
    with pytest.raises(ValidationFailure):
        await inventory_service.restock(beef.id, Decimal("0"))
    with pytest.raises(NotFound):
        await inventory_service.restock(uuid.uuid4(), Decimal("1"))
    with pytest.raises(NotFound):
        await on_inventory_replenished(uuid.uuid4(), None)


@pytest.mark.asyncio
async def test_refresh_all_emits_one_bulk_summary(db, dispatcher, gateway):
    beef = await make_ingredient(stock="0")
    burger = await make_menu_item()
    await make_menu_item(name="Fountain Soda", price="2.50", category="drinks")
    await require(burger, beef, "0.25")

    report = await refresh_all_availability(dispatcher)

    assert len(report.outcomes) == 2
    bulk = gateway.events("menu-bulk-update")
    assert len(bulk) == 1
    assert bulk[0]["data"]["summary"]["unavailable"] == 1
    assert bulk[0]["data"]["summary"]["available"] == 1

    await refresh_all_availability(dispatcher)
    assert len(gateway.events("menu-bulk-update")) == 1
