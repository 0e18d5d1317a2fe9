import asyncio
import uuid
from decimal import Decimal
from unittest.mock import AsyncMock, patch

import pytest
from tortoise.exceptions import OperationalError

from backhouse.core.errors import ConflictError, NotFound, TransientPersistenceFailure, ValidationFailure
from backhouse.models.menu import EightySixEntry, MenuItem
from backhouse.processors.batch import reconcile_many
from backhouse.services import eighty_six
from backhouse.services.eighty_six import ITEM_86ED, ITEM_RESTORED
from backhouse.services.menu_service import set_menu_item_available
from backhouse.services.order_service import place_order
from tests.factories import make_ingredient, make_menu_item, require


async def _burger_with_beef(stock):
    burger = await make_menu_item()
    beef = await make_ingredient(stock=stock)
    await require(burger, beef, "0.25")
    return burger, beef


async def _active_entries(menu_item_id):
    return await EightySixEntry.filter(menu_item_id=menu_item_id, removed_at__isnull=True)


@pytest.mark.asyncio
async def test_reconcile_auto_86s_when_short(db):
    burger, _ = await _burger_with_beef("0.1")

    result = await eighty_six.reconcile(burger.id)

    assert result.transition == ITEM_86ED
    assert result.available is False
    entries = await _active_entries(burger.id)
    assert len(entries) == 1
    assert entries[0].is_auto_generated is True
    assert entries[0].created_by is None
    assert "Ground Beef" in entries[0].reason
    assert (await MenuItem.get(id=burger.id)).is_available is False

    names = [e.event for e in result.events]
    assert names == ["menu-state-changed", "inventory-alert"]
    state = result.events[0]
    assert state.available is False
    assert state.change == ITEM_86ED
    assert [row["name"] for row in state.eighty_six_list] == ["Classic Burger"]


@pytest.mark.asyncio
async def test_reconcile_is_idempotent(db):
    burger, _ = await _burger_with_beef("0")

    first = await eighty_six.reconcile(burger.id)
    second = await eighty_six.reconcile(burger.id)

    assert first.changed is True
    assert second.changed is False
    assert second.events == []
    assert len(await _active_entries(burger.id)) == 1


@pytest.mark.asyncio
async def test_reconcile_noop_when_in_stock(db):
    burger, _ = await _burger_with_beef("5")
    result = await eighty_six.reconcile(burger.id)
    assert result.changed is False
    assert result.available is True
    assert await EightySixEntry.filter(menu_item_id=burger.id).count() == 0


@pytest.mark.asyncio
async def test_reconcile_restores_auto_entry(db):
    burger, beef = await _burger_with_beef("0")
    await eighty_six.reconcile(burger.id)

    beef.current_stock = Decimal("2.0")
    await beef.save()
    result = await eighty_six.reconcile(burger.id)

    assert result.transition == ITEM_RESTORED
    assert result.available is True
    assert await _active_entries(burger.id) == []
    closed = await EightySixEntry.get(menu_item_id=burger.id)
    assert closed.removed_at is not None
    assert (await MenuItem.get(id=burger.id)).is_available is True
    assert result.events[0].eighty_six_list == []


@pytest.mark.asyncio
async def test_reconcile_never_lifts_a_manual_86(db):
    burger, _ = await _burger_with_beef("5")
    await eighty_six.add_manual_entry(burger.id, reason="Grill down", created_by="chef-1")

    result = await eighty_six.reconcile(burger.id)

    assert result.changed is False
    assert result.available is False
    entries = await _active_entries(burger.id)
    assert len(entries) == 1
    assert entries[0].is_auto_generated is False
    assert entries[0].reason == "Grill down"


@pytest.mark.asyncio
async def test_reconcile_does_not_stack_on_manual_86(db):
    burger, _ = await _burger_with_beef("0")
    await eighty_six.add_manual_entry(burger.id)

    result = await eighty_six.reconcile(burger.id)

    assert result.changed is False
    entries = await _active_entries(burger.id)
    assert len(entries) == 1
    assert entries[0].is_auto_generated is False


@pytest.mark.asyncio
async def test_reconcile_unknown_item(db):
    with pytest.raises(NotFound):
        await eighty_six.reconcile(uuid.uuid4())


@pytest.mark.asyncio
async def test_manual_entry_defaults_and_conflict(db):
    burger = await make_menu_item()

    entry, events = await eighty_six.add_manual_entry(burger.id, created_by="mgr-7")

    assert entry.reason == eighty_six.DEFAULT_MANUAL_REASON
    assert entry.created_by == "mgr-7"
    assert events[0].available is False
    assert await eighty_six.effective_availability(burger.id) is False

    with pytest.raises(ConflictError):
        await eighty_six.add_manual_entry(burger.id, reason="again")


@pytest.mark.asyncio
async def test_remove_auto_entry_keeps_item_off_while_short(db):
    burger, _ = await _burger_with_beef("0")
    await eighty_six.reconcile(burger.id)

    events = await eighty_six.remove_entry(burger.id, removed_by="mgr-7")

    assert events[0].change == ITEM_RESTORED
    assert events[0].available is False
    assert await _active_entries(burger.id) == []
    assert await eighty_six.effective_availability(burger.id) is False
    with pytest.raises(ValidationFailure):
        await place_order([{"menu_item_id": burger.id, "quantity": 1}])


@pytest.mark.asyncio
async def test_remove_auto_entry_restores_item_when_stocked(db):
    burger, beef = await _burger_with_beef("0")
    await eighty_six.reconcile(burger.id)
    beef.current_stock = Decimal("1")
    await beef.save()

    events = await eighty_six.remove_entry(burger.id, removed_by="mgr-7")

    assert events[0].available is True
    assert (await MenuItem.get(id=burger.id)).is_available is True


@pytest.mark.asyncio
async def test_remove_manual_entry_keeps_staff_flag(db):
    burger = await make_menu_item()
    await set_menu_item_available(burger.id, False)
    await eighty_six.add_manual_entry(burger.id, reason="Grill down")

    await eighty_six.remove_entry(burger.id)

    assert (await MenuItem.get(id=burger.id)).is_available is False
    assert await eighty_six.effective_availability(burger.id) is False


@pytest.mark.asyncio
async def test_remove_manual_entry_makes_item_orderable(db):
    burger = await make_menu_item()
    await eighty_six.add_manual_entry(burger.id)

    await eighty_six.remove_entry(burger.id)

    assert await eighty_six.effective_availability(burger.id) is True


@pytest.mark.asyncio
async def test_remove_entry_when_not_86d(db):
    burger = await make_menu_item()
    with pytest.raises(NotFound):
        await eighty_six.remove_entry(burger.id)


@pytest.mark.asyncio
async def test_full_menu_reflects_86_list(db):
    burger, _ = await _burger_with_beef("0")
    salad = await make_menu_item(name="Caesar Salad", price="9.99", category="salads")
    await eighty_six.reconcile(burger.id)

    menu = {row["name"]: row for row in await eighty_six.get_full_menu_with_availability()}

    assert menu["Classic Burger"]["effective_availability"] is False
    assert menu["Classic Burger"]["is_auto_generated"] is True
    assert menu["Caesar Salad"]["effective_availability"] is True

    salads = await eighty_six.get_full_menu_with_availability(category="salads")
    assert [row["id"] for row in salads] == [str(salad.id)]


@pytest.mark.asyncio
async def test_failed_reconcile_rolls_back_and_broadcasts_nothing(db, dispatcher, gateway):
    burger, _ = await _burger_with_beef("0")

    with patch.object(MenuItem, "save", AsyncMock(side_effect=OperationalError("disk I/O error"))):
        with pytest.raises(TransientPersistenceFailure):
            await eighty_six.reconcile(burger.id)
        report = await reconcile_many([burger.id], dispatcher)

    assert len(report.failed) == 1
    assert await EightySixEntry.filter(menu_item_id=burger.id).count() == 0
    assert (await MenuItem.get(id=burger.id)).is_available is True
    assert gateway.published == []


@pytest.mark.asyncio
async def test_concurrent_reconciles_leave_one_active_entry(db):
    burger, _ = await _burger_with_beef("0")

    results = await asyncio.gather(*(eighty_six.reconcile(burger.id) for _ in range(5)))

    assert sum(1 for r in results if r.changed) == 1
    assert all(r.available is False for r in results)
    assert len(await _active_entries(burger.id)) == 1
