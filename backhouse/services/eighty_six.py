"""
86-List Manager.

Owns every write to the 86 list. A menu item is in one of three states,
derived from its `is_available` flag and its active entry (removed_at null):

    available      no active entry
    auto-86'd      active entry with is_auto_generated=True
    manually-86'd  active entry with is_auto_generated=False

`reconcile` moves an item between the first two according to the
evaluator; it never closes a manual entry. All writes for one item happen in
one transaction with the menu item row locked, which is also what keeps the
one-active-entry invariant: the active entry is read and written under that
lock.

Functions here return the events describing their state change instead of
broadcasting; the caller hands them to an EventDispatcher after commit.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
from uuid import UUID

from tortoise.transactions import in_transaction

from backhouse.core.errors import ConflictError, NotFound, persistence_errors
from backhouse.events.events import BroadcastEvent, InventoryAlert, MenuStateChanged
from backhouse.models.menu import EightySixEntry, MenuItem
from backhouse.services.availability import evaluate

log = logging.getLogger(__name__)

ITEM_86ED = "item-86ed"
ITEM_RESTORED = "item-restored"
DEFAULT_MANUAL_REASON = "Out of stock"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ReconcileResult:
    menu_item_id: UUID
    available: bool  # Effective availability after the reconcile
    transition: Optional[str] = None  # ITEM_86ED / ITEM_RESTORED, None for a no-op
    events: List[BroadcastEvent] = field(default_factory=list)

    @property
    def changed(self) -> bool:
        return self.transition is not None


# ----------- Read side -----------

def _menu_item_view(menu_item: MenuItem, active: Optional[EightySixEntry]) -> Dict[str, Any]:
    return {
        "id": str(menu_item.id),
        "name": menu_item.name,
        "description": menu_item.description,
        "category": menu_item.category,
        "price": str(menu_item.price),
        "is_available": menu_item.is_available,
        "effective_availability": active is None and menu_item.is_available,
        "eighty_six_reason": active.reason if active else None,
        "is_auto_generated": active.is_auto_generated if active else None,
    }


def _roster_view(entry: EightySixEntry) -> Dict[str, Any]:
    menu_item = entry.menu_item
    return {
        "eighty_six_id": str(entry.id),
        "menu_item_id": str(menu_item.id),
        "name": menu_item.name,
        "category": menu_item.category,
        "reason": entry.reason,
        "is_auto_generated": entry.is_auto_generated,
        "created_by": entry.created_by,
        "created_at": entry.created_at.isoformat() if entry.created_at else None,
    }


async def _active_entry(menu_item_id: UUID, conn: Any = None) -> Optional[EightySixEntry]:
    return await EightySixEntry.filter(menu_item_id=menu_item_id, removed_at__isnull=True).using_db(conn).first()


async def get_current_86_list(conn: Any = None) -> List[Dict[str, Any]]:
    """Active 86 entries, newest first."""
    with persistence_errors("read 86 list"):
        entries = await (
            EightySixEntry.filter(removed_at__isnull=True)
            .using_db(conn)
            .order_by("-created_at")
            .prefetch_related("menu_item")
        )
    return [_roster_view(e) for e in entries]


async def get_menu_item_with_availability(menu_item_id: UUID, conn: Any = None) -> Dict[str, Any]:
    with persistence_errors("read menu item"):
        menu_item = await MenuItem.get_or_none(id=menu_item_id).using_db(conn)
        if not menu_item:
            raise NotFound(f"Menu item {menu_item_id} not found.")
        active = await _active_entry(menu_item_id, conn)
    return _menu_item_view(menu_item, active)


async def effective_availability(menu_item_id: UUID) -> bool:
    """False while an 86 entry is active, otherwise the staff flag."""
    view = await get_menu_item_with_availability(menu_item_id)
    return view["effective_availability"]


async def get_full_menu_with_availability(category: Optional[str] = None) -> List[Dict[str, Any]]:
    with persistence_errors("read menu"):
        query = MenuItem.all()
        if category:
            query = query.filter(category=category)
        menu_items = await query.order_by("category", "name")
        active = await EightySixEntry.filter(removed_at__isnull=True)
    active_by_item = {e.menu_item_id: e for e in active}
    return [_menu_item_view(m, active_by_item.get(m.id)) for m in menu_items]


# ----------- Write side -----------

async def _state_change_events(
    menu_item: MenuItem,
    active: Optional[EightySixEntry],
    transition: str,
    reason: Optional[str],
    alert_reason: str,
    conn: Any,
) -> List[BroadcastEvent]:
    """Builds the public state event and the narrower staff alert from inside the transaction."""
    view = _menu_item_view(menu_item, active)
    roster = await get_current_86_list(conn)
    return [
        MenuStateChanged(
            menu_item_id=str(menu_item.id),
            available=view["effective_availability"],
            change=transition,
            reason=reason,
            menu_item=view,
            eighty_six_list=roster,
        ),
        InventoryAlert(
            item_id=str(menu_item.id),
            severity="warning" if transition == ITEM_86ED else "info",
            message=f"{menu_item.name}: {alert_reason}",
            metadata={"change": transition, "menu_item_name": menu_item.name},
        ),
    ]


async def reconcile(menu_item_id: UUID) -> ReconcileResult:
    """
    Re-derives a menu item's 86 state from current stock and applies it.

    Raises NotFound for an unknown item and TransientPersistenceFailure when
    the transaction aborts; in both cases nothing was written.
    """
    with persistence_errors(f"reconcile menu item {menu_item_id}"):
        async with in_transaction() as conn:
            menu_item = await MenuItem.filter(id=menu_item_id).using_db(conn).select_for_update().first()
            if not menu_item:
                raise NotFound(f"Menu item {menu_item_id} not found.")

            verdict = await evaluate(menu_item_id, conn=conn)
            active = await _active_entry(menu_item_id, conn)

            if not verdict.available and active is None:
                reason = verdict.reason()
                entry = await EightySixEntry.create(
                    menu_item=menu_item,
                    reason=reason,
                    created_by=None,
                    is_auto_generated=True,
                    using_db=conn,
                )
                menu_item.is_available = False
                await menu_item.save(update_fields=["is_available", "updated_at"], using_db=conn)
                events = await _state_change_events(
                    menu_item, entry, ITEM_86ED, reason,
                    "Insufficient inventory: " + ", ".join(s.name for s in verdict.shortfalls),
                    conn,
                )
                log.info(f"AUTO-86: {menu_item.name} - {reason}")
                return ReconcileResult(menu_item.id, False, ITEM_86ED, events)

            if verdict.available and active is not None and active.is_auto_generated:
                active.removed_at = utcnow()
                await active.save(update_fields=["removed_at"], using_db=conn)
                menu_item.is_available = True
                await menu_item.save(update_fields=["is_available", "updated_at"], using_db=conn)
                events = await _state_change_events(
                    menu_item, None, ITEM_RESTORED, None, "Inventory replenished", conn,
                )
                log.info(f"AUTO-RESTORE: {menu_item.name} - Inventory replenished")
                return ReconcileResult(menu_item.id, True, ITEM_RESTORED, events)

            # Verdict already reflected, or a manual entry holds the item
            return ReconcileResult(menu_item.id, active is None and menu_item.is_available)


async def add_manual_entry(menu_item_id: UUID, reason: Optional[str] = None, created_by: Optional[str] = None):
    """Staff 86. Returns (entry, events); ConflictError if the item is already 86'd."""
    with persistence_errors(f"86 menu item {menu_item_id}"):
        async with in_transaction() as conn:
            menu_item = await MenuItem.filter(id=menu_item_id).using_db(conn).select_for_update().first()
            if not menu_item:
                raise NotFound(f"Menu item {menu_item_id} not found.")
            if await _active_entry(menu_item_id, conn):
                raise ConflictError(f"Menu item {menu_item.name} is already 86'd.")

            reason = reason or DEFAULT_MANUAL_REASON
            entry = await EightySixEntry.create(
                menu_item=menu_item,
                reason=reason,
                created_by=created_by,
                is_auto_generated=False,
                using_db=conn,
            )
            events = await _state_change_events(menu_item, entry, ITEM_86ED, reason, reason, conn)

    log.info(f"MANUAL-86: {menu_item.name} by {created_by or 'unknown'} - {reason}")
    return entry, events


async def remove_entry(menu_item_id: UUID, removed_by: Optional[str] = None) -> List[BroadcastEvent]:
    """
    Staff un-86 of whatever entry is active, manual or automatic.

    Closing a manual entry leaves the staff flag alone. Closing an auto entry
    turns the item back on only if current stock covers one unit; otherwise
    it stays off until a restock reconciles it.
    """
    with persistence_errors(f"remove 86 for menu item {menu_item_id}"):
        async with in_transaction() as conn:
            menu_item = await MenuItem.filter(id=menu_item_id).using_db(conn).select_for_update().first()
            if not menu_item:
                raise NotFound(f"Menu item {menu_item_id} not found.")
            active = await _active_entry(menu_item_id, conn)
            if not active:
                raise NotFound(f"Menu item {menu_item.name} is not on the 86 list.")

            active.removed_at = utcnow()
            await active.save(update_fields=["removed_at"], using_db=conn)
            if active.is_auto_generated:
                verdict = await evaluate(menu_item_id, conn=conn)
                if verdict.available:
                    menu_item.is_available = True
                    await menu_item.save(update_fields=["is_available", "updated_at"], using_db=conn)
                else:
                    log.warning(f"{menu_item.name} un-86'd while still short: {verdict.reason()}")
            events = await _state_change_events(
                menu_item, None, ITEM_RESTORED, None, "Removed from 86 list by staff", conn,
            )

    log.info(f"MANUAL-RESTORE: {menu_item.name} by {removed_by or 'unknown'} (available={menu_item.is_available})")
    return events
