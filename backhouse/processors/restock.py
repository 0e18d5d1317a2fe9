import logging
from typing import Optional
from uuid import UUID

from backhouse.core.errors import NotFound, persistence_errors
from backhouse.events.dispatcher import EventDispatcher
from backhouse.events.events import MenuBulkUpdated
from backhouse.models.inventory import InventoryItem, InventoryRequirement
from backhouse.models.menu import MenuItem
from backhouse.processors.batch import BatchReport, reconcile_many

log = logging.getLogger(__name__)


async def on_inventory_replenished(inventory_item_id: UUID, dispatcher: Optional[EventDispatcher]) -> BatchReport:
    """
    Re-evaluates every menu item that uses the ingredient. The stock change
    itself must already be committed by the caller.
    """
    with persistence_errors(f"load dependents of inventory item {inventory_item_id}"):
        if not await InventoryItem.filter(id=inventory_item_id).exists():
            raise NotFound(f"Inventory item {inventory_item_id} not found.")
        menu_item_ids = await (
            InventoryRequirement.filter(inventory_item_id=inventory_item_id)
            .distinct()
            .values_list("menu_item_id", flat=True)
        )

    report = await reconcile_many(menu_item_ids, dispatcher)
    log.info(f"INVENTORY RESTOCKED: Updated availability for {len(menu_item_ids)} menu items")
    return report


async def refresh_all_availability(dispatcher: Optional[EventDispatcher]) -> BatchReport:
    """Reconciles the whole menu; emits one bulk summary if anything changed."""
    with persistence_errors("list menu items"):
        menu_item_ids = await MenuItem.all().order_by("category", "name").values_list("id", flat=True)

    report = await reconcile_many(menu_item_ids, dispatcher)
    available = sum(1 for o in report.succeeded if o.available)
    summary = {
        "total": len(report.outcomes),
        "available": available,
        "unavailable": len(report.succeeded) - available,
        "failed": len(report.failed),
        "changed": [o.to_dict() for o in report.changed],
    }
    if report.changed and dispatcher is not None:
        await dispatcher.dispatch([MenuBulkUpdated(summary=summary)])

    log.info(
        f"BULK AVAILABILITY UPDATE: {len(report.changed)} items changed, "
        f"{summary['available']} available, {summary['unavailable']} unavailable"
    )
    return report
