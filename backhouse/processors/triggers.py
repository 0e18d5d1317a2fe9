"""
Entry points the HTTP layer schedules after committing a change. They run
after the response is sent, so failures are logged here instead of raised.
"""
import logging
from typing import Iterable, Optional
from uuid import UUID

from backhouse.core.errors import BackhouseError
from backhouse.events.dispatcher import EventDispatcher
from backhouse.processors.batch import reconcile_many
from backhouse.processors.order_completion import on_order_completed
from backhouse.processors.restock import on_inventory_replenished

log = logging.getLogger(__name__)


async def run_order_completion(order_id: UUID, dispatcher: Optional[EventDispatcher]):
    try:
        report = await on_order_completed(order_id, dispatcher)
    except BackhouseError as e:
        log.error(f"Inventory processing failed for completed order {order_id}: {e.message}")
        return None
    except Exception:
        log.exception(f"Unexpected error processing completed order {order_id}")
        return None
    for outcome in report.failed:
        log.error(f"Order {order_id}: menu item {outcome.menu_item_id} left unreconciled: {outcome.error}")
    return report


async def run_restock(inventory_item_id: UUID, dispatcher: Optional[EventDispatcher]):
    try:
        return await on_inventory_replenished(inventory_item_id, dispatcher)
    except BackhouseError as e:
        log.error(f"Restock fan-out failed for inventory item {inventory_item_id}: {e.message}")
    except Exception:
        log.exception(f"Unexpected error in restock fan-out for {inventory_item_id}")
    return None


async def run_reconcile(menu_item_ids: Iterable[UUID], dispatcher: Optional[EventDispatcher]):
    try:
        return await reconcile_many(list(menu_item_ids), dispatcher)
    except Exception:
        log.exception("Unexpected error reconciling menu items")
    return None
