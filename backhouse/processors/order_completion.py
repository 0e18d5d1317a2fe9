"""
Order Completion Processor.

Runs once an order has been committed as `completed`, in two phases:

1. one transaction deducts every ingredient the order consumed (floored at
   zero) and marks the order as deducted;
2. each distinct menu item on the order is reconciled in its own transaction.

A crash between the phases leaves stock deducted and availability stale until
the next trigger for those items; the next completion, restock or bulk
refresh converges it.
"""
import logging
from decimal import Decimal
from typing import Dict, List, Optional
from uuid import UUID

from tortoise.transactions import in_transaction

from backhouse.core.errors import NotFound, ValidationFailure, persistence_errors
from backhouse.events.dispatcher import EventDispatcher
from backhouse.models.inventory import InventoryItem, InventoryRequirement
from backhouse.models.order import Order, OrderItem, OrderStatus
from backhouse.processors.batch import BatchReport, reconcile_many

log = logging.getLogger(__name__)

ZERO = Decimal("0")


def floored_deduction(current_stock: Decimal, amount: Decimal) -> Decimal:
    """Stock after removing `amount`; never below zero."""
    if amount < ZERO:
        raise ValidationFailure(f"Deduction amount must not be negative, got {amount}.")
    return max(ZERO, current_stock - amount)


async def deduct_inventory_for_order(order_id: UUID) -> List[UUID]:
    """
    Phase 1. Returns the distinct menu item ids on the order, in first-seen
    order. Deducts nothing if the order was already deducted.
    """
    with persistence_errors(f"deduct inventory for order {order_id}"):
        async with in_transaction() as conn:
            order = await Order.filter(id=order_id).using_db(conn).select_for_update().first()
            if not order:
                raise NotFound(f"Order {order_id} not found.")
            if order.status != OrderStatus.COMPLETED:
                raise ValidationFailure(f"Order {order_id} is {order.status.value}, not completed.")

            lines = await OrderItem.filter(order_id=order_id).using_db(conn)
            units_sold: Dict[UUID, int] = {}
            for line in lines:
                units_sold[line.menu_item_id] = units_sold.get(line.menu_item_id, 0) + line.quantity
            touched = list(units_sold)

            if order.inventory_deducted:
                log.info(f"Order {order_id} already deducted; skipping to reconcile.")
                return touched

            requirements = await InventoryRequirement.filter(menu_item_id__in=touched).using_db(conn)
            amounts: Dict[UUID, Decimal] = {}
            for req in requirements:
                consumed = req.quantity_required * units_sold[req.menu_item_id]
                amounts[req.inventory_item_id] = amounts.get(req.inventory_item_id, ZERO) + consumed

            if amounts:
                # Lock in a stable order so concurrent completions cannot deadlock
                ledger = await (
                    InventoryItem.filter(id__in=list(amounts))
                    .using_db(conn)
                    .order_by("id")
                    .select_for_update()
                )
                for item in ledger:
                    amount = amounts[item.id]
                    before = item.current_stock
                    item.current_stock = floored_deduction(before, amount)
                    await item.save(update_fields=["current_stock", "updated_at"], using_db=conn)
                    log.info(f"INVENTORY DEDUCT: {item.name} {before} -> {item.current_stock} {item.unit} (requested {amount})")

            order.inventory_deducted = True
            await order.save(update_fields=["inventory_deducted", "updated_at"], using_db=conn)

    return touched


async def on_order_completed(order_id: UUID, dispatcher: Optional[EventDispatcher]) -> BatchReport:
    touched = await deduct_inventory_for_order(order_id)
    report = await reconcile_many(touched, dispatcher)
    log.info(
        f"ORDER PROCESSED: Order {order_id} completed, {len(touched)} menu items reconciled "
        f"({len(report.changed)} changed, {len(report.failed)} failed)"
    )
    return report
