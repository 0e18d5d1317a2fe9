from tortoise.transactions import in_transaction
from typing import List, Dict, Optional
from decimal import Decimal
from uuid import UUID
import logging

from backhouse.core.errors import NotFound, ValidationFailure, persistence_errors
from backhouse.models.menu import EightySixEntry, MenuItem
from backhouse.models.order import ALLOWED_TRANSITIONS, FINAL_STATUSES, Order, OrderItem, OrderStatus

log = logging.getLogger(__name__)


async def place_order(
    items: List[Dict],
    customer_name: Optional[str] = None,
    table_number: Optional[str] = None,
) -> Order:
    """
    Creates a pending Order with its lines atomically. Each line locks in the
    menu item's current price; items that are 86'd or switched off are refused.
    """
    if not items:
        raise ValidationFailure("Order must contain items.")
    for it in items:
        if int(it["quantity"]) <= 0:
            raise ValidationFailure(f"Quantity for menu item {it['menu_item_id']} must be positive.")

    with persistence_errors("place order"):
        async with in_transaction() as conn:
            menu_item_ids = [UUID(str(it["menu_item_id"])) for it in items]
            menu_items = await MenuItem.filter(id__in=menu_item_ids).using_db(conn)
            menu_map = {m.id: m for m in menu_items}
            eighty_sixed = {
                str(mid) for mid in await EightySixEntry.filter(
                    menu_item_id__in=menu_item_ids, removed_at__isnull=True
                ).using_db(conn).values_list("menu_item_id", flat=True)
            }

            order = await Order.create(
                customer_name=customer_name,
                table_number=table_number,
                status=OrderStatus.PENDING,
                total_amount=Decimal("0"),
                using_db=conn,
            )

            total = Decimal("0")
            for mid, it in zip(menu_item_ids, items):
                qty = int(it["quantity"])
                menu = menu_map.get(mid)

                if not menu:
                    raise NotFound(f"Menu item {mid} not found.")
                if str(mid) in eighty_sixed or not menu.is_available:
                    raise ValidationFailure(f"Menu item {menu.name} is currently unavailable.")

                line_total = menu.price * qty
                total += line_total
                await OrderItem.create(
                    order=order,
                    menu_item=menu,
                    quantity=qty,
                    unit_price=menu.price,
                    line_total=line_total,
                    using_db=conn,
                )

            order.total_amount = total
            await order.save(update_fields=["total_amount", "updated_at"], using_db=conn)

    log.info(f"Order {order.id} placed with {len(items)} lines, total {total}")
    return order


async def get_order_by_id(order_id: UUID) -> Optional[Order]:
    """Fetches order details with items, including the menu item name/price."""
    # Pre-fetch related entities to minimize DB queries (N+1 avoidance)
    with persistence_errors("read order"):
        return await Order.get_or_none(id=order_id).prefetch_related('items', 'items__menu_item')


async def update_order_status(order_id: UUID, new_status: OrderStatus) -> Order:
    """
    Moves an order along pending -> preparing -> ready -> completed, or to
    cancelled from any non-final state. Completion is irreversible; the caller
    runs the Order Completion Processor once this has committed.
    """
    with persistence_errors(f"update status of order {order_id}"):
        async with in_transaction() as conn:
            order = await Order.filter(id=order_id).using_db(conn).select_for_update().first()
            if not order:
                raise NotFound(f"Order {order_id} not found.")

            if order.status in FINAL_STATUSES:
                raise ValidationFailure(
                    f"Order is already in a final state: {order.status.value}. Status cannot be updated."
                )
            if new_status not in ALLOWED_TRANSITIONS[order.status]:
                raise ValidationFailure(f"Cannot move order from {order.status.value} to {new_status.value}.")

            old_status = order.status
            order.status = new_status
            await order.save(update_fields=["status", "updated_at"], using_db=conn)

    log.info(f"Order {order_id} moved {old_status.value} -> {new_status.value}")
    return order
