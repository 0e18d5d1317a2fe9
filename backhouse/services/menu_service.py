from decimal import Decimal
from typing import Optional
from uuid import UUID

from tortoise.transactions import in_transaction

from backhouse.core.errors import NotFound, ValidationFailure, persistence_errors
from backhouse.models.menu import MenuItem


async def create_menu_item(
    name: str,
    category: str,
    price: Decimal,
    description: Optional[str] = None,
    is_available: bool = True,
) -> MenuItem:
    if Decimal(price) < 0:
        raise ValidationFailure(f"Price must not be negative, got {price}.")
    with persistence_errors(f"create menu item {name}"):
        return await MenuItem.create(
            name=name,
            category=category,
            price=price,
            description=description,
            is_available=is_available,
        )


async def set_menu_item_available(menu_item_id: UUID, is_available: bool) -> MenuItem:
    """
    Sets the staff intent flag. An active 86 entry still hides the item; use
    the 86 endpoints to change that.
    """
    with persistence_errors(f"update menu item {menu_item_id}"):
        async with in_transaction() as conn:
            menu_item = await MenuItem.filter(id=menu_item_id).using_db(conn).select_for_update().first()
            if not menu_item:
                raise NotFound(f"Menu item {menu_item_id} not found.")
            menu_item.is_available = is_available
            await menu_item.save(update_fields=["is_available", "updated_at"], using_db=conn)
    return menu_item
