"""
Ledger and requirement-map writes.

Every function validates its input before opening a transaction. Stock
changes return the updated item; the caller triggers the Restock Processor
after commit.
"""
import logging
from decimal import Decimal
from typing import List, Optional
from uuid import UUID

from tortoise.transactions import in_transaction

from backhouse.core.errors import ConflictError, NotFound, ValidationFailure, persistence_errors
from backhouse.models.inventory import InventoryItem, InventoryRequirement
from backhouse.models.menu import MenuItem
from backhouse.monitor.low_stock import find_low_stock_items, is_low_stock

log = logging.getLogger(__name__)


def _non_negative(value: Decimal, label: str) -> Decimal:
    value = Decimal(value)
    if value < 0:
        raise ValidationFailure(f"{label} must not be negative, got {value}.")
    return value


def _positive(value: Decimal, label: str) -> Decimal:
    value = Decimal(value)
    if value <= 0:
        raise ValidationFailure(f"{label} must be greater than zero, got {value}.")
    return value


async def _locked_item(inventory_item_id: UUID, conn) -> InventoryItem:
    item = await InventoryItem.filter(id=inventory_item_id).using_db(conn).select_for_update().first()
    if not item:
        raise NotFound(f"Inventory item {inventory_item_id} not found.")
    return item


# ----------- Ledger -----------

async def create_inventory_item(
    name: str,
    category: str,
    current_stock: Decimal = Decimal("0"),
    par_level: Decimal = Decimal("0"),
    unit: str = "each",
    description: Optional[str] = None,
) -> InventoryItem:
    current_stock = _non_negative(current_stock, "Current stock")
    par_level = _non_negative(par_level, "Par level")
    with persistence_errors(f"create inventory item {name}"):
        if await InventoryItem.filter(name=name).exists():
            raise ConflictError(f"Inventory item '{name}' already exists.")
        return await InventoryItem.create(
            name=name,
            category=category,
            current_stock=current_stock,
            par_level=par_level,
            unit=unit,
            description=description,
        )


async def list_inventory(category: Optional[str] = None) -> List[InventoryItem]:
    with persistence_errors("list inventory"):
        query = InventoryItem.all()
        if category:
            query = query.filter(category=category)
        return await query.order_by("category", "name")


async def list_low_stock() -> List[InventoryItem]:
    return await find_low_stock_items()


async def get_inventory_item(inventory_item_id: UUID) -> InventoryItem:
    with persistence_errors("read inventory item"):
        item = await InventoryItem.get_or_none(id=inventory_item_id)
    if not item:
        raise NotFound(f"Inventory item {inventory_item_id} not found.")
    return item


async def restock(inventory_item_id: UUID, quantity: Decimal) -> InventoryItem:
    """Adds a delivery to the ledger. Only positive quantities are accepted."""
    quantity = _positive(quantity, "Restock quantity")
    with persistence_errors(f"restock inventory item {inventory_item_id}"):
        async with in_transaction() as conn:
            item = await _locked_item(inventory_item_id, conn)
            item.current_stock = item.current_stock + quantity
            await item.save(update_fields=["current_stock", "updated_at"], using_db=conn)
    log.info(f"INVENTORY RESTOCK: {item.name} +{quantity} {item.unit} -> {item.current_stock}")
    return item


async def set_stock(inventory_item_id: UUID, current_stock: Decimal) -> InventoryItem:
    """Count correction: overwrites the stock level with a physical count."""
    current_stock = _non_negative(current_stock, "Current stock")
    with persistence_errors(f"set stock for inventory item {inventory_item_id}"):
        async with in_transaction() as conn:
            item = await _locked_item(inventory_item_id, conn)
            before = item.current_stock
            item.current_stock = current_stock
            await item.save(update_fields=["current_stock", "updated_at"], using_db=conn)
    log.info(f"INVENTORY COUNT: {item.name} {before} -> {item.current_stock} {item.unit}")
    if is_low_stock(item):
        log.warning(f"{item.name} is at or below par level ({item.current_stock}/{item.par_level} {item.unit})")
    return item


async def set_par_level(inventory_item_id: UUID, par_level: Decimal) -> InventoryItem:
    par_level = _non_negative(par_level, "Par level")
    with persistence_errors(f"set par level for inventory item {inventory_item_id}"):
        async with in_transaction() as conn:
            item = await _locked_item(inventory_item_id, conn)
            item.par_level = par_level
            await item.save(update_fields=["par_level", "updated_at"], using_db=conn)
    return item


# ----------- Requirement map -----------

async def list_requirements(menu_item_id: Optional[UUID] = None) -> List[InventoryRequirement]:
    with persistence_errors("list requirements"):
        query = InventoryRequirement.all()
        if menu_item_id:
            query = query.filter(menu_item_id=menu_item_id)
        return await query.prefetch_related("menu_item", "inventory_item")


async def add_requirement(menu_item_id: UUID, inventory_item_id: UUID, quantity_required: Decimal) -> InventoryRequirement:
    quantity_required = _positive(quantity_required, "Quantity required")
    with persistence_errors("add requirement"):
        async with in_transaction() as conn:
            menu_item = await MenuItem.get_or_none(id=menu_item_id).using_db(conn)
            if not menu_item:
                raise NotFound(f"Menu item {menu_item_id} not found.")
            inventory_item = await InventoryItem.get_or_none(id=inventory_item_id).using_db(conn)
            if not inventory_item:
                raise NotFound(f"Inventory item {inventory_item_id} not found.")
            exists = await InventoryRequirement.filter(
                menu_item_id=menu_item_id, inventory_item_id=inventory_item_id
            ).using_db(conn).exists()
            if exists:
                raise ConflictError(f"{menu_item.name} already requires {inventory_item.name}.")
            return await InventoryRequirement.create(
                menu_item=menu_item,
                inventory_item=inventory_item,
                quantity_required=quantity_required,
                using_db=conn,
            )


async def update_requirement(requirement_id: UUID, quantity_required: Decimal) -> InventoryRequirement:
    quantity_required = _positive(quantity_required, "Quantity required")
    with persistence_errors("update requirement"):
        requirement = await InventoryRequirement.get_or_none(id=requirement_id).prefetch_related(
            "menu_item", "inventory_item"
        )
        if not requirement:
            raise NotFound(f"Requirement {requirement_id} not found.")
        requirement.quantity_required = quantity_required
        await requirement.save(update_fields=["quantity_required"])
    return requirement


async def remove_requirement(requirement_id: UUID) -> UUID:
    """Deletes the edge and returns the menu item id that should be reconciled."""
    with persistence_errors("remove requirement"):
        requirement = await InventoryRequirement.get_or_none(id=requirement_id)
        if not requirement:
            raise NotFound(f"Requirement {requirement_id} not found.")
        menu_item_id = requirement.menu_item_id
        await requirement.delete()
    return menu_item_id
