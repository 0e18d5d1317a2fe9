"""
Availability Evaluator.

Decides whether one unit of a menu item can be made from current stock and
lists every ingredient that falls short. Reads only; safe to call
concurrently and repeatedly.
"""
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Iterable, List, Optional
from uuid import UUID

from backhouse.core.errors import NotFound, persistence_errors
from backhouse.models.inventory import InventoryRequirement
from backhouse.models.menu import MenuItem


@dataclass(frozen=True)
class Shortfall:
    inventory_item_id: UUID
    name: str
    required: Decimal
    available: Decimal
    unit: str

    def describe(self) -> str:
        return f"{self.name} (need {self.required} {self.unit}, have {self.available})"

    def to_dict(self):
        return {
            "inventory_item_id": str(self.inventory_item_id),
            "name": self.name,
            "required": str(self.required),
            "available": str(self.available),
            "unit": self.unit,
        }


@dataclass(frozen=True)
class AvailabilityResult:
    available: bool
    shortfalls: List[Shortfall] = field(default_factory=list)

    def reason(self) -> Optional[str]:
        if not self.shortfalls:
            return None
        return "Auto-86'd: Insufficient inventory - " + ", ".join(s.describe() for s in self.shortfalls)


def assess(requirements: Iterable[InventoryRequirement]) -> AvailabilityResult:
    """
    Pure core of the evaluator. Expects each requirement's inventory_item to
    be loaded. No requirements means the item is not stock-gated.
    """
    shortfalls = []
    for req in requirements:
        ingredient = req.inventory_item
        if ingredient.current_stock < req.quantity_required:
            shortfalls.append(Shortfall(
                inventory_item_id=ingredient.id,
                name=ingredient.name,
                required=req.quantity_required,
                available=ingredient.current_stock,
                unit=ingredient.unit,
            ))
    return AvailabilityResult(available=not shortfalls, shortfalls=shortfalls)


async def evaluate(menu_item_id: UUID, conn: Any = None) -> AvailabilityResult:
    """
    Evaluates a menu item against the ledger. Pass `conn` to read inside a
    caller's transaction.
    """
    with persistence_errors("evaluate availability"):
        if not await MenuItem.filter(id=menu_item_id).using_db(conn).exists():
            raise NotFound(f"Menu item {menu_item_id} not found.")

        requirements = await (
            InventoryRequirement.filter(menu_item_id=menu_item_id)
            .using_db(conn)
            .prefetch_related("inventory_item")
        )
    return assess(requirements)
