import uuid
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, Field


class MenuItemRequest(BaseModel):
    name: str = Field(..., description="Name of the menu item (e.g., Classic Burger).")
    category: str
    price: Decimal = Field(..., ge=0)
    description: Optional[str] = None
    is_available: bool = True


class AvailabilityFlagUpdate(BaseModel):
    is_available: bool


class EightySixRequest(BaseModel):
    reason: Optional[str] = Field(None, description="Why the item is being pulled. Defaults to 'Out of stock'.")


class ShortfallResponse(BaseModel):
    inventory_item_id: uuid.UUID
    name: str
    required: Decimal
    available: Decimal
    unit: str


class AvailabilityResponse(BaseModel):
    menu_item_id: uuid.UUID
    effective_availability: bool
    stock_available: bool
    shortfalls: List[ShortfallResponse]
