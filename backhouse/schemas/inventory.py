import uuid
from datetime import datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class InventoryItemRequest(BaseModel):
    name: str = Field(..., description="Name of the ingredient (e.g., Ground Beef).")
    category: str = Field(..., description="Grouping such as proteins or produce.")
    description: Optional[str] = None
    current_stock: Decimal = Field(Decimal("0"), ge=0, description="Initial stock on hand.")
    par_level: Decimal = Field(Decimal("0"), ge=0, description="Stock level at or below which alerts fire.")
    unit: str = Field("each", description="Unit label (lbs, heads, pieces).")


class InventoryItemResponse(BaseModel):
    id: uuid.UUID
    name: str
    category: str
    description: Optional[str] = None
    current_stock: Decimal
    par_level: Decimal
    unit: str
    is_low_stock: bool
    updated_at: Optional[datetime] = None


class RestockRequest(BaseModel):
    quantity: Decimal = Field(..., gt=0, description="Amount received, in the item's unit.")


class StockLevelRequest(BaseModel):
    current_stock: Decimal = Field(..., ge=0, description="Counted stock on hand.")


class ParLevelRequest(BaseModel):
    par_level: Decimal = Field(..., ge=0)


class RequirementRequest(BaseModel):
    menu_item_id: uuid.UUID
    inventory_item_id: uuid.UUID
    quantity_required: Decimal = Field(..., gt=0, description="Amount consumed per unit sold.")


class RequirementUpdate(BaseModel):
    quantity_required: Decimal = Field(..., gt=0)


class RequirementResponse(BaseModel):
    id: uuid.UUID
    menu_item_id: uuid.UUID
    menu_item_name: Optional[str] = None
    inventory_item_id: uuid.UUID
    inventory_item_name: Optional[str] = None
    quantity_required: Decimal
    unit: Optional[str] = None
