from pydantic import BaseModel, Field
from typing import List, Optional
import uuid
from decimal import Decimal

from backhouse.models.order import OrderStatus


class OrderItemRequest(BaseModel):
    """Schema for a single item in the order request."""
    menu_item_id: uuid.UUID
    quantity: int = Field(..., gt=0)


class OrderRequest(BaseModel):
    """Schema for the full order placement request body."""
    customer_name: Optional[str] = None
    table_number: Optional[str] = None
    items: List[OrderItemRequest]


class OrderPlacementResponse(BaseModel):
    order_id: uuid.UUID
    status: OrderStatus
    total_amount: Decimal
    message: str


class OrderStatusUpdate(BaseModel):
    """Schema for updating an order status."""
    status: OrderStatus


class OrderItemResponse(BaseModel):
    """Schema for an item inside the detailed order response."""
    menu_item_id: uuid.UUID
    name: str
    quantity: int
    price: str  # Use string for Decimal type serialization


class OrderDetailResponse(BaseModel):
    """Schema for fetching detailed order information."""
    id: uuid.UUID
    status: OrderStatus
    total_amount: Decimal
    inventory_deducted: bool
    items: List[OrderItemResponse]
    created_at: str
