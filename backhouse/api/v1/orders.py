import logging
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, status

from backhouse.api.deps import get_dispatcher
from backhouse.core.errors import NotFound
from backhouse.events.dispatcher import EventDispatcher
from backhouse.models.order import OrderStatus
from backhouse.processors.triggers import run_order_completion
from backhouse.schemas.order import (
    OrderDetailResponse,
    OrderPlacementResponse,
    OrderRequest,
    OrderStatusUpdate,
)
from backhouse.schemas.response import SuccessResponse
from backhouse.services.order_service import get_order_by_id, place_order, update_order_status

router = APIRouter()
log = logging.getLogger("uvicorn")


@router.post("", status_code=status.HTTP_201_CREATED, response_model=SuccessResponse)
async def create_order_endpoint(request_data: OrderRequest):
    """Places a pending order. Items that are 86'd or switched off are refused."""
    items_data = [
        {"menu_item_id": item.menu_item_id, "quantity": item.quantity}
        for item in request_data.items
    ]
    order = await place_order(
        items=items_data,
        customer_name=request_data.customer_name,
        table_number=request_data.table_number,
    )
    data = OrderPlacementResponse(
        order_id=order.id,
        status=order.status,
        total_amount=order.total_amount,
        message="Order placed.",
    ).model_dump(mode="json")
    return SuccessResponse(data=data)


@router.get("/{order_id}", response_model=SuccessResponse)
async def get_order_endpoint(order_id: UUID):
    """Fetches details for a specific order."""
    order = await get_order_by_id(order_id)
    if not order:
        raise NotFound(f"Order {order_id} not found.")

    items = [
        {
            "menu_item_id": i.menu_item_id,
            "name": i.menu_item.name,
            "quantity": i.quantity,
            "price": str(i.unit_price),
        }
        for i in order.items
    ]
    data = OrderDetailResponse(
        id=order.id,
        status=order.status,
        total_amount=order.total_amount,
        inventory_deducted=order.inventory_deducted,
        items=items,
        created_at=str(order.created_at),
    ).model_dump(mode="json")
    return SuccessResponse(data=data)


@router.patch("/{order_id}/status", response_model=SuccessResponse)
async def update_status_endpoint(
    order_id: UUID,
    payload: OrderStatusUpdate,
    background_tasks: BackgroundTasks,
    dispatcher: EventDispatcher = Depends(get_dispatcher),
):
    """
    Moves the order along its lifecycle. Moving to 'completed' deducts the
    order's ingredients and re-checks the affected menu items once the
    response has gone out.
    """
    order = await update_order_status(order_id, payload.status)
    message = f"Order status successfully updated to {order.status.value}"
    if order.status == OrderStatus.COMPLETED:
        background_tasks.add_task(run_order_completion, order.id, dispatcher)
        message += ". Inventory deduction queued."
        log.info(f"Order {order.id} completed; inventory deduction scheduled")

    data = OrderPlacementResponse(
        order_id=order.id,
        status=order.status,
        total_amount=order.total_amount,
        message=message,
    ).model_dump(mode="json")
    return SuccessResponse(data=data)
