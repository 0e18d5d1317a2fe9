import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, status

from backhouse.api.deps import get_dispatcher
from backhouse.events.dispatcher import EventDispatcher
from backhouse.models.inventory import InventoryItem, InventoryRequirement
from backhouse.monitor.low_stock import is_low_stock
from backhouse.processors.triggers import run_reconcile, run_restock
from backhouse.schemas.inventory import (
    InventoryItemRequest,
    InventoryItemResponse,
    ParLevelRequest,
    RequirementRequest,
    RequirementResponse,
    RequirementUpdate,
    RestockRequest,
    StockLevelRequest,
)
from backhouse.schemas.response import SuccessResponse
from backhouse.services import inventory_service

log = logging.getLogger("uvicorn")

router = APIRouter()


def _item_data(item: InventoryItem) -> dict:
    return InventoryItemResponse(
        id=item.id,
        name=item.name,
        category=item.category,
        description=item.description,
        current_stock=item.current_stock,
        par_level=item.par_level,
        unit=item.unit,
        is_low_stock=is_low_stock(item),
        updated_at=item.updated_at,
    ).model_dump(mode="json")


def _requirement_data(requirement: InventoryRequirement) -> dict:
    return RequirementResponse(
        id=requirement.id,
        menu_item_id=requirement.menu_item_id,
        menu_item_name=requirement.menu_item.name,
        inventory_item_id=requirement.inventory_item_id,
        inventory_item_name=requirement.inventory_item.name,
        quantity_required=requirement.quantity_required,
        unit=requirement.inventory_item.unit,
    ).model_dump(mode="json")


# ----------- Ledger -----------

@router.get("", response_model=SuccessResponse)
async def list_inventory(category: Optional[str] = None):
    items = await inventory_service.list_inventory(category)
    return SuccessResponse(data=[_item_data(i) for i in items])


@router.get("/low-stock", response_model=SuccessResponse)
async def list_low_stock():
    """Items at or under par level, most critical first."""
    items = await inventory_service.list_low_stock()
    return SuccessResponse(data=[_item_data(i) for i in items])


@router.post("", status_code=status.HTTP_201_CREATED, response_model=SuccessResponse)
async def create_inventory_item(item_data: InventoryItemRequest):
    item = await inventory_service.create_inventory_item(
        name=item_data.name,
        category=item_data.category,
        current_stock=item_data.current_stock,
        par_level=item_data.par_level,
        unit=item_data.unit,
        description=item_data.description,
    )
    log.info(f"Inventory item '{item.name}' created with {item.current_stock} {item.unit}")
    return SuccessResponse(data=_item_data(item))


# ----------- Requirement map -----------
# Declared ahead of /{inventory_item_id} so "requirements" is not taken for an id.

@router.get("/requirements", response_model=SuccessResponse)
async def list_requirements(menu_item_id: Optional[UUID] = None):
    requirements = await inventory_service.list_requirements(menu_item_id)
    return SuccessResponse(data=[_requirement_data(r) for r in requirements])


@router.post("/requirements", status_code=status.HTTP_201_CREATED, response_model=SuccessResponse)
async def add_requirement(
    payload: RequirementRequest,
    background_tasks: BackgroundTasks,
    dispatcher: EventDispatcher = Depends(get_dispatcher),
):
    requirement = await inventory_service.add_requirement(
        payload.menu_item_id, payload.inventory_item_id, payload.quantity_required,
    )
    background_tasks.add_task(run_reconcile, [requirement.menu_item_id], dispatcher)
    return SuccessResponse(data=_requirement_data(requirement))


@router.put("/requirements/{requirement_id}", response_model=SuccessResponse)
async def update_requirement(
    requirement_id: UUID,
    payload: RequirementUpdate,
    background_tasks: BackgroundTasks,
    dispatcher: EventDispatcher = Depends(get_dispatcher),
):
    requirement = await inventory_service.update_requirement(requirement_id, payload.quantity_required)
    background_tasks.add_task(run_reconcile, [requirement.menu_item_id], dispatcher)
    return SuccessResponse(data=_requirement_data(requirement))


@router.delete("/requirements/{requirement_id}", response_model=SuccessResponse)
async def remove_requirement(
    requirement_id: UUID,
    background_tasks: BackgroundTasks,
    dispatcher: EventDispatcher = Depends(get_dispatcher),
):
    menu_item_id = await inventory_service.remove_requirement(requirement_id)
    background_tasks.add_task(run_reconcile, [menu_item_id], dispatcher)
    return SuccessResponse(data={"message": "Requirement removed", "menu_item_id": str(menu_item_id)})


# ----------- Single item -----------

@router.get("/{inventory_item_id}", response_model=SuccessResponse)
async def get_inventory_item(inventory_item_id: UUID):
    return SuccessResponse(data=_item_data(await inventory_service.get_inventory_item(inventory_item_id)))


@router.post("/{inventory_item_id}/restock", response_model=SuccessResponse)
async def restock_inventory_item(
    inventory_item_id: UUID,
    payload: RestockRequest,
    background_tasks: BackgroundTasks,
    dispatcher: EventDispatcher = Depends(get_dispatcher),
):
    """Records a delivery; dependent menu items are re-checked after the response."""
    item = await inventory_service.restock(inventory_item_id, payload.quantity)
    background_tasks.add_task(run_restock, item.id, dispatcher)
    return SuccessResponse(data=_item_data(item))


@router.put("/{inventory_item_id}/stock", response_model=SuccessResponse)
async def set_stock_level(
    inventory_item_id: UUID,
    payload: StockLevelRequest,
    background_tasks: BackgroundTasks,
    dispatcher: EventDispatcher = Depends(get_dispatcher),
):
    item = await inventory_service.set_stock(inventory_item_id, payload.current_stock)
    background_tasks.add_task(run_restock, item.id, dispatcher)
    return SuccessResponse(data=_item_data(item))


@router.put("/{inventory_item_id}/par-level", response_model=SuccessResponse)
async def set_par_level(inventory_item_id: UUID, payload: ParLevelRequest):
    item = await inventory_service.set_par_level(inventory_item_id, payload.par_level)
    return SuccessResponse(data=_item_data(item))
