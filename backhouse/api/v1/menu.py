import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, BackgroundTasks, Depends, status

from backhouse.api.deps import Actor, get_actor, get_dispatcher
from backhouse.events.dispatcher import EventDispatcher
from backhouse.processors.restock import refresh_all_availability
from backhouse.processors.triggers import run_reconcile
from backhouse.schemas.menu import (
    AvailabilityFlagUpdate,
    AvailabilityResponse,
    EightySixRequest,
    MenuItemRequest,
)
from backhouse.schemas.response import SuccessResponse
from backhouse.services import eighty_six, menu_service
from backhouse.services.availability import evaluate

log = logging.getLogger("uvicorn")

router = APIRouter()


@router.get("", response_model=SuccessResponse)
async def get_menu(category: Optional[str] = None):
    """Public menu: every item with its effective availability."""
    menu = await eighty_six.get_full_menu_with_availability(category)
    return SuccessResponse(data=menu)


@router.get("/86-list", response_model=SuccessResponse)
async def get_86_list():
    """Staff view of everything currently 86'd, newest first."""
    return SuccessResponse(data=await eighty_six.get_current_86_list())


@router.get("/{menu_item_id}/availability", response_model=SuccessResponse)
async def get_availability(menu_item_id: UUID):
    """Effective availability plus what the ledger says is missing."""
    view = await eighty_six.get_menu_item_with_availability(menu_item_id)
    verdict = await evaluate(menu_item_id)
    data = AvailabilityResponse(
        menu_item_id=menu_item_id,
        effective_availability=view["effective_availability"],
        stock_available=verdict.available,
        shortfalls=[s.to_dict() for s in verdict.shortfalls],
    ).model_dump(mode="json")
    return SuccessResponse(data=data)


@router.post("", status_code=status.HTTP_201_CREATED, response_model=SuccessResponse)
async def create_menu_item(item_data: MenuItemRequest):
    menu_item = await menu_service.create_menu_item(
        name=item_data.name,
        category=item_data.category,
        price=item_data.price,
        description=item_data.description,
        is_available=item_data.is_available,
    )
    return SuccessResponse(data={
        "message": f"Successfully added '{menu_item.name}' to the menu.",
        "menu_item_id": str(menu_item.id),
    })


@router.put("/{menu_item_id}/availability", response_model=SuccessResponse)
async def set_availability_flag(
    menu_item_id: UUID,
    payload: AvailabilityFlagUpdate,
    background_tasks: BackgroundTasks,
    dispatcher: EventDispatcher = Depends(get_dispatcher),
):
    """Sets the staff flag, then lets the engine re-check stock for the item."""
    menu_item = await menu_service.set_menu_item_available(menu_item_id, payload.is_available)
    background_tasks.add_task(run_reconcile, [menu_item.id], dispatcher)
    return SuccessResponse(data=await eighty_six.get_menu_item_with_availability(menu_item.id))


@router.post("/86/{menu_item_id}", status_code=status.HTTP_201_CREATED, response_model=SuccessResponse)
async def add_to_86_list(
    menu_item_id: UUID,
    background_tasks: BackgroundTasks,
    payload: Optional[EightySixRequest] = None,
    actor: Actor = Depends(get_actor),
    dispatcher: EventDispatcher = Depends(get_dispatcher),
):
    """Manual 86. Stays in place until staff remove it, whatever the stock does."""
    entry, events = await eighty_six.add_manual_entry(
        menu_item_id,
        reason=payload.reason if payload else None,
        created_by=actor.user_id,
    )
    background_tasks.add_task(dispatcher.dispatch, events)
    return SuccessResponse(data={"message": "Item added to 86 list", "eighty_six_id": str(entry.id)})


@router.delete("/86/{menu_item_id}", response_model=SuccessResponse)
async def remove_from_86_list(
    menu_item_id: UUID,
    background_tasks: BackgroundTasks,
    actor: Actor = Depends(get_actor),
    dispatcher: EventDispatcher = Depends(get_dispatcher),
):
    events = await eighty_six.remove_entry(menu_item_id, removed_by=actor.user_id)
    background_tasks.add_task(dispatcher.dispatch, events)
    return SuccessResponse(data={"message": "Item removed from 86 list"})


@router.post("/update-availability", response_model=SuccessResponse)
async def force_update_availability(dispatcher: EventDispatcher = Depends(get_dispatcher)):
    """Reconciles the whole menu against current stock."""
    report = await refresh_all_availability(dispatcher)
    log.info(f"Forced availability update: {len(report.changed)} changed, {len(report.failed)} failed")
    return SuccessResponse(data=report.to_dict())
