import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends

from backhouse.api.deps import Actor, get_actor, get_monitor
from backhouse.models.notification import Notification, NotificationType
from backhouse.monitor.low_stock import LowStockMonitor
from backhouse.schemas.notification import MonitorIntervalUpdate, NotificationResponse
from backhouse.schemas.response import SuccessResponse
from backhouse.services import notification_service

log = logging.getLogger("uvicorn")

router = APIRouter()


def _notification_data(n: Notification) -> dict:
    return NotificationResponse(
        id=n.id,
        type=n.type.value,
        title=n.title,
        message=n.message,
        severity=n.severity.value,
        target_roles=n.target_roles or [],
        metadata=n.metadata or {},
        created_at=n.created_at,
        expires_at=n.expires_at,
        is_dismissed=n.is_dismissed,
    ).model_dump(mode="json")


def _role(actor: Actor, role: Optional[str]) -> Optional[str]:
    if role:
        return role
    return actor.roles[0] if actor.roles else None


@router.get("", response_model=SuccessResponse)
async def list_notifications(
    role: Optional[str] = None,
    type: Optional[NotificationType] = None,
    actor: Actor = Depends(get_actor),
):
    """Active notifications for the caller's role, newest first."""
    notifications = await notification_service.list_active(_role(actor, role), type)
    return SuccessResponse(data=[_notification_data(n) for n in notifications])


@router.get("/counts", response_model=SuccessResponse)
async def notification_counts(role: Optional[str] = None, actor: Actor = Depends(get_actor)):
    return SuccessResponse(data=await notification_service.counts(_role(actor, role)))


@router.put("/dismiss-all", response_model=SuccessResponse)
async def dismiss_all_notifications(role: Optional[str] = None, actor: Actor = Depends(get_actor)):
    dismissed = await notification_service.dismiss_all(_role(actor, role), dismissed_by=actor.user_id)
    log.info(f"{dismissed} notifications dismissed by {actor.user_id or 'unknown'}")
    return SuccessResponse(data={"dismissed": dismissed})


@router.put("/{notification_id}/dismiss", response_model=SuccessResponse)
async def dismiss_notification(notification_id: UUID, actor: Actor = Depends(get_actor)):
    notification = await notification_service.dismiss(notification_id, dismissed_by=actor.user_id)
    return SuccessResponse(data=_notification_data(notification))


# ----------- Low-stock monitor -----------

@router.post("/inventory/check", response_model=SuccessResponse)
async def trigger_inventory_check(monitor: LowStockMonitor = Depends(get_monitor)):
    """Runs a low-stock sweep now and returns what it did."""
    report = await monitor.trigger()
    return SuccessResponse(data=report.to_dict())


@router.get("/inventory/monitor", response_model=SuccessResponse)
async def monitor_status(monitor: LowStockMonitor = Depends(get_monitor)):
    return SuccessResponse(data=monitor.status())


@router.put("/inventory/monitor", response_model=SuccessResponse)
async def update_monitor_interval(
    payload: MonitorIntervalUpdate,
    monitor: LowStockMonitor = Depends(get_monitor),
):
    monitor.update_interval(payload.minutes)
    return SuccessResponse(data=monitor.status())
