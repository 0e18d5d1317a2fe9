from datetime import datetime, timezone
from typing import Dict, List, Optional
from uuid import UUID

from backhouse.core.errors import NotFound, persistence_errors
from backhouse.models.notification import Notification, NotificationType, Severity


def _is_live(notification: Notification, now: datetime, role: Optional[str]) -> bool:
    if notification.expires_at is not None:
        expires_at = notification.expires_at
        if expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        if expires_at <= now:
            return False
    if role and notification.target_roles and role not in notification.target_roles:
        return False
    return True


async def list_active(role: Optional[str] = None, type: Optional[NotificationType] = None) -> List[Notification]:
    """Undismissed, unexpired notifications, newest first, optionally for one role."""
    with persistence_errors("list notifications"):
        query = Notification.filter(is_dismissed=False)
        if type:
            query = query.filter(type=type)
        notifications = await query.order_by("-created_at")
    now = datetime.now(timezone.utc)
    return [n for n in notifications if _is_live(n, now, role)]


async def counts(role: Optional[str] = None) -> Dict[str, int]:
    active = await list_active(role)
    result = {s.value: 0 for s in Severity}
    for n in active:
        result[n.severity.value] += 1
    result["total"] = len(active)
    return result


async def dismiss(notification_id: UUID, dismissed_by: Optional[str] = None) -> Notification:
    with persistence_errors(f"dismiss notification {notification_id}"):
        notification = await Notification.get_or_none(id=notification_id)
        if not notification:
            raise NotFound(f"Notification {notification_id} not found.")
        if not notification.is_dismissed:
            notification.is_dismissed = True
            notification.dismissed_at = datetime.now(timezone.utc)
            notification.dismissed_by = dismissed_by
            await notification.save(update_fields=["is_dismissed", "dismissed_at", "dismissed_by"])
    return notification


async def dismiss_all(role: Optional[str] = None, dismissed_by: Optional[str] = None) -> int:
    active = await list_active(role)
    if not active:
        return 0
    with persistence_errors("dismiss notifications"):
        return await Notification.filter(id__in=[n.id for n in active]).update(
            is_dismissed=True,
            dismissed_at=datetime.now(timezone.utc),
            dismissed_by=dismissed_by,
        )
