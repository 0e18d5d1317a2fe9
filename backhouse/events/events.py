"""
State-change events produced by the engine.

Services and processors return these; they never talk to a transport.
`backhouse.events.dispatcher.EventDispatcher` turns them into gateway calls.
"""
from datetime import datetime, timezone
from typing import Any, ClassVar, Dict, List, Optional

from pydantic import BaseModel, Field

from backhouse.core.config import ALERT_ROLES


def _now() -> datetime:
    return datetime.now(timezone.utc)


class BroadcastEvent(BaseModel):
    event: ClassVar[str] = "event"
    # None means every connected client
    audience: Optional[List[str]] = Field(default=None, exclude=True)
    timestamp: datetime = Field(default_factory=_now)

    def payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json")


class MenuStateChanged(BroadcastEvent):
    """A menu item went on or came off the 86 list."""
    event: ClassVar[str] = "menu-state-changed"

    menu_item_id: str
    available: bool
    change: str  # "item-86ed" | "item-restored"
    reason: Optional[str] = None
    menu_item: Optional[Dict[str, Any]] = None
    eighty_six_list: List[Dict[str, Any]] = Field(default_factory=list)


class InventoryAlert(BroadcastEvent):
    """Narrow staff alert: availability flips, and low-stock notifications."""
    event: ClassVar[str] = "inventory-alert"

    item_id: str
    severity: str
    message: str
    metadata: Dict[str, Any] = Field(default_factory=dict)
    audience: Optional[List[str]] = Field(default_factory=lambda: list(ALERT_ROLES), exclude=True)


class LowStockSummary(BroadcastEvent):
    event: ClassVar[str] = "low-stock-summary"

    count: int


class MenuBulkUpdated(BroadcastEvent):
    event: ClassVar[str] = "menu-bulk-update"

    summary: Dict[str, Any]
