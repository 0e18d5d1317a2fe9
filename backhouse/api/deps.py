from dataclasses import dataclass, field
from typing import List, Optional

from fastapi import Header, Request

from backhouse.events.dispatcher import EventDispatcher
from backhouse.monitor.low_stock import LowStockMonitor


@dataclass
class Actor:
    """The acting staff member, as asserted by the upstream authorization gate."""
    user_id: Optional[str] = None
    roles: List[str] = field(default_factory=list)


def get_actor(
    x_user_id: Optional[str] = Header(None),
    x_user_roles: Optional[str] = Header(None),
) -> Actor:
    roles = [r.strip() for r in (x_user_roles or "").split(",") if r.strip()]
    return Actor(user_id=x_user_id, roles=roles)


def get_dispatcher(request: Request) -> EventDispatcher:
    return request.app.state.dispatcher


def get_monitor(request: Request) -> LowStockMonitor:
    return request.app.state.monitor
