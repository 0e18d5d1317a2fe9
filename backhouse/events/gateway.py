"""
WebSocket broadcast gateway.

Clients subscribe with the roles they care about; events with an audience go
only to connections holding one of those roles, events without one go to
everybody (including anonymous public-menu clients).
"""
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, Optional, Protocol, Set

from fastapi import WebSocket

log = logging.getLogger(__name__)


class BroadcastGateway(Protocol):
    async def publish(self, event: str, data: Dict[str, Any], roles: Optional[Iterable[str]] = None) -> int:
        ...


class ConnectionManager:
    """Tracks live WebSocket connections and the role channels each one joined."""

    def __init__(self):
        self.connections: Dict[WebSocket, Set[str]] = {}
        self.stats = {
            "total_connections": 0,
            "messages_sent": 0,
            "messages_broadcast": 0,
        }

    async def connect(self, websocket: WebSocket, roles: Optional[Iterable[str]] = None):
        await websocket.accept()
        joined = {r for r in (roles or []) if r}
        self.connections[websocket] = joined
        self.stats["total_connections"] += 1
        log.info(f"WebSocket connected: roles={sorted(joined) or ['public']}")

    def disconnect(self, websocket: WebSocket):
        roles = self.connections.pop(websocket, None)
        if roles is not None:
            log.info(f"WebSocket disconnected: roles={sorted(roles) or ['public']}")

    def _targets(self, roles: Optional[Iterable[str]]):
        if roles is None:
            return list(self.connections)
        wanted = set(roles)
        return [ws for ws, joined in self.connections.items() if joined & wanted]

    async def publish(self, event: str, data: Dict[str, Any], roles: Optional[Iterable[str]] = None) -> int:
        """Sends one event to every matching connection. Returns how many received it."""
        message = json.dumps({
            "event": event,
            "data": data,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        })
        delivered = 0
        disconnected = []
        for websocket in self._targets(roles):
            try:
                await websocket.send_text(message)
                delivered += 1
            except Exception as e:
                log.warning(f"Dropping WebSocket after failed send: {e}")
                disconnected.append(websocket)

        for ws in disconnected:
            self.disconnect(ws)

        self.stats["messages_sent"] += delivered
        self.stats["messages_broadcast"] += 1
        return delivered

    def get_stats(self) -> Dict[str, Any]:
        return {
            **self.stats,
            "active_connections": len(self.connections),
        }
