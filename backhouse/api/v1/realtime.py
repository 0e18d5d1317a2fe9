"""
Real-time push channel.

Clients connect to /ws, optionally with ?roles=manager,chef. Menu changes go
to every connection; inventory alerts only to the roles they target.
"""
import json
import logging
from typing import Optional

from fastapi import APIRouter, Query, Request, WebSocket, WebSocketDisconnect

from backhouse.schemas.response import SuccessResponse

log = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/ws")
async def realtime_websocket(
    websocket: WebSocket,
    roles: Optional[str] = Query(None, description="Comma-separated staff roles, e.g. manager,chef"),
):
    manager = websocket.app.state.gateway
    joined = [r.strip() for r in (roles or "").split(",") if r.strip()]
    await manager.connect(websocket, joined)

    try:
        while True:
            data = await websocket.receive_text()
            try:
                message = json.loads(data)
            except json.JSONDecodeError:
                log.debug(f"Ignoring non-JSON WebSocket message: {data[:80]}")
                continue

            if isinstance(message, dict) and message.get("event") == "ping":
                await websocket.send_text(json.dumps({"event": "pong", "data": {}}))

    except WebSocketDisconnect:
        log.debug("WebSocket client disconnected")
    finally:
        manager.disconnect(websocket)


@router.get("/ws/stats", response_model=SuccessResponse)
async def websocket_stats(request: Request):
    return SuccessResponse(data=request.app.state.gateway.get_stats())
