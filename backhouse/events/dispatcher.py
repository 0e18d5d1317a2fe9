import asyncio
import logging
from typing import Iterable

from backhouse.core.config import BROADCAST_TIMEOUT
from backhouse.events.events import BroadcastEvent
from backhouse.events.gateway import BroadcastGateway

log = logging.getLogger(__name__)


class EventDispatcher:
    """
    Boundary between the engine and the pub/sub transport.

    Delivery is best-effort: a slow or failing gateway is logged and skipped,
    never raised, because the persisted state is already committed.
    """

    def __init__(self, gateway: BroadcastGateway, timeout: float = BROADCAST_TIMEOUT):
        self.gateway = gateway
        self.timeout = timeout

    async def dispatch(self, events: Iterable[BroadcastEvent]) -> int:
        """Publishes each event in order. Returns the number published without error."""
        published = 0
        for event in events:
            try:
                await asyncio.wait_for(
                    self.gateway.publish(event.event, event.payload(), roles=event.audience),
                    timeout=self.timeout,
                )
                published += 1
            except asyncio.TimeoutError:
                log.warning(f"Broadcast of '{event.event}' timed out after {self.timeout}s")
            except Exception as e:
                log.warning(f"Broadcast of '{event.event}' failed: {e}")
        return published
