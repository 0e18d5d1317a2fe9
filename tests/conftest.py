import pytest
import pytest_asyncio
from tortoise import Tortoise

from backhouse.core.db import MODELS_MODULES
from backhouse.events.dispatcher import EventDispatcher


class RecordingGateway:
    """Stands in for the WebSocket manager and keeps every publish call."""

    def __init__(self):
        self.published = []

    async def publish(self, event, data, roles=None):
        self.published.append({"event": event, "data": data, "roles": roles})
        return 1

    def events(self, name):
        return [p for p in self.published if p["event"] == name]


@pytest_asyncio.fixture
async def db():
    """Fresh in-memory database per test."""
    await Tortoise.init(db_url="sqlite://:memory:", modules={"models": MODELS_MODULES})
    await Tortoise.generate_schemas()
    yield
    await Tortoise.close_connections()


@pytest.fixture
def gateway():
    return RecordingGateway()


@pytest.fixture
def dispatcher(gateway):
    return EventDispatcher(gateway, timeout=1)
