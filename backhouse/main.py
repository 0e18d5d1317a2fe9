import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, status

from backhouse.api.v1.inventory import router as inventory_router
from backhouse.api.v1.menu import router as menu_router
from backhouse.api.v1.notifications import router as notifications_router
from backhouse.api.v1.orders import router as orders_router
from backhouse.api.v1.realtime import router as realtime_router
from backhouse.core.config import LOG_LEVEL, LOW_STOCK_MONITOR_ENABLED, PROJECT_NAME, VERSION
from backhouse.core.db import close_db, init_db
from backhouse.core.exception_handlers import setup_exception_handlers
from backhouse.events.dispatcher import EventDispatcher
from backhouse.events.gateway import ConnectionManager
from backhouse.monitor.low_stock import LowStockMonitor

logging.basicConfig(level=LOG_LEVEL, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')
log = logging.getLogger("uvicorn")


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Handles startup and shutdown events."""
    log.info(f"Starting {PROJECT_NAME} v{VERSION}...")
    await init_db()  # Connect to DB and generate schemas

    app.state.gateway = ConnectionManager()
    app.state.dispatcher = EventDispatcher(app.state.gateway)
    app.state.monitor = LowStockMonitor(app.state.dispatcher)
    if LOW_STOCK_MONITOR_ENABLED:
        app.state.monitor.start()

    yield

    await app.state.monitor.stop()
    await close_db()
    log.info(f"{PROJECT_NAME} stopped.")


app = FastAPI(
    title=PROJECT_NAME,
    version=VERSION,
    lifespan=lifespan,
    docs_url="/docs",
    redoc_url="/redoc"
)

app.include_router(menu_router, prefix="/api/v1/menu", tags=["Menu & 86 List"])
app.include_router(inventory_router, prefix="/api/v1/inventory", tags=["Inventory Ledger"])
app.include_router(orders_router, prefix="/api/v1/orders", tags=["Order Management"])
app.include_router(notifications_router, prefix="/api/v1/notifications", tags=["Notifications"])
app.include_router(realtime_router, tags=["Real-time"])


setup_exception_handlers(app)


@app.get("/health", status_code=status.HTTP_200_OK)
async def health_check():
    """Simple health check endpoint."""
    return {"status": "ok", "app_name": PROJECT_NAME}
