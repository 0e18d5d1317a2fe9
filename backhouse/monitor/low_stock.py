"""
Low-Stock Monitor.

A single background task that periodically sweeps the ledger for items at or
under par, raises one notification per item per dedup window, and broadcasts
the results. Built once by the application lifespan and injected into the
endpoints that need to trigger or inspect it.
"""
import asyncio
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Dict, List, Optional, Sequence
from uuid import UUID

from tortoise.transactions import in_transaction

from backhouse.core.config import (
    ALERT_ROLES,
    LOW_STOCK_CHECK_INTERVAL,
    LOW_STOCK_DEDUP_WINDOW,
    NOTIFICATION_TTL,
)
from backhouse.core.errors import BackhouseError, ValidationFailure, persistence_errors
from backhouse.events.dispatcher import EventDispatcher
from backhouse.events.events import InventoryAlert, LowStockSummary
from backhouse.models.inventory import InventoryItem
from backhouse.models.notification import Notification, NotificationType, Severity

log = logging.getLogger(__name__)

CRITICAL_PERCENTAGE = Decimal("25")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def stock_percentage(current_stock: Decimal, par_level: Decimal) -> Decimal:
    if par_level <= 0:
        return Decimal("0")
    return current_stock / par_level * 100


def classify_severity(current_stock: Decimal, par_level: Decimal) -> Severity:
    """Critical at or under 25% of par, warning otherwise."""
    if stock_percentage(current_stock, par_level) <= CRITICAL_PERCENTAGE:
        return Severity.CRITICAL
    return Severity.WARNING


def is_low_stock(item: InventoryItem) -> bool:
    return item.par_level > 0 and item.current_stock <= item.par_level


async def find_low_stock_items() -> List[InventoryItem]:
    """Items at or under a positive par level, most critical first."""
    with persistence_errors("query low stock"):
        items = await InventoryItem.all()
    low = [i for i in items if is_low_stock(i)]
    low.sort(key=lambda i: (i.current_stock / i.par_level, i.name))
    return low


@dataclass
class SweepReport:
    started_at: datetime = field(default_factory=utcnow)
    finished_at: Optional[datetime] = None
    candidates: int = 0
    created: List[str] = field(default_factory=list)
    skipped: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)
    interrupted: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "candidates": self.candidates,
            "created": self.created,
            "skipped": self.skipped,
            "failed": self.failed,
            "interrupted": self.interrupted,
        }


class LowStockMonitor:
    def __init__(
        self,
        dispatcher: Optional[EventDispatcher],
        interval: float = LOW_STOCK_CHECK_INTERVAL,
        dedup_window: float = LOW_STOCK_DEDUP_WINDOW,
        notification_ttl: float = NOTIFICATION_TTL,
        target_roles: Sequence[str] = tuple(ALERT_ROLES),
    ):
        self.dispatcher = dispatcher
        self.interval = interval
        self.dedup_window = timedelta(seconds=dedup_window)
        self.notification_ttl = timedelta(seconds=notification_ttl)
        self.target_roles = list(target_roles)
        self.last_check: Optional[datetime] = None
        self.last_report: Optional[SweepReport] = None
        self._task: Optional[asyncio.Task] = None
        self._stopping = asyncio.Event()
        self._sweep_lock = asyncio.Lock()

    # ----------- Lifecycle -----------

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self):
        if self.is_running:
            log.info("Inventory monitor already running")
            return
        log.info(f"Starting inventory low-stock monitoring (every {self.interval}s)")
        self._stopping = asyncio.Event()
        self._task = asyncio.create_task(self._run(), name="low-stock-monitor")

    async def stop(self):
        """Lets the item in flight finish, then halts the loop."""
        if self._task is None:
            return
        self._stopping.set()
        try:
            await self._task
        finally:
            self._task = None
        log.info("Inventory monitoring stopped")

    async def _run(self):
        while not self._stopping.is_set():
            await self.sweep()
            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=self.interval)
            except asyncio.TimeoutError:
                pass

    async def trigger(self) -> SweepReport:
        """On-demand sweep; waits for a periodic sweep already in progress."""
        log.info("Manual inventory check triggered")
        return await self.sweep()

    def status(self) -> Dict[str, Any]:
        return {
            "is_running": self.is_running,
            "check_interval": self.interval,
            "last_check": self.last_check.isoformat() if self.last_check else None,
            "last_report": self.last_report.to_dict() if self.last_report else None,
        }

    def update_interval(self, minutes: float):
        """Applies from the next wait; the loop does not restart."""
        if minutes < 1:
            raise ValidationFailure("Check interval must be at least 1 minute")
        self.interval = minutes * 60
        log.info(f"Inventory check interval updated to {minutes} minutes")

    # ----------- Sweep -----------

    async def sweep(self) -> SweepReport:
        """Never raises: failures are logged and recorded on the report."""
        async with self._sweep_lock:
            report = SweepReport()
            try:
                await self._sweep(report)
            except Exception as e:
                log.error(f"Error checking low stock: {e}", exc_info=True)
                report.failed["*"] = str(e)
            report.finished_at = utcnow()
            self.last_check = report.finished_at
            self.last_report = report
            return report

    async def _sweep(self, report: SweepReport):
        log.debug("Checking for low stock items...")
        items = await find_low_stock_items()
        report.candidates = len(items)
        if not items:
            log.debug("No low stock items found")
            return

        for item in items:
            if self._stopping.is_set() and self.is_running:
                report.interrupted = True
                log.info("Monitor stopping; ending sweep early")
                break
            try:
                created = await self.process_item(item)
            except BackhouseError as e:
                log.error(f"Error processing low stock item {item.name}: {e.message}")
                report.failed[str(item.id)] = e.message
                continue
            except Exception as e:
                log.error(f"Error processing low stock item {item.name}: {e}", exc_info=True)
                report.failed[str(item.id)] = str(e)
                continue
            (report.created if created else report.skipped).append(str(item.id))

        if self.dispatcher is not None:
            await self.dispatcher.dispatch([LowStockSummary(count=len(items))])
        log.info(
            f"Low stock sweep: {len(items)} items low, {len(report.created)} alerts created, "
            f"{len(report.skipped)} deduplicated, {len(report.failed)} failed"
        )

    async def _has_recent_alert(self, item_id: UUID, now: datetime, conn: Any) -> bool:
        open_alerts = await Notification.filter(
            type=NotificationType.INVENTORY_ALERT,
            inventory_item_id=item_id,
            is_dismissed=False,
        ).using_db(conn)
        cutoff = now - self.dedup_window
        return any(_as_utc(n.created_at) > cutoff for n in open_alerts)

    async def process_item(self, item: InventoryItem) -> Optional[Notification]:
        """Creates and broadcasts one alert for the item unless a recent one is still open."""
        now = utcnow()
        with persistence_errors(f"raise low stock alert for {item.name}"):
            async with in_transaction() as conn:
                # Serializes concurrent sweeps on the same item across processes
                locked = await InventoryItem.filter(id=item.id).using_db(conn).select_for_update().first()
                if locked is None or not is_low_stock(locked):
                    return None
                if await self._has_recent_alert(locked.id, now, conn):
                    log.debug(f"Recent alert already exists for {locked.name}")
                    return None
                notification, event = await self._create_alert(locked, now, conn)

        if self.dispatcher is not None:
            await self.dispatcher.dispatch([event])
        log.info(
            f"Low stock alert created for {item.name} "
            f"({event.metadata['stock_percentage']}% of par level, {notification.severity.value})"
        )
        return notification

    async def _create_alert(self, item: InventoryItem, now: datetime, conn: Any):
        percentage = stock_percentage(item.current_stock, item.par_level)
        severity = classify_severity(item.current_stock, item.par_level)
        metadata = {
            "inventory_item_id": str(item.id),
            "inventory_item_name": item.name,
            "current_stock": float(item.current_stock),
            "par_level": float(item.par_level),
            "unit": item.unit,
            "category": item.category,
            "stock_percentage": int(percentage.quantize(Decimal("1"), rounding=ROUND_HALF_UP)),
            "last_updated": item.updated_at.isoformat() if item.updated_at else None,
        }
        notification = await Notification.create(
            type=NotificationType.INVENTORY_ALERT,
            title=f"Low Stock Alert: {item.name}",
            message=(
                f"{item.name} is running low. Current stock: {item.current_stock} {item.unit}, "
                f"Par level: {item.par_level} {item.unit}"
            ),
            severity=severity,
            target_roles=self.target_roles,
            metadata=metadata,
            inventory_item_id=item.id,
            expires_at=now + self.notification_ttl,
            using_db=conn,
        )
        event = InventoryAlert(
            item_id=str(item.id),
            severity=severity.value,
            message=notification.message,
            metadata={**metadata, "notification_id": str(notification.id), "title": notification.title},
            audience=self.target_roles,
        )
        return notification, event
