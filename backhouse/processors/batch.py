import logging
from dataclasses import dataclass, field
from typing import Iterable, List, Optional
from uuid import UUID

from backhouse.core.errors import BackhouseError
from backhouse.events.dispatcher import EventDispatcher
from backhouse.services.eighty_six import reconcile

log = logging.getLogger(__name__)


@dataclass
class ItemOutcome:
    menu_item_id: UUID
    ok: bool
    available: Optional[bool] = None
    transition: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self):
        return {
            "menu_item_id": str(self.menu_item_id),
            "ok": self.ok,
            "available": self.available,
            "transition": self.transition,
            "error": self.error,
        }


@dataclass
class BatchReport:
    outcomes: List[ItemOutcome] = field(default_factory=list)

    @property
    def succeeded(self) -> List[ItemOutcome]:
        return [o for o in self.outcomes if o.ok]

    @property
    def failed(self) -> List[ItemOutcome]:
        return [o for o in self.outcomes if not o.ok]

    @property
    def changed(self) -> List[ItemOutcome]:
        return [o for o in self.outcomes if o.transition]

    def to_dict(self):
        return {
            "total": len(self.outcomes),
            "failed": len(self.failed),
            "changed": len(self.changed),
            "items": [o.to_dict() for o in self.outcomes],
        }


async def reconcile_many(menu_item_ids: Iterable[UUID], dispatcher: Optional[EventDispatcher]) -> BatchReport:
    """
    Reconciles each menu item in its own transaction and broadcasts its events
    once committed. A failing item is logged and recorded; the rest still run.
    """
    report = BatchReport()
    for menu_item_id in menu_item_ids:
        try:
            result = await reconcile(menu_item_id)
        except BackhouseError as e:
            log.error(f"Reconcile failed for menu item {menu_item_id}: {e.message}")
            report.outcomes.append(ItemOutcome(menu_item_id, ok=False, error=e.message))
            continue
        except Exception as e:
            log.exception(f"Unexpected error reconciling menu item {menu_item_id}")
            report.outcomes.append(ItemOutcome(menu_item_id, ok=False, error=str(e)))
            continue

        report.outcomes.append(ItemOutcome(
            menu_item_id, ok=True, available=result.available, transition=result.transition,
        ))
        if result.events and dispatcher is not None:
            await dispatcher.dispatch(result.events)
    return report
