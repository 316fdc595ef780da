"""
Periodic low-stock / due-task check.

``StockMonitor.check`` does the work and can be called directly; ``start`` and
``stop`` only schedule it on a background thread. The handle is owned by
whoever starts it (the home page caches one per process).
"""
from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Callable, Optional

from core.config import PLANT_LOW_STOCK_THRESHOLD
from core.errors import NurseryError
from core.models import InventoryBatch, ItemType, TaskRecord
from core.services.inventory import list_batches, low_stock_items
from core.services.tasks import tasks_due

logger = logging.getLogger(__name__)


@dataclass
class MonitorReport:
    low_stock: list[InventoryBatch] = field(default_factory=list)
    due_tasks: list[TaskRecord] = field(default_factory=list)

    @property
    def has_alerts(self) -> bool:
        return bool(self.low_stock or self.due_tasks)

    def messages(self) -> list[str]:
        out = []
        if self.low_stock:
            names = ", ".join(f"{b.name} ({b.quantity})" for b in self.low_stock)
            out.append(f"Low stock ({len(self.low_stock)} items): {names}")
        if self.due_tasks:
            names = ", ".join(t.task_name for t in self.due_tasks)
            out.append(f"Tasks due today ({len(self.due_tasks)}): {names}")
        return out


def log_notifier(report: MonitorReport) -> None:
    for msg in report.messages():
        logger.warning(msg)


class StockMonitor:
    def __init__(
        self,
        store,
        *,
        threshold: int = PLANT_LOW_STOCK_THRESHOLD,
        notify: Callable[[MonitorReport], None] = log_notifier,
    ):
        self.store = store
        self.threshold = int(threshold)
        self.notify = notify
        self.last_report: Optional[MonitorReport] = None
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def check(self, today: Optional[str] = None, *, notify: bool = True) -> MonitorReport:
        stocked = [b for b in list_batches(self.store) if b.item_type != ItemType.CONSUMABLE]
        report = MonitorReport(
            low_stock=low_stock_items(stocked, self.threshold),
            due_tasks=tasks_due(self.store, today),
        )
        self.last_report = report
        if notify and report.has_alerts:
            self.notify(report)
        return report

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self, interval_seconds: float) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(
            target=self._loop, args=(float(interval_seconds),), name="stock-monitor", daemon=True
        )
        self._thread.start()
        logger.info("Stock monitor started (every %ss)", interval_seconds)

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
        logger.info("Stock monitor stopped")

    def _loop(self, interval: float) -> None:
        # check immediately, then every interval until stopped
        while not self._stop.is_set():
            try:
                self.check()
            except NurseryError as e:
                logger.error("Stock monitor check failed: %s", e)
            self._stop.wait(interval)
