from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any, Iterable, Optional

import pandas as pd

from core.errors import BackendUnavailable, NotFound, PartialFailure, ValidationError
from core.forms import parse_number, require_text
from core.models import ZERO, ConsumableUsage, ItemType, TaskRecord
from core.services.costing import consumables_cost, labor_cost, task_total_cost
from core.services.inventory import get_batch_by_sku, refresh_cost_per_unit
from core.utils import clean_str, iso_today

logger = logging.getLogger(__name__)

TASK_TYPES = [
    "Watering",
    "Fertilizing",
    "Pruning",
    "Planting",
    "Transplanting",
    "Pest Control",
    "Weeding",
    "Harvesting",
    "Maintenance",
    "Other",
]
TASK_STATUSES = ["Pending", "In Progress", "Completed"]


@dataclass(frozen=True)
class UsageForm:
    consumable_sku: str
    quantity_used: Decimal
    unit_cost: Decimal
    consumable_name: Optional[str] = None
    unit: Optional[str] = None

    @classmethod
    def parse(cls, *, consumable_sku: Any, quantity_used: Any, unit_cost: Any,
              consumable_name: Any = None, unit: Any = None) -> "UsageForm":
        sku = require_text(consumable_sku, "Consumable")
        qty = parse_number(quantity_used, "Quantity used")
        cost = parse_number(unit_cost, "Unit cost", default=ZERO)
        if qty <= 0:
            raise ValidationError(f"Quantity used for {sku} must be greater than 0.")
        if cost < 0:
            raise ValidationError(f"Unit cost for {sku} must be 0 or greater.")
        return cls(sku, qty, cost, clean_str(consumable_name), clean_str(unit) or "Pieces")

    def to_usage(self) -> ConsumableUsage:
        return ConsumableUsage(
            consumable_sku=self.consumable_sku,
            consumable_name=self.consumable_name,
            quantity_used=self.quantity_used,
            unit=self.unit,
            unit_cost=self.unit_cost,
        )


@dataclass(frozen=True)
class TaskForm:
    task_name: str
    task_date: str
    labor_hours: Decimal = ZERO
    labor_rate: Decimal = ZERO
    batch_sku: Optional[str] = None
    task_type: Optional[str] = None
    description: Optional[str] = None
    due_date: Optional[str] = None
    status: str = "Completed"
    assigned_to: Optional[str] = None
    usages: tuple[UsageForm, ...] = field(default_factory=tuple)

    @classmethod
    def parse(
        cls,
        *,
        task_name: Any,
        task_date: Any = None,
        labor_hours: Any = None,
        labor_rate: Any = None,
        batch_sku: Any = None,
        task_type: Any = None,
        description: Any = None,
        due_date: Any = None,
        status: Any = "Completed",
        assigned_to: Any = None,
        usages: Iterable[UsageForm] = (),
    ) -> "TaskForm":
        hours = parse_number(labor_hours, "Labor hours", default=ZERO)
        rate = parse_number(labor_rate, "Labor rate", default=ZERO)
        if hours < 0 or rate < 0:
            raise ValidationError("Labor hours and rate must be 0 or greater.")
        status_s = clean_str(status) or "Completed"
        if status_s not in TASK_STATUSES:
            raise ValidationError(f"Unknown task status: {status_s}")
        return cls(
            task_name=require_text(task_name, "Task name"),
            task_date=clean_str(task_date) or iso_today(),
            labor_hours=hours,
            labor_rate=rate,
            batch_sku=clean_str(batch_sku),
            task_type=clean_str(task_type),
            description=clean_str(description),
            due_date=clean_str(due_date),
            status=status_s,
            assigned_to=clean_str(assigned_to),
            usages=tuple(usages),
        )


def build_task(form: TaskForm) -> TaskRecord:
    usages = [u.to_usage() for u in form.usages]
    labor = labor_cost(form.labor_hours, form.labor_rate)
    materials = consumables_cost(usages)
    return TaskRecord(
        task_name=form.task_name,
        task_type=form.task_type,
        description=form.description,
        task_date=form.task_date,
        due_date=form.due_date,
        status=form.status,
        assigned_to=form.assigned_to,
        batch_sku=form.batch_sku,
        labor_hours=form.labor_hours,
        labor_rate=form.labor_rate,
        labor_cost=labor,
        consumables_cost=materials,
        total_cost=task_total_cost(labor, materials),
        usages=usages,
    )


def log_task(store, form: TaskForm) -> TaskRecord:
    """
    Insert the task, then its consumable usage rows, then refresh the target
    batch's cost per unit. A failure after the task row exists is reported as
    a PartialFailure; the task row is not removed.
    """
    if form.batch_sku:
        # fail before any write if the batch reference is stale
        get_batch_by_sku(store, form.batch_sku)

    task = build_task(form)
    row = store.insert("tasks", task.to_row())
    task.id = row["id"]
    task.created_at = row.get("created_at")
    logger.info("Logged task %s (%s) cost %s", task.id, task.task_name, task.total_cost)

    for i, usage in enumerate(task.usages):
        usage.task_id = task.id
        try:
            usage.id = store.insert("task_consumables", usage.to_row())["id"]
        except (BackendUnavailable, ValidationError) as e:
            logger.error("Task %s saved but consumable usage %s failed: %s", task.id, usage.consumable_sku, e)
            raise PartialFailure(
                "task_consumables",
                f"Task was saved, but {len(task.usages) - i} consumable usage row(s) were not recorded: {e}",
                completed=["task_insert"],
                record=task,
                cause=e,
            ) from e

    if task.batch_sku:
        try:
            refresh_cost_per_unit(store, task.batch_sku)
        except (BackendUnavailable, NotFound) as e:
            logger.error("Task %s saved but cost refresh for %s failed: %s", task.id, task.batch_sku, e)
            raise PartialFailure(
                "cost_refresh",
                f"Task was saved, but the cost per unit of {task.batch_sku} was not refreshed: {e}",
                completed=["task_insert", "task_consumables"],
                record=task,
                cause=e,
            ) from e
    return task


def _with_usages(store, tasks: list[TaskRecord]) -> list[TaskRecord]:
    ids = [t.id for t in tasks if t.id is not None]
    if not ids:
        return tasks
    by_task: dict[Any, list[ConsumableUsage]] = {}
    for r in store.query("task_consumables", {"task_id": ids}):
        u = ConsumableUsage.from_row(r)
        by_task.setdefault(u.task_id, []).append(u)
    for t in tasks:
        t.usages = by_task.get(t.id, [])
    return tasks


def list_tasks(store, *, batch_sku: Optional[str] = None, include_usages: bool = False) -> list[TaskRecord]:
    filters = {"batch_sku": batch_sku} if batch_sku else None
    tasks = [TaskRecord.from_row(r) for r in store.query("tasks", filters, order_by="-task_date")]
    return _with_usages(store, tasks) if include_usages else tasks


def task_costs_by_sku(tasks: Iterable[TaskRecord]) -> dict[str, Decimal]:
    out: dict[str, Decimal] = {}
    for t in tasks:
        if t.batch_sku:
            out[t.batch_sku] = out.get(t.batch_sku, ZERO) + t.total_cost
    return out


def tasks_due(store, on_date: Optional[str] = None) -> list[TaskRecord]:
    day = on_date or iso_today()
    return [t for t in list_tasks(store) if t.due_date == day and t.status != "Completed"]


def complete_task(store, task_id: Any) -> None:
    if store.get("tasks", task_id) is None:
        raise NotFound("Task", task_id)
    store.update("tasks", task_id, {"status": "Completed"})


def consumable_options(store) -> list[dict[str, Any]]:
    """SKU, name and price of every consumable, for the usage picker."""
    rows = store.query("inventory", {"item_type": ItemType.CONSUMABLE.value}, order_by="name")
    return [{"sku": r["sku"], "name": r["name"], "unit_cost": r["unit_price"], "unit": r.get("unit")} for r in rows]


def tasks_frame(tasks: Iterable[TaskRecord]) -> pd.DataFrame:
    return pd.DataFrame(
        [
            {
                "id": t.id,
                "task_date": t.task_date,
                "task_name": t.task_name,
                "task_type": t.task_type,
                "batch_sku": t.batch_sku,
                "status": t.status,
                "due_date": t.due_date,
                "assigned_to": t.assigned_to,
                "labor_hours": float(t.labor_hours),
                "labor_cost": round(float(t.labor_cost), 2),
                "consumables_cost": round(float(t.consumables_cost), 2),
                "total_cost": round(float(t.total_cost), 2),
            }
            for t in tasks
        ]
    )
