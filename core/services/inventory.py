from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable, Optional

import pandas as pd

from core.config import CONSUMABLE_LOW_STOCK_THRESHOLD, PLANT_LOW_STOCK_THRESHOLD
from core.errors import DuplicateKey, NotFound, NurseryError, PartialFailure, ValidationError
from core.forms import parse_number, parse_whole, require_text
from core.models import ZERO, InventoryBatch, ItemType, TaskRecord
from core.services.costing import batch_value, compute_cost_per_unit, profit_margin_percent, profit_per_unit
from core.services.sku import existing_skus, generate_sku
from core.utils import clean_str, iso_today

logger = logging.getLogger(__name__)

SKU_INSERT_ATTEMPTS = 3

PLANT_CATEGORIES = ["Indigenous Trees", "Fruit Trees", "Timber Trees", "Ornamentals", "Herbs", "Vegetables"]
CONSUMABLE_CATEGORIES = ["Fertilizers", "Pesticides", "Tools", "Pots", "Soil", "Irrigation", "Other"]
HONEY_CATEGORY = "Organic Honey"


class PlantStatus(str, Enum):
    HEALTHY = "Healthy"
    LOW_STOCK = "Low Stock"
    OUT_OF_STOCK = "Out of Stock"


class ConsumableStatus(str, Enum):
    AVAILABLE = "Available"
    LOW_STOCK = "Low Stock"
    OUT_OF_STOCK = "Out of Stock"


def classify_status(quantity: int, threshold: int = PLANT_LOW_STOCK_THRESHOLD) -> PlantStatus:
    if quantity <= 0:
        return PlantStatus.OUT_OF_STOCK
    if quantity < threshold:
        return PlantStatus.LOW_STOCK
    return PlantStatus.HEALTHY


def classify_consumable_status(quantity: int, threshold: int = CONSUMABLE_LOW_STOCK_THRESHOLD) -> ConsumableStatus:
    if quantity <= 0:
        return ConsumableStatus.OUT_OF_STOCK
    if quantity < threshold:
        return ConsumableStatus.LOW_STOCK
    return ConsumableStatus.AVAILABLE


def batch_status(batch: InventoryBatch, plant_threshold: int, consumable_threshold: int) -> str:
    if batch.item_type == ItemType.CONSUMABLE:
        return classify_consumable_status(batch.quantity, consumable_threshold).value
    return classify_status(batch.quantity, plant_threshold).value


# -------------------------
# Typed form input
# -------------------------


@dataclass(frozen=True)
class InventoryForm:
    name: str
    category: str
    quantity: int
    unit_price: Decimal
    batch_cost: Decimal = ZERO
    item_type: ItemType = ItemType.PLANT
    unit: str = "Pieces"
    sku: Optional[str] = None
    ready_for_sale: bool = False
    scientific_name: Optional[str] = None
    source: Optional[str] = None
    description: Optional[str] = None

    @classmethod
    def parse(
        cls,
        *,
        name: Any,
        category: Any,
        quantity: Any,
        unit_price: Any,
        batch_cost: Any = None,
        item_type: Any = ItemType.PLANT,
        unit: Any = None,
        sku: Any = None,
        ready_for_sale: Any = False,
        scientific_name: Any = None,
        source: Any = None,
        description: Any = None,
    ) -> "InventoryForm":
        """Convert raw widget values; raises ValidationError before any I/O."""
        try:
            kind = ItemType.parse(item_type)
        except ValueError as e:
            raise ValidationError(str(e))

        name_s = require_text(name, "Name")
        category_s = require_text(category, "Category")
        qty = parse_whole(quantity, "Quantity")
        price = parse_number(unit_price, "Price")
        cost = parse_number(batch_cost, "Batch cost", default=ZERO)

        if qty < 0:
            raise ValidationError("Quantity must be 0 or greater.")
        if price < 0:
            raise ValidationError("Price must be 0 or greater.")
        if cost < 0:
            raise ValidationError("Batch cost must be 0 or greater.")
        if kind == ItemType.HONEY and (qty <= 0 or price <= 0):
            raise ValidationError("Honey products need a quantity and a price greater than 0.")
        if kind == ItemType.CONSUMABLE:
            # consumables are costed through task usage, not batch amortization
            cost = ZERO

        sku_s = clean_str(sku)
        if sku_s is not None:
            sku_s = sku_s.upper()
            if len(sku_s) > 50:
                raise ValidationError("SKU must be 50 characters or fewer.")

        return cls(
            name=name_s,
            category=category_s,
            quantity=qty,
            unit_price=price,
            batch_cost=cost,
            item_type=kind,
            unit=clean_str(unit) or ("kg" if kind == ItemType.HONEY else "Pieces"),
            sku=sku_s,
            ready_for_sale=bool(ready_for_sale),
            scientific_name=clean_str(scientific_name),
            source=clean_str(source),
            description=clean_str(description),
        )


@dataclass(frozen=True)
class ApiaryInvestment:
    number_of_hives: int
    cost_per_hive: Decimal = ZERO
    construction_cost: Decimal = ZERO
    equipment_cost: Decimal = ZERO
    purchase_date: Optional[str] = None

    @property
    def total(self) -> Decimal:
        return Decimal(self.number_of_hives) * self.cost_per_hive + self.construction_cost + self.equipment_cost

    @classmethod
    def parse(cls, *, number_of_hives: Any, cost_per_hive: Any = 0, construction_cost: Any = 0,
              equipment_cost: Any = 0, purchase_date: Any = None) -> "ApiaryInvestment":
        hives = parse_whole(number_of_hives, "Number of hives", default=0)
        parts = [
            parse_number(cost_per_hive, "Cost per hive", default=ZERO),
            parse_number(construction_cost, "Construction cost", default=ZERO),
            parse_number(equipment_cost, "Equipment cost", default=ZERO),
        ]
        if hives < 0 or any(p < 0 for p in parts):
            raise ValidationError("Apiary costs must be 0 or greater.")
        return cls(hives, parts[0], parts[1], parts[2], clean_str(purchase_date))


# -------------------------
# Reads
# -------------------------

def get_batch(store, batch_id: Any) -> InventoryBatch:
    row = store.get("inventory", batch_id)
    if row is None:
        raise NotFound("Batch", batch_id)
    return InventoryBatch.from_row(row)


def get_batch_by_sku(store, sku: str) -> InventoryBatch:
    rows = store.query("inventory", {"sku": sku})
    if not rows:
        raise NotFound("Batch", sku)
    return InventoryBatch.from_row(rows[0])


def list_batches(
    store,
    *,
    item_type: Optional[ItemType] = None,
    exclude: Iterable[ItemType] = (),
    in_stock_only: bool = False,
    ready_only: bool = False,
) -> list[InventoryBatch]:
    filters: dict[str, Any] = {}
    if item_type is not None:
        filters["item_type"] = ItemType.parse(item_type).value
    if ready_only:
        filters["ready_for_sale"] = 1
    rows = store.query("inventory", filters, order_by="name")
    skip = {ItemType.parse(t) for t in exclude}
    out = []
    for r in rows:
        b = InventoryBatch.from_row(r)
        if b.item_type in skip:
            continue
        if in_stock_only and b.quantity <= 0:
            continue
        out.append(b)
    return out


def allocated_task_costs(store, sku: str) -> Decimal:
    tasks = [TaskRecord.from_row(r) for r in store.query("tasks", {"batch_sku": sku})]
    return sum((t.total_cost for t in tasks), ZERO)


def low_stock_items(batches: Iterable[InventoryBatch], threshold: int = PLANT_LOW_STOCK_THRESHOLD) -> list[InventoryBatch]:
    return [b for b in batches if b.quantity < threshold]


# -------------------------
# Writes
# -------------------------

def add_batch(store, form: InventoryForm) -> InventoryBatch:
    """
    Insert a new batch. A missing SKU is generated against a fresh SKU set and
    regenerated if the insert still hits the UNIQUE constraint; a SKU the user
    typed is never silently replaced.
    """
    taken = existing_skus(store) if form.sku is None else set()

    for attempt in range(1, SKU_INSERT_ATTEMPTS + 1):
        sku = form.sku or generate_sku(form.name, taken, item_type=form.item_type)
        batch = InventoryBatch(
            sku=sku,
            name=form.name,
            category=form.category,
            quantity=form.quantity,
            initial_quantity=form.quantity,
            unit_price=form.unit_price,
            batch_cost=form.batch_cost,
            cost_per_unit=compute_cost_per_unit(form.batch_cost, ZERO, form.quantity),
            item_type=form.item_type,
            unit=form.unit,
            ready_for_sale=form.ready_for_sale,
            scientific_name=form.scientific_name,
            source=form.source,
            description=form.description,
        )
        try:
            row = store.insert("inventory", batch.to_row())
        except DuplicateKey:
            if form.sku is not None:
                raise
            logger.warning("SKU %s collided on insert (attempt %d/%d)", sku, attempt, SKU_INSERT_ATTEMPTS)
            taken.add(sku)
            continue
        logger.info("Added %s batch %s (%s x%d)", form.item_type.value, sku, form.name, form.quantity)
        return InventoryBatch.from_row(row)

    raise DuplicateKey("inventory", f"Could not allocate a unique SKU for {form.name!r}.")


def add_honey_product(store, form: InventoryForm, apiary: Optional[ApiaryInvestment] = None) -> InventoryBatch:
    """
    Honey batch plus, optionally, the apiary investment logged as a task against
    its SKU (so the investment is amortized into cost per unit).
    """
    if form.item_type != ItemType.HONEY:
        raise ValidationError("Honey products must use the Honey item type.")

    batch = add_batch(store, form)
    if apiary is None or apiary.number_of_hives <= 0:
        return batch

    task = TaskRecord(
        task_name="Apiary Setup & Hive Investment",
        task_type="Infrastructure",
        description=(
            f"Initial setup: {apiary.number_of_hives} hives at {apiary.cost_per_hive} each. "
            f"Construction: {apiary.construction_cost}. Equipment: {apiary.equipment_cost}"
        ),
        task_date=apiary.purchase_date or iso_today(),
        batch_sku=batch.sku,
        total_cost=apiary.total,
        status="Completed",
    )
    try:
        store.insert("tasks", task.to_row())
        refresh_cost_per_unit(store, batch.sku)
    except NurseryError as e:
        logger.error("Honey batch %s saved but apiary investment not recorded: %s", batch.sku, e)
        raise PartialFailure(
            "apiary_task",
            f"Honey product {batch.sku} was added, but the apiary investment was not recorded: {e}",
            completed=["inventory_insert"],
            record=batch,
            cause=e,
        ) from e
    return get_batch(store, batch.id)


def refresh_cost_per_unit(store, sku: str) -> Decimal:
    batch = get_batch_by_sku(store, sku)
    cpu = compute_cost_per_unit(batch.batch_cost, allocated_task_costs(store, sku), batch.costing_quantity)
    store.update("inventory", batch.id, {"cost_per_unit": float(cpu)})
    return cpu


_EDITABLE_TEXT = {"name", "category", "unit", "scientific_name", "source", "description"}
_COST_FIELDS = {"quantity", "initial_quantity", "batch_cost"}


def update_batch(store, batch_id: Any, changes: dict[str, Any]) -> InventoryBatch:
    """
    Apply an edit. Cost per unit is recomputed whenever quantity, the originally
    produced quantity or batch cost change. Raising quantity above the original
    quantity (a restock counted into the same batch) raises the original too.
    """
    patch: dict[str, Any] = {}
    for key, raw in changes.items():
        if key in _EDITABLE_TEXT:
            if key in {"name", "category"}:
                patch[key] = require_text(raw, key.capitalize())
            else:
                patch[key] = clean_str(raw)
        elif key in {"quantity", "initial_quantity"}:
            v = parse_whole(raw, "Quantity")
            if v < 0:
                raise ValidationError("Quantity must be 0 or greater.")
            patch[key] = v
        elif key in {"unit_price", "batch_cost"}:
            v = parse_number(raw, "Price" if key == "unit_price" else "Batch cost")
            if v < 0:
                raise ValidationError(f"{'Price' if key == 'unit_price' else 'Batch cost'} must be 0 or greater.")
            patch[key] = v
        elif key == "ready_for_sale":
            patch[key] = bool(raw)
        else:
            raise ValidationError(f"Field {key!r} cannot be edited.")

    batch = get_batch(store, batch_id)
    for key, value in patch.items():
        setattr(batch, key, value)
    if "quantity" in patch and "initial_quantity" not in patch and batch.quantity > batch.initial_quantity:
        batch.initial_quantity = batch.quantity
        patch["initial_quantity"] = batch.quantity

    if _COST_FIELDS & set(patch):
        batch.cost_per_unit = compute_cost_per_unit(
            batch.batch_cost, allocated_task_costs(store, batch.sku), batch.costing_quantity
        )
        patch["cost_per_unit"] = batch.cost_per_unit

    row_patch = {k: v for k, v in batch.to_row().items() if k in patch}
    store.update("inventory", batch.id, row_patch)
    logger.info("Updated batch %s: %s", batch.sku, ", ".join(sorted(patch)))
    return get_batch(store, batch.id)


def delete_batch(store, batch_id: Any) -> None:
    batch = get_batch(store, batch_id)
    store.delete("inventory", batch.id)
    logger.info("Deleted batch %s", batch.sku)


# -------------------------
# Batch status manager (current nursery vs future plans, grouped by source)
# -------------------------

@dataclass
class BatchGroup:
    source: str
    count: int = 0
    current_count: int = 0
    future_count: int = 0
    sample_names: list[str] = field(default_factory=list)
    created_at: Optional[str] = None


UNKNOWN_SOURCE = "Unknown Source"


def batch_groups(store) -> list[BatchGroup]:
    groups: dict[str, BatchGroup] = {}
    for r in store.query("inventory", order_by="-created_at"):
        b = InventoryBatch.from_row(r)
        key = b.source or UNKNOWN_SOURCE
        g = groups.setdefault(key, BatchGroup(source=key, created_at=b.created_at))
        g.count += 1
        if b.ready_for_sale:
            g.current_count += 1
        else:
            g.future_count += 1
        if len(g.sample_names) < 3:
            g.sample_names.append(b.name)
    return list(groups.values())


def set_ready_for_sale(store, source: str, ready: bool) -> int:
    """Move every batch from ``source`` to current (True) or future (False) stock."""
    filters = {"source": None if source == UNKNOWN_SOURCE else source}
    rows = store.query("inventory", filters)
    updated = 0
    for r in rows:
        try:
            store.update("inventory", r["id"], {"ready_for_sale": 1 if ready else 0})
        except NurseryError as e:
            if not updated:
                raise
            raise PartialFailure(
                "ready_for_sale",
                f"Updated {updated} of {len(rows)} batches from {source!r} before failing: {e}",
                completed=[updated],
                cause=e,
            ) from e
        updated += 1
    logger.info("Marked %d batch(es) from %s as %s", updated, source, "current" if ready else "future")
    return updated


# -------------------------
# Tables
# -------------------------

def inventory_frame(
    batches: Iterable[InventoryBatch],
    *,
    plant_threshold: int = PLANT_LOW_STOCK_THRESHOLD,
    consumable_threshold: int = CONSUMABLE_LOW_STOCK_THRESHOLD,
) -> pd.DataFrame:
    rows = []
    for b in batches:
        unit_profit = profit_per_unit(b.unit_price, b.cost_per_unit)
        rows.append(
            {
                "id": b.id,
                "sku": b.sku,
                "name": b.name,
                "type": b.item_type.value,
                "category": b.category,
                "quantity": b.quantity,
                "unit": b.unit,
                "unit_price": round(float(b.unit_price), 2),
                "cost_per_unit": round(float(b.cost_per_unit), 2),
                "margin_pct": round(float(profit_margin_percent(b.unit_price, unit_profit)), 1),
                "stock_value": round(float(batch_value(b.quantity, b.unit_price)), 2),
                "status": batch_status(b, plant_threshold, consumable_threshold),
                "ready_for_sale": b.ready_for_sale,
                "source": b.source,
            }
        )
    return pd.DataFrame(rows)
