from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping, Optional

from core.utils import to_decimal

ZERO = Decimal("0")


class ItemType(str, Enum):
    PLANT = "Plant"
    CONSUMABLE = "Consumable"
    HONEY = "Honey"

    @classmethod
    def parse(cls, value: Any) -> "ItemType":
        if isinstance(value, ItemType):
            return value
        s = str(value or "").strip().lower()
        for member in cls:
            if member.value.lower() == s:
                return member
        raise ValueError(f"Unknown item type: {value!r}")


def _row_get(row: Mapping[str, Any], key: str, default: Any = None) -> Any:
    # sqlite3.Row has no .get(); plain dicts from the demo store do.
    try:
        value = row[key]
    except (KeyError, IndexError):
        return default
    return default if value is None else value


def _money(row: Mapping[str, Any], key: str) -> Decimal:
    return to_decimal(_row_get(row, key), ZERO)


@dataclass
class InventoryBatch:
    sku: str
    name: str
    category: str
    quantity: int
    unit_price: Decimal
    batch_cost: Decimal = ZERO
    cost_per_unit: Decimal = ZERO
    initial_quantity: int = 0
    item_type: ItemType = ItemType.PLANT
    unit: str = "Pieces"
    ready_for_sale: bool = False
    scientific_name: Optional[str] = None
    source: Optional[str] = None
    description: Optional[str] = None
    id: Optional[int] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def costing_quantity(self) -> int:
        """Quantity the batch cost is amortized over (originally produced)."""
        return self.initial_quantity if self.initial_quantity > 0 else self.quantity

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "InventoryBatch":
        return cls(
            id=_row_get(row, "id"),
            sku=str(_row_get(row, "sku", "")),
            name=str(_row_get(row, "name", "")),
            category=str(_row_get(row, "category", "")),
            quantity=int(_row_get(row, "quantity", 0)),
            initial_quantity=int(_row_get(row, "initial_quantity", 0)),
            unit_price=_money(row, "unit_price"),
            batch_cost=_money(row, "batch_cost"),
            cost_per_unit=_money(row, "cost_per_unit"),
            item_type=ItemType.parse(_row_get(row, "item_type", ItemType.PLANT.value)),
            unit=str(_row_get(row, "unit", "Pieces")),
            ready_for_sale=bool(_row_get(row, "ready_for_sale", False)),
            scientific_name=_row_get(row, "scientific_name"),
            source=_row_get(row, "source"),
            description=_row_get(row, "description"),
            created_at=_row_get(row, "created_at"),
            updated_at=_row_get(row, "updated_at"),
        )

    def to_row(self) -> dict[str, Any]:
        return {
            "sku": self.sku,
            "name": self.name,
            "scientific_name": self.scientific_name,
            "category": self.category,
            "unit": self.unit,
            "item_type": self.item_type.value,
            "quantity": int(self.quantity),
            "initial_quantity": int(self.initial_quantity),
            "unit_price": float(self.unit_price),
            "batch_cost": float(self.batch_cost),
            "cost_per_unit": float(self.cost_per_unit),
            "ready_for_sale": 1 if self.ready_for_sale else 0,
            "source": self.source,
            "description": self.description,
        }


@dataclass
class ConsumableUsage:
    consumable_sku: str
    quantity_used: Decimal
    unit_cost: Decimal
    consumable_name: Optional[str] = None
    unit: Optional[str] = None
    task_id: Optional[int] = None
    id: Optional[int] = None

    @property
    def total_cost(self) -> Decimal:
        return self.quantity_used * self.unit_cost

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "ConsumableUsage":
        return cls(
            id=_row_get(row, "id"),
            task_id=_row_get(row, "task_id"),
            consumable_sku=str(_row_get(row, "consumable_sku", "")),
            consumable_name=_row_get(row, "consumable_name"),
            quantity_used=_money(row, "quantity_used"),
            unit=_row_get(row, "unit"),
            unit_cost=_money(row, "unit_cost"),
        )

    def to_row(self) -> dict[str, Any]:
        return {
            "task_id": self.task_id,
            "consumable_sku": self.consumable_sku,
            "consumable_name": self.consumable_name,
            "quantity_used": float(self.quantity_used),
            "unit": self.unit,
            "unit_cost": float(self.unit_cost),
        }


@dataclass
class TaskRecord:
    task_name: str
    task_date: str
    labor_hours: Decimal = ZERO
    labor_rate: Decimal = ZERO
    labor_cost: Decimal = ZERO
    consumables_cost: Decimal = ZERO
    total_cost: Decimal = ZERO
    batch_sku: Optional[str] = None
    task_type: Optional[str] = None
    description: Optional[str] = None
    due_date: Optional[str] = None
    status: str = "Completed"
    assigned_to: Optional[str] = None
    usages: list[ConsumableUsage] = field(default_factory=list)
    id: Optional[int] = None
    created_at: Optional[str] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "TaskRecord":
        return cls(
            id=_row_get(row, "id"),
            task_name=str(_row_get(row, "task_name", "")),
            task_type=_row_get(row, "task_type"),
            description=_row_get(row, "description"),
            task_date=str(_row_get(row, "task_date", "")),
            due_date=_row_get(row, "due_date"),
            status=str(_row_get(row, "status", "Completed")),
            assigned_to=_row_get(row, "assigned_to"),
            batch_sku=_row_get(row, "batch_sku"),
            labor_hours=_money(row, "labor_hours"),
            labor_rate=_money(row, "labor_rate"),
            labor_cost=_money(row, "labor_cost"),
            consumables_cost=_money(row, "consumables_cost"),
            total_cost=_money(row, "total_cost"),
            created_at=_row_get(row, "created_at"),
        )

    def to_row(self) -> dict[str, Any]:
        return {
            "task_name": self.task_name,
            "task_type": self.task_type,
            "description": self.description,
            "task_date": self.task_date,
            "due_date": self.due_date,
            "status": self.status,
            "assigned_to": self.assigned_to,
            "batch_sku": self.batch_sku,
            "labor_hours": float(self.labor_hours),
            "labor_rate": float(self.labor_rate),
            "labor_cost": float(self.labor_cost),
            "consumables_cost": float(self.consumables_cost),
            "total_cost": float(self.total_cost),
        }


@dataclass
class SaleRecord:
    inventory_batch_id: int
    quantity: int
    total_amount: Decimal
    sale_date: str
    customer_id: Optional[int] = None
    id: Optional[int] = None
    created_at: Optional[str] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "SaleRecord":
        return cls(
            id=_row_get(row, "id"),
            inventory_batch_id=int(_row_get(row, "inventory_id", 0)),
            customer_id=_row_get(row, "customer_id"),
            quantity=int(_row_get(row, "quantity", 0)),
            total_amount=_money(row, "total_amount"),
            sale_date=str(_row_get(row, "sale_date", "")),
            created_at=_row_get(row, "created_at"),
        )

    def to_row(self) -> dict[str, Any]:
        return {
            "inventory_id": int(self.inventory_batch_id),
            "customer_id": self.customer_id,
            "quantity": int(self.quantity),
            "total_amount": float(self.total_amount),
            "sale_date": self.sale_date,
        }


@dataclass
class CustomerRecord:
    name: str
    contact: str
    email: Optional[str] = None
    id: Optional[int] = None
    created_at: Optional[str] = None

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "CustomerRecord":
        return cls(
            id=_row_get(row, "id"),
            name=str(_row_get(row, "name", "")),
            contact=str(_row_get(row, "contact", "")),
            email=_row_get(row, "email"),
            created_at=_row_get(row, "created_at"),
        )

    def to_row(self) -> dict[str, Any]:
        return {"name": self.name, "contact": self.contact, "email": self.email}
