from __future__ import annotations

import io
import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional

import pandas as pd

from core.models import ZERO, InventoryBatch, ItemType, SaleRecord, TaskRecord
from core.services.costing import (
    batch_value,
    compute_cost_per_unit,
    profit_margin_percent,
    profit_per_unit,
)
from core.services.inventory import list_batches, low_stock_items
from core.services.sales import list_sales
from core.services.tasks import list_tasks, task_costs_by_sku
from core.utils import iso_today

logger = logging.getLogger(__name__)


@dataclass
class BatchProfitability:
    sku: str
    name: str
    category: str
    quantity: int
    selling_price: Decimal
    batch_cost: Decimal
    task_costs: Decimal
    cost_per_unit: Decimal
    profit_per_unit: Decimal
    profit_margin: Decimal
    batch_value: Decimal
    potential_batch_profit: Decimal
    units_sold: int
    revenue_generated: Decimal
    profit_realized: Decimal


@dataclass
class ReportTotals:
    revenue: Decimal
    cost_of_goods_sold: Decimal
    profit_realized: Decimal
    margin_percent: Decimal
    units_sold: int
    potential_profit: Decimal


def build_profitability_report(
    batches: Iterable[InventoryBatch],
    tasks: Iterable[TaskRecord],
    sales: Iterable[SaleRecord],
) -> list[BatchProfitability]:
    """
    One row per batch, highest margin first.

    Cost per unit is amortized over the originally produced quantity, so it
    does not drift upward as the batch sells down; potential profit is what
    the remaining stock would earn at today's margin. Ties keep input order.
    """
    batches = list(batches)
    task_costs = task_costs_by_sku(tasks)
    sku_by_batch_id = {b.id: b.sku for b in batches}

    sold_units: dict[str, int] = {}
    revenue: dict[str, Decimal] = {}
    for s in sales:
        sku = sku_by_batch_id.get(s.inventory_batch_id)
        if sku is None:
            continue
        sold_units[sku] = sold_units.get(sku, 0) + s.quantity
        revenue[sku] = revenue.get(sku, ZERO) + s.total_amount

    rows = []
    for b in batches:
        allocated = task_costs.get(b.sku, ZERO)
        cpu = compute_cost_per_unit(b.batch_cost, allocated, b.costing_quantity)
        unit_profit = profit_per_unit(b.unit_price, cpu)
        units_sold = sold_units.get(b.sku, 0)
        rows.append(
            BatchProfitability(
                sku=b.sku,
                name=b.name,
                category=b.category,
                quantity=b.quantity,
                selling_price=b.unit_price,
                batch_cost=b.batch_cost,
                task_costs=allocated,
                cost_per_unit=cpu,
                profit_per_unit=unit_profit,
                profit_margin=profit_margin_percent(b.unit_price, unit_profit),
                batch_value=batch_value(b.quantity, b.unit_price),
                potential_batch_profit=Decimal(b.quantity) * unit_profit,
                units_sold=units_sold,
                revenue_generated=revenue.get(b.sku, ZERO),
                profit_realized=Decimal(units_sold) * unit_profit,
            )
        )

    # sorted() is stable
    return sorted(rows, key=lambda r: r.profit_margin, reverse=True)


def load_profitability_report(store) -> list[BatchProfitability]:
    batches = list_batches(store, exclude=[ItemType.CONSUMABLE])
    rows = build_profitability_report(batches, list_tasks(store), list_sales(store))
    logger.info("Profitability report built for %d batches", len(rows))
    return rows


def summarize_report(rows: Iterable[BatchProfitability]) -> ReportTotals:
    rows = list(rows)
    revenue = sum((r.revenue_generated for r in rows), ZERO)
    cogs = sum((Decimal(r.units_sold) * r.cost_per_unit for r in rows), ZERO)
    profit = revenue - cogs
    margin = profit / revenue * Decimal("100") if revenue > 0 else ZERO
    return ReportTotals(
        revenue=revenue,
        cost_of_goods_sold=cogs,
        profit_realized=profit,
        margin_percent=margin,
        units_sold=sum(r.units_sold for r in rows),
        potential_profit=sum((r.potential_batch_profit for r in rows), ZERO),
    )


@dataclass
class DashboardStats:
    total_items: int
    total_units: int
    low_stock: list[InventoryBatch]
    total_sales: int
    revenue: Decimal
    customers: int
    pending_tasks: int
    stock_value: Decimal


def dashboard_stats(store, threshold: int) -> DashboardStats:
    batches = list_batches(store)
    stocked = [b for b in batches if b.item_type != ItemType.CONSUMABLE]
    sales = list_sales(store)
    tasks = list_tasks(store)
    return DashboardStats(
        total_items=len(stocked),
        total_units=sum(b.quantity for b in stocked),
        low_stock=low_stock_items(stocked, threshold),
        total_sales=len(sales),
        revenue=sum((s.total_amount for s in sales), ZERO),
        customers=len(store.query("customers")),
        pending_tasks=sum(1 for t in tasks if t.status != "Completed"),
        stock_value=sum((batch_value(b.quantity, b.unit_price) for b in stocked), ZERO),
    )


# -------------------------
# Tables / export
# -------------------------

REPORT_COLUMNS = {
    "sku": "Batch SKU",
    "name": "Name",
    "category": "Category",
    "quantity": "Quantity in Batch",
    "selling_price": "Selling Price",
    "batch_cost": "Initial Batch Cost",
    "task_costs": "Task Costs",
    "cost_per_unit": "Cost per Unit",
    "profit_per_unit": "Profit per Unit",
    "profit_margin": "Margin %",
    "batch_value": "Batch Value",
    "potential_batch_profit": "Potential Profit",
    "units_sold": "Units Sold",
    "revenue_generated": "Revenue",
    "profit_realized": "Profit Realized",
}


def report_frame(rows: Iterable[BatchProfitability]) -> pd.DataFrame:
    records = []
    for rank, r in enumerate(rows, start=1):
        rec = {"Rank": rank}
        for attr, label in REPORT_COLUMNS.items():
            value = getattr(r, attr)
            rec[label] = round(float(value), 2) if isinstance(value, Decimal) else value
        records.append(rec)
    return pd.DataFrame(records, columns=["Rank", *REPORT_COLUMNS.values()])


def to_excel_bytes(frame: pd.DataFrame, sheet_name: str = "Data") -> bytes:
    buf = io.BytesIO()
    with pd.ExcelWriter(buf, engine="openpyxl") as writer:
        frame.to_excel(writer, sheet_name=sheet_name, index=False)
    return buf.getvalue()


def export_file_name(prefix: str, day: Optional[str] = None) -> str:
    return f"{prefix}_{day or iso_today()}.xlsx"
