"""
Cost allocation for a batch.

    cost_per_unit   = (batch_cost + task_costs) / quantity      (0 when quantity <= 0)
    profit_per_unit = selling_price - cost_per_unit
    margin %        = profit_per_unit / selling_price * 100     (0 when price <= 0)

Everything is Decimal. Callers convert form values with ``to_decimal`` first;
nothing in here parses strings.
"""
from __future__ import annotations

from decimal import Decimal
from typing import Iterable

from core.models import ZERO, ConsumableUsage

HUNDRED = Decimal("100")


def compute_cost_per_unit(batch_cost: Decimal, task_costs: Decimal, quantity: int) -> Decimal:
    # quantity <= 0 is a valid state (sold out / not yet counted), not an error
    if quantity <= 0:
        return ZERO
    return (Decimal(batch_cost) + Decimal(task_costs)) / Decimal(int(quantity))


def profit_per_unit(selling_price: Decimal, cost_per_unit: Decimal) -> Decimal:
    return Decimal(selling_price) - Decimal(cost_per_unit)


def profit_margin_percent(selling_price: Decimal, unit_profit: Decimal) -> Decimal:
    selling_price = Decimal(selling_price)
    if selling_price <= 0:
        return ZERO
    return Decimal(unit_profit) / selling_price * HUNDRED


def labor_cost(hours: Decimal, rate: Decimal) -> Decimal:
    return Decimal(hours) * Decimal(rate)


def consumables_cost(usages: Iterable[ConsumableUsage]) -> Decimal:
    return sum((u.total_cost for u in usages), ZERO)


def task_total_cost(labor: Decimal, consumables: Decimal) -> Decimal:
    return Decimal(labor) + Decimal(consumables)


def batch_value(quantity: int, selling_price: Decimal) -> Decimal:
    return Decimal(int(quantity)) * Decimal(selling_price)
