from decimal import Decimal

from core.models import ConsumableUsage
from core.services.costing import (
    batch_value,
    compute_cost_per_unit,
    consumables_cost,
    labor_cost,
    profit_margin_percent,
    profit_per_unit,
    task_total_cost,
)


def test_cost_per_unit_includes_task_costs():
    assert compute_cost_per_unit(Decimal("2500"), Decimal("500"), 100) == Decimal("30")


def test_cost_per_unit_is_zero_without_quantity():
    assert compute_cost_per_unit(Decimal("2500"), Decimal("500"), 0) == 0
    assert compute_cost_per_unit(Decimal("2500"), Decimal("0"), -3) == 0


def test_profit_and_margin():
    unit_profit = profit_per_unit(Decimal("45"), Decimal("30"))
    assert unit_profit == Decimal("15")
    assert profit_margin_percent(Decimal("45"), unit_profit) == Decimal("15") / Decimal("45") * 100


def test_margin_is_zero_for_free_items():
    assert profit_margin_percent(Decimal("0"), Decimal("-10")) == 0


def test_task_cost_parts():
    usages = [
        ConsumableUsage(consumable_sku="CONORG1234", quantity_used=Decimal("2"), unit_cost=Decimal("850")),
        ConsumableUsage(consumable_sku="CONPOT1234", quantity_used=Decimal("10"), unit_cost=Decimal("45")),
    ]
    labor = labor_cost(Decimal("2"), Decimal("150"))
    materials = consumables_cost(usages)
    assert labor == Decimal("300")
    assert materials == Decimal("2150")
    assert task_total_cost(labor, materials) == Decimal("2450")
    assert consumables_cost([]) == 0


def test_batch_value():
    assert batch_value(45, Decimal("1200")) == Decimal("54000")


def test_worked_example_with_task_costs():
    cpu = compute_cost_per_unit(Decimal("2500"), Decimal("750"), 100)
    assert cpu == Decimal("32.5")
    unit_profit = profit_per_unit(Decimal("45"), cpu)
    assert unit_profit == Decimal("12.5")
    assert round(profit_margin_percent(Decimal("45"), unit_profit), 2) == Decimal("27.78")
    assert compute_cost_per_unit(Decimal("0"), Decimal("0"), 0) == 0
