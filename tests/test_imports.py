import io

import pytest

from core.errors import ValidationError
from core.services.imports import (
    CURRENT_STOCK_SOURCE,
    FUTURE_STOCK_SOURCE,
    PREDEFINED_PLANTS,
    bulk_import,
    read_import_csv,
)
from core.services.inventory import list_batches
from core.services.reports import load_profitability_report

from tests.conftest import new_batch


def test_predefined_plants_become_current_stock(store):
    result = bulk_import(store, PREDEFINED_PLANTS)
    assert result.imported == 9
    assert result.failed == 0
    assert result.current == 9

    batches = list_batches(store)
    assert all(b.ready_for_sale and b.source == CURRENT_STOCK_SOURCE for b in batches)
    assert all(b.quantity == 100 and b.cost_per_unit == 25 for b in batches)


def test_items_past_the_limit_are_future_plans(store):
    for i in range(8):
        new_batch(store, name=f"Existing {i}")
    result = bulk_import(store, PREDEFINED_PLANTS[:3])
    assert result.current == 1
    assert result.future == 2
    sources = {b.name: b.source for b in list_batches(store)}
    assert sources["Nile Tulip"] == CURRENT_STOCK_SOURCE
    assert sources["Waterberry"] == FUTURE_STOCK_SOURCE
    assert sources["Wild Plum"] == FUTURE_STOCK_SOURCE


def test_bad_rows_are_skipped(store):
    rows = [
        {"name": "Nile Tulip", "category": "Indigenous Trees", "quantity": 10, "unit_price": 45},
        {"name": "Broken", "category": "Indigenous Trees", "quantity": "lots", "unit_price": 45},
        {"name": None, "category": "Indigenous Trees", "quantity": 5, "unit_price": 45},
        {"name": "Waterberry", "category": "Indigenous Trees", "quantity": 5, "unit_price": 45},
    ]
    result = bulk_import(store, rows)
    assert result.imported == 2
    assert result.failed == 2
    assert result.errors[0].startswith("Broken:")
    assert result.errors[1].startswith("row 3:")
    assert [b.name for b in list_batches(store)] == ["Nile Tulip", "Waterberry"]


def test_read_csv_with_aliased_headers():
    data = io.StringIO(
        "Plant Name,Category,Quantity,Price,Batch Cost\n"
        "Meru Oak,Timber Trees,50,60,3000\n"
        "Yellowwood,Indigenous Trees,20,80,\n"
    )
    rows = read_import_csv(data)
    assert [r["name"] for r in rows] == ["Meru Oak", "Yellowwood"]
    assert rows[1]["batch_cost"] is None
    assert rows[0]["scientific_name"] is None


def test_read_csv_requires_columns():
    with pytest.raises(ValidationError):
        read_import_csv(io.StringIO("name,quantity\nMint,3\n"))


def test_csv_rows_import(store):
    rows = read_import_csv(io.StringIO("name,category,quantity,unit_price\nMint,Herbs,30,20\n"))
    result = bulk_import(store, rows)
    assert result.imported == 1
    [batch] = list_batches(store)
    assert batch.quantity == 30


@pytest.mark.parametrize("field, value", [("unit_price", "sNaN"), ("unit_price", "NaN"), ("quantity", "inf")])
def test_non_finite_row_is_skipped(store, field, value):
    bad = {"name": "Broken", "category": "Indigenous Trees", "quantity": 10, "unit_price": 45, field: value}
    good = {"name": "Waterberry", "category": "Indigenous Trees", "quantity": 5, "unit_price": 45}
    result = bulk_import(store, [bad, good])
    assert (result.imported, result.failed) == (1, 1)
    assert result.errors[0].startswith("Broken:")


def test_csv_infinite_price_leaves_report_working(store):
    rows = read_import_csv(io.StringIO(
        "name,category,quantity,price\n"
        "Meru Oak,Indigenous Trees,10,inf\n"
        "Yellowwood,Indigenous Trees,10,45\n"
    ))
    result = bulk_import(store, rows)
    assert (result.imported, result.failed) == (1, 1)
    assert [r.name for r in load_profitability_report(store)] == ["Yellowwood"]
