from decimal import Decimal

import pytest

from core.errors import BackendUnavailable
from core.schema import COLLECTIONS
from core.services.demo_data import demo_records, load_demo_data, wipe_all
from core.services.inventory import get_batch_by_sku
from core.services.reports import load_profitability_report
from core.store import DemoStore

from tests.conftest import new_batch


def test_load_demo_data_through_services(store):
    new_batch(store, name="Leftover")
    load_demo_data(store)

    fixture = demo_records()
    for collection in COLLECTIONS:
        assert len(store.query(collection)) == len(fixture[collection]), collection

    olive = get_batch_by_sku(store, "IND001")
    assert olive.quantity == 45
    assert olive.initial_quantity == 50
    assert olive.cost_per_unit == Decimal("490")

    honey = get_batch_by_sku(store, "HON001")
    assert honey.cost_per_unit == Decimal("500")

    assert get_batch_by_sku(store, "CON003").quantity == 8


def test_fixture_matches_loaded_data(store):
    load_demo_data(store)
    live = {r.sku: r for r in load_profitability_report(store)}
    demo = {r.sku: r for r in load_profitability_report(DemoStore())}
    assert set(live) == set(demo)
    for sku in ("IND001", "IND003", "HON001"):
        assert live[sku].cost_per_unit == demo[sku].cost_per_unit
        assert live[sku].revenue_generated == demo[sku].revenue_generated


def test_wipe_all(store):
    load_demo_data(store)
    wipe_all(store)
    for collection in COLLECTIONS:
        assert store.query(collection) == []


def test_demo_store_cannot_be_wiped():
    with pytest.raises(BackendUnavailable):
        wipe_all(DemoStore())
