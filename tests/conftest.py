from __future__ import annotations

import pytest

from core.models import ItemType
from core.services.inventory import InventoryForm, add_batch
from core.store import SqliteStore


@pytest.fixture
def make_store():
    opened = []

    def _make(cls=SqliteStore):
        s = cls.open(":memory:")
        opened.append(s)
        return s

    yield _make
    for s in opened:
        s.conn.close()


@pytest.fixture
def store(make_store):
    return make_store()


def new_batch(store, name="Nile Tulip", quantity=100, price=45, batch_cost=2500, item_type=ItemType.PLANT, **kw):
    form = InventoryForm.parse(
        name=name,
        category=kw.pop("category", "Indigenous Trees"),
        quantity=quantity,
        unit_price=price,
        batch_cost=batch_cost,
        item_type=item_type,
        **kw,
    )
    return add_batch(store, form)
