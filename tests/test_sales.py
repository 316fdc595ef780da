from decimal import Decimal

import pytest

from core.errors import (
    BackendUnavailable,
    CustomerCreationFailed,
    InsufficientStock,
    NotFound,
    PartialFailure,
    ValidationError,
)
from core.models import SaleRecord
from core.services.customers import CustomerForm
from core.services.inventory import get_batch
from core.services.sales import SaleStep, list_sales, record_sale, sales_frame
from core.store import DemoStore, SqliteStore

from tests.conftest import new_batch


class StaleStockStore(SqliteStore):
    """Stock changed under us between the read and the decrement."""

    def decrement(self, collection, record_id, field, amount):
        return False


class NoCustomerStore(SqliteStore):
    def insert(self, collection, record):
        if collection == "customers":
            raise BackendUnavailable("database is locked")
        return super().insert(collection, record)


class NoSaleStore(SqliteStore):
    def insert(self, collection, record):
        if collection == "sales":
            raise BackendUnavailable("disk I/O error")
        return super().insert(collection, record)


def test_sale_decrements_stock(store):
    batch = new_batch(store, quantity=100, price=45)
    result = record_sale(store, batch_id=batch.id, quantity=10, sale_date="2024-06-08")

    assert result.sale.total_amount == Decimal("450")
    assert result.sale.customer_id is None
    assert result.remaining_quantity == 90
    assert get_batch(store, batch.id).quantity == 90
    assert [s.sale_date for s in list_sales(store)] == ["2024-06-08"]


def test_selling_everything_is_allowed(store):
    batch = new_batch(store, quantity=5)
    record_sale(store, batch_id=batch.id, quantity=5)
    assert get_batch(store, batch.id).quantity == 0


@pytest.mark.parametrize("quantity", [0, -2, "two", "inf", "NaN"])
def test_invalid_quantity_writes_nothing(store, quantity):
    batch = new_batch(store, quantity=10)
    with pytest.raises(ValidationError):
        record_sale(store, batch_id=batch.id, quantity=quantity)
    assert store.query("sales") == []
    assert get_batch(store, batch.id).quantity == 10


def test_oversell_writes_nothing(store):
    batch = new_batch(store, quantity=10)
    with pytest.raises(InsufficientStock) as info:
        record_sale(store, batch_id=batch.id, quantity=11, new_customer=CustomerForm.parse(name="Ann", contact="0712"))
    assert info.value.requested == 11
    assert info.value.available == 10
    assert store.query("sales") == []
    assert store.query("customers") == []
    assert get_batch(store, batch.id).quantity == 10


def test_unknown_batch_and_customer(store):
    with pytest.raises(NotFound):
        record_sale(store, batch_id=999, quantity=1)
    batch = new_batch(store)
    with pytest.raises(NotFound):
        record_sale(store, batch_id=batch.id, quantity=1, customer_id=999)
    assert store.query("sales") == []


def test_new_customer_is_linked(store):
    batch = new_batch(store)
    result = record_sale(
        store, batch_id=batch.id, quantity=2,
        new_customer=CustomerForm.parse(name="John Doe", contact="+254712345678", email="john@example.com"),
    )
    assert result.customer.name == "John Doe"
    assert result.sale.customer_id == result.customer.id


def test_customer_failure_aborts_sale(make_store):
    store = make_store(NoCustomerStore)
    batch = new_batch(store)
    with pytest.raises(CustomerCreationFailed):
        record_sale(store, batch_id=batch.id, quantity=1, new_customer=CustomerForm.parse(name="Ann", contact="0712"))
    assert store.query("sales") == []
    assert get_batch(store, batch.id).quantity == 100


def test_sale_insert_failure_after_customer_is_partial(make_store):
    store = make_store(NoSaleStore)
    batch = new_batch(store)
    with pytest.raises(PartialFailure) as info:
        record_sale(store, batch_id=batch.id, quantity=1, new_customer=CustomerForm.parse(name="Ann", contact="0712"))
    assert info.value.step == SaleStep.SALE_INSERT
    assert info.value.record.name == "Ann"
    assert len(store.query("customers")) == 1


def test_sale_insert_failure_without_customer_is_plain(make_store):
    store = make_store(NoSaleStore)
    batch = new_batch(store)
    with pytest.raises(BackendUnavailable):
        record_sale(store, batch_id=batch.id, quantity=1)


def test_decrement_failure_is_reported_with_sale(make_store):
    store = make_store(StaleStockStore)
    batch = new_batch(store, quantity=10)
    with pytest.raises(PartialFailure) as info:
        record_sale(store, batch_id=batch.id, quantity=3)

    err = info.value
    assert err.step == SaleStep.INVENTORY_DECREMENT
    assert isinstance(err.record, SaleRecord)
    assert SaleStep.SALE_INSERT in err.completed
    assert len(store.query("sales")) == 1
    assert get_batch(store, batch.id).quantity == 10


def test_demo_store_cannot_sell():
    demo = DemoStore()
    with pytest.raises(BackendUnavailable):
        record_sale(demo, batch_id=1, quantity=1)


def test_sales_frame(store):
    batch = new_batch(store, name="Baobab", price=2500)
    record_sale(store, batch_id=batch.id, quantity=2)
    df = sales_frame(list_sales(store), [batch])
    assert df.loc[0, "item"] == "Baobab"
    assert df.loc[0, "total_amount"] == 5000.0
    assert df.loc[0, "customer"] == "Walk-in"


def test_half_the_batch(store):
    batch = new_batch(store, quantity=10, price=45)
    result = record_sale(store, batch_id=batch.id, quantity=5)
    assert result.sale.total_amount == Decimal("225")
    assert get_batch(store, batch.id).quantity == 5

    with pytest.raises(InsufficientStock):
        record_sale(store, batch_id=batch.id, quantity=6)
    assert get_batch(store, batch.id).quantity == 5
