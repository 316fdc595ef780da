from decimal import Decimal

import pytest

from core.errors import DuplicateKey, NotFound, ValidationError
from core.models import InventoryBatch, ItemType
from core.services.inventory import (
    ApiaryInvestment,
    ConsumableStatus,
    InventoryForm,
    PlantStatus,
    add_honey_product,
    batch_groups,
    classify_consumable_status,
    classify_status,
    delete_batch,
    get_batch,
    inventory_frame,
    list_batches,
    set_ready_for_sale,
    update_batch,
)

from tests.conftest import new_batch


@pytest.mark.parametrize(
    "quantity, expected",
    [(0, PlantStatus.OUT_OF_STOCK), (1, PlantStatus.LOW_STOCK), (19, PlantStatus.LOW_STOCK), (20, PlantStatus.HEALTHY)],
)
def test_plant_status(quantity, expected):
    assert classify_status(quantity) == expected


def test_consumable_status_threshold():
    assert classify_consumable_status(0) == ConsumableStatus.OUT_OF_STOCK
    assert classify_consumable_status(9) == ConsumableStatus.LOW_STOCK
    assert classify_consumable_status(10) == ConsumableStatus.AVAILABLE


def test_form_rejects_bad_input_before_io():
    with pytest.raises(ValidationError):
        InventoryForm.parse(name=" ", category="Herbs", quantity=1, unit_price=1)
    with pytest.raises(ValidationError):
        InventoryForm.parse(name="Mint", category="Herbs", quantity="lots", unit_price=1)
    with pytest.raises(ValidationError):
        InventoryForm.parse(name="Mint", category="Herbs", quantity=-1, unit_price=1)
    with pytest.raises(ValidationError):
        InventoryForm.parse(name="Honey", category="Organic Honey", quantity=0, unit_price=800, item_type="Honey")
    with pytest.raises(ValidationError):
        InventoryForm.parse(name="Mint", category="Herbs", quantity=1, unit_price=1, item_type="Fungus")


def test_consumable_has_no_batch_cost():
    form = InventoryForm.parse(
        name="Organic Fertilizer", category="Fertilizers", quantity=25, unit_price=850,
        batch_cost=21250, item_type=ItemType.CONSUMABLE,
    )
    assert form.batch_cost == 0


def test_add_batch_generates_sku_and_cost(store):
    batch = new_batch(store)
    assert batch.sku.startswith("NIL")
    assert batch.initial_quantity == 100
    assert batch.cost_per_unit == Decimal("25")

    again = get_batch(store, batch.id)
    assert again.name == "Nile Tulip"
    assert again.unit_price == Decimal("45")
    assert again.item_type == ItemType.PLANT


def test_user_sku_is_uppercased_and_never_replaced(store):
    batch = new_batch(store, sku="ind001")
    assert batch.sku == "IND001"
    with pytest.raises(DuplicateKey):
        new_batch(store, name="Other", sku="IND001")


def test_row_round_trip():
    batch = InventoryBatch(
        sku="IND001", name="African Olive", category="Indigenous Trees", quantity=45,
        unit_price=Decimal("1200"), batch_cost=Decimal("22500"), initial_quantity=50, ready_for_sale=True,
    )
    row = batch.to_row()
    assert row["ready_for_sale"] == 1
    back = InventoryBatch.from_row({**row, "id": 3})
    assert back.unit_price == batch.unit_price
    assert back.ready_for_sale is True
    assert back.costing_quantity == 50


def test_update_recomputes_cost(store):
    batch = new_batch(store)
    updated = update_batch(store, batch.id, {"batch_cost": 5000})
    assert updated.cost_per_unit == Decimal("50")


def test_selling_down_keeps_cost_basis(store):
    batch = new_batch(store)
    updated = update_batch(store, batch.id, {"quantity": 40})
    assert updated.initial_quantity == 100
    assert updated.cost_per_unit == Decimal("25")


def test_restock_raises_original_quantity(store):
    batch = new_batch(store)
    updated = update_batch(store, batch.id, {"quantity": 125})
    assert updated.initial_quantity == 125
    assert updated.cost_per_unit == Decimal("20")


def test_update_rejects_unknown_and_negative(store):
    batch = new_batch(store)
    with pytest.raises(ValidationError):
        update_batch(store, batch.id, {"sku": "NEW"})
    with pytest.raises(ValidationError):
        update_batch(store, batch.id, {"unit_price": -1})
    with pytest.raises(NotFound):
        update_batch(store, 999, {"name": "x"})


def test_delete_batch(store):
    batch = new_batch(store)
    delete_batch(store, batch.id)
    with pytest.raises(NotFound):
        get_batch(store, batch.id)


def test_honey_with_apiary_investment(store):
    form = InventoryForm.parse(
        name="Pure Honey", category="Organic Honey", quantity=30, unit_price=800, item_type=ItemType.HONEY
    )
    apiary = ApiaryInvestment.parse(number_of_hives=2, cost_per_hive=1000, construction_cost=500, equipment_cost=500)
    assert apiary.total == Decimal("3000")

    batch = add_honey_product(store, form, apiary)
    assert batch.sku.startswith("HONPUR")
    assert batch.unit == "kg"
    assert batch.cost_per_unit == Decimal("100")
    tasks = store.query("tasks", {"batch_sku": batch.sku})
    assert len(tasks) == 1
    assert tasks[0]["total_cost"] == 3000


def test_list_batches_filters(store):
    new_batch(store, name="Baobab", quantity=0)
    new_batch(store, name="Moringa", quantity=10, ready_for_sale=True)
    new_batch(store, name="Pots", category="Pots", item_type=ItemType.CONSUMABLE)

    assert [b.name for b in list_batches(store)] == ["Baobab", "Moringa", "Pots"]
    assert [b.name for b in list_batches(store, item_type="Consumable")] == ["Pots"]
    assert [b.name for b in list_batches(store, exclude=[ItemType.CONSUMABLE], in_stock_only=True)] == ["Moringa"]
    assert [b.name for b in list_batches(store, ready_only=True)] == ["Moringa"]


def test_ready_for_sale_by_source(store):
    new_batch(store, name="Meru Oak", source="Future Plants List")
    new_batch(store, name="Yellowwood", source="Future Plants List")
    new_batch(store, name="Baobab")

    groups = {g.source: g for g in batch_groups(store)}
    assert groups["Future Plants List"].future_count == 2
    assert groups["Unknown Source"].count == 1

    assert set_ready_for_sale(store, "Future Plants List", True) == 2
    assert [b.name for b in list_batches(store, ready_only=True)] == ["Meru Oak", "Yellowwood"]
    assert set_ready_for_sale(store, "Unknown Source", True) == 1


def test_inventory_frame_status(store):
    new_batch(store, name="Baobab", quantity=15)
    new_batch(store, name="Soil", category="Soil", quantity=15, item_type=ItemType.CONSUMABLE)
    df = inventory_frame(list_batches(store))
    assert df.set_index("name").loc["Baobab", "status"] == "Low Stock"
    assert df.set_index("name").loc["Soil", "status"] == "Available"


def test_status_with_explicit_threshold():
    assert classify_status(0, 10) == PlantStatus.OUT_OF_STOCK
    assert classify_status(5, 10) == PlantStatus.LOW_STOCK
    assert classify_status(15, 10) == PlantStatus.HEALTHY


@pytest.mark.parametrize("price", ["inf", "-Infinity", "NaN", "sNaN", Decimal("Infinity"), float("inf")])
def test_non_finite_price_is_rejected(price):
    with pytest.raises(ValidationError):
        InventoryForm.parse(name="Mint", category="Herbs", quantity=1, unit_price=price)
