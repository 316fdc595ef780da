from __future__ import annotations

import logging
from typing import Any

from core.errors import BackendUnavailable
from core.models import ItemType
from core.schema import COLLECTIONS
from core.services.customers import CustomerForm, create_customer
from core.services.inventory import ApiaryInvestment, InventoryForm, add_batch, add_honey_product
from core.services.sales import record_sale
from core.services.tasks import TaskForm, UsageForm, log_task

logger = logging.getLogger(__name__)

_STAMP = "2024-01-01T00:00:00"


def _item(id_, sku, name, category, quantity, initial, price, batch_cost, cpu, item_type="Plant", **extra):
    row = {
        "id": id_,
        "sku": sku,
        "name": name,
        "category": category,
        "quantity": quantity,
        "initial_quantity": initial,
        "unit_price": price,
        "batch_cost": batch_cost,
        "cost_per_unit": cpu,
        "item_type": item_type,
        "unit": "Pieces",
        "ready_for_sale": 1,
        "scientific_name": None,
        "source": None,
        "description": None,
        "created_at": _STAMP,
        "updated_at": _STAMP,
    }
    row.update(extra)
    return row


def demo_records() -> dict[str, list[dict[str, Any]]]:
    """Static dataset served by the read-only demo store."""
    inventory = [
        _item(1, "IND001", "African Olive", "Indigenous Trees", 45, 50, 1200, 22500, 490.0,
              scientific_name="Olea europaea subsp. cuspidata", source="Local nursery"),
        _item(2, "ORN002", "Moringa Seedling", "Ornamentals", 120, 130, 350, 24000, 184.62,
              scientific_name="Moringa oleifera", source="Own propagation"),
        _item(3, "IND003", "Baobab Tree", "Indigenous Trees", 15, 15, 2500, 30000, 2000.0,
              scientific_name="Adansonia digitata", source="Seeds from Kilifi region"),
        _item(4, "CON001", "Organic Fertilizer", "Fertilizers", 23, 25, 850, 0, 0.0,
              item_type="Consumable", unit="Bags", ready_for_sale=0, source="AgriSupplies Ltd"),
        _item(5, "CON002", "Plastic Pots (Medium)", "Pots", 200, 200, 45, 0, 0.0,
              item_type="Consumable", ready_for_sale=0, source="Garden Supplies Kenya"),
        _item(6, "CON003", "Potting Soil Mix", "Soil", 8, 15, 550, 0, 0.0,
              item_type="Consumable", unit="Bags", ready_for_sale=0, source="Local Supplier"),
        _item(7, "HON001", "Pure Acacia Honey", "Organic Honey", 40, 40, 800, 0, 500.0,
              item_type="Honey", unit="kg", source="Farm apiary"),
    ]
    customers = [
        {"id": 1, "name": "John Doe", "contact": "+254712345678", "email": "john@example.com", "created_at": _STAMP},
        {"id": 2, "name": "Jane Smith", "contact": "+254723456789", "email": "jane@example.com", "created_at": _STAMP},
    ]
    tasks = [
        {
            "id": 1, "task_name": "Fertilizing", "task_type": "Fertilizing",
            "description": "Top dressing for the olive batch", "task_date": "2024-05-20", "due_date": None,
            "status": "Completed", "assigned_to": "Peter", "batch_sku": "IND001",
            "labor_hours": 2.0, "labor_rate": 150.0, "labor_cost": 300.0,
            "consumables_cost": 1700.0, "total_cost": 2000.0, "created_at": _STAMP,
        },
        {
            "id": 2, "task_name": "Apiary Setup & Hive Investment", "task_type": "Infrastructure",
            "description": "Initial setup: 4 hives at 3500 each. Construction: 4000. Equipment: 2000",
            "task_date": "2024-03-01", "due_date": None, "status": "Completed", "assigned_to": None,
            "batch_sku": "HON001", "labor_hours": 0.0, "labor_rate": 0.0, "labor_cost": 0.0,
            "consumables_cost": 0.0, "total_cost": 20000.0, "created_at": _STAMP,
        },
    ]
    task_consumables = [
        {"id": 1, "task_id": 1, "consumable_sku": "CON001", "consumable_name": "Organic Fertilizer",
         "quantity_used": 2.0, "unit": "Bags", "unit_cost": 850.0},
    ]
    sales = [
        {"id": 1, "inventory_id": 1, "customer_id": 1, "quantity": 5, "total_amount": 6000.0,
         "sale_date": "2024-06-08", "created_at": _STAMP},
        {"id": 2, "inventory_id": 2, "customer_id": 2, "quantity": 10, "total_amount": 3500.0,
         "sale_date": "2024-06-07", "created_at": _STAMP},
    ]
    return {
        "inventory": inventory,
        "customers": customers,
        "tasks": tasks,
        "task_consumables": task_consumables,
        "sales": sales,
    }


def wipe_all(store) -> None:
    # Keep schema, delete data (order matters for FKs).
    if store.read_only:
        raise BackendUnavailable("Demo mode: there is no stored data to clear.")
    for collection in COLLECTIONS:
        store.clear(collection)
    logger.info("All %s data cleared", store.label)


def load_demo_data(store) -> None:
    """Replace the store's contents with the demo dataset, written through the services."""
    wipe_all(store)
    data = demo_records()

    ids: dict[int, int] = {}
    honey = None
    for row in data["inventory"]:
        form = InventoryForm.parse(
            name=row["name"],
            category=row["category"],
            quantity=row["initial_quantity"],
            unit_price=row["unit_price"],
            batch_cost=row["batch_cost"],
            item_type=row["item_type"],
            unit=row["unit"],
            sku=row["sku"],
            ready_for_sale=bool(row["ready_for_sale"]),
            scientific_name=row["scientific_name"],
            source=row["source"],
        )
        if form.item_type == ItemType.HONEY:
            honey = form
            continue
        ids[row["id"]] = add_batch(store, form).id

    if honey is not None:
        add_honey_product(
            store,
            honey,
            ApiaryInvestment.parse(number_of_hives=4, cost_per_hive=3500, construction_cost=4000,
                                   equipment_cost=2000, purchase_date="2024-03-01"),
        )

    customer_ids: dict[int, int] = {}
    for c in data["customers"]:
        form = CustomerForm.parse(name=c["name"], contact=c["contact"], email=c["email"])
        customer_ids[c["id"]] = create_customer(store, form).id

    log_task(
        store,
        TaskForm.parse(
            task_name="Fertilizing",
            task_type="Fertilizing",
            description="Top dressing for the olive batch",
            task_date="2024-05-20",
            labor_hours=2,
            labor_rate=150,
            batch_sku="IND001",
            assigned_to="Peter",
            usages=[UsageForm.parse(consumable_sku="CON001", consumable_name="Organic Fertilizer",
                                    quantity_used=2, unit_cost=850, unit="Bags")],
        ),
    )

    # stock drawn down by usage outside of sales
    store.decrement("inventory", ids[4], "quantity", 2)
    store.decrement("inventory", ids[6], "quantity", 7)

    for s in data["sales"]:
        record_sale(
            store,
            batch_id=ids[s["inventory_id"]],
            quantity=s["quantity"],
            customer_id=customer_ids[s["customer_id"]],
            sale_date=s["sale_date"],
        )
    logger.info("Demo data loaded into %s store", store.label)
