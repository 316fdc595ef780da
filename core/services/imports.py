from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import IO, Any, Iterable, Union

import pandas as pd

from core.errors import NurseryError, ValidationError
from core.models import ItemType
from core.services.inventory import InventoryForm, add_batch

logger = logging.getLogger(__name__)

CURRENT_STOCK_SOURCE = "Current Nursery Stock"
FUTURE_STOCK_SOURCE = "Future Plants List"
CURRENT_LIMIT = 9

IMPORT_COLUMNS = ["name", "scientific_name", "category", "quantity", "unit_price", "batch_cost", "description"]

# Header aliases accepted in uploaded CSVs
_ALIASES = {
    "plant_name": "name",
    "plant name": "name",
    "price": "unit_price",
    "selling price": "unit_price",
    "batch cost": "batch_cost",
    "scientific name": "scientific_name",
}


@dataclass
class ImportResult:
    imported: int = 0
    failed: int = 0
    errors: list[str] = field(default_factory=list)
    skus: list[str] = field(default_factory=list)
    current: int = 0

    @property
    def future(self) -> int:
        return self.imported - self.current


def _indigenous(name: str, scientific: str, description: str) -> dict[str, Any]:
    return {
        "name": name,
        "scientific_name": scientific,
        "category": "Indigenous Trees",
        "quantity": 100,
        "unit_price": 45,
        "batch_cost": 2500,
        "description": description,
    }


PREDEFINED_PLANTS: list[dict[str, Any]] = [
    _indigenous("Nile Tulip", "Markhamia lutea",
                "Fast-growing tree with trumpet-shaped yellow flowers; ideal for agroforestry and shade."),
    _indigenous("Waterberry", "Syzygium cordatum",
                "Water-loving tree with edible purple fruits; stabilizes riparian zones."),
    _indigenous("Wild Plum", "Syzygium guineense",
                "Dense foliage and small edible fruits; used for shade and erosion control."),
    _indigenous("African Cherry", "Prunus africana",
                "Endangered medicinal tree valued for its bark; supports highland biodiversity."),
    _indigenous("Pepper Bark Tree", "Warburgia ugandensis",
                "Drought-tolerant medicinal tree with peppery bark."),
    _indigenous("African Olive", "Olea africana",
                "Hardy tree with strong timber; excellent for dryland restoration."),
    _indigenous("Meru Oak", "Vitex keniensis",
                "Slow-growing, highly valued timber species native to Kenya's highlands."),
    _indigenous("Yellowwood", "Podocarpus latifolius",
                "Evergreen indigenous conifer for reforestation and water catchment."),
    _indigenous("Giant Bamboo", "Bambusa bambos",
                "Fast-growing grass for riverbank stabilization, fencing and construction."),
]


def read_import_csv(file: Union[str, IO]) -> list[dict[str, Any]]:
    df = pd.read_csv(file)
    df.columns = [_ALIASES.get(str(c).strip().lower(), str(c).strip().lower()) for c in df.columns]
    missing = [c for c in ("name", "category", "quantity", "unit_price") if c not in df.columns]
    if missing:
        raise ValidationError(f"CSV is missing column(s): {', '.join(missing)}")
    df = df.astype(object).where(pd.notna(df), None)
    return [{k: r.get(k) for k in IMPORT_COLUMNS} for r in df.to_dict(orient="records")]


def bulk_import(store, rows: Iterable[dict[str, Any]], *, current_limit: int = CURRENT_LIMIT) -> ImportResult:
    """
    Import plant rows one by one. A bad row is counted and skipped; the rest
    still go in. The first ``current_limit`` items in the whole inventory are
    current nursery stock (ready for sale), later ones are future plans.
    """
    result = ImportResult()
    existing_count = len(store.query("inventory"))

    for i, raw in enumerate(rows, start=1):
        label = str(raw.get("name") or f"row {i}")
        is_current = existing_count + result.imported < current_limit
        try:
            form = InventoryForm.parse(
                name=raw.get("name"),
                category=raw.get("category"),
                quantity=raw.get("quantity"),
                unit_price=raw.get("unit_price"),
                batch_cost=raw.get("batch_cost"),
                scientific_name=raw.get("scientific_name"),
                description=raw.get("description"),
                item_type=ItemType.PLANT,
                ready_for_sale=is_current,
                source=CURRENT_STOCK_SOURCE if is_current else FUTURE_STOCK_SOURCE,
            )
            batch = add_batch(store, form)
        except NurseryError as e:
            result.failed += 1
            result.errors.append(f"{label}: {e}")
            logger.warning("Bulk import: %s failed: %s", label, e)
            continue
        result.imported += 1
        result.skus.append(batch.sku)
        if is_current:
            result.current += 1

    logger.info("Bulk import finished: %d imported, %d failed", result.imported, result.failed)
    return result
