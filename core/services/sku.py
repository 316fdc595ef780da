from __future__ import annotations

import logging
import random
import time
from typing import Callable, Iterable, Optional

from core.models import ItemType

logger = logging.getLogger(__name__)

FILLER = "X"
SUFFIX_MIN = 1000
SUFFIX_MAX = 9999
MAX_RETRIES = 10

CATEGORY_TAGS = {
    ItemType.CONSUMABLE: "CON",
    ItemType.HONEY: "HON",
}


def sku_initials(name: str) -> str:
    """
    First 3 characters of the name, uppercased, non-letters -> 'X'.
    "Nile Tulip" -> "NIL", "4x4 pots" -> "XXX", "Ab" -> "ABX"
    """
    head = str(name or "").strip()[:3].upper()
    letters = "".join(c if "A" <= c <= "Z" else FILLER for c in head)
    return letters.ljust(3, FILLER)


def category_tag(item_type: ItemType) -> str:
    return CATEGORY_TAGS.get(ItemType.parse(item_type), "")


def sku_prefix(name: str, item_type: ItemType = ItemType.PLANT) -> str:
    return category_tag(item_type) + sku_initials(name)


def generate_sku(
    name: str,
    existing: Iterable[str],
    *,
    item_type: ItemType = ItemType.PLANT,
    rng: Optional[random.Random] = None,
    max_retries: int = MAX_RETRIES,
    clock: Optional[Callable[[], float]] = None,
) -> str:
    """
    prefix + random 4-digit suffix, regenerated on collision.

    After ``max_retries`` collisions fall back to prefix + current epoch millis,
    bumped until it is not in ``existing`` so the loop always terminates.
    """
    taken = existing if isinstance(existing, (set, frozenset)) else set(existing)
    rng = rng or random
    clock = clock or time.time
    prefix = sku_prefix(name, item_type)

    for _ in range(max(1, int(max_retries))):
        candidate = f"{prefix}{rng.randint(SUFFIX_MIN, SUFFIX_MAX)}"
        if candidate not in taken:
            return candidate

    millis = int(clock() * 1000)
    candidate = f"{prefix}{millis}"
    while candidate in taken:
        millis += 1
        candidate = f"{prefix}{millis}"
    logger.info("SKU suffixes exhausted for %s after %d tries, using %s", prefix, max_retries, candidate)
    return candidate


def existing_skus(store) -> set[str]:
    return {str(r["sku"]) for r in store.query("inventory") if r.get("sku")}
