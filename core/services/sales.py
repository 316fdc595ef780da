from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from enum import Enum
from typing import Any, Iterable, Optional

import pandas as pd

from core.errors import (
    BackendUnavailable,
    CustomerCreationFailed,
    InsufficientStock,
    NotFound,
    PartialFailure,
    ValidationError,
)
from core.forms import parse_whole
from core.models import CustomerRecord, InventoryBatch, SaleRecord
from core.services.customers import CustomerForm, create_customer
from core.services.inventory import get_batch
from core.utils import clean_str, iso_today

logger = logging.getLogger(__name__)


class SaleStep(str, Enum):
    VALIDATING = "validating"
    CUSTOMER = "customer"
    SALE_INSERT = "sale_insert"
    INVENTORY_DECREMENT = "inventory_decrement"
    DONE = "done"


@dataclass
class SaleResult:
    sale: SaleRecord
    batch_sku: str
    remaining_quantity: int
    customer: Optional[CustomerRecord] = None


def sale_total(quantity: int, unit_price: Decimal) -> Decimal:
    return Decimal(int(quantity)) * Decimal(unit_price)


def record_sale(
    store,
    *,
    batch_id: Any,
    quantity: Any,
    customer_id: Optional[Any] = None,
    new_customer: Optional[CustomerForm] = None,
    sale_date: Optional[str] = None,
) -> SaleResult:
    """
    Validate -> (create customer) -> insert sale -> decrement stock.

    There is no rollback between steps. A failure after something has been
    written raises PartialFailure naming the failed step and carrying the row
    left behind; failures before any write raise the plain error.
    """
    step = SaleStep.VALIDATING
    qty = parse_whole(quantity, "Quantity")
    if qty < 1:
        raise ValidationError("Quantity must be at least 1.")
    day = clean_str(sale_date) or iso_today()

    batch: InventoryBatch = get_batch(store, batch_id)
    if qty > batch.quantity:
        raise InsufficientStock(qty, batch.quantity, batch.sku)

    completed: list[SaleStep] = [step]
    customer: Optional[CustomerRecord] = None

    if new_customer is not None:
        step = SaleStep.CUSTOMER
        try:
            customer = create_customer(store, new_customer)
        except (BackendUnavailable, ValidationError) as e:
            logger.error("Customer creation failed, sale of %s aborted: %s", batch.sku, e)
            raise CustomerCreationFailed(f"Could not create customer {new_customer.name!r}; no sale was recorded. {e}") from e
        customer_id = customer.id
        completed.append(step)
    elif customer_id is not None and store.get("customers", customer_id) is None:
        raise NotFound("Customer", customer_id)

    step = SaleStep.SALE_INSERT
    sale = SaleRecord(
        inventory_batch_id=batch.id,
        customer_id=customer_id,
        quantity=qty,
        total_amount=sale_total(qty, batch.unit_price),
        sale_date=day,
    )
    try:
        row = store.insert("sales", sale.to_row())
    except (BackendUnavailable, ValidationError) as e:
        logger.error("Sale insert failed for %s: %s", batch.sku, e)
        if customer is None:
            raise
        raise PartialFailure(
            step,
            f"Customer {customer.name!r} was created, but the sale was not recorded: {e}",
            completed=completed,
            record=customer,
            cause=e,
        ) from e
    sale = SaleRecord.from_row(row)
    completed.append(step)

    step = SaleStep.INVENTORY_DECREMENT
    try:
        decremented = store.decrement("inventory", batch.id, "quantity", qty)
        cause: Optional[Exception] = None
    except (BackendUnavailable, ValidationError) as e:
        decremented, cause = False, e
    if not decremented:
        reason = cause or "stock changed since the sale form was loaded"
        logger.error("Sale %s recorded but stock of %s not decremented: %s", sale.id, batch.sku, reason)
        raise PartialFailure(
            step,
            f"Sale #{sale.id} was recorded, but the inventory of {batch.sku} was not updated ({reason}). "
            "Adjust the stock manually.",
            completed=completed,
            record=sale,
            cause=cause,
        )

    logger.info("Sale %s: %d x %s = %s", sale.id, qty, batch.sku, sale.total_amount)
    return SaleResult(sale=sale, batch_sku=batch.sku, remaining_quantity=batch.quantity - qty, customer=customer)


def list_sales(store, *, batch_id: Optional[Any] = None) -> list[SaleRecord]:
    filters = {"inventory_id": batch_id} if batch_id is not None else None
    return [SaleRecord.from_row(r) for r in store.query("sales", filters, order_by=["-sale_date", "-id"])]


def sales_frame(
    sales: Iterable[SaleRecord],
    batches: Iterable[InventoryBatch],
    customers: Iterable[CustomerRecord] = (),
) -> pd.DataFrame:
    by_id = {b.id: b for b in batches}
    names = {c.id: c.name for c in customers}
    rows = []
    for s in sales:
        b = by_id.get(s.inventory_batch_id)
        rows.append(
            {
                "id": s.id,
                "sale_date": s.sale_date,
                "sku": b.sku if b else None,
                "item": b.name if b else "(deleted batch)",
                "quantity": s.quantity,
                "total_amount": round(float(s.total_amount), 2),
                "customer": names.get(s.customer_id, "Walk-in" if s.customer_id is None else None),
            }
        )
    return pd.DataFrame(rows)
