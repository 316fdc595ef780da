from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Iterable, Optional
from urllib.parse import quote

import pandas as pd

from core.errors import ValidationError
from core.forms import require_text
from core.models import ZERO, CustomerRecord, SaleRecord
from core.utils import clean_str

logger = logging.getLogger(__name__)

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


@dataclass(frozen=True)
class CustomerForm:
    name: str
    contact: str
    email: Optional[str] = None

    @classmethod
    def parse(cls, *, name: Any, contact: Any, email: Any = None) -> "CustomerForm":
        name_s = require_text(name, "Customer name")
        contact_s = require_text(contact, "Contact")
        if len(name_s) > 255:
            raise ValidationError("Customer name must be 255 characters or fewer.")
        if len(contact_s) > 100:
            raise ValidationError("Contact must be 100 characters or fewer.")
        email_s = clean_str(email)
        if email_s is not None and not _EMAIL_RE.match(email_s):
            raise ValidationError("Invalid email format.")
        return cls(name=name_s, contact=contact_s, email=email_s)


def create_customer(store, form: CustomerForm) -> CustomerRecord:
    row = store.insert("customers", CustomerRecord(name=form.name, contact=form.contact, email=form.email).to_row())
    logger.info("Added customer %s (%s)", row["id"], form.name)
    return CustomerRecord.from_row(row)


def list_customers(store) -> list[CustomerRecord]:
    return [CustomerRecord.from_row(r) for r in store.query("customers", order_by="name")]


def customer_purchase_summary(customers: Iterable[CustomerRecord], sales: Iterable[SaleRecord]) -> pd.DataFrame:
    totals: dict[Any, tuple[int, Decimal, str]] = {}
    for s in sales:
        if s.customer_id is None:
            continue
        n, amount, last = totals.get(s.customer_id, (0, ZERO, ""))
        totals[s.customer_id] = (n + 1, amount + s.total_amount, max(last, s.sale_date))

    rows = []
    for c in customers:
        n, amount, last = totals.get(c.id, (0, ZERO, ""))
        rows.append(
            {
                "id": c.id,
                "name": c.name,
                "contact": c.contact,
                "email": c.email,
                "purchases": n,
                "total_spent": round(float(amount), 2),
                "last_purchase": last or None,
            }
        )
    return pd.DataFrame(rows)


# -------------------------
# Outbound messaging
# -------------------------

def normalize_phone(contact: str, country_code: str = "254") -> str:
    """'0712 345 678' -> '254712345678'. Non-digits are dropped."""
    digits = re.sub(r"\D", "", str(contact or ""))
    if not digits:
        raise ValidationError("Contact has no phone number.")
    if digits.startswith("0"):
        digits = country_code + digits[1:]
    return digits


def compose_followup_message(customer: CustomerRecord, *, business: str = "our nursery", note: str = "") -> str:
    lines = [f"Hello {customer.name},", f"Thank you for buying from {business}."]
    if note.strip():
        lines.append(note.strip())
    return "\n".join(lines)


def whatsapp_link(contact: str, message: str) -> str:
    return f"https://wa.me/{normalize_phone(contact)}?text={quote(message)}"
