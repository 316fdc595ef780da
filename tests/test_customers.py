from decimal import Decimal

import pytest

from core.errors import ValidationError
from core.models import CustomerRecord, SaleRecord
from core.services.customers import (
    CustomerForm,
    compose_followup_message,
    create_customer,
    customer_purchase_summary,
    list_customers,
    normalize_phone,
    whatsapp_link,
)


def test_form_validation():
    with pytest.raises(ValidationError):
        CustomerForm.parse(name="", contact="0712345678")
    with pytest.raises(ValidationError):
        CustomerForm.parse(name="Ann", contact=" ")
    with pytest.raises(ValidationError):
        CustomerForm.parse(name="Ann", contact="0712345678", email="not-an-email")
    form = CustomerForm.parse(name=" Ann ", contact="0712345678", email="")
    assert form.name == "Ann"
    assert form.email is None


def test_create_and_list(store):
    create_customer(store, CustomerForm.parse(name="Jane Smith", contact="+254723456789"))
    create_customer(store, CustomerForm.parse(name="John Doe", contact="+254712345678"))
    assert [c.name for c in list_customers(store)] == ["Jane Smith", "John Doe"]


@pytest.mark.parametrize(
    "raw, expected",
    [("0712 345 678", "254712345678"), ("+254712345678", "254712345678"), ("254-712-345-678", "254712345678")],
)
def test_normalize_phone(raw, expected):
    assert normalize_phone(raw) == expected


def test_normalize_phone_needs_digits():
    with pytest.raises(ValidationError):
        normalize_phone("n/a")


def test_whatsapp_link():
    customer = CustomerRecord(name="Ann", contact="0712345678")
    link = whatsapp_link(customer.contact, compose_followup_message(customer))
    assert link.startswith("https://wa.me/254712345678?text=")
    assert "Hello%20Ann" in link


def test_purchase_summary():
    customers = [CustomerRecord(id=1, name="Ann", contact="1"), CustomerRecord(id=2, name="Bob", contact="2")]
    sales = [
        SaleRecord(inventory_batch_id=1, customer_id=1, quantity=1, total_amount=Decimal("100"), sale_date="2024-06-01"),
        SaleRecord(inventory_batch_id=1, customer_id=1, quantity=2, total_amount=Decimal("200"), sale_date="2024-06-03"),
        SaleRecord(inventory_batch_id=1, customer_id=None, quantity=1, total_amount=Decimal("50"), sale_date="2024-06-04"),
    ]
    df = customer_purchase_summary(customers, sales).set_index("name")
    assert df.loc["Ann", "purchases"] == 2
    assert df.loc["Ann", "total_spent"] == 300.0
    assert df.loc["Ann", "last_purchase"] == "2024-06-03"
    assert df.loc["Bob", "purchases"] == 0
