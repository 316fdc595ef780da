"""Boundary conversion for raw widget values. Everything raises ValidationError."""
from __future__ import annotations

from decimal import Decimal
from typing import Any, Optional

from core.errors import ValidationError
from core.utils import clean_str, to_decimal, to_int


def require_text(value: Any, label: str) -> str:
    s = clean_str(value)
    if not s:
        raise ValidationError(f"{label} is required.")
    return s


def parse_number(value: Any, label: str, *, default: Optional[Decimal] = None) -> Decimal:
    try:
        return to_decimal(value, default)
    except ValueError:
        raise ValidationError(f"{label} must be a number.")


def parse_whole(value: Any, label: str, *, default: Optional[int] = None) -> int:
    try:
        return to_int(value, default)
    except ValueError:
        raise ValidationError(f"{label} must be a whole number.")
