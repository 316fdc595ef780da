from __future__ import annotations

from datetime import datetime, date, timezone
from decimal import Decimal, InvalidOperation
from typing import Any, Optional


def iso_today() -> str:
    return date.today().isoformat()


def iso_now() -> str:
    # Use UTC ISO timestamps for consistency.
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat()


def to_decimal(value: Any, default: Optional[Decimal] = None) -> Decimal:
    """
    Convert a form/DB value to Decimal.

    Floats go through ``str`` so that 45.0 becomes Decimal("45.0") rather than
    its binary expansion. Empty strings and None map to ``default`` (or raise).
    """
    if isinstance(value, Decimal):
        return _finite(value, value)
    if value is None or (isinstance(value, str) and not value.strip()):
        if default is None:
            raise ValueError("A number is required.")
        return default
    if isinstance(value, bool):
        raise ValueError("Expected a number, got a boolean.")
    try:
        if isinstance(value, float):
            d = Decimal(str(value))
        else:
            d = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValueError(f"{value!r} is not a number.")
    return _finite(d, value)


def _finite(d: Decimal, raw: Any) -> Decimal:
    if not d.is_finite():
        raise ValueError(f"{raw!r} is not a finite number.")
    return d


def to_int(value: Any, default: Optional[int] = None) -> int:
    if value is None or (isinstance(value, str) and not value.strip()):
        if default is None:
            raise ValueError("A whole number is required.")
        return default
    if isinstance(value, bool):
        raise ValueError("Expected a whole number, got a boolean.")
    d = to_decimal(value)
    if d != d.to_integral_value():
        raise ValueError(f"{value!r} is not a whole number.")
    return int(d)


def money(value: Decimal, currency: Optional[str] = None) -> str:
    s = f"{Decimal(value):,.2f}"
    return f"{currency} {s}" if currency else s


def clean_str(value: Any) -> Optional[str]:
    if value is None:
        return None
    s = str(value).strip()
    return s if s else None
