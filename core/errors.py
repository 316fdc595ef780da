"""
Error kinds surfaced to the user as notices.

Pages catch ``NurseryError`` (and plain ``Exception`` as a last resort) around
every button handler; nothing here is meant to escape to Streamlit uncaught.
"""
from __future__ import annotations

from typing import Any, Iterable, Optional


class NurseryError(Exception):
    """Base class for every failure a screen knows how to report."""


class ValidationError(NurseryError, ValueError):
    """A required field is missing or out of range. Raised before any I/O."""


class NotFound(NurseryError):
    def __init__(self, kind: str, key: Any):
        self.kind = kind
        self.key = key
        super().__init__(f"{kind} {key!r} not found.")


class InsufficientStock(NurseryError):
    def __init__(self, requested: int, available: int, sku: Optional[str] = None):
        self.requested = int(requested)
        self.available = int(available)
        self.sku = sku
        label = f" for {sku}" if sku else ""
        super().__init__(
            f"Insufficient stock{label}: requested {self.requested}, only {self.available} available."
        )


class DuplicateKey(NurseryError):
    def __init__(self, collection: str, detail: str = ""):
        self.collection = collection
        super().__init__(f"Duplicate key in {collection}. {detail}".strip())


class BackendUnavailable(NurseryError):
    """The record store cannot be reached (or is the read-only demo store)."""


class CustomerCreationFailed(NurseryError):
    pass


class PartialFailure(NurseryError):
    """
    A multi-step operation finished some steps and failed a later one.

    ``record`` is whatever was left persisted (e.g. the sale row when the stock
    decrement failed) so the caller can tell the user what state remains.
    """

    def __init__(
        self,
        step: Any,
        message: str,
        *,
        completed: Iterable[Any] = (),
        record: Any = None,
        cause: Optional[BaseException] = None,
    ):
        self.step = step
        self.completed = list(completed)
        self.record = record
        self.cause = cause
        super().__init__(message)
