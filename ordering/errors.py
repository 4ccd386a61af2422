"""
Typed failures raised by the ordering core.

Callers (the HTTP layer, the CLI) decide how to present them; nothing in
ordering/ retries or hides one of these.
"""
from typing import Iterable

from models.result import ValidationIssue


class PurchaseOrderError(Exception):
    """Base class for every error raised by the ordering package."""


class ValidationError(PurchaseOrderError):
    """A line item or order payload breaks one of its invariants."""

    def __init__(self, issues: Iterable[ValidationIssue]):
        self.issues = list(issues)
        super().__init__("; ".join(i.message for i in self.issues) or "Invalid input")


class PreconditionFailed(PurchaseOrderError):
    """The requested operation is not legal in the record's current state."""


class NotFoundError(PurchaseOrderError):
    """A referenced supplier, order, contact or line item does not exist."""
