from .errors import NotFoundError, PreconditionFailed, PurchaseOrderError, ValidationError
from .totals import TAX_RATE, compute_line_total, compute_totals, format_currency
from .status_guard import (
    ALLOWED_TRANSITIONS,
    allowed_next_statuses,
    can_delete,
    can_void,
    check_transition,
    is_transition_allowed,
)
from .validator import OrderValidator
from .changes import ChangeEvent, ChangeFeed, affected_views, apply_change
from .database import Database
from .service import PurchaseOrderService

__all__ = [
    "NotFoundError", "PreconditionFailed", "PurchaseOrderError", "ValidationError",
    "TAX_RATE", "compute_line_total", "compute_totals", "format_currency",
    "ALLOWED_TRANSITIONS", "allowed_next_statuses", "can_delete", "can_void",
    "check_transition", "is_transition_allowed",
    "OrderValidator", "ChangeEvent", "ChangeFeed", "affected_views", "apply_change",
    "Database", "PurchaseOrderService",
]
