"""
Purchase order lifecycle rules.

  draft ──► pending ──► approved ──► delivered
                 │
                 └────► cancelled

Every status change goes through check_transition() before anything is
written.  Removal follows a separate pair of rules:

  delete  only a draft may be deleted (permanent removal)
  void    any other order is retired to 'voided' instead, keeping its history

Line items and the supplier may only be changed while an order is still a
draft or pending approval.
"""
import logging

from models.result import ValidationIssue
from .errors import PreconditionFailed, ValidationError

logger = logging.getLogger(__name__)

STATUS_DRAFT     = "draft"
STATUS_PENDING   = "pending"
STATUS_APPROVED  = "approved"
STATUS_DELIVERED = "delivered"
STATUS_CANCELLED = "cancelled"
STATUS_VOIDED    = "voided"
ALL_STATUSES = (
    STATUS_DRAFT, STATUS_PENDING, STATUS_APPROVED,
    STATUS_DELIVERED, STATUS_CANCELLED, STATUS_VOIDED,
)

TERMINAL_STATUSES = frozenset({STATUS_DELIVERED, STATUS_CANCELLED, STATUS_VOIDED})
EDITABLE_STATUSES = frozenset({STATUS_DRAFT, STATUS_PENDING})

# Seen in older schema variants; their meaning relative to the statuses above
# was never pinned down, so they are refused rather than mapped.
DEPRECATED_STATUSES = frozenset({"sent", "received", "completed"})

ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    STATUS_DRAFT:     frozenset({STATUS_DRAFT, STATUS_PENDING}),
    STATUS_PENDING:   frozenset({STATUS_PENDING, STATUS_APPROVED, STATUS_CANCELLED}),
    STATUS_APPROVED:  frozenset({STATUS_APPROVED, STATUS_DELIVERED}),
    STATUS_DELIVERED: frozenset({STATUS_DELIVERED}),
    STATUS_CANCELLED: frozenset({STATUS_CANCELLED}),
    STATUS_VOIDED:    frozenset({STATUS_VOIDED}),
}

DELETE_REJECTED_MESSAGE = (
    "Only draft purchase orders can be deleted. Use void instead for non-draft orders."
)
VOID_DRAFT_MESSAGE = "Draft purchase orders cannot be voided. Delete the draft instead."
VOID_REPEAT_MESSAGE = "Purchase order is already voided."


def require_known_status(status: str, field: str = "status") -> str:
    """Return *status* unchanged, or raise ValidationError for anything unrecognised."""
    if status in ALL_STATUSES:
        return status
    if status in DEPRECATED_STATUSES:
        raise ValidationError([ValidationIssue(
            code="deprecated_status",
            message=(
                f"Status '{status}' is a deprecated legacy status and is not accepted. "
                f"Use one of: {', '.join(ALL_STATUSES)}"
            ),
            field=field,
            value=str(status),
        )])
    raise ValidationError([ValidationIssue(
        code="invalid_status",
        message=f"Unknown purchase order status {status!r}",
        field=field,
        value=str(status),
    )])


def allowed_next_statuses(current: str) -> list[str]:
    """Statuses an order in *current* may move to, in lifecycle order."""
    allowed = ALLOWED_TRANSITIONS.get(current, frozenset())
    return [s for s in ALL_STATUSES if s in allowed]


def is_transition_allowed(current: str, requested: str) -> bool:
    return requested in ALLOWED_TRANSITIONS.get(current, frozenset())


def check_transition(current: str, requested: str) -> None:
    """Raise PreconditionFailed unless current → requested is in the lifecycle table."""
    require_known_status(current, field="current_status")
    require_known_status(requested)
    if is_transition_allowed(current, requested):
        return

    logger.debug("Rejected status transition %s → %s", current, requested)
    if requested == STATUS_VOIDED:
        raise PreconditionFailed(
            f"Cannot change status from '{current}' to 'voided'. Use void instead."
        )
    allowed = ", ".join(allowed_next_statuses(current))
    raise PreconditionFailed(
        f"Cannot change status from '{current}' to '{requested}'. "
        f"Allowed: {allowed}"
    )


def can_delete(status: str) -> bool:
    return status == STATUS_DRAFT


def ensure_deletable(status: str) -> None:
    if not can_delete(status):
        raise PreconditionFailed(DELETE_REJECTED_MESSAGE)


def can_void(status: str) -> bool:
    return status in ALL_STATUSES and status not in (STATUS_DRAFT, STATUS_VOIDED)


def ensure_voidable(status: str) -> None:
    if status == STATUS_DRAFT:
        raise PreconditionFailed(VOID_DRAFT_MESSAGE)
    if status == STATUS_VOIDED:
        raise PreconditionFailed(VOID_REPEAT_MESSAGE)
    require_known_status(status)


def can_edit_line_items(status: str) -> bool:
    return status in EDITABLE_STATUSES


def ensure_line_items_editable(status: str) -> None:
    if not can_edit_line_items(status):
        raise PreconditionFailed(
            f"Line items and supplier of a '{status}' purchase order can no longer be changed"
        )
