from pydantic import BaseModel
from typing import Any, Optional, Literal


IssueCode = Literal[
    # Line items
    "missing_description",
    "invalid_quantity",
    "negative_quantity",
    "quantity_too_large",
    "invalid_unit_price",
    "negative_unit_price",
    "line_total_mismatch",
    "invalid_heading_flag",
    # Orders
    "missing_line_items",
    "invalid_date",
    "delivery_before_order",
    "invalid_status",
    "deprecated_status",
    "unknown_field",
    # Generic model validation
    "invalid_value",
]


class ValidationIssue(BaseModel):
    """A single reason a line item or order payload was rejected."""
    code: IssueCode
    message: str                            # Human-readable explanation
    field: Optional[str] = None             # Which field is affected
    line_index: Optional[int] = None        # 0-based position for line item issues
    value: Optional[str] = None             # The offending value, as text


class ActivityEntry(BaseModel):
    """One row of the activity log."""
    id: int
    entity_type: str                        # purchase_order | supplier | supplier_contact
    entity_id: Optional[str] = None
    action: str                             # created | updated | status_changed | voided | deleted
    description: str
    actor: str = "system"
    old_values: Optional[Any] = None
    new_values: Optional[Any] = None
    created_at: str
