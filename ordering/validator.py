"""
Boundary validation for purchase order payloads.

Loosely-typed rows (JSON bodies, CSV rows, database dicts) are checked and
coerced into LineItem models here, before any totals are computed.

Checks:
  Line items:  description present, is_heading a boolean,
               quantity a whole number in 0..MAX_QUANTITY,
               unit price a number ≥ 0, supplied line_total matches
  Orders:      at least one line item, parseable dates, delivery ≥ order date
"""
import logging
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Optional

from pydantic import ValidationError as PydanticValidationError

from models.line_item import LineItem
from models.result import ValidationIssue
from .errors import ValidationError
from .totals import compute_line_total, round_currency, to_decimal

logger = logging.getLogger(__name__)

MAX_QUANTITY = 2**63 - 1      # Largest value an SQLite INTEGER column holds


class OrderValidator:
    """
    Turns raw line item rows into validated LineItem models.

    Usage:
        validator = OrderValidator()
        items = validator.parse_line_items(rows)          # raises ValidationError
        issues = validator.validate_order(items, order_date, delivery_date)
    """

    def parse_line_items(self, rows: Iterable[Any]) -> list[LineItem]:
        """
        Validate every row and return LineItem models with line_total filled in.

        All rows are checked before raising so the caller sees every problem
        at once.
        """
        items: list[LineItem] = []
        issues: list[ValidationIssue] = []

        for index, row in enumerate(rows):
            data = row.model_dump() if isinstance(row, LineItem) else dict(row)
            row_issues = self._check_line_item(index, data)
            if row_issues:
                issues.extend(row_issues)
                continue
            items.append(self._build_line_item(data))

        if issues:
            logger.debug("Rejected %d line item issue(s)", len(issues))
            raise ValidationError(issues)
        return items

    def validate_order(
        self,
        line_items: list[LineItem],
        order_date: Optional[str] = None,
        delivery_date: Optional[str] = None,
    ) -> list[ValidationIssue]:
        """Return order-level issues (empty list when the order may be saved)."""
        issues: list[ValidationIssue] = []

        if not line_items:
            issues.append(ValidationIssue(
                code="missing_line_items",
                message="A purchase order needs at least one line item",
                field="line_items",
            ))

        parsed_order = self._check_date(order_date, "order_date", issues)
        parsed_delivery = self._check_date(delivery_date, "delivery_date", issues)
        if parsed_order and parsed_delivery and parsed_delivery < parsed_order:
            issues.append(ValidationIssue(
                code="delivery_before_order",
                message=f"Delivery date ({delivery_date}) is before order date ({order_date})",
                field="delivery_date",
                value=delivery_date,
            ))

        return issues

    # ------------------------------------------------------------------
    # Line item checks
    # ------------------------------------------------------------------

    def _check_line_item(self, index: int, data: dict) -> list[ValidationIssue]:
        issues = []
        prefix = f"line_items[{index}]"

        description = data.get("description")
        if not isinstance(description, str) or not description.strip():
            issues.append(ValidationIssue(
                code="missing_description",
                message=f"Line {index + 1} has no description",
                field=f"{prefix}.description",
                line_index=index,
            ))

        is_heading = data.get("is_heading")
        if is_heading is not None and not isinstance(is_heading, bool):
            issues.append(ValidationIssue(
                code="invalid_heading_flag",
                message=f"Line {index + 1} is_heading must be true or false",
                field=f"{prefix}.is_heading",
                line_index=index,
                value=str(is_heading),
            ))
            return issues

        # Heading rows carry no amounts; whatever was sent is discarded.
        if is_heading:
            return issues

        quantity = data.get("quantity", 0)
        qty = _as_whole_number(quantity)
        if qty is None:
            issues.append(ValidationIssue(
                code="invalid_quantity",
                message=f"Line {index + 1} quantity must be a whole number",
                field=f"{prefix}.quantity",
                line_index=index,
                value=str(quantity),
            ))
        elif qty < 0:
            issues.append(ValidationIssue(
                code="negative_quantity",
                message=f"Line {index + 1} quantity cannot be negative",
                field=f"{prefix}.quantity",
                line_index=index,
                value=str(quantity),
            ))
        elif qty > MAX_QUANTITY:
            issues.append(ValidationIssue(
                code="quantity_too_large",
                message=f"Line {index + 1} quantity cannot exceed {MAX_QUANTITY}",
                field=f"{prefix}.quantity",
                line_index=index,
                value=str(quantity),
            ))

        unit_price = data.get("unit_price", 0)
        price = _as_decimal(unit_price)
        if price is None:
            issues.append(ValidationIssue(
                code="invalid_unit_price",
                message=f"Line {index + 1} unit price must be a number",
                field=f"{prefix}.unit_price",
                line_index=index,
                value=str(unit_price),
            ))
        elif price < 0:
            issues.append(ValidationIssue(
                code="negative_unit_price",
                message=f"Line {index + 1} unit price cannot be negative",
                field=f"{prefix}.unit_price",
                line_index=index,
                value=str(unit_price),
            ))

        supplied_total = data.get("line_total")
        if supplied_total is not None and qty is not None and price is not None:
            given = _as_decimal(supplied_total)
            expected = compute_line_total(qty, price)
            if given is None or round_currency(given) != round_currency(expected):
                issues.append(ValidationIssue(
                    code="line_total_mismatch",
                    message=(
                        f"Line {index + 1} total ({supplied_total}) does not equal "
                        f"quantity × unit price ({round_currency(expected)})"
                    ),
                    field=f"{prefix}.line_total",
                    line_index=index,
                    value=str(supplied_total),
                ))

        return issues

    def _build_line_item(self, data: dict) -> LineItem:
        is_heading = bool(data.get("is_heading"))
        quantity = 0 if is_heading else _as_whole_number(data.get("quantity", 0))
        unit_price = Decimal("0") if is_heading else _as_decimal(data.get("unit_price", 0))
        try:
            return LineItem(
                id=data.get("id"),
                description=data["description"].strip(),
                quantity=quantity,
                unit_price=unit_price,
                notes=data.get("notes") or None,
                is_heading=is_heading,
            )
        except PydanticValidationError as exc:
            raise ValidationError(issues_from_pydantic(exc)) from exc

    # ------------------------------------------------------------------
    # Order checks
    # ------------------------------------------------------------------

    def _check_date(
        self,
        value: Optional[str],
        field: str,
        issues: list[ValidationIssue],
    ) -> Optional[date]:
        if not value:
            return None
        parsed = _parse_date(value)
        if parsed is None:
            issues.append(ValidationIssue(
                code="invalid_date",
                message=f"{field} must be a date in YYYY-MM-DD format",
                field=field,
                value=str(value),
            ))
        return parsed


# ------------------------------------------------------------------
# Helpers
# ------------------------------------------------------------------

def issues_from_pydantic(exc: PydanticValidationError, prefix: str = "") -> list[ValidationIssue]:
    """Translate a pydantic error into ValidationIssues for the caller."""
    issues = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ()))
        field = f"{prefix}{loc}" if loc else (prefix.rstrip(".") or None)
        issues.append(ValidationIssue(
            code="invalid_value",
            message=f"{field or 'value'}: {err.get('msg')}",
            field=field,
            value=None if err.get("input") is None else str(err.get("input")),
        ))
    return issues


def _as_whole_number(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    amount = _as_decimal(value)
    if amount is None or amount != amount.to_integral_value():
        return None
    return int(amount)


def _as_decimal(value: Any) -> Optional[Decimal]:
    if value is None or isinstance(value, bool):
        return None
    try:
        amount = to_decimal(value.strip() if isinstance(value, str) else value)
    except (InvalidOperation, ValueError, TypeError):
        return None
    if not amount.is_finite():
        return None
    return amount


def _parse_date(date_str: Optional[str]) -> Optional[date]:
    if not date_str:
        return None
    try:
        return datetime.strptime(str(date_str).strip(), "%Y-%m-%d").date()
    except ValueError:
        return None
