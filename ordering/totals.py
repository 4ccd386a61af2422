"""
Money arithmetic for purchase orders.

  compute_line_total  quantity × unit price for one row
  compute_totals      subtotal over non-heading rows, GST on the subtotal, grand total

Everything here is Decimal and unrounded.  Amounts are rounded to cents only
at the edges (persistence, exports, display) via round_currency() or
OrderTotals.rounded(), so intermediate sums never accumulate rounding error.
"""
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Protocol

from models.purchase_order import OrderTotals

TAX_RATE = Decimal("0.10")      # Australian GST; gated only by supplier registration
CENTS = Decimal("0.01")
ZERO = Decimal("0")


class _PricedRow(Protocol):
    quantity: int
    unit_price: Decimal
    is_heading: bool


def to_decimal(value) -> Decimal:
    """Coerce an int/str/float/Decimal amount without binary float artefacts."""
    if isinstance(value, Decimal):
        return value
    if isinstance(value, float):
        return Decimal(str(value))
    return Decimal(value)


def compute_line_total(quantity, unit_price) -> Decimal:
    """Return quantity × unit_price.  Callers reject negative input beforehand."""
    return to_decimal(quantity) * to_decimal(unit_price)


def line_total_of(item: _PricedRow) -> Decimal:
    """Contribution of one row to the subtotal; headings always contribute 0."""
    if item.is_heading:
        return ZERO
    return compute_line_total(item.quantity, item.unit_price)


def compute_totals(line_items: Iterable[_PricedRow], tax_applicable: bool) -> OrderTotals:
    """
    Aggregate line items into subtotal, tax and total.

    Tax is applied once to the aggregate subtotal, never per line.  An empty
    sequence is a valid zero state.
    """
    subtotal = sum((line_total_of(item) for item in line_items), ZERO)
    tax_amount = subtotal * TAX_RATE if tax_applicable else ZERO
    return OrderTotals(
        subtotal=subtotal,
        tax_amount=tax_amount,
        total_amount=subtotal + tax_amount,
    )


def round_currency(value) -> Decimal:
    """Round an amount to cents (half-up)."""
    return to_decimal(value).quantize(CENTS, rounding=ROUND_HALF_UP)


def format_currency(value) -> str:
    """Display form used on exported documents, e.g. $1,234.50."""
    return f"${round_currency(value):,.2f}"
