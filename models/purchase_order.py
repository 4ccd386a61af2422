from decimal import Decimal, ROUND_HALF_UP
from typing import Literal, Optional, List

from pydantic import BaseModel, Field

from .line_item import LineItem


PurchaseOrderStatus = Literal[
    "draft",
    "pending",
    "approved",
    "delivered",
    "cancelled",
    "voided",
]

_CENTS = Decimal("0.01")


class OrderTotals(BaseModel):
    """Subtotal, GST and grand total for one set of line items."""
    subtotal: Decimal = Decimal("0")
    tax_amount: Decimal = Decimal("0")
    total_amount: Decimal = Decimal("0")

    def rounded(self) -> "OrderTotals":
        """
        Return a copy rounded to cents, for persistence or display.

        Subtotal and tax are each rounded once from their exact values and the
        total is their sum, so the three figures always add up.
        """
        subtotal = self.subtotal.quantize(_CENTS, rounding=ROUND_HALF_UP)
        tax_amount = self.tax_amount.quantize(_CENTS, rounding=ROUND_HALF_UP)
        return OrderTotals(
            subtotal=subtotal,
            tax_amount=tax_amount,
            total_amount=subtotal + tax_amount,
        )


class PurchaseOrder(BaseModel):
    """
    A purchase order placed against a supplier.
    po_number is generated by the database sequence and is opaque everywhere else.
    """
    id: str
    po_number: str
    supplier_id: str
    supplier_name: Optional[str] = None     # Denormalised for list views
    status: PurchaseOrderStatus = "draft"
    subtotal: Decimal = Decimal("0")
    tax_amount: Decimal = Decimal("0")
    total_amount: Decimal = Decimal("0")
    currency: str = "AUD"
    order_date: Optional[str] = None        # YYYY-MM-DD
    delivery_date: Optional[str] = None     # YYYY-MM-DD
    notes: Optional[str] = None
    line_items: List[LineItem] = Field(default_factory=list)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def totals(self) -> OrderTotals:
        return OrderTotals(
            subtotal=self.subtotal,
            tax_amount=self.tax_amount,
            total_amount=self.total_amount,
        )
