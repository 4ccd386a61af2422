from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field, model_validator


class LineItem(BaseModel):
    """
    A single row of a purchase order.

    Either a priced quantity (line_total = quantity * unit_price) or a heading
    row used for visual grouping.  Headings always carry zero quantity and
    price and never contribute to the order totals.
    """
    id: Optional[str] = None                    # Assigned when the order is saved
    description: str = Field(min_length=1)
    quantity: int = Field(default=0, ge=0)
    unit_price: Decimal = Field(default=Decimal("0"), ge=0)
    line_total: Optional[Decimal] = None        # Always recomputed from quantity × unit_price
    notes: Optional[str] = None
    is_heading: bool = False

    @model_validator(mode="after")
    def _fill_amounts(self) -> "LineItem":
        if self.is_heading:
            self.quantity = 0
            self.unit_price = Decimal("0")
            self.line_total = Decimal("0")
        else:
            self.line_total = self.quantity * self.unit_price
        return self
