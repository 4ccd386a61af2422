from pydantic import BaseModel, Field
from typing import Literal, Optional


SupplierStatus = Literal["active", "inactive"]


class Supplier(BaseModel):
    """
    A supplier purchase orders are placed against.
    is_gst_registered decides whether 10% GST is added to their orders.
    """
    id: str
    company_name: str = Field(min_length=1)
    is_gst_registered: bool = True
    status: SupplierStatus = "active"
    abn: Optional[str] = None          # Australian Business Number
    email: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    address_line_1: Optional[str] = None
    address_line_2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    @property
    def address_lines(self) -> list[str]:
        """Postal address as printable lines, skipping blank parts."""
        locality = " ".join(p for p in (self.city, self.state, self.postal_code) if p)
        return [line for line in (self.address_line_1, self.address_line_2, locality) if line]


class SupplierContact(BaseModel):
    """A named person at a supplier."""
    id: str
    supplier_id: str
    first_name: str = Field(min_length=1)
    last_name: str = Field(min_length=1)
    email: Optional[str] = None
    phone: Optional[str] = None
    role: Optional[str] = None
    is_primary: bool = False
    created_at: Optional[str] = None
    updated_at: Optional[str] = None
