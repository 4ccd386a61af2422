"""
Pydantic models for dashboard API requests.

Amounts arrive as JSON numbers or strings and are left loosely typed here;
the order validator coerces them and reports every bad row at once.
"""
from pydantic import BaseModel
from typing import Any, Optional


class SupplierCreate(BaseModel):
    company_name: str
    is_gst_registered: bool = True
    status: str = "active"     # active | inactive
    abn: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    address_line_1: Optional[str] = None
    address_line_2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None


class SupplierUpdate(BaseModel):
    company_name: Optional[str] = None
    is_gst_registered: Optional[bool] = None
    status: Optional[str] = None
    abn: Optional[str] = None
    email: Optional[str] = None
    phone: Optional[str] = None
    website: Optional[str] = None
    address_line_1: Optional[str] = None
    address_line_2: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    postal_code: Optional[str] = None


class ContactCreate(BaseModel):
    first_name: str
    last_name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    role: Optional[str] = None
    is_primary: bool = False


class LineItemIn(BaseModel):
    description: Any = None
    quantity: Any = 0
    unit_price: Any = 0
    line_total: Any = None
    notes: Optional[str] = None
    is_heading: bool = False


class LineItemUpdate(BaseModel):
    description: Any = None
    quantity: Any = None
    unit_price: Any = None
    notes: Optional[str] = None
    is_heading: Optional[bool] = None


class PurchaseOrderCreate(BaseModel):
    supplier_id: str
    line_items: list[LineItemIn]
    order_date: Optional[str] = None        # YYYY-MM-DD
    delivery_date: Optional[str] = None     # YYYY-MM-DD
    notes: Optional[str] = None
    currency: Optional[str] = None


class PurchaseOrderUpdate(BaseModel):
    supplier_id: Optional[str] = None
    line_items: Optional[list[LineItemIn]] = None
    order_date: Optional[str] = None
    delivery_date: Optional[str] = None
    notes: Optional[str] = None
    currency: Optional[str] = None


class StatusUpdate(BaseModel):
    status: str   # draft | pending | approved | delivered | cancelled
