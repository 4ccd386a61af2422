from .line_item import LineItem
from .purchase_order import PurchaseOrder, PurchaseOrderStatus, OrderTotals
from .supplier import Supplier, SupplierContact, SupplierStatus
from .result import ValidationIssue, ActivityEntry

__all__ = [
    "LineItem",
    "PurchaseOrder", "PurchaseOrderStatus", "OrderTotals",
    "Supplier", "SupplierContact", "SupplierStatus",
    "ValidationIssue", "ActivityEntry",
]
