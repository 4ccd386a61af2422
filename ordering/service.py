"""
Purchase order service.

PurchaseOrderService is the single entry point the dashboard and the CLI use
to change ledger state.  Every write follows the same order:

  1. Load the current record                     (NotFoundError)
  2. Consult the status guard                    (PreconditionFailed)
  3. Validate and coerce incoming line items     (ValidationError)
  4. Recompute totals from the line items and the supplier's GST flag
  5. Persist order + line items + totals in one transaction
  6. Append to the activity log
  7. Publish a ChangeEvent to subscribers

Steps 2–4 happen before any database write, so a rejected request never
leaves a partial update behind.
"""
import logging
import sqlite3
import uuid
from typing import Any, Iterable, Optional

from pydantic import ValidationError as PydanticValidationError

from config import Config
from models.line_item import LineItem
from models.purchase_order import PurchaseOrder
from models.result import ActivityEntry, ValidationIssue
from models.supplier import Supplier, SupplierContact
from .changes import ChangeEvent, ChangeFeed
from .database import Database
from .errors import NotFoundError, PreconditionFailed, ValidationError
from .status_guard import (
    STATUS_DRAFT,
    STATUS_VOIDED,
    check_transition,
    ensure_deletable,
    ensure_line_items_editable,
    ensure_voidable,
    require_known_status,
)
from .totals import compute_totals
from .validator import OrderValidator, issues_from_pydantic

logger = logging.getLogger(__name__)

# Fields a caller may change through update_purchase_order()
UPDATABLE_ORDER_FIELDS = frozenset({
    "status", "supplier_id", "order_date", "delivery_date",
    "notes", "currency", "line_items",
})
_SUPPLIER_FIELDS = frozenset(Supplier.model_fields) - {"id", "created_at", "updated_at"}
_CONTACT_FIELDS = frozenset(SupplierContact.model_fields) - {
    "id", "supplier_id", "created_at", "updated_at",
}


def _new_id() -> str:
    return str(uuid.uuid4())


class PurchaseOrderService:
    """Orchestrates validation, the status guard, totals and persistence."""

    def __init__(
        self,
        config: Optional[Config] = None,
        db: Optional[Database] = None,
        feed: Optional[ChangeFeed] = None,
    ):
        self.config = config or Config()
        self.db = db or Database(
            self.config.db_path,
            po_number_prefix=self.config.po_number_prefix,
            po_number_width=self.config.po_number_width,
        )
        self.validator = OrderValidator()
        self.feed = feed or ChangeFeed()

    # ------------------------------------------------------------------
    # Suppliers
    # ------------------------------------------------------------------

    def create_supplier(self, data: dict, actor: str = "system") -> Supplier:
        fields = self._reject_unknown(data, _SUPPLIER_FIELDS)
        supplier_id = _new_id()
        self._build(Supplier, {"id": supplier_id, **fields})

        rec = self.db.insert_supplier(supplier_id, fields)
        supplier = Supplier(**rec)
        self.db.log_activity(
            "supplier", supplier.id, "created",
            f"Created supplier {supplier.company_name}",
            actor=actor, new_values=supplier.model_dump(mode="json"),
        )
        self._publish("suppliers", "INSERT", supplier.model_dump(mode="json"))
        return supplier

    def get_supplier(self, supplier_id: str) -> Supplier:
        rec = self.db.get_supplier(supplier_id)
        if rec is None:
            raise NotFoundError(f"Supplier not found: {supplier_id}")
        return Supplier(**rec)

    def list_suppliers(
        self,
        status: Optional[str] = None,
        search: Optional[str] = None,
        limit: int = 500,
        offset: int = 0,
    ) -> list[Supplier]:
        return [
            Supplier(**rec)
            for rec in self.db.list_suppliers(status=status, search=search, limit=limit, offset=offset)
        ]

    def update_supplier(self, supplier_id: str, changes: dict, actor: str = "system") -> Supplier:
        """
        Change supplier details.

        Changing is_gst_registered does not rewrite existing orders; their
        totals are recomputed the next time each order is saved.
        """
        current = self.get_supplier(supplier_id)
        fields = self._reject_unknown(changes, _SUPPLIER_FIELDS)
        self._build(Supplier, {**current.model_dump(), **fields})

        self.db.update_supplier(supplier_id, fields)
        updated = self.get_supplier(supplier_id)
        self.db.log_activity(
            "supplier", supplier_id, "updated",
            f"Updated supplier {updated.company_name}",
            actor=actor,
            old_values=current.model_dump(mode="json"),
            new_values=updated.model_dump(mode="json"),
        )
        self._publish(
            "suppliers", "UPDATE",
            updated.model_dump(mode="json"), current.model_dump(mode="json"),
        )
        return updated

    def delete_supplier(self, supplier_id: str, actor: str = "system") -> None:
        """Delete a supplier that no purchase order references."""
        supplier = self.get_supplier(supplier_id)
        order_count = self.db.count_orders_for_supplier(supplier_id)
        if order_count:
            raise PreconditionFailed(
                f"Cannot delete supplier '{supplier.company_name}': "
                f"{order_count} purchase order(s) reference it. "
                "Mark the supplier inactive instead."
            )
        try:
            self.db.delete_supplier(supplier_id)
        except sqlite3.IntegrityError as exc:
            # An order was created between the count and the delete
            raise PreconditionFailed(
                f"Cannot delete supplier '{supplier.company_name}': purchase orders reference it."
            ) from exc

        self.db.log_activity(
            "supplier", supplier_id, "deleted",
            f"Deleted supplier {supplier.company_name}",
            actor=actor, old_values=supplier.model_dump(mode="json"),
        )
        self._publish("suppliers", "DELETE", old_record=supplier.model_dump(mode="json"))

    # ------------------------------------------------------------------
    # Supplier contacts
    # ------------------------------------------------------------------

    def add_contact(self, supplier_id: str, data: dict, actor: str = "system") -> SupplierContact:
        supplier = self.get_supplier(supplier_id)
        fields = self._reject_unknown(data, _CONTACT_FIELDS)
        contact_id = _new_id()
        self._build(SupplierContact, {"id": contact_id, "supplier_id": supplier_id, **fields})

        contact = SupplierContact(**self.db.insert_contact(contact_id, supplier_id, fields))
        self.db.log_activity(
            "supplier_contact", contact.id, "created",
            f"Added contact {contact.first_name} {contact.last_name} to {supplier.company_name}",
            actor=actor, new_values=contact.model_dump(mode="json"),
        )
        self._publish("supplier_contacts", "INSERT", contact.model_dump(mode="json"))
        return contact

    def list_contacts(self, supplier_id: str) -> list[SupplierContact]:
        self.get_supplier(supplier_id)
        return [SupplierContact(**rec) for rec in self.db.list_contacts(supplier_id)]

    def delete_contact(self, contact_id: str, actor: str = "system") -> None:
        rec = self.db.get_contact(contact_id)
        if rec is None:
            raise NotFoundError(f"Contact not found: {contact_id}")
        self.db.delete_contact(contact_id)
        self.db.log_activity(
            "supplier_contact", contact_id, "deleted",
            f"Deleted contact {rec['first_name']} {rec['last_name']}",
            actor=actor, old_values=rec,
        )
        self._publish("supplier_contacts", "DELETE", old_record=rec)

    # ------------------------------------------------------------------
    # Purchase orders
    # ------------------------------------------------------------------

    def create_purchase_order(
        self,
        supplier_id: str,
        line_items: Iterable[Any],
        order_date: Optional[str] = None,
        delivery_date: Optional[str] = None,
        notes: Optional[str] = None,
        currency: Optional[str] = None,
        actor: str = "system",
    ) -> PurchaseOrder:
        """Create a draft order.  The PO number is assigned by the database."""
        supplier = self.get_supplier(supplier_id)
        if supplier.status != "active":
            raise PreconditionFailed(
                f"Supplier '{supplier.company_name}' is inactive; orders cannot be placed against it"
            )

        items = self.validator.parse_line_items(line_items)
        issues = self.validator.validate_order(items, order_date, delivery_date)
        if issues:
            raise ValidationError(issues)

        totals = compute_totals(items, supplier.is_gst_registered).rounded()
        po_id = _new_id()
        po_number = self.db.insert_purchase_order(
            po_id,
            {
                "supplier_id":   supplier_id,
                "status":        STATUS_DRAFT,
                "currency":      currency or self.config.default_currency,
                "order_date":    order_date or None,
                "delivery_date": delivery_date or None,
                "notes":         notes or None,
                **totals.model_dump(),
            },
            self._line_item_rows(items),
        )

        order = self.get_purchase_order(po_id)
        logger.info(
            "Created %s for %s: total %s", po_number, supplier.company_name, order.total_amount
        )
        self.db.log_activity(
            "purchase_order", po_id, "created",
            f"Created purchase order {po_number} for {supplier.company_name}",
            actor=actor, new_values=order.model_dump(mode="json"),
        )
        self._publish("purchase_orders", "INSERT", self._summary(order))
        return order

    def get_purchase_order(self, po_id: str) -> PurchaseOrder:
        rec = self.db.get_purchase_order(po_id)
        if rec is None:
            raise NotFoundError(f"Purchase order not found: {po_id}")
        rec.pop("supplier_is_gst_registered", None)
        return PurchaseOrder(**rec, line_items=[
            LineItem(**item) for item in self.db.get_line_items(po_id)
        ])

    def list_purchase_orders(
        self,
        status: Optional[str] = None,
        supplier_id: Optional[str] = None,
        search: Optional[str] = None,
        limit: int = 500,
        offset: int = 0,
    ) -> list[PurchaseOrder]:
        """Order summaries, newest first.  line_items is left empty."""
        if status:
            require_known_status(status)
        return [
            PurchaseOrder(**rec)
            for rec in self.db.list_purchase_orders(
                status=status, supplier_id=supplier_id, search=search,
                limit=limit, offset=offset,
            )
        ]

    def update_purchase_order(
        self,
        po_id: str,
        changes: dict,
        actor: str = "system",
    ) -> PurchaseOrder:
        """
        Apply *changes* (any of UPDATABLE_ORDER_FIELDS) to an order.

        A status change must be legal for the current status.  Line items
        and the supplier can only change while the order is editable.
        Totals are always recomputed before saving.
        """
        current = self.get_purchase_order(po_id)
        self._reject_unknown(changes, UPDATABLE_ORDER_FIELDS)
        if current.status == STATUS_VOIDED:
            raise PreconditionFailed("Voided purchase orders cannot be modified")

        new_status = changes.get("status", current.status)
        check_transition(current.status, new_status)

        supplier_changed = (
            "supplier_id" in changes and changes["supplier_id"] != current.supplier_id
        )
        if "line_items" in changes or supplier_changed:
            ensure_line_items_editable(current.status)

        supplier = self.get_supplier(changes.get("supplier_id", current.supplier_id))
        if supplier_changed and supplier.status != "active":
            raise PreconditionFailed(
                f"Supplier '{supplier.company_name}' is inactive; orders cannot be moved to it"
            )

        if "line_items" in changes:
            items = self.validator.parse_line_items(changes["line_items"] or [])
        else:
            items = current.line_items

        order_date = changes.get("order_date", current.order_date)
        delivery_date = changes.get("delivery_date", current.delivery_date)
        issues = self.validator.validate_order(items, order_date, delivery_date)
        if issues:
            raise ValidationError(issues)

        fields = {
            "status":        new_status,
            "supplier_id":   supplier.id,
            "order_date":    order_date or None,
            "delivery_date": delivery_date or None,
            "notes":         changes.get("notes", current.notes) or None,
            "currency":      changes.get("currency") or current.currency,
        }
        updated = self._save(
            current, fields, items,
            tax_applicable=supplier.is_gst_registered,
            replace_items="line_items" in changes,
        )

        self.db.log_activity(
            "purchase_order", po_id, "updated",
            f"Updated purchase order {updated.po_number}",
            actor=actor,
            old_values=current.model_dump(mode="json"),
            new_values=updated.model_dump(mode="json"),
        )
        if updated.status != current.status:
            self.db.log_activity(
                "purchase_order", po_id, "status_changed",
                f"Purchase order {updated.po_number} moved from {current.status} to {updated.status}",
                actor=actor,
                old_values={"status": current.status},
                new_values={"status": updated.status},
            )
        if "line_items" in changes:
            self._publish("purchase_order_line_items", "UPDATE", {"id": po_id})
        self._publish("purchase_orders", "UPDATE", self._summary(updated), self._summary(current))
        return updated

    def change_status(self, po_id: str, status: str, actor: str = "system") -> PurchaseOrder:
        return self.update_purchase_order(po_id, {"status": status}, actor=actor)

    def delete_purchase_order(self, po_id: str, actor: str = "system") -> None:
        """Permanently delete a draft order and its line items."""
        current = self.get_purchase_order(po_id)
        ensure_deletable(current.status)

        self.db.delete_purchase_order(po_id)
        logger.info("Deleted draft purchase order %s", current.po_number)
        self.db.log_activity(
            "purchase_order", po_id, "deleted",
            f"Deleted purchase order {current.po_number}",
            actor=actor, old_values=current.model_dump(mode="json"),
        )
        self._publish("purchase_orders", "DELETE", old_record=self._summary(current))

    def void_purchase_order(self, po_id: str, actor: str = "system") -> PurchaseOrder:
        """Retire a non-draft order as 'voided', keeping it for the record."""
        current = self.get_purchase_order(po_id)
        ensure_voidable(current.status)

        supplier = self.get_supplier(current.supplier_id)
        updated = self._save(
            current, {"status": STATUS_VOIDED}, current.line_items,
            tax_applicable=supplier.is_gst_registered,
            replace_items=False,
        )
        logger.info("Voided purchase order %s (was %s)", updated.po_number, current.status)
        self.db.log_activity(
            "purchase_order", po_id, "voided",
            f"Voided purchase order {updated.po_number}",
            actor=actor,
            old_values=current.model_dump(mode="json"),
            new_values=updated.model_dump(mode="json"),
        )
        self._publish("purchase_orders", "UPDATE", self._summary(updated), self._summary(current))
        return updated

    # ------------------------------------------------------------------
    # Line items
    # ------------------------------------------------------------------

    def add_line_item(self, po_id: str, item: Any, actor: str = "system") -> PurchaseOrder:
        current = self.get_purchase_order(po_id)
        ensure_line_items_editable(current.status)
        rows = [i.model_dump() for i in current.line_items] + [self._as_row(item)]
        return self.update_purchase_order(po_id, {"line_items": rows}, actor=actor)

    def update_line_item(
        self,
        po_id: str,
        item_id: str,
        changes: dict,
        actor: str = "system",
    ) -> PurchaseOrder:
        current = self.get_purchase_order(po_id)
        ensure_line_items_editable(current.status)
        self._find_line_item(current, item_id)

        rows = []
        for existing in current.line_items:
            row = existing.model_dump()
            if existing.id == item_id:
                # The stored total is derived; drop it unless the caller supplied one
                row.pop("line_total")
                row.update({k: v for k, v in changes.items() if k != "id"})
            rows.append(row)
        return self.update_purchase_order(po_id, {"line_items": rows}, actor=actor)

    def remove_line_item(self, po_id: str, item_id: str, actor: str = "system") -> PurchaseOrder:
        current = self.get_purchase_order(po_id)
        ensure_line_items_editable(current.status)
        self._find_line_item(current, item_id)
        rows = [i.model_dump() for i in current.line_items if i.id != item_id]
        return self.update_purchase_order(po_id, {"line_items": rows}, actor=actor)

    # ------------------------------------------------------------------
    # Dashboard / activity
    # ------------------------------------------------------------------

    def dashboard_stats(self) -> dict:
        return self.db.get_stats()

    def activity_for(self, entity_type: str, entity_id: str) -> list[ActivityEntry]:
        return [ActivityEntry(**r) for r in self.db.get_activity_log(entity_type, entity_id)]

    def recent_activity(self, limit: int = 200, offset: int = 0) -> list[ActivityEntry]:
        return [ActivityEntry(**r) for r in self.db.get_recent_activity(limit, offset)]

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _save(
        self,
        current: PurchaseOrder,
        fields: dict,
        items: list[LineItem],
        tax_applicable: bool,
        replace_items: bool,
    ) -> PurchaseOrder:
        """Attach freshly computed totals to *fields* and persist in one transaction."""
        totals = compute_totals(items, tax_applicable).rounded()
        self.db.update_purchase_order(
            current.id,
            {**fields, **totals.model_dump()},
            self._line_item_rows(items) if replace_items else None,
        )
        return self.get_purchase_order(current.id)

    def _line_item_rows(self, items: list[LineItem]) -> list[dict]:
        rows = []
        for item in items:
            row = item.model_dump()
            # Stored exact; the order subtotal is their sum rounded once.
            row["id"] = item.id or _new_id()
            rows.append(row)
        return rows

    def _find_line_item(self, order: PurchaseOrder, item_id: str) -> LineItem:
        for item in order.line_items:
            if item.id == item_id:
                return item
        raise NotFoundError(f"Line item {item_id} not found on {order.po_number}")

    @staticmethod
    def _as_row(item: Any) -> dict:
        return item.model_dump() if isinstance(item, LineItem) else dict(item)

    @staticmethod
    def _reject_unknown(data: dict, allowed: frozenset) -> dict:
        unknown = sorted(set(data) - allowed)
        if unknown:
            raise ValidationError([
                ValidationIssue(
                    code="unknown_field",
                    message=f"Unknown field '{name}'",
                    field=name,
                )
                for name in unknown
            ])
        return dict(data)

    @staticmethod
    def _build(model, data: dict):
        try:
            return model(**data)
        except PydanticValidationError as exc:
            raise ValidationError(issues_from_pydantic(exc)) from exc

    @staticmethod
    def _summary(order: PurchaseOrder) -> dict:
        return order.model_dump(mode="json", exclude={"line_items"})

    def _publish(
        self,
        table: str,
        event_type: str,
        record: Optional[dict] = None,
        old_record: Optional[dict] = None,
    ) -> None:
        self.feed.publish(ChangeEvent(
            table=table,
            event_type=event_type,
            record=record or {},
            old_record=old_record or {},
        ))
