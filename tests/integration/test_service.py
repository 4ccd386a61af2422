"""
Integration tests for PurchaseOrderService against a real SQLite file.
"""
from decimal import Decimal

import pytest

from ordering.errors import NotFoundError, PreconditionFailed, ValidationError


@pytest.mark.integration
class TestCreatePurchaseOrder:
    """Tests for creating orders."""

    def test_totals_with_gst(self, draft_order):
        """Test a GST-registered supplier's order carries 10% tax."""
        assert draft_order.status == "draft"
        assert draft_order.po_number == "PO-00001"
        assert draft_order.subtotal == Decimal("27.50")
        assert draft_order.tax_amount == Decimal("2.75")
        assert draft_order.total_amount == Decimal("30.25")
        assert [i.is_heading for i in draft_order.line_items] == [True, False, False]
        assert all(i.id for i in draft_order.line_items)

    def test_totals_without_gst(self, service, non_gst_supplier):
        """Test an unregistered supplier's order carries no tax."""
        order = service.create_purchase_order(
            non_gst_supplier.id,
            [{"description": "a", "quantity": 2, "unit_price": "10.00"},
             {"description": "b", "quantity": 1, "unit_price": "5.00"}],
        )
        assert order.subtotal == Decimal("25.00")
        assert order.tax_amount == Decimal("0.00")
        assert order.total_amount == Decimal("25.00")

    def test_default_currency_from_config(self, draft_order):
        """Test currency defaults to Config.default_currency."""
        assert draft_order.currency == "AUD"

    def test_sub_cent_amounts_rounded_once(self, service, gst_supplier):
        """Test totals are rounded from the unrounded sum, not per line."""
        order = service.create_purchase_order(
            gst_supplier.id,
            [{"description": "x", "quantity": 1, "unit_price": "0.005"}] * 3,
        )
        assert order.subtotal == Decimal("0.02")       # 0.015 → 0.02
        assert order.tax_amount == Decimal("0.00")     # 0.0015 → 0.00
        assert order.total_amount == Decimal("0.02")   # 0.02 + 0.00

    def test_sub_cent_line_totals_stored_exact(self, service, gst_supplier):
        """Test stored line totals are exact and their sum rounds to the stored subtotal."""
        created = service.create_purchase_order(
            gst_supplier.id,
            [{"description": "x", "quantity": 1, "unit_price": "0.005"}] * 3,
        )
        order = service.get_purchase_order(created.id)

        assert [i.line_total for i in order.line_items] == [Decimal("0.005")] * 3
        line_sum = sum(i.line_total for i in order.line_items)
        assert line_sum.quantize(Decimal("0.01")) == order.subtotal

    @pytest.mark.parametrize("price", ["10.044", "10.045", "0.045", "19.995", "7.77"])
    def test_stored_total_is_subtotal_plus_tax(self, service, gst_supplier, price):
        """Test the saved total always equals the saved subtotal plus saved GST."""
        created = service.create_purchase_order(
            gst_supplier.id, [{"description": "x", "quantity": 1, "unit_price": price}],
        )
        order = service.get_purchase_order(created.id)
        assert order.total_amount == order.subtotal + order.tax_amount

    def test_half_cent_tax_total_adds_up(self, service, gst_supplier):
        """Test 10.044 stores 10.04 + 1.00 = 11.04 rather than an independently rounded 11.05."""
        order = service.create_purchase_order(
            gst_supplier.id, [{"description": "x", "quantity": 1, "unit_price": "10.044"}],
        )
        assert (order.subtotal, order.tax_amount, order.total_amount) == (
            Decimal("10.04"), Decimal("1.00"), Decimal("11.04"),
        )

    def test_quantity_beyond_integer_range_rejected(self, service, gst_supplier):
        """Test an oversized quantity is a validation error and nothing is written."""
        with pytest.raises(ValidationError) as exc_info:
            service.create_purchase_order(
                gst_supplier.id, [{"description": "x", "quantity": 10**20, "unit_price": "1"}],
            )
        assert [i.code for i in exc_info.value.issues] == ["quantity_too_large"]
        assert service.list_purchase_orders() == []

    def test_string_heading_flag_rejected(self, service, gst_supplier):
        """Test a non-boolean heading flag does not zero out a priced row."""
        with pytest.raises(ValidationError) as exc_info:
            service.create_purchase_order(
                gst_supplier.id,
                [{"description": "Widgets", "quantity": "3", "unit_price": "10", "is_heading": "no"}],
            )
        assert [i.code for i in exc_info.value.issues] == ["invalid_heading_flag"]

    def test_empty_order_rejected(self, service, gst_supplier):
        """Test an order needs at least one line item."""
        with pytest.raises(ValidationError) as exc_info:
            service.create_purchase_order(gst_supplier.id, [])
        assert [i.code for i in exc_info.value.issues] == ["missing_line_items"]

    def test_bad_line_item_writes_nothing(self, service, gst_supplier):
        """Test a rejected order leaves no row behind."""
        with pytest.raises(ValidationError):
            service.create_purchase_order(
                gst_supplier.id, [{"description": "x", "quantity": -1, "unit_price": 1}],
            )
        assert service.list_purchase_orders() == []

    def test_inactive_supplier_rejected(self, service, gst_supplier, sample_line_items):
        """Test orders cannot be placed against an inactive supplier."""
        service.update_supplier(gst_supplier.id, {"status": "inactive"})
        with pytest.raises(PreconditionFailed, match="inactive"):
            service.create_purchase_order(gst_supplier.id, sample_line_items)

    def test_unknown_supplier(self, service, sample_line_items):
        """Test a missing supplier is NotFound."""
        with pytest.raises(NotFoundError):
            service.create_purchase_order("nope", sample_line_items)

    def test_activity_and_change_event(self, service, gst_supplier, sample_line_items):
        """Test creation is logged and published."""
        events = []
        service.feed.subscribe(events.append, table="purchase_orders")

        order = service.create_purchase_order(gst_supplier.id, sample_line_items)

        assert [(e.event_type, e.record_id) for e in events] == [("INSERT", order.id)]
        assert "line_items" not in events[0].record
        log = service.activity_for("purchase_order", order.id)
        assert [entry.action for entry in log] == ["created"]


@pytest.mark.integration
class TestStatusChanges:
    """Tests for status transitions through the service."""

    def test_lifecycle(self, service, draft_order):
        """Test draft → pending → approved → delivered."""
        for status in ("pending", "approved", "delivered"):
            order = service.change_status(draft_order.id, status)
            assert order.status == status

        actions = [e.action for e in service.activity_for("purchase_order", draft_order.id)]
        assert actions.count("status_changed") == 3

    def test_illegal_transition_not_persisted(self, service, draft_order):
        """Test a rejected transition leaves the stored status unchanged."""
        service.change_status(draft_order.id, "pending")
        service.change_status(draft_order.id, "approved")

        with pytest.raises(PreconditionFailed):
            service.change_status(draft_order.id, "pending")
        assert service.get_purchase_order(draft_order.id).status == "approved"

    def test_deprecated_status_rejected(self, service, draft_order):
        """Test legacy statuses cannot be written."""
        with pytest.raises(ValidationError) as exc_info:
            service.change_status(draft_order.id, "sent")
        assert exc_info.value.issues[0].code == "deprecated_status"

    def test_status_change_recomputes_totals(self, service, draft_order, gst_supplier):
        """Test totals follow the supplier's current GST flag on the next save."""
        service.update_supplier(gst_supplier.id, {"is_gst_registered": False})
        # Existing orders are not rewritten by the supplier change
        assert service.get_purchase_order(draft_order.id).tax_amount == Decimal("2.75")

        order = service.change_status(draft_order.id, "pending")
        assert order.tax_amount == Decimal("0.00")
        assert order.total_amount == Decimal("27.50")


@pytest.mark.integration
class TestDeleteAndVoid:
    """Tests for delete and void."""

    def test_delete_draft(self, service, draft_order):
        """Test a draft order is removed with its line items."""
        service.delete_purchase_order(draft_order.id)

        with pytest.raises(NotFoundError):
            service.get_purchase_order(draft_order.id)
        assert service.db.get_line_items(draft_order.id) == []

    def test_delete_approved_rejected_then_void(self, service, draft_order):
        """Test an approved order cannot be deleted but can be voided."""
        service.change_status(draft_order.id, "pending")
        service.change_status(draft_order.id, "approved")

        with pytest.raises(PreconditionFailed) as exc_info:
            service.delete_purchase_order(draft_order.id)
        assert str(exc_info.value) == (
            "Only draft purchase orders can be deleted. Use void instead for non-draft orders."
        )

        voided = service.void_purchase_order(draft_order.id)
        assert voided.status == "voided"
        assert voided.total_amount == Decimal("30.25")
        assert len(voided.line_items) == 3

    def test_void_draft_rejected(self, service, draft_order):
        """Test drafts are deleted, not voided."""
        with pytest.raises(PreconditionFailed):
            service.void_purchase_order(draft_order.id)

    def test_voided_order_frozen(self, service, draft_order):
        """Test nothing about a voided order can change."""
        service.change_status(draft_order.id, "pending")
        service.void_purchase_order(draft_order.id)

        with pytest.raises(PreconditionFailed):
            service.update_purchase_order(draft_order.id, {"notes": "late"})
        with pytest.raises(PreconditionFailed):
            service.void_purchase_order(draft_order.id)
        with pytest.raises(PreconditionFailed):
            service.delete_purchase_order(draft_order.id)

    def test_void_logged(self, service, draft_order):
        """Test void is recorded in the activity log."""
        service.change_status(draft_order.id, "pending")
        service.void_purchase_order(draft_order.id, actor="ops")

        entry = service.activity_for("purchase_order", draft_order.id)[-1]
        assert entry.action == "voided"
        assert entry.actor == "ops"
        assert entry.old_values["status"] == "pending"


@pytest.mark.integration
class TestEditing:
    """Tests for editing orders and line items."""

    def test_replace_line_items_recomputes(self, service, draft_order):
        """Test new line items produce new totals."""
        order = service.update_purchase_order(draft_order.id, {
            "line_items": [{"description": "Door", "quantity": 1, "unit_price": "100"}],
        })
        assert order.subtotal == Decimal("100.00")
        assert order.total_amount == Decimal("110.00")
        assert [i.description for i in order.line_items] == ["Door"]

    def test_add_update_remove_line_item(self, service, draft_order):
        """Test single line item edits keep the totals in step."""
        order = service.add_line_item(
            draft_order.id, {"description": "Seal", "quantity": 4, "unit_price": "1.25"},
        )
        assert order.subtotal == Decimal("32.50")

        seal = order.line_items[-1]
        order = service.update_line_item(draft_order.id, seal.id, {"quantity": 2})
        assert order.subtotal == Decimal("30.00")
        assert order.line_items[-1].line_total == Decimal("2.50")

        order = service.remove_line_item(draft_order.id, seal.id)
        assert order.subtotal == Decimal("27.50")
        assert len(order.line_items) == 3

    def test_unchanged_line_items_keep_ids(self, service, draft_order):
        """Test editing one row keeps the identity of the others."""
        ids = [i.id for i in draft_order.line_items]
        order = service.update_line_item(draft_order.id, ids[1], {"notes": "white"})
        assert [i.id for i in order.line_items] == ids

    def test_line_items_locked_after_approval(self, service, draft_order):
        """Test line items cannot change once approved."""
        service.change_status(draft_order.id, "pending")
        service.change_status(draft_order.id, "approved")

        with pytest.raises(PreconditionFailed):
            service.add_line_item(draft_order.id, {"description": "x", "quantity": 1, "unit_price": 1})

    def test_notes_editable_after_approval(self, service, draft_order):
        """Test notes and dates can still be changed on an approved order."""
        service.change_status(draft_order.id, "pending")
        service.change_status(draft_order.id, "approved")

        order = service.update_purchase_order(draft_order.id, {"notes": "Call before delivery"})
        assert order.notes == "Call before delivery"

    def test_unknown_line_item(self, service, draft_order):
        """Test editing a line item that is not on the order."""
        with pytest.raises(NotFoundError):
            service.update_line_item(draft_order.id, "nope", {"quantity": 1})

    def test_unknown_field_rejected(self, service, draft_order):
        """Test totals cannot be written directly."""
        with pytest.raises(ValidationError) as exc_info:
            service.update_purchase_order(draft_order.id, {"total_amount": "1.00"})
        assert exc_info.value.issues[0].code == "unknown_field"

    def test_delivery_before_order_rejected(self, service, draft_order):
        """Test date ordering is checked on update."""
        with pytest.raises(ValidationError) as exc_info:
            service.update_purchase_order(draft_order.id, {"delivery_date": "2024-02-01"})
        assert exc_info.value.issues[0].code == "delivery_before_order"

    def test_move_to_other_supplier(self, service, draft_order, non_gst_supplier):
        """Test changing supplier while editable applies the new GST flag."""
        order = service.update_purchase_order(draft_order.id, {"supplier_id": non_gst_supplier.id})
        assert order.supplier_name == "Joe's Glazing"
        assert order.tax_amount == Decimal("0.00")


@pytest.mark.integration
class TestSuppliers:
    """Tests for supplier management."""

    def test_invalid_supplier_rejected(self, service):
        """Test model validation errors surface as ValidationError."""
        with pytest.raises(ValidationError):
            service.create_supplier({"company_name": ""})

    def test_delete_supplier_with_orders_rejected(self, service, draft_order, gst_supplier):
        """Test suppliers referenced by orders cannot be deleted."""
        with pytest.raises(PreconditionFailed, match="inactive instead"):
            service.delete_supplier(gst_supplier.id)

    def test_delete_unused_supplier(self, service, non_gst_supplier):
        """Test a supplier without orders can be deleted."""
        service.delete_supplier(non_gst_supplier.id)
        with pytest.raises(NotFoundError):
            service.get_supplier(non_gst_supplier.id)

    def test_contacts(self, service, gst_supplier):
        """Test adding, listing and deleting contacts."""
        contact = service.add_contact(
            gst_supplier.id, {"first_name": "Ann", "last_name": "Lee", "is_primary": True},
        )
        assert [c.id for c in service.list_contacts(gst_supplier.id)] == [contact.id]

        service.delete_contact(contact.id)
        assert service.list_contacts(gst_supplier.id) == []
        with pytest.raises(NotFoundError):
            service.delete_contact(contact.id)

    def test_dashboard_stats(self, service, draft_order, non_gst_supplier):
        """Test stats reflect orders and active suppliers."""
        stats = service.dashboard_stats()
        assert stats["total_pos"] == 1
        assert stats["total_value"] == "30.25"
        assert stats["active_suppliers"] == 2
