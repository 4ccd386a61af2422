"""
Integration tests for database operations.
"""
import sqlite3

import pytest

from ordering.database import Database


def _supplier(db: Database, supplier_id: str = "sup-1", **fields) -> dict:
    return db.insert_supplier(supplier_id, {"company_name": "Capral Aluminium", **fields})


def _order(db: Database, po_id: str, supplier_id: str = "sup-1", **fields) -> str:
    return db.insert_purchase_order(
        po_id,
        {"supplier_id": supplier_id, "status": "draft",
         "subtotal": "20.00", "tax_amount": "2.00", "total_amount": "22.00", **fields},
        [
            {"id": f"{po_id}-h", "description": "Frames", "is_heading": True},
            {"id": f"{po_id}-1", "description": "Sash", "quantity": 2,
             "unit_price": "10.00", "line_total": "20.00"},
        ],
    )


@pytest.mark.integration
class TestDatabase:
    """Integration tests for Database class."""

    def test_insert_and_get_supplier(self, test_db):
        """Test inserting and retrieving a supplier with defaults."""
        rec = _supplier(test_db, abn="78 004 213 692")

        assert rec["company_name"] == "Capral Aluminium"
        assert rec["is_gst_registered"] is True
        assert rec["status"] == "active"
        assert rec["created_at"] == rec["updated_at"]

    def test_update_supplier(self, test_db):
        """Test updating supplier columns and the GST flag."""
        _supplier(test_db)
        assert test_db.update_supplier("sup-1", {"is_gst_registered": False, "city": "Perth"})

        rec = test_db.get_supplier("sup-1")
        assert rec["is_gst_registered"] is False
        assert rec["city"] == "Perth"
        assert test_db.update_supplier("missing", {"city": "x"}) is False

    def test_list_suppliers_filters(self, test_db):
        """Test status and search filters."""
        _supplier(test_db, "s1", company_name="Alpha Glass")
        _supplier(test_db, "s2", company_name="beta Hardware", status="inactive")
        _supplier(test_db, "s3", company_name="Gamma Glass", email="sales@gamma.example")

        assert [s["id"] for s in test_db.list_suppliers()] == ["s1", "s2", "s3"]
        assert [s["id"] for s in test_db.list_suppliers(status="inactive")] == ["s2"]
        assert [s["id"] for s in test_db.list_suppliers(search="glass")] == ["s1", "s3"]
        assert [s["id"] for s in test_db.list_suppliers(search="gamma.example")] == ["s3"]

    def test_po_numbers_sequential(self, test_db):
        """Test PO numbers come from the sequence, zero padded."""
        _supplier(test_db)
        assert _order(test_db, "po-1") == "PO-00001"
        assert _order(test_db, "po-2") == "PO-00002"
        assert test_db.next_po_number() == "PO-00003"
        assert _order(test_db, "po-3") == "PO-00004"

    def test_custom_po_number_format(self, test_config):
        """Test the prefix and width are configurable."""
        db = Database(test_config.db_path, po_number_prefix="MTM-", po_number_width=3)
        assert db.next_po_number() == "MTM-001"

    def test_order_round_trip_keeps_money_exact(self, test_db):
        """Test money columns come back as the exact decimal text written."""
        _supplier(test_db)
        _order(test_db, "po-1")

        rec = test_db.get_purchase_order("po-1")
        assert rec["total_amount"] == "22.00"
        assert rec["supplier_name"] == "Capral Aluminium"
        assert rec["supplier_is_gst_registered"] is True

        items = test_db.get_line_items("po-1")
        assert [i["description"] for i in items] == ["Frames", "Sash"]
        assert items[0]["is_heading"] is True
        assert items[1]["unit_price"] == "10.00"

    def test_update_replaces_line_items(self, test_db):
        """Test passing line_items replaces the whole list."""
        _supplier(test_db)
        _order(test_db, "po-1")

        test_db.update_purchase_order(
            "po-1",
            {"subtotal": "5.00", "tax_amount": "0.50", "total_amount": "5.50"},
            [{"id": "new", "description": "Glass", "quantity": 1,
              "unit_price": "5.00", "line_total": "5.00"}],
        )

        assert [i["id"] for i in test_db.get_line_items("po-1")] == ["new"]
        assert test_db.get_purchase_order("po-1")["subtotal"] == "5.00"

    def test_update_without_line_items_keeps_them(self, test_db):
        """Test a status-only update leaves line items alone."""
        _supplier(test_db)
        _order(test_db, "po-1")

        test_db.update_purchase_order("po-1", {"status": "pending"})

        assert len(test_db.get_line_items("po-1")) == 2
        assert test_db.get_purchase_order("po-1")["status"] == "pending"

    def test_delete_cascades_line_items(self, test_db):
        """Test deleting an order deletes its line items."""
        _supplier(test_db)
        _order(test_db, "po-1")

        assert test_db.delete_purchase_order("po-1") is True
        assert test_db.get_purchase_order("po-1") is None
        assert test_db.get_line_items("po-1") == []

    def test_supplier_with_orders_cannot_be_deleted(self, test_db):
        """Test the foreign key refuses to orphan orders."""
        _supplier(test_db)
        _order(test_db, "po-1")

        assert test_db.count_orders_for_supplier("sup-1") == 1
        with pytest.raises(sqlite3.IntegrityError):
            test_db.delete_supplier("sup-1")

    def test_list_purchase_orders(self, test_db):
        """Test newest-first ordering and filters."""
        _supplier(test_db)
        _supplier(test_db, "sup-2", company_name="Other Co")
        _order(test_db, "po-1", notes="rear dock")
        _order(test_db, "po-2", status="pending")
        _order(test_db, "po-3", supplier_id="sup-2")

        assert [o["id"] for o in test_db.list_purchase_orders()] == ["po-3", "po-2", "po-1"]
        assert [o["id"] for o in test_db.list_purchase_orders(status="pending")] == ["po-2"]
        assert [o["id"] for o in test_db.list_purchase_orders(supplier_id="sup-2")] == ["po-3"]
        assert [o["id"] for o in test_db.list_purchase_orders(search="dock")] == ["po-1"]
        assert [o["id"] for o in test_db.list_purchase_orders(search="PO-00002")] == ["po-2"]

    def test_stats_exclude_voided_value(self, test_db):
        """Test total_value ignores voided orders but counts them by status."""
        _supplier(test_db)
        _supplier(test_db, "sup-2", company_name="Gone Co", status="inactive")
        _order(test_db, "po-1")
        _order(test_db, "po-2", status="pending")
        _order(test_db, "po-3", status="voided")

        stats = test_db.get_stats()
        assert stats["total_pos"] == 3
        assert stats["pending_approval"] == 1
        assert stats["total_value"] == "44.00"
        assert stats["active_suppliers"] == 1
        assert stats["by_status"] == {"draft": 1, "pending": 1, "voided": 1}

    def test_primary_contact_unique(self, test_db):
        """Test adding a primary contact demotes the previous one."""
        _supplier(test_db)
        test_db.insert_contact("c1", "sup-1", {"first_name": "Ann", "last_name": "Lee", "is_primary": True})
        test_db.insert_contact("c2", "sup-1", {"first_name": "Bob", "last_name": "Ng", "is_primary": True})

        contacts = test_db.list_contacts("sup-1")
        assert [(c["id"], c["is_primary"]) for c in contacts] == [("c2", True), ("c1", False)]

    def test_activity_log(self, test_db):
        """Test activity entries are stored with JSON values."""
        test_db.log_activity(
            "purchase_order", "po-1", "status_changed", "moved",
            actor="tester", old_values={"status": "draft"}, new_values={"status": "pending"},
        )
        test_db.log_activity("purchase_order", "po-2", "created", "made")

        entries = test_db.get_activity_log("purchase_order", "po-1")
        assert len(entries) == 1
        assert entries[0]["old_values"] == {"status": "draft"}
        assert entries[0]["actor"] == "tester"

        recent = test_db.get_recent_activity(limit=10)
        assert [e["entity_id"] for e in recent] == ["po-2", "po-1"]
