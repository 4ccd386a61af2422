"""
Unit tests for CSV import helpers.
"""
import pytest

from ordering.csv_manager import CSVManager, parse_flag


@pytest.fixture
def manager():
    return CSVManager()


@pytest.mark.unit
class TestCSVManager:
    """Tests for CSVManager."""

    def test_missing_file_returns_empty(self, manager, temp_dir):
        """Test a missing CSV is treated as empty."""
        assert manager.load_dicts(temp_dir / "nope.csv") == []

    def test_save_and_load(self, manager, temp_dir):
        """Test rows written by save_dicts() are read back."""
        path = temp_dir / "out" / "rows.csv"
        manager.save_dicts(path, [{"a": "1", "b": "x", "extra": "ignored"}], ["a", "b"])
        assert manager.load_dicts(path) == [{"a": "1", "b": "x"}]

    def test_load_suppliers(self, manager, temp_dir):
        """Test supplier rows drop blanks and parse the GST flag."""
        path = temp_dir / "suppliers.csv"
        path.write_text(
            "\ufeffcompany_name,abn,email,is_gst_registered,status\n"
            "Capral Aluminium,78 004 213 692,orders@capral.example,yes,active\n"
            "Joe's Glazing,,,no,\n"
            "Blank Flag Pty Ltd,,,,\n",
            encoding="utf-8",
        )

        rows = manager.load_suppliers(path)

        assert rows[0] == {
            "company_name": "Capral Aluminium",
            "abn": "78 004 213 692",
            "email": "orders@capral.example",
            "is_gst_registered": True,
            "status": "active",
        }
        assert rows[1] == {"company_name": "Joe's Glazing", "is_gst_registered": False}
        assert rows[2] == {"company_name": "Blank Flag Pty Ltd"}

    def test_load_line_items(self, manager, temp_dir):
        """Test line item rows keep amounts as text and flag headings."""
        path = temp_dir / "lines.csv"
        path.write_text(
            "description,quantity,unit_price,notes,is_heading\n"
            "Frames,,,,true\n"
            "Sash window,2,10.00,,\n",
            encoding="utf-8",
        )

        rows = manager.load_line_items(path)

        assert rows[0] == {"description": "Frames", "is_heading": True}
        assert rows[1] == {
            "description": "Sash window", "quantity": "2", "unit_price": "10.00",
            "is_heading": False,
        }


@pytest.mark.unit
@pytest.mark.parametrize("value,expected", [
    ("Yes", True), ("1", True), ("TRUE", True),
    ("no", False), ("0", False), ("f", False),
    ("maybe", "maybe"),
])
def test_parse_flag(value, expected):
    """Test spreadsheet yes/no values."""
    assert parse_flag(value) == expected
