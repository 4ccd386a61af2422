"""
CSV utilities for importing and exporting reference data.

Suppliers can be bulk-loaded from a spreadsheet export, and line items can be
read from CSV to preview order totals from the command line.
"""
import csv
import logging
from pathlib import Path
from typing import Union

logger = logging.getLogger(__name__)

SUPPLIER_CSV_FIELDS = [
    "company_name", "abn", "email", "phone", "website",
    "address_line_1", "address_line_2", "city", "state", "postal_code",
    "is_gst_registered", "status",
]
LINE_ITEM_CSV_FIELDS = ["description", "quantity", "unit_price", "notes", "is_heading"]

_TRUE_VALUES = {"1", "true", "yes", "y", "t"}
_FALSE_VALUES = {"0", "false", "no", "n", "f"}


class CSVManager:
    """Reads and writes CSV files as lists of dictionaries."""

    def load_dicts(self, path: Path) -> list[dict]:
        """
        Load a CSV file as a list of dictionaries.

        Args:
            path: Path to the CSV file

        Returns:
            List of row dictionaries (empty if file doesn't exist)
        """
        if not path.exists():
            logger.warning("CSV file not found: %s", path)
            return []

        # utf-8-sig strips the BOM spreadsheet exports like to add
        with open(path, newline="", encoding="utf-8-sig") as f:
            return list(csv.DictReader(f))

    def save_dicts(self, path: Path, rows: list[dict], fieldnames: list[str]) -> None:
        """
        Save a list of dictionaries to a CSV file.

        Args:
            path: Path to write the CSV file
            rows: List of row dictionaries
            fieldnames: List of column headers
        """
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", newline="", encoding="utf-8") as f:
            writer = csv.DictWriter(f, fieldnames=fieldnames, extrasaction="ignore")
            writer.writeheader()
            writer.writerows(rows)
        logger.info("Saved CSV: %s (%d rows)", path, len(rows))

    def load_suppliers(self, path: Path) -> list[dict]:
        """
        Load supplier rows ready for PurchaseOrderService.create_supplier().

        Blank cells are dropped; is_gst_registered accepts true/false, yes/no
        or 1/0 and defaults to registered when blank.  Unrecognised flag
        values are passed through unchanged so validation reports them.
        """
        suppliers = []
        for row in self.load_dicts(path):
            record = {
                key: (row.get(key) or "").strip()
                for key in SUPPLIER_CSV_FIELDS
                if (row.get(key) or "").strip()
            }
            if "is_gst_registered" in record:
                record["is_gst_registered"] = parse_flag(record["is_gst_registered"])
            suppliers.append(record)
        return suppliers

    def load_line_items(self, path: Path) -> list[dict]:
        """Load line item rows; amounts stay as text for the validator to coerce."""
        items = []
        for row in self.load_dicts(path):
            item = {key: row.get(key) for key in LINE_ITEM_CSV_FIELDS if row.get(key) not in (None, "")}
            item["is_heading"] = parse_flag(item.get("is_heading", "false"))
            items.append(item)
        return items


def parse_flag(value: str) -> Union[bool, str]:
    """Interpret a spreadsheet yes/no cell."""
    text = str(value).strip().lower()
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    return value


# Global instance for shared use
csv_manager = CSVManager()
