"""
SQLite persistence layer for the purchase order ledger.

A single database file (output/ledger.db) holds:

  - Suppliers and their contacts
  - Purchase orders with their line items (deleted together)
  - The PO number sequence
  - An append-only activity log of every change

Money columns are stored as TEXT decimals ("1234.50") so amounts come back
exactly as they were written.  Order totals arrive rounded to cents; line
totals and unit prices are kept at full precision.

Every public write runs in one transaction (see _conn): an order, its line
items and its totals are always written together or not at all.
"""
import json
import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from decimal import Decimal
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

_SCHEMA = """
CREATE TABLE IF NOT EXISTS suppliers (
    id                TEXT PRIMARY KEY,
    company_name      TEXT NOT NULL,
    is_gst_registered INTEGER NOT NULL DEFAULT 1,
    status            TEXT NOT NULL DEFAULT 'active',
    abn               TEXT,
    email             TEXT,
    phone             TEXT,
    website           TEXT,
    address_line_1    TEXT,
    address_line_2    TEXT,
    city              TEXT,
    state             TEXT,
    postal_code       TEXT,
    created_at        TEXT NOT NULL,
    updated_at        TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_suppliers_name   ON suppliers (company_name);
CREATE INDEX IF NOT EXISTS idx_suppliers_status ON suppliers (status);

CREATE TABLE IF NOT EXISTS supplier_contacts (
    id          TEXT PRIMARY KEY,
    supplier_id TEXT NOT NULL REFERENCES suppliers (id) ON DELETE CASCADE,
    first_name  TEXT NOT NULL,
    last_name   TEXT NOT NULL,
    email       TEXT,
    phone       TEXT,
    role        TEXT,
    is_primary  INTEGER NOT NULL DEFAULT 0,
    created_at  TEXT NOT NULL,
    updated_at  TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_contacts_supplier ON supplier_contacts (supplier_id);

CREATE TABLE IF NOT EXISTS purchase_orders (
    id            TEXT PRIMARY KEY,
    po_number     TEXT NOT NULL UNIQUE,
    supplier_id   TEXT NOT NULL REFERENCES suppliers (id) ON DELETE RESTRICT,
    status        TEXT NOT NULL DEFAULT 'draft',
    subtotal      TEXT NOT NULL DEFAULT '0.00',
    tax_amount    TEXT NOT NULL DEFAULT '0.00',
    total_amount  TEXT NOT NULL DEFAULT '0.00',
    currency      TEXT NOT NULL DEFAULT 'AUD',
    order_date    TEXT,
    delivery_date TEXT,
    notes         TEXT,
    created_at    TEXT NOT NULL,
    updated_at    TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_po_status     ON purchase_orders (status);
CREATE INDEX IF NOT EXISTS idx_po_supplier   ON purchase_orders (supplier_id);
CREATE INDEX IF NOT EXISTS idx_po_created_at ON purchase_orders (created_at DESC);

CREATE TABLE IF NOT EXISTS purchase_order_line_items (
    id                TEXT PRIMARY KEY,
    purchase_order_id TEXT NOT NULL REFERENCES purchase_orders (id) ON DELETE CASCADE,
    position          INTEGER NOT NULL,
    item_description  TEXT NOT NULL,
    quantity          INTEGER NOT NULL DEFAULT 0,
    unit_price        TEXT NOT NULL DEFAULT '0.00',
    line_total        TEXT NOT NULL DEFAULT '0.00',
    notes             TEXT,
    is_heading        INTEGER NOT NULL DEFAULT 0,
    created_at        TEXT NOT NULL,
    updated_at        TEXT NOT NULL
);

CREATE INDEX IF NOT EXISTS idx_line_items_po ON purchase_order_line_items (purchase_order_id, position);

CREATE TABLE IF NOT EXISTS po_number_sequence (
    id         INTEGER PRIMARY KEY CHECK (id = 1),
    last_value INTEGER NOT NULL
);

CREATE TABLE IF NOT EXISTS activity_log (
    id          INTEGER PRIMARY KEY AUTOINCREMENT,
    entity_type TEXT NOT NULL,      -- purchase_order | supplier | supplier_contact
    entity_id   TEXT,
    action      TEXT NOT NULL,      -- created | updated | status_changed | voided | deleted
    description TEXT NOT NULL,
    actor       TEXT NOT NULL DEFAULT 'system',
    old_values  TEXT,               -- JSON
    new_values  TEXT,               -- JSON
    created_at  TEXT NOT NULL       -- ISO-8601 UTC
);

CREATE INDEX IF NOT EXISTS idx_activity_entity     ON activity_log (entity_type, entity_id);
CREATE INDEX IF NOT EXISTS idx_activity_created_at ON activity_log (created_at DESC);
"""

_SUPPLIER_COLUMNS = (
    "company_name", "is_gst_registered", "status", "abn", "email", "phone",
    "website", "address_line_1", "address_line_2", "city", "state", "postal_code",
)
_CONTACT_COLUMNS = (
    "first_name", "last_name", "email", "phone", "role", "is_primary",
)
_ORDER_COLUMNS = (
    "supplier_id", "status", "subtotal", "tax_amount", "total_amount",
    "currency", "order_date", "delivery_date", "notes",
)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _money(value) -> str:
    return str(value if isinstance(value, Decimal) else Decimal(str(value)))


class Database:
    """Thin wrapper around an SQLite database file for ledger state."""

    def __init__(
        self,
        db_path: Path,
        po_number_prefix: str = "PO-",
        po_number_width: int = 5,
    ) -> None:
        self.db_path = db_path
        self.po_number_prefix = po_number_prefix
        self.po_number_width = po_number_width
        db_path.parent.mkdir(parents=True, exist_ok=True)
        self._init_schema()

    # ------------------------------------------------------------------
    # Connection management
    # ------------------------------------------------------------------

    @contextmanager
    def _conn(self):
        conn = sqlite3.connect(str(self.db_path), timeout=30)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA synchronous=NORMAL")
        conn.execute("PRAGMA foreign_keys=ON")
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _init_schema(self) -> None:
        with self._conn() as conn:
            conn.executescript(_SCHEMA)
        logger.debug("Database schema ready: %s", self.db_path)

    # ------------------------------------------------------------------
    # Suppliers
    # ------------------------------------------------------------------

    def insert_supplier(self, supplier_id: str, fields: dict) -> dict:
        """Insert a supplier row and return it."""
        now = _now()
        row = {col: fields.get(col) for col in _SUPPLIER_COLUMNS}
        row["is_gst_registered"] = 1 if fields.get("is_gst_registered", True) else 0
        row["status"] = fields.get("status") or "active"
        row.update(id=supplier_id, created_at=now, updated_at=now)

        cols = ", ".join(row)
        params = ", ".join(f":{c}" for c in row)
        with self._conn() as conn:
            conn.execute(f"INSERT INTO suppliers ({cols}) VALUES ({params})", row)
        logger.info("DB inserted supplier: %s (%s)", supplier_id, row["company_name"])
        return self.get_supplier(supplier_id)

    def update_supplier(self, supplier_id: str, fields: dict) -> bool:
        """Update the given supplier columns.  Returns True if the row was found."""
        updates = {k: v for k, v in fields.items() if k in _SUPPLIER_COLUMNS}
        if "is_gst_registered" in updates:
            updates["is_gst_registered"] = 1 if updates["is_gst_registered"] else 0
        updates["updated_at"] = _now()
        assignments = ", ".join(f"{k} = :{k}" for k in updates)
        with self._conn() as conn:
            conn.execute(
                f"UPDATE suppliers SET {assignments} WHERE id = :id",
                {**updates, "id": supplier_id},
            )
            return conn.execute("SELECT changes()").fetchone()[0] > 0

    def get_supplier(self, supplier_id: str) -> Optional[dict]:
        with self._conn() as conn:
            row = conn.execute(
                "SELECT * FROM suppliers WHERE id = ?", (supplier_id,)
            ).fetchone()
        return _supplier_dict(row) if row else None

    def list_suppliers(
        self,
        status: Optional[str] = None,
        search: Optional[str] = None,
        limit: int = 500,
        offset: int = 0,
    ) -> list[dict]:
        """
        Return suppliers ordered by company name.

        Args:
            status:  Filter by 'active' / 'inactive', or None for all.
            search:  Case-insensitive substring match on company_name, abn or email.
        """
        clauses: list[str] = []
        params: list = []
        if status:
            clauses.append("status = ?")
            params.append(status)
        if search:
            clauses.append("(company_name LIKE ? OR abn LIKE ? OR email LIKE ?)")
            like = f"%{search}%"
            params.extend([like, like, like])

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        params.extend([limit, offset])
        with self._conn() as conn:
            rows = conn.execute(
                f"""SELECT * FROM suppliers {where}
                    ORDER BY company_name COLLATE NOCASE ASC
                    LIMIT ? OFFSET ?""",
                params,
            ).fetchall()
        return [_supplier_dict(r) for r in rows]

    def count_orders_for_supplier(self, supplier_id: str) -> int:
        with self._conn() as conn:
            return conn.execute(
                "SELECT COUNT(*) FROM purchase_orders WHERE supplier_id = ?",
                (supplier_id,),
            ).fetchone()[0]

    def delete_supplier(self, supplier_id: str) -> bool:
        """
        Delete a supplier (and its contacts).

        Raises sqlite3.IntegrityError when purchase orders still reference it.
        """
        with self._conn() as conn:
            conn.execute("DELETE FROM suppliers WHERE id = ?", (supplier_id,))
            return conn.execute("SELECT changes()").fetchone()[0] > 0

    # ------------------------------------------------------------------
    # Supplier contacts
    # ------------------------------------------------------------------

    def insert_contact(self, contact_id: str, supplier_id: str, fields: dict) -> dict:
        now = _now()
        row = {col: fields.get(col) for col in _CONTACT_COLUMNS}
        row["is_primary"] = 1 if fields.get("is_primary") else 0
        row.update(id=contact_id, supplier_id=supplier_id, created_at=now, updated_at=now)

        cols = ", ".join(row)
        params = ", ".join(f":{c}" for c in row)
        with self._conn() as conn:
            if row["is_primary"]:
                # One primary contact per supplier
                conn.execute(
                    "UPDATE supplier_contacts SET is_primary = 0 WHERE supplier_id = ?",
                    (supplier_id,),
                )
            conn.execute(f"INSERT INTO supplier_contacts ({cols}) VALUES ({params})", row)
            saved = conn.execute(
                "SELECT * FROM supplier_contacts WHERE id = ?", (contact_id,)
            ).fetchone()
        return _contact_dict(saved)

    def list_contacts(self, supplier_id: str) -> list[dict]:
        """Return a supplier's contacts, primary contact first."""
        with self._conn() as conn:
            rows = conn.execute(
                """SELECT * FROM supplier_contacts WHERE supplier_id = ?
                   ORDER BY is_primary DESC, last_name COLLATE NOCASE, first_name COLLATE NOCASE""",
                (supplier_id,),
            ).fetchall()
        return [_contact_dict(r) for r in rows]

    def get_contact(self, contact_id: str) -> Optional[dict]:
        with self._conn() as conn:
            row = conn.execute(
                "SELECT * FROM supplier_contacts WHERE id = ?", (contact_id,)
            ).fetchone()
        return _contact_dict(row) if row else None

    def delete_contact(self, contact_id: str) -> bool:
        with self._conn() as conn:
            conn.execute("DELETE FROM supplier_contacts WHERE id = ?", (contact_id,))
            return conn.execute("SELECT changes()").fetchone()[0] > 0

    # ------------------------------------------------------------------
    # Purchase orders
    # ------------------------------------------------------------------

    def next_po_number(self) -> str:
        """Reserve and return the next PO number on its own."""
        with self._conn() as conn:
            return self._next_po_number(conn)

    def _next_po_number(self, conn: sqlite3.Connection) -> str:
        conn.execute(
            """INSERT INTO po_number_sequence (id, last_value) VALUES (1, 1)
               ON CONFLICT(id) DO UPDATE SET last_value = last_value + 1"""
        )
        value = conn.execute(
            "SELECT last_value FROM po_number_sequence WHERE id = 1"
        ).fetchone()[0]
        return f"{self.po_number_prefix}{value:0{self.po_number_width}d}"

    def insert_purchase_order(self, po_id: str, fields: dict, line_items: list[dict]) -> str:
        """
        Insert a purchase order with its line items in one transaction.

        The PO number is drawn from the sequence inside the same transaction.
        Returns the assigned PO number.
        """
        now = _now()
        row = {col: fields.get(col) for col in _ORDER_COLUMNS}
        for col in ("subtotal", "tax_amount", "total_amount"):
            row[col] = _money(row[col] or 0)
        row.update(id=po_id, created_at=now, updated_at=now)

        with self._conn() as conn:
            row["po_number"] = self._next_po_number(conn)
            cols = ", ".join(row)
            params = ", ".join(f":{c}" for c in row)
            conn.execute(f"INSERT INTO purchase_orders ({cols}) VALUES ({params})", row)
            self._write_line_items(conn, po_id, line_items, now)

        logger.info("DB inserted purchase order: %s  %s", row["po_number"], po_id)
        return row["po_number"]

    def update_purchase_order(
        self,
        po_id: str,
        fields: dict,
        line_items: Optional[list[dict]] = None,
    ) -> bool:
        """
        Update order columns and, when *line_items* is given, replace the
        order's line items, all in one transaction.  Returns True if found.
        """
        now = _now()
        updates = {k: v for k, v in fields.items() if k in _ORDER_COLUMNS}
        for col in ("subtotal", "tax_amount", "total_amount"):
            if col in updates:
                updates[col] = _money(updates[col])
        updates["updated_at"] = now
        assignments = ", ".join(f"{k} = :{k}" for k in updates)

        with self._conn() as conn:
            conn.execute(
                f"UPDATE purchase_orders SET {assignments} WHERE id = :id",
                {**updates, "id": po_id},
            )
            found = conn.execute("SELECT changes()").fetchone()[0] > 0
            if found and line_items is not None:
                conn.execute(
                    "DELETE FROM purchase_order_line_items WHERE purchase_order_id = ?",
                    (po_id,),
                )
                self._write_line_items(conn, po_id, line_items, now)
        return found

    def _write_line_items(
        self,
        conn: sqlite3.Connection,
        po_id: str,
        line_items: list[dict],
        now: str,
    ) -> None:
        conn.executemany(
            """INSERT INTO purchase_order_line_items (
                   id, purchase_order_id, position, item_description,
                   quantity, unit_price, line_total, notes, is_heading,
                   created_at, updated_at
               ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            [
                (
                    item["id"], po_id, position, item["description"],
                    item.get("quantity", 0),
                    _money(item.get("unit_price", 0)),
                    _money(item.get("line_total", 0)),
                    item.get("notes"),
                    1 if item.get("is_heading") else 0,
                    item.get("created_at") or now, now,
                )
                for position, item in enumerate(line_items)
            ],
        )

    def get_purchase_order(self, po_id: str) -> Optional[dict]:
        """Return the order row (with supplier name and GST flag) or None."""
        with self._conn() as conn:
            row = conn.execute(
                """SELECT po.*, s.company_name AS supplier_name,
                          s.is_gst_registered AS supplier_is_gst_registered
                   FROM purchase_orders po
                   JOIN suppliers s ON s.id = po.supplier_id
                   WHERE po.id = ?""",
                (po_id,),
            ).fetchone()
        if row is None:
            return None
        rec = dict(row)
        rec["supplier_is_gst_registered"] = bool(rec["supplier_is_gst_registered"])
        return rec

    def get_line_items(self, po_id: str) -> list[dict]:
        """Return an order's line items in entry order."""
        with self._conn() as conn:
            rows = conn.execute(
                """SELECT * FROM purchase_order_line_items
                   WHERE purchase_order_id = ?
                   ORDER BY position ASC""",
                (po_id,),
            ).fetchall()
        return [_line_item_dict(r) for r in rows]

    def list_purchase_orders(
        self,
        status: Optional[str] = None,
        supplier_id: Optional[str] = None,
        search: Optional[str] = None,
        limit: int = 500,
        offset: int = 0,
    ) -> list[dict]:
        """
        Return order summaries (no line items) ordered newest-first.

        Args:
            status:       Filter by status value, or None for all.
            supplier_id:  Only orders for this supplier.
            search:       Case-insensitive substring match on po_number,
                          supplier name or notes.
        """
        clauses: list[str] = []
        params: list = []
        if status:
            clauses.append("po.status = ?")
            params.append(status)
        if supplier_id:
            clauses.append("po.supplier_id = ?")
            params.append(supplier_id)
        if search:
            clauses.append("(po.po_number LIKE ? OR s.company_name LIKE ? OR po.notes LIKE ?)")
            like = f"%{search}%"
            params.extend([like, like, like])

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        params.extend([limit, offset])
        with self._conn() as conn:
            rows = conn.execute(
                f"""SELECT po.*, s.company_name AS supplier_name
                    FROM purchase_orders po
                    JOIN suppliers s ON s.id = po.supplier_id
                    {where}
                    ORDER BY po.created_at DESC, po.rowid DESC
                    LIMIT ? OFFSET ?""",
                params,
            ).fetchall()
        return [dict(r) for r in rows]

    def delete_purchase_order(self, po_id: str) -> bool:
        """Delete an order; its line items go with it (ON DELETE CASCADE)."""
        with self._conn() as conn:
            conn.execute("DELETE FROM purchase_orders WHERE id = ?", (po_id,))
            return conn.execute("SELECT changes()").fetchone()[0] > 0

    def get_stats(self) -> dict:
        """
        Dashboard figures.

        total_value sums total_amount over every order except voided ones;
        the addition is done in Decimal, not SQL REAL.
        """
        with self._conn() as conn:
            status_rows = conn.execute(
                "SELECT status, COUNT(*) AS n FROM purchase_orders GROUP BY status"
            ).fetchall()
            amounts = conn.execute(
                "SELECT total_amount FROM purchase_orders WHERE status != 'voided'"
            ).fetchall()
            active_suppliers = conn.execute(
                "SELECT COUNT(*) FROM suppliers WHERE status = 'active'"
            ).fetchone()[0]

        by_status = {r["status"]: r["n"] for r in status_rows}
        total_value = sum((Decimal(r["total_amount"]) for r in amounts), Decimal("0"))
        return {
            "total_pos":        sum(by_status.values()),
            "pending_approval": by_status.get("pending", 0),
            "total_value":      str(total_value),
            "active_suppliers": active_suppliers,
            "by_status":        by_status,
        }

    # ------------------------------------------------------------------
    # Activity log
    # ------------------------------------------------------------------

    def log_activity(
        self,
        entity_type: str,
        entity_id: Optional[str],
        action: str,
        description: str,
        actor: str = "system",
        old_values: Optional[dict] = None,
        new_values: Optional[dict] = None,
    ) -> None:
        """Append one entry to the activity log."""
        with self._conn() as conn:
            conn.execute(
                """INSERT INTO activity_log (
                       entity_type, entity_id, action, description, actor,
                       old_values, new_values, created_at
                   ) VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
                (
                    entity_type,
                    entity_id,
                    action,
                    description,
                    actor,
                    json.dumps(old_values, default=str) if old_values is not None else None,
                    json.dumps(new_values, default=str) if new_values is not None else None,
                    _now(),
                ),
            )

    def get_activity_log(self, entity_type: str, entity_id: str) -> list[dict]:
        """Return all activity for one entity, oldest first."""
        with self._conn() as conn:
            rows = conn.execute(
                """SELECT * FROM activity_log
                   WHERE entity_type = ? AND entity_id = ?
                   ORDER BY created_at ASC, id ASC""",
                (entity_type, entity_id),
            ).fetchall()
        return [_activity_dict(r) for r in rows]

    def get_recent_activity(self, limit: int = 200, offset: int = 0) -> list[dict]:
        """Return recent activity across all entities, newest first."""
        with self._conn() as conn:
            rows = conn.execute(
                """SELECT * FROM activity_log
                   ORDER BY created_at DESC, id DESC
                   LIMIT ? OFFSET ?""",
                (limit, offset),
            ).fetchall()
        return [_activity_dict(r) for r in rows]


# ------------------------------------------------------------------
# Row converters
# ------------------------------------------------------------------

def _supplier_dict(row: sqlite3.Row) -> dict:
    rec = dict(row)
    rec["is_gst_registered"] = bool(rec["is_gst_registered"])
    return rec


def _contact_dict(row: sqlite3.Row) -> dict:
    rec = dict(row)
    rec["is_primary"] = bool(rec["is_primary"])
    return rec


def _line_item_dict(row: sqlite3.Row) -> dict:
    rec = dict(row)
    rec["description"] = rec.pop("item_description")
    rec["is_heading"] = bool(rec["is_heading"])
    return rec


def _activity_dict(row: sqlite3.Row) -> dict:
    rec = dict(row)
    for key in ("old_values", "new_values"):
        if rec.get(key):
            rec[key] = json.loads(rec[key])
    return rec
