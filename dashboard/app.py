"""
Purchase Order Ledger Dashboard — FastAPI backend.

JSON API for suppliers, purchase orders and their line items.  Every write
goes through PurchaseOrderService, so totals, the status guard and the
activity log behave identically here and in the CLI.

Endpoints
---------
  GET    /api/health                                → liveness probe
  GET    /api/stats                                 → dashboard counts and total value
  GET    /api/activity                              → recent activity log entries
  GET    /api/suppliers                             → list (supports ?status= and ?search=)
  POST   /api/suppliers                             → create supplier
  GET    /api/suppliers/{id}                        → one supplier with contacts
  PATCH  /api/suppliers/{id}                        → update supplier details
  DELETE /api/suppliers/{id}                        → delete (only when no orders reference it)
  POST   /api/suppliers/{id}/contacts               → add a contact
  DELETE /api/contacts/{id}                         → remove a contact
  GET    /api/purchase-orders                       → list (?status=, ?supplier_id=, ?search=)
  POST   /api/purchase-orders                       → create draft order
  GET    /api/purchase-orders/{id}                  → full order with line items
  PATCH  /api/purchase-orders/{id}                  → edit fields / replace line items
  PATCH  /api/purchase-orders/{id}/status           → status transition
  POST   /api/purchase-orders/{id}/void             → void a non-draft order
  DELETE /api/purchase-orders/{id}                  → delete a draft order
  GET    /api/purchase-orders/{id}/activity         → activity log for one order
  POST   /api/purchase-orders/{id}/line-items       → append a line item
  PATCH  /api/purchase-orders/{id}/line-items/{li}  → edit a line item
  DELETE /api/purchase-orders/{id}/line-items/{li}  → remove a line item
  GET    /api/purchase-orders/{id}/export.xml       → XML export document
  GET    /api/purchase-orders/{id}/pdf              → printable PDF
"""
import logging
from typing import Optional

from fastapi import FastAPI, Query, Request
from fastapi.responses import JSONResponse, Response

from config import Config
from ordering.errors import NotFoundError, PreconditionFailed, ValidationError
from ordering.service import PurchaseOrderService
from ordering.status_guard import allowed_next_statuses

from dashboard.models import (
    ContactCreate,
    LineItemIn,
    LineItemUpdate,
    PurchaseOrderCreate,
    PurchaseOrderUpdate,
    StatusUpdate,
    SupplierCreate,
    SupplierUpdate,
)
from dashboard.services.export import build_export_payload, render_export_xml
from dashboard.services.pdf import render_purchase_order_pdf

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Service (opened lazily on first request so importing the app never touches
# the filesystem)
# ---------------------------------------------------------------------------
_service: Optional[PurchaseOrderService] = None


def get_service() -> PurchaseOrderService:
    global _service
    if _service is None:
        config = Config()
        config.ensure_output_dir()
        _service = PurchaseOrderService(config)
    return _service


# ---------------------------------------------------------------------------
# App
# ---------------------------------------------------------------------------
app = FastAPI(title="Purchase Order Ledger", docs_url=None, redoc_url=None)


# ── Error mapping ────────────────────────────────────────────────────────────

@app.exception_handler(NotFoundError)
def _not_found(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


@app.exception_handler(PreconditionFailed)
def _precondition_failed(request: Request, exc: PreconditionFailed):
    return JSONResponse(status_code=409, content={"detail": str(exc)})


@app.exception_handler(ValidationError)
def _validation_failed(request: Request, exc: ValidationError):
    return JSONResponse(
        status_code=422,
        content={
            "detail": str(exc),
            "issues": [issue.model_dump() for issue in exc.issues],
        },
    )


def _actor(request: Request) -> str:
    return request.headers.get("X-Actor") or "dashboard"


def _order_response(order) -> dict:
    data = order.model_dump(mode="json")
    data["allowed_statuses"] = list(allowed_next_statuses(order.status))
    return data


# ── Routes ───────────────────────────────────────────────────────────────────

@app.get("/api/health")
def health():
    config = get_service().config
    return {
        "status":     "ok",
        "db_path":    str(config.db_path),
        "db_exists":  config.db_path.exists(),
        "export_dir": str(config.export_dir),
    }


@app.get("/api/stats")
def stats():
    return get_service().dashboard_stats()


@app.get("/api/activity")
def recent_activity(
    limit: int = Query(default=200, le=2000),
    offset: int = Query(default=0, ge=0),
):
    return [e.model_dump() for e in get_service().recent_activity(limit=limit, offset=offset)]


# ── Suppliers ────────────────────────────────────────────────────────────────

@app.get("/api/suppliers")
def list_suppliers(
    status: Optional[str] = Query(default=None),
    search: Optional[str] = Query(default=None),
    limit: int = Query(default=500, le=2000),
    offset: int = Query(default=0, ge=0),
):
    return [
        s.model_dump()
        for s in get_service().list_suppliers(
            status=status or None, search=search or None, limit=limit, offset=offset,
        )
    ]


@app.post("/api/suppliers", status_code=201)
def create_supplier(body: SupplierCreate, request: Request):
    supplier = get_service().create_supplier(body.model_dump(), actor=_actor(request))
    return supplier.model_dump()


@app.get("/api/suppliers/{supplier_id}")
def get_supplier(supplier_id: str):
    svc = get_service()
    supplier = svc.get_supplier(supplier_id)
    return {
        **supplier.model_dump(),
        "contacts": [c.model_dump() for c in svc.list_contacts(supplier_id)],
    }


@app.patch("/api/suppliers/{supplier_id}")
def update_supplier(supplier_id: str, body: SupplierUpdate, request: Request):
    changes = body.model_dump(exclude_unset=True)
    return get_service().update_supplier(supplier_id, changes, actor=_actor(request)).model_dump()


@app.delete("/api/suppliers/{supplier_id}")
def delete_supplier(supplier_id: str, request: Request):
    get_service().delete_supplier(supplier_id, actor=_actor(request))
    return {"id": supplier_id, "deleted": True}


@app.post("/api/suppliers/{supplier_id}/contacts", status_code=201)
def add_contact(supplier_id: str, body: ContactCreate, request: Request):
    contact = get_service().add_contact(supplier_id, body.model_dump(), actor=_actor(request))
    return contact.model_dump()


@app.delete("/api/contacts/{contact_id}")
def delete_contact(contact_id: str, request: Request):
    get_service().delete_contact(contact_id, actor=_actor(request))
    return {"id": contact_id, "deleted": True}


# ── Purchase orders ──────────────────────────────────────────────────────────

@app.get("/api/purchase-orders")
def list_purchase_orders(
    status: Optional[str] = Query(default=None),
    supplier_id: Optional[str] = Query(default=None),
    search: Optional[str] = Query(default=None),
    limit: int = Query(default=500, le=2000),
    offset: int = Query(default=0, ge=0),
):
    return [
        o.model_dump(mode="json", exclude={"line_items"})
        for o in get_service().list_purchase_orders(
            status=status or None,
            supplier_id=supplier_id or None,
            search=search or None,
            limit=limit,
            offset=offset,
        )
    ]


@app.post("/api/purchase-orders", status_code=201)
def create_purchase_order(body: PurchaseOrderCreate, request: Request):
    order = get_service().create_purchase_order(
        body.supplier_id,
        [item.model_dump() for item in body.line_items],
        order_date=body.order_date,
        delivery_date=body.delivery_date,
        notes=body.notes,
        currency=body.currency,
        actor=_actor(request),
    )
    return _order_response(order)


@app.get("/api/purchase-orders/{po_id}")
def get_purchase_order(po_id: str):
    return _order_response(get_service().get_purchase_order(po_id))


@app.patch("/api/purchase-orders/{po_id}")
def update_purchase_order(po_id: str, body: PurchaseOrderUpdate, request: Request):
    """
    Edit an order.  Only the fields present in the body change; line_items,
    when present, replaces the whole list.  Status has its own endpoint.
    """
    changes = body.model_dump(exclude_unset=True)
    if "line_items" in changes:
        changes["line_items"] = [item.model_dump() for item in body.line_items or []]
    order = get_service().update_purchase_order(po_id, changes, actor=_actor(request))
    return _order_response(order)


@app.patch("/api/purchase-orders/{po_id}/status")
def update_status(po_id: str, body: StatusUpdate, request: Request):
    """
    Move an order to a new status.
    (Voiding goes through /void so the reason is recorded as a void.)
    """
    order = get_service().change_status(po_id, body.status, actor=_actor(request))
    return _order_response(order)


@app.post("/api/purchase-orders/{po_id}/void")
def void_purchase_order(po_id: str, request: Request):
    return _order_response(get_service().void_purchase_order(po_id, actor=_actor(request)))


@app.delete("/api/purchase-orders/{po_id}")
def delete_purchase_order(po_id: str, request: Request):
    """Permanently delete a draft order.  Anything else must be voided."""
    get_service().delete_purchase_order(po_id, actor=_actor(request))
    return {"id": po_id, "deleted": True}


@app.get("/api/purchase-orders/{po_id}/activity")
def order_activity(po_id: str):
    svc = get_service()
    svc.get_purchase_order(po_id)
    return [e.model_dump() for e in svc.activity_for("purchase_order", po_id)]


# ── Line items ───────────────────────────────────────────────────────────────

@app.post("/api/purchase-orders/{po_id}/line-items", status_code=201)
def add_line_item(po_id: str, body: LineItemIn, request: Request):
    order = get_service().add_line_item(po_id, body.model_dump(), actor=_actor(request))
    return _order_response(order)


@app.patch("/api/purchase-orders/{po_id}/line-items/{item_id}")
def update_line_item(po_id: str, item_id: str, body: LineItemUpdate, request: Request):
    order = get_service().update_line_item(
        po_id, item_id, body.model_dump(exclude_unset=True), actor=_actor(request),
    )
    return _order_response(order)


@app.delete("/api/purchase-orders/{po_id}/line-items/{item_id}")
def remove_line_item(po_id: str, item_id: str, request: Request):
    order = get_service().remove_line_item(po_id, item_id, actor=_actor(request))
    return _order_response(order)


# ── Documents ────────────────────────────────────────────────────────────────

@app.get("/api/purchase-orders/{po_id}/export.xml")
def export_xml(po_id: str):
    svc = get_service()
    order = svc.get_purchase_order(po_id)
    supplier = svc.get_supplier(order.supplier_id)
    xml = render_export_xml(
        build_export_payload(order, supplier, svc.config),
        svc.config.export_template_path,
    )
    return Response(
        content=xml,
        media_type="application/xml",
        headers={"Content-Disposition": f'attachment; filename="{order.po_number}.xml"'},
    )


@app.get("/api/purchase-orders/{po_id}/pdf")
def purchase_order_pdf(po_id: str):
    svc = get_service()
    order = svc.get_purchase_order(po_id)
    supplier = svc.get_supplier(order.supplier_id)
    pdf = render_purchase_order_pdf(order, supplier, svc.config)
    return Response(
        content=pdf,
        media_type="application/pdf",
        headers={"Content-Disposition": f'inline; filename="{order.po_number}.pdf"'},
    )
