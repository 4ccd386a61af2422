"""
Purchase order PDF rendering.
"""
import io
import logging
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from config import Config
from models.purchase_order import PurchaseOrder
from models.supplier import Supplier
from ordering.totals import format_currency

logger = logging.getLogger(__name__)

_HEADER_BG = colors.HexColor("#34495E")
_STRIPE_BG = colors.HexColor("#ECF0F1")
_HEADING_BG = colors.HexColor("#D5DBDB")


def _para(text: str, style) -> Paragraph:
    # Paragraph markup is XML; user text must be escaped
    return Paragraph(escape(text or "").replace("\n", "<br/>"), style)


def _totals_rows(order: PurchaseOrder, supplier: Supplier) -> list[list[str]]:
    # GST-registered suppliers always get a GST row, even when it rounds to $0.00
    rows = [["", "", "", "Subtotal", format_currency(order.subtotal)]]
    if supplier.is_gst_registered or order.tax_amount:
        rows.append(["", "", "", "GST (10%)", format_currency(order.tax_amount)])
    rows.append(["", "", "", "Total", format_currency(order.total_amount)])
    return rows


def render_purchase_order_pdf(order: PurchaseOrder, supplier: Supplier, config: Config) -> bytes:
    """
    Render a printable purchase order and return the PDF bytes.

    Heading rows span the table and carry no amounts.  The GST row follows the
    supplier's registration, so unregistered suppliers get a document without
    a misleading GST line.
    """
    buf = io.BytesIO()
    doc = SimpleDocTemplate(
        buf, pagesize=A4,
        leftMargin=18 * mm, rightMargin=18 * mm,
        topMargin=18 * mm, bottomMargin=18 * mm,
        title=f"Purchase Order {order.po_number}",
    )
    styles = getSampleStyleSheet()
    title_style = ParagraphStyle(
        "POTitle", parent=styles["Heading1"],
        fontSize=18, textColor=_HEADER_BG, spaceAfter=6,
    )
    normal = styles["Normal"]
    small = ParagraphStyle("Small", parent=normal, fontSize=8, leading=10)

    elements = [
        Paragraph(f"<b>Purchase Order {escape(order.po_number)}</b>", title_style),
    ]

    company_block = "\n".join(
        p for p in (config.company_name, config.company_address,
                    config.company_phone, config.company_email) if p
    )
    supplier_lines = [supplier.company_name]
    if supplier.abn:
        supplier_lines.append(f"ABN {supplier.abn}")
    supplier_lines.extend(supplier.address_lines)
    if supplier.email:
        supplier_lines.append(supplier.email)

    header = Table(
        [[_para(company_block, normal), _para("\n".join(supplier_lines), normal)]],
        colWidths=[87 * mm, 87 * mm],
    )
    header.setStyle(TableStyle([("VALIGN", (0, 0), (-1, -1), "TOP")]))
    elements.extend([header, Spacer(1, 6 * mm)])

    meta = [
        f"<b>Status:</b> {escape(order.status.title())}",
        f"<b>Order date:</b> {escape(order.order_date or '-')}",
        f"<b>Delivery date:</b> {escape(order.delivery_date or '-')}",
        f"<b>Currency:</b> {escape(order.currency)}",
    ]
    elements.extend([Paragraph("<br/>".join(meta), normal), Spacer(1, 6 * mm)])

    table_data = [["#", "Description", "Qty", "Unit price", "Line total"]]
    heading_rows = []
    number = 0
    for item in order.line_items:
        if item.is_heading:
            heading_rows.append(len(table_data))
            table_data.append([Paragraph(f"<b>{escape(item.description)}</b>", normal), "", "", "", ""])
            continue
        number += 1
        description = escape(item.description)
        if item.notes:
            description += f'<br/><font size="7" color="#7F8C8D">{escape(item.notes)}</font>'
        table_data.append([
            str(number),
            Paragraph(description, small),
            str(item.quantity),
            format_currency(item.unit_price),
            format_currency(item.line_total or 0),
        ])

    last_item_row = len(table_data) - 1
    table_data.extend(_totals_rows(order, supplier))

    style = [
        ("BACKGROUND", (0, 0), (-1, 0), _HEADER_BG),
        ("TEXTCOLOR", (0, 0), (-1, 0), colors.whitesmoke),
        ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
        ("FONTSIZE", (0, 0), (-1, -1), 8),
        ("ALIGN", (2, 1), (-1, -1), "RIGHT"),
        ("VALIGN", (0, 0), (-1, -1), "MIDDLE"),
        ("GRID", (0, 0), (-1, last_item_row), 0.5, colors.grey),
        ("ROWBACKGROUNDS", (0, 1), (-1, last_item_row), [colors.white, _STRIPE_BG]),
        ("LINEABOVE", (3, last_item_row + 1), (-1, last_item_row + 1), 1.5, colors.black),
        ("FONTNAME", (3, -1), (-1, -1), "Helvetica-Bold"),
    ]
    for row in heading_rows:
        style.append(("SPAN", (0, row), (-1, row)))
        style.append(("BACKGROUND", (0, row), (-1, row), _HEADING_BG))

    table = Table(
        table_data,
        colWidths=[10 * mm, 94 * mm, 16 * mm, 27 * mm, 27 * mm],
        repeatRows=1,
    )
    table.setStyle(TableStyle(style))
    elements.append(table)

    if order.notes:
        elements.extend([Spacer(1, 6 * mm), Paragraph("<b>Notes</b>", normal), _para(order.notes, normal)])

    doc.build(elements)
    logger.debug("Rendered PDF for %s (%d line items)", order.po_number, len(order.line_items))
    return buf.getvalue()
