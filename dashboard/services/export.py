"""
Export service for purchase order documents.
"""
from datetime import datetime, timezone
from pathlib import Path

from jinja2 import BaseLoader, Environment, FileSystemLoader

from config import Config
from models.purchase_order import PurchaseOrder
from models.supplier import Supplier
from ordering.totals import format_currency

# Default XML export template
DEFAULT_EXPORT_XML_TEMPLATE = """\
<?xml version="1.0" encoding="UTF-8"?>
<!--
  Purchase order export template. Edit config/export_template.xml.j2 to customise.
  Template engine : Jinja2  (https://jinja.palletsprojects.com/)
  Values are XML-escaped automatically.  Use | safe only for trusted markup.

  Top-level variables available in every export:
    exported_at   ISO-8601 UTC timestamp
    company       dict: name, address, phone, email
    supplier      dict: supplier fields plus address_lines
    order         dict: order fields, totals as strings, line_items list
-->
<PurchaseOrder>
  <Meta>
    <ExportedAt>{{ exported_at }}</ExportedAt>
    <Company>{{ company.name }}</Company>
  </Meta>

  <Supplier>
    <Id>{{ supplier.id }}</Id>
    <Name>{{ supplier.company_name }}</Name>
    {% if supplier.abn %}<ABN>{{ supplier.abn }}</ABN>
    {% endif %}
    <GSTRegistered>{{ supplier.is_gst_registered | string | lower }}</GSTRegistered>
    {% if supplier.email %}<Email>{{ supplier.email }}</Email>
    {% endif %}
    {% if supplier.phone %}<Phone>{{ supplier.phone }}</Phone>
    {% endif %}
    {% for line in supplier.address_lines %}<AddressLine>{{ line }}</AddressLine>
    {% endfor %}
  </Supplier>

  <OrderDetails>
    <PONumber>{{ order.po_number }}</PONumber>
    <Status>{{ order.status }}</Status>
    <Currency>{{ order.currency }}</Currency>
    {% if order.order_date %}<OrderDate>{{ order.order_date }}</OrderDate>
    {% endif %}
    {% if order.delivery_date %}<DeliveryDate>{{ order.delivery_date }}</DeliveryDate>
    {% endif %}
    <Subtotal>{{ order.subtotal }}</Subtotal>
    <TaxAmount>{{ order.tax_amount }}</TaxAmount>
    <Total>{{ order.total_amount }}</Total>
    {% if order.notes %}<Notes>{{ order.notes }}</Notes>
    {% endif %}
  </OrderDetails>

  {% if order.line_items %}
  <LineItems>
    {% for item in order.line_items %}
    {% if item.is_heading %}
    <Heading number="{{ loop.index }}">{{ item.description }}</Heading>
    {% else %}
    <LineItem number="{{ loop.index }}">
      <Description>{{ item.description }}</Description>
      <Quantity>{{ item.quantity }}</Quantity>
      <UnitPrice>{{ item.unit_price }}</UnitPrice>
      <LineTotal>{{ item.line_total }}</LineTotal>
      {% if item.notes %}<Notes>{{ item.notes }}</Notes>
      {% endif %}
    </LineItem>
    {% endif %}
    {% endfor %}
  </LineItems>
  {% endif %}

</PurchaseOrder>
"""


def build_export_payload(order: PurchaseOrder, supplier: Supplier, config: Config) -> dict:
    """
    Build the template context for one purchase order.

    Money values are rendered as plain two-decimal strings; display_* keys
    carry the "$1,234.50" form for human-facing documents.
    """
    order_data = order.model_dump(mode="json")
    for key in ("subtotal", "tax_amount", "total_amount"):
        order_data[f"display_{key}"] = format_currency(getattr(order, key))
    for item, raw in zip(order_data["line_items"], order.line_items):
        item["display_unit_price"] = format_currency(raw.unit_price)
        item["display_line_total"] = format_currency(raw.line_total or 0)

    supplier_data = supplier.model_dump(mode="json")
    supplier_data["address_lines"] = supplier.address_lines

    return {
        "exported_at": datetime.now(timezone.utc).isoformat(),
        "company": {
            "name":    config.company_name,
            "address": config.company_address,
            "phone":   config.company_phone,
            "email":   config.company_email,
        },
        "supplier": supplier_data,
        "order": order_data,
    }


def render_export_xml(payload: dict, template_file: Path | None = None) -> str:
    """
    Render *payload* as XML using the operator template (or built-in default).

    Args:
        payload: The export data dictionary
        template_file: Optional path to custom Jinja2 template file
    """
    if template_file and template_file.exists():
        env = Environment(
            loader=FileSystemLoader(str(template_file.parent)),
            autoescape=True,
            keep_trailing_newline=True,
        )
        tmpl = env.get_template(template_file.name)
    else:
        env = Environment(loader=BaseLoader(), autoescape=True, keep_trailing_newline=True)
        tmpl = env.from_string(DEFAULT_EXPORT_XML_TEMPLATE)
    return tmpl.render(**payload)


def write_export(order: PurchaseOrder, supplier: Supplier, config: Config) -> Path:
    """Render the order to EXPORT_DIR/<po_number>.xml and return the path."""
    config.ensure_output_dir()
    xml = render_export_xml(
        build_export_payload(order, supplier, config),
        config.export_template_path,
    )
    out_path = Path(config.export_dir) / f"{order.po_number}.xml"
    out_path.write_text(xml, encoding="utf-8")
    return out_path
