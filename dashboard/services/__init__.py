"""
Dashboard business logic services.
"""
from .export import (
    build_export_payload,
    render_export_xml,
    write_export,
    DEFAULT_EXPORT_XML_TEMPLATE,
)
from .pdf import render_purchase_order_pdf

__all__ = [
    "build_export_payload",
    "render_export_xml",
    "write_export",
    "DEFAULT_EXPORT_XML_TEMPLATE",
    "render_purchase_order_pdf",
]
