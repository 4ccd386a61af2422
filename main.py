#!/usr/bin/env python3
"""
Purchase Order Ledger — CLI entry point.

Usage examples:
  python main.py init                               # Create the database and output folders
  python main.py serve --port 8080                  # Run the dashboard API
  python main.py import-suppliers suppliers.csv     # Bulk-load suppliers
  python main.py stats                              # Dashboard counts and total value
  python main.py totals lines.csv --gst             # Preview totals for a CSV of line items
  python main.py status <po-id> approved            # Move an order to a new status
  python main.py void <po-id>                       # Void a non-draft order
  python main.py export <po-id> --pdf               # Write XML (and PDF) to the export folder
  python main.py backup                             # Zip the database and settings
"""
import logging
import sys
from pathlib import Path

import click

from config import Config
from dashboard.services.export import write_export
from dashboard.services.pdf import render_purchase_order_pdf
from ordering.backup import BackupService
from ordering.csv_manager import csv_manager
from ordering.errors import PurchaseOrderError, ValidationError
from ordering.service import PurchaseOrderService
from ordering.totals import compute_totals, format_currency
from ordering.validator import OrderValidator


def _setup_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s  %(levelname)-8s  %(name)s — %(message)s",
        datefmt="%H:%M:%S",
    )
    # Quieten noisy third-party loggers
    logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
    logging.getLogger("reportlab").setLevel(logging.WARNING)


def _fail(exc: PurchaseOrderError) -> None:
    click.echo(f"✗ {exc}", err=True)
    if isinstance(exc, ValidationError):
        for issue in exc.issues:
            where = f" [{issue.field}]" if issue.field else ""
            click.echo(f"    {issue.code}{where}: {issue.message}", err=True)
    sys.exit(1)


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
@click.pass_context
def cli(ctx: click.Context, verbose: bool) -> None:
    """Purchase Order Ledger — suppliers, orders, GST totals and status control."""
    ctx.ensure_object(dict)
    ctx.obj["verbose"] = verbose
    _setup_logging(verbose)


def _service() -> PurchaseOrderService:
    config = Config()
    config.ensure_output_dir()
    return PurchaseOrderService(config)


# --------------------------------------------------------------------
# init / serve
# --------------------------------------------------------------------

@cli.command()
def init() -> None:
    """Create output folders and the ledger database."""
    svc = _service()
    click.echo(f"✓ Database ready: {svc.config.db_path}")
    click.echo(f"✓ Export folder:  {svc.config.export_dir}")


@cli.command()
@click.option("--host", default="127.0.0.1", show_default=True)
@click.option("--port", default=8000, show_default=True, type=int)
@click.option("--reload", is_flag=True, help="Reload on code changes (development)")
def serve(host: str, port: int, reload: bool) -> None:
    """Run the dashboard API with uvicorn."""
    import uvicorn

    uvicorn.run("dashboard.app:app", host=host, port=port, reload=reload)


# --------------------------------------------------------------------
# import-suppliers command
# --------------------------------------------------------------------

@cli.command("import-suppliers")
@click.argument("csv_path", type=click.Path(exists=True, dir_okay=False))
@click.option("--dry-run", is_flag=True, help="Validate rows without saving")
def import_suppliers(csv_path: str, dry_run: bool) -> None:
    """
    Load suppliers from a CSV file.

    Columns: company_name, abn, email, phone, website, address_line_1,
    address_line_2, city, state, postal_code, is_gst_registered, status.
    Rows that fail validation are reported and skipped.
    """
    svc = _service()
    rows = csv_manager.load_suppliers(Path(csv_path))
    imported = failed = 0

    for line_no, row in enumerate(rows, start=2):     # row 1 is the header
        if dry_run:
            click.echo(f"  row {line_no}: {row.get('company_name', '?')}")
            continue
        try:
            supplier = svc.create_supplier(row, actor="csv-import")
        except ValidationError as exc:
            failed += 1
            click.echo(f"  ✗ row {line_no}: {exc}", err=True)
            continue
        imported += 1
        gst = "GST" if supplier.is_gst_registered else "no GST"
        click.echo(f"  ✓ {supplier.company_name} ({gst})")

    if dry_run:
        click.echo(f"\n{len(rows)} row(s) read, nothing saved (dry run)")
        return
    click.echo(f"\n{imported} imported, {failed} failed")
    if failed:
        sys.exit(1)


# --------------------------------------------------------------------
# stats / totals
# --------------------------------------------------------------------

@cli.command()
def stats() -> None:
    """Print dashboard counts and total order value."""
    data = _service().dashboard_stats()
    click.echo("\n=== Purchase Order Ledger ===\n")
    click.echo(f"  Purchase orders:    {data['total_pos']}")
    click.echo(f"  Pending approval:   {data['pending_approval']}")
    click.echo(f"  Active suppliers:   {data['active_suppliers']}")
    click.echo(f"  Total value:        {format_currency(data['total_value'])}")
    if data["by_status"]:
        click.echo()
        for status, count in sorted(data["by_status"].items()):
            click.echo(f"    {status:<12} {count}")
    click.echo()


@cli.command()
@click.argument("csv_path", type=click.Path(exists=True, dir_okay=False))
@click.option("--gst/--no-gst", default=True, show_default=True,
              help="Whether the supplier is GST registered")
def totals(csv_path: str, gst: bool) -> None:
    """
    Preview order totals for a CSV of line items without saving anything.

    Columns: description, quantity, unit_price, notes, is_heading.
    """
    rows = csv_manager.load_line_items(Path(csv_path))
    try:
        items = OrderValidator().parse_line_items(rows)
    except ValidationError as exc:
        _fail(exc)
        return

    for item in items:
        if item.is_heading:
            click.echo(f"  {item.description}")
        else:
            click.echo(
                f"    {item.description:<40} {item.quantity:>6} × "
                f"{format_currency(item.unit_price):>12} = {format_currency(item.line_total):>12}"
            )

    result = compute_totals(items, gst).rounded()
    click.echo()
    click.echo(f"  Subtotal:  {format_currency(result.subtotal):>14}")
    click.echo(f"  GST:       {format_currency(result.tax_amount):>14}")
    click.echo(f"  Total:     {format_currency(result.total_amount):>14}")


# --------------------------------------------------------------------
# status / void / delete
# --------------------------------------------------------------------

@cli.command()
@click.argument("po_id")
@click.argument("new_status")
def status(po_id: str, new_status: str) -> None:
    """Move a purchase order to NEW_STATUS."""
    try:
        order = _service().change_status(po_id, new_status, actor="cli")
    except PurchaseOrderError as exc:
        _fail(exc)
        return
    click.echo(f"✓ {order.po_number} is now {order.status}")


@cli.command()
@click.argument("po_id")
def void(po_id: str) -> None:
    """Void a non-draft purchase order."""
    try:
        order = _service().void_purchase_order(po_id, actor="cli")
    except PurchaseOrderError as exc:
        _fail(exc)
        return
    click.echo(f"✓ {order.po_number} voided")


@cli.command()
@click.argument("po_id")
@click.confirmation_option(prompt="Permanently delete this draft purchase order?")
def delete(po_id: str) -> None:
    """Permanently delete a draft purchase order."""
    try:
        _service().delete_purchase_order(po_id, actor="cli")
    except PurchaseOrderError as exc:
        _fail(exc)
        return
    click.echo(f"✓ Deleted {po_id}")


# --------------------------------------------------------------------
# export command
# --------------------------------------------------------------------

@cli.command()
@click.argument("po_id")
@click.option("--pdf", "with_pdf", is_flag=True, help="Also write a PDF copy")
def export(po_id: str, with_pdf: bool) -> None:
    """Write the purchase order XML (and optionally PDF) to the export folder."""
    svc = _service()
    try:
        order = svc.get_purchase_order(po_id)
        supplier = svc.get_supplier(order.supplier_id)
    except PurchaseOrderError as exc:
        _fail(exc)
        return

    xml_path = write_export(order, supplier, svc.config)
    click.echo(f"✓ XML: {xml_path}")
    if with_pdf:
        pdf_path = Path(svc.config.export_dir) / f"{order.po_number}.pdf"
        pdf_path.write_bytes(render_purchase_order_pdf(order, supplier, svc.config))
        click.echo(f"✓ PDF: {pdf_path}")


# --------------------------------------------------------------------
# backup command
# --------------------------------------------------------------------

@cli.command()
def backup() -> None:
    """
    Create a timestamped backup of the database and config files.
    """
    config = Config()
    try:
        zip_path = BackupService(config).create_backup()
    except Exception as e:
        click.echo(f"\n✗ Backup failed: {e}", err=True)
        sys.exit(1)
    click.echo(f"✓ Backup successful: {zip_path}")


if __name__ == "__main__":
    cli()
