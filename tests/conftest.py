"""
Pytest configuration and shared fixtures for the ledger test suite.
"""
import os
import shutil
import tempfile
from pathlib import Path
from typing import Generator

import pytest

PROJECT_ROOT = Path(__file__).parent.parent
os.chdir(PROJECT_ROOT)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory for test files."""
    tmp_path = tempfile.mkdtemp(prefix="ledger_test_")
    yield Path(tmp_path)
    shutil.rmtree(tmp_path, ignore_errors=True)


@pytest.fixture
def test_config(temp_dir: Path, monkeypatch) -> "Config":
    """Provide a test configuration with isolated directories."""
    from config import Config

    # Keep any real config/ledger_settings.json out of the tests
    monkeypatch.setenv("CONFIG_DIR", str(temp_dir / "config"))

    config = Config()
    config.output_dir = temp_dir / "output"
    config.export_dir = temp_dir / "output" / "export"
    config.db_path = temp_dir / "output" / "ledger.db"
    config.backup_dir = temp_dir / "backups"
    config.ensure_output_dir()
    return config


@pytest.fixture
def test_db(test_config) -> "Database":
    """Provide a test database instance."""
    from ordering.database import Database
    return Database(test_config.db_path)


@pytest.fixture
def service(test_config, test_db) -> "PurchaseOrderService":
    """Provide a service wired to the isolated test database."""
    from ordering.service import PurchaseOrderService
    return PurchaseOrderService(test_config, db=test_db)


@pytest.fixture
def gst_supplier(service):
    """A GST-registered supplier."""
    return service.create_supplier({
        "company_name": "Capral Aluminium",
        "abn": "78 004 213 692",
        "email": "orders@capral.example",
        "address_line_1": "71 Ashburn Road",
        "city": "Bundamba",
        "state": "QLD",
        "postal_code": "4304",
    })


@pytest.fixture
def non_gst_supplier(service):
    """A supplier that is not registered for GST."""
    return service.create_supplier({
        "company_name": "Joe's Glazing",
        "is_gst_registered": False,
    })


@pytest.fixture
def sample_line_items() -> list[dict]:
    """Two priced rows under a heading: subtotal 27.50."""
    return [
        {"description": "Frames", "is_heading": True},
        {"description": "Sash window 600x900", "quantity": 2, "unit_price": "10.00"},
        {"description": "Flyscreen", "quantity": 3, "unit_price": "2.50"},
    ]


@pytest.fixture
def draft_order(service, gst_supplier, sample_line_items):
    """A saved draft order against the GST-registered supplier."""
    return service.create_purchase_order(
        gst_supplier.id,
        sample_line_items,
        order_date="2024-03-01",
        delivery_date="2024-03-15",
    )


# Configure pytest markers
def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "api: API tests")
