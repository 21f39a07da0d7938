"""
Pytest configuration and shared fixtures for the Asset Registry test suite.
"""
import os
import shutil
import tempfile
from datetime import date
from pathlib import Path
from typing import Generator

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
os.chdir(PROJECT_ROOT)

FIXED_TODAY = date(2024, 6, 30)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory for test files."""
    tmp_path = tempfile.mkdtemp(prefix="registry_test_")
    yield Path(tmp_path)
    shutil.rmtree(tmp_path, ignore_errors=True)


@pytest.fixture
def test_config(temp_dir: Path, monkeypatch) -> "Config":
    """Provide a test configuration with an isolated database and no settings file."""
    monkeypatch.setenv("CONFIG_DIR", str(temp_dir / "config"))
    from config import Config

    config = Config()
    config.db_path = temp_dir / "data" / "registry.db"
    config.cors_origins = ["*"]
    config.expose_errors = True
    return config


@pytest.fixture
def test_db(test_config) -> "Database":
    """Provide a migrated test database."""
    from registry.database import Database

    db = Database(test_config.db_path, timeout=5.0)
    db.migrate()
    return db


@pytest.fixture
def validator():
    """Validator whose 'today' is pinned for date-fallback assertions."""
    from registry.validator import DocumentValidator
    return DocumentValidator(today=lambda: FIXED_TODAY)


@pytest.fixture
def writer(test_db):
    from registry.writer import DocumentWriter
    return DocumentWriter(test_db)


@pytest.fixture
def service(test_db, validator):
    from registry.service import DocumentService
    return DocumentService(test_db, validator=validator)


@pytest.fixture
def client(test_config):
    """FastAPI TestClient bound to a fresh database."""
    from fastapi.testclient import TestClient
    from api.app import create_app

    with TestClient(create_app(test_config)) as c:
        yield c


@pytest.fixture
def sample_po() -> dict:
    """A purchase order as posted by the PO form."""
    return {
        "po_no": "PO-2024-001",
        "supplier": "Acme Office Supply",
        "po_date": "2024-01-05",
        "ref_no": "REF-77",
        "mode_of_procurement": "Small Value Procurement",
        "pr_no": "PR-2024-010",
        "pr_date": "01/02/2024",
        "delivery_place": "Main Campus Supply Office",
        "delivery_date": "2024-01-20",
        "payment_term": "30 days",
        "delivery_term": "FOB destination",
        "obligation_request_no": "OR-555",
        "total_amount": 999999,
        "items": [
            {"item_name": "Chair", "item_description": "Ergonomic office chair",
             "unit": "pc", "quantity": 4, "unit_cost": 2500},
            {"item_name": "Desk", "description": "Standing desk",
             "unit": "pc", "qty": "2", "unit_cost": "7,500.50"},
        ],
    }


@pytest.fixture
def sample_par() -> dict:
    """A PAR as posted by the PAR form."""
    return {
        "par_no": "PAR-2024-001",
        "entity_name": "College of Engineering",
        "date_acquired": "2024-02-14",
        "received_by": "Maria Santos",
        "position": "Administrative Officer",
        "department": "Engineering",
        "remarks": "For faculty room",
        "total_amount": 0,
        "items": [
            {"quantity": 1, "unit": "unit", "description": "Laptop",
             "property_number": "PN-0001", "date_acquired": "", "amount": 55000},
            {"quantity": 2, "unit": "unit", "description": "Monitor",
             "property_number": "PN-0002", "date_acquired": "2024-02-10", "amount": 8000},
        ],
    }


@pytest.fixture
def sample_item() -> dict:
    """An inventory item as posted by the inventory form."""
    return {
        "item_id": "EQ-0001",
        "item_name": "Projector",
        "brand_model": "Epson EB-X51",
        "serial_number": "X51-884421",
        "purchase_date": "2023-08-01",
        "warranty_expiration": "August 1, 2026",
        "assigned_to": "AV Office",
        "location": "Room 101",
        "condition": "Good",
        "notes": "",
    }


# Configure pytest markers
def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "api: API tests")
    config.addinivalue_line("markers", "slow: Slow tests")
