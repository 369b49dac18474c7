"""
Shared fixtures: a mocked ledger client, a fixed clock and sample payloads.
"""
from datetime import datetime, timezone
from unittest.mock import Mock
import pytest

from qoyod_bridge.client import LedgerClient
from qoyod_bridge.config import BridgeConfig
from qoyod_bridge.conventions import LedgerClock


@pytest.fixture
def config(tmp_path):
    return BridgeConfig(
        ledger_base_url="https://ledger.test/2.0",
        api_key="test-key",
        app_password=None,
        static_dir=str(tmp_path / "no-static"),
        default_inventory_id=None,
        link_parent_invoice=False,
    )


@pytest.fixture
def client():
    """Ledger client double restricted to LedgerClient's attribute names."""
    return Mock(spec=LedgerClient)


@pytest.fixture
def clock():
    # 22:30 UTC is already the next day in the ledger's UTC+3
    return LedgerClock(3, now=lambda: datetime(2026, 10, 19, 22, 30, tzinfo=timezone.utc))


@pytest.fixture
def invoice_payload():
    """Detail view of a sales invoice with two lines."""
    return {
        "id": 42,
        "reference": "INV-100",
        "contact_id": 7,
        "status": "Approved",
        "issue_date": "2026-10-01",
        "due_amount": "230.0",
        "total_amount": "230.0",
        "inventory_id": 3,
        "line_items": [
            {
                "product_id": 11,
                "description": "Cement bag",
                "quantity": "2.0",
                "unit_price": "50.0",
                "discount_amount": "10.0",
                "discount_percent": "5.0",
                "tax_percent": "15.0",
                "unit_type": 4,
            },
            {
                "product_id": 12,
                "description": None,
                "quantity": "1.0",
                "unit_price": "130.0",
                "discount_amount": "0.0",
                "discount_percent": "10.0",
                "tax_percent": "15.0",
                "unit_type_id": "9",
            },
        ],
    }
