"""
Qoyod Bridge - payment application and sales returns against the Qoyod ledger.

The ledger is the system of record; this package only reads, transforms and
writes through its REST API.

Key Features:
- Preview an invoice or bill by reference with normalized contact/user/warehouse names
- Idempotent payment of invoices and bills (paid records are skipped)
- Sales returns: credit note mirroring the invoice, then refund or allocation
- Partial outcomes surfaced with the credit note reference for manual follow-up

Usage:
    # HTTP service
    python -m qoyod_bridge

    # Operator diagnostics
    python -m qoyod_bridge.debug test-connection
"""

__version__ = "1.0.0"

from .config import BridgeConfig
from .client import LedgerClient
from .exceptions import LedgerError, PreconditionUnmet
from .payments import PaymentWorkflow
from .returns import ReturnWorkflow
from .sequencer import ReferenceSequencer

__all__ = [
    "BridgeConfig",
    "LedgerClient",
    "LedgerError",
    "PreconditionUnmet",
    "PaymentWorkflow",
    "ReturnWorkflow",
    "ReferenceSequencer",
    "__version__",
]
