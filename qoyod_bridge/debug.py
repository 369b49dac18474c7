"""
Diagnostic commands for operators.

Usage:
    python -m qoyod_bridge.debug test-connection
    python -m qoyod_bridge.debug accounts
    python -m qoyod_bridge.debug preview sales INV-100
    python -m qoyod_bridge.debug next-reference INV-100
"""
from __future__ import annotations
import argparse
import json
import sys
from typing import Optional
from loguru import logger

from .client import LedgerClient
from .config import BridgeConfig, configure_logging
from .exceptions import LedgerError
from .lookups import list_payment_accounts, preview
from .models import BusinessType
from .sequencer import format_reference, next_from_references


class BridgeDebugger:
    """
    Read-only inspection of what the bridge sees in the ledger.

    None of these commands create or change ledger records.
    """

    def __init__(self, config: Optional[BridgeConfig] = None, client: Optional[LedgerClient] = None):
        self.config = config or BridgeConfig.from_env()
        self.client = client or LedgerClient(self.config)

    def test_connection(self) -> dict:
        result = self.client.test_connection()
        print("\n=== Ledger Connection Test ===")
        print(f"URL: {result['url']}")
        print(f"Accounts visible: {result['count']}")
        return result

    def accounts(self) -> list[dict]:
        rows = list_payment_accounts(self.client)
        print(f"\n=== Payment Accounts ({len(rows)}) ===")
        for row in rows:
            print(f"  {row['id']:>8}  {row['name']}")
        return rows

    def preview(self, kind: str, reference: str) -> dict:
        result = preview(self.client, BusinessType(kind), reference).to_response()
        print(json.dumps(result, indent=2, ensure_ascii=False))
        return result

    def next_reference(self, reference: str) -> str:
        # Lists directly so a ledger failure surfaces instead of the timestamp fallback
        notes = self.client.list_credit_notes()
        crn = format_reference(next_from_references(n.reference for n in notes), reference)
        print(crn)
        return crn

    def close(self):
        self.client.close()


def main(argv: Optional[list[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Qoyod bridge diagnostics")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable verbose logging")
    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("test-connection", help="Check the API key against the ledger")
    subparsers.add_parser("accounts", help="List payment-eligible accounts")

    preview_parser = subparsers.add_parser("preview", help="Show the normalized view of an invoice or bill")
    preview_parser.add_argument("type", choices=[t.value for t in BusinessType])
    preview_parser.add_argument("ref", help="Invoice or bill reference")

    next_ref_parser = subparsers.add_parser("next-reference", help="Show the credit-note reference a return would use")
    next_ref_parser.add_argument("ref", help="Original invoice reference")

    args = parser.parse_args(argv)

    if not args.command:
        parser.print_help()
        return 1

    config = BridgeConfig.from_env()
    if args.verbose:
        config.log_level = "DEBUG"
    configure_logging(config)

    debugger = BridgeDebugger(config)
    try:
        if args.command == "test-connection":
            debugger.test_connection()
        elif args.command == "accounts":
            debugger.accounts()
        elif args.command == "preview":
            result = debugger.preview(args.type, args.ref)
            return 0 if result["status"] == "found" else 1
        elif args.command == "next-reference":
            debugger.next_reference(args.ref)
    except LedgerError as e:
        logger.error(f"Ledger error: {e} {e.details}")
        return 1
    finally:
        debugger.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
