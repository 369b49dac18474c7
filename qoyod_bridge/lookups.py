"""
Read-only views for the operator screen: invoice/bill preview and the list
of accounts a payment can be posted from.
"""
from __future__ import annotations
from typing import Iterable
from loguru import logger

from .exceptions import LedgerError
from .models import Account, BusinessType, PreviewResult, Status
from .resolvers import resolve_contact_name, resolve_inventory_name, resolve_user_name

# Cash and bank accounts: chart codes 1101/1102 or a bank/cash keyword (English or Arabic)
PAYMENT_KEYWORDS = ("1101", "1102", "bank", "cash", "بنك", "نقد", "صندوق", "عهدة")
# Inventory and receivables sit near cash in the chart but never take payments
EXCLUDED_KEYWORDS = ("مخزون", "مدينون", "inventory", "receivable")


def is_payment_account(account: Account) -> bool:
    name = account.name.lower()
    if any(word in name for word in EXCLUDED_KEYWORDS):
        return False
    return any(word in name for word in PAYMENT_KEYWORDS)


def filter_payment_accounts(accounts: Iterable[Account]) -> list[Account]:
    """Payment-eligible accounts, or every account when the heuristics match none."""
    accounts = list(accounts)
    eligible = [a for a in accounts if is_payment_account(a)]
    return eligible or accounts


def list_payment_accounts(client) -> list[dict]:
    """Raises LedgerError when the chart of accounts cannot be read."""
    accounts = filter_payment_accounts(client.list_accounts())
    return [{"id": a.id, "name": a.name} for a in accounts]


def preview(client, kind: BusinessType | str, reference: str) -> PreviewResult:
    """
    Normalized summary of an invoice (sales) or bill (purchase).

    The detail view and the contact lookup are both best-effort; the search
    result alone is enough to answer.
    """
    kind = BusinessType(kind)
    resource = kind.resource
    try:
        matches = client.search_by_reference(resource, reference)
    except LedgerError as e:
        logger.error(f"Preview search for {resource} {reference} failed: {e}")
        return PreviewResult(status=Status.ERROR, message="ledger connection error", details=e.details)

    if not matches:
        return PreviewResult(status=Status.NOT_FOUND, message=f"{reference} not found")

    record = matches[0]
    try:
        record = client.get_detail(resource, record.id)
    except LedgerError as e:
        logger.debug(f"Detail fetch for {resource}/{record.id} failed, using search result: {e}")

    raw = record.raw
    return PreviewResult(
        status=Status.FOUND,
        id=record.id,
        ref=record.reference,
        contact=resolve_contact_name(client, kind.value, raw),
        issue_date=record.issue_date,
        total=record.total_amount,
        due=record.due_amount,
        inv_status=record.status,
        user_name=resolve_user_name(raw),
        inventory_name=resolve_inventory_name(raw),
    )
