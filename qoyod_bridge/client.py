"""
Qoyod Ledger API client.

Thin typed facade over the REST API. The requests.Session carrying the
API key is built once at process start and injected, so a test double can
stand in for it. No call is retried here; callers decide what is recoverable.
"""
from __future__ import annotations
from typing import Any, Optional
import requests
from loguru import logger

from .config import BridgeConfig
from .exceptions import LedgerError
from .models import Account, Allocation, CreditNote, LedgerRecord, Payment
from .resolvers import CONTACT_RESOURCE, DETAIL_ENVELOPE, text_or_none, unwrap

DEFAULT_HEADERS = {
    "Content-Type": "application/json",
    "Accept": "application/json",
    "User-Agent": "qoyod-bridge/1.0",
}

SEARCHABLE = ("invoices", "bills")

MAX_PAGES = 200

PAYMENT_ENDPOINTS = {
    "invoices": ("/invoice_payments", "invoice_payment", "invoice_id"),
    "bills": ("/bill_payments", "bill_payment", "bill_id"),
}


def build_session(api_key: str) -> requests.Session:
    session = requests.Session()
    session.headers.update(DEFAULT_HEADERS)
    session.headers["API-KEY"] = api_key
    return session


class LedgerClient:
    """
    HTTP client for the Qoyod 2.0 API.

    Usage:
        with LedgerClient(config) as client:
            invoices = client.search_by_reference("invoices", "INV-100")
    """

    def __init__(self, config: Optional[BridgeConfig] = None, session: Optional[requests.Session] = None):
        self.config = config or BridgeConfig.from_env()
        self.base_url = self.config.ledger_base_url.rstrip("/")
        self.timeout = self.config.request_timeout
        self.session = session or build_session(self.config.api_key)

    def _request(
        self,
        method: str,
        path: str,
        params: Optional[dict[str, Any]] = None,
        payload: Optional[dict[str, Any]] = None,
    ) -> Any:
        url = f"{self.base_url}/{path.lstrip('/')}"
        try:
            r = self.session.request(method, url, params=params, json=payload, timeout=self.timeout)
        except requests.RequestException as e:
            logger.error(f"Ledger {method} {path} failed: {e}")
            raise LedgerError(f"Ledger request failed: {e}", body=str(e)) from e

        if not 200 <= r.status_code < 300:
            body = self._error_body(r)
            logger.warning(f"Ledger {method} {path} returned {r.status_code}: {body}")
            raise LedgerError(f"Ledger returned HTTP {r.status_code}", status_code=r.status_code, body=body)

        if not r.content:
            return {}
        try:
            return r.json()
        except ValueError as e:
            raise LedgerError(
                f"Ledger returned non-JSON body for {method} {path}",
                status_code=r.status_code,
                body=r.text,
            ) from e

    @staticmethod
    def _error_body(response: requests.Response) -> Any:
        try:
            return response.json()
        except ValueError:
            return response.text

    def _get(self, path: str, params: Optional[dict[str, Any]] = None) -> Any:
        return self._request("GET", path, params=params)

    def _post(self, path: str, payload: dict[str, Any]) -> Any:
        return self._request("POST", path, payload=payload)

    @staticmethod
    def _list(data: Any, name: str) -> list[dict[str, Any]]:
        items = data.get(name) if isinstance(data, dict) else None
        return [i for i in items or [] if isinstance(i, dict)]

    # Reads

    def list_accounts(self) -> list[Account]:
        return [Account.from_payload(a) for a in self._list(self._get("/accounts"), "accounts")]

    def search_by_reference(self, resource: str, reference: str) -> list[LedgerRecord]:
        """Exact-reference search on invoices or bills."""
        if resource not in SEARCHABLE:
            raise ValueError(f"Unknown resource: {resource}. Valid: {list(SEARCHABLE)}")
        data = self._get(f"/{resource}", params={"q[reference_eq]": reference})
        return [LedgerRecord.from_payload(d) for d in self._list(data, resource)]

    def get_detail(self, resource: str, record_id: str) -> LedgerRecord:
        """Full record by id; only the detail view is guaranteed to carry line items."""
        if resource not in SEARCHABLE:
            raise ValueError(f"Unknown resource: {resource}. Valid: {list(SEARCHABLE)}")
        data = self._get(f"/{resource}/{record_id}")
        detail = unwrap(data, DETAIL_ENVELOPE[resource])
        if not isinstance(detail, dict):
            raise LedgerError(f"Unexpected detail body for {resource}/{record_id}", body=data)
        return LedgerRecord.from_payload(detail)

    def get_contact(self, kind: str, contact_id: str) -> dict[str, Any]:
        """Customer (sales) or vendor (purchase) record."""
        resource = CONTACT_RESOURCE.get(kind)
        if resource is None:
            raise ValueError(f"Unknown business type: {kind}")
        data = self._get(f"/{resource}/{contact_id}")
        contact = unwrap(data, DETAIL_ENVELOPE[resource])
        return contact if isinstance(contact, dict) else {}

    def list_credit_notes(self) -> list[CreditNote]:
        """
        Every credit note, walking `page=1, 2, ...`.

        Stops at an empty page, or at a page holding nothing new, which is
        what a ledger that ignores the page parameter returns.
        """
        notes: list[CreditNote] = []
        seen: set[tuple] = set()
        for page in range(1, MAX_PAGES + 1):
            rows = self._list(self._get("/credit_notes", params={"page": page}), "credit_notes")
            keys = {(text_or_none(r.get("id")), text_or_none(r.get("reference"))) for r in rows}
            if not rows or keys <= seen:
                break
            seen |= keys
            notes.extend(CreditNote.from_payload(r) for r in rows)
        else:
            logger.warning(f"Stopped listing credit notes after {MAX_PAGES} pages")
        return notes

    # Writes

    def create_credit_note(self, payload: dict[str, Any]) -> CreditNote:
        data = self._post("/credit_notes", {"credit_note": payload})
        created = unwrap(data, DETAIL_ENVELOPE["credit_notes"])
        return CreditNote.from_payload(created if isinstance(created, dict) else {})

    def create_allocation(
        self,
        credit_note_id: str,
        invoice_id: str,
        amount: str,
        date: Optional[str] = None,
    ) -> Allocation:
        allocation = {
            "allocatee_type": "Invoice",
            "allocatee_id": str(invoice_id),
            "amount": amount,
        }
        if date:
            allocation["date"] = date
        data = self._post(f"/credit_notes/{credit_note_id}/allocations", {"allocation": allocation})
        return Allocation.from_payload(unwrap(data, ("allocation",)) if isinstance(data, dict) else {})

    def create_refund_payment(
        self,
        credit_note_id: str,
        account_id: str,
        amount: str,
        date: str,
        reference: Optional[str] = None,
    ) -> Payment:
        body = {
            "credit_note_id": str(credit_note_id),
            "account_id": str(account_id),
            "amount": amount,
            "date": date,
        }
        if reference:
            body["reference"] = reference
        data = self._post("/credit_note_payments", {"credit_note_payment": body})
        return Payment.from_payload(unwrap(data, ("credit_note_payment", "payment")) if isinstance(data, dict) else {})

    def _create_document_payment(
        self,
        resource: str,
        document_id: str,
        account_id: str,
        amount: str,
        date: str,
        reference: str,
    ) -> Payment:
        endpoint, envelope, id_key = PAYMENT_ENDPOINTS[resource]
        body = {
            "reference": reference,
            id_key: str(document_id),
            "account_id": str(account_id),
            "date": date,
            "amount": amount,
        }
        data = self._post(endpoint, {envelope: body})
        return Payment.from_payload(unwrap(data, (envelope, "payment")) if isinstance(data, dict) else {})

    def create_invoice_payment(self, invoice_id: str, account_id: str, amount: str, date: str, reference: str) -> Payment:
        return self._create_document_payment("invoices", invoice_id, account_id, amount, date, reference)

    def create_bill_payment(self, bill_id: str, account_id: str, amount: str, date: str, reference: str) -> Payment:
        return self._create_document_payment("bills", bill_id, account_id, amount, date, reference)

    def test_connection(self) -> dict:
        """
        Liveness probe against the ledger.

        Raises LedgerError when the ledger cannot be reached or rejects the key.
        """
        data = self._get("/accounts")
        return {"status": "connected", "url": self.base_url, "count": len(self._list(data, "accounts"))}

    def close(self):
        """Close the session."""
        self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
