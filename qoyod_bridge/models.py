from __future__ import annotations
from enum import Enum
from typing import Any, Optional
from pydantic import BaseModel, Field

from .resolvers import (
    CONTACT_ID,
    TOTAL_AMOUNT,
    UNIT_TYPE,
    first_present,
    resolve_account_name,
    text_or_none,
)


class Status(str, Enum):
    SUCCESS = "success"
    ERROR = "error"
    PARTIAL = "partial"
    SKIPPED = "skipped"
    NOT_FOUND = "not_found"
    FOUND = "found"


class BusinessType(str, Enum):
    SALES = "sales"
    PURCHASE = "purchase"

    @property
    def resource(self) -> str:
        return "invoices" if self is BusinessType.SALES else "bills"


class ReturnType(str, Enum):
    REFUND = "refund"
    ALLOCATE = "allocate"


class LineItem(BaseModel):
    product_id: str | None = None
    description: str | None = None
    quantity: str | None = None
    unit_price: str | None = None
    discount_amount: str | None = None
    discount_percent: str | None = None
    tax_percent: str | None = None
    unit_type: str | None = None
    inventory_id: str | None = None

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> "LineItem":
        return cls(
            product_id=text_or_none(data.get("product_id")),
            description=text_or_none(data.get("description")),
            quantity=text_or_none(data.get("quantity")),
            unit_price=text_or_none(data.get("unit_price")),
            discount_amount=text_or_none(data.get("discount_amount")),
            discount_percent=text_or_none(data.get("discount_percent")),
            tax_percent=text_or_none(data.get("tax_percent")),
            unit_type=text_or_none(first_present(data, UNIT_TYPE)),
            inventory_id=text_or_none(data.get("inventory_id")),
        )


class LedgerRecord(BaseModel):
    """An invoice or bill as returned by the ledger, plus the raw payload for fallback chains."""
    id: str
    reference: str | None = None
    contact_id: str | None = None
    status: str | None = None
    issue_date: str | None = None
    due_amount: str | None = None
    total_amount: str | None = None
    inventory_id: str | None = None
    location_id: str | None = None
    line_items: list[LineItem] = Field(default_factory=list)
    raw: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> "LedgerRecord":
        return cls(
            id=text_or_none(data.get("id")) or "",
            reference=text_or_none(data.get("reference")),
            contact_id=text_or_none(first_present(data, CONTACT_ID)),
            status=text_or_none(data.get("status")),
            issue_date=text_or_none(data.get("issue_date")),
            due_amount=text_or_none(data.get("due_amount")),
            total_amount=text_or_none(data.get("total_amount")),
            inventory_id=text_or_none(data.get("inventory_id")),
            location_id=text_or_none(data.get("location_id")),
            line_items=[LineItem.from_payload(li) for li in data.get("line_items") or [] if isinstance(li, dict)],
            raw=data,
        )


class CreditNoteLine(BaseModel):
    """A credit-note line as submitted; exactly one discount representation is sent."""
    product_id: str | None = None
    description: str
    unit_price: str
    quantity: str
    tax_percent: str
    discount: str
    discount_type: str
    unit_type: str | None = None


class CreditNote(BaseModel):
    id: str | None = None
    reference: str | None = None
    contact_id: str | None = None
    issue_date: str | None = None
    status: str | None = None
    inventory_id: str | None = None
    total_amount: str | None = None
    raw: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> "CreditNote":
        return cls(
            id=text_or_none(data.get("id")),
            reference=text_or_none(data.get("reference")),
            contact_id=text_or_none(first_present(data, CONTACT_ID)),
            issue_date=text_or_none(data.get("issue_date")),
            status=text_or_none(data.get("status")),
            inventory_id=text_or_none(data.get("inventory_id")),
            total_amount=text_or_none(first_present(data, TOTAL_AMOUNT)),
            raw=data,
        )


class Allocation(BaseModel):
    id: str | None = None
    amount: str | None = None
    raw: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> "Allocation":
        return cls(id=text_or_none(data.get("id")), amount=text_or_none(data.get("amount")), raw=data)


class Payment(BaseModel):
    id: str | None = None
    reference: str | None = None
    account_id: str | None = None
    amount: str | None = None
    date: str | None = None
    raw: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> "Payment":
        return cls(
            id=text_or_none(data.get("id")),
            reference=text_or_none(data.get("reference")),
            account_id=text_or_none(data.get("account_id")),
            amount=text_or_none(data.get("amount")),
            date=text_or_none(data.get("date")),
            raw=data,
        )


class Account(BaseModel):
    id: str
    code: str | None = None
    name: str
    raw: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> "Account":
        return cls(
            id=text_or_none(data.get("id")) or "",
            code=text_or_none(data.get("code")),
            name=resolve_account_name(data),
            raw=data,
        )


class WorkflowResult(BaseModel):
    """Outcome of a payment or return run, serialized as the HTTP response body."""
    status: Status
    message: str
    details: Any = None
    amount: str | None = None
    date: str | None = None
    reference: str | None = None
    credit_note_id: str | None = None

    def to_response(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class PreviewResult(BaseModel):
    status: Status
    message: str | None = None
    id: str | None = None
    ref: str | None = None
    contact: str | None = None
    issue_date: str | None = None
    total: str | None = None
    due: str | None = None
    inv_status: str | None = None
    user_name: str | None = None
    inventory_name: str | None = None
    details: Any = None

    def to_response(self) -> dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)
