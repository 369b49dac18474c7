"""
Apply a payment to an invoice (sales) or bill (purchase) by business reference.

A record already in the paid state is skipped, so re-running the same
reference after a success never pays twice.
"""
from __future__ import annotations
from typing import Any, Optional
from loguru import logger

from .conventions import LedgerClock, amount_string, is_positive, to_decimal
from .exceptions import LedgerError
from .models import BusinessType, Status, WorkflowResult


class PaymentWorkflow:

    def __init__(self, client, clock: Optional[LedgerClock] = None, paid_status: str = "Paid"):
        self.client = client
        self.clock = clock or LedgerClock()
        self.paid_status = paid_status

    def run(
        self,
        kind: BusinessType | str,
        reference: str,
        account_id: str,
        force_amount: Any = None,
        force_date: Optional[str] = None,
    ) -> WorkflowResult:
        kind = BusinessType(kind)
        resource = kind.resource

        try:
            matches = self.client.search_by_reference(resource, reference)
        except LedgerError as e:
            logger.error(f"Search for {resource} {reference} failed: {e}")
            return WorkflowResult(status=Status.ERROR, message="ledger lookup failed", details=e.details)

        if not matches:
            return WorkflowResult(status=Status.NOT_FOUND, message=f"{reference} not found")

        record = matches[0]
        if record.status == self.paid_status:
            logger.info(f"{reference} already paid, skipping")
            return WorkflowResult(status=Status.SKIPPED, message=f"{reference} is already paid")

        if force_amount is not None and is_positive(force_amount):
            amount = amount_string(force_amount)
        elif to_decimal(record.due_amount) is None:
            logger.error(f"{reference} has no due amount in the ledger, not paying")
            return WorkflowResult(status=Status.ERROR, message="ledger did not report a due amount")
        else:
            amount = amount_string(record.due_amount)
        date = force_date or self.clock.today()
        payment_reference = self.clock.payment_reference()

        submit = (
            self.client.create_invoice_payment
            if kind is BusinessType.SALES
            else self.client.create_bill_payment
        )
        try:
            submit(record.id, str(account_id), amount, date, payment_reference)
        except LedgerError as e:
            logger.error(f"Payment for {reference} rejected: {e.details}")
            return WorkflowResult(status=Status.ERROR, message="payment rejected by ledger", details=e.details)

        logger.info(f"Paid {amount} on {reference} ({date}) as {payment_reference}")
        return WorkflowResult(
            status=Status.SUCCESS,
            message=f"payment applied to {reference}",
            amount=amount,
            date=date,
            reference=payment_reference,
        )
