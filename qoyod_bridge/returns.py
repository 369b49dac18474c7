"""
Sales-return saga.

A return creates a credit note mirroring the original invoice's line items,
then either refunds cash from an account or allocates the credit note
against the invoice. It runs as an explicit state machine:

    LOOKUP_INVOICE -> RESOLVE_INVENTORY -> BUILD_LINE_ITEMS
        -> GENERATE_REFERENCE -> SUBMIT_CREDIT_NOTE -> REFUND | ALLOCATE -> DONE

Every state handler returns the next state. A handler that reaches a
terminal outcome stores it on the context and returns DONE. Failures before
the credit note exists are `error`; failures after it exists are `partial`,
because the operator has to finish the refund or allocation by hand.
"""
from __future__ import annotations
from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional
from loguru import logger

from .conventions import LedgerClock, amount_string, is_positive, to_decimal
from .exceptions import LedgerError, PreconditionUnmet
from .models import CreditNote, CreditNoteLine, LedgerRecord, LineItem, ReturnType, Status, WorkflowResult
from .resolvers import resolve_inventory_id
from .sequencer import ReferenceSequencer

DEFAULT_DESCRIPTION = "return"
APPROVED = "Approved"


class ReturnState(str, Enum):
    LOOKUP_INVOICE = "lookup_invoice"
    RESOLVE_INVENTORY = "resolve_inventory"
    BUILD_LINE_ITEMS = "build_line_items"
    GENERATE_REFERENCE = "generate_reference"
    SUBMIT_CREDIT_NOTE = "submit_credit_note"
    REFUND = "refund"
    ALLOCATE = "allocate"
    DONE = "done"


@dataclass
class ReturnContext:
    """Everything a return run learns on its way through the states."""
    reference: str
    return_type: ReturnType
    account_id: Optional[str] = None
    invoice: Optional[LedgerRecord] = None
    inventory_id: Optional[str] = None
    line_items: list[CreditNoteLine] = field(default_factory=list)
    credit_note_reference: Optional[str] = None
    credit_note: Optional[CreditNote] = None
    issue_date: Optional[str] = None
    result: Optional[WorkflowResult] = None
    history: list[ReturnState] = field(default_factory=list)


def build_line_item(item: LineItem) -> CreditNoteLine:
    """
    Mirror one invoice line on the credit note.

    Amount discount wins when positive, otherwise the percentage is sent.
    unit_type is copied verbatim; dropping it breaks unit-of-measure matching.
    A line without a quantity or unit price is refused rather than sent as zero.
    """
    if to_decimal(item.quantity) is None or to_decimal(item.unit_price) is None:
        raise PreconditionUnmet(f"line item {item.product_id or '?'} has no quantity or unit price")
    if is_positive(item.discount_amount):
        discount, discount_type = amount_string(item.discount_amount), "amount"
    else:
        discount, discount_type = amount_string(item.discount_percent), "percentage"

    return CreditNoteLine(
        product_id=item.product_id,
        description=item.description or DEFAULT_DESCRIPTION,
        unit_price=amount_string(item.unit_price),
        quantity=amount_string(item.quantity),
        tax_percent=amount_string(item.tax_percent),
        discount=discount,
        discount_type=discount_type,
        unit_type=item.unit_type,
    )


class ReturnWorkflow:
    """
    Runs the sales-return saga against the ledger.

    Usage:
        workflow = ReturnWorkflow(client)
        result = workflow.run("INV-100", "allocate")
    """

    def __init__(
        self,
        client,
        clock: Optional[LedgerClock] = None,
        sequencer: Optional[ReferenceSequencer] = None,
        default_inventory_id: Optional[str] = None,
        link_parent_invoice: bool = False,
    ):
        self.client = client
        self.clock = clock or LedgerClock()
        self.sequencer = sequencer or ReferenceSequencer(client, self.clock)
        self.default_inventory_id = default_inventory_id
        self.link_parent_invoice = link_parent_invoice
        self._handlers: dict[ReturnState, Callable[[ReturnContext], ReturnState]] = {
            ReturnState.LOOKUP_INVOICE: self._lookup_invoice,
            ReturnState.RESOLVE_INVENTORY: self._resolve_inventory,
            ReturnState.BUILD_LINE_ITEMS: self._build_line_items,
            ReturnState.GENERATE_REFERENCE: self._generate_reference,
            ReturnState.SUBMIT_CREDIT_NOTE: self._submit_credit_note,
            ReturnState.REFUND: self._refund,
            ReturnState.ALLOCATE: self._allocate,
        }

    def run(self, reference: str, return_type: ReturnType | str, account_id: Optional[str] = None) -> WorkflowResult:
        ctx = ReturnContext(
            reference=reference,
            return_type=ReturnType(return_type),
            account_id=str(account_id) if account_id not in (None, "") else None,
        )
        return self.execute(ctx).result

    def execute(self, ctx: ReturnContext) -> ReturnContext:
        """Drive the context from LOOKUP_INVOICE to DONE."""
        state = ReturnState.LOOKUP_INVOICE
        while state is not ReturnState.DONE:
            ctx.history.append(state)
            try:
                state = self._handlers[state](ctx)
            except PreconditionUnmet as e:
                logger.error(f"Return {ctx.reference} stopped at {state.value}: {e}")
                ctx.result = WorkflowResult(status=Status.ERROR, message=str(e))
                state = ReturnState.DONE
            except LedgerError as e:
                # Only reachable before the credit note exists; the branch states catch their own.
                logger.error(f"Return {ctx.reference} failed at {state.value}: {e}")
                ctx.result = WorkflowResult(status=Status.ERROR, message="return failed", details=e.details)
                state = ReturnState.DONE
        ctx.history.append(ReturnState.DONE)
        return ctx

    def _lookup_invoice(self, ctx: ReturnContext) -> ReturnState:
        matches = self.client.search_by_reference("invoices", ctx.reference)
        if not matches:
            ctx.result = WorkflowResult(status=Status.ERROR, message=f"invoice {ctx.reference} not found")
            return ReturnState.DONE
        # Search results may omit line items
        ctx.invoice = self.client.get_detail("invoices", matches[0].id)
        return ReturnState.RESOLVE_INVENTORY

    def _resolve_inventory(self, ctx: ReturnContext) -> ReturnState:
        inventory_id = resolve_inventory_id(ctx.invoice.raw)
        if inventory_id is None and self.default_inventory_id:
            logger.warning(
                f"Invoice {ctx.reference} has no inventory; using configured default {self.default_inventory_id}"
            )
            inventory_id = self.default_inventory_id
        if inventory_id is None:
            raise PreconditionUnmet(f"invoice {ctx.reference} has no inventory or location")
        ctx.inventory_id = inventory_id
        return ReturnState.BUILD_LINE_ITEMS

    def _build_line_items(self, ctx: ReturnContext) -> ReturnState:
        if not ctx.invoice.line_items:
            raise PreconditionUnmet(f"invoice {ctx.reference} has no line items")
        if ctx.return_type is ReturnType.REFUND and not ctx.account_id:
            raise PreconditionUnmet("a refund needs an account to pay from")
        ctx.line_items = [build_line_item(item) for item in ctx.invoice.line_items]
        return ReturnState.GENERATE_REFERENCE

    def _generate_reference(self, ctx: ReturnContext) -> ReturnState:
        original = ctx.invoice.reference or ctx.reference
        ctx.credit_note_reference = self.sequencer.next_reference(original)
        return ReturnState.SUBMIT_CREDIT_NOTE

    def _submit_credit_note(self, ctx: ReturnContext) -> ReturnState:
        ctx.issue_date = self.clock.today()
        payload = {
            "contact_id": ctx.invoice.contact_id,
            "reference": ctx.credit_note_reference,
            "issue_date": ctx.issue_date,
            "status": APPROVED,
            "inventory_id": ctx.inventory_id,
            "line_items": [li.model_dump(exclude_none=True) for li in ctx.line_items],
        }
        if self.link_parent_invoice:
            payload["parent_id"] = ctx.invoice.id

        credit_note = self.client.create_credit_note(payload)
        if not credit_note.id:
            ctx.result = WorkflowResult(
                status=Status.ERROR,
                message="ledger did not return a credit note id",
                reference=ctx.credit_note_reference,
                details=credit_note.raw,
            )
            return ReturnState.DONE

        ctx.credit_note = credit_note
        logger.info(f"Created credit note {ctx.credit_note_reference} (id {credit_note.id}) for {ctx.reference}")
        if not credit_note.total_amount:
            ctx.result = self._partial(ctx, "ledger did not return the credit note total", credit_note.raw)
            return ReturnState.DONE
        return ReturnState.REFUND if ctx.return_type is ReturnType.REFUND else ReturnState.ALLOCATE

    def _refund(self, ctx: ReturnContext) -> ReturnState:
        amount = ctx.credit_note.total_amount
        try:
            self.client.create_refund_payment(
                ctx.credit_note.id,
                ctx.account_id,
                amount,
                ctx.issue_date,
                reference=f"REFUND-{ctx.credit_note_reference}",
            )
        except LedgerError as e:
            ctx.result = self._partial(ctx, "refund failed", e.details)
            return ReturnState.DONE
        ctx.result = self._success(ctx, f"returned and refunded {amount}")
        return ReturnState.DONE

    def _allocate(self, ctx: ReturnContext) -> ReturnState:
        amount = ctx.credit_note.total_amount
        try:
            self.client.create_allocation(ctx.credit_note.id, ctx.invoice.id, amount, ctx.issue_date)
        except LedgerError as e:
            ctx.result = self._partial(ctx, "allocation failed", e.details)
            return ReturnState.DONE
        ctx.result = self._success(ctx, f"returned and allocated {amount} to {ctx.reference}")
        return ReturnState.DONE

    def _success(self, ctx: ReturnContext, message: str) -> WorkflowResult:
        logger.info(f"Return {ctx.reference}: {message} ({ctx.credit_note_reference})")
        return WorkflowResult(
            status=Status.SUCCESS,
            message=f"{message} | reference: {ctx.credit_note_reference}",
            amount=ctx.credit_note.total_amount,
            date=ctx.issue_date,
            reference=ctx.credit_note_reference,
            credit_note_id=ctx.credit_note.id,
        )

    def _partial(self, ctx: ReturnContext, what: str, details) -> WorkflowResult:
        logger.warning(
            f"Return {ctx.reference}: credit note {ctx.credit_note_reference} created but {what}: {details}"
        )
        return WorkflowResult(
            status=Status.PARTIAL,
            message=f"credit note {ctx.credit_note_reference} created but {what}",
            details=details,
            amount=ctx.credit_note.total_amount,
            date=ctx.issue_date,
            reference=ctx.credit_note_reference,
            credit_note_id=ctx.credit_note.id,
        )
