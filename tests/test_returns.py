"""
Tests for the sales-return state machine.
"""
import pytest

from qoyod_bridge.exceptions import LedgerError, PreconditionUnmet
from qoyod_bridge.models import CreditNote, LedgerRecord, LineItem, ReturnType, Status
from qoyod_bridge.returns import ReturnContext, ReturnState, ReturnWorkflow, build_line_item


@pytest.fixture
def ledger(client, invoice_payload):
    """Ledger holding INV-100 and no credit notes yet."""
    client.search_by_reference.return_value = [
        LedgerRecord.from_payload({"id": 42, "reference": "INV-100"})
    ]
    client.get_detail.return_value = LedgerRecord.from_payload(invoice_payload)
    client.list_credit_notes.return_value = []
    client.create_credit_note.return_value = CreditNote(id="900", reference="CRN1-INV-100", total_amount="230.0")
    return client


def submitted_payload(client):
    return client.create_credit_note.call_args.args[0]


class TestBuildLineItem:

    def test_amount_discount_takes_precedence(self):
        line = build_line_item(LineItem(discount_amount="10", discount_percent="5", unit_price="1", quantity="1"))
        assert line.discount_type == "amount"
        assert line.discount == "10"

    def test_percentage_when_amount_is_zero(self):
        line = build_line_item(LineItem(discount_amount="0.0", discount_percent="5", unit_price="1", quantity="1"))
        assert line.discount_type == "percentage"
        assert line.discount == "5"

    def test_defaults(self):
        line = build_line_item(LineItem(product_id="11", quantity="1", unit_price="20"))
        assert line.description == "return"
        assert line.tax_percent == "0.0"
        assert line.discount == "0.0"
        assert line.discount_type == "percentage"
        assert line.unit_type is None
        assert "unit_type" not in line.model_dump(exclude_none=True)

    @pytest.mark.parametrize("missing", ["quantity", "unit_price"])
    def test_refuses_line_without_amounts(self, missing):
        fields = {"product_id": "11", "quantity": "1", "unit_price": "20"}
        fields.pop(missing)
        with pytest.raises(PreconditionUnmet):
            build_line_item(LineItem(**fields))


class TestReturnAllocate:

    def test_allocate_example(self, ledger, clock):
        """INV-100 with two lines and no CRN history becomes CRN1-INV-100, then allocated."""
        result = ReturnWorkflow(ledger, clock).run("INV-100", "allocate", "5")

        assert result.status == Status.SUCCESS
        assert result.reference == "CRN1-INV-100"
        assert result.credit_note_id == "900"
        ledger.get_detail.assert_called_once_with("invoices", "42")
        ledger.create_allocation.assert_called_once_with("900", "42", "230.0", "2026-10-20")
        ledger.create_refund_payment.assert_not_called()

    def test_credit_note_payload(self, ledger, clock):
        ReturnWorkflow(ledger, clock).run("INV-100", "allocate", "5")

        payload = submitted_payload(ledger)
        assert payload["reference"] == "CRN1-INV-100"
        assert payload["contact_id"] == "7"
        assert payload["issue_date"] == "2026-10-20"
        assert payload["status"] == "Approved"
        assert payload["inventory_id"] == "3"
        assert "parent_id" not in payload
        assert payload["line_items"] == [
            {
                "product_id": "11",
                "description": "Cement bag",
                "unit_price": "50.0",
                "quantity": "2.0",
                "tax_percent": "15.0",
                "discount": "10.0",
                "discount_type": "amount",
                "unit_type": "4",
            },
            {
                "product_id": "12",
                "description": "return",
                "unit_price": "130.0",
                "quantity": "1.0",
                "tax_percent": "15.0",
                "discount": "10.0",
                "discount_type": "percentage",
                "unit_type": "9",
            },
        ]

    def test_unit_type_survives_from_unit_id(self, ledger, clock, invoice_payload):
        invoice_payload["line_items"][0].pop("unit_type")
        invoice_payload["line_items"][0]["unit_id"] = "box"
        ledger.get_detail.return_value = LedgerRecord.from_payload(invoice_payload)

        ReturnWorkflow(ledger, clock).run("INV-100", "allocate")

        lines = submitted_payload(ledger)["line_items"]
        assert [li["unit_type"] for li in lines] == ["box", "9"]

    def test_allocation_failure_is_partial(self, ledger, clock):
        ledger.create_allocation.side_effect = LedgerError("HTTP 422", 422, {"errors": "amount too large"})

        result = ReturnWorkflow(ledger, clock).run("INV-100", "allocate")

        assert result.status == Status.PARTIAL
        assert result.reference == "CRN1-INV-100"
        assert "CRN1-INV-100" in result.message
        assert result.details == {"errors": "amount too large"}

    def test_sequence_follows_existing_credit_notes(self, ledger, clock):
        ledger.list_credit_notes.return_value = [
            CreditNote(reference="CRN3-X"),
            CreditNote(reference="CRN7-Y"),
        ]
        ReturnWorkflow(ledger, clock).run("INV-100", "allocate")
        assert submitted_payload(ledger)["reference"] == "CRN8-INV-100"

    def test_link_parent_invoice(self, ledger, clock):
        ReturnWorkflow(ledger, clock, link_parent_invoice=True).run("INV-100", "allocate")
        assert submitted_payload(ledger)["parent_id"] == "42"

    def test_states_visited(self, ledger, clock):
        workflow = ReturnWorkflow(ledger, clock)

        ctx = workflow.execute(ReturnContext(reference="INV-100", return_type=ReturnType.ALLOCATE))

        assert ctx.history == [
            ReturnState.LOOKUP_INVOICE,
            ReturnState.RESOLVE_INVENTORY,
            ReturnState.BUILD_LINE_ITEMS,
            ReturnState.GENERATE_REFERENCE,
            ReturnState.SUBMIT_CREDIT_NOTE,
            ReturnState.ALLOCATE,
            ReturnState.DONE,
        ]


class TestReturnRefund:

    def test_refund_success(self, ledger, clock):
        result = ReturnWorkflow(ledger, clock).run("INV-100", "refund", "5")

        assert result.status == Status.SUCCESS
        ledger.create_refund_payment.assert_called_once_with(
            "900", "5", "230.0", "2026-10-20", reference="REFUND-CRN1-INV-100"
        )
        ledger.create_allocation.assert_not_called()

    def test_refund_failure_is_partial_and_stops(self, ledger, clock):
        """Credit note exists but the money did not move: operator must finish by hand."""
        ledger.create_refund_payment.side_effect = LedgerError(
            "HTTP 500", 500, {"message": "account closed"}
        )

        result = ReturnWorkflow(ledger, clock).run("INV-100", "refund", "5")

        assert result.status == Status.PARTIAL
        assert result.reference == "CRN1-INV-100"
        assert result.credit_note_id == "900"
        assert result.details == {"message": "account closed"}
        ledger.create_credit_note.assert_called_once()
        ledger.create_refund_payment.assert_called_once()
        ledger.create_allocation.assert_not_called()

    def test_refund_transport_failure_is_partial(self, ledger, clock):
        ledger.create_refund_payment.side_effect = LedgerError("timeout", body="read timed out")

        result = ReturnWorkflow(ledger, clock).run("INV-100", "refund", "5")

        assert result.status == Status.PARTIAL
        assert result.details == "read timed out"

    def test_refund_needs_account(self, ledger, clock):
        result = ReturnWorkflow(ledger, clock).run("INV-100", "refund", None)

        assert result.status == Status.ERROR
        ledger.create_credit_note.assert_not_called()

    def test_missing_total_is_partial(self, ledger, clock):
        ledger.create_credit_note.return_value = CreditNote(id="900", raw={"id": 900})

        result = ReturnWorkflow(ledger, clock).run("INV-100", "refund", "5")

        assert result.status == Status.PARTIAL
        ledger.create_refund_payment.assert_not_called()


class TestReturnFailures:

    def test_invoice_not_found(self, client, clock):
        client.search_by_reference.return_value = []

        result = ReturnWorkflow(client, clock).run("INV-404", "allocate")

        assert result.status == Status.ERROR
        assert "not found" in result.message
        client.get_detail.assert_not_called()
        client.create_credit_note.assert_not_called()

    def test_no_inventory_fails_before_mutation(self, ledger, clock, invoice_payload):
        invoice_payload.pop("inventory_id")
        ledger.get_detail.return_value = LedgerRecord.from_payload(invoice_payload)

        result = ReturnWorkflow(ledger, clock).run("INV-100", "allocate")

        assert result.status == Status.ERROR
        assert "inventory" in result.message
        ledger.list_credit_notes.assert_not_called()
        ledger.create_credit_note.assert_not_called()

    def test_inventory_from_location(self, ledger, clock, invoice_payload):
        invoice_payload.pop("inventory_id")
        invoice_payload["location_id"] = 6
        ledger.get_detail.return_value = LedgerRecord.from_payload(invoice_payload)

        ReturnWorkflow(ledger, clock).run("INV-100", "allocate")

        assert submitted_payload(ledger)["inventory_id"] == "6"

    def test_inventory_from_first_line(self, ledger, clock, invoice_payload):
        invoice_payload.pop("inventory_id")
        invoice_payload["line_items"][0]["inventory_id"] = 8
        ledger.get_detail.return_value = LedgerRecord.from_payload(invoice_payload)

        ReturnWorkflow(ledger, clock).run("INV-100", "allocate")

        assert submitted_payload(ledger)["inventory_id"] == "8"

    def test_configured_default_inventory(self, ledger, clock, invoice_payload):
        invoice_payload.pop("inventory_id")
        ledger.get_detail.return_value = LedgerRecord.from_payload(invoice_payload)

        result = ReturnWorkflow(ledger, clock, default_inventory_id="1").run("INV-100", "allocate")

        assert result.status == Status.SUCCESS
        assert submitted_payload(ledger)["inventory_id"] == "1"

    def test_no_line_items(self, ledger, clock, invoice_payload):
        invoice_payload["line_items"] = []
        ledger.get_detail.return_value = LedgerRecord.from_payload(invoice_payload)

        result = ReturnWorkflow(ledger, clock).run("INV-100", "allocate")

        assert result.status == Status.ERROR
        ledger.create_credit_note.assert_not_called()

    def test_credit_note_rejected(self, ledger, clock):
        ledger.create_credit_note.side_effect = LedgerError("HTTP 422", 422, {"errors": ["inventory invalid"]})

        result = ReturnWorkflow(ledger, clock).run("INV-100", "allocate")

        assert result.status == Status.ERROR
        assert result.details == {"errors": ["inventory invalid"]}
        ledger.create_allocation.assert_not_called()

    def test_credit_note_without_id(self, ledger, clock):
        ledger.create_credit_note.return_value = CreditNote(raw={"message": "queued"})

        result = ReturnWorkflow(ledger, clock).run("INV-100", "allocate")

        assert result.status == Status.ERROR
        assert result.details == {"message": "queued"}
        ledger.create_allocation.assert_not_called()

    def test_detail_fetch_failure(self, ledger, clock):
        ledger.get_detail.side_effect = LedgerError("HTTP 503", 503, "unavailable")

        result = ReturnWorkflow(ledger, clock).run("INV-100", "allocate")

        assert result.status == Status.ERROR
        assert result.details == "unavailable"
        ledger.create_credit_note.assert_not_called()

    def test_line_without_quantity_fails_before_mutation(self, ledger, clock, invoice_payload):
        invoice_payload["line_items"][1].pop("quantity")
        ledger.get_detail.return_value = LedgerRecord.from_payload(invoice_payload)

        result = ReturnWorkflow(ledger, clock).run("INV-100", "allocate")

        assert result.status == Status.ERROR
        assert "quantity" in result.message
        ledger.list_credit_notes.assert_not_called()
        ledger.create_credit_note.assert_not_called()
