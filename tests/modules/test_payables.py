"""
Tests for issued POs and received vendor invoices.

Covers:
- Issued PO numbering from company settings
- Recording an invoice moves the issued PO to received
- Verify / dispute / pay lifecycle; paying completes the issued PO
- Paid invoices are frozen
"""

from datetime import date
from decimal import Decimal
from uuid import uuid4

import pytest

from backoffice_kernel.exceptions import (
    DuplicateIssuedPONumberError,
    InvalidTransitionError,
    IssuedPONotFoundError,
    NonPositiveAmountError,
    ReceivedInvoicePaidError,
)
from backoffice_kernel.services.currency_service import ExchangeRateSource
from backoffice_modules.payables.models import IssuedPOStatus, ReceivedInvoiceStatus


@pytest.fixture
def issued_po(payables_service, test_actor_id):
    return payables_service.create_issued_po(
        items="Strain gauges x 40",
        recipient="Kyowa Instruments Sdn Bhd",
        amount=Decimal("8200"),
        issue_date=date(2026, 2, 20),
        actor_id=test_actor_id,
        project_code="J26001",
    )


@pytest.fixture
def record_invoice(payables_service, test_actor_id):
    def _record(issued_po_id, invoice_number="KY-2231", amount=Decimal("8200"), **kwargs):
        return payables_service.record_received_invoice(
            issued_po_id,
            invoice_number=invoice_number,
            amount=amount,
            invoice_date=date(2026, 2, 25),
            received_date=date(2026, 2, 27),
            actor_id=test_actor_id,
            **kwargs,
        )

    return _record


class TestIssuedPOs:

    def test_first_number_from_settings(self, issued_po):
        assert issued_po.po_number == "PO_MCE25009"
        assert issued_po.status is IssuedPOStatus.ISSUED

    def test_numbers_increment(self, issued_po, payables_service):
        assert payables_service.next_issued_po_number() == "PO_MCE25010"

    def test_explicit_duplicate_rejected(self, issued_po, payables_service, test_actor_id):
        with pytest.raises(DuplicateIssuedPONumberError):
            payables_service.create_issued_po(
                "Cables", "Vendor", Decimal("10"), date(2026, 2, 20), test_actor_id,
                po_number="PO_MCE25009",
            )

    def test_foreign_currency(self, payables_service, test_actor_id):
        po = payables_service.create_issued_po(
            "Licence renewal", "Ansys Inc", Decimal("1000"), date(2026, 2, 20),
            test_actor_id, currency="USD",
        )

        assert po.amount_myr == Decimal("4470.00")
        assert po.exchange_rate_source is ExchangeRateSource.AUTO

    def test_non_positive_amount_rejected(self, payables_service, test_actor_id):
        with pytest.raises(NonPositiveAmountError):
            payables_service.create_issued_po(
                "Cables", "Vendor", Decimal("0"), date(2026, 2, 20), test_actor_id
            )


class TestRecordReceivedInvoice:

    def test_moves_issued_po_to_received(self, issued_po, record_invoice, payables_service):
        result = record_invoice(issued_po.id)

        assert result.invoice.status is ReceivedInvoiceStatus.PENDING
        assert result.invoice.vendor_name == "Kyowa Instruments Sdn Bhd"
        assert result.issued_po_status is IssuedPOStatus.RECEIVED
        assert result.issued_po_changed is True
        assert payables_service.get_issued_po(issued_po.id).status is IssuedPOStatus.RECEIVED

    def test_second_invoice_leaves_status(self, issued_po, record_invoice):
        record_invoice(issued_po.id)

        result = record_invoice(issued_po.id, invoice_number="KY-2232", amount=Decimal("100"))

        assert result.issued_po_changed is False
        assert result.issued_po_status is IssuedPOStatus.RECEIVED

    def test_unknown_issued_po(self, record_invoice):
        with pytest.raises(IssuedPONotFoundError):
            record_invoice(uuid4())

    def test_list_by_issued_po(self, issued_po, record_invoice, payables_service):
        record_invoice(issued_po.id)
        record_invoice(issued_po.id, invoice_number="KY-2232", amount=Decimal("100"))

        numbers = [i.invoice_number for i in payables_service.list_received_invoices(issued_po.id)]

        assert numbers == ["KY-2231", "KY-2232"]


class TestReceivedInvoiceLifecycle:

    def test_verify_records_verifier(self, issued_po, record_invoice, payables_service, test_actor_id, deterministic_clock):
        invoice = record_invoice(issued_po.id).invoice

        verified = payables_service.verify_received_invoice(invoice.id, test_actor_id)

        assert verified.status is ReceivedInvoiceStatus.VERIFIED
        assert verified.verified_by == test_actor_id
        assert verified.verified_at == deterministic_clock.now()

    def test_pay_completes_issued_po(self, issued_po, record_invoice, payables_service, test_actor_id):
        invoice = record_invoice(issued_po.id).invoice
        payables_service.verify_received_invoice(invoice.id, test_actor_id)

        result = payables_service.mark_received_invoice_paid(invoice.id, test_actor_id)

        assert result.invoice.status is ReceivedInvoiceStatus.PAID
        assert result.invoice.paid_at is not None
        assert result.issued_po_status is IssuedPOStatus.COMPLETED
        assert result.issued_po_changed is True

    def test_pending_invoice_cannot_be_paid(self, issued_po, record_invoice, payables_service, test_actor_id):
        invoice = record_invoice(issued_po.id).invoice

        with pytest.raises(InvalidTransitionError):
            payables_service.mark_received_invoice_paid(invoice.id, test_actor_id)

    def test_dispute_and_reverify(self, issued_po, record_invoice, payables_service, test_actor_id):
        invoice = record_invoice(issued_po.id).invoice

        disputed = payables_service.dispute_received_invoice(invoice.id, test_actor_id)
        reverified = payables_service.verify_received_invoice(invoice.id, test_actor_id)

        assert disputed.status is ReceivedInvoiceStatus.DISPUTED
        assert reverified.status is ReceivedInvoiceStatus.VERIFIED

    def test_second_payment_leaves_completed_po(self, issued_po, record_invoice, payables_service, test_actor_id):
        first = record_invoice(issued_po.id).invoice
        second = record_invoice(issued_po.id, invoice_number="KY-2232", amount=Decimal("100")).invoice
        for invoice in (first, second):
            payables_service.verify_received_invoice(invoice.id, test_actor_id)
        payables_service.mark_received_invoice_paid(first.id, test_actor_id)

        result = payables_service.mark_received_invoice_paid(second.id, test_actor_id)

        assert result.issued_po_changed is False
        assert result.issued_po_status is IssuedPOStatus.COMPLETED


class TestPaidInvoicesFrozen:

    @pytest.fixture
    def paid_invoice(self, issued_po, record_invoice, payables_service, test_actor_id):
        invoice = record_invoice(issued_po.id).invoice
        payables_service.verify_received_invoice(invoice.id, test_actor_id)
        return payables_service.mark_received_invoice_paid(invoice.id, test_actor_id).invoice

    def test_update_rejected(self, paid_invoice, payables_service, test_actor_id):
        with pytest.raises(ReceivedInvoicePaidError):
            payables_service.update_received_invoice(paid_invoice.id, test_actor_id, description="x")

    def test_delete_rejected(self, paid_invoice, payables_service):
        with pytest.raises(ReceivedInvoicePaidError) as exc_info:
            payables_service.delete_received_invoice(paid_invoice.id)

        assert exc_info.value.operation == "delete"

    def test_unpaid_invoice_editable(self, issued_po, record_invoice, payables_service, test_actor_id):
        invoice = record_invoice(issued_po.id, currency="USD", amount=Decimal("1000")).invoice

        updated = payables_service.update_received_invoice(
            invoice.id, test_actor_id, amount=Decimal("1100")
        )

        assert updated.amount_myr == Decimal("4917.00")

    def test_unpaid_invoice_deletable(self, issued_po, record_invoice, payables_service):
        invoice = record_invoice(issued_po.id, file_url="/uploads/ri/2231.pdf").invoice

        assert payables_service.delete_received_invoice(invoice.id) == "/uploads/ri/2231.pdf"
