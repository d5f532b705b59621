"""
Payables Service (``backoffice_modules.payables.service``).

Responsibility
--------------
Purchase orders issued to vendors and the vendor invoices received against
them.  Received invoices move through ``RECEIVED_INVOICE_WORKFLOW``; paying
one settles its issued PO (``completed``).

Invariants enforced
-------------------
* A received invoice references an existing issued PO.
* Recording the first invoice against an ``issued`` PO moves it to
  ``received``.
* Only ``verified`` invoices can be paid.
* Paid invoices are frozen: no edits, no deletion.
* Money fields carry a currency snapshot from ``CurrencyConverter``.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from backoffice_kernel.domain.clock import Clock
from backoffice_kernel.domain.currency import BASE_CURRENCY
from backoffice_kernel.exceptions import (
    DuplicateIssuedPONumberError,
    IssuedPONotFoundError,
    NonPositiveAmountError,
    ReceivedInvoiceNotFoundError,
    ReceivedInvoicePaidError,
)
from backoffice_kernel.logging_config import get_logger
from backoffice_kernel.services.base import BaseService
from backoffice_kernel.services.currency_service import (
    CurrencyConverter,
    CurrencySnapshot,
    ExchangeRateSource,
)
from backoffice_kernel.services.settings_service import CompanySettingsService, TTLCache
from backoffice_modules.payables.models import (
    IssuedPO,
    IssuedPOStatus,
    ReceivedInvoice,
    ReceivedInvoiceResult,
    ReceivedInvoiceStatus,
)
from backoffice_modules.payables.orm import IssuedPOModel, ReceivedInvoiceModel
from backoffice_modules.payables.workflows import (
    DISPUTE,
    INVOICE_RECEIVED,
    ISSUED_PO_WORKFLOW,
    PAY,
    RECEIVED_INVOICE_WORKFLOW,
    SETTLE,
    VERIFY,
)

logger = get_logger("modules.payables.service")


def _source_value(source: ExchangeRateSource | None) -> str | None:
    return source.value if source is not None else None


class PayablesService(BaseService):
    """Issued POs and received vendor invoices."""

    def __init__(
        self,
        session: Session,
        converter: CurrencyConverter,
        settings_service: CompanySettingsService | None = None,
        clock: Clock | None = None,
    ):
        super().__init__(session, clock)
        self._converter = converter
        self._settings = settings_service or CompanySettingsService(
            session, TTLCache(clock=self.clock), self.clock
        )

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def _load_issued_po(self, issued_po_id: UUID, for_update: bool = False) -> IssuedPOModel:
        stmt = select(IssuedPOModel).where(IssuedPOModel.id == issued_po_id)
        if for_update:
            stmt = stmt.with_for_update()
        po = self.session.execute(stmt).scalar_one_or_none()
        if po is None:
            raise IssuedPONotFoundError(str(issued_po_id))
        return po

    def _load_invoice(self, invoice_id: UUID) -> ReceivedInvoiceModel:
        invoice = self.session.execute(
            select(ReceivedInvoiceModel).where(ReceivedInvoiceModel.id == invoice_id)
        ).scalar_one_or_none()
        if invoice is None:
            raise ReceivedInvoiceNotFoundError(str(invoice_id))
        return invoice

    def get_issued_po(self, issued_po_id: UUID) -> IssuedPO:
        return self._load_issued_po(issued_po_id).to_dto()

    def get_received_invoice(self, invoice_id: UUID) -> ReceivedInvoice:
        return self._load_invoice(invoice_id).to_dto()

    def list_received_invoices(self, issued_po_id: UUID) -> list[ReceivedInvoice]:
        rows = self.session.execute(
            select(ReceivedInvoiceModel)
            .where(ReceivedInvoiceModel.issued_po_id == issued_po_id)
            .order_by(ReceivedInvoiceModel.received_date, ReceivedInvoiceModel.invoice_number)
        ).scalars().all()
        return [r.to_dto() for r in rows]

    def next_issued_po_number(self) -> str:
        """``<prefix><highest + 1>``, or ``<prefix><start>`` when none exist."""
        settings = self._settings.get_settings()
        prefix = settings.issued_po_prefix
        numbers = self.session.execute(
            select(IssuedPOModel.po_number).where(IssuedPOModel.po_number.like(f"{prefix}%"))
        ).scalars().all()
        highest = max(
            (int(n[len(prefix):]) for n in numbers if n[len(prefix):].isdigit()),
            default=None,
        )
        if highest is None:
            return f"{prefix}{settings.issued_po_start_number}"
        return f"{prefix}{highest + 1}"

    # ------------------------------------------------------------------
    # Issued POs
    # ------------------------------------------------------------------

    def create_issued_po(
        self,
        items: str,
        recipient: str,
        amount: Decimal,
        issue_date: date,
        actor_id: UUID,
        po_number: str | None = None,
        currency: str = BASE_CURRENCY,
        custom_rate: Decimal | None = None,
        project_code: str | None = None,
        due_date: date | None = None,
        file_url: str | None = None,
    ) -> IssuedPO:
        """
        Issue a PO to a vendor.  ``po_number`` defaults to
        ``next_issued_po_number()``.

        Raises:
            DuplicateIssuedPONumberError: number already used.
            NonPositiveAmountError: amount <= 0.
        """
        if amount <= 0:
            raise NonPositiveAmountError("amount", amount)
        po_number = po_number or self.next_issued_po_number()
        taken = self.session.execute(
            select(func.count(IssuedPOModel.id)).where(IssuedPOModel.po_number == po_number)
        ).scalar_one()
        if taken:
            raise DuplicateIssuedPONumberError(po_number)

        conversion = self._converter.convert(amount, currency, custom_rate)
        po = IssuedPOModel(
            po_number=po_number,
            items=items,
            recipient=recipient,
            project_code=project_code,
            amount=amount,
            currency=currency.upper().strip(),
            amount_myr=conversion.amount_myr,
            exchange_rate=conversion.exchange_rate,
            exchange_rate_source=_source_value(conversion.source),
            issue_date=issue_date,
            due_date=due_date,
            status=IssuedPOStatus.ISSUED.value,
            file_url=file_url,
            created_by_id=actor_id,
        )
        self.session.add(po)
        self.session.flush()

        logger.info(
            "issued_po_created",
            extra={"issued_po_id": str(po.id), "po_number": po_number, "recipient": recipient},
        )
        return po.to_dto()

    def _move_issued_po(self, po: IssuedPOModel, action: str) -> None:
        previous = po.status
        po.status = ISSUED_PO_WORKFLOW.apply(previous, action)
        logger.info(
            "issued_po_status_changed",
            extra={
                "issued_po_id": str(po.id),
                "previous_status": previous,
                "new_status": po.status,
            },
        )

    # ------------------------------------------------------------------
    # Received invoices
    # ------------------------------------------------------------------

    def record_received_invoice(
        self,
        issued_po_id: UUID,
        invoice_number: str,
        amount: Decimal,
        invoice_date: date,
        received_date: date,
        actor_id: UUID,
        currency: str = BASE_CURRENCY,
        custom_rate: Decimal | None = None,
        due_date: date | None = None,
        description: str | None = None,
        file_url: str | None = None,
    ) -> ReceivedInvoiceResult:
        """
        Record a vendor invoice against an issued PO.  The vendor name is
        taken from the PO's recipient.

        Raises:
            IssuedPONotFoundError: unknown issued PO.
            NonPositiveAmountError: amount <= 0.
        """
        if amount <= 0:
            raise NonPositiveAmountError("amount", amount)
        po = self._load_issued_po(issued_po_id, for_update=True)
        conversion = self._converter.convert(amount, currency, custom_rate)

        invoice = ReceivedInvoiceModel(
            invoice_number=invoice_number,
            issued_po_id=po.id,
            vendor_name=po.recipient,
            amount=amount,
            currency=currency.upper().strip(),
            amount_myr=conversion.amount_myr,
            exchange_rate=conversion.exchange_rate,
            exchange_rate_source=_source_value(conversion.source),
            invoice_date=invoice_date,
            received_date=received_date,
            due_date=due_date,
            description=description,
            status=ReceivedInvoiceStatus.PENDING.value,
            file_url=file_url,
            created_by_id=actor_id,
        )
        self.session.add(invoice)

        changed = False
        if po.status == IssuedPOStatus.ISSUED.value:
            self._move_issued_po(po, INVOICE_RECEIVED)
            changed = True
        self.session.flush()

        logger.info(
            "received_invoice_recorded",
            extra={
                "received_invoice_id": str(invoice.id),
                "invoice_number": invoice_number,
                "issued_po_id": str(po.id),
            },
        )
        return ReceivedInvoiceResult(
            invoice=invoice.to_dto(),
            issued_po_status=IssuedPOStatus(po.status),
            issued_po_changed=changed,
        )

    def _transition_invoice(self, invoice: ReceivedInvoiceModel, action: str) -> str:
        previous = invoice.status
        invoice.status = RECEIVED_INVOICE_WORKFLOW.apply(previous, action)
        logger.info(
            "received_invoice_status_changed",
            extra={
                "received_invoice_id": str(invoice.id),
                "previous_status": previous,
                "new_status": invoice.status,
            },
        )
        return previous

    def verify_received_invoice(self, invoice_id: UUID, actor_id: UUID) -> ReceivedInvoice:
        """Mark a pending or disputed invoice as verified by ``actor_id``."""
        invoice = self._load_invoice(invoice_id)
        self._transition_invoice(invoice, VERIFY)
        invoice.verified_by = actor_id
        invoice.verified_at = self.clock.now()
        invoice.updated_by_id = actor_id
        self.session.flush()
        return invoice.to_dto()

    def dispute_received_invoice(self, invoice_id: UUID, actor_id: UUID) -> ReceivedInvoice:
        invoice = self._load_invoice(invoice_id)
        self._transition_invoice(invoice, DISPUTE)
        invoice.updated_by_id = actor_id
        self.session.flush()
        return invoice.to_dto()

    def mark_received_invoice_paid(self, invoice_id: UUID, actor_id: UUID) -> ReceivedInvoiceResult:
        """
        Pay a verified invoice and settle its issued PO.

        Raises:
            InvalidTransitionError: invoice is not verified.
        """
        invoice = self._load_invoice(invoice_id)
        self._transition_invoice(invoice, PAY)
        invoice.paid_at = self.clock.now()
        invoice.updated_by_id = actor_id

        po = self._load_issued_po(invoice.issued_po_id, for_update=True)
        changed = False
        if po.status != IssuedPOStatus.COMPLETED.value:
            self._move_issued_po(po, SETTLE)
            changed = True
            po.updated_by_id = actor_id
        self.session.flush()

        return ReceivedInvoiceResult(
            invoice=invoice.to_dto(),
            issued_po_status=IssuedPOStatus(po.status),
            issued_po_changed=changed,
        )

    def update_received_invoice(
        self,
        invoice_id: UUID,
        actor_id: UUID,
        *,
        invoice_number: str | None = None,
        amount: Decimal | None = None,
        currency: str | None = None,
        custom_rate: Decimal | None = None,
        invoice_date: date | None = None,
        received_date: date | None = None,
        due_date: date | None = None,
        description: str | None = None,
        file_url: str | None = None,
    ) -> ReceivedInvoice:
        """
        Edit an unpaid vendor invoice.  Status is changed only through the
        verify, dispute and pay operations.

        Raises:
            ReceivedInvoicePaidError: invoice is paid.
        """
        invoice = self._load_invoice(invoice_id)
        if invoice.status == ReceivedInvoiceStatus.PAID.value:
            raise ReceivedInvoicePaidError(str(invoice.id), "edit")

        if amount is not None or currency is not None or custom_rate is not None:
            if amount is not None and amount <= 0:
                raise NonPositiveAmountError("amount", amount)
            current = CurrencySnapshot(
                amount=Decimal(invoice.amount),
                currency=invoice.currency,
                amount_myr=Decimal(invoice.amount_myr),
                exchange_rate=Decimal(invoice.exchange_rate),
                source=(
                    ExchangeRateSource(invoice.exchange_rate_source)
                    if invoice.exchange_rate_source
                    else None
                ),
            )
            updated = self._converter.reconvert_on_update(current, amount, currency, custom_rate)
            invoice.amount = updated.amount
            invoice.currency = updated.currency
            invoice.amount_myr = updated.amount_myr
            invoice.exchange_rate = updated.exchange_rate
            invoice.exchange_rate_source = _source_value(updated.source)

        if invoice_number is not None:
            invoice.invoice_number = invoice_number
        if invoice_date is not None:
            invoice.invoice_date = invoice_date
        if received_date is not None:
            invoice.received_date = received_date
        if due_date is not None:
            invoice.due_date = due_date
        if description is not None:
            invoice.description = description
        if file_url is not None:
            invoice.file_url = file_url
        invoice.updated_by_id = actor_id
        self.session.flush()
        return invoice.to_dto()

    def delete_received_invoice(self, invoice_id: UUID) -> str | None:
        """Delete an unpaid vendor invoice.  Returns its ``file_url`` for cleanup."""
        invoice = self._load_invoice(invoice_id)
        if invoice.status == ReceivedInvoiceStatus.PAID.value:
            raise ReceivedInvoicePaidError(str(invoice.id), "delete")
        file_url = invoice.file_url
        self.session.delete(invoice)
        self.session.flush()
        logger.info(
            "received_invoice_deleted",
            extra={"received_invoice_id": str(invoice_id)},
        )
        return file_url
