"""
Invoice Sequencer (``backoffice_modules.billing.service``).

Responsibility
--------------
Creates, edits and deletes client invoices while keeping each project's
invoice chain consistent:

* ``invoice_sequence`` -- 1-based per primary project, assigned at
  creation, never reused after a deletion.
* ``cumulative_percentage`` -- running sum of ``percentage_of_total`` over
  the project's chain.  The chain is every invoice referencing the project,
  ordered by the ``chain_position`` of its reference, which is assigned under
  the counter lock.  Sequences cannot order it: an invoice billed to several
  projects carries the primary project's sequence only.

After every write the status deriver re-runs for each billed project, so
reaching 100% marks the project ``completed``.

Concurrency
-----------
Creation for a project is serialized on the locked counter row
``invoice_sequence:<project_code>`` (``SELECT ... FOR UPDATE``).  Existing
invoices are re-read only after the lock is held, so the sequence and the
cumulative sum come from one consistent snapshot.  If two writers still
collide, the unique ``(project_code, invoice_sequence)`` constraint fails
and ``InvoiceSequenceConflictError`` tells the caller to retry.  A lost race
on ``invoice_number`` surfaces as ``DuplicateInvoiceNumberError`` instead.

Decisions
---------
* Cumulative percentage above 100 is rejected unless
  ``BillingConfig.allow_over_billing`` is set.
* Editing a percentage recomputes the whole chain, not only the edited
  invoice, so the running-sum invariant always holds.
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from backoffice_kernel.domain.clock import Clock
from backoffice_kernel.domain.currency import BASE_CURRENCY
from backoffice_kernel.exceptions import (
    CumulativePercentageExceededError,
    DuplicateInvoiceNumberError,
    InvoiceNotFoundError,
    InvoicePaidError,
    InvoiceSequenceConflictError,
    NonPositiveAmountError,
    ProjectNotFoundError,
)
from backoffice_kernel.logging_config import LogContext, get_logger
from backoffice_kernel.services.base import BaseService
from backoffice_kernel.services.currency_service import (
    CurrencyConverter,
    CurrencySnapshot,
    ExchangeRateSource,
)
from backoffice_kernel.services.sequence_service import SequenceService, invoice_sequence
from backoffice_kernel.services.settings_service import CompanySettingsService, TTLCache
from backoffice_modules.billing.config import BillingConfig
from backoffice_modules.billing.models import (
    Invoice,
    InvoiceContext,
    InvoiceCreationResult,
    InvoiceDeletionResult,
    InvoiceStatus,
    InvoiceUpdateResult,
)
from backoffice_modules.billing.orm import InvoiceModel, InvoiceProjectRefModel
from backoffice_modules.project.models import StatusTransition
from backoffice_modules.project.orm import ProjectModel
from backoffice_modules.project.status import ProjectStatusDeriver

logger = get_logger("modules.billing.service")

INVOICE_NUMBER_CONSTRAINT = "uq_invoices_invoice_number"

_ZERO = Decimal("0")


def normalize_project_codes(project_codes: str | Sequence[str]) -> tuple[str, ...]:
    """
    Ordered, de-duplicated project codes.

    A single string may hold several comma-separated codes (the dashboard's
    multi-project invoice form sends them that way).
    """
    if isinstance(project_codes, str):
        project_codes = project_codes.split(",")
    seen: list[str] = []
    for code in project_codes:
        code = code.strip()
        if code and code not in seen:
            seen.append(code)
    if not seen:
        raise ValueError("An invoice must reference at least one project code")
    return tuple(seen)


def _is_invoice_number_conflict(exc: IntegrityError) -> bool:
    """PostgreSQL reports the constraint name; SQLite reports the column."""
    message = str(exc.orig)
    return INVOICE_NUMBER_CONSTRAINT in message or "invoices.invoice_number" in message


class InvoiceService(BaseService):
    """Client invoices and the per-project sequence/cumulative chain."""

    def __init__(
        self,
        session: Session,
        converter: CurrencyConverter,
        settings_service: CompanySettingsService | None = None,
        clock: Clock | None = None,
        config: BillingConfig | None = None,
        deriver: ProjectStatusDeriver | None = None,
        sequence_service: SequenceService | None = None,
    ):
        super().__init__(session, clock)
        self._converter = converter
        self._config = config or BillingConfig.with_defaults()
        self._deriver = deriver or ProjectStatusDeriver(
            session, self.clock, completion_threshold=self._config.completion_threshold
        )
        self._sequences = sequence_service or SequenceService(session)
        self._settings = settings_service or CompanySettingsService(
            session, TTLCache(clock=self.clock), self.clock
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def _load(self, invoice_id: UUID) -> InvoiceModel:
        invoice = self.session.execute(
            select(InvoiceModel).where(InvoiceModel.id == invoice_id)
        ).scalar_one_or_none()
        if invoice is None:
            raise InvoiceNotFoundError(str(invoice_id))
        return invoice

    def _invoices_for_project(self, project_code: str) -> list[InvoiceModel]:
        """Invoices referencing ``project_code`` exactly, in chain order."""
        return list(
            self.session.execute(
                select(InvoiceModel)
                .join(
                    InvoiceProjectRefModel,
                    InvoiceProjectRefModel.invoice_id == InvoiceModel.id,
                )
                .where(InvoiceProjectRefModel.project_code == project_code)
                .order_by(InvoiceProjectRefModel.chain_position)
                .execution_options(populate_existing=True)
            ).scalars().all()
        )

    def _require_project(self, project_code: str) -> None:
        exists = self.session.execute(
            select(func.count(ProjectModel.id)).where(ProjectModel.project_code == project_code)
        ).scalar_one()
        if not exists:
            raise ProjectNotFoundError(project_code)

    def _sequence_floor(self, project_code: str, existing: list[InvoiceModel]) -> int:
        own = (i.invoice_sequence for i in existing if i.project_code == project_code)
        return max(len(existing), max(own, default=0))

    def _next_chain_position(self, project_code: str) -> int:
        highest = self.session.execute(
            select(func.max(InvoiceProjectRefModel.chain_position))
            .where(InvoiceProjectRefModel.project_code == project_code)
        ).scalar_one()
        return (highest or 0) + 1

    def _invoice_number_taken(self, invoice_number: str) -> bool:
        return bool(
            self.session.execute(
                select(func.count(InvoiceModel.id))
                .where(InvoiceModel.invoice_number == invoice_number)
            ).scalar_one()
        )

    def get_invoice(self, invoice_id: UUID) -> Invoice:
        return self._load(invoice_id).to_dto()

    def list_invoices(self, project_code: str) -> list[Invoice]:
        return [i.to_dto() for i in self._invoices_for_project(project_code)]

    def get_invoice_context(self, project_code: str) -> InvoiceContext:
        """Previous invoices, totals, and the sequence the next invoice would get."""
        self._require_project(project_code)
        existing = self._invoices_for_project(project_code)
        total = sum((Decimal(i.percentage_of_total) for i in existing), _ZERO)
        counter = self._sequences.current_value(invoice_sequence(project_code)) or 0
        next_sequence = max(counter, self._sequence_floor(project_code, existing)) + 1
        return InvoiceContext(
            project_code=project_code,
            previous_invoices=tuple(i.to_dto() for i in existing),
            total_invoiced_percentage=total,
            remaining_percentage=max(_ZERO, self._config.max_cumulative_percentage - total),
            next_sequence=next_sequence,
        )

    def next_invoice_number(self) -> str:
        """``<prefix><highest + 1>``, or ``<prefix><start>`` when none exist."""
        settings = self._settings.get_settings()
        prefix = settings.invoice_prefix
        numbers = self.session.execute(
            select(InvoiceModel.invoice_number)
            .where(InvoiceModel.invoice_number.like(f"{prefix}%"))
        ).scalars().all()
        suffixes = [n[len(prefix):] for n in numbers]
        highest = max((int(s) for s in suffixes if s.isdigit()), default=None)
        if highest is None:
            return f"{prefix}{settings.invoice_start_number}"
        return f"{prefix}{highest + 1}"

    # ------------------------------------------------------------------
    # Chain maintenance
    # ------------------------------------------------------------------

    def _recompute_chain(self, project_code: str) -> Decimal:
        """
        Re-derive ``cumulative_percentage`` for every invoice of the project.

        Invoices whose primary project is another project still count toward
        the running total but keep the cumulative of their own chain.
        """
        running = _ZERO
        for invoice in self._invoices_for_project(project_code):
            running += Decimal(invoice.percentage_of_total)
            if invoice.project_code == project_code:
                invoice.cumulative_percentage = running
        self.session.flush()
        return running

    def _check_ceiling(self, project_code: str, cumulative: Decimal) -> None:
        if (
            not self._config.allow_over_billing
            and cumulative > self._config.max_cumulative_percentage
        ):
            raise CumulativePercentageExceededError(project_code, cumulative)

    def _sync_status(self, project_codes: Sequence[str]) -> tuple[StatusTransition, ...]:
        return tuple(self._deriver.sync(code) for code in project_codes)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_invoice(
        self,
        invoice_number: str,
        project_codes: str | Sequence[str],
        project_name: str,
        amount: Decimal,
        invoice_date: date,
        percentage_of_total: Decimal,
        actor_id: UUID,
        currency: str = BASE_CURRENCY,
        custom_rate: Decimal | None = None,
        status: InvoiceStatus = InvoiceStatus.DRAFT,
        remark: str | None = None,
        file_url: str | None = None,
    ) -> InvoiceCreationResult:
        """
        Create an invoice and assign its sequence and cumulative percentage.

        Raises:
            DuplicateInvoiceNumberError: number already used.
            ProjectNotFoundError: any referenced project is unknown.
            CumulativePercentageExceededError: a billed project would pass 100%.
            InvoiceSequenceConflictError: concurrent writer took the sequence.
            ConversionError: rate lookup failed; nothing is written.
        """
        codes = normalize_project_codes(project_codes)
        primary = codes[0]
        if amount <= 0:
            raise NonPositiveAmountError("amount", amount)
        if percentage_of_total <= 0:
            raise NonPositiveAmountError("percentage_of_total", percentage_of_total)

        if self._invoice_number_taken(invoice_number):
            raise DuplicateInvoiceNumberError(invoice_number)
        for code in codes:
            self._require_project(code)

        # Convert before taking locks so a slow rate fetch does not hold them.
        conversion = self._converter.convert(amount, currency, custom_rate)

        # Sorted so concurrent multi-project invoices lock in the same order.
        for code in sorted(codes):
            self._sequences.lock(invoice_sequence(code))

        existing = self._invoices_for_project(primary)
        cumulative = sum((Decimal(i.percentage_of_total) for i in existing), _ZERO)
        cumulative += percentage_of_total
        self._check_ceiling(primary, cumulative)
        for code in codes[1:]:
            other = sum(
                (Decimal(i.percentage_of_total) for i in self._invoices_for_project(code)),
                _ZERO,
            )
            self._check_ceiling(code, other + percentage_of_total)

        sequence = self._sequences.next_value(
            invoice_sequence(primary), floor=self._sequence_floor(primary, existing)
        )
        chain_positions = {code: self._next_chain_position(code) for code in codes}

        try:
            with self.session.begin_nested():
                invoice = InvoiceModel(
                    invoice_number=invoice_number,
                    project_code=primary,
                    project_name=project_name,
                    amount=amount,
                    currency=currency.upper().strip(),
                    amount_myr=conversion.amount_myr,
                    exchange_rate=conversion.exchange_rate,
                    exchange_rate_source=(
                        conversion.source.value if conversion.source else None
                    ),
                    invoice_date=invoice_date,
                    percentage_of_total=percentage_of_total,
                    invoice_sequence=sequence,
                    cumulative_percentage=cumulative,
                    status=status.value,
                    remark=remark,
                    file_url=file_url,
                    created_by_id=actor_id,
                )
                invoice.project_refs = [
                    InvoiceProjectRefModel(
                        project_code=code,
                        position=position,
                        chain_position=chain_positions[code],
                    )
                    for position, code in enumerate(codes)
                ]
                self.session.add(invoice)
                self.session.flush()
        except IntegrityError as exc:
            if _is_invoice_number_conflict(exc):
                logger.warning(
                    "invoice_number_conflict",
                    extra={"invoice_number": invoice_number, "project_code": primary},
                )
                raise DuplicateInvoiceNumberError(invoice_number) from None
            logger.warning(
                "invoice_sequence_conflict",
                extra={"project_code": primary, "invoice_sequence": sequence},
            )
            raise InvoiceSequenceConflictError(primary, sequence) from None

        with LogContext.bind(invoice_id=invoice.id, project_code=primary):
            logger.info(
                "invoice_created",
                extra={
                    "invoice_number": invoice_number,
                    "invoice_sequence": sequence,
                    "percentage_of_total": str(percentage_of_total),
                    "cumulative_percentage": str(cumulative),
                    "project_codes": list(codes),
                },
            )
            transitions = self._sync_status(codes)

        project_completed = transitions[0].completed
        if project_completed:
            logger.info(
                "project_fully_invoiced",
                extra={"project_code": primary, "cumulative_percentage": str(cumulative)},
            )

        return InvoiceCreationResult(
            invoice=invoice.to_dto(),
            project_completed=project_completed,
            cumulative_percentage=cumulative,
            status_transitions=transitions,
        )

    def update_invoice(
        self,
        invoice_id: UUID,
        actor_id: UUID,
        *,
        invoice_number: str | None = None,
        project_name: str | None = None,
        amount: Decimal | None = None,
        currency: str | None = None,
        custom_rate: Decimal | None = None,
        invoice_date: date | None = None,
        percentage_of_total: Decimal | None = None,
        status: InvoiceStatus | None = None,
        remark: str | None = None,
        file_url: str | None = None,
    ) -> InvoiceUpdateResult:
        """
        Edit an invoice.  A percentage change recomputes every billed
        project's chain and re-runs the status deriver.

        Raises:
            InvoicePaidError: amount, currency or percentage change on a paid invoice.
        """
        invoice = self._load(invoice_id)
        money_change = amount is not None or currency is not None or custom_rate is not None
        percentage_change = (
            percentage_of_total is not None
            and Decimal(percentage_of_total) != Decimal(invoice.percentage_of_total)
        )
        if invoice.status == InvoiceStatus.PAID.value and (money_change or percentage_change):
            raise InvoicePaidError(str(invoice.id), invoice.invoice_number)
        if amount is not None and amount <= 0:
            raise NonPositiveAmountError("amount", amount)
        if percentage_of_total is not None and percentage_of_total <= 0:
            raise NonPositiveAmountError("percentage_of_total", percentage_of_total)

        if invoice_number is not None and invoice_number != invoice.invoice_number:
            if self._invoice_number_taken(invoice_number):
                raise DuplicateInvoiceNumberError(invoice_number)

        snapshot = None
        if money_change:
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
            snapshot = self._converter.reconvert_on_update(current, amount, currency, custom_rate)

        codes = tuple(ref.project_code for ref in invoice.project_refs)
        transitions: tuple[StatusTransition, ...] = ()

        with self.session.begin_nested():
            if snapshot is not None:
                invoice.amount = snapshot.amount
                invoice.currency = snapshot.currency
                invoice.amount_myr = snapshot.amount_myr
                invoice.exchange_rate = snapshot.exchange_rate
                invoice.exchange_rate_source = (
                    snapshot.source.value if snapshot.source else None
                )
            if invoice_number is not None:
                invoice.invoice_number = invoice_number
            if project_name is not None:
                invoice.project_name = project_name
            if invoice_date is not None:
                invoice.invoice_date = invoice_date
            if status is not None:
                invoice.status = status.value
            if remark is not None:
                invoice.remark = remark
            if file_url is not None:
                invoice.file_url = file_url
            if percentage_change:
                invoice.percentage_of_total = percentage_of_total
            invoice.updated_by_id = actor_id
            self.session.flush()

            if percentage_change:
                for code in sorted(codes):
                    self._sequences.lock(invoice_sequence(code))
                for code in codes:
                    self._check_ceiling(code, self._recompute_chain(code))
                transitions = self._sync_status(codes)

        with LogContext.bind(invoice_id=invoice.id, project_code=invoice.project_code):
            logger.info(
                "invoice_updated",
                extra={
                    "invoice_number": invoice.invoice_number,
                    "percentage_changed": percentage_change,
                    "money_changed": money_change,
                },
            )
        return InvoiceUpdateResult(invoice=invoice.to_dto(), status_transitions=transitions)

    def delete_invoice(self, invoice_id: UUID) -> InvoiceDeletionResult:
        """
        Delete an unpaid invoice and recompute the chains it belonged to.
        Its sequence number is not handed out again.
        """
        invoice = self._load(invoice_id)
        if invoice.status == InvoiceStatus.PAID.value:
            raise InvoicePaidError(str(invoice.id), invoice.invoice_number, "delete")

        invoice_number = invoice.invoice_number
        file_url = invoice.file_url
        codes = tuple(ref.project_code for ref in invoice.project_refs)

        with self.session.begin_nested():
            for code in sorted(codes):
                self._sequences.lock(invoice_sequence(code))
            self.session.delete(invoice)
            self.session.flush()
            for code in codes:
                self._recompute_chain(code)
            transitions = self._sync_status(codes)

        with LogContext.bind(invoice_id=invoice_id):
            logger.info(
                "invoice_deleted",
                extra={"invoice_number": invoice_number, "project_codes": list(codes)},
            )
        return InvoiceDeletionResult(
            invoice_id=invoice_id,
            invoice_number=invoice_number,
            file_url=file_url,
            status_transitions=transitions,
        )
