"""
Purchase Order Revision Chain Service (``backoffice_modules.procurement.service``).

Responsibility
--------------
Owns received purchase orders: creation with a currency snapshot, the
append-only revision chain, manual MYR adjustments, updates, deletion, and
project revenue.  Every write that can move the project's status ends with
a ``ProjectStatusDeriver.sync()``.

Revision chain
--------------
All revisions of one client PO share ``po_number_base``.  Revision 1 is
numbered ``<base>``; revision ``n > 1`` is ``<base> Rev <n>``.  Creating a
revision inserts the new row, deactivates the original and links both
(``original.superseded_by`` / ``revision.supersedes``) inside one
SAVEPOINT, so a failure at any step leaves the chain as it was.

Invariants enforced
-------------------
* Exactly one active row per ``po_number_base`` (also backed by a partial
  unique index).
* ``revision_number`` values of a base are contiguous ``1..N``.
* Paid or superseded POs are never revised or adjusted.
* Adjustments touch only the four adjustment fields.

Failure modes
-------------
* ``PurchaseOrderNotFoundError``, ``ProjectNotFoundError``.
* ``PurchaseOrderInactiveError``, ``PurchaseOrderPaidError``.
* ``NonPositiveAmountError``, ``AdjustmentTooLargeError``,
  ``AdjustmentReasonTooShortError``, ``DuplicatePONumberError``.
* ``ConversionError`` from the converter; nothing has been written yet.

Usage::

    with session_scope() as session:
        service = PurchaseOrderService(session, converter, clock=clock)
        result = service.create_revision(
            po_id, amount=Decimal("12000"), currency="MYR",
            received_date=date(2026, 3, 1),
            revision_reason="client added scope", actor_id=actor_id,
        )
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal
from uuid import UUID, uuid4

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from backoffice_kernel.domain.clock import Clock
from backoffice_kernel.exceptions import (
    AdjustmentReasonTooShortError,
    AdjustmentTooLargeError,
    DuplicatePONumberError,
    NonPositiveAmountError,
    ProjectNotFoundError,
    PurchaseOrderInactiveError,
    PurchaseOrderNotFoundError,
    PurchaseOrderPaidError,
)
from backoffice_kernel.logging_config import LogContext, get_logger
from backoffice_kernel.services.base import BaseService
from backoffice_kernel.services.currency_service import (
    CurrencyConverter,
    CurrencySnapshot,
    ExchangeRateSource,
)
from backoffice_modules.procurement.config import ProcurementConfig
from backoffice_modules.procurement.models import (
    POCreationResult,
    PODeletionResult,
    PORevisionResult,
    POStatus,
    PurchaseOrder,
)
from backoffice_modules.procurement.orm import PurchaseOrderModel
from backoffice_modules.project.orm import ProjectModel
from backoffice_modules.project.status import ProjectStatusDeriver

logger = get_logger("modules.procurement.service")

_HUNDRED = Decimal("100")


def revision_po_number(po_number_base: str, revision_number: int) -> str:
    """``<base>`` for revision 1, ``<base> Rev <n>`` afterwards."""
    if revision_number <= 1:
        return po_number_base
    return f"{po_number_base} Rev {revision_number}"


def _source_value(source: ExchangeRateSource | None) -> str | None:
    return source.value if source is not None else None


class PurchaseOrderService(BaseService):
    """Received purchase orders and their revision chains."""

    def __init__(
        self,
        session: Session,
        converter: CurrencyConverter,
        clock: Clock | None = None,
        config: ProcurementConfig | None = None,
        deriver: ProjectStatusDeriver | None = None,
    ):
        super().__init__(session, clock)
        self._converter = converter
        self._config = config or ProcurementConfig.with_defaults()
        self._deriver = deriver or ProjectStatusDeriver(session, self.clock)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def _load(self, po_id: UUID, for_update: bool = False) -> PurchaseOrderModel:
        stmt = select(PurchaseOrderModel).where(PurchaseOrderModel.id == po_id)
        if for_update:
            stmt = stmt.with_for_update()
        po = self.session.execute(stmt).scalar_one_or_none()
        if po is None:
            raise PurchaseOrderNotFoundError(str(po_id))
        return po

    def get_po(self, po_id: UUID) -> PurchaseOrder:
        return self._load(po_id).to_dto()

    def _po_number_taken(self, po_number: str) -> bool:
        return self.session.execute(
            select(func.count(PurchaseOrderModel.id))
            .where(PurchaseOrderModel.po_number == po_number)
        ).scalar_one() > 0

    def get_revision_history(self, po_number_base: str) -> list[PurchaseOrder]:
        """All revisions of a base, ``revision_number`` ascending."""
        rows = self.session.execute(
            select(PurchaseOrderModel)
            .where(PurchaseOrderModel.po_number_base == po_number_base)
            .order_by(PurchaseOrderModel.revision_number)
        ).scalars().all()
        return [row.to_dto() for row in rows]

    def get_active_revision(self, po_number_base: str) -> PurchaseOrder | None:
        row = self.session.execute(
            select(PurchaseOrderModel)
            .where(PurchaseOrderModel.po_number_base == po_number_base)
            .where(PurchaseOrderModel.is_active.is_(True))
        ).scalar_one_or_none()
        return row.to_dto() if row else None

    def list_active(
        self,
        project_code: str | None = None,
        status: POStatus | None = None,
        limit: int = 100,
        offset: int = 0,
    ) -> list[PurchaseOrder]:
        """Active revisions, newest received first."""
        stmt = select(PurchaseOrderModel).where(PurchaseOrderModel.is_active.is_(True))
        if project_code is not None:
            stmt = stmt.where(PurchaseOrderModel.project_code == project_code)
        if status is not None:
            stmt = stmt.where(PurchaseOrderModel.status == status.value)
        stmt = (
            stmt.order_by(
                PurchaseOrderModel.received_date.desc(),
                PurchaseOrderModel.po_number,
            )
            .limit(limit)
            .offset(offset)
        )
        return [row.to_dto() for row in self.session.execute(stmt).scalars().all()]

    def calculate_project_revenue(self, project_code: str) -> Decimal:
        """Sum of effective MYR amounts over the project's active POs."""
        total = self.session.execute(
            select(
                func.coalesce(
                    func.sum(
                        func.coalesce(
                            PurchaseOrderModel.amount_myr_adjusted,
                            PurchaseOrderModel.amount_myr,
                        )
                    ),
                    0,
                )
            )
            .where(PurchaseOrderModel.project_code == project_code)
            .where(PurchaseOrderModel.is_active.is_(True))
        ).scalar_one()
        return Decimal(str(total))

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_po(
        self,
        po_number: str,
        project_code: str,
        client_name: str,
        amount: Decimal,
        currency: str,
        received_date: date,
        actor_id: UUID,
        due_date: date | None = None,
        description: str | None = None,
        status: POStatus = POStatus.RECEIVED,
        file_url: str | None = None,
        custom_rate: Decimal | None = None,
        planned_hours: Decimal | None = None,
    ) -> POCreationResult:
        """
        Record revision 1 of a new client PO and re-derive the project status.

        ``planned_hours``, when given, replaces the project's planned hours.
        """
        if amount <= 0:
            raise NonPositiveAmountError("amount", amount)
        if self._po_number_taken(po_number):
            raise DuplicatePONumberError(po_number)

        project = self.session.execute(
            select(ProjectModel).where(ProjectModel.project_code == project_code)
        ).scalar_one_or_none()
        if project is None:
            raise ProjectNotFoundError(project_code)

        # Convert before writing anything: a failed lookup aborts the create.
        conversion = self._converter.convert(amount, currency, custom_rate)
        if conversion.amount_myr <= 0:
            raise NonPositiveAmountError("amount_myr", conversion.amount_myr)

        po = PurchaseOrderModel(
            po_number=po_number,
            po_number_base=po_number,
            project_code=project_code,
            client_name=client_name,
            amount=amount,
            currency=currency.upper().strip(),
            amount_myr=conversion.amount_myr,
            exchange_rate=conversion.exchange_rate,
            exchange_rate_source=_source_value(conversion.source),
            received_date=received_date,
            due_date=due_date,
            description=description,
            status=status.value,
            file_url=file_url,
            revision_number=1,
            is_active=True,
            created_by_id=actor_id,
        )
        self.session.add(po)
        if planned_hours is not None:
            project.planned_hours = planned_hours
            project.updated_by_id = actor_id
        self.session.flush()

        with LogContext.bind(po_id=po.id, project_code=project_code):
            logger.info(
                "po_created",
                extra={
                    "po_number": po_number,
                    "amount": str(amount),
                    "currency": po.currency,
                    "amount_myr": str(conversion.amount_myr),
                },
            )
            transition = self._deriver.sync(project_code, po_received_date=received_date)

        return POCreationResult(po=po.to_dto(), status_transition=transition)

    def create_revision(
        self,
        original_po_id: UUID,
        amount: Decimal,
        currency: str,
        received_date: date,
        revision_reason: str,
        actor_id: UUID,
        description: str | None = None,
        file_url: str | None = None,
        custom_rate: Decimal | None = None,
        client_name: str | None = None,
        due_date: date | None = None,
    ) -> PORevisionResult:
        """
        Supersede ``original_po_id`` with a new active revision.

        The revision inherits ``due_date``, ``status``, ``client_name``,
        ``project_code`` and (unless overridden) ``description``.
        """
        original = self._load(original_po_id, for_update=True)
        if not original.is_active:
            raise PurchaseOrderInactiveError(str(original.id), original.po_number, "revise")
        if original.status == POStatus.PAID.value:
            raise PurchaseOrderPaidError(str(original.id), original.po_number, "revise")
        if amount <= 0:
            raise NonPositiveAmountError("amount", amount)

        conversion = self._converter.convert(amount, currency, custom_rate)
        if conversion.amount_myr <= 0:
            raise NonPositiveAmountError("amount_myr", conversion.amount_myr)

        revision_number = original.revision_number + 1
        new_number = revision_po_number(original.po_number_base, revision_number)
        revision_id = uuid4()

        try:
            with self.session.begin_nested():
                # Deactivate first: the partial unique index allows one active row.
                original.is_active = False
                original.updated_by_id = actor_id
                self.session.flush()

                revision = PurchaseOrderModel(
                    id=revision_id,
                    po_number=new_number,
                    po_number_base=original.po_number_base,
                    project_code=original.project_code,
                    client_name=client_name if client_name is not None else original.client_name,
                    amount=amount,
                    currency=currency.upper().strip(),
                    amount_myr=conversion.amount_myr,
                    exchange_rate=conversion.exchange_rate,
                    exchange_rate_source=_source_value(conversion.source),
                    received_date=received_date,
                    due_date=due_date if due_date is not None else original.due_date,
                    description=description if description is not None else original.description,
                    status=original.status,
                    file_url=file_url,
                    revision_number=revision_number,
                    is_active=True,
                    supersedes=original.id,
                    revision_date=self.clock.now(),
                    revision_reason=revision_reason,
                    created_by_id=actor_id,
                )
                self.session.add(revision)
                self.session.flush()

                original.superseded_by = revision_id
                self.session.flush()
        except IntegrityError:
            logger.warning(
                "po_revision_conflict",
                extra={"po_number": new_number, "original_po_id": str(original_po_id)},
            )
            raise DuplicatePONumberError(new_number) from None

        with LogContext.bind(po_id=revision.id, project_code=revision.project_code):
            logger.info(
                "po_revision_created",
                extra={
                    "po_number": new_number,
                    "po_number_base": revision.po_number_base,
                    "revision_number": revision_number,
                    "superseded_po_id": str(original.id),
                    "amount_myr": str(conversion.amount_myr),
                },
            )

        return PORevisionResult(revision=revision.to_dto(), original=original.to_dto())

    # ------------------------------------------------------------------
    # Adjustment
    # ------------------------------------------------------------------

    def adjust_myr_amount(
        self,
        po_id: UUID,
        adjusted_amount: Decimal,
        reason: str,
        actor_id: UUID,
    ) -> PurchaseOrder:
        """
        Override the effective MYR amount by a small, justified delta.

        Raises:
            AdjustmentTooLargeError: |adjusted - amount_myr| / amount_myr
                exceeds ``max_adjustment_percent``.
            AdjustmentReasonTooShortError: trimmed reason is too short.
        """
        po = self._load(po_id, for_update=True)
        if not po.is_active:
            raise PurchaseOrderInactiveError(str(po.id), po.po_number, "adjust")
        if po.status == POStatus.PAID.value:
            raise PurchaseOrderPaidError(str(po.id), po.po_number, "adjust")
        if adjusted_amount <= 0:
            raise NonPositiveAmountError("adjusted_amount", adjusted_amount)

        base = Decimal(po.amount_myr)
        if base <= 0:
            raise NonPositiveAmountError("amount_myr", base)
        percent_difference = abs(adjusted_amount - base) / base * _HUNDRED
        if percent_difference > self._config.max_adjustment_percent:
            raise AdjustmentTooLargeError(
                str(po.id), percent_difference, self._config.max_adjustment_percent
            )

        trimmed = (reason or "").strip()
        if len(trimmed) < self._config.min_adjustment_reason_length:
            raise AdjustmentReasonTooShortError(self._config.min_adjustment_reason_length)

        po.amount_myr_adjusted = adjusted_amount
        po.adjustment_reason = trimmed
        po.adjusted_by = actor_id
        po.adjusted_at = self.clock.now()
        self.session.flush()

        with LogContext.bind(po_id=po.id, project_code=po.project_code):
            logger.info(
                "po_myr_adjusted",
                extra={
                    "po_number": po.po_number,
                    "amount_myr": str(base),
                    "amount_myr_adjusted": str(adjusted_amount),
                    "percent_difference": str(percent_difference.quantize(Decimal("0.01"))),
                },
            )
        return po.to_dto()

    # ------------------------------------------------------------------
    # Update / delete
    # ------------------------------------------------------------------

    def update_po(
        self,
        po_id: UUID,
        actor_id: UUID,
        *,
        client_name: str | None = None,
        amount: Decimal | None = None,
        currency: str | None = None,
        custom_rate: Decimal | None = None,
        received_date: date | None = None,
        due_date: date | None = None,
        description: str | None = None,
        status: POStatus | None = None,
        file_url: str | None = None,
    ) -> PurchaseOrder:
        """
        Update PO fields.  Money fields follow the snapshot update rules of
        ``CurrencyConverter.reconvert_on_update``; paid or superseded POs
        cannot have their money fields changed.
        """
        po = self._load(po_id, for_update=True)

        money_change = amount is not None or currency is not None or custom_rate is not None
        if money_change:
            if not po.is_active:
                raise PurchaseOrderInactiveError(str(po.id), po.po_number, "change the amount of")
            if po.status == POStatus.PAID.value:
                raise PurchaseOrderPaidError(str(po.id), po.po_number, "change the amount of")
            if amount is not None and amount <= 0:
                raise NonPositiveAmountError("amount", amount)

            current = CurrencySnapshot(
                amount=Decimal(po.amount),
                currency=po.currency,
                amount_myr=Decimal(po.amount_myr),
                exchange_rate=Decimal(po.exchange_rate),
                source=ExchangeRateSource(po.exchange_rate_source) if po.exchange_rate_source else None,
            )
            updated = self._converter.reconvert_on_update(current, amount, currency, custom_rate)
            if updated.amount_myr <= 0:
                raise NonPositiveAmountError("amount_myr", updated.amount_myr)
            po.amount = updated.amount
            po.currency = updated.currency
            po.amount_myr = updated.amount_myr
            po.exchange_rate = updated.exchange_rate
            po.exchange_rate_source = _source_value(updated.source)

        if client_name is not None:
            po.client_name = client_name
        if received_date is not None:
            po.received_date = received_date
        if due_date is not None:
            po.due_date = due_date
        if description is not None:
            po.description = description
        if status is not None:
            po.status = status.value
        if file_url is not None:
            po.file_url = file_url
        po.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "po_updated",
            extra={"po_id": str(po.id), "po_number": po.po_number, "money_changed": money_change},
        )
        return po.to_dto()

    def delete_po(self, po_id: UUID) -> PODeletionResult:
        """
        Delete the active head of a chain.

        The predecessor (if any) becomes active again.  When the project is
        left without an active PO, the deriver reverts it to ``pre-lim``.

        Raises:
            PurchaseOrderInactiveError: ``po_id`` is a superseded revision.
        """
        po = self._load(po_id, for_update=True)
        if not po.is_active:
            raise PurchaseOrderInactiveError(str(po.id), po.po_number, "delete")

        project_code = po.project_code
        po_number = po.po_number
        file_url = po.file_url
        predecessor_id = po.supersedes

        with self.session.begin_nested():
            predecessor = None
            if predecessor_id is not None:
                predecessor = self._load(predecessor_id, for_update=True)
                predecessor.superseded_by = None
                self.session.flush()

            self.session.delete(po)
            self.session.flush()

            if predecessor is not None:
                predecessor.is_active = True
                self.session.flush()

        with LogContext.bind(po_id=po_id, project_code=project_code):
            logger.info(
                "po_deleted",
                extra={
                    "po_number": po_number,
                    "reactivated_po_id": str(predecessor_id) if predecessor_id else None,
                },
            )
            transition = self._deriver.sync(project_code)

        return PODeletionResult(
            po_id=po_id,
            po_number=po_number,
            project_code=project_code,
            file_url=file_url,
            reactivated_po_id=predecessor_id,
            status_transition=transition,
        )
