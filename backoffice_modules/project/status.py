"""
Project Status Deriver (``backoffice_modules.project.status``).

Responsibility
--------------
The single source of truth for ``Project.status``.  Status is a cached,
event-driven field: purchase-order and invoice services call
``ProjectStatusDeriver.sync()`` after they write, and the deriver
recomputes the status from what is stored.

Rules (``derive_project_status``)
---------------------------------
1. ``completed`` stays ``completed``.
2. Cumulative invoiced percentage >= threshold (100)  -> ``completed``.
3. Any active purchase order                           -> ``ongoing``.
4. Otherwise                                           -> ``pre-lim``.

Date side effects on change:

* entering ``ongoing`` stamps ``po_received_date`` (the PO's received
  date when the caller supplies it, else today);
* entering ``pre-lim`` clears ``po_received_date``;
* entering ``completed`` stamps ``completion_date``.

Invariants enforced
-------------------
* Idempotent: when the derived status equals the stored status, nothing
  is written and no ``project_status_changed`` event is logged.
* Transitions are resolved through ``PROJECT_STATUS_WORKFLOW``; anything
  outside that table raises ``InvalidTransitionError``.
"""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from backoffice_kernel.domain.clock import Clock
from backoffice_kernel.exceptions import ProjectNotFoundError
from backoffice_kernel.logging_config import get_logger
from backoffice_kernel.services.base import BaseService
from backoffice_modules.billing.orm import InvoiceModel, InvoiceProjectRefModel
from backoffice_modules.procurement.orm import PurchaseOrderModel
from backoffice_modules.project.models import ProjectStatus, StatusTransition
from backoffice_modules.project.orm import ProjectModel
from backoffice_modules.project.workflows import ACTION_FOR_TARGET, PROJECT_STATUS_WORKFLOW

logger = get_logger("modules.project.status")

COMPLETION_THRESHOLD = Decimal("100")


def derive_project_status(
    current: ProjectStatus,
    has_active_po: bool,
    cumulative_percentage: Decimal,
    completion_threshold: Decimal = COMPLETION_THRESHOLD,
) -> ProjectStatus:
    """Pure status rule.  See module docstring."""
    if current is ProjectStatus.COMPLETED:
        return ProjectStatus.COMPLETED
    if cumulative_percentage >= completion_threshold:
        return ProjectStatus.COMPLETED
    if has_active_po:
        return ProjectStatus.ONGOING
    return ProjectStatus.PRE_LIM


class ProjectStatusDeriver(BaseService):
    """Re-derives and, when needed, writes a project's status."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        completion_threshold: Decimal = COMPLETION_THRESHOLD,
    ):
        super().__init__(session, clock)
        self._completion_threshold = completion_threshold

    def has_active_po(self, project_code: str) -> bool:
        count = self.session.execute(
            select(func.count(PurchaseOrderModel.id))
            .where(PurchaseOrderModel.project_code == project_code)
            .where(PurchaseOrderModel.is_active.is_(True))
        ).scalar_one()
        return count > 0

    def cumulative_percentage(self, project_code: str) -> Decimal:
        """Sum of ``percentage_of_total`` over invoices referencing the project."""
        total = self.session.execute(
            select(func.coalesce(func.sum(InvoiceModel.percentage_of_total), 0))
            .join(InvoiceProjectRefModel, InvoiceProjectRefModel.invoice_id == InvoiceModel.id)
            .where(InvoiceProjectRefModel.project_code == project_code)
        ).scalar_one()
        return Decimal(str(total))

    def sync(
        self,
        project_code: str,
        po_received_date: date | None = None,
    ) -> StatusTransition:
        """
        Recompute and persist the status of ``project_code``.

        Args:
            project_code: Project to re-derive.
            po_received_date: Date to stamp if the project becomes ``ongoing``.

        Returns:
            StatusTransition with ``changed=False`` when nothing was written.

        Raises:
            ProjectNotFoundError: Unknown project code.
        """
        project = self.session.execute(
            select(ProjectModel)
            .where(ProjectModel.project_code == project_code)
            .with_for_update()
        ).scalar_one_or_none()
        if project is None:
            raise ProjectNotFoundError(project_code)

        previous = ProjectStatus(project.status)
        target = derive_project_status(
            previous,
            self.has_active_po(project_code),
            self.cumulative_percentage(project_code),
            self._completion_threshold,
        )

        if target is previous:
            return StatusTransition(project_code, previous, previous, changed=False)

        PROJECT_STATUS_WORKFLOW.apply(previous.value, ACTION_FOR_TARGET[target])

        project.status = target.value
        if target is ProjectStatus.ONGOING:
            project.po_received_date = po_received_date or self.clock.today()
        elif target is ProjectStatus.PRE_LIM:
            project.po_received_date = None
        elif target is ProjectStatus.COMPLETED:
            project.completion_date = self.clock.today()
        self.session.flush()

        logger.info(
            "project_status_changed",
            extra={
                "project_code": project_code,
                "previous_status": previous.value,
                "new_status": target.value,
            },
        )
        return StatusTransition(project_code, previous, target, changed=True)
