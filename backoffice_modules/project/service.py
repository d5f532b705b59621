"""
Project Registry Service (``backoffice_modules.project.service``).

Responsibility
--------------
Creates projects and variation orders, allocates project codes, guards
the billing type once work is under contract, and answers manual
status-change requests (always a no-op: status is derived, see
``project.status``).

Project codes
-------------
* Regular projects: ``J<yy><nnn>`` -- ``yy`` from today's date, ``nnn``
  from the locked counter ``project_code:<yy>``.  An explicit code may be
  supplied instead; it must match ``J\\d{5}`` and be unused.
* Variation orders: ``<parent_code>_<n>``, ``n`` = highest ``vo_number``
  under the parent + 1, allocated while the parent row is locked.

Failure modes
-------------
* ``InvalidProjectCodeError`` / ``DuplicateProjectCodeError`` for bad or
  reused explicit codes.
* ``ParentProjectNotFoundError`` / ``InvalidVariationOrderParentError``
  for variation orders.
* ``BillingTypeLockedError`` once any purchase order exists.
"""

from __future__ import annotations

import re
from decimal import Decimal
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from backoffice_kernel.domain.clock import Clock
from backoffice_kernel.exceptions import (
    BillingTypeLockedError,
    DuplicateProjectCodeError,
    InvalidProjectCodeError,
    InvalidVariationOrderParentError,
    ParentProjectNotFoundError,
    ProjectNotFoundError,
)
from backoffice_kernel.logging_config import get_logger
from backoffice_kernel.services.base import BaseService
from backoffice_kernel.services.sequence_service import (
    SequenceService,
    project_code_sequence,
)
from backoffice_modules.procurement.orm import PurchaseOrderModel
from backoffice_modules.project.models import (
    BillingType,
    Project,
    ProjectCreationResult,
    ProjectStatus,
    StatusChangeResult,
)
from backoffice_modules.project.orm import ProjectModel

logger = get_logger("modules.project.service")

PROJECT_CODE_PATTERN = re.compile(r"^J\d{5}$")

STATUS_IS_DERIVED_MESSAGE = (
    "Project status is derived automatically from purchase orders and invoices "
    "and cannot be set directly"
)


def _notify_list(lead_engineer_id: UUID | None, manager_id: UUID | None) -> tuple[UUID, ...]:
    users: list[UUID] = []
    if lead_engineer_id is not None:
        users.append(lead_engineer_id)
    if manager_id is not None and manager_id != lead_engineer_id:
        users.append(manager_id)
    return tuple(users)


class ProjectService(BaseService):
    """Project registry: codes, variation orders, billing type."""

    def __init__(
        self,
        session: Session,
        clock: Clock | None = None,
        sequence_service: SequenceService | None = None,
    ):
        super().__init__(session, clock)
        self._sequences = sequence_service or SequenceService(session)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def _find(self, project_code: str, for_update: bool = False) -> ProjectModel | None:
        stmt = select(ProjectModel).where(ProjectModel.project_code == project_code)
        if for_update:
            stmt = stmt.with_for_update()
        return self.session.execute(stmt).scalar_one_or_none()

    def get_project(self, project_code: str) -> Project:
        """Raises ProjectNotFoundError when the code is unknown."""
        project = self._find(project_code)
        if project is None:
            raise ProjectNotFoundError(project_code)
        return project.to_dto()

    def list_variation_orders(self, parent_code: str) -> list[Project]:
        parent = self._find(parent_code)
        if parent is None:
            raise ProjectNotFoundError(parent_code)
        rows = self.session.execute(
            select(ProjectModel)
            .where(ProjectModel.parent_project_id == parent.id)
            .order_by(ProjectModel.vo_number)
        ).scalars().all()
        return [row.to_dto() for row in rows]

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def _allocate_project_code(self) -> str:
        yy = f"{self.clock.today().year % 100:02d}"
        prefix = f"J{yy}"
        existing = self.session.execute(
            select(ProjectModel.project_code)
            .where(ProjectModel.project_code.like(f"{prefix}%"))
            .where(ProjectModel.is_variation_order.is_(False))
        ).scalars().all()
        highest = max(
            (int(code[3:]) for code in existing if PROJECT_CODE_PATTERN.match(code)),
            default=0,
        )
        seq = self._sequences.next_value(project_code_sequence(yy), floor=highest)
        return f"{prefix}{seq:03d}"

    def create_project(
        self,
        title: str,
        client_name: str | None,
        manager_id: UUID | None,
        actor_id: UUID,
        project_code: str | None = None,
        billing_type: BillingType = BillingType.HOURLY,
        lead_engineer_id: UUID | None = None,
        planned_hours: Decimal | None = None,
        description: str | None = None,
    ) -> ProjectCreationResult:
        """
        Create a project in ``pre-lim`` with today's inquiry date.

        Returns:
            ProjectCreationResult listing the lead engineer and (if
            different) the manager as users to notify.
        """
        if project_code is None:
            project_code = self._allocate_project_code()
        else:
            project_code = project_code.strip().upper()
            if not PROJECT_CODE_PATTERN.match(project_code):
                raise InvalidProjectCodeError(project_code)
            if self._find(project_code) is not None:
                raise DuplicateProjectCodeError(project_code)

        project = ProjectModel(
            project_code=project_code,
            title=title,
            client_name=client_name,
            status=ProjectStatus.PRE_LIM.value,
            billing_type=billing_type.value,
            manager_id=manager_id,
            lead_engineer_id=lead_engineer_id,
            planned_hours=planned_hours or Decimal("0"),
            actual_hours=Decimal("0"),
            inquiry_date=self.clock.today(),
            is_variation_order=False,
            description=description,
            created_by_id=actor_id,
        )
        self.session.add(project)
        self.session.flush()

        logger.info(
            "project_created",
            extra={
                "project_code": project_code,
                "billing_type": billing_type.value,
            },
        )
        return ProjectCreationResult(
            project=project.to_dto(),
            notify_user_ids=_notify_list(lead_engineer_id, manager_id),
        )

    def create_variation_order(
        self,
        parent_code: str,
        title: str,
        actor_id: UUID,
        client_name: str | None = None,
        manager_id: UUID | None = None,
        lead_engineer_id: UUID | None = None,
        billing_type: BillingType | None = None,
        planned_hours: Decimal | None = None,
        description: str | None = None,
    ) -> ProjectCreationResult:
        """
        Create variation order ``<parent_code>_<n>`` under a non-VO parent.

        Client, manager, lead engineer and billing type default to the
        parent's values.
        """
        parent = self._find(parent_code, for_update=True)
        if parent is None:
            raise ParentProjectNotFoundError(parent_code)
        if parent.is_variation_order:
            raise InvalidVariationOrderParentError(parent_code)

        highest = self.session.execute(
            select(func.max(ProjectModel.vo_number))
            .where(ProjectModel.parent_project_id == parent.id)
        ).scalar_one()
        vo_number = (highest or 0) + 1
        code = f"{parent.project_code}_{vo_number}"

        manager_id = manager_id if manager_id is not None else parent.manager_id
        lead_engineer_id = (
            lead_engineer_id if lead_engineer_id is not None else parent.lead_engineer_id
        )
        vo = ProjectModel(
            project_code=code,
            title=title,
            client_name=client_name if client_name is not None else parent.client_name,
            status=ProjectStatus.PRE_LIM.value,
            billing_type=(billing_type.value if billing_type else parent.billing_type),
            manager_id=manager_id,
            lead_engineer_id=lead_engineer_id,
            planned_hours=planned_hours or Decimal("0"),
            actual_hours=Decimal("0"),
            inquiry_date=self.clock.today(),
            parent_project_id=parent.id,
            is_variation_order=True,
            vo_number=vo_number,
            description=description,
            created_by_id=actor_id,
        )
        self.session.add(vo)
        self.session.flush()

        logger.info(
            "variation_order_created",
            extra={
                "project_code": code,
                "parent_project_code": parent.project_code,
                "vo_number": vo_number,
            },
        )
        return ProjectCreationResult(
            project=vo.to_dto(),
            notify_user_ids=_notify_list(lead_engineer_id, manager_id),
        )

    # ------------------------------------------------------------------
    # Updates
    # ------------------------------------------------------------------

    def change_billing_type(
        self,
        project_code: str,
        billing_type: BillingType,
        actor_id: UUID,
    ) -> Project:
        """Raises BillingTypeLockedError once any purchase order exists."""
        project = self._find(project_code, for_update=True)
        if project is None:
            raise ProjectNotFoundError(project_code)
        if project.billing_type == billing_type.value:
            return project.to_dto()

        po_count = self.session.execute(
            select(func.count(PurchaseOrderModel.id))
            .where(PurchaseOrderModel.project_code == project_code)
        ).scalar_one()
        if po_count > 0:
            raise BillingTypeLockedError(project_code)

        previous = project.billing_type
        project.billing_type = billing_type.value
        project.updated_by_id = actor_id
        self.session.flush()
        logger.info(
            "project_billing_type_changed",
            extra={
                "project_code": project_code,
                "previous_billing_type": previous,
                "new_billing_type": billing_type.value,
            },
        )
        return project.to_dto()

    def request_status_change(
        self,
        project_code: str,
        requested_status: ProjectStatus | str,
    ) -> StatusChangeResult:
        """
        Manual status change entry point.  Never writes.

        Returns the current status with an explanation instead of failing.
        """
        project = self._find(project_code)
        if project is None:
            raise ProjectNotFoundError(project_code)
        requested = (
            requested_status.value
            if isinstance(requested_status, ProjectStatus)
            else str(requested_status)
        )
        logger.info(
            "project_status_change_ignored",
            extra={
                "project_code": project_code,
                "current_status": project.status,
                "requested_status": requested,
            },
        )
        return StatusChangeResult(
            status=ProjectStatus(project.status),
            message=STATUS_IS_DERIVED_MESSAGE,
        )
