"""
Project Domain Models (``backoffice_modules.project.models``).

Responsibility
--------------
Frozen value objects for engineering projects and the signals the status
deriver hands back to callers (status transitions, creation results for
the notification collaborator).

Architecture position
---------------------
**Modules layer** -- pure data definitions with ZERO I/O.  Returned by
``ProjectService`` and ``ProjectStatusDeriver``.

Invariants enforced
-------------------
* All models are ``frozen=True``.
* Hours use ``Decimal`` -- never ``float``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID


class ProjectStatus(Enum):
    """Derived project lifecycle.  Must align with ``workflows.PROJECT_STATUS_WORKFLOW``."""
    PRE_LIM = "pre-lim"
    ONGOING = "ongoing"
    COMPLETED = "completed"


class BillingType(Enum):
    """How the client is billed for the engagement."""
    HOURLY = "hourly"
    LUMP_SUM = "lump_sum"


@dataclass(frozen=True)
class Project:
    """An engineering engagement identified by ``J<yy><nnn>`` or ``<parent>_<n>``."""
    id: UUID
    project_code: str
    title: str
    status: ProjectStatus
    billing_type: BillingType
    client_name: str | None = None
    manager_id: UUID | None = None
    lead_engineer_id: UUID | None = None
    planned_hours: Decimal = Decimal("0")
    actual_hours: Decimal = Decimal("0")
    inquiry_date: date | None = None
    po_received_date: date | None = None
    completion_date: date | None = None
    parent_project_id: UUID | None = None
    is_variation_order: bool = False
    vo_number: int | None = None
    description: str | None = None


@dataclass(frozen=True)
class StatusTransition:
    """Outcome of one status derivation.  ``changed`` is False when nothing was written."""
    project_code: str
    previous: ProjectStatus
    current: ProjectStatus
    changed: bool

    @property
    def completed(self) -> bool:
        """True when this derivation moved the project into ``completed``."""
        return self.changed and self.current is ProjectStatus.COMPLETED


@dataclass(frozen=True)
class StatusChangeResult:
    """Reply to a manual status-change request, which never changes anything."""
    status: ProjectStatus
    message: str


@dataclass(frozen=True)
class ProjectCreationResult:
    """A new project plus the users the notification collaborator should inform."""
    project: Project
    notify_user_ids: tuple[UUID, ...] = ()
