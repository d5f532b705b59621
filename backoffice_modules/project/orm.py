"""
Project ORM Models (``backoffice_modules.project.orm``).

Responsibility
--------------
SQLAlchemy persistence for projects and variation orders.  Maps to the
``Project`` frozen dataclass in ``models.py``.

Architecture position
---------------------
**Modules layer** -- persistence.  Imports from ``backoffice_kernel.db.base``
and sibling ``models.py``.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    Boolean,
    Date,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from backoffice_kernel.db.base import TrackedBase


class ProjectModel(TrackedBase):
    """
    ORM model for projects.

    Guarantees:
        - project_code is unique (uq_projects_project_code).
        - vo_number is unique within a parent (uq_projects_parent_vo_number).
        - status and billing_type stored as string enum values.
    """

    __tablename__ = "projects"

    __table_args__ = (
        UniqueConstraint("project_code", name="uq_projects_project_code"),
        UniqueConstraint(
            "parent_project_id", "vo_number", name="uq_projects_parent_vo_number"
        ),
        Index("idx_projects_status", "status"),
        Index("idx_projects_parent_project_id", "parent_project_id"),
    )

    project_code: Mapped[str] = mapped_column(String(20), nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    client_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pre-lim")
    billing_type: Mapped[str] = mapped_column(String(20), nullable=False, default="hourly")
    manager_id: Mapped[UUID | None] = mapped_column(nullable=True)
    lead_engineer_id: Mapped[UUID | None] = mapped_column(nullable=True)
    planned_hours: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, default=Decimal("0")
    )
    actual_hours: Mapped[Decimal] = mapped_column(
        Numeric(10, 2), nullable=False, default=Decimal("0")
    )
    inquiry_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    po_received_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    completion_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    parent_project_id: Mapped[UUID | None] = mapped_column(
        ForeignKey("projects.id"), nullable=True
    )
    is_variation_order: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    vo_number: Mapped[int | None] = mapped_column(Integer, nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    def to_dto(self):
        """Convert ORM model to frozen dataclass."""
        from backoffice_modules.project.models import BillingType, Project, ProjectStatus

        return Project(
            id=self.id,
            project_code=self.project_code,
            title=self.title,
            status=ProjectStatus(self.status),
            billing_type=BillingType(self.billing_type),
            client_name=self.client_name,
            manager_id=self.manager_id,
            lead_engineer_id=self.lead_engineer_id,
            planned_hours=self.planned_hours if self.planned_hours is not None else Decimal("0"),
            actual_hours=self.actual_hours if self.actual_hours is not None else Decimal("0"),
            inquiry_date=self.inquiry_date,
            po_received_date=self.po_received_date,
            completion_date=self.completion_date,
            parent_project_id=self.parent_project_id,
            is_variation_order=self.is_variation_order,
            vo_number=self.vo_number,
            description=self.description,
        )

    def __repr__(self) -> str:
        return f"<ProjectModel {self.project_code}: {self.status}>"
