"""
Procurement ORM Models (``backoffice_modules.procurement.orm``).

Responsibility
--------------
SQLAlchemy persistence for received purchase orders and their revision
chains.  Maps to the ``PurchaseOrder`` frozen dataclass.

Guarantees
----------
* ``po_number`` is unique across all revisions.
* ``(po_number_base, revision_number)`` is unique.
* At most one active row per ``po_number_base`` (partial unique index
  ``uq_purchase_orders_active_base`` on PostgreSQL and SQLite).
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    Boolean,
    Date,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column

from backoffice_kernel.db.base import TrackedBase


class PurchaseOrderModel(TrackedBase):
    """ORM model for received purchase orders."""

    __tablename__ = "purchase_orders"

    __table_args__ = (
        UniqueConstraint("po_number", name="uq_purchase_orders_po_number"),
        UniqueConstraint(
            "po_number_base",
            "revision_number",
            name="uq_purchase_orders_base_revision",
        ),
        Index(
            "uq_purchase_orders_active_base",
            "po_number_base",
            unique=True,
            postgresql_where=text("is_active"),
            sqlite_where=text("is_active = 1"),
        ),
        Index("idx_purchase_orders_project_code", "project_code"),
        Index("idx_purchase_orders_status", "status"),
    )

    po_number: Mapped[str] = mapped_column(String(100), nullable=False)
    po_number_base: Mapped[str] = mapped_column(String(100), nullable=False)
    project_code: Mapped[str] = mapped_column(
        ForeignKey("projects.project_code"), nullable=False
    )
    client_name: Mapped[str] = mapped_column(String(200), nullable=False)

    amount: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="MYR")
    amount_myr: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    exchange_rate: Mapped[Decimal] = mapped_column(Numeric(18, 6), nullable=False)
    exchange_rate_source: Mapped[str | None] = mapped_column(String(10), nullable=True)

    received_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="received")
    file_url: Mapped[str | None] = mapped_column(String(500), nullable=True)

    # Revision chain
    revision_number: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    supersedes: Mapped[UUID | None] = mapped_column(
        ForeignKey("purchase_orders.id"), nullable=True
    )
    superseded_by: Mapped[UUID | None] = mapped_column(
        ForeignKey("purchase_orders.id"), nullable=True
    )
    revision_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    revision_reason: Mapped[str | None] = mapped_column(Text, nullable=True)

    # Manual MYR adjustment, orthogonal to revisions
    amount_myr_adjusted: Mapped[Decimal | None] = mapped_column(Numeric(15, 2), nullable=True)
    adjustment_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    adjusted_by: Mapped[UUID | None] = mapped_column(nullable=True)
    adjusted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def to_dto(self):
        """Convert ORM model to frozen dataclass."""
        from backoffice_kernel.services.currency_service import ExchangeRateSource
        from backoffice_modules.procurement.models import POStatus, PurchaseOrder

        return PurchaseOrder(
            id=self.id,
            po_number=self.po_number,
            po_number_base=self.po_number_base,
            project_code=self.project_code,
            client_name=self.client_name,
            amount=self.amount,
            currency=self.currency,
            amount_myr=self.amount_myr,
            exchange_rate=self.exchange_rate,
            exchange_rate_source=(
                ExchangeRateSource(self.exchange_rate_source)
                if self.exchange_rate_source
                else None
            ),
            received_date=self.received_date,
            status=POStatus(self.status),
            revision_number=self.revision_number,
            is_active=self.is_active,
            due_date=self.due_date,
            description=self.description,
            file_url=self.file_url,
            supersedes=self.supersedes,
            superseded_by=self.superseded_by,
            revision_date=self.revision_date,
            revision_reason=self.revision_reason,
            amount_myr_adjusted=self.amount_myr_adjusted,
            adjustment_reason=self.adjustment_reason,
            adjusted_by=self.adjusted_by,
            adjusted_at=self.adjusted_at,
        )

    def __repr__(self) -> str:
        return (
            f"<PurchaseOrderModel {self.po_number} rev {self.revision_number}"
            f"{' active' if self.is_active else ''}>"
        )
