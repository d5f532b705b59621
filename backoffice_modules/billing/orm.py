"""
Billing ORM Models (``backoffice_modules.billing.orm``).

Responsibility
--------------
SQLAlchemy persistence for client invoices.  An invoice may bill several
projects; the projects are stored as rows of ``invoice_project_refs`` and
matched by exact code, never by substring.

Guarantees
----------
* ``invoice_number`` is unique.
* ``(project_code, invoice_sequence)`` is unique -- the backstop for
  concurrent sequencing.
* ``(invoice_id, project_code)`` is unique in the reference table.
* ``(project_code, chain_position)`` is unique: each reference has one slot
  in its project's chain, in the order invoices were added to the project.
"""

from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import (
    Date,
    ForeignKey,
    Index,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from backoffice_kernel.db.base import Base, TrackedBase


class InvoiceModel(TrackedBase):
    """ORM model for client invoices."""

    __tablename__ = "invoices"

    __table_args__ = (
        UniqueConstraint("invoice_number", name="uq_invoices_invoice_number"),
        UniqueConstraint(
            "project_code",
            "invoice_sequence",
            name="uq_invoices_project_sequence",
        ),
        Index("idx_invoices_status", "status"),
    )

    invoice_number: Mapped[str] = mapped_column(String(100), nullable=False)
    # Primary project; also present in project_refs at position 0.
    project_code: Mapped[str] = mapped_column(
        ForeignKey("projects.project_code"), nullable=False
    )
    project_name: Mapped[str] = mapped_column(String(255), nullable=False)

    amount: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="MYR")
    amount_myr: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    exchange_rate: Mapped[Decimal] = mapped_column(Numeric(18, 6), nullable=False)
    exchange_rate_source: Mapped[str | None] = mapped_column(String(10), nullable=True)

    invoice_date: Mapped[date] = mapped_column(Date, nullable=False)
    percentage_of_total: Mapped[Decimal] = mapped_column(Numeric(7, 2), nullable=False)
    invoice_sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    cumulative_percentage: Mapped[Decimal] = mapped_column(Numeric(7, 2), nullable=False)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="draft")
    remark: Mapped[str | None] = mapped_column(Text, nullable=True)
    file_url: Mapped[str | None] = mapped_column(String(500), nullable=True)

    project_refs: Mapped[list["InvoiceProjectRefModel"]] = relationship(
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceProjectRefModel.position",
    )

    def to_dto(self):
        """Convert ORM model to frozen dataclass."""
        from backoffice_kernel.services.currency_service import ExchangeRateSource
        from backoffice_modules.billing.models import Invoice, InvoiceStatus

        return Invoice(
            id=self.id,
            invoice_number=self.invoice_number,
            project_code=self.project_code,
            project_codes=tuple(ref.project_code for ref in self.project_refs),
            project_name=self.project_name,
            amount=self.amount,
            currency=self.currency,
            amount_myr=self.amount_myr,
            exchange_rate=self.exchange_rate,
            exchange_rate_source=(
                ExchangeRateSource(self.exchange_rate_source)
                if self.exchange_rate_source
                else None
            ),
            invoice_date=self.invoice_date,
            percentage_of_total=self.percentage_of_total,
            invoice_sequence=self.invoice_sequence,
            cumulative_percentage=self.cumulative_percentage,
            status=InvoiceStatus(self.status),
            remark=self.remark,
            file_url=self.file_url,
        )

    def __repr__(self) -> str:
        return f"<InvoiceModel {self.invoice_number} {self.project_code}#{self.invoice_sequence}>"


class InvoiceProjectRefModel(Base):
    """One project billed by an invoice."""

    __tablename__ = "invoice_project_refs"

    __table_args__ = (
        UniqueConstraint("invoice_id", "project_code", name="uq_invoice_project_refs"),
        UniqueConstraint(
            "project_code", "chain_position", name="uq_invoice_project_refs_chain"
        ),
        Index("idx_invoice_project_refs_project_code", "project_code"),
    )

    invoice_id: Mapped[UUID] = mapped_column(
        ForeignKey("invoices.id", ondelete="CASCADE"), nullable=False
    )
    project_code: Mapped[str] = mapped_column(
        ForeignKey("projects.project_code"), nullable=False
    )
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # 1-based order within the project's chain; independent of invoice_sequence,
    # which belongs to the primary project only.
    chain_position: Mapped[int] = mapped_column(Integer, nullable=False)

    invoice: Mapped[InvoiceModel] = relationship(back_populates="project_refs")

    def __repr__(self) -> str:
        return f"<InvoiceProjectRefModel {self.project_code}>"
