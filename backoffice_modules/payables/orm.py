"""
Payables ORM Models (``backoffice_modules.payables.orm``).

Responsibility
--------------
SQLAlchemy persistence for issued purchase orders and received vendor
invoices.

Guarantees
----------
* ``issued_pos.po_number`` is unique.
* ``received_invoices.issued_po_id`` must reference an existing issued PO.
"""

from datetime import date, datetime
from decimal import Decimal
from uuid import UUID

from sqlalchemy import Date, DateTime, ForeignKey, Index, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from backoffice_kernel.db.base import TrackedBase


def _rate_source(value: str | None):
    from backoffice_kernel.services.currency_service import ExchangeRateSource

    return ExchangeRateSource(value) if value else None


class IssuedPOModel(TrackedBase):
    """ORM model for purchase orders issued to vendors."""

    __tablename__ = "issued_pos"

    __table_args__ = (
        UniqueConstraint("po_number", name="uq_issued_pos_po_number"),
        Index("idx_issued_pos_status", "status"),
    )

    po_number: Mapped[str] = mapped_column(String(100), nullable=False)
    items: Mapped[str] = mapped_column(Text, nullable=False)
    recipient: Mapped[str] = mapped_column(String(200), nullable=False)
    # Free text; issued POs may be raised for overheads with no project.
    project_code: Mapped[str | None] = mapped_column(String(100), nullable=True)

    amount: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="MYR")
    amount_myr: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    exchange_rate: Mapped[Decimal] = mapped_column(Numeric(18, 6), nullable=False)
    exchange_rate_source: Mapped[str | None] = mapped_column(String(10), nullable=True)

    issue_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="issued")
    file_url: Mapped[str | None] = mapped_column(String(500), nullable=True)

    def to_dto(self):
        from backoffice_modules.payables.models import IssuedPO, IssuedPOStatus

        return IssuedPO(
            id=self.id,
            po_number=self.po_number,
            items=self.items,
            recipient=self.recipient,
            amount=self.amount,
            currency=self.currency,
            amount_myr=self.amount_myr,
            exchange_rate=self.exchange_rate,
            exchange_rate_source=_rate_source(self.exchange_rate_source),
            issue_date=self.issue_date,
            status=IssuedPOStatus(self.status),
            project_code=self.project_code,
            due_date=self.due_date,
            file_url=self.file_url,
        )

    def __repr__(self) -> str:
        return f"<IssuedPOModel {self.po_number} {self.status}>"


class ReceivedInvoiceModel(TrackedBase):
    """ORM model for vendor invoices received against an issued PO."""

    __tablename__ = "received_invoices"

    __table_args__ = (
        Index("idx_received_invoices_issued_po_id", "issued_po_id"),
        Index("idx_received_invoices_status", "status"),
    )

    invoice_number: Mapped[str] = mapped_column(String(100), nullable=False)
    issued_po_id: Mapped[UUID] = mapped_column(
        ForeignKey("issued_pos.id"), nullable=False
    )
    vendor_name: Mapped[str] = mapped_column(String(200), nullable=False)

    amount: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="MYR")
    amount_myr: Mapped[Decimal] = mapped_column(Numeric(15, 2), nullable=False)
    exchange_rate: Mapped[Decimal] = mapped_column(Numeric(18, 6), nullable=False)
    exchange_rate_source: Mapped[str | None] = mapped_column(String(10), nullable=True)

    invoice_date: Mapped[date] = mapped_column(Date, nullable=False)
    received_date: Mapped[date] = mapped_column(Date, nullable=False)
    due_date: Mapped[date | None] = mapped_column(Date, nullable=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(20), nullable=False, default="pending")
    file_url: Mapped[str | None] = mapped_column(String(500), nullable=True)

    verified_by: Mapped[UUID | None] = mapped_column(nullable=True)
    verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    def to_dto(self):
        from backoffice_modules.payables.models import ReceivedInvoice, ReceivedInvoiceStatus

        return ReceivedInvoice(
            id=self.id,
            invoice_number=self.invoice_number,
            issued_po_id=self.issued_po_id,
            vendor_name=self.vendor_name,
            amount=self.amount,
            currency=self.currency,
            amount_myr=self.amount_myr,
            exchange_rate=self.exchange_rate,
            exchange_rate_source=_rate_source(self.exchange_rate_source),
            invoice_date=self.invoice_date,
            received_date=self.received_date,
            status=ReceivedInvoiceStatus(self.status),
            due_date=self.due_date,
            description=self.description,
            file_url=self.file_url,
            verified_by=self.verified_by,
            verified_at=self.verified_at,
            paid_at=self.paid_at,
        )

    def __repr__(self) -> str:
        return f"<ReceivedInvoiceModel {self.invoice_number} {self.status}>"
