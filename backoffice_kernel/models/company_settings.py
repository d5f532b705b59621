"""
Module: backoffice_kernel.models.company_settings
Responsibility: Singleton row of firm-wide settings: letterhead identity,
    base currency, and the numbering schemes for client invoices and issued
    purchase orders.
Architecture position: Kernel > Models.  May import from db/base.py only.
"""

from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from backoffice_kernel.db.base import TrackedBase

DEFAULT_COMPANY_NAME = "MYCAE TECHNOLOGIES SDN BHD"
DEFAULT_INVOICE_PREFIX = "MCE"
DEFAULT_INVOICE_START_NUMBER = 1548
DEFAULT_ISSUED_PO_PREFIX = "PO_MCE"
DEFAULT_ISSUED_PO_START_NUMBER = 25009


class CompanySettings(TrackedBase):
    """
    Firm-wide settings.  Exactly one row is expected; the settings service
    creates it with defaults on first read.
    """

    __tablename__ = "company_settings"

    company_name: Mapped[str] = mapped_column(
        String(255), nullable=False, default=DEFAULT_COMPANY_NAME
    )
    registration_number: Mapped[str | None] = mapped_column(String(100), nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)
    email: Mapped[str | None] = mapped_column(String(100), nullable=True)
    sst_id: Mapped[str | None] = mapped_column(String(100), nullable=True)

    base_currency: Mapped[str] = mapped_column(String(3), nullable=False, default="MYR")

    invoice_prefix: Mapped[str] = mapped_column(
        String(20), nullable=False, default=DEFAULT_INVOICE_PREFIX
    )
    invoice_start_number: Mapped[int] = mapped_column(
        Integer, nullable=False, default=DEFAULT_INVOICE_START_NUMBER
    )
    issued_po_prefix: Mapped[str] = mapped_column(
        String(20), nullable=False, default=DEFAULT_ISSUED_PO_PREFIX
    )
    issued_po_start_number: Mapped[int] = mapped_column(
        Integer, nullable=False, default=DEFAULT_ISSUED_PO_START_NUMBER
    )

    invoice_footer: Mapped[str | None] = mapped_column(Text, nullable=True)
    bank_details: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<CompanySettings {self.company_name}>"
