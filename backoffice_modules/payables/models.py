"""
Payables Domain Models (``backoffice_modules.payables.models``).

Responsibility
--------------
Frozen value objects for the vendor side: purchase orders the company
issues to suppliers, and the supplier invoices received against them.

Invariants enforced
-------------------
* All monetary fields use ``Decimal``.
* A received invoice always references exactly one issued PO.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from backoffice_kernel.services.currency_service import ExchangeRateSource


class IssuedPOStatus(Enum):
    """Lifecycle of a purchase order issued to a vendor."""
    ISSUED = "issued"
    RECEIVED = "received"
    COMPLETED = "completed"


class ReceivedInvoiceStatus(Enum):
    """Lifecycle of a vendor invoice."""
    PENDING = "pending"
    VERIFIED = "verified"
    PAID = "paid"
    DISPUTED = "disputed"


@dataclass(frozen=True)
class IssuedPO:
    id: UUID
    po_number: str
    items: str
    recipient: str
    amount: Decimal
    currency: str
    amount_myr: Decimal
    exchange_rate: Decimal
    exchange_rate_source: ExchangeRateSource | None
    issue_date: date
    status: IssuedPOStatus
    project_code: str | None = None
    due_date: date | None = None
    file_url: str | None = None


@dataclass(frozen=True)
class ReceivedInvoice:
    """A supplier invoice; ``vendor_name`` is copied from the issued PO's recipient."""
    id: UUID
    invoice_number: str
    issued_po_id: UUID
    vendor_name: str
    amount: Decimal
    currency: str
    amount_myr: Decimal
    exchange_rate: Decimal
    exchange_rate_source: ExchangeRateSource | None
    invoice_date: date
    received_date: date
    status: ReceivedInvoiceStatus
    due_date: date | None = None
    description: str | None = None
    file_url: str | None = None
    verified_by: UUID | None = None
    verified_at: datetime | None = None
    paid_at: datetime | None = None


@dataclass(frozen=True)
class ReceivedInvoiceResult:
    """
    Outcome of a received-invoice write.  ``issued_po_status`` is the linked
    PO's status afterwards; ``issued_po_changed`` tells whether this write
    moved it.
    """
    invoice: ReceivedInvoice
    issued_po_status: IssuedPOStatus
    issued_po_changed: bool = False
