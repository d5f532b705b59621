"""
Billing Domain Models (``backoffice_modules.billing.models``).

Responsibility
--------------
Frozen value objects for client invoices and the results the invoice
sequencer returns: the created invoice with its completion signal, the
per-project invoicing context, and update/deletion outcomes.

Invariants enforced
-------------------
* Percentages and money use ``Decimal``.
* ``project_codes`` is the normalized, ordered set of projects an invoice
  bills; the first entry is the primary ``project_code``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from enum import Enum
from uuid import UUID

from backoffice_kernel.services.currency_service import ExchangeRateSource
from backoffice_modules.project.models import StatusTransition


class InvoiceStatus(Enum):
    """Client invoice states."""
    DRAFT = "draft"
    SENT = "sent"
    PAID = "paid"
    OVERDUE = "overdue"


@dataclass(frozen=True)
class Invoice:
    """A billing event against one or more projects."""
    id: UUID
    invoice_number: str
    project_code: str
    project_codes: tuple[str, ...]
    project_name: str
    amount: Decimal
    currency: str
    amount_myr: Decimal
    exchange_rate: Decimal
    exchange_rate_source: ExchangeRateSource | None
    invoice_date: date
    percentage_of_total: Decimal
    invoice_sequence: int
    cumulative_percentage: Decimal
    status: InvoiceStatus
    remark: str | None = None
    file_url: str | None = None


@dataclass(frozen=True)
class InvoiceCreationResult:
    """
    The new invoice.  ``project_completed`` is True when this invoice moved
    the primary project into ``completed``.
    """
    invoice: Invoice
    project_completed: bool
    cumulative_percentage: Decimal
    status_transitions: tuple[StatusTransition, ...] = ()


@dataclass(frozen=True)
class InvoiceUpdateResult:
    invoice: Invoice
    status_transitions: tuple[StatusTransition, ...] = ()


@dataclass(frozen=True)
class InvoiceDeletionResult:
    invoice_id: UUID
    invoice_number: str
    file_url: str | None
    status_transitions: tuple[StatusTransition, ...] = ()


@dataclass(frozen=True)
class InvoiceContext:
    """What the invoice form needs before a new invoice for a project is raised."""
    project_code: str
    previous_invoices: tuple[Invoice, ...]
    total_invoiced_percentage: Decimal
    remaining_percentage: Decimal
    next_sequence: int
