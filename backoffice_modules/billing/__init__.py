"""
Billing Module (``backoffice_modules.billing``).

Client invoices: per-project sequencing, cumulative percentage of the
contract billed, and project completion at 100%.
"""

from backoffice_modules.billing.config import BillingConfig
from backoffice_modules.billing.models import (
    Invoice,
    InvoiceContext,
    InvoiceCreationResult,
    InvoiceDeletionResult,
    InvoiceStatus,
    InvoiceUpdateResult,
)

__all__ = [
    "BillingConfig",
    "Invoice",
    "InvoiceContext",
    "InvoiceCreationResult",
    "InvoiceDeletionResult",
    "InvoiceStatus",
    "InvoiceUpdateResult",
]
