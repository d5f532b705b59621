"""
Payables Module (``backoffice_modules.payables``).

Purchase orders issued to vendors and the vendor invoices received against
them.
"""

from backoffice_modules.payables.models import (
    IssuedPO,
    IssuedPOStatus,
    ReceivedInvoice,
    ReceivedInvoiceResult,
    ReceivedInvoiceStatus,
)
from backoffice_modules.payables.workflows import ISSUED_PO_WORKFLOW, RECEIVED_INVOICE_WORKFLOW

__all__ = [
    "ISSUED_PO_WORKFLOW",
    "IssuedPO",
    "IssuedPOStatus",
    "RECEIVED_INVOICE_WORKFLOW",
    "ReceivedInvoice",
    "ReceivedInvoiceResult",
    "ReceivedInvoiceStatus",
]
