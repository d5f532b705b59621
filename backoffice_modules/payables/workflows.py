"""
Payables Workflows (``backoffice_modules.payables.workflows``).

::

    Issued PO:          issued --invoice_received--> received --settle--> completed
                        issued --settle--> completed

    Received invoice:   pending  --verify--> verified --pay--> paid
                        pending  --dispute--> disputed
                        verified --dispute--> disputed
                        disputed --verify--> verified
"""

from backoffice_kernel.domain.workflow import Guard, Transition, Workflow
from backoffice_modules.payables.models import IssuedPOStatus, ReceivedInvoiceStatus

INVOICE_RECEIVED = "invoice_received"
SETTLE = "settle"

VERIFY = "verify"
DISPUTE = "dispute"
PAY = "pay"

VENDOR_INVOICE_PAID = Guard(
    name="vendor_invoice_paid",
    description="A received invoice against this PO has been paid",
)

_ISSUED = IssuedPOStatus.ISSUED.value
_RECEIVED = IssuedPOStatus.RECEIVED.value
_COMPLETED = IssuedPOStatus.COMPLETED.value

ISSUED_PO_WORKFLOW = Workflow(
    name="issued_po",
    description="Purchase order issued to a vendor",
    initial_state=_ISSUED,
    states=(_ISSUED, _RECEIVED, _COMPLETED),
    transitions=(
        Transition(_ISSUED, _RECEIVED, action=INVOICE_RECEIVED),
        Transition(_RECEIVED, _COMPLETED, action=SETTLE, guard=VENDOR_INVOICE_PAID),
        Transition(_ISSUED, _COMPLETED, action=SETTLE, guard=VENDOR_INVOICE_PAID),
    ),
    terminal_states=(_COMPLETED,),
)

_PENDING = ReceivedInvoiceStatus.PENDING.value
_VERIFIED = ReceivedInvoiceStatus.VERIFIED.value
_PAID = ReceivedInvoiceStatus.PAID.value
_DISPUTED = ReceivedInvoiceStatus.DISPUTED.value

RECEIVED_INVOICE_WORKFLOW = Workflow(
    name="received_invoice",
    description="Vendor invoice verification and payment",
    initial_state=_PENDING,
    states=(_PENDING, _VERIFIED, _PAID, _DISPUTED),
    transitions=(
        Transition(_PENDING, _VERIFIED, action=VERIFY),
        Transition(_DISPUTED, _VERIFIED, action=VERIFY),
        Transition(_PENDING, _DISPUTED, action=DISPUTE),
        Transition(_VERIFIED, _DISPUTED, action=DISPUTE),
        Transition(_VERIFIED, _PAID, action=PAY),
    ),
    terminal_states=(_PAID,),
)
