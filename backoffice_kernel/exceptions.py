"""
Typed Exception Hierarchy for the Back-Office Engine.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

The route layer maps failures onto HTTP responses and the dashboard shows the
reason to the user.  Callers must be able to tell "PO not found" from
"PO already paid" from "adjustment too large" without parsing messages:

  1. Every error has a TYPED exception class (catch by type, not message)
  2. Every exception has a CODE attribute (machine-readable, API-safe)
  3. Exceptions carry structured DATA (not just a message string)

Example:
    try:
        service.adjust_myr_amount(po_id, Decimal("16000"), reason, actor_id)
    except AdjustmentTooLargeError as e:
        return {"error": e.code, "percent_difference": str(e.percent_difference)}

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    BackofficeError (base)
    |
    +-- NotFoundError                          404-equivalent, not retried
    |   +-- ProjectNotFoundError
    |   +-- ParentProjectNotFoundError
    |   +-- PurchaseOrderNotFoundError
    |   +-- InvoiceNotFoundError
    |   +-- IssuedPONotFoundError
    |   +-- ReceivedInvoiceNotFoundError
    |
    +-- InvalidStateError                      400-equivalent, not retried
    |   +-- PurchaseOrderInactiveError
    |   +-- PurchaseOrderPaidError
    |   +-- InvoicePaidError
    |   +-- ReceivedInvoicePaidError
    |   +-- InvalidTransitionError
    |
    +-- ValidationError                        400-equivalent
    |   +-- NonPositiveAmountError
    |   +-- AdjustmentTooLargeError
    |   +-- AdjustmentReasonTooShortError
    |   +-- DuplicatePONumberError
    |   +-- DuplicateInvoiceNumberError
    |   +-- DuplicateIssuedPONumberError
    |   +-- InvalidProjectCodeError
    |   +-- DuplicateProjectCodeError
    |   +-- InvalidVariationOrderParentError
    |   +-- BillingTypeLockedError
    |   +-- CumulativePercentageExceededError
    |   +-- InvalidCurrencyError
    |   +-- InvalidExchangeRateError
    |
    +-- ConversionError                        502/424-equivalent
    |   +-- ExchangeRateNotFoundError
    |   +-- RateFetchTimeoutError
    |
    +-- ConcurrencyError                       retry with a fresh read
        +-- InvoiceSequenceConflictError

===============================================================================
PROPAGATION
===============================================================================

Services raise; they never commit or roll back.  The caller's transaction
(``session_scope()``) rolls back on any of these errors, so a failed
operation never leaves a partially-written revision pair, status/date pair,
or unconverted record behind.
"""

from decimal import Decimal


class BackofficeError(Exception):
    """
    Base exception for all back-office engine errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "BACKOFFICE_ERROR"


# Not-found exceptions


class NotFoundError(BackofficeError):
    """Base exception for a referenced entity that does not exist."""

    code: str = "NOT_FOUND"

    def __init__(self, entity_type: str, identifier: str):
        self.entity_type = entity_type
        self.identifier = identifier
        super().__init__(f"{entity_type} not found: {identifier}")


class ProjectNotFoundError(NotFoundError):
    """Project with given code or id was not found."""

    code: str = "PROJECT_NOT_FOUND"

    def __init__(self, identifier: str):
        super().__init__("Project", identifier)


class ParentProjectNotFoundError(NotFoundError):
    """Variation order references a parent project that does not exist."""

    code: str = "PARENT_PROJECT_NOT_FOUND"

    def __init__(self, identifier: str):
        super().__init__("Parent project", identifier)


class PurchaseOrderNotFoundError(NotFoundError):
    """Purchase order with given id was not found."""

    code: str = "PURCHASE_ORDER_NOT_FOUND"

    def __init__(self, identifier: str):
        super().__init__("Purchase order", identifier)


class InvoiceNotFoundError(NotFoundError):
    """Invoice with given id was not found."""

    code: str = "INVOICE_NOT_FOUND"

    def __init__(self, identifier: str):
        super().__init__("Invoice", identifier)


class IssuedPONotFoundError(NotFoundError):
    """Issued purchase order with given id was not found."""

    code: str = "ISSUED_PO_NOT_FOUND"

    def __init__(self, identifier: str):
        super().__init__("Issued PO", identifier)


class ReceivedInvoiceNotFoundError(NotFoundError):
    """Received (vendor) invoice with given id was not found."""

    code: str = "RECEIVED_INVOICE_NOT_FOUND"

    def __init__(self, identifier: str):
        super().__init__("Received invoice", identifier)


# Invalid-state exceptions


class InvalidStateError(BackofficeError):
    """Operation attempted against an entity whose state forbids it."""

    code: str = "INVALID_STATE"


class PurchaseOrderInactiveError(InvalidStateError):
    """The purchase order has been superseded by a later revision."""

    code: str = "PURCHASE_ORDER_INACTIVE"

    def __init__(self, po_id: str, po_number: str, operation: str):
        self.po_id = po_id
        self.po_number = po_number
        self.operation = operation
        super().__init__(
            f"Cannot {operation} inactive PO {po_number}: "
            "it has been superseded by a later revision"
        )


class PurchaseOrderPaidError(InvalidStateError):
    """The purchase order is paid and can no longer change."""

    code: str = "PURCHASE_ORDER_PAID"

    def __init__(self, po_id: str, po_number: str, operation: str):
        self.po_id = po_id
        self.po_number = po_number
        self.operation = operation
        super().__init__(f"Cannot {operation} paid PO {po_number}")


class InvoicePaidError(InvalidStateError):
    """The invoice is paid and its billed share can no longer change."""

    code: str = "INVOICE_PAID"

    def __init__(self, invoice_id: str, invoice_number: str, operation: str = "edit"):
        self.invoice_id = invoice_id
        self.invoice_number = invoice_number
        self.operation = operation
        super().__init__(f"Cannot {operation} paid invoice {invoice_number}")


class ReceivedInvoicePaidError(InvalidStateError):
    """The vendor invoice is paid and can no longer be edited or deleted."""

    code: str = "RECEIVED_INVOICE_PAID"

    def __init__(self, invoice_id: str, operation: str):
        self.invoice_id = invoice_id
        self.operation = operation
        super().__init__(f"Cannot {operation} a paid invoice")


class InvalidTransitionError(InvalidStateError):
    """A lifecycle transition is not allowed from the current state."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, entity_type: str, from_state: str, action: str):
        self.entity_type = entity_type
        self.from_state = from_state
        self.action = action
        super().__init__(
            f"Cannot {action} {entity_type} in state '{from_state}'"
        )


# Validation exceptions


class ValidationError(BackofficeError):
    """Business rule violated before anything was persisted."""

    code: str = "VALIDATION_ERROR"


class NonPositiveAmountError(ValidationError):
    """An amount that must be positive was zero or negative."""

    code: str = "NON_POSITIVE_AMOUNT"

    def __init__(self, field: str, amount: Decimal):
        self.field = field
        self.amount = amount
        super().__init__(f"{field} must be positive, got {amount}")


class AdjustmentTooLargeError(ValidationError):
    """A manual MYR adjustment moves the amount by more than the allowed share."""

    code: str = "ADJUSTMENT_TOO_LARGE"

    def __init__(self, po_id: str, percent_difference: Decimal, max_percent: Decimal):
        self.po_id = po_id
        self.percent_difference = percent_difference
        self.max_percent = max_percent
        super().__init__(
            f"Adjustment too large ({percent_difference:.1f}%). "
            "Please create a revision instead."
        )


class AdjustmentReasonTooShortError(ValidationError):
    """The adjustment reason is missing or shorter than required."""

    code: str = "ADJUSTMENT_REASON_TOO_SHORT"

    def __init__(self, min_length: int):
        self.min_length = min_length
        super().__init__(
            f"Adjustment reason must be at least {min_length} characters"
        )


class DuplicatePONumberError(ValidationError):
    """A purchase order with this number already exists."""

    code: str = "DUPLICATE_PO_NUMBER"

    def __init__(self, po_number: str):
        self.po_number = po_number
        super().__init__(f"Purchase order with number {po_number} already exists")


class DuplicateInvoiceNumberError(ValidationError):
    """An invoice with this number already exists."""

    code: str = "DUPLICATE_INVOICE_NUMBER"

    def __init__(self, invoice_number: str):
        self.invoice_number = invoice_number
        super().__init__(f"Invoice with number {invoice_number} already exists")


class DuplicateIssuedPONumberError(ValidationError):
    """An issued purchase order with this number already exists."""

    code: str = "DUPLICATE_ISSUED_PO_NUMBER"

    def __init__(self, po_number: str):
        self.po_number = po_number
        super().__init__(f"Issued PO with number {po_number} already exists")


class InvalidProjectCodeError(ValidationError):
    """Project code does not match J<yy><nnn>."""

    code: str = "INVALID_PROJECT_CODE"

    def __init__(self, project_code: str):
        self.project_code = project_code
        super().__init__(
            f"Project code must be in format J2XXXX (e.g., J25001), got '{project_code}'"
        )


class DuplicateProjectCodeError(ValidationError):
    """A project with this code already exists."""

    code: str = "DUPLICATE_PROJECT_CODE"

    def __init__(self, project_code: str):
        self.project_code = project_code
        super().__init__(f"Project with code {project_code} already exists")


class InvalidVariationOrderParentError(ValidationError):
    """A variation order cannot be raised against another variation order."""

    code: str = "INVALID_VARIATION_ORDER_PARENT"

    def __init__(self, parent_code: str):
        self.parent_code = parent_code
        super().__init__(
            f"Project {parent_code} is itself a variation order and cannot be a VO parent"
        )


class BillingTypeLockedError(ValidationError):
    """Billing type cannot change once a purchase order has been received."""

    code: str = "BILLING_TYPE_LOCKED"

    def __init__(self, project_code: str):
        self.project_code = project_code
        super().__init__(
            f"Cannot change billing type of {project_code} after a PO exists"
        )


class CumulativePercentageExceededError(ValidationError):
    """Invoicing would bill more than 100% of the project."""

    code: str = "CUMULATIVE_PERCENTAGE_EXCEEDED"

    def __init__(self, project_code: str, cumulative_percentage: Decimal):
        self.project_code = project_code
        self.cumulative_percentage = cumulative_percentage
        super().__init__(
            f"Cumulative invoiced percentage for {project_code} would reach "
            f"{cumulative_percentage}%, exceeding 100%"
        )


class InvalidCurrencyError(ValidationError):
    """Currency code is not a valid ISO 4217 code."""

    code: str = "INVALID_CURRENCY"

    def __init__(self, currency: str):
        self.currency = currency
        super().__init__(f"Invalid currency code: {currency}")


class InvalidExchangeRateError(ValidationError):
    """Exchange rate is zero, negative, or otherwise unusable."""

    code: str = "INVALID_EXCHANGE_RATE"

    def __init__(self, rate: str, reason: str):
        self.rate = rate
        self.reason = reason
        super().__init__(f"Invalid exchange rate {rate}: {reason}")


# Conversion exceptions


class ConversionError(BackofficeError):
    """Exchange-rate lookup failed; the triggering write must abort."""

    code: str = "CONVERSION_FAILED"

    def __init__(self, from_currency: str, to_currency: str, reason: str):
        self.from_currency = from_currency
        self.to_currency = to_currency
        self.reason = reason
        super().__init__(
            f"Currency conversion failed: {from_currency} -> {to_currency}: {reason}"
        )


class ExchangeRateNotFoundError(ConversionError):
    """No exchange rate exists for the currency pair."""

    code: str = "EXCHANGE_RATE_NOT_FOUND"

    def __init__(self, from_currency: str, to_currency: str):
        super().__init__(
            from_currency,
            to_currency,
            f"No exchange rate found for {from_currency} to {to_currency}",
        )


class RateFetchTimeoutError(ConversionError):
    """The rate provider did not answer within the caller's timeout."""

    code: str = "RATE_FETCH_TIMEOUT"

    def __init__(self, from_currency: str, to_currency: str, timeout_seconds: float):
        self.timeout_seconds = timeout_seconds
        super().__init__(
            from_currency,
            to_currency,
            f"rate lookup timed out after {timeout_seconds}s",
        )


# Concurrency exceptions


class ConcurrencyError(BackofficeError):
    """Base exception for concurrency-related errors."""

    code: str = "CONCURRENCY_ERROR"


class InvoiceSequenceConflictError(ConcurrencyError):
    """Two invoices raced for the same per-project sequence number."""

    code: str = "INVOICE_SEQUENCE_CONFLICT"

    def __init__(self, project_code: str, invoice_sequence: int):
        self.project_code = project_code
        self.invoice_sequence = invoice_sequence
        super().__init__(
            f"Invoice sequence {invoice_sequence} for {project_code} was taken "
            "by a concurrent transaction; retry with a fresh read"
        )
