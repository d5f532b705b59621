"""
Procurement Domain Models (``backoffice_modules.procurement.models``).

Responsibility
--------------
Frozen value objects for received (client) purchase orders and the results
of revision-chain operations.

Architecture position
---------------------
**Modules layer** -- pure data definitions.  No I/O.  These objects flow
out of ``PurchaseOrderService`` as immutable snapshots.

Invariants enforced
-------------------
* All monetary fields use ``Decimal``.
* ``effective_amount_myr`` is ``amount_myr_adjusted`` when set, else
  ``amount_myr``.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from uuid import UUID

from backoffice_kernel.services.currency_service import ExchangeRateSource
from backoffice_modules.project.models import StatusTransition


class POStatus(Enum):
    """Commercial state of a received purchase order."""
    RECEIVED = "received"
    IN_PROGRESS = "in-progress"
    INVOICED = "invoiced"
    PAID = "paid"


@dataclass(frozen=True)
class PurchaseOrder:
    """One revision of a client purchase order."""
    id: UUID
    po_number: str
    po_number_base: str
    project_code: str
    client_name: str
    amount: Decimal
    currency: str
    amount_myr: Decimal
    exchange_rate: Decimal
    exchange_rate_source: ExchangeRateSource | None
    received_date: date
    status: POStatus
    revision_number: int
    is_active: bool
    due_date: date | None = None
    description: str | None = None
    file_url: str | None = None
    supersedes: UUID | None = None
    superseded_by: UUID | None = None
    revision_date: datetime | None = None
    revision_reason: str | None = None
    amount_myr_adjusted: Decimal | None = None
    adjustment_reason: str | None = None
    adjusted_by: UUID | None = None
    adjusted_at: datetime | None = None

    @property
    def effective_amount_myr(self) -> Decimal:
        if self.amount_myr_adjusted is not None:
            return self.amount_myr_adjusted
        return self.amount_myr


@dataclass(frozen=True)
class POCreationResult:
    """New purchase order plus the project status derivation it triggered."""
    po: PurchaseOrder
    status_transition: StatusTransition


@dataclass(frozen=True)
class PORevisionResult:
    """The new active revision and the superseded original, after the swap."""
    revision: PurchaseOrder
    original: PurchaseOrder


@dataclass(frozen=True)
class PODeletionResult:
    """
    What was removed.  ``file_url`` is handed to the file collaborator for
    cleanup; ``reactivated_po_id`` names the predecessor made active again.
    """
    po_id: UUID
    po_number: str
    project_code: str
    file_url: str | None
    reactivated_po_id: UUID | None
    status_transition: StatusTransition
