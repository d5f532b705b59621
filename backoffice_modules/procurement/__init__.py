"""
Procurement Module (``backoffice_modules.procurement``).

Received client purchase orders: creation, the revision chain, manual MYR
adjustments, and project revenue.
"""

from backoffice_modules.procurement.config import ProcurementConfig
from backoffice_modules.procurement.models import (
    POCreationResult,
    PODeletionResult,
    PORevisionResult,
    POStatus,
    PurchaseOrder,
)

__all__ = [
    "POCreationResult",
    "PODeletionResult",
    "PORevisionResult",
    "POStatus",
    "ProcurementConfig",
    "PurchaseOrder",
]
