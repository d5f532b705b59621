"""
Procurement Configuration (``backoffice_modules.procurement.config``).

Guardrails for manual MYR adjustments and the rate-fetch timeout used when
purchase orders are converted.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Self

from backoffice_kernel.domain.currency import BASE_CURRENCY
from backoffice_kernel.logging_config import get_logger

logger = get_logger("modules.procurement.config")


@dataclass
class ProcurementConfig:
    """
    Configuration for the purchase-order revision chain.

    An adjustment that moves ``amount_myr`` by more than
    ``max_adjustment_percent`` must be entered as a revision instead.
    """

    max_adjustment_percent: Decimal = Decimal("50")
    min_adjustment_reason_length: int = 10
    base_currency: str = BASE_CURRENCY
    rate_fetch_timeout_seconds: float = 10.0

    def __post_init__(self):
        if self.max_adjustment_percent <= 0:
            raise ValueError("max_adjustment_percent must be positive")
        if self.min_adjustment_reason_length < 0:
            raise ValueError("min_adjustment_reason_length cannot be negative")
        if self.base_currency != BASE_CURRENCY:
            raise ValueError(f"base_currency must be {BASE_CURRENCY}")
        if self.rate_fetch_timeout_seconds <= 0:
            raise ValueError("rate_fetch_timeout_seconds must be positive")
        logger.debug(
            "procurement_config_initialized",
            extra={
                "max_adjustment_percent": str(self.max_adjustment_percent),
                "min_adjustment_reason_length": self.min_adjustment_reason_length,
                "rate_fetch_timeout_seconds": self.rate_fetch_timeout_seconds,
            },
        )

    @classmethod
    def with_defaults(cls) -> Self:
        logger.info("procurement_config_created_with_defaults")
        return cls()
