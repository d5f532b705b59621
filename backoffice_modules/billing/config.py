"""
Billing Configuration (``backoffice_modules.billing.config``).

Controls the upper bound on cumulative invoicing and the percentage at
which a project counts as fully invoiced.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Self

from backoffice_kernel.logging_config import get_logger

logger = get_logger("modules.billing.config")


@dataclass
class BillingConfig:
    """
    Configuration for the invoice sequencer.

    With ``allow_over_billing`` False, an invoice that would take a
    project's cumulative percentage above ``max_cumulative_percentage`` is
    rejected.
    """

    allow_over_billing: bool = False
    max_cumulative_percentage: Decimal = Decimal("100")
    completion_threshold: Decimal = Decimal("100")

    def __post_init__(self):
        if self.completion_threshold <= 0:
            raise ValueError("completion_threshold must be positive")
        if self.max_cumulative_percentage < self.completion_threshold:
            raise ValueError(
                "max_cumulative_percentage cannot be below completion_threshold"
            )
        logger.debug(
            "billing_config_initialized",
            extra={
                "allow_over_billing": self.allow_over_billing,
                "max_cumulative_percentage": str(self.max_cumulative_percentage),
                "completion_threshold": str(self.completion_threshold),
            },
        )

    @classmethod
    def with_defaults(cls) -> Self:
        logger.info("billing_config_created_with_defaults")
        return cls()
