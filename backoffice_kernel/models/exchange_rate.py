"""
Module: backoffice_kernel.models.exchange_rate
Responsibility: ORM persistence for market exchange rates into the base
    currency (MYR).  Each row is a timestamped, sourced conversion factor
    between two ISO 4217 currencies.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - rate is strictly positive (checked by the writing service and by a
      CHECK constraint).
    - The latest row with effective_at <= now is the market rate for a pair.
      Older rows are kept so historical lookups stay reproducible.

Audit relevance:
    Purchase orders and invoices snapshot the rate they were converted at,
    so later rows never alter amounts already stored.
"""

from datetime import datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, DateTime, Index, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from backoffice_kernel.db.base import TrackedBase


class ExchangeRate(TrackedBase):
    """
    Currency exchange rate record -- one directional conversion factor.

    ``from_currency`` amount * ``rate`` = ``to_currency`` amount.
    """

    __tablename__ = "exchange_rates"

    __table_args__ = (
        CheckConstraint("rate > 0", name="ck_exchange_rate_positive"),
        Index(
            "idx_rate_lookup",
            "from_currency",
            "to_currency",
            "effective_at",
        ),
    )

    from_currency: Mapped[str] = mapped_column(String(3), nullable=False)
    to_currency: Mapped[str] = mapped_column(String(3), nullable=False)

    rate: Mapped[Decimal] = mapped_column(Numeric(18, 6), nullable=False)

    effective_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    # "manual" for rates keyed in by finance, "api" for fetched feeds
    source: Mapped[str] = mapped_column(String(50), nullable=False)

    reference: Mapped[str | None] = mapped_column(String(200), nullable=True)

    def __repr__(self) -> str:
        return f"<ExchangeRate {self.from_currency}/{self.to_currency} = {self.rate}>"

    def convert(self, amount: Decimal) -> Decimal:
        """Convert an amount using this rate.  Does NOT round."""
        return amount * self.rate
