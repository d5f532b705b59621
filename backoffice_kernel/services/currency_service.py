"""
CurrencyConverter -- snapshot conversion of foreign amounts into MYR.

Responsibility:
    Converts a monetary amount in any supported currency into the base
    currency (MYR) and returns the conversion as an immutable snapshot
    (``amount_myr``, ``exchange_rate``, ``source``) that the caller stores on
    the purchase order, invoice, or received invoice.  Once stored, the
    snapshot is never recomputed on read.

Architecture position:
    Kernel > Services.  Used by the procurement, billing, and payables
    modules.  Rates come from an injected ``RateProvider``:

    * ``DatabaseRateProvider`` -- latest ``ExchangeRate`` row effective at or
      before "now", read through its own short-lived session.
    * ``StaticRateProvider`` -- fixed table, for tests and offline use.

Invariants enforced:
    - MYR converts to itself at rate 1 with no source, whatever custom rate
      was supplied.
    - A custom rate is strictly positive and is recorded as ``manual``.
    - A provider rate is recorded as ``auto``.
    - Any provider failure, including a timeout, raises ``ConversionError``
      and nothing is persisted by the converter.

Failure modes:
    - InvalidCurrencyError for unknown ISO codes.
    - InvalidExchangeRateError for a non-positive custom rate.
    - ExchangeRateNotFoundError when the provider has no rate for the pair.
    - RateFetchTimeoutError when the provider exceeds the caller's timeout.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Callable
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from backoffice_kernel.domain.clock import Clock, SystemClock
from backoffice_kernel.domain.currency import BASE_CURRENCY, CurrencyRegistry, round_money
from backoffice_kernel.exceptions import (
    BackofficeError,
    ConversionError,
    ExchangeRateNotFoundError,
    InvalidExchangeRateError,
    RateFetchTimeoutError,
)
from backoffice_kernel.logging_config import get_logger
from backoffice_kernel.models.exchange_rate import ExchangeRate
from backoffice_kernel.services.base import BaseService

logger = get_logger("services.currency")

MYR_RATE = Decimal("1")


class ExchangeRateSource(str, Enum):
    """Where a stored exchange-rate snapshot came from."""

    AUTO = "auto"
    MANUAL = "manual"


@dataclass(frozen=True)
class ConversionResult:
    """Immutable conversion snapshot to be stored on a money-bearing record."""

    amount_myr: Decimal
    exchange_rate: Decimal
    source: ExchangeRateSource | None


@dataclass(frozen=True)
class CurrencySnapshot:
    """The four currency fields of a stored record, before or after an update."""

    amount: Decimal
    currency: str
    amount_myr: Decimal
    exchange_rate: Decimal
    source: ExchangeRateSource | None


# ---------------------------------------------------------------------------
# Rate providers
# ---------------------------------------------------------------------------


class RateProvider(ABC):
    """Source of market rates.  ``fetch_rate`` returns to_amount per from_amount."""

    @abstractmethod
    def fetch_rate(self, from_currency: str, to_currency: str) -> Decimal:
        ...


class StaticRateProvider(RateProvider):
    """Fixed rate table keyed by source currency (target is always MYR)."""

    def __init__(self, rates: dict[str, Decimal] | None = None):
        self._rates: dict[str, Decimal] = {
            code.upper(): Decimal(str(rate)) for code, rate in (rates or {}).items()
        }

    def set_rate(self, currency: str, rate: Decimal) -> None:
        self._rates[currency.upper()] = Decimal(str(rate))

    def fetch_rate(self, from_currency: str, to_currency: str) -> Decimal:
        if to_currency != BASE_CURRENCY:
            raise ExchangeRateNotFoundError(from_currency, to_currency)
        rate = self._rates.get(from_currency.upper())
        if rate is None:
            raise ExchangeRateNotFoundError(from_currency, to_currency)
        return rate


class DatabaseRateProvider(RateProvider):
    """
    Reads the latest effective ``ExchangeRate`` row.

    Each lookup opens its own session from ``session_factory`` so it can run
    on the converter's worker thread without sharing the caller's session.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session],
        clock: Clock | None = None,
    ):
        self._session_factory = session_factory
        self._clock = clock or SystemClock()

    def fetch_rate(self, from_currency: str, to_currency: str) -> Decimal:
        now = self._clock.now()
        session = self._session_factory()
        try:
            row = session.execute(
                select(ExchangeRate)
                .where(ExchangeRate.from_currency == from_currency)
                .where(ExchangeRate.to_currency == to_currency)
                .where(ExchangeRate.effective_at <= now)
                .order_by(ExchangeRate.effective_at.desc())
                .limit(1)
            ).scalar_one_or_none()
            if row is None:
                raise ExchangeRateNotFoundError(from_currency, to_currency)
            return Decimal(row.rate)
        finally:
            session.close()


# ---------------------------------------------------------------------------
# Converter
# ---------------------------------------------------------------------------


class CurrencyConverter:
    """
    Converts amounts into MYR and records how the rate was obtained.

    ``timeout_seconds`` bounds each provider call.  When set, the fetch runs
    on a worker thread and the converter stops waiting after the timeout.
    """

    def __init__(
        self,
        provider: RateProvider,
        timeout_seconds: float | None = 10.0,
    ):
        self._provider = provider
        self._timeout_seconds = timeout_seconds

    def convert(
        self,
        amount: Decimal,
        currency: str,
        custom_rate: Decimal | None = None,
    ) -> ConversionResult:
        """
        Convert ``amount`` in ``currency`` to MYR.

        Returns:
            ConversionResult(amount_myr, exchange_rate, source).

        Raises:
            InvalidCurrencyError: Unknown currency.
            InvalidExchangeRateError: custom_rate <= 0.
            ConversionError: The provider failed or timed out.
        """
        currency = CurrencyRegistry.validate(currency)

        if currency == BASE_CURRENCY:
            return ConversionResult(
                amount_myr=round_money(amount, 2),
                exchange_rate=MYR_RATE,
                source=None,
            )

        if custom_rate is not None:
            custom_rate = Decimal(str(custom_rate))
            if custom_rate <= 0:
                raise InvalidExchangeRateError(str(custom_rate), "rate must be positive")
            return ConversionResult(
                amount_myr=round_money(amount * custom_rate, 2),
                exchange_rate=custom_rate,
                source=ExchangeRateSource.MANUAL,
            )

        rate = self._fetch(currency)
        logger.info(
            "currency_converted",
            extra={
                "currency": currency,
                "rate": str(rate),
                "rate_source": ExchangeRateSource.AUTO.value,
            },
        )
        return ConversionResult(
            amount_myr=round_money(amount * rate, 2),
            exchange_rate=rate,
            source=ExchangeRateSource.AUTO,
        )

    def reconvert_on_update(
        self,
        current: CurrencySnapshot,
        amount: Decimal | None = None,
        currency: str | None = None,
        custom_rate: Decimal | None = None,
    ) -> CurrencySnapshot:
        """
        Apply the update rules for a stored currency snapshot.

        * Switching to MYR resets the rate to 1, the source to None, and
          ``amount_myr`` to the raw amount, discarding any manual rate.
        * A supplied custom rate recomputes as ``manual``.
        * A currency change without a rate re-fetches an ``auto`` rate.
        * An amount change alone re-applies the stored rate.
        * Otherwise the snapshot is returned unchanged.
        """
        new_amount = current.amount if amount is None else amount
        new_currency = (
            current.currency if currency is None else CurrencyRegistry.validate(currency)
        )
        currency_changed = new_currency != current.currency

        if new_currency == BASE_CURRENCY:
            return CurrencySnapshot(
                amount=new_amount,
                currency=BASE_CURRENCY,
                amount_myr=round_money(new_amount, 2),
                exchange_rate=MYR_RATE,
                source=None,
            )

        if custom_rate is not None or currency_changed:
            result = self.convert(new_amount, new_currency, custom_rate)
            return CurrencySnapshot(
                amount=new_amount,
                currency=new_currency,
                amount_myr=result.amount_myr,
                exchange_rate=result.exchange_rate,
                source=result.source,
            )

        if new_amount != current.amount:
            return CurrencySnapshot(
                amount=new_amount,
                currency=new_currency,
                amount_myr=round_money(new_amount * current.exchange_rate, 2),
                exchange_rate=current.exchange_rate,
                source=current.source,
            )

        return current

    def _fetch(self, currency: str) -> Decimal:
        if self._timeout_seconds is None:
            return self._call_provider(currency)

        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="rate-fetch")
        try:
            future = executor.submit(self._call_provider, currency)
            try:
                return future.result(timeout=self._timeout_seconds)
            except FutureTimeoutError:
                logger.warning(
                    "rate_fetch_timeout",
                    extra={"currency": currency, "timeout_seconds": self._timeout_seconds},
                )
                raise RateFetchTimeoutError(
                    currency, BASE_CURRENCY, self._timeout_seconds
                ) from None
        finally:
            executor.shutdown(wait=False)

    def _call_provider(self, currency: str) -> Decimal:
        try:
            rate = self._provider.fetch_rate(currency, BASE_CURRENCY)
        except ConversionError:
            raise
        except BackofficeError as exc:
            raise ConversionError(currency, BASE_CURRENCY, str(exc)) from exc
        except Exception as exc:
            logger.error(
                "rate_fetch_failed",
                extra={"currency": currency, "error": str(exc)},
            )
            raise ConversionError(currency, BASE_CURRENCY, str(exc)) from exc

        rate = Decimal(str(rate))
        if rate <= 0:
            raise ConversionError(
                currency, BASE_CURRENCY, f"provider returned non-positive rate {rate}"
            )
        return rate


# ---------------------------------------------------------------------------
# Rate maintenance
# ---------------------------------------------------------------------------


class ExchangeRateService(BaseService):
    """Writes new market-rate rows.  Flushes only; the caller commits."""

    def set_exchange_rate(
        self,
        from_currency: str,
        rate: Decimal,
        actor_id: UUID,
        effective_at: datetime | None = None,
        source: str = "manual",
        to_currency: str = BASE_CURRENCY,
        reference: str | None = None,
    ) -> ExchangeRate:
        """
        Store a new rate row.  Earlier rows are kept as history.

        Raises:
            InvalidCurrencyError: Unknown currency code.
            InvalidExchangeRateError: rate <= 0.
        """
        from_currency = CurrencyRegistry.validate(from_currency)
        to_currency = CurrencyRegistry.validate(to_currency)
        rate = Decimal(str(rate))
        if rate <= 0:
            raise InvalidExchangeRateError(str(rate), "rate must be positive")

        row = ExchangeRate(
            from_currency=from_currency,
            to_currency=to_currency,
            rate=rate,
            effective_at=effective_at or self.clock.now(),
            source=source,
            reference=reference,
            created_by_id=actor_id,
        )
        self.session.add(row)
        self.session.flush()
        logger.info(
            "exchange_rate_set",
            extra={
                "from_currency": from_currency,
                "to_currency": to_currency,
                "rate": str(rate),
                "rate_source": source,
            },
        )
        return row
