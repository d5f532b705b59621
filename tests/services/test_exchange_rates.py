"""
Tests for stored market rates and the database-backed rate provider.
"""

from datetime import timedelta
from decimal import Decimal

import pytest

from backoffice_kernel.exceptions import (
    ConversionError,
    ExchangeRateNotFoundError,
    InvalidExchangeRateError,
)
from backoffice_kernel.services.currency_service import (
    CurrencyConverter,
    DatabaseRateProvider,
    ExchangeRateService,
    ExchangeRateSource,
)


@pytest.fixture
def rate_service(session, deterministic_clock):
    return ExchangeRateService(session, deterministic_clock)


@pytest.fixture
def db_converter(session_factory, deterministic_clock):
    return CurrencyConverter(
        DatabaseRateProvider(session_factory, deterministic_clock),
        timeout_seconds=None,
    )


class TestExchangeRateService:

    def test_set_rate_stores_row(self, rate_service, test_actor_id):
        row = rate_service.set_exchange_rate("usd", Decimal("4.47"), test_actor_id)

        assert row.from_currency == "USD"
        assert row.to_currency == "MYR"
        assert row.source == "manual"
        assert row.convert(Decimal("100")) == Decimal("447.00")

    @pytest.mark.parametrize("rate", [Decimal("0"), Decimal("-1")])
    def test_non_positive_rate_rejected(self, rate_service, test_actor_id, rate):
        with pytest.raises(InvalidExchangeRateError):
            rate_service.set_exchange_rate("USD", rate, test_actor_id)


class TestDatabaseRateProvider:

    def test_latest_effective_rate_wins(
        self, rate_service, db_converter, deterministic_clock, test_actor_id
    ):
        now = deterministic_clock.now()
        rate_service.set_exchange_rate(
            "USD", Decimal("4.40"), test_actor_id, effective_at=now - timedelta(days=7)
        )
        rate_service.set_exchange_rate(
            "USD", Decimal("4.47"), test_actor_id, effective_at=now - timedelta(days=1)
        )

        result = db_converter.convert(Decimal("100"), "USD")

        assert result.exchange_rate == Decimal("4.47")
        assert result.amount_myr == Decimal("447.00")
        assert result.source is ExchangeRateSource.AUTO

    def test_future_rate_ignored(
        self, rate_service, db_converter, deterministic_clock, test_actor_id
    ):
        now = deterministic_clock.now()
        rate_service.set_exchange_rate(
            "EUR", Decimal("4.80"), test_actor_id, effective_at=now - timedelta(hours=1)
        )
        rate_service.set_exchange_rate(
            "EUR", Decimal("5.10"), test_actor_id, effective_at=now + timedelta(days=1)
        )

        assert db_converter.convert(Decimal("10"), "EUR").exchange_rate == Decimal("4.80")

    def test_missing_rate_raises(self, db_converter):
        with pytest.raises(ExchangeRateNotFoundError) as exc_info:
            db_converter.convert(Decimal("10"), "SGD")

        assert isinstance(exc_info.value, ConversionError)
