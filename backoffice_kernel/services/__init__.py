"""Services for the back-office kernel (write side)."""

from backoffice_kernel.services.base import BaseService
from backoffice_kernel.services.currency_service import (
    ConversionResult,
    CurrencyConverter,
    CurrencySnapshot,
    DatabaseRateProvider,
    ExchangeRateService,
    ExchangeRateSource,
    RateProvider,
    StaticRateProvider,
)
from backoffice_kernel.services.sequence_service import SequenceCounter, SequenceService
from backoffice_kernel.services.settings_service import (
    CompanySettingsInfo,
    CompanySettingsService,
    TTLCache,
)

__all__ = [
    "BaseService",
    "CompanySettingsInfo",
    "CompanySettingsService",
    "ConversionResult",
    "CurrencyConverter",
    "CurrencySnapshot",
    "DatabaseRateProvider",
    "ExchangeRateService",
    "ExchangeRateSource",
    "RateProvider",
    "SequenceCounter",
    "SequenceService",
    "StaticRateProvider",
    "TTLCache",
]
