"""Currency -- ISO 4217 registry and precision-derived rounding for MYR conversion."""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from typing import ClassVar

from backoffice_kernel.exceptions import InvalidCurrencyError

BASE_CURRENCY = "MYR"


@dataclass(frozen=True)
class CurrencyInfo:
    """Information about a single ISO 4217 currency."""

    code: str
    decimal_places: int
    name: str

    @property
    def quantize_string(self) -> str:
        """String for Decimal.quantize() to round to this currency's precision."""
        if self.decimal_places == 0:
            return "1"
        return "0." + "0" * self.decimal_places


class CurrencyRegistry:
    """Registry of the ISO 4217 currencies the firm trades in."""

    _CURRENCIES: ClassVar[dict[str, CurrencyInfo]] = {
        # Base currency
        "MYR": CurrencyInfo("MYR", 2, "Malaysian Ringgit"),
        # Major currencies
        "USD": CurrencyInfo("USD", 2, "US Dollar"),
        "EUR": CurrencyInfo("EUR", 2, "Euro"),
        "GBP": CurrencyInfo("GBP", 2, "Pound Sterling"),
        "JPY": CurrencyInfo("JPY", 0, "Japanese Yen"),
        "CHF": CurrencyInfo("CHF", 2, "Swiss Franc"),
        "CAD": CurrencyInfo("CAD", 2, "Canadian Dollar"),
        "AUD": CurrencyInfo("AUD", 2, "Australian Dollar"),
        "NZD": CurrencyInfo("NZD", 2, "New Zealand Dollar"),
        "CNY": CurrencyInfo("CNY", 2, "Chinese Yuan"),
        "HKD": CurrencyInfo("HKD", 2, "Hong Kong Dollar"),
        # Regional (ASEAN and Gulf clients)
        "SGD": CurrencyInfo("SGD", 2, "Singapore Dollar"),
        "IDR": CurrencyInfo("IDR", 2, "Indonesian Rupiah"),
        "THB": CurrencyInfo("THB", 2, "Thai Baht"),
        "PHP": CurrencyInfo("PHP", 2, "Philippine Peso"),
        "VND": CurrencyInfo("VND", 0, "Vietnamese Dong"),
        "BND": CurrencyInfo("BND", 2, "Brunei Dollar"),
        "KRW": CurrencyInfo("KRW", 0, "South Korean Won"),
        "TWD": CurrencyInfo("TWD", 2, "New Taiwan Dollar"),
        "INR": CurrencyInfo("INR", 2, "Indian Rupee"),
        "AED": CurrencyInfo("AED", 2, "UAE Dirham"),
        "SAR": CurrencyInfo("SAR", 2, "Saudi Riyal"),
        "QAR": CurrencyInfo("QAR", 2, "Qatari Riyal"),
        "KWD": CurrencyInfo("KWD", 3, "Kuwaiti Dinar"),
        "BHD": CurrencyInfo("BHD", 3, "Bahraini Dinar"),
        "OMR": CurrencyInfo("OMR", 3, "Omani Rial"),
        "NOK": CurrencyInfo("NOK", 2, "Norwegian Krone"),
        "SEK": CurrencyInfo("SEK", 2, "Swedish Krona"),
        "DKK": CurrencyInfo("DKK", 2, "Danish Krone"),
    }

    DEFAULT_DECIMAL_PLACES: ClassVar[int] = 2

    @classmethod
    def is_valid(cls, code: str) -> bool:
        """Check if a currency code is known."""
        if not code or not isinstance(code, str):
            return False
        return code.upper().strip() in cls._CURRENCIES

    @classmethod
    def get_info(cls, code: str) -> CurrencyInfo | None:
        if not code or not isinstance(code, str):
            return None
        return cls._CURRENCIES.get(code.upper().strip())

    @classmethod
    def get_decimal_places(cls, code: str) -> int:
        info = cls.get_info(code)
        return info.decimal_places if info else cls.DEFAULT_DECIMAL_PLACES

    @classmethod
    def validate(cls, code: str) -> str:
        """Validate and normalize a currency code.

        Raises:
            InvalidCurrencyError: If the code is empty, not three letters,
                or not in the registry.
        """
        if not code or not isinstance(code, str):
            raise InvalidCurrencyError(repr(code))

        normalized = code.upper().strip()
        if len(normalized) != 3 or normalized not in cls._CURRENCIES:
            raise InvalidCurrencyError(code)

        return normalized

    @classmethod
    def all_codes(cls) -> frozenset[str]:
        return frozenset(cls._CURRENCIES.keys())


def round_money(value: Decimal, decimal_places: int = 2) -> Decimal:
    """
    Round a monetary value half-up to the given decimal places.

    The only rounding function used for stored MYR amounts.
    """
    quantize_str = "1" if decimal_places == 0 else "0." + "0" * decimal_places
    return value.quantize(Decimal(quantize_str), rounding=ROUND_HALF_UP)
