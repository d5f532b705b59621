"""Kernel ORM models shared by every module."""

from backoffice_kernel.models.company_settings import CompanySettings
from backoffice_kernel.models.exchange_rate import ExchangeRate

__all__ = [
    "CompanySettings",
    "ExchangeRate",
]
