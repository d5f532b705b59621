"""
Tests for CompanySettingsService.

Covers:
- Default singleton row created on first read
- Reads served from the TTL cache
- Updates invalidate the cache
"""

import pytest

from backoffice_kernel.exceptions import InvalidCurrencyError
from backoffice_kernel.models.company_settings import CompanySettings
from backoffice_kernel.services.settings_service import SYSTEM_ACTOR_ID
from sqlalchemy import func, select


class TestCompanySettings:

    def test_defaults_created_on_first_read(self, session, settings_service):
        settings = settings_service.get_settings()

        assert settings.company_name == "MYCAE TECHNOLOGIES SDN BHD"
        assert settings.base_currency == "MYR"
        assert settings.invoice_prefix == "MCE"
        assert settings.invoice_start_number == 1548
        assert settings.issued_po_prefix == "PO_MCE"
        assert settings.issued_po_start_number == 25009

        row = session.execute(select(CompanySettings)).scalar_one()
        assert row.created_by_id == SYSTEM_ACTOR_ID

    def test_second_read_is_cached(self, session, settings_service):
        first = settings_service.get_settings()
        second = settings_service.get_settings()

        assert second is first
        assert session.execute(select(func.count(CompanySettings.id))).scalar_one() == 1

    def test_cache_expires(self, settings_service, deterministic_clock):
        first = settings_service.get_settings()
        deterministic_clock.advance(301)

        second = settings_service.get_settings()

        assert second is not first
        assert second == first

    def test_update_invalidates_cache(self, settings_service, test_actor_id):
        settings_service.get_settings()

        settings_service.update_settings(test_actor_id, invoice_prefix="MCQ", invoice_start_number=10)

        refreshed = settings_service.get_settings()
        assert refreshed.invoice_prefix == "MCQ"
        assert refreshed.invoice_start_number == 10

    def test_update_unknown_field_rejected(self, settings_service, test_actor_id):
        with pytest.raises(ValueError, match="Unknown company settings fields"):
            settings_service.update_settings(test_actor_id, logo_url="x.png")

    def test_update_invalid_currency_rejected(self, settings_service, test_actor_id):
        with pytest.raises(InvalidCurrencyError):
            settings_service.update_settings(test_actor_id, base_currency="ZZZ")
