"""
Company settings service with an injected TTL cache.

Responsibility:
    Serves the singleton ``CompanySettings`` row to invoice numbering,
    issued-PO numbering, and document rendering.  Reads go through a
    ``TTLCache`` so repeated lookups within one request burst do not hit the
    database; writes invalidate the cached entry.

Architecture position:
    Kernel > Services.  The cache is owned by the caller (one per process,
    or one per test) and passed in; there is no module-level cached object.
"""

from __future__ import annotations

import threading
from dataclasses import dataclass, fields
from typing import Any, Callable, Generic, TypeVar
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from backoffice_kernel.domain.clock import Clock, SystemClock
from backoffice_kernel.domain.currency import CurrencyRegistry
from backoffice_kernel.logging_config import get_logger
from backoffice_kernel.models.company_settings import CompanySettings
from backoffice_kernel.services.base import BaseService

logger = get_logger("services.settings")

T = TypeVar("T")

DEFAULT_TTL_SECONDS = 300.0

# Actor recorded on rows the system creates on its own (default settings).
SYSTEM_ACTOR_ID = UUID(int=0)


class TTLCache(Generic[T]):
    """
    Get-or-load cache with per-entry expiry.

    Entries older than ``ttl_seconds`` (measured on the injected clock) are
    reloaded on the next ``get_or_load``.
    """

    def __init__(self, ttl_seconds: float = DEFAULT_TTL_SECONDS, clock: Clock | None = None):
        self._ttl_seconds = ttl_seconds
        self._clock = clock or SystemClock()
        self._entries: dict[str, tuple[T, float]] = {}
        self._lock = threading.Lock()

    def get_or_load(self, key: str, loader: Callable[[], T]) -> T:
        now = self._clock.monotonic()
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and now - entry[1] < self._ttl_seconds:
                return entry[0]

        value = loader()
        with self._lock:
            self._entries[key] = (value, now)
        logger.debug("cache_loaded", extra={"cache_key": key})
        return value

    def put(self, key: str, value: T) -> None:
        with self._lock:
            self._entries[key] = (value, self._clock.monotonic())

    def invalidate(self, key: str | None = None) -> None:
        """Drop one entry, or every entry when ``key`` is None."""
        with self._lock:
            if key is None:
                self._entries.clear()
            else:
                self._entries.pop(key, None)


@dataclass(frozen=True)
class CompanySettingsInfo:
    """Detached snapshot of the settings row, safe to keep in a cache."""

    id: UUID
    company_name: str
    registration_number: str | None
    address: str | None
    email: str | None
    sst_id: str | None
    base_currency: str
    invoice_prefix: str
    invoice_start_number: int
    issued_po_prefix: str
    issued_po_start_number: int
    invoice_footer: str | None
    bank_details: str | None

    @classmethod
    def from_row(cls, row: CompanySettings) -> CompanySettingsInfo:
        return cls(**{f.name: getattr(row, f.name) for f in fields(cls)})


_UPDATABLE_FIELDS = frozenset(
    f.name for f in fields(CompanySettingsInfo) if f.name != "id"
)


class CompanySettingsService(BaseService):
    """Loads, creates, and updates the singleton settings row."""

    CACHE_KEY = "company_settings"

    def __init__(
        self,
        session: Session,
        cache: TTLCache[CompanySettingsInfo],
        clock: Clock | None = None,
    ):
        super().__init__(session, clock)
        self._cache = cache

    def get_settings(self) -> CompanySettingsInfo:
        """Return cached settings, loading (or creating defaults) on a miss."""
        return self._cache.get_or_load(self.CACHE_KEY, self._load_or_create)

    def update_settings(self, actor_id: UUID, **changes: Any) -> CompanySettingsInfo:
        """
        Apply field changes to the settings row and invalidate the cache.

        Raises:
            ValueError: If an unknown field is supplied.
            InvalidCurrencyError: If base_currency is not a known code.
        """
        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown company settings fields: {sorted(unknown)}")
        if "base_currency" in changes:
            changes["base_currency"] = CurrencyRegistry.validate(changes["base_currency"])

        row = self._get_row()
        if row is None:
            row = CompanySettings(created_by_id=actor_id)
            self.session.add(row)

        for name, value in changes.items():
            setattr(row, name, value)
        row.updated_by_id = actor_id
        self.session.flush()

        self._cache.invalidate(self.CACHE_KEY)
        logger.info(
            "company_settings_updated",
            extra={"fields": sorted(changes)},
        )
        return CompanySettingsInfo.from_row(row)

    def _get_row(self) -> CompanySettings | None:
        return self.session.execute(
            select(CompanySettings).order_by(CompanySettings.created_at).limit(1)
        ).scalar_one_or_none()

    def _load_or_create(self) -> CompanySettingsInfo:
        row = self._get_row()
        if row is None:
            logger.info("company_settings_defaults_created")
            row = CompanySettings(created_by_id=SYSTEM_ACTOR_ID)
            self.session.add(row)
            self.session.flush()
        return CompanySettingsInfo.from_row(row)
