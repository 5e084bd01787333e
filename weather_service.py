"""Read-through cache over the weather record store.

Lookups are answered from storage while the current record is fresh and
otherwise go upstream, appending every fetched snapshot as a new record.
"""

import enum
import logging
from datetime import timedelta
from typing import Callable, Optional, Protocol, Sequence

from errors import InvalidInput
from models import WeatherRecord, utcnow

logger = logging.getLogger(__name__)

FRESHNESS_WINDOW = timedelta(minutes=30)
DEFAULT_HISTORY_LIMIT = 10


class WeatherStore(Protocol):
    """Append-only record storage."""

    def get_current_by_city(self, city_name: str) -> Optional[WeatherRecord]:
        """Latest record for a city, matched case-insensitively."""
        ...

    def get_current_by_zip(self, zip_code: str) -> Optional[WeatherRecord]:
        """Latest record for an exact postal code."""
        ...

    def get_history_by_city(self, city_name: str, limit: int) -> Sequence[WeatherRecord]:
        """Up to ``limit`` records for a city, newest first."""
        ...

    def append(self, record: WeatherRecord) -> WeatherRecord:
        """Persist ``record`` as a new row and return the stored row."""
        ...

    def list_city_names(self) -> Sequence[str]: ...

    def list_zip_codes(self) -> Sequence[str]: ...


class WeatherProvider(Protocol):
    """Upstream source of current conditions; ``None`` means the provider had no data."""

    def fetch_by_city(self, city_name: str) -> Optional[WeatherRecord]: ...

    def fetch_by_zip(self, zip_code: str) -> Optional[WeatherRecord]: ...


class LookupKind(enum.Enum):
    CITY = "city"
    ZIP = "zip code"


class WeatherService:
    def __init__(
        self,
        store: WeatherStore,
        provider: WeatherProvider,
        clock: Callable = utcnow,
    ):
        self.store = store
        self.provider = provider
        self.clock = clock

    def get_by_city(self, city_name: str) -> Optional[WeatherRecord]:
        return self.resolve(city_name, LookupKind.CITY)

    def get_by_zip(self, zip_code: str) -> Optional[WeatherRecord]:
        return self.resolve(zip_code, LookupKind.ZIP)

    def resolve(self, key: str, kind: LookupKind = LookupKind.CITY) -> Optional[WeatherRecord]:
        """Return the current record for ``key``, refreshing it from upstream when stale.

        A record retrieved within ``FRESHNESS_WINDOW`` is returned as is, with no
        upstream call and no write. Otherwise the provider is asked once. If it
        has no data the result is ``None``, even when a stale record exists.
        ``FetchFailed`` and ``StorageFailed`` propagate to the caller.
        """
        key = _require_key(key, kind)
        if kind is LookupKind.CITY:
            lookup, fetch = self.store.get_current_by_city, self.provider.fetch_by_city
        else:
            lookup, fetch = self.store.get_current_by_zip, self.provider.fetch_by_zip

        record = lookup(key)
        if record is not None and not self.is_stale(record):
            return record

        logger.info("Fetching fresh weather data for %s: %s", kind.value, key)
        fetched = fetch(key)
        if fetched is None:
            logger.info("Weather provider returned no data for %s: %s", kind.value, key)
            return None

        if lookup(key) is None:
            logger.info("First weather record for %s: %s", kind.value, key)
        else:
            logger.info("Adding history record for %s: %s", kind.value, key)
        return self.store.append(fetched)

    def get_history(self, city_name: str, limit: int = DEFAULT_HISTORY_LIMIT):
        city_name = _require_key(city_name, LookupKind.CITY)
        if limit < 1:
            raise InvalidInput("History limit must be at least 1.")
        return list(self.store.get_history_by_city(city_name, limit))

    def is_stale(self, record: WeatherRecord) -> bool:
        return self.clock() - record.retrieved_at > FRESHNESS_WINDOW


def _require_key(key, kind):
    if not isinstance(key, str) or not key.strip():
        raise InvalidInput(f"{kind.value.capitalize()} cannot be empty.")
    return key.strip()
