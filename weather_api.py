import logging
import requests
from datetime import datetime, timezone

from errors import FetchFailed
from models import WeatherRecord, utcnow

BASE_URL = "https://api.openweathermap.org/data/2.5"

logger = logging.getLogger(__name__)


# Client for the OpenWeatherMap "current weather" endpoint; returns unsaved WeatherRecords.
class OpenWeatherMapClient:
    def __init__(self, api_key, base_url=BASE_URL, timeout=10, clock=utcnow):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self.clock = clock

    def fetch_by_city(self, city_name: str):
        """
        Current conditions for a city name.
        The stored city name is the provider's canonical ``name`` field, not the query.
        """
        payload = self._get({"q": city_name}, f"city {city_name!r}")
        return _to_record(payload, zip_code=None, retrieved_at=self.clock())

    def fetch_by_zip(self, zip_code: str):
        """
        Current conditions for a postal code.
        The provider response has no zip field, so the caller's code is kept.
        """
        payload = self._get({"zip": zip_code}, f"zip code {zip_code!r}")
        return _to_record(payload, zip_code=zip_code, retrieved_at=self.clock())

    def _get(self, query, label):
        if not self.api_key:
            raise FetchFailed("OPENWEATHER_API_KEY is not configured.")

        params = dict(query, appid=self.api_key, units="metric")
        logger.info("Requesting upstream weather for %s", label)
        try:
            response = requests.get(f"{self.base_url}/weather", params=params, timeout=self.timeout)
            response.raise_for_status()
            return response.json()
        except requests.RequestException as e:
            raise FetchFailed(f"Unable to retrieve weather data for {label}: {e}") from e
        except ValueError as e:
            raise FetchFailed(f"Invalid JSON from weather provider for {label}: {e}") from e


# Maps a provider payload onto a WeatherRecord; an empty payload means "no data".
def _to_record(payload, zip_code, retrieved_at):
    if not payload:
        return None

    main = payload.get("main") or {}
    wind = payload.get("wind") or {}
    conditions = payload.get("weather") or []
    condition = conditions[0] if conditions else {}

    return WeatherRecord(
        city_name=payload.get("name") or "",
        zip_code=zip_code,
        temperature=main.get("temp"),
        feels_like=main.get("feels_like"),
        min_temperature=main.get("temp_min"),
        max_temperature=main.get("temp_max"),
        humidity=main.get("humidity"),
        description=condition.get("description") or "",
        icon=condition.get("icon") or "",
        wind_speed=wind.get("speed"),
        last_updated=_from_epoch(payload.get("dt")),
        retrieved_at=retrieved_at,
    )


# Provider epoch seconds -> naive UTC datetime.
def _from_epoch(seconds):
    if seconds is None:
        return None
    return datetime.fromtimestamp(seconds, tz=timezone.utc).replace(tzinfo=None)
