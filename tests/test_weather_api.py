import types
from datetime import datetime

import pytest
import requests

import weather_api as wa
from errors import FetchFailed

RETRIEVED = datetime(2025, 4, 23, 12, 0, 0)

LONDON_PAYLOAD = {
    "name": "London",
    "dt": 1745409000,
    "main": {"temp": 14.2, "feels_like": 13.1, "temp_min": 12.0, "temp_max": 15.5, "humidity": 71},
    "weather": [{"main": "Clouds", "description": "broken clouds", "icon": "04d"}],
    "wind": {"speed": 5.7},
}

class FakeResponse:
    def __init__(self, json_data, status_code=200):
        self._json = json_data
        self.status_code = status_code

    def json(self):
        if isinstance(self._json, Exception):
            raise self._json
        return self._json

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"HTTP {self.status_code}")

def install_stub(monkeypatch, response=None, error=None):
    calls = []
    def _get(url, params=None, timeout=None, **kwargs):
        calls.append({"url": url, "params": dict(params or {}), "timeout": timeout})
        if error is not None:
            raise error
        return response
    monkeypatch.setattr(wa, "requests", types.SimpleNamespace(get=_get, RequestException=requests.RequestException))
    return calls

def make_client(**kwargs):
    return wa.OpenWeatherMapClient(api_key="test-key", clock=lambda: RETRIEVED, **kwargs)

def test_fetch_by_city_uses_provider_name(monkeypatch):
    calls = install_stub(monkeypatch, FakeResponse(LONDON_PAYLOAD))
    record = make_client().fetch_by_city("london")

    assert calls[0]["url"] == "https://api.openweathermap.org/data/2.5/weather"
    assert calls[0]["params"] == {"q": "london", "appid": "test-key", "units": "metric"}
    assert record.city_name == "London"
    assert record.zip_code is None
    assert record.temperature == 14.2
    assert record.feels_like == 13.1
    assert record.min_temperature == 12.0
    assert record.max_temperature == 15.5
    assert record.humidity == 71
    assert record.description == "broken clouds"
    assert record.icon == "04d"
    assert record.wind_speed == 5.7

def test_timestamps_come_from_epoch_and_local_clock(monkeypatch):
    install_stub(monkeypatch, FakeResponse(LONDON_PAYLOAD))
    record = make_client().fetch_by_city("London")
    assert record.last_updated == datetime(2025, 4, 23, 11, 50, 0)
    assert record.retrieved_at == RETRIEVED

def test_fetch_by_zip_keeps_caller_zip(monkeypatch):
    calls = install_stub(monkeypatch, FakeResponse(dict(LONDON_PAYLOAD, name="New York")))
    record = make_client().fetch_by_zip("10001")

    assert calls[0]["params"]["zip"] == "10001"
    assert "q" not in calls[0]["params"]
    assert record.zip_code == "10001"
    assert record.city_name == "New York"

def test_missing_conditions_yield_empty_strings(monkeypatch):
    install_stub(monkeypatch, FakeResponse(dict(LONDON_PAYLOAD, weather=[])))
    record = make_client().fetch_by_city("London")
    assert record.description == ""
    assert record.icon == ""

def test_empty_body_means_no_data(monkeypatch):
    install_stub(monkeypatch, FakeResponse(None))
    assert make_client().fetch_by_city("London") is None

def test_http_error_raises_fetch_failed(monkeypatch):
    install_stub(monkeypatch, FakeResponse({"cod": "404"}, status_code=404))
    with pytest.raises(FetchFailed):
        make_client().fetch_by_city("Atlantis")

def test_transport_error_raises_fetch_failed(monkeypatch):
    install_stub(monkeypatch, error=requests.ConnectionError("connection refused"))
    with pytest.raises(FetchFailed):
        make_client().fetch_by_zip("10001")

def test_bad_json_raises_fetch_failed(monkeypatch):
    install_stub(monkeypatch, FakeResponse(ValueError("Expecting value")))
    with pytest.raises(FetchFailed):
        make_client().fetch_by_city("London")

def test_missing_api_key_raises_fetch_failed(monkeypatch):
    calls = install_stub(monkeypatch, FakeResponse(LONDON_PAYLOAD))
    with pytest.raises(FetchFailed):
        wa.OpenWeatherMapClient(api_key="").fetch_by_city("London")
    assert calls == []

def test_base_url_and_timeout_are_configurable(monkeypatch):
    calls = install_stub(monkeypatch, FakeResponse(LONDON_PAYLOAD))
    make_client(base_url="http://localhost:9000/data/", timeout=3).fetch_by_city("London")
    assert calls[0]["url"] == "http://localhost:9000/data/weather"
    assert calls[0]["timeout"] == 3
