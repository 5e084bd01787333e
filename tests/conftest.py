from datetime import datetime, timedelta

import pytest
from app import create_app
from errors import FetchFailed
from models import db, WeatherRecord


# Stands in for the upstream provider: serves canned records and counts calls.
class FakeProvider:
    def __init__(self):
        self.by_city = {}
        self.by_zip = {}
        self.failing = set()
        self.calls = []

    def fetch_by_city(self, city_name):
        return self._answer("city", city_name, self.by_city)

    def fetch_by_zip(self, zip_code):
        return self._answer("zip", zip_code, self.by_zip)

    def _answer(self, kind, key, table):
        self.calls.append((kind, key))
        if key in self.failing:
            raise FetchFailed(f"upstream down for {key}")
        template = table.get(key)
        return template.copy() if template is not None else None


# A settable clock so freshness checks are deterministic.
class FakeClock:
    def __init__(self, now=datetime(2025, 4, 23, 12, 0, 0)):
        self.now = now

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


def make_record(city_name="London", zip_code=None, temperature=20.0, retrieved_at=None, **extra):
    fields = dict(
        city_name=city_name,
        zip_code=zip_code,
        temperature=temperature,
        feels_like=temperature - 1,
        min_temperature=temperature - 2,
        max_temperature=temperature + 2,
        humidity=60,
        description="light rain",
        icon="10d",
        wind_speed=4.1,
        last_updated=datetime(2025, 4, 23, 11, 50, 0),
        retrieved_at=retrieved_at,
    )
    fields.update(extra)
    return WeatherRecord(**fields)


@pytest.fixture()
def provider():
    return FakeProvider()


@pytest.fixture()
def clock():
    return FakeClock()


# Creates a Flask app with a temporary SQLite database for tests.
@pytest.fixture()
def app(tmp_path, monkeypatch, provider):
    db_path = tmp_path / "test.db"
    monkeypatch.setenv("DATABASE_URL", f"sqlite:///{db_path}")
    monkeypatch.setenv("REFRESH_INTERVAL_SECONDS", "0")
    app = create_app(provider=provider)
    app.config.update(TESTING=True)
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
    app.extensions["weather_refresher"].shutdown()

@pytest.fixture()
def client(app):
    return app.test_client()
