import logging

from sqlalchemy import inspect, select
from sqlalchemy.exc import SQLAlchemyError

from errors import StorageFailed
from models import city_key, db, WeatherRecord, utcnow

logger = logging.getLogger(__name__)


class WeatherRepository:
    """Append-only store of weather records backed by the Flask-SQLAlchemy session.

    Rows are never updated or deleted. Every write inserts a new record and the
    "current" record for a key is the one with the latest ``retrieved_at``.
    """

    def __init__(self, session=None, clock=utcnow):
        self._session = session
        self._clock = clock

    @property
    def session(self):
        # Resolved lazily so the repository can be built outside an app context.
        return self._session if self._session is not None else db.session

    def get_current_by_city(self, city_name):
        statement = (
            select(WeatherRecord)
            .where(WeatherRecord.city_key == city_key(city_name))
            .order_by(WeatherRecord.retrieved_at.desc(), WeatherRecord.id.desc())
            .limit(1)
        )
        return self._first(statement, f"city {city_name!r}")

    def get_current_by_zip(self, zip_code):
        statement = (
            select(WeatherRecord)
            .where(WeatherRecord.zip_code == zip_code)
            .order_by(WeatherRecord.retrieved_at.desc(), WeatherRecord.id.desc())
            .limit(1)
        )
        return self._first(statement, f"zip code {zip_code!r}")

    def get_history_by_city(self, city_name, limit=10):
        statement = (
            select(WeatherRecord)
            .where(WeatherRecord.city_key == city_key(city_name))
            .order_by(WeatherRecord.retrieved_at.desc(), WeatherRecord.id.desc())
            .limit(limit)
        )
        try:
            return list(self.session.scalars(statement))
        except SQLAlchemyError as e:
            self._fail(f"Could not read history for city {city_name!r}", e)

    def append(self, record):
        """Insert ``record`` as a new row stamped with the local retrieval time.

        A record that is already persistent is copied, so an existing row is
        never modified.
        """
        row = record if inspect(record).transient else record.copy()
        row.id = None
        row.retrieved_at = self._clock()
        try:
            self.session.add(row)
            self.session.commit()
        except SQLAlchemyError as e:
            self._fail(f"Could not store weather record for {row.city_name!r}", e)
        logger.info("Stored weather record %s for %s (zip=%s)", row.id, row.city_name, row.zip_code)
        return row

    def list_city_names(self):
        statement = (
            select(WeatherRecord.city_name)
            .where(WeatherRecord.city_name.is_not(None), WeatherRecord.city_name != "")
            .distinct()
        )
        try:
            return list(self.session.scalars(statement))
        except SQLAlchemyError as e:
            self._fail("Could not list city names", e)

    def list_zip_codes(self):
        statement = (
            select(WeatherRecord.zip_code)
            .where(WeatherRecord.zip_code.is_not(None), WeatherRecord.zip_code != "")
            .distinct()
        )
        try:
            return list(self.session.scalars(statement))
        except SQLAlchemyError as e:
            self._fail("Could not list zip codes", e)

    def _first(self, statement, label):
        try:
            return self.session.scalars(statement).first()
        except SQLAlchemyError as e:
            self._fail(f"Could not read current weather for {label}", e)

    def _fail(self, message, error):
        logger.error("%s: %s", message, error)
        self.session.rollback()
        raise StorageFailed(message) from error
