from datetime import datetime, timezone
from flask_sqlalchemy import SQLAlchemy
from sqlalchemy.orm import validates

db = SQLAlchemy()


# Naive UTC "now"; SQLite drops tzinfo so every stored timestamp is naive UTC.
def utcnow():
    return datetime.now(timezone.utc).replace(tzinfo=None)


# Case-folded city name; city queries compare this column for equality.
def city_key(city_name):
    return (city_name or "").casefold()


class WeatherRecord(db.Model):
    __tablename__ = "weather_records"

    id = db.Column(db.Integer, primary_key=True)
    city_name = db.Column(db.String(120), nullable=False, index=True)
    city_key = db.Column(db.String(120), nullable=False, default="", index=True)
    zip_code = db.Column(db.String(20), nullable=True, index=True)

    temperature = db.Column(db.Float, nullable=True)
    feels_like = db.Column(db.Float, nullable=True)
    min_temperature = db.Column(db.Float, nullable=True)
    max_temperature = db.Column(db.Float, nullable=True)
    humidity = db.Column(db.Integer, nullable=True)

    description = db.Column(db.String(255), nullable=False, default="")
    icon = db.Column(db.String(32), nullable=False, default="")
    wind_speed = db.Column(db.Float, nullable=True)

    last_updated = db.Column(db.DateTime, nullable=True)  # observation time reported upstream
    retrieved_at = db.Column(db.DateTime, nullable=False, default=utcnow, index=True)

    OBSERVATION_FIELDS = (
        "city_name", "zip_code", "temperature", "feels_like", "min_temperature",
        "max_temperature", "humidity", "description", "icon", "wind_speed", "last_updated",
    )

    @validates("city_name")
    def _track_city_key(self, key, value):
        self.city_key = city_key(value)
        return value

    # Returns a new, unsaved record carrying the same observation.
    def copy(self):
        return WeatherRecord(**{name: getattr(self, name) for name in self.OBSERVATION_FIELDS})

    def to_dict(self):
        return {
            "id": self.id,
            "city_name": self.city_name,
            "zip_code": self.zip_code,
            "temperature": self.temperature,
            "feels_like": self.feels_like,
            "min_temperature": self.min_temperature,
            "max_temperature": self.max_temperature,
            "humidity": self.humidity,
            "description": self.description,
            "icon": self.icon,
            "wind_speed": self.wind_speed,
            "last_updated": self.last_updated.isoformat() if self.last_updated else None,
            "retrieved_at": self.retrieved_at.isoformat() if self.retrieved_at else None,
        }

    def __repr__(self):
        return f"<WeatherRecord {self.id} {self.city_name} zip={self.zip_code} {self.retrieved_at}>"
