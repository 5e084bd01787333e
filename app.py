import logging
import logging.handlers
import os

from flask import Flask, jsonify, request

from errors import InvalidInput, WeatherError
from models import db
from refresher import RefreshScheduler
from repository import WeatherRepository
from weather_api import BASE_URL, OpenWeatherMapClient
from weather_service import DEFAULT_HISTORY_LIMIT, WeatherService


# Reads settings from the environment; explicit overrides win.
def _load_config(app, config):
    app.config["SQLALCHEMY_DATABASE_URI"] = os.environ.get("DATABASE_URL", "sqlite:///weather.db")
    app.config["SQLALCHEMY_TRACK_MODIFICATIONS"] = False
    app.config["OPENWEATHER_API_KEY"] = os.environ.get("OPENWEATHER_API_KEY", "")
    app.config["OPENWEATHER_BASE_URL"] = os.environ.get("OPENWEATHER_BASE_URL", BASE_URL)
    app.config["OPENWEATHER_TIMEOUT"] = float(os.environ.get("OPENWEATHER_TIMEOUT", "10"))
    app.config["REFRESH_INTERVAL_SECONDS"] = int(os.environ.get("REFRESH_INTERVAL_SECONDS", "3600"))
    app.config["LOG_LEVEL"] = os.environ.get("LOG_LEVEL", "INFO")
    if config:
        app.config.update(config)


def _parse_limit(raw):
    if raw is None:
        return DEFAULT_HISTORY_LIMIT
    try:
        return int(raw)
    except ValueError:
        raise InvalidInput("limit must be an integer.") from None


# App factory: sets configuration, initializes the database, wires the cache and registers routes.
def create_app(config=None, provider=None):
    app = Flask(__name__)
    _load_config(app, config)
    app.logger.setLevel(app.config["LOG_LEVEL"])

    db.init_app(app)

    with app.app_context():
        db.create_all()

    if provider is None:
        provider = OpenWeatherMapClient(
            api_key=app.config["OPENWEATHER_API_KEY"],
            base_url=app.config["OPENWEATHER_BASE_URL"],
            timeout=app.config["OPENWEATHER_TIMEOUT"],
        )

    # One service per call; the repository binds to the active app context's session.
    def build_service():
        return WeatherService(WeatherRepository(), app.extensions["weather_provider"])

    scheduler = RefreshScheduler(app, build_service)
    app.extensions["weather_provider"] = provider
    app.extensions["weather_refresher"] = scheduler
    scheduler.start(app.config["REFRESH_INTERVAL_SECONDS"])

    @app.errorhandler(InvalidInput)
    def invalid_input(error):
        app.logger.warning("Invalid request %s: %s", request.path, error)
        return jsonify(error=str(error)), 400

    @app.errorhandler(WeatherError)
    def weather_error(error):
        app.logger.error("Error serving %s", request.path, exc_info=error)
        return jsonify(error="An error occurred while retrieving weather data."), 500

    @app.route("/api/weather/city/<path:city_name>", methods=["GET"])
    def get_by_city(city_name):
        record = build_service().get_by_city(city_name)
        if record is None:
            return jsonify(error=f"Weather data for city '{city_name}' not found."), 404
        return jsonify(record.to_dict())

    @app.route("/api/weather/zip/<path:zip_code>", methods=["GET"])
    def get_by_zip(zip_code):
        record = build_service().get_by_zip(zip_code)
        if record is None:
            return jsonify(error=f"Weather data for zip code '{zip_code}' not found."), 404
        return jsonify(record.to_dict())

    @app.route("/api/weather/history/<path:city_name>", methods=["GET"])
    def get_history(city_name):
        limit = _parse_limit(request.args.get("limit"))
        records = build_service().get_history(city_name, limit)
        return jsonify([record.to_dict() for record in records])

    # Fire-and-forget: the refresh runs on the background worker after we respond.
    @app.route("/api/weather/refresh", methods=["POST"])
    def refresh():
        scheduler.trigger()
        return jsonify(message="Weather data refresh has been scheduled."), 202

    return app


LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


# Console output, plus a file rolled over at midnight when LOG_FILE is set.
def build_log_handlers(log_file=None, backup_count=14):
    handlers = [logging.StreamHandler()]
    if log_file:
        handlers.append(logging.handlers.TimedRotatingFileHandler(
            log_file, when="midnight", backupCount=backup_count, encoding="utf-8",
        ))
    for handler in handlers:
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
    return handlers


if __name__ == "__main__":
    logging.basicConfig(
        level=os.environ.get("LOG_LEVEL", "INFO"),
        handlers=build_log_handlers(os.environ.get("LOG_FILE")),
    )
    app = create_app()
    app.run(debug=True, use_reloader=False)
