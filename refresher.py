import logging
from datetime import datetime, timezone

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.interval import IntervalTrigger

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 3600
REFRESH_JOB_ID = "refresh-weather-data"


def refresh_all(store, provider):
    """Re-fetch every known city and postal code and append what comes back.

    Cities are refreshed before postal codes. A failure for one key is logged
    and the loop moves on; failing to list the keys aborts the run.
    """
    logger.info("Starting weather data refresh")
    try:
        cities = list(store.list_city_names())
        zip_codes = list(store.list_zip_codes())
    except Exception:
        logger.exception("Could not list known locations; refresh aborted")
        raise

    refreshed = failed = 0
    for kind, keys, fetch in (
        ("city", cities, provider.fetch_by_city),
        ("zip code", zip_codes, provider.fetch_by_zip),
    ):
        for key in keys:
            try:
                record = fetch(key)
                if record is not None:
                    store.append(record)
                    refreshed += 1
            except Exception:
                failed += 1
                logger.exception("Error refreshing weather data for %s: %s", kind, key)

    logger.info(
        "Completed weather data refresh: %d locations, %d refreshed, %d failed",
        len(cities) + len(zip_codes), refreshed, failed,
    )


class RefreshScheduler:
    """Runs refresh_all off the request path, on demand and on a fixed interval.

    Manual and periodic runs share one APScheduler job id, so at most one
    pass runs at a time and a trigger arriving mid-pass is dropped rather
    than queued.
    """

    def __init__(self, app, build_service):
        self.app = app
        self.build_service = build_service
        self._scheduler = BackgroundScheduler(
            timezone=timezone.utc,
            job_defaults={"coalesce": True, "max_instances": 1, "misfire_grace_time": None},
        )
        self._scheduler.start()

    def trigger(self):
        """Run a refresh as soon as possible and return immediately; completion is only visible in the logs."""
        now = datetime.now(timezone.utc)
        try:
            self._scheduler.modify_job(REFRESH_JOB_ID, next_run_time=now)
        except JobLookupError:
            self._scheduler.add_job(self._run, id=REFRESH_JOB_ID, next_run_time=now, replace_existing=True)

    def start(self, interval_seconds=DEFAULT_INTERVAL_SECONDS):
        if not interval_seconds:
            return
        self._scheduler.add_job(
            self._run,
            IntervalTrigger(seconds=interval_seconds, timezone=timezone.utc),
            id=REFRESH_JOB_ID,
            replace_existing=True,
        )
        logger.info("Scheduled weather data refresh every %s seconds", interval_seconds)

    def pending(self):
        return self._scheduler.get_job(REFRESH_JOB_ID) is not None

    def shutdown(self, wait=True):
        if self._scheduler.running:
            self._scheduler.shutdown(wait=wait)

    def _run(self):
        with self.app.app_context():
            service = self.build_service()
            try:
                refresh_all(service.store, service.provider)
            except Exception:
                logger.exception("Weather data refresh failed")
