"""
Framework-free job handlers behind the HTTP and CLI surfaces.

Every handler returns a TriggerResponse whose body always carries ``success``
and ``duration``, plus either counts or an ``error``.
"""

import hmac
import time
import traceback
from contextlib import contextmanager
from dataclasses import asdict, dataclass, field
from datetime import date
from functools import partial

from gigsync import db
from gigsync.enrichment.batch import EnrichmentBatchProcessor
from gigsync.enrichment.providers import default_providers
from gigsync.errors import AuthorizationError, ConfigurationError, UnknownSourceError
from gigsync.orchestrator import ScraperOrchestrator
from gigsync.pipeline.metrics import RunSummary
from gigsync.pipeline.runlog import console_log
from gigsync.pipeline.upsert import EventUpsertEngine
from gigsync.venues.seed import VENUES
from gigsync.weather import WeatherCache, fetch_weather_for_date


@dataclass
class TriggerResponse:
    status_code: int
    body: dict = field(default_factory=dict)


def check_cron_auth(authorization, secret):
    """Raise ConfigurationError when no secret is configured, AuthorizationError on a mismatch."""
    if not secret:
        raise ConfigurationError("Server misconfigured: CRON_SECRET not set")
    expected = f"Bearer {secret}"
    if not authorization or not hmac.compare_digest(authorization.encode(), expected.encode()):
        raise AuthorizationError("Unauthorized")


def _duration(start_time):
    return f"{int((time.time() - start_time) * 1000)}ms"


def _error(status_code, message, start_time=None, **extra):
    body = {"success": False, "error": message}
    if start_time is not None:
        body["duration"] = _duration(start_time)
    body.update(extra)
    return TriggerResponse(status_code, body)


def _unexpected(message, e, log):
    log(f"{message}: {type(e).__name__}: {e}", "ERROR")
    log(f"Traceback:\n{traceback.format_exc()}", "ERROR")
    return str(e) or type(e).__name__


def _auth_failure(authorization, secret):
    """A TriggerResponse for a failed auth check, or None when the caller is allowed."""
    try:
        check_cron_auth(authorization, secret)
    except ConfigurationError as e:
        return _error(500, str(e))
    except AuthorizationError as e:
        return _error(401, str(e))
    return None


class TriggerHandlers:
    """
    Job entry points bound to one configuration snapshot.

    Pass ``conn`` to share an open connection (it is never closed here);
    otherwise each call opens and closes its own connection to
    ``settings.database_path``.
    """

    def __init__(self, settings, conn=None, scrapers=None, providers=None,
                 weather_fetcher=None, log_func=None):
        self.settings = settings
        self.conn = conn
        self.scrapers = scrapers
        self.providers = providers
        self.weather_fetcher = weather_fetcher
        self.log = log_func or console_log

    @contextmanager
    def _connection(self):
        if self.conn is not None:
            yield self.conn
            return
        conn = db.connect(self.settings.database_path)
        try:
            yield conn
        finally:
            conn.close()

    def _seed_venues(self, conn):
        for venue in VENUES.values():
            db.upsert_venue(conn, venue)

    def _ingest(self, results, start_time):
        summary = RunSummary(results=results)
        engine = None
        try:
            with self._connection() as conn:
                self._seed_venues(conn)
                engine = EventUpsertEngine(conn, log_func=self.log)
                upsert_result = engine.upsert(summary.events)
        except Exception as e:
            message = _unexpected("Ingest aborted", e, self.log)
            partial_counts = engine.last_result.to_dict() if engine and engine.last_result else {}
            return _error(500, message, start_time, totalEvents=summary.total_events, **partial_counts)

        return TriggerResponse(200, {
            "success": True,
            "duration": _duration(start_time),
            "totalEvents": summary.total_events,
            "created": upsert_result.created,
            "updated": upsert_result.updated,
            "errorCount": upsert_result.error_count,
            "errors": upsert_result.errors,
            "sources": [r.to_dict() for r in summary.results],
        })

    def scrape_all(self, authorization=None):
        denied = _auth_failure(authorization, self.settings.cron_secret)
        if denied:
            return denied
        start_time = time.time()
        orchestrator = ScraperOrchestrator(scrapers=self.scrapers, log_func=self.log)
        summary = orchestrator.run_all()
        return self._ingest(summary.results, start_time)

    def scrape_one(self, source_id, authorization=None):
        denied = _auth_failure(authorization, self.settings.cron_secret)
        if denied:
            return denied
        start_time = time.time()
        orchestrator = ScraperOrchestrator(scrapers=self.scrapers, log_func=self.log)
        try:
            result = orchestrator.run_one(source_id)
        except UnknownSourceError as e:
            return _error(404, str(e), start_time, available=e.available)
        response = self._ingest([result], start_time)
        if response.status_code == 200:
            response.body["source"] = result.source_id
            response.body["sourceError"] = result.error
        return response

    def enrich(self, limit=None, force=False, authorization=None):
        denied = _auth_failure(authorization, self.settings.cron_secret)
        if denied:
            return denied
        start_time = time.time()
        providers = self.providers if self.providers is not None else default_providers(self.settings, log_func=self.log)
        processor = None
        try:
            with self._connection() as conn:
                processor = EnrichmentBatchProcessor(conn, providers=providers, log_func=self.log)
                kwargs = {"force": bool(force)}
                if limit is not None:
                    kwargs["limit"] = int(limit)
                summary = processor.run(**kwargs)
        except Exception as e:
            message = _unexpected("Enrichment aborted", e, self.log)
            partial_counts = processor.last_summary.to_dict() if processor and processor.last_summary else {}
            return _error(500, message, start_time, force=bool(force), **partial_counts)

        body = {"success": True, "duration": _duration(start_time), "force": bool(force)}
        body.update(summary.to_dict())
        return TriggerResponse(200, body)

    def _weather_cache(self, conn):
        fetcher = self.weather_fetcher
        if fetcher is None:
            if not self.settings.google_api_key:
                raise ConfigurationError("Server misconfigured: GOOGLE_API_KEY not set")
            fetcher = partial(fetch_weather_for_date, api_key=self.settings.google_api_key)
        return WeatherCache(conn, fetcher=fetcher, log_func=self.log)

    def weather_prewarm(self, authorization=None):
        denied = _auth_failure(authorization, self.settings.cron_secret)
        if denied:
            return denied
        start_time = time.time()
        cache = None
        try:
            with self._connection() as conn:
                cache = self._weather_cache(conn)
                summary = cache.prewarm()
        except ConfigurationError as e:
            return _error(500, str(e), start_time)
        except Exception as e:
            message = _unexpected("Weather prewarm aborted", e, self.log)
            partial_counts = cache.last_summary.to_dict() if cache and cache.last_summary else {}
            return _error(500, message, start_time, **partial_counts)

        body = {"success": True, "duration": _duration(start_time)}
        body.update(summary.to_dict())
        return TriggerResponse(200, body)

    def weather_lookup(self, lat, lng, date_str):
        """Public on-demand forecast for one location and date."""
        start_time = time.time()
        try:
            lat, lng = float(lat), float(lng)
            target = date.fromisoformat(str(date_str))
        except (TypeError, ValueError):
            return _error(400, "lat, lng and date (YYYY-MM-DD) are required", start_time)
        if not (-90 <= lat <= 90 and -180 <= lng <= 180):
            return _error(400, "lat/lng out of range", start_time)

        try:
            with self._connection() as conn:
                result = self._weather_cache(conn).lookup(lat, lng, target)
        except ConfigurationError as e:
            return _error(500, str(e), start_time)
        except Exception as e:
            return _error(500, _unexpected("Weather lookup failed", e, self.log), start_time)

        return TriggerResponse(200, {
            "success": True,
            "duration": _duration(start_time),
            "available": result.available,
            "reason": result.reason,
            "cached": result.cached,
            "cacheAgeMinutes": result.cache_age_minutes,
            "daysFromNow": result.days_from_now,
            "weather": asdict(result.weather) if result.weather else None,
        })
