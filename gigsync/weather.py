"""
Forecast lookup with a per-cell cache.

Cells are keyed by coordinates rounded to two decimals (about 1 km) and a
local calendar date. A cell is refreshed from the Google Weather API once it
is older than the TTL; the on-demand lookup and the prewarm job go through
the same refresh path.
"""

import time
from dataclasses import dataclass
from datetime import date, timedelta
from typing import Optional

import requests

from gigsync import config, db
from gigsync.errors import ProviderError
from gigsync.models import WeatherData
from gigsync.pipeline.runlog import console_log
from gigsync.utils.dates import days_from_now, local_date, now_utc


def round_coords(lat, lng):
    precision = config.WEATHER_COORD_PRECISION
    return round(float(lat), precision), round(float(lng), precision)


def _weather_get(path, params, api_key=None):
    query = {"key": api_key or config.GOOGLE_API_KEY}
    query.update(params)
    resp = requests.get(f"{config.WEATHER_BASE_URL}/{path}", params=query, timeout=config.HTTP_TIMEOUT)
    resp.raise_for_status()
    return resp.json()


def _degrees(block):
    value = (block or {}).get("degrees")
    return round(value) if value is not None else None


def _icon(condition):
    base = (condition or {}).get("iconBaseUri")
    return f"{base}.svg" if base else None


def fetch_current_conditions(lat, lng, api_key=None):
    """Today's weather from current conditions, with the running high/low when present."""
    data = _weather_get(
        "currentConditions:lookup",
        {"location.latitude": lat, "location.longitude": lng, "unitsSystem": "IMPERIAL"},
        api_key=api_key,
    )
    history = data.get("currentConditionsHistory") or {}
    condition = data.get("weatherCondition") or {}
    wind = data.get("wind") or {}
    temperature = _degrees(data.get("temperature"))
    return WeatherData(
        temp_high=_degrees(history.get("maxTemperature")) if history.get("maxTemperature") else temperature,
        temp_low=_degrees(history.get("minTemperature")) if history.get("minTemperature") else temperature,
        feels_like_high=_degrees(data.get("feelsLikeTemperature")),
        feels_like_low=_degrees(data.get("feelsLikeTemperature")),
        precip_chance=((data.get("precipitation") or {}).get("probability") or {}).get("percent"),
        humidity=data.get("relativeHumidity"),
        uv_index=data.get("uvIndex"),
        wind_speed=(wind.get("speed") or {}).get("value"),
        condition=(condition.get("description") or {}).get("text"),
        condition_icon=_icon(condition),
    )


def fetch_daily_forecast(lat, lng, target, api_key=None):
    """The forecast day matching target, or None when the API does not cover it."""
    days = min(days_from_now(target) + 3, config.FORECAST_HORIZON_DAYS)
    data = _weather_get(
        "forecast/days:lookup",
        {
            "location.latitude": lat,
            "location.longitude": lng,
            "days": days,
            "pageSize": days,
            "unitsSystem": "IMPERIAL",
        },
        api_key=api_key,
    )

    for day in data.get("forecastDays") or []:
        display = day.get("displayDate") or {}
        if (display.get("year"), display.get("month"), display.get("day")) != (target.year, target.month, target.day):
            continue
        daytime = day.get("daytimeForecast") or {}
        condition = daytime.get("weatherCondition") or {}
        return WeatherData(
            temp_high=_degrees(day.get("maxTemperature")),
            temp_low=_degrees(day.get("minTemperature")),
            feels_like_high=_degrees(day.get("feelsLikeMaxTemperature")),
            feels_like_low=_degrees(day.get("feelsLikeMinTemperature")),
            precip_chance=((daytime.get("precipitation") or {}).get("probability") or {}).get("percent"),
            humidity=daytime.get("relativeHumidity"),
            uv_index=daytime.get("uvIndex"),
            wind_speed=((daytime.get("wind") or {}).get("speed") or {}).get("value"),
            condition=(condition.get("description") or {}).get("text"),
            condition_icon=_icon(condition),
        )
    return None


def fetch_weather_for_date(lat, lng, target, api_key=None):
    """Current conditions for today, daily forecast up to the horizon, None otherwise."""
    offset = days_from_now(target)
    if offset < 0 or offset > config.FORECAST_HORIZON_DAYS:
        return None
    if offset == 0:
        return fetch_current_conditions(lat, lng, api_key=api_key)
    return fetch_daily_forecast(lat, lng, target, api_key=api_key)


@dataclass
class WeatherLookup:
    available: bool
    reason: Optional[str] = None
    cached: bool = False
    cache_age_minutes: Optional[int] = None
    days_from_now: Optional[int] = None
    weather: Optional[WeatherData] = None


@dataclass
class PrewarmSummary:
    events_checked: int = 0
    unique_cells: int = 0
    cached: int = 0
    skipped: int = 0
    api_calls: int = 0
    errors: int = 0

    def to_dict(self):
        return {
            "eventsChecked": self.events_checked,
            "uniqueLocations": self.unique_cells,
            "cached": self.cached,
            "skipped": self.skipped,
            "apiCalls": self.api_calls,
            "errors": self.errors,
        }


class WeatherCache:
    def __init__(self, conn, fetcher=None, ttl=config.WEATHER_TTL_SECONDS,
                 delay=config.WEATHER_CALL_DELAY, log_func=None):
        self.conn = conn
        self.fetcher = fetcher or fetch_weather_for_date
        self.ttl = timedelta(seconds=ttl)
        self.delay = delay
        self.log = log_func or console_log
        self.last_summary = None

    def _fresh(self, lat, lng, target):
        """Cached (weather, fetched_at) if younger than the TTL."""
        cached = db.get_weather(self.conn, lat, lng, target.isoformat())
        if cached and now_utc() - cached[1] < self.ttl:
            return cached
        return None

    def _refresh_cell(self, lat, lng, target):
        """Fetch and store one cell. Returns WeatherData or None; provider errors raise."""
        weather = self.fetcher(lat, lng, target)
        if weather is not None:
            db.upsert_weather(self.conn, lat, lng, target.isoformat(), weather, now_utc())
        return weather

    def lookup(self, lat, lng, target):
        if not isinstance(target, date):
            target = date.fromisoformat(target)
        offset = days_from_now(target)
        if offset < 0:
            return WeatherLookup(available=False, reason="in-the-past", days_from_now=offset)
        if offset > config.FORECAST_HORIZON_DAYS:
            return WeatherLookup(available=False, reason="too-far-future", days_from_now=offset)

        lat, lng = round_coords(lat, lng)
        cached = self._fresh(lat, lng, target)
        if cached:
            weather, fetched_at = cached
            age = int((now_utc() - fetched_at).total_seconds() // 60)
            return WeatherLookup(available=True, cached=True, cache_age_minutes=age, days_from_now=offset, weather=weather)

        try:
            weather = self._refresh_cell(lat, lng, target)
        except (requests.RequestException, ProviderError, ValueError) as e:
            self.log(f"Weather lookup failed for {lat},{lng} on {target}: {e}", "WARNING")
            weather = None
        if weather is None:
            return WeatherLookup(available=False, reason="provider-unavailable", days_from_now=offset)
        return WeatherLookup(available=True, cached=False, cache_age_minutes=0, days_from_now=offset, weather=weather)

    def prewarm(self):
        """Refresh every stale cell covering an upcoming event at a venue with coordinates."""
        summary = PrewarmSummary()
        self.last_summary = summary
        now = now_utc()
        rows = db.get_events_between(self.conn, now, now + timedelta(days=config.FORECAST_HORIZON_DAYS))
        summary.events_checked = len(rows)

        cells = set()
        for row in rows:
            if row["lat"] is None or row["lng"] is None:
                continue
            lat, lng = round_coords(row["lat"], row["lng"])
            cells.add((lat, lng, local_date(db.from_db(row["start_datetime"]))))
        summary.unique_cells = len(cells)
        self.log(f"Weather prewarm: {summary.events_checked} events, {summary.unique_cells} unique cells")

        for lat, lng, target in sorted(cells):
            if self._fresh(lat, lng, target):
                summary.cached += 1
                continue
            if days_from_now(target) > config.FORECAST_HORIZON_DAYS:
                summary.skipped += 1
                continue

            if summary.api_calls:
                time.sleep(self.delay)
            summary.api_calls += 1
            try:
                weather = self._refresh_cell(lat, lng, target)
            except (requests.RequestException, ProviderError, ValueError) as e:
                summary.errors += 1
                self.log(f"  Weather error for {lat},{lng} on {target}: {e}", "WARNING")
                continue
            if weather is None:
                summary.skipped += 1

        self.log(
            f"Weather prewarm done: {summary.cached} cached, {summary.api_calls} API calls, "
            f"{summary.skipped} skipped, {summary.errors} errors"
        )
        return summary
