from datetime import date, datetime, timezone

import freezegun
import pytest

responses = pytest.importorskip("responses")

from gigsync import config
from gigsync.errors import ProviderError
from gigsync.models import WeatherData
from gigsync.pipeline.upsert import EventUpsertEngine
from gigsync.weather import WeatherCache, fetch_current_conditions, fetch_daily_forecast, round_coords

NOW = "2026-03-10 18:00:00"


class CountingFetcher:
    def __init__(self, result=None, error=None):
        self.calls = []
        self.result = result if result is not None else WeatherData(temp_high=72, temp_low=55, condition="Sunny")
        self.error = error

    def __call__(self, lat, lng, target):
        self.calls.append((lat, lng, target))
        if self.error:
            raise self.error
        return self.result


def _quiet(*_args, **_kwargs):
    pass


def _cache(conn, fetcher):
    return WeatherCache(conn, fetcher=fetcher, delay=0, log_func=_quiet)


def test_round_coords_two_decimals():
    assert round_coords(30.2694, -97.7368) == (30.27, -97.74)
    assert round_coords("30.2733", "-97.7362") == (30.27, -97.74)


def test_fresh_entry_is_served_without_refetch(conn):
    fetcher = CountingFetcher()
    cache = _cache(conn, fetcher)

    with freezegun.freeze_time(NOW) as frozen:
        first = cache.lookup(30.2694, -97.7368, date(2026, 3, 12))
        frozen.tick(30 * 60)
        second = cache.lookup(30.2699, -97.7371, date(2026, 3, 12))

    assert len(fetcher.calls) == 1
    assert first.available and not first.cached
    assert second.cached is True
    assert second.cache_age_minutes == 30
    assert second.weather.temp_high == 72


def test_stale_entry_triggers_exactly_one_refresh(conn):
    fetcher = CountingFetcher()
    cache = _cache(conn, fetcher)

    with freezegun.freeze_time(NOW) as frozen:
        cache.lookup(30.27, -97.74, date(2026, 3, 12))
        frozen.tick(61 * 60)
        refreshed = cache.lookup(30.27, -97.74, date(2026, 3, 12))
        again = cache.lookup(30.27, -97.74, date(2026, 3, 12))

    assert len(fetcher.calls) == 2
    assert refreshed.cached is False
    assert again.cached is True
    assert again.cache_age_minutes == 0


def test_outside_horizon_is_unavailable_without_provider_call(conn):
    fetcher = CountingFetcher()
    cache = _cache(conn, fetcher)

    with freezegun.freeze_time(NOW):
        future = cache.lookup(30.27, -97.74, date(2026, 3, 21))
        past = cache.lookup(30.27, -97.74, "2026-03-09")

    assert (future.available, future.reason, future.days_from_now) == (False, "too-far-future", 11)
    assert (past.available, past.reason) == (False, "in-the-past")
    assert fetcher.calls == []


def test_provider_without_data_is_reported(conn):
    cache = _cache(conn, lambda lat, lng, target: None)

    with freezegun.freeze_time(NOW):
        result = cache.lookup(30.27, -97.74, date(2026, 3, 11))

    assert result.available is False
    assert result.reason == "provider-unavailable"


def _seed_events(conn, make_raw):
    show = datetime(2026, 3, 12, 1, 0, tzinfo=timezone.utc)
    EventUpsertEngine(conn, log_func=_quiet).upsert([
        make_raw("stubbs-show", venue_slug="stubbs", start_datetime=show),
        make_raw("amp-show", venue_slug="moody-amphitheater", start_datetime=show),
        make_raw("paramount-show", venue_slug="paramount-theatre", start_datetime=show),
        make_raw("arena-show", venue_slug="moody-center", start_datetime=show),
        make_raw("far-show", venue_slug="stubbs", start_datetime=datetime(2026, 4, 30, 1, 0, tzinfo=timezone.utc)),
    ])


def test_prewarm_buckets_nearby_venues_into_one_call(conn, make_raw):
    _seed_events(conn, make_raw)
    fetcher = CountingFetcher()
    cache = _cache(conn, fetcher)

    with freezegun.freeze_time(NOW):
        summary = cache.prewarm()
        repeat = cache.prewarm()

    assert summary.events_checked == 4
    assert summary.unique_cells == 2
    assert summary.api_calls == 2
    assert sorted((lat, lng) for lat, lng, _ in fetcher.calls) == [(30.27, -97.74), (30.28, -97.73)]
    assert all(target == date(2026, 3, 11) for _, _, target in fetcher.calls)
    assert repeat.cached == 2
    assert repeat.api_calls == 0


def test_prewarm_counts_cell_errors(conn, make_raw):
    _seed_events(conn, make_raw)
    cache = _cache(conn, CountingFetcher(error=ProviderError("quota exceeded")))

    with freezegun.freeze_time(NOW):
        summary = cache.prewarm()

    assert summary.errors == 2
    assert summary.to_dict()["uniqueLocations"] == 2


FORECAST_BODY = {
    "forecastDays": [
        {
            "displayDate": {"year": 2026, "month": 3, "day": 11},
            "maxTemperature": {"degrees": 70.4},
            "minTemperature": {"degrees": 50.6},
        },
        {
            "displayDate": {"year": 2026, "month": 3, "day": 12},
            "maxTemperature": {"degrees": 78.6},
            "minTemperature": {"degrees": 61.2},
            "feelsLikeMaxTemperature": {"degrees": 80.1},
            "feelsLikeMinTemperature": {"degrees": 60.4},
            "daytimeForecast": {
                "precipitation": {"probability": {"percent": 40}},
                "relativeHumidity": 65,
                "uvIndex": 7,
                "wind": {"speed": {"value": 12}},
                "weatherCondition": {
                    "description": {"text": "Scattered thunderstorms"},
                    "iconBaseUri": "https://maps.gstatic.com/weather/v1/scattered_tstorms",
                },
            },
        },
    ]
}


@responses.activate
def test_fetch_daily_forecast_maps_matching_day():
    responses.add(responses.GET, f"{config.WEATHER_BASE_URL}/forecast/days:lookup", json=FORECAST_BODY)

    with freezegun.freeze_time(NOW):
        weather = fetch_daily_forecast(30.27, -97.74, date(2026, 3, 12), api_key="k")

    assert weather.temp_high == 79
    assert weather.temp_low == 61
    assert weather.feels_like_high == 80
    assert weather.precip_chance == 40
    assert weather.condition == "Scattered thunderstorms"
    assert weather.condition_icon.endswith("scattered_tstorms.svg")
    assert "days=5" in responses.calls[0].request.url
    assert "unitsSystem=IMPERIAL" in responses.calls[0].request.url


@responses.activate
def test_fetch_current_conditions_prefers_history_range():
    responses.add(
        responses.GET,
        f"{config.WEATHER_BASE_URL}/currentConditions:lookup",
        json={
            "temperature": {"degrees": 68.2},
            "feelsLikeTemperature": {"degrees": 66.0},
            "currentConditionsHistory": {"maxTemperature": {"degrees": 74.5}, "minTemperature": {"degrees": 52.1}},
            "relativeHumidity": 48,
            "weatherCondition": {"description": {"text": "Clear"}},
        },
    )

    weather = fetch_current_conditions(30.27, -97.74, api_key="k")

    assert (weather.temp_high, weather.temp_low) == (74, 52)
    assert weather.condition == "Clear"
    assert weather.condition_icon is None
