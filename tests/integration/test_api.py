import sqlite3
from datetime import date, timedelta
from pathlib import Path

import pytest

pytest.importorskip("httpx")
from fastapi.testclient import TestClient

from gigsync import db
from gigsync.api import create_app
from gigsync.config import Settings
from gigsync.enrichment.providers import Provider
from gigsync.errors import AuthorizationError, ConfigurationError
from gigsync.models import WeatherData
from gigsync.registry import ScraperSpec
from gigsync.triggers import TriggerHandlers, check_cron_auth

AUTH = {"Authorization": "Bearer s3cret"}


def _quiet(*_args, **_kwargs):
    pass


class OkCategorizer(Provider):
    name = "llm"

    def fetch(self, ctx):
        return {"llm_category": "concert", "llm_confidence": "high"}


def _client(conn, secret="s3cret", scrapers=None, providers=None, weather_fetcher=None):
    settings = Settings(cron_secret=secret, database_path=Path(":memory:"))
    handlers = TriggerHandlers(
        settings,
        conn=conn,
        scrapers=scrapers or {},
        providers=providers if providers is not None else [OkCategorizer()],
        weather_fetcher=weather_fetcher or (lambda lat, lng, target: WeatherData(temp_high=80, condition="Sunny")),
        log_func=_quiet,
    )
    return TestClient(create_app(settings, handlers=handlers))


def test_check_cron_auth_distinguishes_faults():
    with pytest.raises(ConfigurationError):
        check_cron_auth("Bearer anything", None)
    with pytest.raises(AuthorizationError):
        check_cron_auth("Bearer wrong", "s3cret")
    with pytest.raises(AuthorizationError):
        check_cron_auth(None, "s3cret")
    check_cron_auth("Bearer s3cret", "s3cret")


def test_missing_secret_is_server_error(conn):
    client = _client(conn, secret=None)

    response = client.get("/api/cron/scrape", headers=AUTH)

    assert response.status_code == 500
    assert response.json() == {"success": False, "error": "Server misconfigured: CRON_SECRET not set"}


@pytest.mark.parametrize("path", ["/api/cron/scrape", "/api/cron/enrich", "/api/cron/weather-precache", "/api/ingest/stubbs"])
def test_wrong_bearer_is_unauthorized(conn, path):
    client = _client(conn)

    response = client.post(path, headers={"Authorization": "Bearer nope"})

    assert response.status_code == 401
    assert response.json() == {"success": False, "error": "Unauthorized"}


def test_scrape_reports_counts_and_sources(conn, make_raw):
    scrapers = {
        "stubbs": ScraperSpec("stubbs", "stubbs", lambda: [make_raw("a"), make_raw("b")]),
        "broken": ScraperSpec("broken", "long-center", lambda: 1 / 0),
    }
    client = _client(conn, scrapers=scrapers)

    body = client.post("/api/cron/scrape", headers=AUTH).json()

    assert body["success"] is True
    assert body["duration"].endswith("ms")
    assert (body["totalEvents"], body["created"], body["updated"], body["errorCount"]) == (2, 2, 0, 0)
    by_source = {s["source"]: s for s in body["sources"]}
    assert by_source["broken"]["error"] == "division by zero"
    assert by_source["stubbs"]["events"] == 2


def test_ingest_single_source_by_alias(conn, make_raw):
    scrapers = {
        "moody-amphitheater": ScraperSpec(
            "moody-amphitheater", "moody-amphitheater",
            lambda: [make_raw("amp-1", venue_slug="moody-amphitheater")], aliases=["moody-amp"],
        ),
    }
    client = _client(conn, scrapers=scrapers)

    body = client.get("/api/ingest/moody-amp", headers=AUTH).json()

    assert body["source"] == "moody-amphitheater"
    assert body["created"] == 1


def test_ingest_unknown_source_lists_available(conn):
    client = _client(conn, scrapers={"stubbs": ScraperSpec("stubbs", "stubbs", lambda: [])})

    response = client.get("/api/ingest/nowhere", headers=AUTH)

    assert response.status_code == 404
    assert response.json()["available"] == ["stubbs"]


def test_enrich_with_limit_and_force(conn, make_raw):
    client = _client(conn, scrapers={"stubbs": ScraperSpec("stubbs", "stubbs", lambda: [make_raw(f"e{i}") for i in range(3)])})
    client.post("/api/cron/scrape", headers=AUTH)

    first = client.post("/api/cron/enrich?limit=2", headers=AUTH).json()
    forced = client.post("/api/cron/enrich?force=true", headers=AUTH).json()

    assert first["processed"] == 2
    assert first["completed"] == 2
    assert first["categoriesUpdated"] == 2
    assert forced["force"] is True
    assert forced["processed"] == 3
    assert db.count_enrichments(conn) == 3


def test_weather_precache_and_public_lookup(conn, make_raw):
    client = _client(conn, scrapers={"stubbs": ScraperSpec("stubbs", "stubbs", lambda: [make_raw("w1"), make_raw("w2")])})
    client.post("/api/cron/scrape", headers=AUTH)
    # make_raw puts shows 14 days out, past the forecast horizon
    precache = client.post("/api/cron/weather-precache", headers=AUTH).json()
    assert precache["success"] is True
    assert precache["eventsChecked"] == 0

    target = (date.today() + timedelta(days=2)).isoformat()
    first = client.get(f"/api/weather?lat=30.2694&lng=-97.7368&date={target}").json()
    second = client.get(f"/api/weather?lat=30.2694&lng=-97.7368&date={target}").json()
    assert first["available"] is True
    assert first["weather"]["temp_high"] == 80
    assert second["cached"] is True


def test_weather_lookup_rejects_bad_params(conn):
    client = _client(conn)

    assert client.get("/api/weather?lat=abc&lng=-97.7&date=2026-03-01").status_code == 400
    assert client.get("/api/weather?lat=30.2&lng=-97.7").status_code == 400
    assert client.get("/api/weather?lat=130&lng=-97.7&date=2026-03-01").status_code == 400


def test_store_failure_returns_structured_error(make_raw):
    broken = sqlite3.connect(":memory:", check_same_thread=False)
    broken.close()
    client = _client(broken, scrapers={"stubbs": ScraperSpec("stubbs", "stubbs", lambda: [make_raw("a")])})

    response = client.post("/api/cron/scrape", headers=AUTH)

    assert response.status_code == 500
    body = response.json()
    assert body["success"] is False
    assert body["totalEvents"] == 1
    assert "duration" in body


def test_health(conn):
    assert _client(conn).get("/health").json() == {"status": "ok"}


class ExplodingProvider(Provider):
    name = "llm"

    @property
    def configured(self):
        raise RuntimeError("provider registry corrupted")

    def fetch(self, ctx):
        return None


def test_unexpected_enrichment_error_returns_structured_error(conn):
    client = _client(conn, providers=[ExplodingProvider()])

    response = client.post("/api/cron/enrich", headers=AUTH)

    assert response.status_code == 500
    body = response.json()
    assert body["success"] is False
    assert body["error"] == "provider registry corrupted"
    assert body["duration"].endswith("ms")
    assert body["processed"] == 0


def test_unexpected_ingest_error_keeps_counts_so_far(conn, make_raw, monkeypatch):
    upsert_event = db.upsert_event

    def fail_on_b(conn, fields):
        if fields["source_event_id"] == "b":
            raise RuntimeError("disk quota exceeded")
        return upsert_event(conn, fields)

    monkeypatch.setattr(db, "upsert_event", fail_on_b)
    client = _client(conn, scrapers={"stubbs": ScraperSpec("stubbs", "stubbs", lambda: [make_raw("a"), make_raw("b")])})

    response = client.post("/api/cron/scrape", headers=AUTH)

    assert response.status_code == 500
    body = response.json()
    assert body["success"] is False
    assert body["error"] == "disk quota exceeded"
    assert (body["totalEvents"], body["created"]) == (2, 1)


def test_unexpected_weather_error_returns_structured_error(conn):
    def broken_fetcher(lat, lng, target):
        raise KeyError("daily")

    client = _client(conn, weather_fetcher=broken_fetcher)
    target = (date.today() + timedelta(days=2)).isoformat()

    response = client.get(f"/api/weather?lat=30.2694&lng=-97.7368&date={target}")

    assert response.status_code == 500
    assert response.json()["success"] is False
    assert response.json()["error"] == "'daily'"
