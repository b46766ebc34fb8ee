"""
HTTP surface for the scheduled jobs.

Cron routes accept GET or POST with ``Authorization: Bearer <CRON_SECRET>``;
the weather route is public.
"""

from typing import Optional

from fastapi import FastAPI, Header, Query
from fastapi.responses import JSONResponse

from gigsync.config import Settings
from gigsync.triggers import TriggerHandlers


def _json(response):
    return JSONResponse(status_code=response.status_code, content=response.body)


def create_app(settings=None, handlers=None):
    settings = settings or Settings.from_env()
    handlers = handlers or TriggerHandlers(settings)

    app = FastAPI(title="gigsync", version="0.1.0", description="Live event ingestion, enrichment and weather jobs.")
    app.state.handlers = handlers

    @app.get("/health")
    def health():
        return {"status": "ok"}

    @app.api_route("/api/cron/scrape", methods=["GET", "POST"])
    def cron_scrape(authorization: Optional[str] = Header(None)):
        return _json(handlers.scrape_all(authorization=authorization))

    @app.api_route("/api/ingest/{source_id}", methods=["GET", "POST"])
    def ingest_source(source_id: str, authorization: Optional[str] = Header(None)):
        return _json(handlers.scrape_one(source_id, authorization=authorization))

    @app.api_route("/api/cron/enrich", methods=["GET", "POST"])
    def cron_enrich(
        limit: Optional[int] = Query(None, ge=1, le=500),
        force: bool = Query(False, description="Destructive: deletes all enrichment rows first"),
        authorization: Optional[str] = Header(None),
    ):
        return _json(handlers.enrich(limit=limit, force=force, authorization=authorization))

    @app.api_route("/api/cron/weather-precache", methods=["GET", "POST"])
    def cron_weather_precache(authorization: Optional[str] = Header(None)):
        return _json(handlers.weather_prewarm(authorization=authorization))

    @app.get("/api/weather")
    def weather(lat: Optional[str] = None, lng: Optional[str] = None, date: Optional[str] = None):
        return _json(handlers.weather_lookup(lat, lng, date))

    return app
