import argparse
import json
import sys
from dataclasses import asdict
from datetime import date, datetime, timezone

from gigsync import config, db
from gigsync.enrichment.batch import EnrichmentBatchProcessor
from gigsync.enrichment.providers import default_providers
from gigsync.errors import UnknownSourceError
from gigsync.orchestrator import ScraperOrchestrator
from gigsync.pipeline.io import build_status, load_existing_status, save_status
from gigsync.pipeline.r2 import download_database, upload_run_artifacts
from gigsync.pipeline.runlog import RunLog
from gigsync.pipeline.upsert import EventUpsertEngine
from gigsync.registry import get_scrapers
from gigsync.venues.seed import VENUES
from gigsync.weather import WeatherCache


def _open_db(log):
    download_database(log_func=log)
    conn = db.connect(config.DATABASE_PATH)
    for venue in VENUES.values():
        db.upsert_venue(conn, venue)
    return conn


def _finish(log, conn):
    conn.close()
    log.save()
    upload_run_artifacts(log_func=log)


def _scrape(args):
    log = RunLog("scrape")
    run_timestamp = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
    log(f"Starting scrape run at {run_timestamp}")

    orchestrator = ScraperOrchestrator(log_func=log)
    if args.source:
        try:
            results = [orchestrator.run_one(args.source)]
        except UnknownSourceError as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1
        summary_results = results
    else:
        summary = orchestrator.run_all()
        summary_results = summary.results

    conn = _open_db(log)
    try:
        engine = EventUpsertEngine(conn, log_func=log)
        events = [event for r in summary_results for event in r.events]
        upsert_result = engine.upsert(events)

        if not args.source:
            status = build_status(summary, load_existing_status(), run_timestamp, upsert_result)
            save_status(status)
            log(f"Status saved to {config.STATUS_PATH}")
            if summary.failed_sources:
                log(f"WARNING: Failed to scrape: {', '.join(summary.failed_sources)}", "ERROR")
    finally:
        _finish(log, conn)

    return 0 if any(r.error is None for r in summary_results) else 1


def _enrich(args):
    if args.force and not args.yes:
        answer = input("--force deletes ALL enrichment rows before re-running. Continue? [y/N] ")
        if answer.strip().lower() not in ("y", "yes"):
            print("Aborted.")
            return 1

    log = RunLog("enrich")
    conn = _open_db(log)
    try:
        processor = EnrichmentBatchProcessor(conn, providers=default_providers(log_func=log), log_func=log)
        summary = processor.run(limit=args.limit, force=args.force)
    finally:
        _finish(log, conn)
    print(json.dumps(summary.to_dict(), indent=2))
    return 0


def _weather_prewarm(args):
    log = RunLog("weather-prewarm")
    if not config.GOOGLE_API_KEY:
        log("GOOGLE_API_KEY not set; cannot fetch forecasts", "ERROR")
        return 1
    conn = _open_db(log)
    try:
        summary = WeatherCache(conn, log_func=log).prewarm()
    finally:
        _finish(log, conn)
    print(json.dumps(summary.to_dict(), indent=2))
    return 0 if summary.errors == 0 else 1


def _weather(args):
    conn = db.connect(config.DATABASE_PATH)
    try:
        result = WeatherCache(conn).lookup(args.lat, args.lng, date.fromisoformat(args.date))
    finally:
        conn.close()
    print(json.dumps(asdict(result), indent=2))
    return 0 if result.available else 1


def _serve(args):
    import uvicorn

    from gigsync.api import create_app

    uvicorn.run(create_app(config.Settings.from_env()), host=args.host, port=args.port)
    return 0


def _sources(args):
    for source_id, spec in sorted(get_scrapers().items()):
        aliases = f" (aliases: {', '.join(spec.aliases)})" if spec.aliases else ""
        print(f"{source_id:<24} {spec.venue_slug}{aliases}")
    return 0


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog="gigsync",
        description="Scrape, enrich and forecast live events",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    sp_scrape = subparsers.add_parser("scrape", help="Run scrapers and upsert events into the database")
    sp_scrape.add_argument("--source", metavar="ID", help="Only run this source (id or alias)")

    sp_enrich = subparsers.add_parser("enrich", help="Enrich events that have not been enriched yet")
    sp_enrich.add_argument("--limit", type=int, default=config.DEFAULT_ENRICH_LIMIT)
    sp_enrich.add_argument(
        "--force", action="store_true",
        help="DESTRUCTIVE: delete every enrichment row before running",
    )
    sp_enrich.add_argument("--yes", action="store_true", help="Skip the --force confirmation prompt")

    subparsers.add_parser("weather-prewarm", help="Refresh forecasts for upcoming events")

    sp_weather = subparsers.add_parser("weather", help="Look up the forecast for one location and date")
    sp_weather.add_argument("lat", type=float)
    sp_weather.add_argument("lng", type=float)
    sp_weather.add_argument("date", help="YYYY-MM-DD")

    sp_serve = subparsers.add_parser("serve", help="Run the HTTP trigger API")
    sp_serve.add_argument("--host", default="127.0.0.1")
    sp_serve.add_argument("--port", type=int, default=8000)

    subparsers.add_parser("sources", help="List registered scraper sources")

    args = parser.parse_args(argv)
    commands = {
        "scrape": _scrape,
        "enrich": _enrich,
        "weather-prewarm": _weather_prewarm,
        "weather": _weather,
        "serve": _serve,
        "sources": _sources,
    }
    return commands[args.command](args)


if __name__ == "__main__":
    sys.exit(main())
