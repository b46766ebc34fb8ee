import threading
from datetime import timedelta

import pytest
import requests

from gigsync import db
from gigsync.errors import UnknownSourceError
from gigsync.orchestrator import ScraperOrchestrator
from gigsync.pipeline.io import build_status
from gigsync.pipeline.upsert import EventUpsertEngine
from gigsync.registry import ScraperSpec


def _quiet(*_args, **_kwargs):
    pass


def test_failing_source_is_isolated(make_raw):
    def source_a():
        return [make_raw("a-1"), make_raw("a-2")]

    def source_b():
        raise requests.ConnectionError("connection refused")

    def source_c():
        return [make_raw("c-1")]

    scrapers = {
        "a": ScraperSpec("a", "stubbs", source_a),
        "b": ScraperSpec("b", "stubbs", source_b),
        "c": ScraperSpec("c", "stubbs", source_c),
    }
    summary = ScraperOrchestrator(scrapers=scrapers, log_func=_quiet).run_all()
    by_id = {r.source_id: r for r in summary.results}

    assert by_id["a"].event_count == 2
    assert by_id["c"].event_count == 1
    assert by_id["b"].error == "connection refused"
    assert by_id["b"].error_trace
    assert summary.total_events == 3
    assert summary.failed_sources == ["b"]


def test_slow_source_times_out_without_blocking_siblings(make_raw):
    release = threading.Event()

    def slow():
        release.wait(5)
        return [make_raw("slow")]

    scrapers = {
        "fast": ScraperSpec("fast", "stubbs", lambda: [make_raw("fast")]),
        "slow": ScraperSpec("slow", "stubbs", slow),
    }
    try:
        summary = ScraperOrchestrator(scrapers=scrapers, timeout=0.2, log_func=_quiet).run_all()
    finally:
        release.set()
    by_id = {r.source_id: r for r in summary.results}

    assert by_id["fast"].error is None
    assert by_id["fast"].event_count == 1
    assert "timed out" in by_id["slow"].error
    assert by_id["slow"].event_count == 0


def test_run_one_resolves_alias():
    scrapers = {"moody-amphitheater": ScraperSpec("moody-amphitheater", "moody-amphitheater", lambda: [], aliases=["moody-amp"])}

    result = ScraperOrchestrator(scrapers=scrapers, log_func=_quiet).run_one("moody-amp")

    assert result.source_id == "moody-amphitheater"
    assert result.error is None


def test_run_one_unknown_source_lists_available():
    scrapers = {"stubbs": ScraperSpec("stubbs", "stubbs", lambda: [])}

    with pytest.raises(UnknownSourceError) as excinfo:
        ScraperOrchestrator(scrapers=scrapers, log_func=_quiet).run_one("nope")
    assert excinfo.value.available == ["stubbs"]


def test_summary_table_is_logged(make_raw):
    lines = []
    scrapers = {"stubbs": ScraperSpec("stubbs", "stubbs", lambda: [make_raw("x")])}

    ScraperOrchestrator(scrapers=scrapers, log_func=lambda msg, level="INFO": lines.append(msg)).run_all()

    assert "SOURCE SUMMARY" in lines
    assert any(line.startswith("TOTAL") for line in lines)


def test_three_sources_end_to_end(conn, make_raw):
    engine = EventUpsertEngine(conn, log_func=_quiet)
    engine.upsert([make_raw(f"known-{i}") for i in range(3)])
    shifted = make_raw("x").start_datetime + timedelta(hours=2)

    def source_1():
        return [make_raw("new-1"), make_raw("new-2")] + [
            make_raw(f"known-{i}", start_datetime=shifted) for i in range(3)
        ]

    def source_2():
        raise requests.ConnectionError("network unreachable")

    scrapers = {
        "source-1": ScraperSpec("source-1", "stubbs", source_1),
        "source-2": ScraperSpec("source-2", "stubbs", source_2),
        "source-3": ScraperSpec("source-3", "stubbs", lambda: []),
    }
    summary = ScraperOrchestrator(scrapers=scrapers, log_func=_quiet).run_all()
    result = engine.upsert(summary.events)

    assert (result.created, result.updated, result.error_count) == (2, 3, 0)
    breakdown = {r.source_id: r.to_dict() for r in summary.results}
    assert breakdown["source-1"]["events"] == 5
    assert breakdown["source-1"]["error"] is None
    assert breakdown["source-2"]["error"] == "network unreachable"
    assert breakdown["source-3"] == {"source": "source-3", "venue": "stubbs", "events": 0, "error": None}
    assert len(db.get_all_events(conn)) == 5


def test_status_preserves_last_success_for_failed_source(make_raw):
    scrapers = {
        "ok": ScraperSpec("ok", "stubbs", lambda: [make_raw("x")]),
        "broken": ScraperSpec("broken", "stubbs", lambda: 1 / 0),
    }
    summary = ScraperOrchestrator(scrapers=scrapers, log_func=_quiet).run_all()
    existing = {"sources": {"broken": {"last_success": "2026-01-01T00:00:00Z", "last_success_count": 7}}}

    status = build_status(summary, existing, "2026-02-01T00:00:00Z")

    assert status["all_success"] is False
    assert status["any_success"] is True
    assert status["sources"]["ok"]["last_success"] == "2026-02-01T00:00:00Z"
    assert status["sources"]["broken"]["last_success"] == "2026-01-01T00:00:00Z"
    assert status["sources"]["broken"]["last_success_count"] == 7
    assert "division by zero" in status["sources"]["broken"]["error"]


def test_scrapers_that_take_a_log_write_to_the_run_log(make_raw):
    lines = []

    def tm_style(log_func=None):
        log_func("    moody-center (TM): 1 events")
        return [make_raw("tm-1")]

    scrapers = {
        "moody-center": ScraperSpec("moody-center", "moody-center", tm_style, takes_log=True),
        "stubbs": ScraperSpec("stubbs", "stubbs", lambda: [make_raw("s-1")]),
    }
    summary = ScraperOrchestrator(scrapers=scrapers, log_func=lambda msg, level="INFO": lines.append(msg)).run_all()

    assert summary.total_events == 2
    assert "    moody-center (TM): 1 events" in lines
