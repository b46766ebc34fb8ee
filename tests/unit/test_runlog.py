from datetime import datetime, timezone

import freezegun

from gigsync.pipeline.io import trim_log_by_time
from gigsync.pipeline.runlog import RunLog, console_log
from gigsync.utils.dates import local_today, now_utc


def test_console_log_prints_message_only(capsys):
    console_log("  stubbs: 3 events", "WARNING")
    assert capsys.readouterr().out == "  stubbs: 3 events\n"


def test_run_log_buffers_timestamped_lines(capsys):
    log = RunLog("scrape", echo=False)

    with freezegun.freeze_time("2026-10-18 12:00:00"):
        log("Scraping stubbs...")
        log.warning("stubbs: no events found")
        log.error("long-center: HTTP 503")

    assert capsys.readouterr().out == ""
    assert log.lines == [
        "[2026-10-18 12:00:00] [INFO] Scraping stubbs...",
        "[2026-10-18 12:00:00] [WARNING] stubbs: no events found",
        "[2026-10-18 12:00:00] [ERROR] long-center: HTTP 503",
    ]


def test_save_appends_and_applies_retention(tmp_path):
    log_path = tmp_path / "data" / "scrape-log.txt"

    with freezegun.freeze_time("2026-10-01 12:00:00"):
        first = RunLog("scrape", echo=False)
        first("first run")
        first.save(log_path)

    with freezegun.freeze_time("2026-10-05 12:00:00"):
        second = RunLog("enrich", echo=False)
        second("second run")
        second.save(log_path)

    text = log_path.read_text()
    assert "first run" in text
    assert "--- New Run: enrich ---" in text

    with freezegun.freeze_time("2026-10-17 12:00:00"):
        third = RunLog("weather", echo=False)
        third("third run")
        third.save(log_path)

    text = log_path.read_text()
    assert "first run" not in text
    assert "second run" in text
    assert "third run" in text


def test_trim_log_keeps_continuation_lines_with_their_entry(tmp_path):
    log_path = tmp_path / "scrape-log.txt"
    log_path.write_text(
        "[2026-09-01 00:00:00] [ERROR] old failure\n"
        "Traceback line for old failure\n"
        "[2026-10-17 00:00:00] [ERROR] recent failure\n"
        "Traceback line for recent failure\n"
    )

    with freezegun.freeze_time("2026-10-18 00:00:00"):
        kept = trim_log_by_time(log_path, retention_days=14)

    assert kept == [
        "[2026-10-17 00:00:00] [ERROR] recent failure\n",
        "Traceback line for recent failure\n",
    ]
    assert trim_log_by_time(tmp_path / "missing.txt") == []


def test_frozen_clock_reaches_package_modules():
    with freezegun.freeze_time("2026-03-10 18:00:00"):
        assert now_utc() == datetime(2026, 3, 10, 18, 0, tzinfo=timezone.utc)
        assert local_today().isoformat() == "2026-03-10"
