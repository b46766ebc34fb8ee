import json
import re
from datetime import datetime, timedelta, timezone

from gigsync import config


def trim_log_by_time(log_path, retention_days=14):
    """
    Remove log entries older than retention_days.
    Returns list of lines to keep.
    """
    if not log_path.exists():
        return []

    cutoff = datetime.now(timezone.utc) - timedelta(days=retention_days)
    cutoff_str = cutoff.strftime("%Y-%m-%d %H:%M:%S")

    kept_lines = []
    current_entry_recent = False

    with open(log_path, "r") as f:
        for line in f:
            match = re.match(r"\[(\d{4}-\d{2}-\d{2} \d{2}:\d{2}:\d{2})\]", line)
            if match:
                current_entry_recent = match.group(1) >= cutoff_str

            if current_entry_recent:
                kept_lines.append(line)

    return kept_lines


def load_existing_status(status_path=None):
    """Load existing scrape status file if available."""
    status_path = status_path or config.STATUS_PATH
    if not status_path.exists():
        return {"sources": {}}
    try:
        with open(status_path, "r") as f:
            return json.load(f)
    except ValueError:
        return {"sources": {}}


def build_status(summary, existing_status, run_timestamp, upsert_result=None):
    """
    Build the scrape status document for a run.
    last_success / last_success_count survive runs in which a source failed.
    """
    statuses = {}
    for result in summary.results:
        status = {
            "last_run": run_timestamp,
            "success": result.error is None,
            "event_count": result.event_count,
            "error": result.error,
            "duration_ms": round(result.duration_ms),
        }

        previous = existing_status.get("sources", {}).get(result.source_id, {})
        if previous.get("last_success"):
            status["last_success"] = previous["last_success"]
            status["last_success_count"] = previous.get("last_success_count", 0)

        if result.error is None:
            status["last_success"] = run_timestamp
            status["last_success_count"] = result.event_count
        elif result.error_trace:
            status["error_trace"] = result.error_trace

        statuses[result.source_id] = status

    document = {
        "last_run": run_timestamp,
        "all_success": all(s["success"] for s in statuses.values()),
        "any_success": any(s["success"] for s in statuses.values()),
        "total_events": summary.total_events,
        "sources": statuses,
    }
    if upsert_result is not None:
        document["created"] = upsert_result.created
        document["updated"] = upsert_result.updated
        document["error_count"] = upsert_result.error_count
    return document


def save_status(status, status_path=None):
    status_path = status_path or config.STATUS_PATH
    status_path.parent.mkdir(parents=True, exist_ok=True)
    with open(status_path, "w") as f:
        json.dump(status, f, indent=2)
    return status_path
