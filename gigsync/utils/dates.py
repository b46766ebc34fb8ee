import re
from datetime import date, datetime, time, timedelta, timezone
from zoneinfo import ZoneInfo

from gigsync import config

MONTHS = {
    "jan": 1, "feb": 2, "mar": 3, "apr": 4, "may": 5, "jun": 6,
    "jul": 7, "aug": 8, "sep": 9, "oct": 10, "nov": 11, "dec": 12,
}


def local_tz():
    return ZoneInfo(config.LOCAL_TIMEZONE)


def now_utc():
    return datetime.now(timezone.utc)


def local_today():
    return now_utc().astimezone(local_tz()).date()


def local_date(value):
    """Calendar date of an aware datetime in the venue timezone."""
    return value.astimezone(local_tz()).date()


def combine_local(day, hhmm=None, default="20:00"):
    """Build an aware datetime from a local date and an HH:MM string."""
    hhmm = hhmm or default
    hours, minutes = (int(p) for p in hhmm.split(":"))
    return datetime.combine(day, time(hours, minutes), tzinfo=local_tz())


def days_from_now(day):
    """Whole calendar days between today (local) and the given date."""
    if isinstance(day, datetime):
        day = local_date(day)
    return (day - local_today()).days


def next_occurrence(month, day, today=None):
    """Resolve a month/day without a year: this year, or next year if already past."""
    today = today or local_today()
    candidate = date(today.year, month, day)
    if candidate < today:
        candidate = date(today.year + 1, month, day)
    return candidate


def normalize_time(time_str):
    """
    Normalize time strings to consistent HH:MM 24-hour format.
    Handles: "8:00", "8:30pm", "20:00:00", "Show: 8:00 PM", "7pm"
    """
    if not time_str:
        return None

    match = re.search(r"(\d{1,2})(?::(\d{2}))?(?::\d{2})?\s*(am|pm)?", time_str.strip().lower())
    if not match:
        return None

    hours = int(match.group(1))
    minutes = int(match.group(2) or 0)
    meridiem = match.group(3)
    if match.group(2) is None and not meridiem:
        return None

    if meridiem == "pm" and hours < 12:
        hours += 12
    elif meridiem == "am" and hours == 12:
        hours = 0

    if hours > 23 or minutes > 59:
        return None

    return f"{hours:02d}:{minutes:02d}"


def parse_iso_loose(value):
    """
    Parse ISO-ish timestamps with unpadded fields, e.g. "2025-12-5T19:30-6:00".
    Returns an aware datetime or None.
    """
    if not value:
        return None
    match = re.match(
        r"^(\d{4})-(\d{1,2})-(\d{1,2})T(\d{1,2}):(\d{2})(?::(\d{2}))?([+-])(\d{1,2}):?(\d{2})$",
        value.strip(),
    )
    if match:
        year, month, day, hour, minute, second, sign, tz_h, tz_m = match.groups()
        offset = timedelta(hours=int(tz_h), minutes=int(tz_m))
        if sign == "-":
            offset = -offset
        return datetime(
            int(year), int(month), int(day), int(hour), int(minute), int(second or 0),
            tzinfo=timezone(offset),
        )
    try:
        parsed = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=local_tz())
    return parsed
