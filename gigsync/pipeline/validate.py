from datetime import datetime

from gigsync import config
from gigsync.errors import ValidationError
from gigsync.models import EventCategory, EventSource, EventStatus

SOURCES = {s.value for s in EventSource}
CATEGORIES = {c.value for c in EventCategory}
STATUSES = {s.value for s in EventStatus}


def validate_event(event):
    """Check that a raw event has all required fields with valid data. Raises ValidationError."""
    for field in config.REQUIRED_FIELDS:
        if not getattr(event, field, None):
            raise ValidationError(f"missing required field '{field}'")
    for field in ("source", "venue_slug", "title", "url"):
        if not isinstance(getattr(event, field), str):
            raise ValidationError(f"'{field}' must be a string")
    if event.source not in SOURCES:
        raise ValidationError(f"unknown source '{event.source}'")
    if not isinstance(event.start_datetime, datetime):
        raise ValidationError(f"start_datetime is not a datetime: {event.start_datetime!r}")
    if event.start_datetime.tzinfo is None:
        raise ValidationError("start_datetime must be timezone-aware")
    if event.end_datetime is not None:
        if not isinstance(event.end_datetime, datetime) or event.end_datetime.tzinfo is None:
            raise ValidationError("end_datetime must be a timezone-aware datetime")
        if event.end_datetime < event.start_datetime:
            raise ValidationError("end_datetime is before start_datetime")
    if event.category is not None and event.category not in CATEGORIES:
        raise ValidationError(f"unknown category '{event.category}'")
    if event.status is not None and event.status not in STATUSES:
        raise ValidationError(f"unknown status '{event.status}'")
    return True
