import sqlite3

from gigsync import db
from gigsync.errors import GigsyncError, ValidationError
from gigsync.pipeline.metrics import UpsertResult
from gigsync.pipeline.runlog import console_log
from gigsync.pipeline.validate import validate_event
from gigsync.utils.events import generate_slug


class EventUpsertEngine:
    """
    Reconcile raw scraper output against the canonical events table.

    Each raw event resolves to exactly one row through its (source, source_event_id)
    key; per-event failures are recorded in the result and never abort the batch.
    Database faults other than constraint violations propagate to the caller,
    with progress so far available on ``last_result``.
    """

    def __init__(self, conn, log_func=None):
        self.conn = conn
        self.log = log_func or console_log
        self.last_result = None
        self._venues = {}

    def upsert(self, raw_events):
        result = UpsertResult()
        self.last_result = result

        for raw in raw_events:
            label = getattr(raw, "title", None) or "<untitled>"
            try:
                created = self._upsert_one(raw)
            except (GigsyncError, ValueError, TypeError, sqlite3.IntegrityError) as e:
                message = f"{getattr(raw, 'source', '?')}/{getattr(raw, 'source_event_id', None) or label}: {e}"
                result.errors.append(message)
                self.log(f"  Upsert error: {message}", "WARNING")
                continue

            if created:
                result.created += 1
            else:
                result.updated += 1

        self.log(f"  Upsert: {result.created} created, {result.updated} updated, {result.error_count} errors")
        return result

    def _upsert_one(self, raw):
        validate_event(raw)
        if not self._venue_exists(raw.venue_slug):
            raise ValidationError(f"venue not found: {raw.venue_slug}")

        fields = {
            "source": raw.source,
            "source_event_id": raw.source_event_id or generate_slug(raw),
            "venue_slug": raw.venue_slug,
            "title": raw.title.strip(),
            "description": raw.description,
            "start_datetime": raw.start_datetime,
            "end_datetime": raw.end_datetime,
            "url": raw.url,
            "image_url": raw.image_url,
            "category": raw.category,
            "status": raw.status,
        }
        return db.upsert_event(self.conn, fields)

    def _venue_exists(self, slug):
        if slug not in self._venues:
            self._venues[slug] = db.get_venue(self.conn, slug) is not None
        return self._venues[slug]

