from datetime import datetime, timedelta, timezone

import freezegun
import pytest

from gigsync import db
from gigsync.models import RawEvent
from gigsync.venues.seed import VENUES

# freezegun skips callers whose module starts with "gi" (PyGObject), which would include gigsync
freezegun.configure(default_ignore_list=[m for m in freezegun.config.DEFAULT_IGNORE_LIST if m != "gi"])


@pytest.fixture
def conn():
    conn = db.connect(":memory:")
    for venue in VENUES.values():
        db.upsert_venue(conn, venue)
    yield conn
    conn.close()


@pytest.fixture
def make_raw():
    """Factory for valid raw events a couple of weeks out."""
    base = datetime.now(timezone.utc).replace(microsecond=0) + timedelta(days=14)

    def _make(source_event_id="evt-1", **overrides):
        fields = {
            "source": "venue_website",
            "source_event_id": source_event_id,
            "venue_slug": "stubbs",
            "title": f"Artist {source_event_id}",
            "start_datetime": base,
            "url": f"https://example.com/{source_event_id}",
        }
        fields.update(overrides)
        return RawEvent(**fields)

    return _make
