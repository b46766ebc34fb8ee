from datetime import timedelta

from gigsync.models import EventCategory, EventSource, RawEvent
from gigsync.utils.dates import combine_local, local_today


def scrape_mock():
    """Two fixed listings for exercising ingestion end to end."""
    today = local_today()
    concert_day = combine_local(today + timedelta(days=15))
    return [
        RawEvent(
            source=EventSource.MOCK.value,
            source_event_id="mock-1",
            venue_slug="moody-center",
            title="Test Concert - Mock Scraper",
            description="This is a test event created by the mock scraper",
            start_datetime=concert_day,
            end_datetime=concert_day + timedelta(hours=3),
            url="https://example.com/test-event",
            category=EventCategory.CONCERT.value,
        ),
        RawEvent(
            source=EventSource.MOCK.value,
            source_event_id="mock-2",
            venue_slug="paramount-theatre",
            title="Test Comedy Show - Mock Scraper",
            description="Another test event for testing ingestion",
            start_datetime=combine_local(today + timedelta(days=20)),
            url="https://example.com/test-comedy",
            category=EventCategory.COMEDY.value,
        ),
    ]
