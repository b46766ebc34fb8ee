import json

import requests
from bs4 import BeautifulSoup

from gigsync import config
from gigsync.models import EventSource, RawEvent
from gigsync.utils.categories import detect_category_from_text
from gigsync.utils.dates import now_utc, parse_iso_loose
from gigsync.utils.events import clean_description

LONG_CENTER_URL = "https://thelongcenter.org/events/"
LONG_CENTER_DEFAULT_IMAGE = "https://thelongcenter.org/wp-content/uploads/2020/09/Long-Center-OG-Image.jpg"
KNOWN_HALLS = {"Dell Hall", "Rollins Studio Theatre", "Long Center Terrace"}


def _hall_name(location):
    if isinstance(location, dict):
        location = [location]
    if not location:
        return None
    name = (location[0] or {}).get("name")
    return name if name in KNOWN_HALLS else None


def parse_long_center(html, now=None):
    """Parse events from the JSON-LD blocks embedded in the Long Center listing page."""
    now = now or now_utc()
    soup = BeautifulSoup(html, "html.parser")
    events = []
    seen_urls = set()

    for script in soup.select('script[type="application/ld+json"]'):
        try:
            data = json.loads(script.string or script.get_text() or "")
        except ValueError:
            continue

        for item in data if isinstance(data, list) else [data]:
            if not isinstance(item, dict) or item.get("@type") != "Event":
                continue
            url = item.get("url")
            if not url or url in seen_urls:
                continue
            seen_urls.add(url)
            if "Cancelled" in (item.get("eventStatus") or ""):
                continue

            start = parse_iso_loose(item.get("startDate"))
            if not start or start < now:
                continue
            end = parse_iso_loose(item.get("endDate"))
            if end and end < start:
                end = None

            description = clean_description(item.get("description"))
            hall = _hall_name(item.get("location"))
            if hall:
                description = f"[{hall}] {description or ''}".strip()

            events.append(RawEvent(
                source=EventSource.VENUE_WEBSITE.value,
                source_event_id=item.get("@id") or f"longcenter-{url}",
                venue_slug="long-center",
                title=item.get("name", "").strip(),
                start_datetime=start,
                end_datetime=end,
                url=url,
                image_url=item.get("image") or LONG_CENTER_DEFAULT_IMAGE,
                description=description,
                category=detect_category_from_text(item.get("name", "")),
            ))

    return events


def scrape_long_center():
    """Scrape events from the Long Center's website."""
    resp = requests.get(LONG_CENTER_URL, headers=config.SCRAPER_HEADERS, timeout=config.HTTP_TIMEOUT)
    resp.raise_for_status()
    return parse_long_center(resp.text)
