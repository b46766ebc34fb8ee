import re
from datetime import date

import requests
from bs4 import BeautifulSoup

from gigsync import config
from gigsync.models import EventCategory, EventSource, RawEvent
from gigsync.utils.dates import combine_local, local_today, next_occurrence, normalize_time

STUBBS_BASE = "https://stubbsaustin.com"
STUBBS_URL = STUBBS_BASE + "/concert-listings/"


def _event_date(display_date, url, today):
    """Prefer the full date embedded in the URL (/tm-event/name-2025-11-30/), else month/day."""
    match = re.search(r"(\d{4})-(\d{2})-(\d{2})", url or "")
    if match:
        return date(int(match.group(1)), int(match.group(2)), int(match.group(3)))
    parts = (display_date or "").split("/")
    if len(parts) != 2 or not all(p.strip().isdigit() for p in parts):
        return None
    return next_occurrence(int(parts[0]), int(parts[1]), today=today)


def _category(title):
    lower = title.lower()
    if "brunch" in lower:
        return EventCategory.OTHER.value
    if "comedy" in lower or "stand-up" in lower or "comedian" in lower:
        return EventCategory.COMEDY.value
    return EventCategory.CONCERT.value


def parse_stubbs(html):
    soup = BeautifulSoup(html, "html.parser")
    today = local_today()
    events = []

    for section in soup.select(".tw-section"):
        link = section.select_one(".tw-name a")
        if not link or not link.get_text(strip=True):
            continue
        title = link.get_text(strip=True)
        url = link.get("href", "")

        date_tag = section.select_one(".tw-event-date")
        try:
            day = _event_date(date_tag.get_text(strip=True) if date_tag else "", url, today)
        except ValueError:
            day = None
        if not day:
            continue

        time_tag = section.select_one(".tw-event-time")
        start = combine_local(day, normalize_time(time_tag.get_text(" ", strip=True) if time_tag else None))

        details = []
        doors = section.select_one(".tw-event-door-time")
        if doors and doors.get_text(strip=True):
            details.append(f"Doors: {doors.get_text(strip=True)}")
        price = section.select_one(".tw-price")
        if price and price.get_text(strip=True):
            details.append(f"Price: {price.get_text(strip=True)}")

        image = section.select_one(".event-img")
        image_url = image.get("src") if image else None
        if image_url and not image_url.startswith("http"):
            image_url = STUBBS_BASE + "/" + image_url.lstrip("/")

        match = re.search(r"/tm-event/([^/]+)", url)

        events.append(RawEvent(
            source=EventSource.VENUE_WEBSITE.value,
            source_event_id=match.group(1) if match else None,
            venue_slug="stubbs",
            title=title,
            start_datetime=start,
            url=url,
            image_url=image_url,
            description=" | ".join(details) or None,
            category=_category(title),
        ))

    return events


def scrape_stubbs():
    """Scrape events from Stubb's concert listings."""
    resp = requests.get(STUBBS_URL, headers=config.SCRAPER_HEADERS, timeout=config.HTTP_TIMEOUT)
    resp.raise_for_status()
    return parse_stubbs(resp.text)
