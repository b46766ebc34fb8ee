import re

import requests
from bs4 import BeautifulSoup

from gigsync import config
from gigsync.models import EventCategory, EventSource, RawEvent
from gigsync.utils.dates import MONTHS, combine_local, local_today, next_occurrence, normalize_time, now_utc

MOODY_AMP_BASE = "https://www.moodyamphitheater.com"
MOODY_AMP_URL = MOODY_AMP_BASE + "/events-tickets"


def _event_id(detail_path, ticket_url):
    match = re.search(r"/events/([^/?]+)", detail_path or "")
    if match:
        return f"moody-amp-{match.group(1)}"
    match = re.search(r"/event/([A-Z0-9]+)", ticket_url or "")
    if match:
        return f"tm-{match.group(1)}"
    return None


def _text(card, selector):
    tag = card.select_one(selector)
    return tag.get_text(strip=True) if tag else ""


def parse_moody_amphitheater(html, now=None):
    """
    Parse Webflow collection cards. Cards carry month/day without a year;
    dates already past this year roll to next year. Show time defaults to 7pm.
    """
    now = now or now_utc()
    today = local_today()
    soup = BeautifulSoup(html, "html.parser")
    events = []

    for card in soup.select(".collection-item.w-dyn-item"):
        month = MONTHS.get(_text(card, ".date-month").lower()[:3])
        day_text = _text(card, ".date-day")
        tour_name = _text(card, ".event-title")
        headliner = _text(card, ".event-headliner")
        support = _text(card, ".event-support")

        title = headliner or tour_name
        if tour_name and headliner and tour_name != headliner:
            title = f"{headliner}: {tour_name}"
        if support:
            title = f"{title} {support}"
        title = title.strip()

        if not title or not month or not day_text.isdigit():
            continue

        try:
            day = next_occurrence(month, int(day_text), today=today)
        except ValueError:
            continue
        start = combine_local(day, normalize_time(_text(card, ".event-time")), default="19:00")
        if start < now:
            continue

        link = card.select_one(".link-block")
        detail_path = link.get("href", "") if link else ""
        ticket = card.select_one(".ticket-button.primary-btn")
        ticket_url = ticket.get("href", "") if ticket else ""
        url = detail_path if detail_path.startswith("http") else MOODY_AMP_BASE + detail_path
        image = card.select_one("img")

        lower = title.lower()
        category = EventCategory.FESTIVAL.value if "fest" in lower else EventCategory.CONCERT.value

        events.append(RawEvent(
            source=EventSource.VENUE_WEBSITE.value,
            source_event_id=_event_id(detail_path, ticket_url),
            venue_slug="moody-amphitheater",
            title=title,
            start_datetime=start,
            url=url,
            image_url=image.get("src") if image else None,
            category=category,
        ))

    return events


def scrape_moody_amphitheater():
    """Scrape events from Moody Amphitheater at Waterloo Park."""
    resp = requests.get(MOODY_AMP_URL, headers=config.SCRAPER_HEADERS, timeout=config.HTTP_TIMEOUT)
    resp.raise_for_status()
    return parse_moody_amphitheater(resp.text)
