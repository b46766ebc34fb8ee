import re
import threading
import time
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

import requests

from gigsync import config
from gigsync.models import EventCategory, EventSource, EventStatus, RawEvent, SaleWindow
from gigsync.pipeline.runlog import console_log
from gigsync.utils.categories import map_tm_classification
from gigsync.utils.dates import combine_local, local_date, normalize_time, parse_iso_loose

TM_VENUES = {
    "moody-center": "KovZ917ANwG",
    "acl-live": "KovZpZAJJlvA",
    "stubbs": "KovZ917AxzU",
    "paramount-theatre": "KovZpZAaa1nA",
    "bass-concert-hall": "KovZpZAJJ7AA",
    "long-center": "KovZpZAJEFvA",
}

TM_CATEGORY_MAP = {
    "Music": EventCategory.CONCERT.value,
    "Sports": EventCategory.SPORTS.value,
    "Arts & Theatre": EventCategory.THEATER.value,
    "Film": EventCategory.MOVIE.value,
    "Comedy": EventCategory.COMEDY.value,
    "Stand-Up": EventCategory.COMEDY.value,
    "Theatre": EventCategory.THEATER.value,
    "Musical": EventCategory.THEATER.value,
    "Festival": EventCategory.FESTIVAL.value,
    "Basketball": EventCategory.SPORTS.value,
    "Wrestling": EventCategory.SPORTS.value,
    "Hockey": EventCategory.SPORTS.value,
    "Football": EventCategory.SPORTS.value,
}

TM_STATUS_MAP = {
    "onsale": EventStatus.SCHEDULED.value,
    "offsale": EventStatus.SCHEDULED.value,
    "cancelled": EventStatus.CANCELLED.value,
    "canceled": EventStatus.CANCELLED.value,
    "postponed": EventStatus.POSTPONED.value,
    "rescheduled": EventStatus.SCHEDULED.value,
}

_rate_lock = threading.Lock()
_last_request_at = 0.0


def _rate_limit():
    """Keep at least TM_MIN_INTERVAL between Discovery API calls across threads."""
    global _last_request_at
    with _rate_lock:
        wait = config.TM_MIN_INTERVAL - (time.monotonic() - _last_request_at)
        if wait > 0:
            time.sleep(wait)
        _last_request_at = time.monotonic()


def tm_get(endpoint, params, api_key=None):
    """GET a Discovery API endpoint. HTTP and network failures raise."""
    _rate_limit()
    query = {k: v for k, v in params.items() if v not in (None, "")}
    query["apikey"] = api_key or config.TM_API_KEY
    resp = requests.get(f"{config.TM_BASE_URL}{endpoint}", params=query, timeout=config.HTTP_TIMEOUT)
    resp.raise_for_status()
    return resp.json()


def search_events_at_venue(venue_id, day, api_key=None):
    """All Ticketmaster events at one venue on one local calendar date."""
    local_day = day.isoformat()
    data = tm_get(
        "/events.json",
        {
            "venueId": venue_id,
            "localStartDateTime": f"{local_day}T00:00:00,{local_day}T23:59:59",
            "size": 50,
            "sort": "date,asc",
            "includeTBA": "yes",
            "includeTBD": "yes",
        },
        api_key=api_key,
    )
    return data.get("_embedded", {}).get("events", [])


def best_image_url(tm_event):
    """Prefer 16:9 images, then the largest."""
    images = tm_event.get("images") or []
    if not images:
        return None
    ranked = sorted(
        images,
        key=lambda img: (img.get("ratio") == "16_9", (img.get("width") or 0) * (img.get("height") or 0)),
        reverse=True,
    )
    return ranked[0].get("url")


def primary_classification(tm_event):
    classifications = tm_event.get("classifications") or []
    primary = next((c for c in classifications if c.get("primary")), classifications[0] if classifications else {})
    return {
        "segment": (primary.get("segment") or {}).get("name"),
        "genre": (primary.get("genre") or {}).get("name"),
        "sub_genre": (primary.get("subGenre") or {}).get("name"),
    }


def supporting_acts(tm_event):
    attractions = tm_event.get("_embedded", {}).get("attractions", [])
    names = [(a.get("name") or "").strip() for a in attractions[1:]]
    return [name for name in names if name]


def is_relevant_presale(name):
    """Time-limited early access only: no resale, VIP upsells, platinum or public on-sales."""
    if not name:
        return False
    name = name.lower()
    if name == "resale":
        return False
    if "vip package" in name or "platinum" in name or "public onsale" in name:
        return False
    if name == "onsale" or name.endswith(" onsale"):
        return False
    include_patterns = [
        "presale",
        "pre-sale",
        "fan club",
        "early access",
        "preferred tickets",
        "preferred seating",
        "select seats",
    ]
    return any(pattern in name for pattern in include_patterns)


def _window(name, start, end, url=None):
    start_dt = parse_iso_loose(start) if start else None
    if not start_dt:
        return None
    end_dt = parse_iso_loose(end) if end else None
    if end_dt and end_dt < start_dt:
        end_dt = None
    return SaleWindow(name=name, start=start_dt, end=end_dt, url=url)


def sale_windows(tm_event):
    """Public on-sale plus relevant presales, ordered by start."""
    sales = tm_event.get("sales") or {}
    windows = []
    public = sales.get("public") or {}
    if not public.get("startTBD"):
        window = _window("Public Onsale", public.get("startDateTime"), public.get("endDateTime"))
        if window:
            windows.append(window)
    for presale in sales.get("presales") or []:
        if not is_relevant_presale(presale.get("name")):
            continue
        window = _window(presale["name"], presale.get("startDateTime"), presale.get("endDateTime"), presale.get("url"))
        if window:
            windows.append(window)
    return sorted(windows, key=lambda w: w.start)


def _start_datetime(tm_event):
    start = tm_event.get("dates", {}).get("start", {})
    if start.get("dateTime"):
        return parse_iso_loose(start["dateTime"])
    if start.get("localDate"):
        day = datetime.strptime(start["localDate"], "%Y-%m-%d").date()
        return combine_local(day, normalize_time(start.get("localTime")))
    return None


def scrape_tm_venue(venue_slug, api_key=None, log_func=None):
    """Scrape events from a Ticketmaster venue using Discovery API."""
    log = log_func or console_log
    venue_id = TM_VENUES[venue_slug]
    data = tm_get(
        "/events.json",
        {"venueId": venue_id, "countryCode": "US", "sort": "date,asc", "size": 200},
        api_key=api_key,
    )

    events = []
    for tm_event in data.get("_embedded", {}).get("events", []):
        start = _start_datetime(tm_event)
        if not start or not tm_event.get("name"):
            continue
        status_code = (tm_event.get("dates", {}).get("status", {}).get("code") or "").lower()
        events.append(RawEvent(
            source=EventSource.TICKETMASTER.value,
            source_event_id=tm_event["id"],
            venue_slug=venue_slug,
            title=tm_event["name"],
            start_datetime=start,
            url=tm_event.get("url"),
            image_url=best_image_url(tm_event),
            description=tm_event.get("info"),
            category=map_tm_classification(tm_event.get("classifications", []), TM_CATEGORY_MAP),
            status=TM_STATUS_MAP.get(status_code),
        ))

    log(f"    {venue_slug} (TM): {len(events)} events")
    return events


def _normalize_for_comparison(text):
    text = re.sub(r"[^\w\s]", "", (text or "").lower())
    text = re.sub(r"\b(the|a|an)\b", "", text)
    return re.sub(r"\s+", " ", text).strip()


def _levenshtein(a, b):
    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, 1):
        current = [i]
        for j, cb in enumerate(b, 1):
            cost = 0 if ca == cb else 1
            current.append(min(previous[j] + 1, current[j - 1] + 1, previous[j - 1] + cost))
        previous = current
    return previous[-1]


def calculate_similarity(title_a, title_b):
    """
    Similarity in [0, 1] for ranking candidate listings.
    Exact = 1; containment >= 0.7; majority word overlap >= 0.5; else Levenshtein ratio.
    """
    s1 = _normalize_for_comparison(title_a)
    s2 = _normalize_for_comparison(title_b)
    if s1 == s2:
        return 1.0
    if not s1 or not s2:
        return 0.0

    if s1 in s2 or s2 in s1:
        containment = min(len(s1), len(s2)) / max(len(s1), len(s2))
        return max(containment, 0.7)

    words1 = [w for w in s1.split() if len(w) > 2]
    words2 = [w for w in s2.split() if len(w) > 2]
    common = [w for w in words1 if any(w in w2 or w2 in w for w2 in words2)]
    if common and words1:
        overlap = len(common) / len(words1)
        if overlap >= 0.5:
            return max(0.5, overlap * 0.8)

    return 1 - _levenshtein(s1, s2) / max(len(s1), len(s2))


@dataclass
class MatchResult:
    tm_event: Optional[dict]
    confidence: float = 0.0
    matched_by: str = "none"
    prefer_tm_title: bool = False


def find_tm_match(title, venue_slug, venue_name, start, confirm_match=None, api_key=None, log_func=None):
    """
    Find the Ticketmaster listing for an event: same venue, same local date,
    best title similarity. Auto-accept at or above the threshold; below it,
    defer to confirm_match(our_title, tm_title, venue_name) -> (is_match, prefer_tm_title).
    Returns None when the venue has no Ticketmaster mapping.
    """
    log = log_func or console_log
    venue_id = TM_VENUES.get(venue_slug)
    if not venue_id:
        return None

    candidates = search_events_at_venue(venue_id, local_date(start), api_key=api_key)
    if not candidates:
        return MatchResult(tm_event=None)

    best, best_score = None, 0.0
    for candidate in candidates:
        score = calculate_similarity(title, candidate.get("name", ""))
        if score > best_score:
            best, best_score = candidate, score
    if not best:
        return MatchResult(tm_event=None)

    log(f"    TM best match: \"{best.get('name')}\" ({best_score * 100:.1f}% similar)")
    if best_score >= config.TM_AUTO_MATCH_THRESHOLD:
        prefer = len(best.get("name", "")) > len(title) * 1.5
        return MatchResult(tm_event=best, confidence=best_score, matched_by="auto", prefer_tm_title=prefer)

    if confirm_match is None:
        return MatchResult(tm_event=None)
    is_match, prefer = confirm_match(title, best.get("name", ""), venue_name)
    if not is_match:
        return MatchResult(tm_event=None)
    return MatchResult(tm_event=best, confidence=max(0.75, best_score), matched_by="llm", prefer_tm_title=prefer)


def extract_tm_enrichment(match):
    """Flatten a matched listing into Enrichment field values."""
    tm_event = match.tm_event
    classification = primary_classification(tm_event)
    return {
        "tm_event_id": tm_event.get("id"),
        "tm_event_name": tm_event.get("name"),
        "tm_url": tm_event.get("url"),
        "tm_match_confidence": round(match.confidence, 4),
        "tm_prefer_title": match.prefer_tm_title,
        "tm_image_url": best_image_url(tm_event),
        "tm_genre": classification["genre"],
        "tm_segment": classification["segment"],
        "tm_sale_windows": sale_windows(tm_event),
        "supporting_acts": supporting_acts(tm_event),
    }
