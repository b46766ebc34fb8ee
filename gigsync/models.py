import json
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from gigsync.errors import SchemaError

SCHEMA_VERSION = 1


class EventSource(str, Enum):
    VENUE_WEBSITE = "venue_website"
    TICKETMASTER = "ticketmaster"
    MOCK = "mock"


class EventCategory(str, Enum):
    CONCERT = "concert"
    COMEDY = "comedy"
    THEATER = "theater"
    MOVIE = "movie"
    SPORTS = "sports"
    FESTIVAL = "festival"
    OTHER = "other"


class EventStatus(str, Enum):
    SCHEDULED = "scheduled"
    SOLD_OUT = "sold_out"
    CANCELLED = "cancelled"
    POSTPONED = "postponed"


class EnrichmentStatus(str, Enum):
    COMPLETED = "completed"
    PARTIAL = "partial"
    SKIPPED = "skipped"


@dataclass
class Venue:
    slug: str
    name: str
    city: str = "Austin"
    address: Optional[str] = None
    lat: Optional[float] = None
    lng: Optional[float] = None


@dataclass
class RawEvent:
    """Uniform scraper output, before reconciliation."""
    source: str
    venue_slug: str
    title: str
    start_datetime: Optional[datetime]
    url: Optional[str] = None
    source_event_id: Optional[str] = None
    end_datetime: Optional[datetime] = None
    image_url: Optional[str] = None
    description: Optional[str] = None
    category: Optional[str] = None
    status: Optional[str] = None


@dataclass
class Event:
    id: str
    source: str
    source_event_id: str
    venue_slug: str
    title: str
    start_datetime: datetime
    category: str
    status: str
    created_at: datetime
    updated_at: datetime
    end_datetime: Optional[datetime] = None
    url: Optional[str] = None
    image_url: Optional[str] = None
    description: Optional[str] = None


@dataclass
class SaleWindow:
    """A named on-sale or presale time range."""
    name: str
    start: datetime
    end: Optional[datetime] = None
    url: Optional[str] = None

    def validate(self):
        if not self.name or not isinstance(self.name, str):
            raise SchemaError("sale window requires a name")
        if not isinstance(self.start, datetime):
            raise SchemaError(f"sale window '{self.name}' requires a start datetime")
        if self.start.tzinfo is None:
            raise SchemaError(f"sale window '{self.name}' start must be timezone-aware")
        if self.end is not None:
            if not isinstance(self.end, datetime) or self.end.tzinfo is None:
                raise SchemaError(f"sale window '{self.name}' end must be a timezone-aware datetime")
            if self.end < self.start:
                raise SchemaError(f"sale window '{self.name}' ends before it starts")


@dataclass
class WeatherData:
    temp_high: Optional[float] = None
    temp_low: Optional[float] = None
    feels_like_high: Optional[float] = None
    feels_like_low: Optional[float] = None
    precip_chance: Optional[float] = None
    humidity: Optional[float] = None
    uv_index: Optional[float] = None
    wind_speed: Optional[float] = None
    condition: Optional[str] = None
    condition_icon: Optional[str] = None


@dataclass
class Enrichment:
    event_id: str
    status: str
    search_query: Optional[str] = None
    tm_event_id: Optional[str] = None
    tm_event_name: Optional[str] = None
    tm_url: Optional[str] = None
    tm_match_confidence: Optional[float] = None
    tm_prefer_title: bool = False
    tm_image_url: Optional[str] = None
    tm_genre: Optional[str] = None
    tm_segment: Optional[str] = None
    tm_sale_windows: list = field(default_factory=list)
    supporting_acts: list = field(default_factory=list)
    llm_category: Optional[str] = None
    llm_confidence: Optional[str] = None
    llm_performer: Optional[str] = None
    llm_description: Optional[str] = None
    kg_entity_id: Optional[str] = None
    kg_name: Optional[str] = None
    kg_description: Optional[str] = None
    kg_types: list = field(default_factory=list)
    kg_wiki_url: Optional[str] = None
    spotify_id: Optional[str] = None
    spotify_url: Optional[str] = None
    spotify_genres: list = field(default_factory=list)
    spotify_popularity: Optional[int] = None
    inferred_category: Optional[str] = None
    category_updated: bool = False
    provider_errors: list = field(default_factory=list)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


def _document(items):
    return json.dumps({"version": SCHEMA_VERSION, "items": items}, sort_keys=True)


def _items(text, label):
    if not text:
        return []
    try:
        doc = json.loads(text)
    except ValueError as e:
        raise SchemaError(f"{label}: invalid JSON ({e})")
    if not isinstance(doc, dict) or doc.get("version") != SCHEMA_VERSION:
        raise SchemaError(f"{label}: unsupported schema version {doc.get('version') if isinstance(doc, dict) else None}")
    items = doc.get("items")
    if not isinstance(items, list):
        raise SchemaError(f"{label}: items must be a list")
    return items


def dump_sale_windows(windows):
    """
    Serialize sale windows as a versioned document, ordered by start.
    Raises SchemaError before anything malformed can be written.
    """
    windows = list(windows or [])
    for window in windows:
        if not isinstance(window, SaleWindow):
            raise SchemaError(f"expected SaleWindow, got {type(window).__name__}")
        window.validate()
    items = []
    for window in sorted(windows, key=lambda w: w.start):
        items.append({
            "name": window.name,
            "start": window.start.isoformat(),
            "end": window.end.isoformat() if window.end else None,
            "url": window.url,
        })
    return _document(items)


def load_sale_windows(text):
    windows = []
    for item in _items(text, "sale windows"):
        window = SaleWindow(
            name=item.get("name"),
            start=datetime.fromisoformat(item["start"]),
            end=datetime.fromisoformat(item["end"]) if item.get("end") else None,
            url=item.get("url"),
        )
        window.validate()
        windows.append(window)
    return windows


def dump_name_list(names):
    """Serialize a list of non-empty strings (acts, genres, types) as a versioned document."""
    items = []
    for name in names or []:
        if not isinstance(name, str) or not name.strip():
            raise SchemaError(f"expected non-empty string, got {name!r}")
        items.append(name.strip())
    return _document(items)


def load_name_list(text):
    items = _items(text, "name list")
    if not all(isinstance(item, str) for item in items):
        raise SchemaError("name list: items must be strings")
    return items
