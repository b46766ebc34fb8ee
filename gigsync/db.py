import sqlite3
import uuid
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

from gigsync.models import (
    Enrichment,
    Event,
    EventCategory,
    EventStatus,
    Venue,
    WeatherData,
    dump_name_list,
    dump_sale_windows,
    load_name_list,
    load_sale_windows,
)

ENRICHMENT_COLUMNS = [
    "status", "search_query",
    "tm_event_id", "tm_event_name", "tm_url", "tm_match_confidence", "tm_prefer_title",
    "tm_image_url", "tm_genre", "tm_segment", "tm_sale_windows", "supporting_acts",
    "llm_category", "llm_confidence", "llm_performer", "llm_description",
    "kg_entity_id", "kg_name", "kg_description", "kg_types", "kg_wiki_url",
    "spotify_id", "spotify_url", "spotify_genres", "spotify_popularity",
    "inferred_category", "category_updated", "provider_errors",
]

WEATHER_COLUMNS = [
    "temp_high", "temp_low", "feels_like_high", "feels_like_low", "precip_chance",
    "humidity", "uv_index", "wind_speed", "condition", "condition_icon",
]


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(microsecond=0)


def to_db(value: Optional[datetime]) -> Optional[str]:
    """Store datetimes as second-precision UTC ISO strings so text order is time order."""
    if value is None:
        return None
    if value.tzinfo is None:
        raise ValueError(f"naive datetime {value.isoformat()} cannot be stored")
    return value.astimezone(timezone.utc).isoformat(timespec="seconds")


def from_db(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def connect(db_path) -> sqlite3.Connection:
    if str(db_path) != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(db_path), check_same_thread=False)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    _create_schema(conn)
    return conn


def _create_schema(conn: sqlite3.Connection) -> None:
    conn.executescript("""
        CREATE TABLE IF NOT EXISTS venues (
            slug     TEXT PRIMARY KEY,
            name     TEXT NOT NULL,
            city     TEXT NOT NULL,
            address  TEXT,
            lat      REAL,
            lng      REAL
        );

        CREATE TABLE IF NOT EXISTS events (
            id               TEXT PRIMARY KEY,
            source           TEXT NOT NULL,
            source_event_id  TEXT NOT NULL,
            venue_slug       TEXT NOT NULL REFERENCES venues(slug),
            title            TEXT NOT NULL,
            description      TEXT,
            start_datetime   TEXT NOT NULL,
            end_datetime     TEXT,
            url              TEXT,
            image_url        TEXT,
            category         TEXT NOT NULL DEFAULT 'other',
            status           TEXT NOT NULL DEFAULT 'scheduled',
            created_at       TEXT NOT NULL,
            updated_at       TEXT NOT NULL,
            UNIQUE(source, source_event_id)
        );

        CREATE INDEX IF NOT EXISTS idx_events_start ON events(start_datetime);

        CREATE TABLE IF NOT EXISTS enrichments (
            event_id             TEXT PRIMARY KEY REFERENCES events(id) ON DELETE CASCADE,
            status               TEXT NOT NULL,
            search_query         TEXT,
            tm_event_id          TEXT,
            tm_event_name        TEXT,
            tm_url               TEXT,
            tm_match_confidence  REAL,
            tm_prefer_title      INTEGER NOT NULL DEFAULT 0,
            tm_image_url         TEXT,
            tm_genre             TEXT,
            tm_segment           TEXT,
            tm_sale_windows      TEXT,
            supporting_acts      TEXT,
            llm_category         TEXT,
            llm_confidence       TEXT,
            llm_performer        TEXT,
            llm_description      TEXT,
            kg_entity_id         TEXT,
            kg_name              TEXT,
            kg_description       TEXT,
            kg_types             TEXT,
            kg_wiki_url          TEXT,
            spotify_id           TEXT,
            spotify_url          TEXT,
            spotify_genres       TEXT,
            spotify_popularity   INTEGER,
            inferred_category    TEXT,
            category_updated     INTEGER NOT NULL DEFAULT 0,
            provider_errors      TEXT,
            created_at           TEXT NOT NULL,
            updated_at           TEXT NOT NULL
        );

        CREATE TABLE IF NOT EXISTS weather_cache (
            lat              REAL NOT NULL,
            lng              REAL NOT NULL,
            forecast_date    TEXT NOT NULL,
            temp_high        REAL,
            temp_low         REAL,
            feels_like_high  REAL,
            feels_like_low   REAL,
            precip_chance    REAL,
            humidity         REAL,
            uv_index         REAL,
            wind_speed       REAL,
            condition        TEXT,
            condition_icon   TEXT,
            fetched_at       TEXT NOT NULL,
            PRIMARY KEY (lat, lng, forecast_date)
        );
    """)
    conn.commit()


# --- Venues ---

def upsert_venue(conn: sqlite3.Connection, venue: Venue) -> None:
    conn.execute(
        """
        INSERT INTO venues (slug, name, city, address, lat, lng)
        VALUES (:slug, :name, :city, :address, :lat, :lng)
        ON CONFLICT(slug) DO UPDATE SET
            name    = excluded.name,
            city    = excluded.city,
            address = COALESCE(excluded.address, venues.address),
            lat     = COALESCE(excluded.lat, venues.lat),
            lng     = COALESCE(excluded.lng, venues.lng)
        """,
        {
            "slug": venue.slug, "name": venue.name, "city": venue.city,
            "address": venue.address, "lat": venue.lat, "lng": venue.lng,
        },
    )
    conn.commit()


def get_venue(conn: sqlite3.Connection, slug: str) -> Optional[Venue]:
    row = conn.execute(
        "SELECT slug, name, city, address, lat, lng FROM venues WHERE slug = ?", (slug,)
    ).fetchone()
    return _row_to_venue(row) if row else None


def get_all_venues(conn: sqlite3.Connection) -> list[Venue]:
    rows = conn.execute("SELECT slug, name, city, address, lat, lng FROM venues ORDER BY name").fetchall()
    return [_row_to_venue(r) for r in rows]


def _row_to_venue(row: sqlite3.Row) -> Venue:
    return Venue(
        slug=row["slug"], name=row["name"], city=row["city"],
        address=row["address"], lat=row["lat"], lng=row["lng"],
    )


# --- Events ---

def find_event_id(conn: sqlite3.Connection, source: str, source_event_id: str) -> Optional[str]:
    row = conn.execute(
        "SELECT id FROM events WHERE source = ? AND source_event_id = ?",
        (source, source_event_id),
    ).fetchone()
    return row["id"] if row else None


def upsert_event(conn: sqlite3.Connection, fields: dict) -> bool:
    """
    Create-or-merge one event on its (source, source_event_id) key in a single statement.
    Returns True when a new row was created.

    Merge rules on conflict:
    - title, start_datetime: incoming value wins
    - description, end_datetime, url, image_url, status: incoming value wins when present
    - category: replaced only while the stored category is still 'other'
    - id, created_at, venue_slug: never touched
    updated_at moves only when a merged value differs from the stored one.
    """
    now = to_db(utcnow())
    params = {
        "id": uuid.uuid4().hex,
        "source": fields["source"],
        "source_event_id": fields["source_event_id"],
        "venue_slug": fields["venue_slug"],
        "title": fields["title"],
        "description": fields.get("description"),
        "start_datetime": to_db(fields["start_datetime"]),
        "end_datetime": to_db(fields.get("end_datetime")),
        "url": fields.get("url"),
        "image_url": fields.get("image_url"),
        "category": fields.get("category") or EventCategory.OTHER.value,
        "incoming_category": fields.get("category"),
        "status": fields.get("status") or EventStatus.SCHEDULED.value,
        "incoming_status": fields.get("status"),
        "now": now,
    }
    existed = find_event_id(conn, params["source"], params["source_event_id"]) is not None
    conn.execute(
        """
        INSERT INTO events (
            id, source, source_event_id, venue_slug, title, description,
            start_datetime, end_datetime, url, image_url, category, status,
            created_at, updated_at
        )
        VALUES (
            :id, :source, :source_event_id, :venue_slug, :title, :description,
            :start_datetime, :end_datetime, :url, :image_url, :category, :status,
            :now, :now
        )
        ON CONFLICT(source, source_event_id) DO UPDATE SET
            title          = excluded.title,
            description    = COALESCE(excluded.description, events.description),
            start_datetime = excluded.start_datetime,
            end_datetime   = COALESCE(excluded.end_datetime, events.end_datetime),
            url            = COALESCE(excluded.url, events.url),
            image_url      = COALESCE(excluded.image_url, events.image_url),
            status         = COALESCE(:incoming_status, events.status),
            category       = CASE
                                 WHEN events.category = 'other' AND :incoming_category IS NOT NULL
                                 THEN :incoming_category
                                 ELSE events.category
                             END,
            updated_at     = excluded.updated_at
        WHERE events.title IS NOT excluded.title
           OR events.start_datetime IS NOT excluded.start_datetime
           OR events.description IS NOT COALESCE(excluded.description, events.description)
           OR events.end_datetime IS NOT COALESCE(excluded.end_datetime, events.end_datetime)
           OR events.url IS NOT COALESCE(excluded.url, events.url)
           OR events.image_url IS NOT COALESCE(excluded.image_url, events.image_url)
           OR events.status IS NOT COALESCE(:incoming_status, events.status)
           OR (events.category = 'other' AND :incoming_category IS NOT NULL
               AND :incoming_category IS NOT 'other')
        """,
        params,
    )
    conn.commit()
    return not existed


def get_event(conn: sqlite3.Connection, event_id: str) -> Optional[Event]:
    row = conn.execute("SELECT * FROM events WHERE id = ?", (event_id,)).fetchone()
    return _row_to_event(row) if row else None


def get_event_by_key(conn: sqlite3.Connection, source: str, source_event_id: str) -> Optional[Event]:
    row = conn.execute(
        "SELECT * FROM events WHERE source = ? AND source_event_id = ?",
        (source, source_event_id),
    ).fetchone()
    return _row_to_event(row) if row else None


def get_all_events(conn: sqlite3.Connection) -> list[Event]:
    rows = conn.execute("SELECT * FROM events ORDER BY start_datetime, id").fetchall()
    return [_row_to_event(r) for r in rows]


def get_events_between(conn: sqlite3.Connection, start: datetime, end: datetime) -> list[sqlite3.Row]:
    """Upcoming, non-cancelled events joined with their venue coordinates."""
    return conn.execute(
        """
        SELECT e.id, e.title, e.start_datetime, v.slug AS venue_slug, v.lat, v.lng
        FROM events e
        JOIN venues v ON v.slug = e.venue_slug
        WHERE e.start_datetime >= ? AND e.start_datetime <= ?
          AND e.status != 'cancelled'
        ORDER BY e.start_datetime
        """,
        (to_db(start), to_db(end)),
    ).fetchall()


def update_event_category(conn: sqlite3.Connection, event_id: str, category: str) -> bool:
    cursor = conn.execute(
        "UPDATE events SET category = ?, updated_at = ? WHERE id = ? AND category != ?",
        (category, to_db(utcnow()), event_id, category),
    )
    conn.commit()
    return cursor.rowcount > 0


def _row_to_event(row: sqlite3.Row) -> Event:
    return Event(
        id=row["id"],
        source=row["source"],
        source_event_id=row["source_event_id"],
        venue_slug=row["venue_slug"],
        title=row["title"],
        description=row["description"],
        start_datetime=from_db(row["start_datetime"]),
        end_datetime=from_db(row["end_datetime"]),
        url=row["url"],
        image_url=row["image_url"],
        category=row["category"],
        status=row["status"],
        created_at=from_db(row["created_at"]),
        updated_at=from_db(row["updated_at"]),
    )


# --- Enrichments ---

def select_unenriched_events(conn: sqlite3.Connection, limit: int) -> list[Event]:
    rows = conn.execute(
        """
        SELECT e.*
        FROM events e
        LEFT JOIN enrichments n ON n.event_id = e.id
        WHERE n.event_id IS NULL
        ORDER BY e.start_datetime, e.id
        LIMIT ?
        """,
        (limit,),
    ).fetchall()
    return [_row_to_event(r) for r in rows]


def delete_all_enrichments(conn: sqlite3.Connection) -> int:
    cursor = conn.execute("DELETE FROM enrichments")
    conn.commit()
    return cursor.rowcount


def count_enrichments(conn: sqlite3.Connection) -> int:
    return conn.execute("SELECT COUNT(*) FROM enrichments").fetchone()[0]


def save_enrichment(conn: sqlite3.Connection, enrichment: Enrichment) -> None:
    """Insert or overwrite the single enrichment row for an event. JSON fields are validated first."""
    values = {
        "event_id": enrichment.event_id,
        "status": enrichment.status.value if hasattr(enrichment.status, "value") else enrichment.status,
        "search_query": enrichment.search_query,
        "tm_event_id": enrichment.tm_event_id,
        "tm_event_name": enrichment.tm_event_name,
        "tm_url": enrichment.tm_url,
        "tm_match_confidence": enrichment.tm_match_confidence,
        "tm_prefer_title": 1 if enrichment.tm_prefer_title else 0,
        "tm_image_url": enrichment.tm_image_url,
        "tm_genre": enrichment.tm_genre,
        "tm_segment": enrichment.tm_segment,
        "tm_sale_windows": dump_sale_windows(enrichment.tm_sale_windows),
        "supporting_acts": dump_name_list(enrichment.supporting_acts),
        "llm_category": enrichment.llm_category,
        "llm_confidence": enrichment.llm_confidence,
        "llm_performer": enrichment.llm_performer,
        "llm_description": enrichment.llm_description,
        "kg_entity_id": enrichment.kg_entity_id,
        "kg_name": enrichment.kg_name,
        "kg_description": enrichment.kg_description,
        "kg_types": dump_name_list(enrichment.kg_types),
        "kg_wiki_url": enrichment.kg_wiki_url,
        "spotify_id": enrichment.spotify_id,
        "spotify_url": enrichment.spotify_url,
        "spotify_genres": dump_name_list(enrichment.spotify_genres),
        "spotify_popularity": enrichment.spotify_popularity,
        "inferred_category": enrichment.inferred_category,
        "category_updated": 1 if enrichment.category_updated else 0,
        "provider_errors": dump_name_list(enrichment.provider_errors),
        "now": to_db(utcnow()),
    }
    columns = ", ".join(["event_id"] + ENRICHMENT_COLUMNS + ["created_at", "updated_at"])
    placeholders = ", ".join([":event_id"] + [f":{c}" for c in ENRICHMENT_COLUMNS] + [":now", ":now"])
    updates = ",\n            ".join(f"{c} = excluded.{c}" for c in ENRICHMENT_COLUMNS + ["updated_at"])
    conn.execute(
        f"""
        INSERT INTO enrichments ({columns})
        VALUES ({placeholders})
        ON CONFLICT(event_id) DO UPDATE SET
            {updates}
        """,
        values,
    )
    conn.commit()


def get_enrichment(conn: sqlite3.Connection, event_id: str) -> Optional[Enrichment]:
    row = conn.execute("SELECT * FROM enrichments WHERE event_id = ?", (event_id,)).fetchone()
    if not row:
        return None
    return Enrichment(
        event_id=row["event_id"],
        status=row["status"],
        search_query=row["search_query"],
        tm_event_id=row["tm_event_id"],
        tm_event_name=row["tm_event_name"],
        tm_url=row["tm_url"],
        tm_match_confidence=row["tm_match_confidence"],
        tm_prefer_title=bool(row["tm_prefer_title"]),
        tm_image_url=row["tm_image_url"],
        tm_genre=row["tm_genre"],
        tm_segment=row["tm_segment"],
        tm_sale_windows=load_sale_windows(row["tm_sale_windows"]),
        supporting_acts=load_name_list(row["supporting_acts"]),
        llm_category=row["llm_category"],
        llm_confidence=row["llm_confidence"],
        llm_performer=row["llm_performer"],
        llm_description=row["llm_description"],
        kg_entity_id=row["kg_entity_id"],
        kg_name=row["kg_name"],
        kg_description=row["kg_description"],
        kg_types=load_name_list(row["kg_types"]),
        kg_wiki_url=row["kg_wiki_url"],
        spotify_id=row["spotify_id"],
        spotify_url=row["spotify_url"],
        spotify_genres=load_name_list(row["spotify_genres"]),
        spotify_popularity=row["spotify_popularity"],
        inferred_category=row["inferred_category"],
        category_updated=bool(row["category_updated"]),
        provider_errors=load_name_list(row["provider_errors"]),
        created_at=from_db(row["created_at"]),
        updated_at=from_db(row["updated_at"]),
    )


# --- Weather cache ---

def get_weather(conn: sqlite3.Connection, lat: float, lng: float, forecast_date: str):
    """Return (WeatherData, fetched_at) for a cache cell, or None."""
    row = conn.execute(
        "SELECT * FROM weather_cache WHERE lat = ? AND lng = ? AND forecast_date = ?",
        (lat, lng, forecast_date),
    ).fetchone()
    if not row:
        return None
    weather = WeatherData(**{c: row[c] for c in WEATHER_COLUMNS})
    return weather, from_db(row["fetched_at"])


def upsert_weather(
    conn: sqlite3.Connection,
    lat: float,
    lng: float,
    forecast_date: str,
    weather: WeatherData,
    fetched_at: datetime,
) -> None:
    values = {c: getattr(weather, c) for c in WEATHER_COLUMNS}
    values.update({"lat": lat, "lng": lng, "forecast_date": forecast_date, "fetched_at": to_db(fetched_at)})
    columns = ["lat", "lng", "forecast_date"] + WEATHER_COLUMNS + ["fetched_at"]
    updates = ",\n            ".join(f"{c} = excluded.{c}" for c in WEATHER_COLUMNS + ["fetched_at"])
    conn.execute(
        f"""
        INSERT INTO weather_cache ({", ".join(columns)})
        VALUES ({", ".join(":" + c for c in columns)})
        ON CONFLICT(lat, lng, forecast_date) DO UPDATE SET
            {updates}
        """,
        values,
    )
    conn.commit()
