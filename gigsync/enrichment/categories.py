from gigsync.enrichment.knowledge_graph import (
    MOVIE_TYPES,
    is_music_related,
    is_sports_related,
    is_theater_related,
)
from gigsync.models import EventCategory


def has_high_confidence_kg_type(kg_result):
    """Entity types (not description text) identify what the performer is."""
    if not kg_result:
        return False
    types = kg_result.get("types") or []
    return (
        is_music_related(types)
        or "Comedian" in types
        or is_sports_related(types)
        or is_theater_related(types)
        or any(t in MOVIE_TYPES for t in types)
    )


def infer_category(kg_result, spotify_result):
    """Category from knowledge-graph types, then description hints, then Spotify evidence."""
    if kg_result:
        types = kg_result.get("types") or []
        if is_music_related(types):
            return EventCategory.CONCERT.value
        if "Comedian" in types:
            return EventCategory.COMEDY.value
        if is_sports_related(types):
            return EventCategory.SPORTS.value
        if is_theater_related(types):
            return EventCategory.THEATER.value
        if any(t in MOVIE_TYPES for t in types):
            return EventCategory.MOVIE.value

        desc = (kg_result.get("description") or "").lower()
        bio = (kg_result.get("bio") or "").lower()
        if "film" in desc or "movie" in desc:
            return EventCategory.MOVIE.value
        if "comedian" in desc or "stand-up" in desc:
            return EventCategory.COMEDY.value
        if any(h in desc for h in ("band", "musician", "singer", "rapper", "dj", "producer")):
            return EventCategory.CONCERT.value
        if any(h in bio for h in ("band", "musician", "recording artist", "singer", "songwriter")):
            return EventCategory.CONCERT.value

    if spotify_result and spotify_result.get("popularity", 0) >= 25 and spotify_result.get("genres"):
        return EventCategory.CONCERT.value

    return None


def should_update_category(current, inferred, confident=False):
    """Replace OTHER freely; replace a specific category only on confident evidence."""
    if not inferred or current == inferred:
        return False
    if current == EventCategory.OTHER.value:
        return True
    return bool(confident)
