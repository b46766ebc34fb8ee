from gigsync.models import EventCategory


def detect_category_from_text(text):
    """
    Detect event category from text (title or URL path) using keyword analysis.
    Returns detected category or None if uncertain.
    Priority order: festival > sports > comedy > theater > concert.
    """
    text_lower = (text or "").lower()

    if "festival" in text_lower or " fest" in f" {text_lower}":
        return EventCategory.FESTIVAL.value

    sports_patterns = [
        "basketball", "football", "soccer", "hockey", "baseball", "volleyball",
        "wrestling", "wwe", "aew", "boxing", "ufc", "mma", "fight night",
        "championship", "tournament", "playoffs",
        " vs ", " vs. ", "longhorns",
    ]

    if any(pattern in f" {text_lower} " for pattern in sports_patterns):
        return EventCategory.SPORTS.value

    comedy_patterns = [
        "comedy",
        "comedian",
        "stand-up",
        "standup",
        "improv",
        "laugh",
    ]

    if any(pattern in text_lower for pattern in comedy_patterns):
        return EventCategory.COMEDY.value

    theater_patterns = [
        "broadway",
        "musical",
        "ballet",
        "opera",
        "the play",
        "nutcracker",
    ]

    if any(pattern in text_lower for pattern in theater_patterns):
        return EventCategory.THEATER.value

    if "film screening" in text_lower or "movie" in text_lower or "in concert: the film" in text_lower:
        return EventCategory.MOVIE.value

    concert_patterns = [
        "concert",
        "tour",
        "live music",
        "in concert",
        "symphony",
        "orchestra",
    ]

    if any(pattern in text_lower for pattern in concert_patterns):
        return EventCategory.CONCERT.value

    return None


def map_tm_classification(classifications, category_map):
    """
    Map Ticketmaster classification hierarchy to our category.
    Priority: genre > segment (more specific wins)
    """
    if not classifications:
        return None

    primary = classifications[0] or {}
    segment = (primary.get("segment") or {}).get("name", "")
    genre = (primary.get("genre") or {}).get("name", "")

    if genre in category_map:
        return category_map[genre]

    if segment in category_map:
        return category_map[segment]

    return None
