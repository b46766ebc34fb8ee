import requests

from gigsync import config

MUSIC_TYPES = {"MusicGroup", "MusicRecording", "MusicAlbum", "Musician", "MusicArtist", "Band"}
SPORTS_TYPES = {"SportsTeam", "SportsEvent", "SportsOrganization", "Athlete"}
THEATER_TYPES = {"TheaterEvent", "TheaterGroup", "Play", "Musical"}
MOVIE_TYPES = {"Movie", "Film", "TVSeries", "TVEpisode"}

MUSIC_DESCRIPTION_HINTS = ["band", "musician", "singer", "rapper", "dj", "music"]
MUSIC_BIO_HINTS = ["band", "musician", "recording artist", "singer", "songwriter"]


def search_knowledge_graph(query, api_key=None):
    """
    Look up the top Google Knowledge Graph entity for a query.
    Returns a dict or None when nothing matched. HTTP failures raise.
    """
    params = {
        "query": query,
        "key": api_key or config.GOOGLE_API_KEY,
        "limit": 1,
        "indent": "false",
    }
    resp = requests.get(config.KG_SEARCH_URL, params=params, timeout=config.HTTP_TIMEOUT)
    resp.raise_for_status()

    items = resp.json().get("itemListElement") or []
    if not items:
        return None

    entity = items[0].get("result") or {}
    if not entity.get("name"):
        return None

    detailed = entity.get("detailedDescription") or {}
    image = entity.get("image") or {}
    types = entity.get("@type") or []
    if isinstance(types, str):
        types = [types]
    return {
        "entity_id": entity.get("@id"),
        "name": entity.get("name"),
        "description": entity.get("description"),
        "bio": detailed.get("articleBody"),
        "image_url": image.get("contentUrl"),
        "wiki_url": detailed.get("url"),
        "types": [t for t in types if t and t != "Thing"],
        "score": items[0].get("resultScore"),
    }


def is_music_related(types):
    return any(t in MUSIC_TYPES for t in types or [])


def is_sports_related(types):
    return any(t in SPORTS_TYPES for t in types or [])


def is_theater_related(types, description=None):
    if any(t in THEATER_TYPES for t in types or []):
        return True
    desc = (description or "").lower()
    return "broadway" in desc or "musical" in desc


def is_movie_related(types, description=None):
    if any(t in MOVIE_TYPES for t in types or []):
        return True
    desc = (description or "").lower()
    return "film" in desc or "movie" in desc


def looks_like_music(kg_result):
    """True when the entity's types, description or bio point at a musical act."""
    if not kg_result:
        return False
    if is_music_related(kg_result.get("types")):
        return True
    desc = (kg_result.get("description") or "").lower()
    bio = (kg_result.get("bio") or "").lower()
    return any(h in desc for h in MUSIC_DESCRIPTION_HINTS) or any(h in bio for h in MUSIC_BIO_HINTS)
