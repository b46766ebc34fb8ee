"""
Spotify artist lookup: client-credentials token cache, search, and match confidence rules.
"""

import re
import threading
import time

import requests

from gigsync import config
from gigsync.errors import ProviderError

_token_lock = threading.Lock()
_spotify_token = None
_spotify_token_expires_at = 0

GENERIC_TERMS = {
    "christmas", "holiday", "new year", "halloween", "easter",
    "gospel", "brunch", "night", "evening", "morning",
    "live", "tour", "show", "concert", "festival",
    "tribute", "celebration", "party", "jam", "session",
}


def normalize_artist_name(name):
    """Normalize artist names for matching."""
    if not name:
        return ""
    normalized = name.lower().strip()
    normalized = re.sub(r"\([^)]*\)", " ", normalized)
    normalized = re.sub(r"(.+?)\s+\b(feat|ft|featuring|with)\b.*", r"\1", normalized)
    normalized = normalized.replace("&", " ").replace("+", " ")
    normalized = re.sub(r"[^a-z0-9\s]", " ", normalized)
    normalized = re.sub(r"\s+", " ", normalized).strip()
    return normalized


def extract_spotify_artist_id(url):
    """Extract Spotify artist ID from a URL or spotify: URI."""
    if not url:
        return None
    if url.startswith("spotify:artist:"):
        return url.split(":")[-1]
    match = re.search(r"open\.spotify\.com/artist/([A-Za-z0-9]+)", url)
    return match.group(1) if match else None


def normalize_spotify_url(url):
    """Normalize Spotify artist URL to canonical format."""
    if not url:
        return None
    if url.startswith("//"):
        url = "https:" + url
    artist_id = extract_spotify_artist_id(url)
    return f"https://open.spotify.com/artist/{artist_id}" if artist_id else None


def is_generic_query(query):
    """Holiday names, format words and very short strings are not artist names."""
    normalized = (query or "").lower().strip()
    return normalized in GENERIC_TERMS or len(normalized) < 4


def is_confident_match(query, spotify_name, popularity):
    """
    Accept a search hit only when names actually agree, with a popularity floor
    that rises as the agreement gets weaker.
    """
    q = (query or "").lower().strip()
    name = (spotify_name or "").lower().strip()
    popularity = popularity or 0

    if name == q:
        return popularity >= 15
    if name and (name in q or q in name):
        return popularity >= 20

    query_words = [w for w in q.split() if len(w) > 2]
    name_words = [w for w in name.split() if len(w) > 2]
    word_match = any(nw == qw or qw in nw or nw in qw for qw in query_words for nw in name_words)
    return word_match and popularity >= 30


def reset_token():
    global _spotify_token, _spotify_token_expires_at
    with _token_lock:
        _spotify_token = None
        _spotify_token_expires_at = 0


def get_spotify_token(client_id=None, client_secret=None):
    """Get (and cache) a Spotify access token using Client Credentials flow."""
    global _spotify_token, _spotify_token_expires_at
    client_id = client_id or config.SPOTIFY_CLIENT_ID
    client_secret = client_secret or config.SPOTIFY_CLIENT_SECRET
    if not client_id or not client_secret:
        return None

    with _token_lock:
        now = time.time()
        if _spotify_token and now < (_spotify_token_expires_at - 60):
            return _spotify_token

        resp = requests.post(
            config.SPOTIFY_TOKEN_URL,
            data={"grant_type": "client_credentials"},
            auth=(client_id, client_secret),
            timeout=config.HTTP_TIMEOUT,
        )
        resp.raise_for_status()
        data = resp.json()
        _spotify_token = data.get("access_token")
        _spotify_token_expires_at = now + int(data.get("expires_in", 3600))
        return _spotify_token


def _genres_overlap(genre_hint, candidate_genres):
    if not genre_hint or not candidate_genres:
        return False
    hint_tokens = set(re.split(r"[\s/,-]+", genre_hint.lower()))
    for genre in candidate_genres:
        genre_tokens = set(re.split(r"[\s/,-]+", genre.lower()))
        if hint_tokens & genre_tokens:
            return True
    return False


def _pick_spotify_candidate(artist_name, candidates, genre_hint=None):
    target = normalize_artist_name(artist_name)
    exact = [c for c in candidates if normalize_artist_name(c.get("name", "")) == target]
    if not exact:
        return None, "no-exact"
    if len(exact) == 1:
        return exact[0], "exact"

    if genre_hint:
        genre_matches = [c for c in exact if _genres_overlap(genre_hint, c.get("genres", []))]
        if len(genre_matches) == 1:
            return genre_matches[0], "genre"
        if len(genre_matches) > 1:
            exact = genre_matches

    sorted_exact = sorted(exact, key=lambda c: c.get("popularity", 0), reverse=True)
    if len(sorted_exact) >= 2:
        lead = (sorted_exact[0].get("popularity", 0) - sorted_exact[1].get("popularity", 0))
        if lead >= 20:
            return sorted_exact[0], "popularity"

    return None, "ambiguous"


def spotify_search_artist(query, genre_hint=None, client_id=None, client_secret=None):
    """
    Search Spotify for an artist.
    Returns (artist dict, reason) or (None, reason). Network and HTTP failures raise.
    """
    token = get_spotify_token(client_id, client_secret)
    if not token:
        return None, "no-token"

    params = {"q": query, "type": "artist", "limit": 5}
    headers = {"Authorization": f"Bearer {token}"}

    resp = None
    for attempt in range(2):
        resp = requests.get(config.SPOTIFY_SEARCH_URL, headers=headers, params=params, timeout=config.HTTP_TIMEOUT)
        if resp.status_code == 401 and attempt == 0:
            reset_token()
            token = get_spotify_token(client_id, client_secret)
            headers["Authorization"] = f"Bearer {token}"
            continue
        if resp.status_code == 429 and attempt == 0:
            time.sleep(int(resp.headers.get("Retry-After", "1")))
            continue
        break

    if resp.status_code != 200:
        raise ProviderError(f"Spotify search failed: HTTP {resp.status_code}")

    candidates = resp.json().get("artists", {}).get("items", [])
    if not candidates:
        return None, "no-results"

    candidate, reason = _pick_spotify_candidate(query, candidates, genre_hint=genre_hint)
    if not candidate:
        candidate, reason = candidates[0], "top"

    if (candidate.get("popularity") or 0) < config.SPOTIFY_MIN_POPULARITY:
        return None, "low-popularity"

    images = candidate.get("images") or []
    return {
        "id": candidate.get("id"),
        "name": candidate.get("name"),
        "url": normalize_spotify_url(candidate.get("external_urls", {}).get("spotify")),
        "genres": candidate.get("genres") or [],
        "popularity": candidate.get("popularity") or 0,
        "image_url": images[0].get("url") if images else None,
    }, reason
