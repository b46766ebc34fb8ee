import re

REMOVE_PATTERNS = [
    re.compile(r"\s+at\s+.+$", re.I),
    re.compile(r"^an evening with\s+", re.I),
    re.compile(r"^a night with\s+", re.I),
    re.compile(r"\s*:\s*.+tour.*", re.I),
    re.compile(r"\s*-\s*.+tour.*", re.I),
    re.compile(r"\s+tour\s*$", re.I),
    re.compile(r"\s*live\s*(in\s+.+)?$", re.I),
    re.compile(r"\s*presents?\s*", re.I),
    re.compile(r"\([^)]*\)"),
    re.compile(r"\[[^\]]*\]"),
    re.compile(r"\s*\d{4}\s*$"),
    re.compile(r"\s*-\s*\d{1,2}/\d{1,2}.*", re.I),
]

SPLIT_PATTERNS = [
    re.compile(r"\s+with\s+", re.I),
    re.compile(r"\s+feat\.?\s+", re.I),
    re.compile(r"\s+featuring\s+", re.I),
    re.compile(r"\s+ft\.?\s+", re.I),
    re.compile(r"\s+&\s+"),
    re.compile(r"\s+vs\.?\s+", re.I),
    re.compile(r"\s+versus\s+", re.I),
]

# Band names that must not be split apart
PROTECTED_PHRASES = [
    "mumford and sons",
    "florence and the machine",
    "earth wind and fire",
    "earth, wind and fire",
    "simon and garfunkel",
    "hall and oates",
    "guns n roses",
    "ac/dc",
]


def extract_keywords(title, venue_name=None):
    """
    Extract searchable keywords from an event title, primary performer first.
    Returns [] when nothing searchable is left.
    """
    cleaned = (title or "").strip()

    lower = cleaned.lower()
    if any(phrase in lower for phrase in PROTECTED_PHRASES):
        return [cleaned]

    if venue_name:
        cleaned = re.sub(re.escape(venue_name), "", cleaned, flags=re.I)

    for pattern in REMOVE_PATTERNS:
        cleaned = pattern.sub("", cleaned)

    cleaned = cleaned.strip()
    if len(cleaned) < 3:
        return []

    keywords = [cleaned]
    for pattern in SPLIT_PATTERNS:
        keywords = [part.strip() for keyword in keywords for part in pattern.split(keyword)]

    return [re.sub(r"\s+", " ", k).strip() for k in keywords if len(k.strip()) > 2]


def primary_keyword(title, venue_name=None):
    keywords = extract_keywords(title, venue_name)
    return keywords[0] if keywords else None
