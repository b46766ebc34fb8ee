import re

from gigsync.utils.dates import local_date


def slugify(text):
    text = (text or "").lower().strip()
    text = re.sub(r"[^\w\s-]", "", text)
    text = re.sub(r"[\s_]+", "-", text)
    text = re.sub(r"-+", "-", text)
    return text.strip("-")


def normalize_title(title):
    """Lowercase, strip punctuation and collapse whitespace for title comparison."""
    title = (title or "").lower()
    title = re.sub(r"[^\w\s]", " ", title)
    return re.sub(r"\s+", " ", title).strip()


def generate_slug(event):
    """
    Generate a stable identifier for a raw event from its local date, venue and title.
    Format: YYYY-MM-DD-venue-slug-title
    Used as the source event id when a source does not expose one.
    """
    day = local_date(event.start_datetime).isoformat() if event.start_datetime else ""
    slug_parts = [day, slugify(event.venue_slug), slugify(normalize_title(event.title))]
    return "-".join(filter(None, slug_parts))


def clean_description(html, max_length=500):
    """Collapse markup-free text and cap its length."""
    if not html:
        return None
    text = re.sub(r"<[^>]+>", " ", html)
    text = re.sub(r"\s+", " ", text).strip()
    if len(text) > max_length:
        text = text[: max_length - 3] + "..."
    return text or None
