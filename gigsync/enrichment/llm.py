import json
import re

import requests

from gigsync import config
from gigsync.errors import ProviderError
from gigsync.models import EventCategory

CATEGORIZE_SYSTEM_PROMPT = """You categorize events for a concert and event discovery app in Austin, TX.
Given event details, determine the category, extract the main performer name if there is one,
and write a one or two sentence description that helps someone decide whether to attend.

Categories: CONCERT, COMEDY, THEATER, MOVIE, SPORTS, FESTIVAL, OTHER.
Use venue context: Stubb's and ACL Live are music venues; the Paramount hosts theater and films;
"Texas" at Moody Center usually means UT Austin athletics.
Respond ONLY with valid JSON."""

CONFIDENCE_LEVELS = {"high", "medium", "low"}


def _chat(messages, temperature, max_tokens, api_key=None):
    resp = requests.post(
        config.OPENAI_CHAT_URL,
        headers={"Authorization": f"Bearer {api_key or config.OPENAI_API_KEY}"},
        json={
            "model": config.OPENAI_MODEL,
            "messages": messages,
            "temperature": temperature,
            "max_tokens": max_tokens,
        },
        timeout=30,
    )
    resp.raise_for_status()
    choices = resp.json().get("choices") or []
    if not choices:
        raise ProviderError("OpenAI returned no choices")
    return (choices[0].get("message", {}).get("content") or "").strip()


def _parse_json(content):
    """Parse a JSON object, tolerating a fenced code block around it."""
    content = re.sub(r"^```(?:json)?\s*|\s*```$", "", content.strip())
    return json.loads(content)


def build_user_prompt(title, venue_name, start, description=None, url=None, current_category=None, tm_classification=None):
    lines = [
        f'Event: "{title}"',
        f"Venue: {venue_name} (Austin, TX)",
        f"Date: {start.date().isoformat()}",
    ]
    if description:
        lines.append(f"Event Description: {description}")
    if url:
        lines.append(f"Source URL: {url}")
    if current_category and current_category != EventCategory.OTHER.value:
        lines.append(f"Venue's category guess: {current_category.upper()}")
    if tm_classification and (tm_classification.get("segment") or tm_classification.get("genre")):
        parts = [f"{label}: {tm_classification[key]}" for key, label in (("segment", "Segment"), ("genre", "Genre")) if tm_classification.get(key)]
        lines.append(f"Ticketmaster classification: {', '.join(parts)}")
    lines.append(
        'Respond in JSON: {"category": "...", "performer": "..." or null, '
        '"description": "...", "confidence": "high" | "medium" | "low"}'
    )
    return "\n".join(lines)


def categorize_event(title, venue_name, start, api_key=None, **context):
    """
    Ask the model for category, performer, description and confidence.
    Unknown categories fall back to OTHER; unparseable output raises ProviderError.
    """
    content = _chat(
        [
            {"role": "system", "content": CATEGORIZE_SYSTEM_PROMPT},
            {"role": "user", "content": build_user_prompt(title, venue_name, start, **context)},
        ],
        temperature=0.3,
        max_tokens=200,
        api_key=api_key,
    )
    try:
        parsed = _parse_json(content)
    except ValueError as e:
        raise ProviderError(f"unparseable categorization: {e}")

    category = str(parsed.get("category") or "").lower()
    if category not in {c.value for c in EventCategory}:
        category = EventCategory.OTHER.value
    confidence = str(parsed.get("confidence") or "low").lower()
    if confidence not in CONFIDENCE_LEVELS:
        confidence = "low"
    return {
        "category": category,
        "performer": parsed.get("performer") or None,
        "description": parsed.get("description") or None,
        "confidence": confidence,
    }


def confirm_match(our_title, tm_title, venue_name, api_key=None):
    """
    Ask whether two listings at the same venue on the same date are the same event.
    Returns (is_match, prefer_tm_title).
    """
    prompt = (
        "You are matching event listings from a venue website to Ticketmaster data.\n"
        "Both listings are at the SAME VENUE on the SAME DATE.\n"
        f'Venue listing: "{our_title}"\n'
        f'Ticketmaster listing: "{tm_title}"\n'
        f"Venue: {venue_name}\n"
        'Answer JSON only: {"isMatch": true/false, "preferTMTitle": true/false}\n'
        "Set preferTMTitle true only if the Ticketmaster title is clearly more informative."
    )
    content = _chat([{"role": "user", "content": prompt}], temperature=0.1, max_tokens=100, api_key=api_key)
    try:
        parsed = _parse_json(content)
    except ValueError:
        return bool(re.search(r"yes|true|match", content, re.I)), False
    return bool(parsed.get("isMatch")), bool(parsed.get("preferTMTitle"))
