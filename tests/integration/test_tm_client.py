from datetime import datetime, timezone

import pytest
import requests

responses = pytest.importorskip("responses")

from gigsync import config, tm

EVENTS_URL = f"{config.TM_BASE_URL}/events.json"
SHOW = datetime(2026, 11, 15, 2, 0, tzinfo=timezone.utc)


def _listing(event_id, name, **extra):
    listing = {
        "id": event_id,
        "name": name,
        "url": f"https://www.ticketmaster.com/event/{event_id}",
        "dates": {"start": {"localDate": "2026-11-14", "localTime": "20:00:00"}, "status": {"code": "onsale"}},
        "images": [
            {"url": "https://s1.ticketm.net/small.jpg", "ratio": "3_2", "width": 305, "height": 203},
            {"url": "https://s1.ticketm.net/wide.jpg", "ratio": "16_9", "width": 1024, "height": 576},
        ],
        "classifications": [{"primary": True, "segment": {"name": "Music"}, "genre": {"name": "R&B"}}],
        "_embedded": {"attractions": [{"name": name}, {"name": "Abraham Alexander"}]},
        "sales": {
            "public": {"startDateTime": "2026-06-06T15:00:00Z", "endDateTime": "2026-11-15T02:00:00Z"},
            "presales": [
                {"name": "VIP Package Presale", "startDateTime": "2026-06-03T15:00:00Z"},
                {"name": "Citi Cardmember Presale", "startDateTime": "2026-06-03T14:00:00Z",
                 "endDateTime": "2026-06-05T03:00:00Z", "url": "https://presale.example.com"},
                {"name": "Official Platinum Onsale", "startDateTime": "2026-06-06T15:00:00Z"},
            ],
        },
    }
    listing.update(extra)
    return listing


@pytest.fixture(autouse=True)
def no_rate_limit_sleep(monkeypatch):
    monkeypatch.setattr("gigsync.tm.time.sleep", lambda *_: None)


def _quiet(*_args, **_kwargs):
    pass


@responses.activate
def test_exact_title_auto_matches():
    responses.add(responses.GET, EVENTS_URL, json={"_embedded": {"events": [
        _listing("G1", "Holiday Market"),
        _listing("G2", "Leon Bridges"),
    ]}})

    match = tm.find_tm_match("Leon Bridges", "moody-center", "Moody Center", SHOW, api_key="k", log_func=_quiet)

    assert match.tm_event["id"] == "G2"
    assert match.matched_by == "auto"
    assert match.confidence == 1.0
    assert match.prefer_tm_title is False
    request_url = responses.calls[0].request.url
    assert "venueId=KovZ917ANwG" in request_url
    assert "2026-11-14T00%3A00%3A00" in request_url


@responses.activate
def test_low_similarity_defers_to_confirmation():
    responses.add(responses.GET, EVENTS_URL, json={"_embedded": {"events": [
        _listing("G3", "Leon Bridges: Gold-Diggers Sound Tour"),
    ]}})
    asked = []

    def confirm(ours, theirs, venue):
        asked.append((ours, theirs, venue))
        return True, True

    match = tm.find_tm_match("Leon Bridges", "acl-live", "ACL Live", SHOW, confirm_match=confirm, api_key="k", log_func=_quiet)

    assert asked == [("Leon Bridges", "Leon Bridges: Gold-Diggers Sound Tour", "ACL Live")]
    assert match.matched_by == "llm"
    assert match.confidence == 0.75
    assert match.prefer_tm_title is True


@responses.activate
def test_rejected_confirmation_is_no_match():
    responses.add(responses.GET, EVENTS_URL, json={"_embedded": {"events": [_listing("G4", "Trivia Night")]}})

    match = tm.find_tm_match("Leon Bridges", "acl-live", "ACL Live", SHOW,
                             confirm_match=lambda *_: (False, False), api_key="k", log_func=_quiet)

    assert match.tm_event is None


def test_unmapped_venue_has_no_match():
    assert tm.find_tm_match("Anyone", "antones", "Antone's", SHOW, api_key="k") is None


@responses.activate
def test_http_error_propagates():
    responses.add(responses.GET, EVENTS_URL, status=500)

    with pytest.raises(requests.HTTPError) as excinfo:
        tm.find_tm_match("Leon Bridges", "moody-center", "Moody Center", SHOW, api_key="k", log_func=_quiet)
    assert "500" in str(excinfo.value)


def test_extract_enrichment_fields():
    match = tm.MatchResult(tm_event=_listing("G5", "Leon Bridges"), confidence=0.91234, matched_by="auto")

    fields = tm.extract_tm_enrichment(match)

    assert fields["tm_event_id"] == "G5"
    assert fields["tm_match_confidence"] == 0.9123
    assert fields["tm_image_url"] == "https://s1.ticketm.net/wide.jpg"
    assert (fields["tm_segment"], fields["tm_genre"]) == ("Music", "R&B")
    assert fields["supporting_acts"] == ["Abraham Alexander"]
    assert [w.name for w in fields["tm_sale_windows"]] == ["Citi Cardmember Presale", "Public Onsale"]
    assert fields["tm_sale_windows"][0].url == "https://presale.example.com"


def test_blank_attraction_names_are_not_supporting_acts():
    listing = _listing("G6", "Headliner", _embedded={"attractions": [
        {"name": "Headliner"}, {"name": " "}, {}, {"name": " Opener "},
    ]})

    assert tm.supporting_acts(listing) == ["Opener"]


@responses.activate
def test_scrape_tm_venue_builds_raw_events():
    cancelled = _listing("G7", "Rained Out", dates={
        "start": {"dateTime": "2026-11-20T01:00:00Z"}, "status": {"code": "cancelled"},
    })
    responses.add(responses.GET, EVENTS_URL, json={"_embedded": {"events": [
        _listing("G6", "Leon Bridges"),
        cancelled,
        {"id": "G8", "dates": {"start": {}}},
    ]}})

    events = tm.scrape_tm_venue("paramount-theatre", api_key="k", log_func=_quiet)

    assert [e.source_event_id for e in events] == ["G6", "G7"]
    leon, rained_out = events
    assert leon.source == "ticketmaster"
    assert leon.venue_slug == "paramount-theatre"
    assert leon.start_datetime == SHOW
    assert leon.category == "concert"
    assert leon.status == "scheduled"
    assert rained_out.status == "cancelled"
