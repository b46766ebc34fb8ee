from dataclasses import dataclass, field
from functools import partial
from typing import Callable

from gigsync import config
from gigsync.errors import UnknownSourceError
from gigsync.tm import scrape_tm_venue
from gigsync.venues.long_center import scrape_long_center
from gigsync.venues.mock import scrape_mock
from gigsync.venues.moody_amphitheater import scrape_moody_amphitheater
from gigsync.venues.stubbs import scrape_stubbs


@dataclass
class ScraperSpec:
    source_id: str
    venue_slug: str
    fn: Callable
    aliases: list = field(default_factory=list)
    takes_log: bool = False


def get_scrapers():
    """Build scraper registry, adding Ticketmaster-backed venues when the API is available."""
    scrapers = [
        ScraperSpec("long-center", "long-center", scrape_long_center),
        ScraperSpec("moody-amphitheater", "moody-amphitheater", scrape_moody_amphitheater, aliases=["moody-amp"]),
        ScraperSpec("stubbs", "stubbs", scrape_stubbs),
    ]

    # Arenas and theatres without a usable calendar page come straight from Ticketmaster
    if config.USE_TM_API and config.TM_API_KEY:
        scrapers += [
            ScraperSpec("moody-center", "moody-center", partial(scrape_tm_venue, "moody-center"), takes_log=True),
            ScraperSpec("acl-live", "acl-live", partial(scrape_tm_venue, "acl-live"), takes_log=True),
            ScraperSpec("paramount-theatre", "paramount-theatre", partial(scrape_tm_venue, "paramount-theatre"), aliases=["paramount"], takes_log=True),
            ScraperSpec("bass-concert-hall", "bass-concert-hall", partial(scrape_tm_venue, "bass-concert-hall"), takes_log=True),
        ]

    if config.ENABLE_MOCK_SCRAPER:
        scrapers.append(ScraperSpec("mock", "moody-center", scrape_mock))

    return {spec.source_id: spec for spec in scrapers}


def resolve_source(source_id, scrapers=None):
    """Look up a scraper by id or alias."""
    scrapers = scrapers if scrapers is not None else get_scrapers()
    key = (source_id or "").strip().lower()
    if key in scrapers:
        return scrapers[key]
    for spec in scrapers.values():
        if key in spec.aliases:
            return spec
    raise UnknownSourceError(source_id, list(scrapers))
