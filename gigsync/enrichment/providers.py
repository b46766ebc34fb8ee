"""
External lookups used by the enrichment job.

Each provider answers with a ProviderOutcome: ok (data found), empty (the
service answered but had nothing) or error (the call raised). A provider that
is not configured, or not applicable to an event, is left out entirely.
"""

from dataclasses import dataclass, field
from typing import Optional

from gigsync import config, tm
from gigsync.enrichment import knowledge_graph, llm
from gigsync.models import EventCategory
from gigsync.pipeline.runlog import console_log
from gigsync.spotify import is_generic_query, spotify_search_artist

OK = "ok"
EMPTY = "empty"
ERROR = "error"


@dataclass
class ProviderOutcome:
    provider: str
    state: str
    data: dict = field(default_factory=dict)
    error: Optional[str] = None

    @property
    def ok(self):
        return self.state == OK


@dataclass
class EnrichmentContext:
    """Everything known about one event while its providers run."""
    event: object
    venue_name: str
    keyword: str
    outcomes: dict = field(default_factory=dict)

    def data(self, provider_name):
        outcome = self.outcomes.get(provider_name)
        return outcome.data if outcome and outcome.ok else {}


class Provider:
    name = "provider"

    @property
    def configured(self):
        return True

    def applicable(self, ctx):
        return True

    def fetch(self, ctx):
        """Return a dict of Enrichment fields, or None when nothing was found."""
        raise NotImplementedError

    def run(self, ctx, log_func=None):
        log = log_func or console_log
        try:
            data = self.fetch(ctx)
        except Exception as e:
            log(f"    {self.name}: {type(e).__name__}: {e}", "WARNING")
            return ProviderOutcome(self.name, ERROR, error=f"{type(e).__name__}: {e}")
        if not data:
            return ProviderOutcome(self.name, EMPTY)
        return ProviderOutcome(self.name, OK, data=data)


class TicketmasterProvider(Provider):
    name = "ticketmaster"

    def __init__(self, api_key=None, openai_api_key=None, log_func=None):
        self.api_key = api_key
        self.openai_api_key = openai_api_key
        self.log = log_func or console_log

    @property
    def configured(self):
        return bool(self.api_key)

    def applicable(self, ctx):
        return ctx.event.venue_slug in tm.TM_VENUES

    def _confirm(self, our_title, tm_title, venue_name):
        return llm.confirm_match(our_title, tm_title, venue_name, api_key=self.openai_api_key)

    def fetch(self, ctx):
        event = ctx.event
        match = tm.find_tm_match(
            event.title,
            event.venue_slug,
            ctx.venue_name,
            event.start_datetime,
            confirm_match=self._confirm if self.openai_api_key else None,
            api_key=self.api_key,
            log_func=self.log,
        )
        if not match or not match.tm_event:
            return None
        return tm.extract_tm_enrichment(match)


class LLMCategorizer(Provider):
    name = "llm"

    def __init__(self, api_key=None):
        self.api_key = api_key

    @property
    def configured(self):
        return bool(self.api_key)

    def fetch(self, ctx):
        event = ctx.event
        tm_data = ctx.data(TicketmasterProvider.name)
        result = llm.categorize_event(
            event.title,
            ctx.venue_name,
            event.start_datetime,
            api_key=self.api_key,
            description=event.description,
            url=event.url,
            current_category=event.category,
            tm_classification={"segment": tm_data.get("tm_segment"), "genre": tm_data.get("tm_genre")},
        )
        return {
            "llm_category": result["category"],
            "llm_confidence": result["confidence"],
            "llm_performer": result["performer"],
            "llm_description": result["description"],
        }


class KnowledgeGraphProvider(Provider):
    name = "knowledge_graph"

    def __init__(self, api_key=None):
        self.api_key = api_key

    @property
    def configured(self):
        return bool(self.api_key)

    def fetch(self, ctx):
        query = ctx.data(LLMCategorizer.name).get("llm_performer") or ctx.keyword
        result = knowledge_graph.search_knowledge_graph(query, api_key=self.api_key)
        if not result:
            return None
        return {
            "kg_entity_id": result["entity_id"],
            "kg_name": result["name"],
            "kg_description": result["description"],
            "kg_types": result["types"],
            "kg_wiki_url": result["wiki_url"],
            "kg_bio": result["bio"],
        }


class SpotifyProvider(Provider):
    name = "spotify"

    def __init__(self, client_id=None, client_secret=None):
        self.client_id = client_id
        self.client_secret = client_secret

    @property
    def configured(self):
        return bool(self.client_id and self.client_secret)

    def applicable(self, ctx):
        if is_generic_query(ctx.keyword):
            return False
        kg = ctx.data(KnowledgeGraphProvider.name)
        if kg and knowledge_graph.looks_like_music({
            "types": kg.get("kg_types"),
            "description": kg.get("kg_description"),
            "bio": kg.get("kg_bio"),
        }):
            return True
        if ctx.data(LLMCategorizer.name).get("llm_category") == EventCategory.CONCERT.value:
            return True
        return ctx.data(TicketmasterProvider.name).get("tm_segment") == "Music"

    def fetch(self, ctx):
        query = ctx.data(LLMCategorizer.name).get("llm_performer") or ctx.keyword
        genre_hint = ctx.data(TicketmasterProvider.name).get("tm_genre")
        artist, _reason = spotify_search_artist(
            query,
            genre_hint=genre_hint,
            client_id=self.client_id,
            client_secret=self.client_secret,
        )
        if not artist:
            return None
        return {
            "spotify_id": artist["id"],
            "spotify_url": artist["url"],
            "spotify_genres": artist["genres"],
            "spotify_popularity": artist["popularity"],
        }


def default_providers(settings=None, log_func=None):
    """Providers in the order they run; later ones read earlier results."""
    settings = settings or config.Settings.from_env()
    tm_key = settings.tm_api_key if config.USE_TM_API else None
    return [
        TicketmasterProvider(api_key=tm_key, openai_api_key=settings.openai_api_key, log_func=log_func),
        LLMCategorizer(api_key=settings.openai_api_key),
        KnowledgeGraphProvider(api_key=settings.google_api_key),
        SpotifyProvider(client_id=settings.spotify_client_id, client_secret=settings.spotify_client_secret),
    ]
