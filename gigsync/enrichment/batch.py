import sqlite3
import time
import traceback
from dataclasses import dataclass, fields

from gigsync import config, db
from gigsync.enrichment.categories import has_high_confidence_kg_type, infer_category, should_update_category
from gigsync.enrichment.keywords import primary_keyword
from gigsync.enrichment.providers import (
    ERROR,
    OK,
    EnrichmentContext,
    KnowledgeGraphProvider,
    LLMCategorizer,
    SpotifyProvider,
    TicketmasterProvider,
    default_providers,
)
from gigsync.errors import SchemaError
from gigsync.models import Enrichment, EnrichmentStatus, EventCategory, dump_name_list, dump_sale_windows
from gigsync.pipeline.runlog import console_log
from gigsync.tm import TM_CATEGORY_MAP
from gigsync.utils.dates import now_utc

ENRICHMENT_FIELDS = {f.name for f in fields(Enrichment)}
FAILED = "failed"

# List-valued fields stored as versioned JSON documents
STRUCTURED_FIELDS = {
    "tm_sale_windows": dump_sale_windows,
    "supporting_acts": dump_name_list,
    "kg_types": dump_name_list,
    "spotify_genres": dump_name_list,
}


def drop_malformed_fields(enrichment):
    """Empty any structured field that would not serialize. Returns one error line per field."""
    errors = []
    for name, dump in STRUCTURED_FIELDS.items():
        try:
            dump(getattr(enrichment, name))
        except SchemaError as e:
            setattr(enrichment, name, [])
            errors.append(f"schema: {name}: {e}")
    return errors


@dataclass
class EnrichmentSummary:
    processed: int = 0
    completed: int = 0
    partial: int = 0
    failed: int = 0
    skipped: int = 0
    categories_updated: int = 0

    def to_dict(self):
        return {
            "processed": self.processed,
            "completed": self.completed,
            "partial": self.partial,
            "failed": self.failed,
            "skipped": self.skipped,
            "categoriesUpdated": self.categories_updated,
        }


class EnrichmentBatchProcessor:
    """
    Attach external metadata to events that have not been enriched yet.

    Events are processed one at a time in start order. A run where every
    provider errored writes nothing for that event, so it is picked up again
    next time; anything else leaves exactly one enrichment row behind.
    """

    def __init__(self, conn, providers=None, log_func=None,
                 event_delay=config.ENRICH_EVENT_DELAY, request_delay=config.ENRICH_REQUEST_DELAY):
        self.conn = conn
        self.log = log_func or console_log
        self.providers = providers if providers is not None else default_providers(log_func=self.log)
        self.event_delay = event_delay
        self.request_delay = request_delay
        self.last_summary = None

    def run(self, limit=config.DEFAULT_ENRICH_LIMIT, force=False):
        summary = EnrichmentSummary()
        self.last_summary = summary
        providers = [p for p in self.providers if p.configured]
        if not providers:
            self.log("No enrichment providers configured (TM_API_KEY, OPENAI_API_KEY, GOOGLE_API_KEY, SPOTIFY_*); nothing to do", "WARNING")
            return summary

        if force:
            deleted = db.delete_all_enrichments(self.conn)
            self.log(f"FORCE: deleted {deleted} existing enrichment rows", "WARNING")

        events = db.select_unenriched_events(self.conn, limit)
        self.log(f"Enriching {len(events)} events with: {', '.join(p.name for p in providers)}")
        venues = {v.slug: v for v in db.get_all_venues(self.conn)}

        for i, event in enumerate(events):
            if i > 0:
                time.sleep(self.event_delay)
            venue = venues.get(event.venue_slug)
            venue_name = venue.name if venue else event.venue_slug
            self.log(f"[{i + 1}/{len(events)}] {event.title} @ {venue_name}")

            try:
                status, category_updated = self._enrich_event(event, venue_name, providers)
            except sqlite3.Error:
                raise
            except Exception as e:
                self.log(f"    ERROR: enrichment of {event.id} crashed: {type(e).__name__}: {e}", "ERROR")
                self.log(f"    Traceback:\n{traceback.format_exc()}", "ERROR")
                status, category_updated = FAILED, False
            summary.processed += 1
            if status == FAILED:
                summary.failed += 1
            elif status == EnrichmentStatus.COMPLETED.value:
                summary.completed += 1
            elif status == EnrichmentStatus.PARTIAL.value:
                summary.partial += 1
            else:
                summary.skipped += 1
            if category_updated:
                summary.categories_updated += 1

        self.log(
            f"Enrichment done: {summary.completed} completed, {summary.partial} partial, "
            f"{summary.failed} failed, {summary.skipped} skipped, {summary.categories_updated} categories updated"
        )
        return summary

    def _enrich_event(self, event, venue_name, providers):
        """Returns (status, category_updated)."""
        keyword = primary_keyword(event.title, venue_name)
        if event.start_datetime < now_utc() or not keyword:
            reason = "past event" if keyword else "no search keyword"
            self.log(f"    Skipped: {reason}")
            db.save_enrichment(self.conn, Enrichment(
                event_id=event.id, status=EnrichmentStatus.SKIPPED.value, search_query=keyword,
            ))
            return EnrichmentStatus.SKIPPED.value, False

        ctx = EnrichmentContext(event=event, venue_name=venue_name, keyword=keyword)
        for provider in providers:
            if not provider.applicable(ctx):
                continue
            if ctx.outcomes:
                time.sleep(self.request_delay)
            ctx.outcomes[provider.name] = provider.run(ctx, log_func=self.log)

        outcomes = list(ctx.outcomes.values())
        ok_count = sum(1 for o in outcomes if o.state == OK)
        error_count = sum(1 for o in outcomes if o.state == ERROR)

        if ok_count == 0 and error_count:
            self.log(f"    Failed: {error_count} provider error(s), will retry next run", "WARNING")
            return FAILED, False

        if ok_count == 0:
            status = EnrichmentStatus.SKIPPED.value
        elif ok_count == len(outcomes):
            status = EnrichmentStatus.COMPLETED.value
        else:
            status = EnrichmentStatus.PARTIAL.value

        enrichment = Enrichment(event_id=event.id, status=status, search_query=keyword)
        for outcome in outcomes:
            if outcome.state == OK:
                for key, value in outcome.data.items():
                    if key in ENRICHMENT_FIELDS:
                        setattr(enrichment, key, value)
            elif outcome.state == ERROR:
                enrichment.provider_errors.append(f"{outcome.provider}: {outcome.error}")
            else:
                enrichment.provider_errors.append(f"{outcome.provider}: no data")

        schema_errors = drop_malformed_fields(enrichment)
        if schema_errors:
            for error in schema_errors:
                self.log(f"    Dropped malformed field: {error}", "WARNING")
            enrichment.provider_errors.extend(schema_errors)
            status = enrichment.status = EnrichmentStatus.PARTIAL.value

        inferred, confident = self._infer_category(ctx)
        enrichment.inferred_category = inferred
        db.save_enrichment(self.conn, enrichment)

        # Row first: a changed category always has an enrichment row behind it
        if should_update_category(event.category, inferred, confident):
            if db.update_event_category(self.conn, event.id, inferred):
                enrichment.category_updated = True
                db.save_enrichment(self.conn, enrichment)
                self.log(f"    Category: {event.category} -> {inferred}")

        self.log(f"    {status} ({ok_count}/{len(outcomes)} providers)")
        return status, enrichment.category_updated

    def _infer_category(self, ctx):
        """Returns (category or None, high confidence?)."""
        llm_data = ctx.data(LLMCategorizer.name)
        llm_category = llm_data.get("llm_category")
        if llm_category and llm_category != EventCategory.OTHER.value and llm_data.get("llm_confidence") in ("high", "medium"):
            return llm_category, llm_data["llm_confidence"] == "high"

        kg_data = ctx.data(KnowledgeGraphProvider.name)
        kg_result = {
            "types": kg_data.get("kg_types") or [],
            "description": kg_data.get("kg_description"),
            "bio": kg_data.get("kg_bio"),
        } if kg_data else None
        spotify_data = ctx.data(SpotifyProvider.name)
        spotify_result = {
            "popularity": spotify_data.get("spotify_popularity") or 0,
            "genres": spotify_data.get("spotify_genres") or [],
        } if spotify_data else None
        inferred = infer_category(kg_result, spotify_result)
        if inferred:
            return inferred, has_high_confidence_kg_type(kg_result)

        tm_data = ctx.data(TicketmasterProvider.name)
        tm_category = TM_CATEGORY_MAP.get(tm_data.get("tm_genre")) or TM_CATEGORY_MAP.get(tm_data.get("tm_segment"))
        return tm_category, False
