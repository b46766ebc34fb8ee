from dataclasses import dataclass, field
from typing import Optional


@dataclass
class SourceResult:
    """Outcome of one scraper invocation."""
    source_id: str
    venue_slug: str
    events: list = field(default_factory=list)
    error: Optional[str] = None
    error_trace: Optional[str] = None
    duration_ms: float = 0.0

    @property
    def event_count(self):
        return len(self.events)

    def to_dict(self):
        return {"source": self.source_id, "venue": self.venue_slug, "events": self.event_count, "error": self.error}


@dataclass
class RunSummary:
    results: list = field(default_factory=list)

    @property
    def total_events(self):
        return sum(r.event_count for r in self.results)

    @property
    def events(self):
        return [event for r in self.results for event in r.events]

    @property
    def failed_sources(self):
        return [r.source_id for r in self.results if r.error is not None]


@dataclass
class UpsertResult:
    created: int = 0
    updated: int = 0
    errors: list = field(default_factory=list)

    @property
    def error_count(self):
        return len(self.errors)

    def to_dict(self):
        return {"created": self.created, "updated": self.updated, "errorCount": self.error_count, "errors": self.errors}
