import time
import traceback
from concurrent.futures import ThreadPoolExecutor, wait

from gigsync import config
from gigsync.pipeline.metrics import RunSummary, SourceResult
from gigsync.pipeline.runlog import console_log
from gigsync.registry import get_scrapers, resolve_source


def _invoke(spec, log):
    """Run one scraper, capturing its failure instead of raising."""
    start_time = time.time()
    result = SourceResult(source_id=spec.source_id, venue_slug=spec.venue_slug)
    try:
        result.events = list((spec.fn(log_func=log) if spec.takes_log else spec.fn()) or [])
    except Exception as e:
        result.error = str(e) or type(e).__name__
        result.error_trace = traceback.format_exc()
    result.duration_ms = (time.time() - start_time) * 1000
    return result


class ScraperOrchestrator:
    """
    Run every registered scraper concurrently and collect one result per source.

    A source that raises or overruns the deadline is reported with an error;
    its siblings are unaffected. Nothing is persisted here.
    """

    def __init__(self, scrapers=None, timeout=config.SCRAPE_TIMEOUT,
                 max_workers=config.SCRAPE_MAX_WORKERS, log_func=None):
        self.scrapers = scrapers if scrapers is not None else get_scrapers()
        self.timeout = timeout
        self.max_workers = max_workers
        self.log = log_func or console_log

    def run_all(self):
        specs = list(self.scrapers.values())
        summary = RunSummary(results=self._run(specs))
        self.log_summary(summary)
        return summary

    def run_one(self, source_id):
        spec = resolve_source(source_id, self.scrapers)
        return self._run([spec])[0]

    def _run(self, specs):
        if not specs:
            return []

        executor = ThreadPoolExecutor(max_workers=min(self.max_workers, len(specs)))
        try:
            futures = {}
            for spec in specs:
                self.log(f"Scraping {spec.source_id}...")
                futures[spec.source_id] = executor.submit(_invoke, spec, self.log)
            wait(futures.values(), timeout=self.timeout)
        finally:
            # Overrunning scrapers keep their thread; only unstarted ones are dropped.
            executor.shutdown(wait=False, cancel_futures=True)

        results = []
        for spec in specs:
            future = futures[spec.source_id]
            if future.done() and not future.cancelled():
                result = future.result()
            else:
                result = SourceResult(
                    source_id=spec.source_id,
                    venue_slug=spec.venue_slug,
                    error=f"timed out after {self.timeout:g}s",
                    duration_ms=self.timeout * 1000,
                )

            if result.error:
                self.log(f"  ERROR: Failed to scrape {spec.source_id}: {result.error}", "ERROR")
                if result.error_trace:
                    self.log(f"  Traceback:\n{result.error_trace}", "ERROR")
            else:
                self.log(f"  {spec.source_id}: found {result.event_count} events")
            results.append(result)
        return results

    def log_summary(self, summary):
        log = self.log
        log("")
        log("=" * 60)
        log("SOURCE SUMMARY")
        log("=" * 60)
        log(f"{'Source':<24} {'Events':>7} {'Errors':>7} {'Time':>10}")
        log("-" * 60)
        for r in sorted(summary.results, key=lambda r: r.source_id):
            errors = 1 if r.error else 0
            time_str = f"{r.duration_ms:.0f}ms"
            log(f"{r.source_id:<24} {r.event_count:>7} {errors:>7} {time_str:>10}")
        log("-" * 60)
        total_errors = len(summary.failed_sources)
        total_time = sum(r.duration_ms for r in summary.results)
        log(f"{'TOTAL':<24} {summary.total_events:>7} {total_errors:>7} {total_time:.0f}ms")
        log("=" * 60)
