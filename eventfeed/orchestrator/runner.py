"""Run driver folding venue batches through normalize, dedup and status tracking."""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Set

import structlog

from eventfeed.normalize.events import EventNormalizer
from eventfeed.observability.metrics import MetricsRegistry
from eventfeed.observability.tracing import clear_context, set_context, span
from eventfeed.orchestrator.batch_loader import VenueBatch
from eventfeed.orchestrator.venue_status import VenueStatusTracker
from eventfeed.quality.dedup import Deduplicator
from eventfeed.storage.models import NormalizedEvent

LOGGER = structlog.get_logger(__name__)


@dataclass
class RunContext:
    """Collaborators constructed once per process and shared by every venue."""

    run_id: str
    normalizer: EventNormalizer
    deduplicator: Deduplicator
    tracker: VenueStatusTracker
    metrics: MetricsRegistry


@dataclass
class VenueOutcome:
    """What one venue contributed to the run."""

    venue_id: str
    venue_name: str
    records: int = 0
    total_events: int = 0
    future_events: int = 0
    dropped: int = 0
    kept: List[NormalizedEvent] = field(default_factory=list)
    error: Optional[str] = None

    def stats(self) -> dict:
        return {
            "records": self.records,
            "total_events": self.total_events,
            "future_events": self.future_events,
            "dropped": self.dropped,
            "kept": len(self.kept),
            "error": self.error,
        }


@dataclass
class RunResult:
    events: List[NormalizedEvent]
    outcomes: List[VenueOutcome]
    skipped: List[str] = field(default_factory=list)


def process_venue(
    ctx: RunContext,
    batch: VenueBatch,
    *,
    scraped_at: datetime,
    include_past: bool = False,
) -> VenueOutcome:
    """Normalize, deduplicate and record one venue's batch."""
    venue_name = batch.venue_name
    outcome = VenueOutcome(venue_id=batch.venue_id, venue_name=venue_name, records=len(batch.records))
    set_context(run_id=ctx.run_id, venue_id=batch.venue_id)
    try:
        with span(name="process_venue", venue_id=batch.venue_id):
            if batch.failed:
                ctx.metrics.incr("venues_failed")
                ctx.tracker.update(batch.venue_id, venue_name, [], scraped_at)
                LOGGER.warning("venue_extraction_failed", error=batch.error)
                outcome.error = batch.error
                return outcome

            events = ctx.normalizer.normalize_batch(
                batch.records,
                batch.venue,
                batch.venue_id,
                reference=scraped_at,
            )
            outcome.dropped = len(batch.records) - len(events)
            unique = ctx.deduplicator.deduplicate(events)
            ctx.metrics.incr("duplicates", len(events) - len(unique))

            ctx.tracker.update(batch.venue_id, venue_name, unique, scraped_at)
            future = ctx.tracker.filter_future_events(unique, scraped_at)
            outcome.total_events = len(unique)
            outcome.future_events = len(future)
            outcome.kept = unique if include_past else future
            ctx.metrics.incr("venues_processed")
            LOGGER.info(
                "venue_processed",
                total=outcome.total_events,
                future=outcome.future_events,
                dropped=outcome.dropped,
            )
            return outcome
    finally:
        clear_context()


def run_batches(
    ctx: RunContext,
    batches: Iterable[VenueBatch],
    *,
    scraped_at: Optional[datetime] = None,
    include_past: bool = False,
    skip_stale: bool = False,
) -> RunResult:
    """Process venues one after another, then deduplicate the combined feed."""
    scraped_at = scraped_at or datetime.now(timezone.utc)
    stale: Set[str] = set()
    if skip_stale:
        stale = {
            report.venue_id
            for report in ctx.tracker.generate_report(scraped_at)
            if report.recommendation == "disable"
        }

    outcomes: List[VenueOutcome] = []
    skipped: List[str] = []
    collected: List[NormalizedEvent] = []
    for batch in batches:
        if batch.venue_id in stale:
            ctx.metrics.incr("venues_skipped")
            LOGGER.info("venue_skipped_stale", venue_id=batch.venue_id)
            skipped.append(batch.venue_id)
            continue
        outcome = process_venue(ctx, batch, scraped_at=scraped_at, include_past=include_past)
        outcomes.append(outcome)
        collected.extend(outcome.kept)

    events = ctx.deduplicator.deduplicate(collected)
    ctx.metrics.incr("duplicates", len(collected) - len(events))
    ctx.metrics.incr("events_kept", len(events))
    return RunResult(events=events, outcomes=outcomes, skipped=skipped)
