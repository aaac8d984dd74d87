"""Per-venue freshness tracking and staleness classification."""
from __future__ import annotations

from datetime import datetime, timezone
from pathlib import Path
from typing import Iterable, List, Optional
from zoneinfo import ZoneInfo

import structlog

from eventfeed.normalize.dates import DEFAULT_TIMEZONE
from eventfeed.orchestrator.status_store import load_status_document, save_status_document
from eventfeed.storage.models import (
    NormalizedEvent,
    ScrapeHistoryEntry,
    StalenessReport,
    VenueStatus,
    VenueStatusDocument,
)

LOGGER = structlog.get_logger(__name__)

STALE_DAYS_THRESHOLD = 90
CONSECUTIVE_EMPTY_THRESHOLD = 3
MAX_HISTORY_ENTRIES = 10

_RECOMMENDATION_ORDER = {"disable": 0, "monitor": 1, "keep": 2}


def _aware(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class VenueStatusTracker:
    """Owns the status document for one run: loaded once, saved once."""

    def __init__(
        self,
        path: Path,
        *,
        timezone_name: str = DEFAULT_TIMEZONE,
        stale_days: int = STALE_DAYS_THRESHOLD,
        consecutive_empty: int = CONSECUTIVE_EMPTY_THRESHOLD,
        history_size: int = MAX_HISTORY_ENTRIES,
    ) -> None:
        if history_size < 1:
            raise ValueError(f"history_size must be at least 1, got {history_size}")
        self._path = path
        self._tz = ZoneInfo(timezone_name)
        self._stale_days = stale_days
        self._consecutive_empty = consecutive_empty
        self._history_size = history_size
        self._document: Optional[VenueStatusDocument] = None

    @property
    def path(self) -> Path:
        return self._path

    def load(self) -> VenueStatusDocument:
        if self._document is None:
            self._document = load_status_document(self._path)
        return self._document

    def save(self, now: Optional[datetime] = None) -> Optional[Path]:
        """Persist the document if it was ever loaded."""
        if self._document is None:
            return None
        self._document.updated_at = _aware(now or datetime.now(timezone.utc))
        path = save_status_document(self._path, self._document)
        LOGGER.info("venue_status_saved", path=str(path), venues=len(self._document.venues))
        return path

    def get(self, venue_id: str) -> Optional[VenueStatus]:
        return self.load().venues.get(venue_id)

    def start_of_day(self, as_of: datetime) -> datetime:
        local = _aware(as_of).astimezone(self._tz)
        return local.replace(hour=0, minute=0, second=0, microsecond=0)

    def filter_future_events(self, events: Iterable[NormalizedEvent], as_of: datetime) -> List[NormalizedEvent]:
        """Events dated on or after the as-of day; time of day is ignored."""
        cutoff = self.start_of_day(as_of)
        return [event for event in events if _aware(event.date) >= cutoff]

    def update(
        self,
        venue_id: str,
        venue_name: str,
        events: Iterable[NormalizedEvent],
        scraped_at: Optional[datetime] = None,
    ) -> VenueStatus:
        """Fold one scrape's events into the venue's status."""
        document = self.load()
        scraped_at = _aware(scraped_at or datetime.now(timezone.utc))
        events = list(events)
        future = self.filter_future_events(events, scraped_at)
        has_future = bool(future)

        existing = document.venues.get(venue_id)
        batch_last = max((_aware(event.date) for event in events), default=None)
        last_event_date = batch_last
        if last_event_date is None and existing is not None:
            last_event_date = existing.last_event_date
        previous_empty = existing.consecutive_scrapes_with_no_future_events if existing else 0

        history = list(existing.scrape_history) if existing else []
        history.append(
            ScrapeHistoryEntry(
                scraped_at=scraped_at,
                had_future_events=has_future,
                future_event_count=len(future),
                total_event_count=len(events),
                last_event_date=batch_last,
            )
        )

        status = VenueStatus(
            venue_id=venue_id,
            venue_name=venue_name,
            last_scraped_at=scraped_at,
            last_event_date=last_event_date,
            has_future_events=has_future,
            future_event_count=len(future),
            total_event_count=len(events),
            consecutive_scrapes_with_no_future_events=0 if has_future else previous_empty + 1,
            scrape_history=history[-self._history_size:],
        )
        document.venues[venue_id] = status
        LOGGER.debug(
            "venue_status_updated",
            venue_id=venue_id,
            future_events=len(future),
            total_events=len(events),
            consecutive_empty=status.consecutive_scrapes_with_no_future_events,
        )
        return status

    def analyze(self, status: VenueStatus, as_of: datetime) -> StalenessReport:
        """Classify a venue as keep, monitor or disable at ``as_of``."""
        as_of = _aware(as_of)
        consecutive = status.consecutive_scrapes_with_no_future_events
        reasons: List[str] = []
        days_since: Optional[int] = None
        is_stale = False
        recommendation = "keep"

        if status.last_event_date is not None:
            days_since = (as_of - _aware(status.last_event_date)).days
            if days_since > self._stale_days:
                is_stale = True
                reasons.append(f"Last event was {days_since} days ago")
                recommendation = "disable"
        else:
            is_stale = True
            reasons.append("No events ever found")
            recommendation = "monitor"

        if consecutive >= self._consecutive_empty:
            is_stale = True
            reasons.append(f"{consecutive} consecutive scrapes with no future events")
            recommendation = "disable"
        elif consecutive > 0:
            reasons.append(f"{consecutive} consecutive scrape(s) with no future events")
            if recommendation != "disable":
                recommendation = "monitor"

        return StalenessReport(
            venue_id=status.venue_id,
            venue_name=status.venue_name,
            is_stale=is_stale,
            reason="; ".join(reasons) or None,
            last_event_date=status.last_event_date,
            days_since_last_event=days_since,
            consecutive_empty_scrapes=consecutive,
            recommendation=recommendation,
        )

    def generate_report(self, as_of: Optional[datetime] = None) -> List[StalenessReport]:
        """Reports for every known venue, most urgent first."""
        as_of = as_of or datetime.now(timezone.utc)
        reports = [self.analyze(status, as_of) for status in self.load().venues.values()]
        return sorted(reports, key=lambda report: _RECOMMENDATION_ORDER[report.recommendation])

    def format_report(self, reports: List[StalenessReport]) -> str:
        lines = ["", "--- Venue Staleness Report ---"]
        stale = [report for report in reports if report.is_stale]
        active = [report for report in reports if not report.is_stale]

        if stale:
            lines.append(f"\nStale venues ({len(stale)}):")
            for report in stale:
                last_event = self._display_date(report.last_event_date)
                days_ago = f" ({report.days_since_last_event} days ago)" if report.days_since_last_event is not None else ""
                lines.append(f"  [{report.recommendation.upper()}] {report.venue_name}")
                lines.append(f"    Last event: {last_event}{days_ago}")
                lines.append(f"    Reason: {report.reason}")

        if active:
            lines.append(f"\nActive venues ({len(active)}):")
            for report in active:
                line = f"  {report.venue_name} - last event: {self._display_date(report.last_event_date)}"
                if report.recommendation == "monitor":
                    line += f" [MONITOR: {report.reason}]"
                lines.append(line)

        return "\n".join(lines)

    def _display_date(self, value: Optional[datetime]) -> str:
        if value is None:
            return "never"
        return _aware(value).astimezone(self._tz).date().isoformat()
