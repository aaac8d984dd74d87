"""Mapping of raw extracted records onto canonical events."""
from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import Callable, Iterable, List, Optional

import structlog

from eventfeed.normalize.dates import DateTimeResolver, UnparseableDateError
from eventfeed.normalize.taxonomy import detect_category, extract_tags
from eventfeed.observability.metrics import MetricsRegistry
from eventfeed.quality.keys import event_id
from eventfeed.storage.models import NormalizedEvent, RawEventRecord, VenueDescriptor

LOGGER = structlog.get_logger(__name__)

_EDGE_DASH_RE = re.compile(r"^[-\u2010-\u2015]\s*|\s*[-\u2010-\u2015]$")


class MissingTitleError(ValueError):
    """Raised when a raw record carries no usable title."""


def normalise_title(title: str) -> str:
    """Collapse whitespace and strip dangling dashes around the title."""
    return _EDGE_DASH_RE.sub("", " ".join(title.split()))


def _clean(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    return value or None


def calculate_confidence(raw: RawEventRecord, *, has_start_time: bool) -> float:
    """Score how much signal the record carried, clamped to 1.0."""
    score = 0.5
    if raw.title and len(raw.title.strip()) > 5:
        score += 0.10
    # Callers only score records whose date resolved.
    score += 0.15
    if has_start_time:
        score += 0.10
    if raw.description and len(raw.description.strip()) > 20:
        score += 0.10
    if _clean(raw.url):
        score += 0.05
    return min(round(score, 2), 1.0)


class EventNormalizer:
    """Builds NormalizedEvent objects, dropping records that cannot be resolved."""

    def __init__(
        self,
        resolver: Optional[DateTimeResolver] = None,
        *,
        metrics: Optional[MetricsRegistry] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._resolver = resolver or DateTimeResolver()
        self._metrics = metrics
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    @property
    def resolver(self) -> DateTimeResolver:
        return self._resolver

    def _count(self, name: str) -> None:
        if self._metrics is not None:
            self._metrics.incr(name)

    def normalize(
        self,
        raw: RawEventRecord,
        venue: VenueDescriptor,
        source_id: str,
        *,
        reference: Optional[datetime] = None,
    ) -> Optional[NormalizedEvent]:
        """Return the canonical event, or None after logging why it was dropped."""
        try:
            event = self._build(raw, venue, source_id, reference)
        except MissingTitleError:
            self._count("dropped_missing_title")
            LOGGER.warning("event_missing_title", source=source_id, date_text=raw.date)
            return None
        except UnparseableDateError as exc:
            self._count("dropped_unparseable_date")
            LOGGER.warning("event_unparseable_date", source=source_id, title=raw.title, date_text=exc.text)
            return None
        except Exception:
            self._count("dropped_errors")
            LOGGER.exception("event_normalize_failed", source=source_id, title=raw.title)
            return None
        self._count("events_normalized")
        return event

    def normalize_batch(
        self,
        records: Iterable[RawEventRecord],
        venue: VenueDescriptor,
        source_id: str,
        *,
        reference: Optional[datetime] = None,
    ) -> List[NormalizedEvent]:
        events: List[NormalizedEvent] = []
        for raw in records:
            self._count("records_seen")
            event = self.normalize(raw, venue, source_id, reference=reference)
            if event is not None:
                events.append(event)
        return events

    def _build(
        self,
        raw: RawEventRecord,
        venue: VenueDescriptor,
        source_id: str,
        reference: Optional[datetime],
    ) -> NormalizedEvent:
        title = normalise_title(raw.title or "")
        if not title:
            raise MissingTitleError("event is missing a title")

        resolved = self._resolver.parse_date(raw.date or "", reference)
        start_time = self._resolver.parse_time(raw.start_time)
        end_time = self._resolver.parse_time(raw.end_time)
        description = _clean(raw.description)
        pattern = self._resolver.detect_recurring_pattern(raw.date)

        return NormalizedEvent(
            id=event_id(title, resolved, venue.name),
            title=title,
            description=description,
            date=resolved,
            start_time=start_time,
            end_time=end_time,
            venue=venue,
            category=detect_category(title, description),
            tags=tuple(extract_tags(title, description, raw.date)),
            url=_clean(raw.url),
            image_url=_clean(raw.image_url),
            price=_clean(raw.price),
            is_recurring=pattern is not None,
            recurring_pattern=pattern,
            scraped_at=self._clock(),
            source=source_id,
            confidence=calculate_confidence(raw, has_start_time=start_time is not None),
        )
