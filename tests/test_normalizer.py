from datetime import datetime, time, timezone
from zoneinfo import ZoneInfo

import pytest

from eventfeed.normalize.dates import DateTimeResolver
from eventfeed.normalize.events import EventNormalizer, calculate_confidence, normalise_title
from eventfeed.observability.metrics import MetricsRegistry
from eventfeed.storage.models import EventCategory, RawEventRecord

LA = ZoneInfo("America/Los_Angeles")
SCRAPED_AT = datetime(2025, 6, 1, 19, 0, tzinfo=timezone.utc)


@pytest.fixture()
def metrics():
    return MetricsRegistry()


@pytest.fixture()
def normalizer(metrics):
    return EventNormalizer(DateTimeResolver("America/Los_Angeles"), metrics=metrics, clock=lambda: SCRAPED_AT)


def test_trivia_night_end_to_end(normalizer, venue, reference):
    raw = RawEventRecord(title="Trivia Night", date="Every Thursday", start_time="7pm")
    event = normalizer.normalize(raw, venue, "crooked-lane", reference=reference)
    assert event is not None
    assert event.category is EventCategory.TRIVIA
    assert "trivia" in event.tags
    assert "thursday" in event.tags
    assert event.is_recurring is True
    assert event.recurring_pattern == "weekly:thursday"
    assert event.start_time == time(19, 0)
    assert event.date == datetime(2025, 6, 5, tzinfo=LA)
    assert event.source == "crooked-lane"
    assert event.scraped_at == SCRAPED_AT
    assert event.confidence == pytest.approx(0.85)


def test_missing_title_is_dropped(normalizer, metrics, venue, reference):
    assert normalizer.normalize(RawEventRecord(title="   ", date="June 5"), venue, "v", reference=reference) is None
    assert normalizer.normalize(RawEventRecord(date="June 5"), venue, "v", reference=reference) is None
    assert metrics.get("dropped_missing_title") == 2


def test_unparseable_date_is_dropped(normalizer, metrics, venue, reference):
    raw = RawEventRecord(title="Mystery Show", date="sometime soon")
    assert normalizer.normalize(raw, venue, "v", reference=reference) is None
    assert normalizer.normalize(RawEventRecord(title="No Date"), venue, "v", reference=reference) is None
    assert metrics.get("dropped_unparseable_date") == 2


def test_unexpected_failure_is_contained(normalizer, metrics, venue, reference, monkeypatch):
    def boom(text):
        raise RuntimeError("resolver exploded")

    monkeypatch.setattr(normalizer.resolver, "detect_recurring_pattern", boom)
    raw = RawEventRecord(title="Trivia Night", date="June 5")
    assert normalizer.normalize(raw, venue, "v", reference=reference) is None
    assert metrics.get("dropped_errors") == 1


def test_id_ignores_case_and_punctuation_but_not_date(normalizer, venue, reference):
    first = normalizer.normalize(RawEventRecord(title="Trivia Night!", date="June 5"), venue, "v", reference=reference)
    second = normalizer.normalize(RawEventRecord(title="trivia  night", date="June 5"), venue, "v", reference=reference)
    other_day = normalizer.normalize(RawEventRecord(title="Trivia Night", date="June 6"), venue, "v", reference=reference)
    assert first.id == second.id
    assert first.id != other_day.id


def test_normalizing_twice_is_stable(venue, reference):
    normalizer = EventNormalizer(DateTimeResolver("America/Los_Angeles"))
    raw = RawEventRecord(title="Paint & Sip", date="Friday, July 4", description="Bring a friend on Fridays")
    first = normalizer.normalize(raw, venue, "v", reference=reference)
    second = normalizer.normalize(raw, venue, "v", reference=reference)
    assert (first.id, first.date, first.category, first.tags) == (second.id, second.date, second.category, second.tags)


def test_confidence_clamps_to_one_with_every_signal(normalizer, venue, reference):
    raw = RawEventRecord(
        title="Trivia Night",
        date="June 5",
        start_time="7pm",
        description="Six rounds of general knowledge with prizes.",
        url="https://crookedlane.example/trivia",
    )
    event = normalizer.normalize(raw, venue, "v", reference=reference)
    assert event.confidence == 1.0


def test_confidence_floor_for_sparse_record():
    raw = RawEventRecord(title="Jam", date="June 5")
    assert calculate_confidence(raw, has_start_time=False) == pytest.approx(0.65)


def test_title_is_cleaned(normalizer, venue, reference):
    assert normalise_title(" — Jazz   Brunch — ") == "Jazz Brunch"
    raw = RawEventRecord(title="- Jazz   Brunch", date="June 8", url="  ")
    event = normalizer.normalize(raw, venue, "v", reference=reference)
    assert event.title == "Jazz Brunch"
    assert event.url is None


def test_normalize_batch_counts_records(normalizer, metrics, venue, reference):
    records = [
        RawEventRecord(title="Trivia Night", date="Every Thursday"),
        RawEventRecord(title="", date="June 5"),
        RawEventRecord(title="Open Mic", date="June 7"),
    ]
    events = normalizer.normalize_batch(records, venue, "v", reference=reference)
    assert [event.title for event in events] == ["Trivia Night", "Open Mic"]
    assert metrics.get("records_seen") == 3
    assert metrics.get("events_normalized") == 2
