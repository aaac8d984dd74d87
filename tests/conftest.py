from datetime import datetime, timezone
from pathlib import Path
from zoneinfo import ZoneInfo

import pytest

from eventfeed.observability.log import configure_logging
from eventfeed.quality.keys import event_id
from eventfeed.storage.models import EventCategory, NormalizedEvent, VenueDescriptor

LA = ZoneInfo("America/Los_Angeles")


@pytest.fixture(autouse=True, scope="session")
def _structured_logging():
    configure_logging(Path("config/does-not-exist.yaml"))


@pytest.fixture()
def venue():
    return VenueDescriptor(name="Crooked Lane", city="Auburn", state="CA")


@pytest.fixture()
def reference():
    # A Sunday.
    return datetime(2025, 6, 1, 12, 0, tzinfo=LA)


@pytest.fixture()
def make_event(venue):
    def _make(title="Jazz Night", day=datetime(2025, 6, 5, tzinfo=LA), **overrides):
        fields = {
            "id": event_id(title, day, overrides.get("venue", venue).name),
            "title": title,
            "date": day,
            "venue": venue,
            "category": EventCategory.MUSIC,
            "scraped_at": datetime(2025, 6, 1, 19, 0, tzinfo=timezone.utc),
            "source": "crooked-lane",
            "confidence": 0.75,
        }
        fields.update(overrides)
        return NormalizedEvent(**fields)

    return _make
