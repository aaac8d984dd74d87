"""Pydantic models for raw records, canonical events and venue status."""
from __future__ import annotations

from datetime import datetime, time
from enum import Enum
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    """Serialises to the camelCase keys used by persisted documents."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class EventCategory(str, Enum):
    """Closed set of event categories."""

    TRIVIA = "trivia"
    MUSIC = "music"
    FOOD = "food"
    WINE = "wine"
    BEER = "beer"
    PAINT = "paint"
    COMEDY = "comedy"
    TASTING = "tasting"
    WORKSHOP = "workshop"
    SPECIAL = "special"
    RECURRING = "recurring"
    OTHER = "other"


class RawEventRecord(_CamelModel):
    """Loosely structured record handed over by the extraction layer."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    title: Optional[str] = None
    date: Optional[str] = None
    start_time: Optional[str] = None
    end_time: Optional[str] = None
    description: Optional[str] = None
    url: Optional[str] = None
    image_url: Optional[str] = None
    price: Optional[str] = None


class VenueDescriptor(_CamelModel):
    """Static venue details supplied by configuration."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    name: str = Field(min_length=1)
    address: Optional[str] = None
    city: Optional[str] = None
    state: Optional[str] = None
    zip: Optional[str] = None
    url: Optional[str] = None
    phone: Optional[str] = None


class NormalizedEvent(_CamelModel):
    """Canonical representation for a single event listing."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, frozen=True)

    id: str
    title: str
    description: Optional[str] = None
    date: datetime = Field(..., description="Resolved calendar date as a tz-aware midnight instant")
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    venue: VenueDescriptor
    category: EventCategory = EventCategory.OTHER
    tags: Tuple[str, ...] = ()
    url: Optional[str] = None
    image_url: Optional[str] = None
    price: Optional[str] = None
    is_recurring: bool = False
    recurring_pattern: Optional[str] = None
    scraped_at: datetime
    source: str
    confidence: float = Field(default=1.0, ge=0.0, le=1.0)


class ScrapeHistoryEntry(_CamelModel):
    """Outcome of one scrape of a venue."""

    scraped_at: datetime
    had_future_events: bool
    future_event_count: int
    total_event_count: int
    last_event_date: Optional[datetime] = None


class VenueStatus(_CamelModel):
    """Durable freshness state of a single venue."""

    venue_id: str
    venue_name: str
    last_scraped_at: datetime
    last_event_date: Optional[datetime] = None
    has_future_events: bool = False
    future_event_count: int = 0
    total_event_count: int = 0
    consecutive_scrapes_with_no_future_events: int = 0
    scrape_history: List[ScrapeHistoryEntry] = Field(default_factory=list)


class VenueStatusDocument(_CamelModel):
    """Whole persisted status store."""

    version: str = "1.0.0"
    updated_at: datetime
    venues: Dict[str, VenueStatus] = Field(default_factory=dict)


class StalenessReport(_CamelModel):
    """Staleness verdict for one venue at a given instant."""

    venue_id: str
    venue_name: str
    is_stale: bool
    reason: Optional[str] = None
    last_event_date: Optional[datetime] = None
    days_since_last_event: Optional[int] = None
    consecutive_empty_scrapes: int = 0
    recommendation: str = Field(pattern=r"^(keep|monitor|disable)$")
