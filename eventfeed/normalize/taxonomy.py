"""Keyword taxonomy mapping listing text to canonical categories and tags."""
from __future__ import annotations

import re
from typing import List, Optional, Tuple

from eventfeed.storage.models import EventCategory

# First match wins for the category, so the order here is significant.
CATEGORY_KEYWORDS: Tuple[Tuple[EventCategory, Tuple[str, ...]], ...] = (
    (EventCategory.TRIVIA, ("trivia", "quiz", "game night", "pub quiz")),
    (EventCategory.MUSIC, ("music", "live band", "concert", "dj", "acoustic", "open mic", "karaoke", "bingo")),
    (EventCategory.FOOD, ("food", "dinner", "brunch", "lunch", "food truck", "bbq", "taco", "burger")),
    (EventCategory.WINE, ("wine", "vino", "sommelier", "vineyard", "wine tasting")),
    (EventCategory.BEER, ("beer", "brew", "ale", "ipa", "lager", "stout", "tap takeover")),
    (EventCategory.PAINT, ("paint", "art", "canvas", "sip and paint", "paint & sip")),
    (EventCategory.COMEDY, ("comedy", "stand-up", "standup", "comedian", "improv")),
    (EventCategory.TASTING, ("tasting", "flight", "sampling")),
    (EventCategory.WORKSHOP, ("workshop", "class", "learn", "education", "seminar")),
    (EventCategory.SPECIAL, ("special", "holiday", "celebration", "anniversary", "grand opening")),
    (EventCategory.RECURRING, ()),
    (EventCategory.OTHER, ()),
)

_WEEKDAY_RE = re.compile(r"(monday|tuesday|wednesday|thursday|friday|saturday|sunday)s?")


def _text(*parts: Optional[str]) -> str:
    return " ".join(part for part in parts if part).lower()


def detect_category(title: str, description: Optional[str] = None) -> EventCategory:
    """Return the first category whose keywords occur in the title or description."""
    text = _text(title, description)
    for category, keywords in CATEGORY_KEYWORDS:
        if any(keyword in text for keyword in keywords):
            return category
    return EventCategory.OTHER


def extract_tags(title: str, description: Optional[str] = None, date_text: Optional[str] = None) -> List[str]:
    """Collect every matching category plus the first weekday mentioned."""
    text = _text(title, description)
    tags: List[str] = []
    for category, keywords in CATEGORY_KEYWORDS:
        if any(keyword in text for keyword in keywords):
            tags.append(category.value)

    day = _WEEKDAY_RE.search(_text(title, description, date_text))
    if day and day.group(1) not in tags:
        tags.append(day.group(1))
    return tags
