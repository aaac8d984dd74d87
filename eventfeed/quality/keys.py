"""Deterministic key builders for event identity and deduplication."""
from __future__ import annotations

import hashlib
import re
from datetime import date, datetime
from typing import NamedTuple, Union

from eventfeed.storage.models import NormalizedEvent

_NON_ALNUM_RE = re.compile(r"[^a-z0-9]")
_NON_WORD_RE = re.compile(r"[^a-z0-9\s]")


class Fingerprint(NamedTuple):
    """Identity of a logical event: title, calendar day and venue."""

    title: str
    date: str
    venue: str


def _compact(text: str) -> str:
    return _NON_ALNUM_RE.sub("", text.lower())


def normalise_text(text: str) -> str:
    """Lowercase, drop punctuation and collapse whitespace."""
    return " ".join(_NON_WORD_RE.sub("", text.lower()).split())


def _day(value: Union[date, datetime]) -> str:
    if isinstance(value, datetime):
        value = value.date()
    return value.isoformat()


def event_id(title: str, resolved: Union[date, datetime], venue_name: str) -> str:
    """Stable id: insensitive to case and punctuation, sensitive to the date."""
    payload = "|".join([_compact(title), _day(resolved), _compact(venue_name)])
    return "evt-" + hashlib.sha1(payload.encode("utf-8")).hexdigest()[:12]


def fingerprint(event: NormalizedEvent) -> Fingerprint:
    return Fingerprint(
        title=normalise_text(event.title),
        date=_day(event.date),
        venue=normalise_text(event.venue.name),
    )


def fingerprint_key(fp: Fingerprint) -> str:
    return "|".join(fp)


def title_similarity(a: str, b: str) -> float:
    """Jaccard index over whitespace-split normalised title tokens."""
    words_a = set(normalise_text(a).split())
    words_b = set(normalise_text(b).split())
    union = words_a | words_b
    if not union:
        return 0.0
    return len(words_a & words_b) / len(union)
