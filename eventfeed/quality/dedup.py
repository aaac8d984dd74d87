"""Deduplication of canonical events produced by overlapping extraction paths."""
from __future__ import annotations

from typing import Dict, Iterable, List, Sequence

import structlog

from eventfeed.quality.keys import fingerprint, fingerprint_key, title_similarity
from eventfeed.storage.models import NormalizedEvent

LOGGER = structlog.get_logger(__name__)


def completeness_score(event: NormalizedEvent) -> float:
    """Rank duplicates by how much detail they carry."""
    score = 0.0
    if event.description:
        score += len(event.description) / 100
    if event.start_time is not None:
        score += 1
    if event.end_time is not None:
        score += 1
    if event.url:
        score += 1
    if event.image_url:
        score += 1
    if event.price:
        score += 0.5
    if event.tags:
        score += 0.5
    return score + event.confidence


class Deduplicator:
    """Collapses events sharing a fingerprint into their most complete member."""

    def key_for(self, event: NormalizedEvent) -> str:
        """Compute the canonical deduplication key for the event."""
        return fingerprint_key(fingerprint(event))

    def select_best(self, group: Sequence[NormalizedEvent]) -> NormalizedEvent:
        """Highest completeness score wins; max() keeps the first on ties."""
        return max(group, key=completeness_score)

    def deduplicate(self, events: Iterable[NormalizedEvent]) -> List[NormalizedEvent]:
        """Return one representative per fingerprint in first-seen group order."""
        groups: Dict[str, List[NormalizedEvent]] = {}
        for event in events:
            groups.setdefault(self.key_for(event), []).append(event)

        survivors: List[NormalizedEvent] = []
        removed = 0
        for key, group in groups.items():
            if len(group) > 1:
                removed += len(group) - 1
                LOGGER.debug("duplicate_group", key=key, size=len(group))
            survivors.append(self.select_best(group))

        if removed:
            LOGGER.info("duplicates_removed", removed=removed, kept=len(survivors))
        return survivors

    def find_similar(
        self,
        event: NormalizedEvent,
        pool: Iterable[NormalizedEvent],
        threshold: float = 0.8,
    ) -> List[NormalizedEvent]:
        """Events at the same venue and day whose titles overlap by at least ``threshold``."""
        target = fingerprint(event)
        similar: List[NormalizedEvent] = []
        for other in pool:
            if other is event:
                continue
            candidate = fingerprint(other)
            if candidate.venue != target.venue or candidate.date != target.date:
                continue
            if title_similarity(event.title, other.title) >= threshold:
                similar.append(other)
        return similar
