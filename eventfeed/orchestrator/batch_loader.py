"""Loading of per-venue raw record batches handed over by the extraction layer."""
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional

import orjson
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator
from pydantic.alias_generators import to_camel

from eventfeed.storage.models import RawEventRecord, VenueDescriptor


class VenueBatch(BaseModel):
    """Raw records extracted from one venue during one run."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    venue_id: str = Field(min_length=1)
    venue_name: Optional[str] = None
    venue: VenueDescriptor
    enabled: bool = True
    error: Optional[str] = None
    records: List[RawEventRecord] = Field(default_factory=list)

    @model_validator(mode="after")
    def _default_name(self) -> "VenueBatch":
        if not self.venue_name:
            self.venue_name = self.venue.name
        return self

    @property
    def failed(self) -> bool:
        return self.error is not None


def _rows(payload: Any) -> List[Dict[str, Any]]:
    if isinstance(payload, dict):
        payload = payload.get("venues", [])
    if not isinstance(payload, list):
        raise ValueError("Batch document must be a list or an object with a 'venues' list")
    return payload


def load_batches(path: Path, *, include_disabled: bool = False) -> List[VenueBatch]:
    """Read and validate venue batches, skipping disabled venues by default."""
    try:
        payload = orjson.loads(path.read_bytes())
    except orjson.JSONDecodeError as exc:
        raise ValueError(f"Invalid batch document {path}: {exc}") from exc

    batches: List[VenueBatch] = []
    seen = set()
    for row in _rows(payload):
        venue_id = (row.get("venueId") or row.get("venue_id")) if isinstance(row, dict) else None
        try:
            batch = VenueBatch.model_validate(row)
        except ValidationError as exc:
            raise ValueError(f"Invalid venue batch {venue_id}: {exc}") from exc
        if batch.venue_id in seen:
            raise ValueError(f"Duplicate venue batch {batch.venue_id}")
        seen.add(batch.venue_id)
        if not batch.enabled and not include_disabled:
            continue
        batches.append(batch)
    return batches
