"""Load and save the durable venue status document."""
from __future__ import annotations

import os
from datetime import datetime, timezone
from pathlib import Path

import orjson
import structlog
from pydantic import ValidationError

from eventfeed.storage.models import VenueStatusDocument

LOGGER = structlog.get_logger(__name__)

STATUS_FILE = "venue-status.json"


def empty_document() -> VenueStatusDocument:
    return VenueStatusDocument(updated_at=datetime.now(timezone.utc))


def load_status_document(path: Path) -> VenueStatusDocument:
    """Read the store; a missing or unreadable file yields an empty document."""
    if not path.exists():
        return empty_document()
    try:
        payload = orjson.loads(path.read_bytes())
        return VenueStatusDocument.model_validate(payload)
    except (OSError, orjson.JSONDecodeError, ValidationError) as exc:
        LOGGER.warning("venue_status_unreadable", path=str(path), error=str(exc))
        return empty_document()


def save_status_document(path: Path, document: VenueStatusDocument) -> Path:
    """Rewrite the whole store in one atomic replace; errors propagate."""
    path.parent.mkdir(parents=True, exist_ok=True)
    blob = orjson.dumps(document.model_dump(mode="json", by_alias=True), option=orjson.OPT_INDENT_2)
    tmp = path.with_name(path.name + ".tmp")
    tmp.write_bytes(blob)
    os.replace(tmp, path)
    return path
