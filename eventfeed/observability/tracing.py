"""Tracing helpers binding run and venue context to log lines."""
from __future__ import annotations

import contextlib
import time
from typing import Iterator, Optional

import structlog
from structlog.contextvars import bind_contextvars, clear_contextvars


def _logger():
    return structlog.get_logger("eventfeed.trace")


def set_context(*, run_id: str, venue_id: Optional[str] = None) -> None:
    if venue_id is None:
        bind_contextvars(run_id=run_id)
    else:
        bind_contextvars(run_id=run_id, venue_id=venue_id)
    _logger().debug("trace_context", run_id=run_id, venue_id=venue_id)


def clear_context() -> None:
    clear_contextvars()


@contextlib.contextmanager
def span(*, name: str, venue_id: Optional[str] = None) -> Iterator[None]:
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed_ms = int((time.perf_counter() - start) * 1000)
        _logger().info("trace_span", span=name, venue_id=venue_id, elapsed_ms=elapsed_ms)
