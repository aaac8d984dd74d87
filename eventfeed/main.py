"""Command-line entrypoints for the event feed pipeline."""
from __future__ import annotations

import argparse
import copy
import json
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional

import orjson
import tomllib
from dateutil import parser as dateparser
from dotenv import load_dotenv

from eventfeed.normalize.dates import DateTimeResolver, UnparseableDateError
from eventfeed.normalize.events import EventNormalizer
from eventfeed.observability.log import configure_logging
from eventfeed.observability.metrics import MetricsRegistry, record_duration
from eventfeed.orchestrator.batch_loader import load_batches
from eventfeed.orchestrator.runner import RunContext, RunResult, run_batches
from eventfeed.orchestrator.venue_status import VenueStatusTracker
from eventfeed.quality.dedup import Deduplicator
from eventfeed.storage.models import NormalizedEvent, StalenessReport

DEFAULT_SETTINGS_PATH = Path("config/settings.toml")
DEFAULT_LOGGING_PATH = Path("config/logging.yaml")

DEFAULT_SETTINGS: Dict[str, Dict[str, object]] = {
    "app": {
        "status_file": "data/venue-status.json",
        "output_dir": "data/output",
        "manifest_dir": "data/manifests",
        "metrics_dir": "data/metrics",
        "timezone": "America/Los_Angeles",
    },
    "staleness": {
        "stale_days_threshold": 90,
        "consecutive_empty_threshold": 3,
        "history_size": 10,
    },
}


def load_settings(path: Path) -> Dict[str, Dict[str, object]]:
    """Read the TOML configuration file over the built-in defaults."""
    settings = copy.deepcopy(DEFAULT_SETTINGS)
    if not path.exists():
        return settings
    with path.open("rb") as handle:
        loaded = tomllib.load(handle)
    for section, values in loaded.items():
        settings.setdefault(section, {}).update(values)
    return settings


def build_arg_parser() -> argparse.ArgumentParser:
    """Create the CLI argument parser."""
    parser = argparse.ArgumentParser(prog="eventfeed", description="Normalize, deduplicate and track venue event feeds")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Process extracted venue batches")
    run.add_argument("--input", required=True, help="JSON document of venue batches")
    run.add_argument("--include-past", action="store_true", help="Keep past events in the feed")
    run.add_argument("--skip-stale", action="store_true", help="Skip venues recommended for disabling")
    run.add_argument("--staleness-report", action="store_true", help="Print the detailed staleness report")
    run.add_argument("--dry-run", action="store_true", help="Do not save status or write outputs")
    run.add_argument("--run-id", help="Override the generated run identifier")

    status = sub.add_parser("status", help="Show venue staleness status")
    status.add_argument("--json", action="store_true", help="Output as JSON")
    status.add_argument("--as-of", help="ISO instant to evaluate staleness at")

    parse_date = sub.add_parser("parse-date", help="Resolve a date phrase the way the normalizer does")
    parse_date.add_argument("text", help="Date text, e.g. 'Every Thursday'")
    parse_date.add_argument("--time", help="Optional start time text")
    parse_date.add_argument("--reference", help="ISO reference instant (defaults to now)")

    return parser


def _parse_instant(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    parsed = dateparser.isoparse(value)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def build_tracker(settings: Dict[str, Dict[str, object]]) -> VenueStatusTracker:
    staleness = settings["staleness"]
    return VenueStatusTracker(
        Path(str(settings["app"]["status_file"])),
        timezone_name=str(settings["app"]["timezone"]),
        stale_days=int(staleness["stale_days_threshold"]),
        consecutive_empty=int(staleness["consecutive_empty_threshold"]),
        history_size=int(staleness["history_size"]),
    )


def build_context(settings: Dict[str, Dict[str, object]], *, run_id: str) -> RunContext:
    """Construct the per-run collaborators."""
    metrics = MetricsRegistry()
    resolver = DateTimeResolver(str(settings["app"]["timezone"]))
    return RunContext(
        run_id=run_id,
        normalizer=EventNormalizer(resolver, metrics=metrics),
        deduplicator=Deduplicator(),
        tracker=build_tracker(settings),
        metrics=metrics,
    )


def _write_events(path: Path, events: List[NormalizedEvent]) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    payload = [event.model_dump(mode="json", by_alias=True) for event in events]
    path.write_bytes(orjson.dumps(payload, option=orjson.OPT_INDENT_2))
    return path


def _overview(reports: List[StalenessReport]) -> List[Dict[str, object]]:
    return [
        {
            "venue_id": report.venue_id,
            "recommendation": report.recommendation,
            "reason": report.reason,
        }
        for report in reports
        if report.recommendation != "keep"
    ]


def run_command(args: argparse.Namespace, settings: Dict[str, Dict[str, object]]) -> RunResult:
    """Execute the run command end-to-end."""
    try:
        batches = load_batches(Path(args.input))
    except (OSError, ValueError) as exc:
        raise SystemExit(f"Failed to load batches: {exc}")

    scraped_at = datetime.now(timezone.utc)
    run_id = getattr(args, "run_id", None) or scraped_at.strftime("%Y%m%dT%H%M%S")
    ctx = build_context(settings, run_id=run_id)

    with record_duration(ctx.metrics, "run_duration_ms"):
        result = run_batches(
            ctx,
            batches,
            scraped_at=scraped_at,
            include_past=getattr(args, "include_past", False),
            skip_stale=getattr(args, "skip_stale", False),
        )

    reports = ctx.tracker.generate_report(scraped_at)
    by_category: Dict[str, int] = {}
    for event in result.events:
        by_category[event.category.value] = by_category.get(event.category.value, 0) + 1

    summary: Dict[str, object] = {
        "run_id": run_id,
        "venues": {outcome.venue_id: outcome.stats() for outcome in result.outcomes},
        "skipped": result.skipped,
        "events": len(result.events),
        "by_category": by_category,
        "staleness": _overview(reports),
        "dry_run": bool(getattr(args, "dry_run", False)),
    }

    if not getattr(args, "dry_run", False):
        ctx.tracker.save()
        app = settings["app"]
        events_path = _write_events(Path(str(app["output_dir"])) / f"events-{run_id}.json", result.events)
        metrics_path = ctx.metrics.export(path=Path(str(app["metrics_dir"])) / f"run_{run_id}.json", run_id=run_id)
        manifest_dir = Path(str(app["manifest_dir"]))
        manifest_dir.mkdir(parents=True, exist_ok=True)
        manifest = {
            **summary,
            "paths": {"events": str(events_path), "metrics": str(metrics_path), "status": str(ctx.tracker.path)},
            "metrics": ctx.metrics.snapshot(),
            "exit_code": 0,
        }
        (manifest_dir / f"run-{run_id}.json").write_text(json.dumps(manifest, indent=2), encoding="utf-8")
        summary["paths"] = manifest["paths"]

    print(json.dumps(summary, indent=2))
    if getattr(args, "staleness_report", False):
        print(ctx.tracker.format_report(reports))
    return result


def status_command(args: argparse.Namespace, settings: Dict[str, Dict[str, object]]) -> List[StalenessReport]:
    tracker = build_tracker(settings)
    reports = tracker.generate_report(_parse_instant(getattr(args, "as_of", None)))
    if getattr(args, "json", False):
        print(json.dumps([report.model_dump(mode="json") for report in reports], indent=2))
    else:
        print(tracker.format_report(reports))
    return reports


def parse_date_command(args: argparse.Namespace, settings: Dict[str, Dict[str, object]]) -> None:
    resolver = DateTimeResolver(str(settings["app"]["timezone"]))
    reference = _parse_instant(args.reference)
    try:
        resolved = resolver.parse_datetime(args.text, args.time, reference)
    except UnparseableDateError as exc:
        print(json.dumps({"text": args.text, "error": str(exc)}, indent=2))
        raise SystemExit(1)
    parsed_time = resolver.parse_time(args.time)
    print(
        json.dumps(
            {
                "text": args.text,
                "resolved": resolved.isoformat(),
                "start_time": parsed_time.strftime("%H:%M") if parsed_time else None,
                "recurring_pattern": resolver.detect_recurring_pattern(args.text),
            },
            indent=2,
        )
    )


def main(argv: Optional[List[str]] = None) -> None:
    """Entry point for the CLI."""
    load_dotenv()
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    settings = load_settings(Path(os.environ.get("EVENTFEED_SETTINGS", DEFAULT_SETTINGS_PATH)))
    configure_logging(DEFAULT_LOGGING_PATH, verbose=args.verbose)

    if args.command == "run":
        run_command(args, settings)
        return

    if args.command == "status":
        status_command(args, settings)
        return

    if args.command == "parse-date":
        parse_date_command(args, settings)


if __name__ == "__main__":
    main()
