#!/usr/bin/env python3
"""
Speedprobe CLI -- pick the best test server and browse test history.

Usage::

    python main.py                              # probe default servers, pick the fastest
    python main.py --endpoint https://a.example --endpoint wss://b.example/ws
    python main.py --discover 10                # add nearby speedtest.net servers
    python main.py --criteria nearest --location 52.5,13.4
    python main.py --json                       # selection as JSON to stdout
    python main.py -o selection.json            # save selection to file
    python main.py --record 95.2 12.4 18.0      # store a completed test result
    python main.py --history                    # show stored results
    python main.py --stats --days 7             # statistics for the last week
    python main.py --export-csv history.csv --quality Good
    python main.py --delete-older-than 90
    python main.py --low-speed-alerts on --low-speed-threshold 10
"""
from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

import aiohttp
from rich.prompt import Confirm

from speedprobe.buffer import MeasurementBuffer
from speedprobe.config import load_config, save_config, set_config_value
from speedprobe.constants import MAX_PROBE_TIMEOUT, MIN_PROBE_TIMEOUT
from speedprobe.endpoints import (
    Endpoint,
    default_endpoints,
    endpoints_from_urls,
    fetch_ookla_endpoints,
)
from speedprobe.errors import SpeedprobeError
from speedprobe.history import HistoryStore, SpeedTestResult
from speedprobe.logging_setup import configure_logging
from speedprobe.notify import LowSpeedAlerter
from speedprobe.probe import ProbeExecutor
from speedprobe.quality import ConnectionQuality
from speedprobe.selector import SelectionCriteria, ServerSelector
from speedprobe.session import MeasurementSession
from speedprobe.storage import FileStorage
from ui.dashboard import (
    ConsoleNotifier,
    console,
    print_header,
    print_history,
    print_probe_results,
    print_selected,
    print_statistics,
)
from ui.output import create_selection_json, save_json, save_text

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Parameter validation
# ---------------------------------------------------------------------------

def _validate(timeout: float, discover: int = 0) -> None:
    """Raise ``ValueError`` if any parameter is out of range."""
    if not MIN_PROBE_TIMEOUT <= timeout <= MAX_PROBE_TIMEOUT:
        raise ValueError(f"Timeout must be between {MIN_PROBE_TIMEOUT} and {MAX_PROBE_TIMEOUT} s")
    if discover < 0:
        raise ValueError("--discover must be >= 0")


def _parse_location(raw: Optional[str]) -> Optional[Tuple[float, float]]:
    """Parse ``"LAT,LON"``; raises ``ValueError`` on bad input."""
    if not raw:
        return None
    parts = raw.split(",")
    if len(parts) != 2:
        raise ValueError(f"Location must be LAT,LON, got {raw!r}")
    lat, lon = float(parts[0]), float(parts[1])
    if not (-90 <= lat <= 90 and -180 <= lon <= 180):
        raise ValueError(f"Location out of range: {raw!r}")
    return lat, lon


# ---------------------------------------------------------------------------
# Server selection
# ---------------------------------------------------------------------------

async def run_selection(
    candidates: List[Endpoint],
    *,
    timeout: float,
    criteria: SelectionCriteria = SelectionCriteria.FASTEST,
    location: Optional[Tuple[float, float]] = None,
    discover: int = 0,
    json_output: bool = False,
    output_file: Optional[str] = None,
) -> Dict[str, Any]:
    """Probe *candidates*, pick the best one and report it."""
    show_ui = not json_output

    if show_ui:
        print_header()

    async with ProbeExecutor(timeout=timeout) as executor:
        if discover:
            try:
                candidates = candidates + await fetch_ookla_endpoints(executor.session, limit=discover)
            except (aiohttp.ClientError, asyncio.TimeoutError, ValueError) as exc:
                logger.warning("Server discovery failed, using configured servers: %s", exc)

        if show_ui:
            console.print(f"[dim]Probing {len(candidates)} servers...[/dim]")

        selector = ServerSelector(executor, timeout=timeout, criteria=criteria, location=location)
        best = await selector.select_best(candidates)

    results = selector.last_results
    chosen = next(r for r in results if r.endpoint is best)

    if show_ui:
        print_probe_results(results, chosen=best)
        print_selected(best, chosen.reachable)

    doc = create_selection_json(results, chosen=best, criteria=criteria.value)

    if json_output:
        print(json.dumps(doc, indent=2))

    if output_file:
        save_json(doc, output_file)
        if show_ui:
            console.print(f"\n[green]Selection saved to:[/green] {output_file}")

    return doc


# ---------------------------------------------------------------------------
# History
# ---------------------------------------------------------------------------

def _open_history(config: Dict[str, Any]) -> HistoryStore:
    return HistoryStore(FileStorage(config.get("history_file") or None))


def _select_results(
    store: HistoryStore,
    days: Optional[int] = None,
    connection_type: Optional[str] = None,
    quality: Optional[str] = None,
) -> List[SpeedTestResult]:
    """Intersect the requested filters, keeping store (newest-first) order."""
    selected = store.results
    filters = []
    if days is not None:
        now = datetime.now(timezone.utc)
        filters.append(store.query_range(now - timedelta(days=days), now))
    if connection_type:
        filters.append(store.query_connection_type(connection_type))
    if quality:
        filters.append(store.query_quality(quality))

    for subset in filters:
        keep = {r.id for r in subset}
        selected = [r for r in selected if r.id in keep]
    return selected


def _make_alerter(config: Dict[str, Any]) -> LowSpeedAlerter:
    def _ask() -> bool:
        return Confirm.ask("Allow low-speed notifications?", default=True)

    def _remember(when: datetime, granted: bool) -> None:
        config["last_permission_request"] = when.isoformat()
        config["notifications_enabled"] = granted
        save_config(config)

    return LowSpeedAlerter.from_config(
        config,
        notifier=ConsoleNotifier(),
        request_permission=_ask,
        on_request=_remember,
    )


def record_result(
    store: HistoryStore,
    config: Dict[str, Any],
    download: float,
    upload: float,
    ping: float,
    jitter: Optional[float] = None,
    connection_type: str = "Unknown",
    server_location: str = "Unknown",
) -> SpeedTestResult:
    """Store a result measured elsewhere, with the usual low-speed check."""
    session = MeasurementSession(MeasurementBuffer(), store, alerter=_make_alerter(config))
    session.start()
    session.record(download, "download")
    session.record(upload, "upload")
    session.record(ping, "ping")
    return session.finish(
        download_speed=download,
        upload_speed=upload,
        ping=ping,
        jitter=jitter,
        connection_type=connection_type,
        server_location=server_location,
    )


def run_history_command(args: argparse.Namespace, config: Dict[str, Any]) -> None:
    store = _open_history(config)

    if args.record:
        download, upload, ping = args.record
        result = record_result(
            store, config, download, upload, ping,
            jitter=args.jitter,
            connection_type=args.connection_type,
            server_location=args.server_location,
        )
        console.print(
            f"[green]Recorded[/green] {result.id[:8]} "
            f"([{result.connection_quality.color}]{result.connection_quality.value}"
            f"[/{result.connection_quality.color}])"
        )

    if args.import_json:
        with open(args.import_json, "rb") as fh:
            added = store.import_json(fh.read())
        console.print(f"[green]Imported {added} results from:[/green] {args.import_json}")

    if args.delete:
        removed = store.delete(args.delete)
        console.print(f"Deleted {removed} result(s)")

    if args.delete_older_than is not None:
        removed = store.delete_older_than(args.delete_older_than)
        console.print(f"Deleted {removed} result(s) older than {args.delete_older_than} days")

    if args.clear_history:
        store.clear()
        console.print("Cleared all test results")

    selected = _select_results(store, args.days, args.type, args.quality)

    if args.history:
        print_history(selected)

    if args.stats:
        stats = store.statistics(selected)
        if args.json:
            print(json.dumps(stats.to_dict(), indent=2))
        else:
            print_statistics(stats)

    if args.export_csv:
        save_text(store.export_csv(selected), args.export_csv)
        console.print(f"[green]CSV written to:[/green] {args.export_csv}")

    if args.export_json:
        save_text(store.export_json(selected).decode("utf-8"), args.export_json)
        console.print(f"[green]History written to:[/green] {args.export_json}")


# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

def run_settings_command(args: argparse.Namespace, config: Dict[str, Any]) -> bool:
    """Persist alert settings given on the command line.  True if any were."""
    changes: Dict[str, Any] = {}
    if args.low_speed_alerts is not None:
        changes["low_speed_notifications"] = args.low_speed_alerts == "on"
    if args.low_speed_threshold is not None:
        if args.low_speed_threshold <= 0:
            raise ValueError("--low-speed-threshold must be > 0")
        changes["low_speed_threshold"] = args.low_speed_threshold

    for key, value in changes.items():
        path = set_config_value(key, value)
        config[key] = value
        console.print(f"[green]Saved[/green] {key} = {value} [dim]({path})[/dim]")
    return bool(changes)


_HISTORY_FLAGS = (
    "record", "import_json", "delete", "clear_history",
    "history", "stats", "export_csv", "export_json",
)


def _wants_history(args: argparse.Namespace) -> bool:
    return args.delete_older_than is not None or any(getattr(args, f) for f in _HISTORY_FLAGS)


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Speedprobe -- server selection and speed-test history",
    )
    # Selection
    parser.add_argument("--endpoint", action="append", metavar="URL", help="Candidate server URL (repeatable)")
    parser.add_argument("--discover", type=int, default=0, metavar="N", help="Also probe N nearby speedtest.net servers")
    parser.add_argument("--timeout", type=float, default=None, metavar="SECS", help="Per-probe timeout in seconds (default: 10)")
    parser.add_argument("--criteria", choices=[c.value for c in SelectionCriteria], default=None, help="Selection policy (default: fastest)")
    parser.add_argument("--location", type=str, metavar="LAT,LON", help="Client location for nearest/automatic selection")

    # Output
    parser.add_argument("--json", "-j", action="store_true", help="Output as JSON")
    parser.add_argument("--output", "-o", type=str, metavar="FILE", help="Save selection to JSON file")

    # History mutations
    parser.add_argument("--record", type=float, nargs=3, metavar=("DOWN", "UP", "PING"), help="Store a completed test (Mbps, Mbps, ms)")
    parser.add_argument("--jitter", type=float, default=None, metavar="MS", help="Jitter for --record")
    parser.add_argument("--connection-type", default="Unknown", metavar="TYPE", help="Connection type for --record (e.g. WiFi)")
    parser.add_argument("--server-location", default="Unknown", metavar="NAME", help="Server location for --record")
    parser.add_argument("--import-json", type=str, metavar="FILE", help="Merge results from an exported history file")
    parser.add_argument("--delete", type=str, metavar="ID", help="Delete one result by id")
    parser.add_argument("--delete-older-than", type=int, metavar="DAYS", help="Delete results older than DAYS")
    parser.add_argument("--clear-history", action="store_true", help="Delete all stored results")

    # History queries
    parser.add_argument("--history", action="store_true", help="Show stored results")
    parser.add_argument("--stats", action="store_true", help="Show statistics for stored results")
    parser.add_argument("--days", type=int, metavar="N", help="Only results from the last N days")
    parser.add_argument("--type", type=str, metavar="TYPE", help="Only results with this connection type")
    parser.add_argument("--quality", choices=[q.value for q in ConnectionQuality], help="Only results of this quality")
    parser.add_argument("--export-csv", type=str, metavar="FILE", help="Write selected results as CSV")
    parser.add_argument("--export-json", type=str, metavar="FILE", help="Write selected results as JSON")

    # Settings
    parser.add_argument("--low-speed-alerts", choices=["on", "off"], help="Turn low-speed notifications on or off")
    parser.add_argument("--low-speed-threshold", type=float, metavar="MBPS", help="Download speed below which to alert")

    parser.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    return parser


def main(argv: Optional[List[str]] = None) -> None:
    args = build_parser().parse_args(argv)
    configure_logging("DEBUG" if args.verbose else "WARNING")

    config = load_config()
    timeout = args.timeout if args.timeout is not None else float(config["probe_timeout"])

    try:
        _validate(timeout=timeout, discover=args.discover)
        location = _parse_location(args.location)
    except ValueError as exc:
        console.print(f"[red]Error: {exc}[/red]")
        sys.exit(1)

    try:
        if run_settings_command(args, config) and not _wants_history(args):
            return

        if _wants_history(args):
            run_history_command(args, config)
            return

        urls = args.endpoint or config.get("endpoints") or []
        candidates = endpoints_from_urls(urls) if urls else default_endpoints()
        criteria = SelectionCriteria(args.criteria or config.get("selection", "fastest"))

        asyncio.run(
            run_selection(
                candidates,
                timeout=timeout,
                criteria=criteria,
                location=location,
                discover=args.discover,
                json_output=args.json,
                output_file=args.output,
            )
        )

    except KeyboardInterrupt:
        console.print("\n[yellow]Cancelled by user[/yellow]")
        sys.exit(1)
    except (SpeedprobeError, IOError, ValueError) as exc:
        console.print(f"\n[red]Error: {exc}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
