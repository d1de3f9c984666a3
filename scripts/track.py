#!/usr/bin/env python3
"""Track a device's location from the command line.

Connects to the OwnTracks MQTT broker, runs the startup policy (continuous
tracking straight away when permission was granted before, otherwise one
acquisition first) and prints every reading and error until interrupted.

Usage
-----
Set environment variables and run::

    export GEOTRACK_MQTT_HOST="broker.example.com"
    export GEOTRACK_MQTT_TOPIC="owntracks/alice/phone"
    export GEOTRACK_MQTT_USERNAME="alice"
    export GEOTRACK_MQTT_PASSWORD="secret"
    # optional sinks
    export SUPABASE_URL=... SUPABASE_KEY=...
    export BRAZE_API_KEY=... BRAZE_BASE_URL=...
    python scripts/track.py

Options::

    --once               Acquire a single reading, print the stored record, exit
    --interval SECONDS   Backstop poll interval (default from config)
    --history N          Print the N most recent stored records and exit
    -v, --verbose        Enable DEBUG logging
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Any

# Allow running from the repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from pygeotrack import GeoTrackClient, PositionError, TrackerConfig, TrackerEvent  # noqa: E402
from pygeotrack.state.events import EventKind  # noqa: E402


def _print_json(data: Any) -> None:
    print(json.dumps(data, indent=2, default=str))


def _print_event(event: TrackerEvent) -> None:
    if event.kind == EventKind.READING and event.reading is not None:
        r = event.reading
        print(f"[{event.source}] {r.latitude:.6f}, {r.longitude:.6f} ±{r.accuracy or 0:.1f}m")
    elif event.kind == EventKind.ERROR and event.error is not None:
        print(f"[{event.source}] error: {event.error.message}")
    else:
        print(f"state: {event.state}")


async def _run(args: argparse.Namespace) -> int:
    overrides: dict[str, Any] = {}
    if args.interval is not None:
        overrides["backstop_interval"] = args.interval
    config = TrackerConfig.from_env(**overrides)

    async with GeoTrackClient(config) as client:
        status = await client.test_connection()
        print(f"device: {client.device_id}")
        print(f"database: {'connected' if status.ok else 'unavailable'} ({status.detail})")

        if args.history is not None:
            records = await client.history(args.history)
            _print_json([record.to_row() for record in records])
            return 0

        if args.once:
            try:
                await client.tracker.acquire_once()
            except PositionError as exc:
                print(f"error: {exc}", file=sys.stderr)
                return 1
            record = await client.current_location()
            _print_json(record.to_row() if record is not None else None)
            return 0

        client.tracker.add_listener(_print_event)
        await client.tracker.startup()
        if not client.tracker.is_tracking:
            return 1
        try:
            await asyncio.Event().wait()
        except asyncio.CancelledError:
            pass
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description=__doc__, formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("--once", action="store_true", help="Acquire a single reading and exit")
    parser.add_argument("--interval", type=float, default=None, help="Backstop poll interval in seconds")
    parser.add_argument("--history", type=int, default=None, metavar="N", help="Print stored records and exit")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable DEBUG logging")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        return asyncio.run(_run(args))
    except KeyboardInterrupt:
        return 0


if __name__ == "__main__":
    sys.exit(main())
