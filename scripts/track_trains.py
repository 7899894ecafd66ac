#!/usr/bin/env python3
"""Follow live train positions with origin/destination enrichment.

Polls the Digitraffic position feed and prints one line per train every
tick.  Origins and destinations appear once their timetable has been
fetched through the rate-limited metadata queue.

Usage
-----
::

    python scripts/track_trains.py
    python scripts/track_trains.py --train 8 --train 905 --cache-dir ~/.cache/pyrata

Options::

    --train N            Only print this train number (repeatable)
    --ticks N            Stop after N ticks (default: run until interrupted)
    --cache-dir DIR      Persist metadata per service day under DIR
    --json               Output each tick as JSON
    -v, --verbose        Debug logging
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

# Allow running from the repo root without installing the package.
_repo = Path(__file__).resolve().parent.parent
_src = _repo / "src"
if _src.is_dir():
    sys.path.insert(0, str(_src))

from pyrata import EnrichedPosition, RataConfig, RataError, Station, TrainTracker, station_label  # noqa: E402


def _format_line(position: EnrichedPosition, stations: dict[str, Station]) -> str:
    route = f"{station_label(stations, position.origin) or '?'} → {station_label(stations, position.dest) or '?'}"
    speed = f"{position.speed:.0f} km/h" if position.speed is not None else ""
    coords = ""
    if position.latitude is not None and position.longitude is not None:
        coords = f"({position.latitude:.4f}, {position.longitude:.4f})"
    return f"{position.train_number:>6}  {route:<40} {speed:>9}  {coords}"


async def main() -> None:
    parser = argparse.ArgumentParser(description="Print live train positions enriched with origin/destination.")
    parser.add_argument("--train", action="append", type=int, default=[], help="Only print this train number")
    parser.add_argument("--ticks", type=int, default=0, help="Stop after N ticks (0 = forever)")
    parser.add_argument("--cache-dir", help="Directory for the durable metadata cache")
    parser.add_argument("--json", action="store_true", help="Output JSON")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    else:
        logging.basicConfig(level=logging.WARNING)

    overrides = {"cache_dir": args.cache_dir} if args.cache_dir else {}
    config = RataConfig.from_env(**overrides)
    wanted = set(args.train)

    async with TrainTracker(config) as tracker:
        # Subscribe before the first await so the immediate first tick is kept.
        updates = tracker.updates()
        try:
            stations = await tracker.client.get_stations()
        except RataError as exc:
            print(f"Station lookup unavailable: {exc}", file=sys.stderr)
            stations = {}

        ticks = 0
        async for positions in updates:
            selected = [p for p in positions if not wanted or p.train_number in wanted]
            if args.json:
                print(json.dumps([p.model_dump(mode="json") for p in selected], ensure_ascii=False))
            else:
                print(f"── {len(selected)} trains ({tracker.executor.pending} metadata requests queued)")
                for position in sorted(selected, key=lambda p: p.train_number):
                    print(_format_line(position, stations))
            ticks += 1
            if args.ticks and ticks >= args.ticks:
                break


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass
