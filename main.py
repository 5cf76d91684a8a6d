"""Satellite visibility timetable and live tracker — CLI entry point.

Usage examples
--------------
  python main.py
  python main.py --lat 51.5074 --lon -0.1278 --name ISS --format json
  python main.py --group stations --min-elevation 15 --limit 10
  python main.py --tle-file sats.tle --watch --target "ICEYE-X2"
"""

from __future__ import annotations

import argparse
import sys
from datetime import datetime, timedelta, timezone

from export import format_live_json, format_snapshot_json
from pass_finder import MIN_ELEVATION_DEG
from priority import visibility_status
from propagator import Observer
from telemetry import LiveTick, format_countdown
from tle_cache import get_element_sets, load_element_sets
from tracker import LIVE_INTERVAL, REFRESH_INTERVAL, CatalogSnapshot, Tracker

# Otaniemi, Espoo
DEFAULT_LAT = 60.18
DEFAULT_LON = 24.83


# ---------------------------------------------------------------------------
# CLI
# ---------------------------------------------------------------------------

def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(
        description="Predict when satellites are visible from a ground location "
                    "and track them live.",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    p.add_argument("--lat", type=float, default=DEFAULT_LAT,
                   help="Observer latitude, degrees North")
    p.add_argument("--lon", type=float, default=DEFAULT_LON,
                   help="Observer longitude, degrees East")
    p.add_argument("--alt", type=float, default=0.0,
                   help="Observer altitude, metres")

    src = p.add_mutually_exclusive_group()
    src.add_argument("--name", default="ICEYE",
                     help="CelesTrak satellite name query")
    src.add_argument("--group",
                     help="CelesTrak group query (e.g. stations, weather)")
    src.add_argument("--tle-file", dest="tle_file",
                     help="Read three-line TLEs from a local file instead")

    p.add_argument("--hours", type=float, default=24.0,
                   help="Lookahead in hours")
    p.add_argument("--min-elevation", type=float, default=MIN_ELEVATION_DEG,
                   dest="min_el",
                   help="Elevation at which an object counts as visible, degrees")
    p.add_argument("--format", choices=["table", "json"], default="table",
                   help="Output format")
    p.add_argument("--limit", type=int, default=None,
                   help="Show only the first N objects in priority order")
    p.add_argument("--refresh", action="store_true",
                   help="Force re-fetch of TLEs from CelesTrak (ignore cache)")
    p.add_argument("--watch", action="store_true",
                   help="Live mode: print telemetry for the focused object every tick")
    p.add_argument("--target",
                   help="Object to focus in live mode (default: top priority)")
    p.add_argument("--interval", type=float, default=LIVE_INTERVAL.total_seconds(),
                   help="Live tick interval, seconds")
    p.add_argument("--refresh-interval", type=float,
                   default=REFRESH_INTERVAL.total_seconds(), dest="refresh_interval",
                   help="Window recomputation interval, seconds")
    p.add_argument("--ticks", type=int, default=None,
                   help="Stop live mode after this many ticks")
    return p


# ---------------------------------------------------------------------------
# Formatters
# ---------------------------------------------------------------------------

def _fmt_time(dt: datetime) -> str:
    return dt.strftime("%Y-%m-%d %H:%M:%S")


def _format_timetable(snapshot: CatalogSnapshot, limit: int | None = None) -> str:
    sats = snapshot.satellites[:limit] if limit is not None else snapshot.satellites
    if not sats:
        return "No satellites in catalog."

    now = snapshot.computed_at
    hdr = (
        f"{'#':<4} {'Satellite':<24} {'NORAD':>6}  {'Status':<9} "
        f"{'In':>6}  {'Window (UTC)':<13}  {'Passes':>6}  Note"
    )
    sep = "─" * len(hdr)
    rows = [hdr, sep]

    for i, sat in enumerate(sats, 1):
        status = visibility_status(sat.windows, now, tz=timezone.utc)
        if status.status == "UPCOMING":
            eta = f"{status.minutes}m"
        elif status.status == "VISIBLE":
            eta = "now"
        else:
            eta = "N/A"
        warn = "⚠ STALE TLE" if sat.element_set.is_stale(now) else ""
        rows.append(
            f"{i:<4} {sat.name:<24} {sat.element_set.norad_id:>6}  "
            f"{status.status:<9} {eta:>6}  {status.window_str:<13}  "
            f"{len(sat.windows):>6}  {warn}"
        )

    return "\n".join(rows)


def _format_live(name: str, tick: LiveTick) -> str:
    t = tick.target
    if not t.available:
        head = f"{_fmt_time(tick.time)}  {name}: no data (propagation failed)"
    else:
        head = (
            f"{_fmt_time(tick.time)}  {name}: "
            f"az {t.azimuth_deg:5.1f}° {t.compass:<2}  el {t.elevation_deg:5.1f}°  "
            f"range {t.range_km:7.1f} km ({t.range_rate_km_s:+.2f} km/s)  "
            f"alt {t.altitude_km:6.1f} km  v {t.speed_km_s:.2f} km/s"
            + ("  VISIBLE" if t.visible else "")
        )
    if not tick.look_points:
        return head + "\n    (no visibility window in lookahead)"

    lines = [head]
    for lp in tick.look_points:
        lines.append(
            f"    {lp.label}  in {format_countdown(lp.time_to_destination):>6}  "
            f"az {lp.azimuth_deg:5.1f}° {lp.compass:<2}  el {lp.elevation_deg:5.1f}°  "
            f"range {lp.range_km:7.1f} km"
        )
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------

def main() -> None:
    args = _build_parser().parse_args()

    # ── 1. Catalog ────────────────────────────────────────────────────────
    if args.tle_file:
        _log(f"Loading TLEs from {args.tle_file}…")
        element_sets = load_element_sets(args.tle_file)
    else:
        query = f"group {args.group}" if args.group else f"name {args.name}"
        _log(f"Fetching TLEs from CelesTrak ({query})…")
        element_sets = get_element_sets(
            name=args.name, group=args.group, force_refresh=args.refresh,
        )
    now = datetime.now(timezone.utc).replace(microsecond=0)
    n_stale = sum(1 for es in element_sets if es.is_stale(now))
    _log(f"  {len(element_sets)} TLEs loaded ({n_stale} stale).")

    # ── 2. Tracker ────────────────────────────────────────────────────────
    observer = Observer(args.lat, args.lon, args.alt)
    tracker = Tracker(
        element_sets, observer,
        threshold_deg=args.min_el,
        lookahead=timedelta(hours=args.hours),
    )
    tracker.target_name = args.target
    _log(f"  {len(tracker.catalog)} valid satellites.")

    # ── 3. Windows ────────────────────────────────────────────────────────
    _log(
        f"Scanning {args.hours:g} h from {_fmt_time(now)} UTC "
        f"(threshold {args.min_el:g}°)…"
    )
    snapshot = tracker.refresh(now)
    n_windows = sum(len(s.windows) for s in snapshot.satellites)
    _log(f"  {n_windows} visibility windows found.\n")

    if not args.watch:
        if args.format == "json":
            print(format_snapshot_json(snapshot))
            return
        print(
            f"Visibility timetable  ({args.lat:.4f}°N, {args.lon:.4f}°E, {args.alt:g} m)\n"
            f"Window : {_fmt_time(now)} → "
            f"{_fmt_time(now + timedelta(hours=args.hours))} UTC\n"
        )
        print(_format_timetable(snapshot, args.limit))
        return

    # ── 4. Live mode ──────────────────────────────────────────────────────
    if args.target and snapshot.find(args.target) is None:
        _log(f"Unknown target {args.target!r}; falling back to top priority.")
        tracker.target_name = None

    def on_refresh(snap: CatalogSnapshot | None) -> None:
        if snap is not None:
            _log(f"[{_fmt_time(snap.computed_at)}] windows refreshed")

    def on_tick(tick: LiveTick | None) -> None:
        sat = tracker.target()
        if tick is None or sat is None:
            _log("No target available.")
            return
        if args.format == "json":
            print(format_live_json(tick), flush=True)
        else:
            print(_format_live(sat.name, tick), flush=True)

    try:
        tracker.run(
            on_tick, on_refresh,
            live_interval=timedelta(seconds=args.interval),
            refresh_interval=timedelta(seconds=args.refresh_interval),
            ticks=args.ticks,
        )
    except KeyboardInterrupt:
        _log("Stopped.")


def _log(msg: str) -> None:
    print(msg, file=sys.stderr)


if __name__ == "__main__":
    main()
