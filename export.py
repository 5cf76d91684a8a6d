"""JSON export of catalog snapshots and live ticks.

Produces plain dicts ready for ``json.dump``.  Times are ISO-8601 UTC;
angles are rounded to 0.1°, distances to 0.1 km.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone

from look_points import LookPoint
from pass_finder import VisibilityWindow
from priority import classify, visibility_status
from propagator import GeodeticPoint
from telemetry import LiveTick, format_countdown
from tracker import CatalogSnapshot, Satellite


# ---------------------------------------------------------------------------
# Record builders
# ---------------------------------------------------------------------------

def _point(p: GeodeticPoint | None) -> dict | None:
    if p is None:
        return None
    return {
        "lat": round(p.lat_deg, 4),
        "lon": round(p.lon_deg, 4),
        "alt_km": round(p.alt_km, 1),
    }


def _look_point(lp: LookPoint) -> dict:
    return {
        "time": lp.time.isoformat(),
        "location": _point(lp.location),
        "velocity_km_s": [round(float(c), 4) for c in lp.velocity],
    }


def window_to_dict(w: VisibilityWindow) -> dict:
    return {
        "start": w.start_time.isoformat(),
        "end": w.end_time.isoformat(),
        "duration_min": round(w.duration.total_seconds() / 60.0, 1),
        "start_point": _point(w.start_point),
        "end_point": _point(w.end_point),
        "look_points": [_look_point(lp) for lp in w.look_points],
    }


def satellite_to_dict(sat: Satellite, now: datetime) -> dict:
    tier, _ = classify(sat.windows, now)
    status = visibility_status(sat.windows, now, tz=timezone.utc)
    return {
        "name": sat.name,
        "norad_id": sat.element_set.norad_id,
        "tier": tier.name,
        "status": status.status,
        "minutes_to_rise": status.minutes,
        "window_utc": status.window_str,
        "stale_tle": sat.element_set.is_stale(now),
        "windows": [window_to_dict(w) for w in sat.windows],
    }


def snapshot_to_dict(snapshot: CatalogSnapshot) -> dict:
    obs = snapshot.observer
    return {
        "observer": {"lat": obs.lat_deg, "lon": obs.lon_deg, "alt_m": obs.alt_m},
        "computed_at": snapshot.computed_at.isoformat(),
        "satellites": [
            satellite_to_dict(sat, snapshot.computed_at)
            for sat in snapshot.satellites
        ],
    }


def live_tick_to_dict(tick: LiveTick) -> dict:
    t = tick.target
    return {
        "time": tick.time.isoformat(),
        "target": {
            "available": t.available,
            "speed_km_s": round(t.speed_km_s, 3),
            "range_km": round(t.range_km, 1),
            "range_rate_km_s": round(t.range_rate_km_s, 3),
            "altitude_km": round(t.altitude_km, 1),
            "lat": round(t.lat_deg, 4),
            "lon": round(t.lon_deg, 4),
            "azimuth_deg": round(t.azimuth_deg, 1),
            "elevation_deg": round(t.elevation_deg, 1),
            "compass": t.compass,
            "visible": t.visible,
        },
        "window": window_to_dict(tick.window) if tick.window is not None else None,
        "look_points": [
            {
                "label": lp.label,
                "time": lp.time.isoformat(),
                "countdown": format_countdown(lp.time_to_destination),
                "seconds_to_destination": round(lp.time_to_destination.total_seconds(), 1),
                "range_km": round(lp.range_km, 1),
                "altitude_km": round(lp.altitude_km, 1),
                "azimuth_deg": round(lp.azimuth_deg, 1),
                "elevation_deg": round(lp.elevation_deg, 1),
                "compass": lp.compass,
            }
            for lp in tick.look_points
        ],
    }


# ---------------------------------------------------------------------------
# Writers
# ---------------------------------------------------------------------------

def format_snapshot_json(snapshot: CatalogSnapshot) -> str:
    return json.dumps(snapshot_to_dict(snapshot), indent=2)


def format_live_json(tick: LiveTick) -> str:
    """One live tick as a single JSON line (for streaming)."""
    return json.dumps(live_tick_to_dict(tick), separators=(",", ":"))
