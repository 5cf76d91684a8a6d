"""Live telemetry for the focused object, recomputed on every tick.

Two parts:

  - Target live data: where the object is right now as seen from the
    observer (bearing, elevation, slant range, range rate, speed, altitude).
  - Look-point live data: for the active window, or the soonest future one,
    a countdown to each look point and the look angle to its fixed location.
    Look points are static positions, so no propagation is needed for them.

Nothing here raises on propagation failure.  A failed target yields
TargetLiveData.unavailable(); no window yields an empty look-point list.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta

import numpy as np
from sgp4.api import Satrec

from pass_finder import MIN_ELEVATION_DEG, VisibilityWindow, current_or_next_window
from propagator import (
    Observer,
    PropagationFailure,
    geodetic_to_ecef,
    look_angles,
    propagate,
)

COMPASS_POINTS = ("N", "NE", "E", "SE", "S", "SW", "W", "NW")

RANGE_RATE_DT = timedelta(seconds=1)


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TargetLiveData:
    available: bool
    speed_km_s: float = 0.0
    range_km: float = 0.0
    range_rate_km_s: float = 0.0     # negative = approaching
    altitude_km: float = 0.0
    lat_deg: float = 0.0
    lon_deg: float = 0.0
    azimuth_deg: float = 0.0
    elevation_deg: float = 0.0
    compass: str = "--"
    visible: bool = False

    @classmethod
    def unavailable(cls) -> TargetLiveData:
        return cls(available=False)


@dataclass(frozen=True)
class LookPointLiveData:
    label: str                       # "LP1" .. "LP5"
    time: datetime
    time_to_destination: timedelta   # negative once the point has passed
    range_km: float
    altitude_km: float
    azimuth_deg: float
    elevation_deg: float
    compass: str


@dataclass(frozen=True)
class LiveTick:
    time: datetime
    target: TargetLiveData
    window: VisibilityWindow | None = None
    look_points: tuple[LookPointLiveData, ...] = field(default=())


# ---------------------------------------------------------------------------
# Formatting helpers
# ---------------------------------------------------------------------------

def compass_direction(azimuth_deg: float) -> str:
    """Eight-point compass label for an azimuth (N at 0°, clockwise).

    Sector boundaries round half up, so 22.5° is NE and 337.5° is N.
    """
    index = int(np.floor(azimuth_deg / 45.0 + 0.5)) % 8
    return COMPASS_POINTS[index]


def format_countdown(delta: timedelta) -> str:
    """``MM:SS`` countdown, prefixed with ``-`` once the moment has passed."""
    total_s = delta.total_seconds()
    whole = int(abs(total_s))
    m, s = divmod(whole, 60)
    sign = "-" if total_s < 0 else ""
    return f"{sign}{m:02d}:{s:02d}"


# ---------------------------------------------------------------------------
# Live calculations
# ---------------------------------------------------------------------------

def target_live_data(
    satrec: Satrec,
    observer: Observer,
    now: datetime,
    threshold_deg: float = MIN_ELEVATION_DEG,
) -> TargetLiveData:
    """Current geometry of the target as seen by the observer."""
    state = propagate(satrec, now)
    if isinstance(state, PropagationFailure):
        return TargetLiveData.unavailable()

    look = look_angles(observer, state.ecef())
    location = state.geodetic()

    range_rate = 0.0
    past = propagate(satrec, now - RANGE_RATE_DT)
    if not isinstance(past, PropagationFailure):
        past_range = look_angles(observer, past.ecef()).range_km
        range_rate = (look.range_km - past_range) / RANGE_RATE_DT.total_seconds()

    return TargetLiveData(
        available=True,
        speed_km_s=state.speed_km_s,
        range_km=look.range_km,
        range_rate_km_s=range_rate,
        altitude_km=location.alt_km,
        lat_deg=location.lat_deg,
        lon_deg=location.lon_deg,
        azimuth_deg=look.azimuth_deg,
        elevation_deg=look.elevation_deg,
        compass=compass_direction(look.azimuth_deg),
        visible=look.elevation_deg >= threshold_deg,
    )


def look_point_live_data(
    window: VisibilityWindow,
    observer: Observer,
    now: datetime,
) -> list[LookPointLiveData]:
    """Countdown and look angle to each look point of ``window``."""
    rows: list[LookPointLiveData] = []
    for i, lp in enumerate(window.look_points, 1):
        loc = lp.location
        look = look_angles(observer, geodetic_to_ecef(loc.lat_deg, loc.lon_deg, loc.alt_km))
        rows.append(
            LookPointLiveData(
                label=f"LP{i}",
                time=lp.time,
                time_to_destination=lp.time - now,
                range_km=look.range_km,
                altitude_km=loc.alt_km,
                azimuth_deg=look.azimuth_deg,
                elevation_deg=look.elevation_deg,
                compass=compass_direction(look.azimuth_deg),
            )
        )
    return rows


def live_tick(
    satrec: Satrec,
    observer: Observer,
    windows: Sequence[VisibilityWindow],
    now: datetime,
    threshold_deg: float = MIN_ELEVATION_DEG,
) -> LiveTick:
    """Full live snapshot for one tick."""
    target = target_live_data(satrec, observer, now, threshold_deg)
    window = current_or_next_window(windows, now)
    if window is None:
        return LiveTick(time=now, target=target)
    return LiveTick(
        time=now,
        target=target,
        window=window,
        look_points=tuple(look_point_live_data(window, observer, now)),
    )
