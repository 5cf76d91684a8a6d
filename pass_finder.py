"""Visibility window detection for a single element set.

Algorithm
---------
1. Coarse scan: 4-minute grid from ``now`` to ``now + 24 h``.  A sample is
   visible when its elevation is at or above the threshold (10° by
   default).  Failed propagations sample as FAILED_ELEVATION_DEG and so
   count as not visible; the scan carries on.
2. Rise / set times: one linear interpolation between the two grid samples
   bracketing each transition.  This is deliberately not iterated.  For a
   low-orbit pass the error is a few seconds, which the minute-resolution
   timetable never shows, and iterating would make displayed boundaries
   shift between refreshes.  Expect larger errors for eccentric or
   high-altitude orbits.
3. If the object is already up at ``now`` its rise lies in the past.  Step
   backward on the same 4-minute spacing, at most 25 minutes, until a
   below-threshold sample brackets the rise.  If none is found the window
   starts at ``now``.
4. A window still open at the end of the lookahead is closed at the
   lookahead horizon.

Windows come out in chronological order and never overlap, since the scan
only moves forward.
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from functools import partial

import numpy as np
from sgp4.api import Satrec

from look_points import LookPoint, generate_look_points
from propagator import (
    FAILED_ELEVATION_DEG,
    GeodeticPoint,
    Observer,
    PropagationFailure,
    elevation,
    propagate,
)

MIN_ELEVATION_DEG = 10.0
COARSE_STEP = timedelta(minutes=4)
LOOKAHEAD = timedelta(hours=24)
BACKTRACK_LIMIT = timedelta(minutes=25)

ElevationFn = Callable[[datetime], float]


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class VisibilityWindow:
    """A contiguous interval with elevation at or above the threshold."""

    start_time: datetime
    end_time: datetime
    start_point: GeodeticPoint | None
    end_point: GeodeticPoint | None
    look_points: tuple[LookPoint, ...] = field(default=())

    @property
    def duration(self) -> timedelta:
        return self.end_time - self.start_time

    def contains(self, t: datetime) -> bool:
        return self.start_time <= t <= self.end_time


# ---------------------------------------------------------------------------
# Horizon crossing
# ---------------------------------------------------------------------------

def interpolate_crossing(
    t1: datetime,
    el1: float,
    t2: datetime,
    el2: float,
    threshold_deg: float = MIN_ELEVATION_DEG,
) -> datetime:
    """Linear interpolation of the instant elevation equals the threshold.

    A failed sample (FAILED_ELEVATION_DEG) reads as one degree below the
    threshold.  A zero elevation change falls back to the midpoint.
    """
    if el1 <= FAILED_ELEVATION_DEG:
        el1 = threshold_deg - 1.0
    if el2 <= FAILED_ELEVATION_DEG:
        el2 = threshold_deg - 1.0

    span = el2 - el1
    if abs(span) < 1e-10:
        return t1 + (t2 - t1) / 2

    frac = float(np.clip((threshold_deg - el1) / span, 0.0, 1.0))
    return t1 + (t2 - t1) * frac


def crossing_time(
    satrec: Satrec,
    observer: Observer,
    t1: datetime,
    t2: datetime,
    threshold_deg: float = MIN_ELEVATION_DEG,
    elevation_fn: ElevationFn | None = None,
) -> datetime:
    """Horizon crossing between ``t1`` and ``t2``.

    Elevations at ``t1`` and ``t2`` are expected to straddle the threshold.
    """
    elev = elevation_fn or partial(elevation, satrec, observer)
    return interpolate_crossing(t1, elev(t1), t2, elev(t2), threshold_deg)


# ---------------------------------------------------------------------------
# Window scan
# ---------------------------------------------------------------------------

def find_windows(
    satrec: Satrec,
    observer: Observer,
    now: datetime,
    threshold_deg: float = MIN_ELEVATION_DEG,
    step: timedelta = COARSE_STEP,
    lookahead: timedelta = LOOKAHEAD,
    backtrack_limit: timedelta = BACKTRACK_LIMIT,
    elevation_fn: ElevationFn | None = None,
) -> list[VisibilityWindow]:
    """All visibility windows from ``now`` to ``now + lookahead``.

    Parameters
    ----------
    satrec          : parsed element set
    observer        : ground observer
    now             : scan start (timezone-aware UTC)
    threshold_deg   : minimum elevation counted as visible
    step            : coarse sampling interval
    lookahead       : scan horizon
    backtrack_limit : how far before ``now`` to look for the rise of a pass
                      already in progress
    elevation_fn    : elevation sampler override, ``t -> degrees``; defaults
                      to SGP4 through propagator.elevation

    Returns
    -------
    Chronologically ordered, non-overlapping list of VisibilityWindow.
    """
    elev = elevation_fn or partial(elevation, satrec, observer)

    def visible(t: datetime) -> bool:
        return elev(t) >= threshold_deg

    def crossing(t1: datetime, t2: datetime) -> datetime:
        return crossing_time(satrec, observer, t1, t2, threshold_deg, elev)

    horizon = now + lookahead
    windows: list[VisibilityWindow] = []

    is_visible = visible(now)
    open_start: datetime | None = None
    if is_visible:
        open_start = _find_past_rise(now, visible, crossing, step, backtrack_limit)

    scan_time = now
    while scan_time < horizon:
        next_time = min(scan_time + step, horizon)
        next_visible = visible(next_time)

        if is_visible and not next_visible:
            set_time = crossing(scan_time, next_time)
            if open_start is not None:
                window = _build_window(satrec, open_start, set_time)
                if window is not None:
                    windows.append(window)
            open_start = None
        elif next_visible and not is_visible:
            open_start = crossing(scan_time, next_time)

        is_visible = next_visible
        scan_time = next_time

    # Still up at the horizon: true set time is outside the lookahead
    if open_start is not None:
        window = _build_window(satrec, open_start, horizon)
        if window is not None:
            windows.append(window)

    return windows


def _find_past_rise(
    now: datetime,
    visible: Callable[[datetime], bool],
    crossing: Callable[[datetime, datetime], datetime],
    step: timedelta,
    limit: timedelta,
) -> datetime:
    later = now
    earlier = now - step
    while now - earlier <= limit:
        if not visible(earlier):
            return crossing(earlier, later)
        later = earlier
        earlier -= step
    return now


def _build_window(satrec: Satrec, start: datetime, end: datetime) -> VisibilityWindow | None:
    if end <= start:
        return None
    return VisibilityWindow(
        start_time=start,
        end_time=end,
        start_point=_locate(satrec, start),
        end_point=_locate(satrec, end),
        look_points=tuple(generate_look_points(satrec, start, end)),
    )


def _locate(satrec: Satrec, t: datetime) -> GeodeticPoint | None:
    state = propagate(satrec, t)
    if isinstance(state, PropagationFailure):
        return None
    return state.geodetic()


# ---------------------------------------------------------------------------
# Window-list queries
# ---------------------------------------------------------------------------

def active_window(windows: Sequence[VisibilityWindow], now: datetime) -> VisibilityWindow | None:
    """The window containing ``now``, if any."""
    for w in windows:
        if w.contains(now):
            return w
    return None


def next_window(windows: Sequence[VisibilityWindow], now: datetime) -> VisibilityWindow | None:
    """The soonest window starting after ``now``, if any."""
    upcoming = [w for w in windows if w.start_time > now]
    if not upcoming:
        return None
    return min(upcoming, key=lambda w: w.start_time)


def current_or_next_window(
    windows: Sequence[VisibilityWindow], now: datetime,
) -> VisibilityWindow | None:
    return active_window(windows, now) or next_window(windows, now)
