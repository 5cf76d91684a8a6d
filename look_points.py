"""Look points: sampled future instants inside a visibility window.

Each window gets 1–5 evenly spaced points (one per full minute of window,
capped at 5), excluding the window endpoints.  A point carries the
object's geodetic location and an ECEF velocity from a one-second forward
difference.  That velocity is good enough to orient a heading marker; it
is not meant for trajectory work.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

import numpy as np
from sgp4.api import Satrec

from propagator import GeodeticPoint, PropagationFailure, propagate

MIN_POINT_SPACING = timedelta(seconds=60)
MAX_LOOK_POINTS = 5
VELOCITY_DT = timedelta(seconds=1)


@dataclass(frozen=True)
class LookPoint:
    location: GeodeticPoint
    velocity: np.ndarray     # km/s, ECEF
    time: datetime


def look_point_count(duration: timedelta) -> int:
    """Number of look points for a window of the given length."""
    count = int(duration // MIN_POINT_SPACING)
    return max(1, min(MAX_LOOK_POINTS, count))


def generate_look_points(satrec: Satrec, start: datetime, end: datetime) -> list[LookPoint]:
    """Evenly spaced look points strictly inside ``(start, end)``.

    Points whose propagation fails are left out, so the result may be
    shorter than look_point_count() for a decaying object.
    """
    if end <= start:
        raise ValueError(f"window end {end} is not after start {start}")

    count = look_point_count(end - start)
    spacing = (end - start) / (count + 1)
    dt_s = VELOCITY_DT.total_seconds()

    points: list[LookPoint] = []
    for k in range(1, count + 1):
        t = start + spacing * k
        if not start < t < end:
            continue

        here = propagate(satrec, t)
        ahead = propagate(satrec, t + VELOCITY_DT)
        if isinstance(here, PropagationFailure) or isinstance(ahead, PropagationFailure):
            continue

        pos = here.ecef()
        points.append(
            LookPoint(
                location=here.geodetic(),
                velocity=(ahead.ecef() - pos) / dt_s,
                time=t,
            )
        )
    return points
