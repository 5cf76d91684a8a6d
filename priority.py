"""Catalog ordering by visibility urgency.

Tiers
-----
ACTIVE  – a window contains ``now``; soonest-ending first.
FUTURE  – a window starts after ``now``; soonest-starting first.
NONE    – nothing within the lookahead; catalog order is kept.

Classification only reads window lists, so it is rerun on every refresh to
keep the order right as time crosses window boundaries.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, tzinfo
from enum import IntEnum
from typing import TYPE_CHECKING

from pass_finder import VisibilityWindow, active_window, next_window

if TYPE_CHECKING:
    from tracker import Satellite


class Tier(IntEnum):
    ACTIVE = 0
    FUTURE = 1
    NONE = 2


@dataclass(frozen=True)
class VisibilityStatus:
    status: str               # "VISIBLE" | "UPCOMING" | "NONE"
    minutes: int | None       # whole minutes until rise, UPCOMING only
    window_str: str           # "HH:MM - HH:MM"


def classify(
    windows: Sequence[VisibilityWindow], now: datetime,
) -> tuple[Tier, VisibilityWindow | None]:
    """Tier of one object plus the window that decided it."""
    active = active_window(windows, now)
    if active is not None:
        return Tier.ACTIVE, active
    upcoming = next_window(windows, now)
    if upcoming is not None:
        return Tier.FUTURE, upcoming
    return Tier.NONE, None


def _sort_key(sat: Satellite, now: datetime) -> tuple[int, float]:
    tier, window = classify(sat.windows, now)
    if tier is Tier.ACTIVE:
        return tier, window.end_time.timestamp()
    if tier is Tier.FUTURE:
        return tier, window.start_time.timestamp()
    return tier, 0.0


def sort_by_priority(satellites: Sequence[Satellite], now: datetime) -> list[Satellite]:
    """Order a catalog by tier, then by urgency within the tier.

    Python's sort is stable, so NONE objects keep their catalog order.
    """
    return sorted(satellites, key=lambda sat: _sort_key(sat, now))


def visibility_status(
    windows: Sequence[VisibilityWindow],
    now: datetime,
    tz: tzinfo | None = None,
) -> VisibilityStatus:
    """Short timetable entry for one object.

    Clock times are shown in ``tz``, or the local timezone when omitted.
    """
    tier, window = classify(windows, now)
    if window is None:
        return VisibilityStatus(status="NONE", minutes=None, window_str="--:-- - --:--")

    window_str = f"{_hhmm(window.start_time, tz)} - {_hhmm(window.end_time, tz)}"
    if tier is Tier.ACTIVE:
        return VisibilityStatus(status="VISIBLE", minutes=None, window_str=window_str)

    minutes = math.ceil((window.start_time - now).total_seconds() / 60.0)
    return VisibilityStatus(status="UPCOMING", minutes=minutes, window_str=window_str)


def _hhmm(t: datetime, tz: tzinfo | None) -> str:
    return t.astimezone(tz).strftime("%H:%M")
