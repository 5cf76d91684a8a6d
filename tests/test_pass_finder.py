from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from conftest import parabolic_pass
from pass_finder import (
    MIN_ELEVATION_DEG,
    VisibilityWindow,
    active_window,
    crossing_time,
    current_or_next_window,
    find_windows,
    interpolate_crossing,
    next_window,
)
from propagator import FAILED_ELEVATION_DEG

T1 = datetime(2019, 12, 9, 18, 0, 0, tzinfo=timezone.utc)
T2 = T1 + timedelta(minutes=4)


def _assert_window_invariants(windows: list[VisibilityWindow]) -> None:
    for w in windows:
        assert w.start_time < w.end_time
        times = [lp.time for lp in w.look_points]
        assert all(w.start_time < t < w.end_time for t in times)
        assert all(a < b for a, b in zip(times, times[1:]))
    for a, b in zip(windows, windows[1:]):
        assert a.end_time <= b.start_time


# ---------------------------------------------------------------------------
# Crossing solver
# ---------------------------------------------------------------------------

def test_symmetric_straddle_gives_midpoint():
    t = interpolate_crossing(T1, MIN_ELEVATION_DEG - 5.0, T2, MIN_ELEVATION_DEG + 5.0)
    assert t == T1 + timedelta(minutes=2)


def test_setting_crossing_interpolates_linearly():
    # 30° → -10°: threshold 10° is half way
    t = interpolate_crossing(T1, 30.0, T2, -10.0, threshold_deg=10.0)
    assert t == T1 + timedelta(minutes=2)


def test_degenerate_denominator_falls_back_to_midpoint():
    t = interpolate_crossing(T1, 12.0, T2, 12.0)
    assert t == T1 + timedelta(minutes=2)


def test_failed_sample_reads_just_below_threshold():
    t = interpolate_crossing(T1, FAILED_ELEVATION_DEG, T2, MIN_ELEVATION_DEG + 1.0)
    assert t == T1 + timedelta(minutes=2)


def test_crossing_time_samples_both_ends(iss_satrec, otaniemi):
    samples = {T1: 0.0, T2: 40.0}
    t = crossing_time(iss_satrec, otaniemi, T1, T2, elevation_fn=samples.__getitem__)
    # (10 - 0) / (40 - 0) = 0.25 of 4 minutes
    assert t == T1 + timedelta(minutes=1)


# ---------------------------------------------------------------------------
# Scanner with synthetic elevation profiles
# ---------------------------------------------------------------------------

def test_single_six_minute_pass(iss_satrec, otaniemi):
    rise = T1
    profile = parabolic_pass(rise, timedelta(minutes=6), peak_deg=45.0)
    now = rise - timedelta(minutes=11)

    windows = find_windows(iss_satrec, otaniemi, now, elevation_fn=profile)

    assert len(windows) == 1
    w = windows[0]
    assert abs((w.start_time - rise).total_seconds()) < 30
    assert abs((w.end_time - (rise + timedelta(minutes=6))).total_seconds()) < 30
    assert 3 <= len(w.look_points) <= 5
    assert w.start_point is not None and w.end_point is not None
    _assert_window_invariants(windows)


def test_pass_in_progress_searches_backward_for_rise(iss_satrec, otaniemi):
    rise = T1
    profile = parabolic_pass(rise, timedelta(minutes=6), peak_deg=45.0)
    now = rise + timedelta(minutes=3)

    windows = find_windows(iss_satrec, otaniemi, now, elevation_fn=profile)

    assert len(windows) == 1
    w = windows[0]
    assert w.start_time < now <= w.end_time
    assert abs((w.start_time - rise).total_seconds()) < 90


def test_backtrack_limit_falls_back_to_now(iss_satrec, otaniemi):
    now = T1
    # Up for the last hour and the next ten minutes
    profile = lambda t: 30.0 if now - timedelta(hours=1) <= t <= now + timedelta(minutes=10) else 0.0

    windows = find_windows(iss_satrec, otaniemi, now, elevation_fn=profile)

    assert windows[0].start_time == now


def test_window_open_at_horizon_is_closed_there(iss_satrec, otaniemi):
    now = T1
    ramp_start = now + timedelta(minutes=48)
    # 6° at +48 min, rising 2° per minute
    profile = lambda t: 6.0 + 2.0 * (t - ramp_start).total_seconds() / 60.0

    windows = find_windows(
        iss_satrec, otaniemi, now, lookahead=timedelta(hours=1), elevation_fn=profile,
    )

    assert len(windows) == 1
    assert windows[0].start_time == now + timedelta(minutes=50)
    assert windows[0].end_time == now + timedelta(hours=1)


def test_propagation_failures_count_as_not_visible(iss_satrec, otaniemi):
    now = T1
    assert find_windows(
        iss_satrec, otaniemi, now, elevation_fn=lambda t: FAILED_ELEVATION_DEG,
    ) == []

    rise = now + timedelta(hours=2)
    profile = parabolic_pass(rise, timedelta(minutes=8), peak_deg=60.0)
    flaky = lambda t: FAILED_ELEVATION_DEG if t == now else profile(t)
    windows = find_windows(iss_satrec, otaniemi, now, elevation_fn=flaky)
    assert len(windows) == 1


def test_two_passes_are_ordered(iss_satrec, otaniemi):
    now = T1
    first = parabolic_pass(now + timedelta(hours=1), timedelta(minutes=7), 50.0)
    second = parabolic_pass(now + timedelta(hours=3), timedelta(minutes=5), 25.0)
    profile = lambda t: max(first(t), second(t))

    windows = find_windows(iss_satrec, otaniemi, now, elevation_fn=profile)

    assert len(windows) == 2
    _assert_window_invariants(windows)


# ---------------------------------------------------------------------------
# Scanner with real SGP4
# ---------------------------------------------------------------------------

def test_iss_windows_hold_invariants(iss_satrec, mid_latitude, now):
    windows = find_windows(iss_satrec, mid_latitude, now)
    assert windows
    _assert_window_invariants(windows)
    assert windows[-1].end_time <= now + timedelta(hours=24)


def test_iss_scan_is_idempotent(iss_satrec, mid_latitude, now):
    a = find_windows(iss_satrec, mid_latitude, now)
    b = find_windows(iss_satrec, mid_latitude, now)
    assert len(a) == len(b)
    for wa, wb in zip(a, b):
        assert abs((wa.start_time - wb.start_time).total_seconds()) < 1e-3
        assert abs((wa.end_time - wb.end_time).total_seconds()) < 1e-3


def test_iss_rescan_mid_pass_finds_past_rise(iss_satrec, mid_latitude, now):
    first = max(find_windows(iss_satrec, mid_latitude, now), key=lambda w: w.duration)
    mid_pass = first.start_time + first.duration / 2

    windows = find_windows(iss_satrec, mid_latitude, mid_pass)

    w = windows[0]
    assert w.start_time < mid_pass <= w.end_time
    assert abs((w.start_time - first.start_time).total_seconds()) < 120


# ---------------------------------------------------------------------------
# Window-list queries
# ---------------------------------------------------------------------------

def _window(start: datetime, minutes: float) -> VisibilityWindow:
    return VisibilityWindow(start, start + timedelta(minutes=minutes), None, None)


def test_active_and_next_window():
    now = T1
    past = _window(now - timedelta(hours=1), 5)
    current = _window(now - timedelta(minutes=2), 5)
    later = _window(now + timedelta(hours=2), 5)
    soon = _window(now + timedelta(minutes=30), 5)
    windows = [past, current, soon, later]

    assert active_window(windows, now) is current
    assert next_window(windows, now) is soon
    assert current_or_next_window(windows, now) is current
    assert current_or_next_window([past, later, soon], now) is soon
    assert current_or_next_window([past], now) is None


def test_uneven_lookahead_closes_window_at_horizon(iss_satrec, otaniemi):
    now = T1
    ramp_start = now + timedelta(minutes=48)
    profile = lambda t: 6.0 + 2.0 * (t - ramp_start).total_seconds() / 60.0

    # 62 min is not a multiple of the 4-minute step
    windows = find_windows(
        iss_satrec, otaniemi, now, lookahead=timedelta(minutes=62), elevation_fn=profile,
    )

    assert len(windows) == 1
    assert windows[0].start_time == now + timedelta(minutes=50)
    assert windows[0].end_time == now + timedelta(minutes=62)
