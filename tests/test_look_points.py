from __future__ import annotations

from datetime import datetime, timedelta, timezone

import numpy as np
import pytest

import look_points
from look_points import MAX_LOOK_POINTS, generate_look_points, look_point_count
from propagator import PropagationFailure

START = datetime(2019, 12, 9, 18, 0, 0, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "seconds, expected",
    [(20, 1), (60, 1), (150, 2), (360, 5), (3600, MAX_LOOK_POINTS)],
)
def test_point_count(seconds, expected):
    assert look_point_count(timedelta(seconds=seconds)) == expected


def test_points_evenly_spaced_inside_window(iss_satrec):
    end = START + timedelta(minutes=3)
    points = generate_look_points(iss_satrec, START, end)

    assert [p.time for p in points] == [
        START + timedelta(seconds=45 * k) for k in (1, 2, 3)
    ]


def test_velocity_is_orbital_speed_in_earth_fixed_frame(iss_satrec):
    points = generate_look_points(iss_satrec, START, START + timedelta(minutes=10))
    assert len(points) == 5
    for p in points:
        speed = float(np.linalg.norm(p.velocity))
        # Inertial ~7.66 km/s less up to ~0.46 km/s of Earth rotation
        assert 6.8 < speed < 8.0
        assert 350 < p.location.alt_km < 460


def test_short_window_still_gets_one_point(iss_satrec):
    end = START + timedelta(seconds=10)
    points = generate_look_points(iss_satrec, START, end)
    assert len(points) == 1
    assert points[0].time == START + timedelta(seconds=5)


def test_empty_window_rejected(iss_satrec):
    with pytest.raises(ValueError):
        generate_look_points(iss_satrec, START, START)


def test_failed_points_are_skipped(iss_satrec, monkeypatch):
    real = look_points.propagate
    bad = START + timedelta(minutes=2)

    def flaky(satrec, t):
        if t == bad:
            return PropagationFailure(t, "decayed")
        return real(satrec, t)

    monkeypatch.setattr(look_points, "propagate", flaky)
    points = generate_look_points(iss_satrec, START, START + timedelta(minutes=6))

    assert len(points) == 4
    assert bad not in [p.time for p in points]
