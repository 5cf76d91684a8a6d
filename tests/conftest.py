from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from propagator import Observer, parse_tles
from tle_cache import ElementSet

ISS_LINE1 = "1 25544U 98067A   19343.69339541  .00001764  00000-0  38792-4 0  9991"
ISS_LINE2 = "2 25544  51.6439 211.2001 0007417  17.6667  85.6398 15.50103472202482"

# A little before the element-set epoch (2019-12-09 16:38 UTC)
EPOCH_NOW = datetime(2019, 12, 9, 12, 0, 0, tzinfo=timezone.utc)


@pytest.fixture
def iss() -> ElementSet:
    return ElementSet(name="ISS (ZARYA)", norad_id=25544, line1=ISS_LINE1, line2=ISS_LINE2)


@pytest.fixture
def iss_satrec(iss):
    satrecs, _ = parse_tles([iss])
    return satrecs[0]


@pytest.fixture
def now() -> datetime:
    return EPOCH_NOW


@pytest.fixture
def otaniemi() -> Observer:
    return Observer(60.18, 24.83, 0.0)


@pytest.fixture
def mid_latitude() -> Observer:
    # Well inside the ISS ground-track band: several passes a day above 10°
    return Observer(45.0, 10.0, 0.0)


def parabolic_pass(rise: datetime, duration: timedelta, peak_deg: float, threshold_deg: float = 10.0):
    """Synthetic elevation profile: one pass crossing the threshold at
    ``rise`` and ``rise + duration``, peaking at ``peak_deg`` halfway."""
    half_s = duration.total_seconds() / 2.0
    mid = rise + duration / 2

    def elevation_fn(t: datetime) -> float:
        x = (t - mid).total_seconds() / half_s
        return threshold_deg + (peak_deg - threshold_deg) * (1.0 - x * x)

    return elevation_fn
