"""SGP4 propagation and observer-relative geometry for single instants.

Design notes
------------
* One Satrec per element set, evaluated one instant at a time.  The window
  scanner needs a few hundred coarse samples per object plus a handful of
  extra samples around each horizon crossing, so there is nothing to gain
  from batching here.
* SGP4 returns positions in the TEME (True Equator Mean Equinox) frame,
  which is treated as quasi-ECI here.  The TEME–J2000 difference is a
  few arc-seconds — negligible for visibility prediction.
* TEME → ECEF via GMST rotation (accurate to ~0.1″ for our purposes).
* ECEF → topocentric ENU → azimuth / elevation / slant range using WGS-84.
* A failed propagation is returned as a PropagationFailure value, not
  raised.  elevation() turns it into FAILED_ELEVATION_DEG so the scan loop
  can read it as "below the horizon" without a separate error path.

Assumptions
-----------
* Atmospheric refraction is *not* modelled.  "Visible" means geometric
  elevation at or above a fixed threshold.
* UT1 is taken as UTC when computing GMST.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

import numpy as np
from sgp4.api import SGP4_ERRORS, Satrec

# ---------------------------------------------------------------------------
# WGS-84 constants
# ---------------------------------------------------------------------------
WGS84_A = 6378.137          # semi-major axis, km
WGS84_F = 1.0 / 298.257223563
WGS84_E2 = 2.0 * WGS84_F - WGS84_F ** 2  # first eccentricity squared
WGS84_B = WGS84_A * (1.0 - WGS84_F)      # semi-minor axis, km

# Elevation reported for instants SGP4 cannot propagate.  Lower than any
# real visibility threshold.
FAILED_ELEVATION_DEG = -999.0

J2000 = datetime(2000, 1, 1, 12, 0, 0, tzinfo=timezone.utc)


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Observer:
    """Ground observer.  Altitude is in metres above the ellipsoid."""

    lat_deg: float
    lon_deg: float
    alt_m: float = 0.0

    def __post_init__(self) -> None:
        if not -90.0 <= self.lat_deg <= 90.0:
            raise ValueError(f"latitude out of range: {self.lat_deg}")
        if not -180.0 <= self.lon_deg <= 360.0:
            raise ValueError(f"longitude out of range: {self.lon_deg}")

    @property
    def alt_km(self) -> float:
        return self.alt_m / 1000.0

    def ecef(self) -> np.ndarray:
        return geodetic_to_ecef(self.lat_deg, self.lon_deg, self.alt_km)


@dataclass(frozen=True)
class GeodeticPoint:
    lat_deg: float
    lon_deg: float
    alt_km: float


@dataclass(frozen=True)
class LookAngles:
    azimuth_deg: float      # [0, 360)
    elevation_deg: float    # [-90, 90]
    range_km: float


@dataclass(frozen=True)
class StateVector:
    """Successful SGP4 result: TEME position (km) and velocity (km/s)."""

    time: datetime
    position: np.ndarray
    velocity: np.ndarray

    def ecef(self) -> np.ndarray:
        return eci_to_ecef(self.position, self.time)

    def geodetic(self) -> GeodeticPoint:
        return ecef_to_geodetic(self.ecef())

    @property
    def speed_km_s(self) -> float:
        return float(np.linalg.norm(self.velocity))


@dataclass(frozen=True)
class PropagationFailure:
    """SGP4 could not produce a state (decayed orbit, bad elements, ...)."""

    time: datetime
    reason: str


# ---------------------------------------------------------------------------
# TLE → Satrec
# ---------------------------------------------------------------------------

def parse_tles(element_sets: list) -> tuple[list[Satrec], list]:
    """Parse element sets into sgp4 Satrec objects.

    Accepts anything with ``line1`` / ``line2`` attributes.  Silently drops
    any element set that fails to parse.

    Returns
    -------
    satrecs    : list of Satrec objects (same order as valid)
    valid      : subset of the input that parsed successfully
    """
    satrecs: list[Satrec] = []
    valid: list = []
    for es in element_sets:
        try:
            sat = Satrec.twoline2rv(es.line1, es.line2)
        except Exception:
            continue
        satrecs.append(sat)
        valid.append(es)
    return satrecs, valid


# ---------------------------------------------------------------------------
# Time
# ---------------------------------------------------------------------------

def julian_date(t: datetime) -> tuple[float, float]:
    """Split a timezone-aware UTC datetime into (whole, fraction) Julian date.

    The J2000 epoch (JD 2451545.0) corresponds to 2000-01-01T12:00:00 UTC.
    """
    jd = 2451545.0 + (t - J2000).total_seconds() / 86400.0
    whole = float(np.floor(jd))
    return whole, jd - whole


def _gmst_rad(jd: float) -> float:
    """Greenwich Mean Sidereal Time in radians for a Julian date.

    Accuracy: ~0.1 arc-second — sufficient for satellite visibility work.
    """
    T = (jd - 2451545.0) / 36525.0
    theta_deg = (
        280.46061837
        + 360.98564736629 * (jd - 2451545.0)
        + T * T * (0.000387933 - T / 38710000.0)
    )
    return float(np.deg2rad(theta_deg % 360.0))


# ---------------------------------------------------------------------------
# Propagation
# ---------------------------------------------------------------------------

def propagate(satrec: Satrec, t: datetime) -> StateVector | PropagationFailure:
    """Run SGP4 for one instant."""
    jd, fr = julian_date(t)
    e, r, v = satrec.sgp4(jd, fr)
    if e != 0:
        return PropagationFailure(t, SGP4_ERRORS.get(e, f"SGP4 error code {e}"))
    return StateVector(t, np.array(r, dtype=np.float64), np.array(v, dtype=np.float64))


def elevation(satrec: Satrec, observer: Observer, t: datetime) -> float:
    """Observer-relative elevation in degrees, or FAILED_ELEVATION_DEG."""
    state = propagate(satrec, t)
    if isinstance(state, PropagationFailure):
        return FAILED_ELEVATION_DEG
    return look_angles(observer, state.ecef()).elevation_deg


# ---------------------------------------------------------------------------
# Coordinate transforms
# ---------------------------------------------------------------------------

def geodetic_to_ecef(lat_deg: float, lon_deg: float, alt_km: float = 0.0) -> np.ndarray:
    """Convert geodetic coordinates to WGS-84 ECEF (km).

    Parameters
    ----------
    lat_deg : geodetic latitude, degrees
    lon_deg : longitude, degrees east
    alt_km  : altitude above ellipsoid, km (default 0 = sea level)

    Returns
    -------
    np.ndarray shape (3,) — [x, y, z] in km
    """
    lat = np.deg2rad(lat_deg)
    lon = np.deg2rad(lon_deg)
    N = WGS84_A / np.sqrt(1.0 - WGS84_E2 * np.sin(lat) ** 2)
    x = (N + alt_km) * np.cos(lat) * np.cos(lon)
    y = (N + alt_km) * np.cos(lat) * np.sin(lon)
    z = (N * (1.0 - WGS84_E2) + alt_km) * np.sin(lat)
    return np.array([x, y, z])


def ecef_to_geodetic(r_ecef: np.ndarray) -> GeodeticPoint:
    """Convert a WGS-84 ECEF position (km) to geodetic latitude/longitude/altitude.

    Fixed-point iteration on latitude; five rounds converge well below a
    millimetre anywhere from the surface out to geostationary altitude.
    """
    x, y, z = (float(c) for c in r_ecef)
    lon = np.arctan2(y, x)
    p = np.hypot(x, y)

    lat = np.arctan2(z, p * (1.0 - WGS84_E2))
    for _ in range(5):
        sin_lat = np.sin(lat)
        N = WGS84_A / np.sqrt(1.0 - WGS84_E2 * sin_lat ** 2)
        lat = np.arctan2(z + N * WGS84_E2 * sin_lat, p)

    sin_lat = np.sin(lat)
    cos_lat = np.cos(lat)
    N = WGS84_A / np.sqrt(1.0 - WGS84_E2 * sin_lat ** 2)
    if abs(cos_lat) > 1e-10:
        alt = p / cos_lat - N
    else:
        alt = abs(z) - WGS84_B

    return GeodeticPoint(
        lat_deg=float(np.rad2deg(lat)),
        lon_deg=float(np.rad2deg(lon)),
        alt_km=float(alt),
    )


def eci_to_ecef(r_eci: np.ndarray, t: datetime) -> np.ndarray:
    """Rotate an ECI (TEME) vector to ECEF at instant ``t``."""
    jd, fr = julian_date(t)
    theta = _gmst_rad(jd + fr)
    cos_t = np.cos(theta)
    sin_t = np.sin(theta)

    x, y, z = r_eci
    return np.array([
        x * cos_t + y * sin_t,
        -x * sin_t + y * cos_t,
        z,
    ])


def look_angles(observer: Observer, target_ecef: np.ndarray) -> LookAngles:
    """Topocentric azimuth, elevation and slant range to an ECEF target."""
    lat = np.deg2rad(observer.lat_deg)
    lon = np.deg2rad(observer.lon_deg)
    obs_ecef = observer.ecef()

    # Range vector (target − observer) in ECEF
    dx, dy, dz = np.asarray(target_ecef, dtype=np.float64) - obs_ecef
    slant_km = float(np.sqrt(dx * dx + dy * dy + dz * dz))
    if slant_km == 0.0:
        return LookAngles(azimuth_deg=0.0, elevation_deg=90.0, range_km=0.0)

    # Rotate range vector to local East-North-Up frame
    sin_lat, cos_lat = np.sin(lat), np.cos(lat)
    sin_lon, cos_lon = np.sin(lon), np.cos(lon)

    E =  -sin_lon * dx + cos_lon * dy
    N =  -sin_lat * cos_lon * dx - sin_lat * sin_lon * dy + cos_lat * dz
    U =   cos_lat * cos_lon * dx + cos_lat * sin_lon * dy + sin_lat * dz

    el_rad = np.arcsin(np.clip(U / slant_km, -1.0, 1.0))
    az_rad = np.arctan2(E, N) % (2.0 * np.pi)

    return LookAngles(
        azimuth_deg=float(np.rad2deg(az_rad)),
        elevation_deg=float(np.rad2deg(el_rad)),
        range_km=slant_km,
    )
