"""TLE catalog loading and caching.

Fetches element sets from CelesTrak (by satellite name or group) and caches
each query locally as JSON.  Re-fetches automatically when the cache is
older than CACHE_MAX_AGE_HOURS.  Element sets whose epoch is older than
TLE_EPOCH_WARN_DAYS are flagged as stale (propagated positions drift).
"""

from __future__ import annotations

import json
import re
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path

import requests

CELESTRAK_URL = "https://celestrak.org/NORAD/elements/gp.php"
DEFAULT_NAME = "ICEYE"
CACHE_DIR = Path(__file__).parent / ".tle_cache"
CACHE_MAX_AGE_HOURS = 2
TLE_EPOCH_WARN_DAYS = 2


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class ElementSet:
    """One two-line element set.  Never modified after loading."""

    name: str
    norad_id: int
    line1: str
    line2: str

    @property
    def epoch(self) -> datetime:
        # TLE line 1 epoch occupies columns 19–32 (1-indexed) = indices 18:32
        # Format: YYddd.dddddddd  (2-digit year + day-of-year with decimal)
        year_2d = int(self.line1[18:20])
        day_frac = float(self.line1[20:32])
        year = (2000 + year_2d) if year_2d < 57 else (1900 + year_2d)
        return datetime(year, 1, 1, tzinfo=timezone.utc) + timedelta(days=day_frac - 1.0)

    def epoch_age_days(self, now: datetime | None = None) -> float:
        now = now or datetime.now(timezone.utc)
        return (now - self.epoch).total_seconds() / 86400.0

    def is_stale(self, now: datetime | None = None) -> bool:
        return self.epoch_age_days(now) > TLE_EPOCH_WARN_DAYS


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def get_element_sets(
    name: str | None = DEFAULT_NAME,
    group: str | None = None,
    force_refresh: bool = False,
    cache_dir: Path = CACHE_DIR,
) -> list[ElementSet]:
    """Return element sets for a CelesTrak query, using a local cache when fresh.

    ``group`` takes precedence over ``name`` when both are given.
    """
    params = _query_params(name, group)
    cache_file = cache_dir / f"{_cache_key(params)}.json"

    if not force_refresh:
        cached = _load_cache(cache_file)
        if cached is not None:
            return cached

    element_sets = _fetch_and_parse(params)
    _save_cache(cache_file, element_sets)
    return element_sets


def load_element_sets(path: str | Path) -> list[ElementSet]:
    """Read element sets from a local three-line TLE file."""
    return parse_tle_text(Path(path).read_text(encoding="utf-8"))


def parse_tle_text(text: str) -> list[ElementSet]:
    """Parse raw three-line TLE text.  Malformed records are skipped."""
    lines = [l.strip() for l in text.splitlines() if l.strip()]
    records: list[ElementSet] = []
    i = 0
    while i + 2 <= len(lines) - 1:
        name = lines[i]
        line1 = lines[i + 1]
        line2 = lines[i + 2]
        if line1.startswith("1 ") and line2.startswith("2 "):
            try:
                record = ElementSet(name=name, norad_id=int(line1[2:7]), line1=line1, line2=line2)
                record.epoch
            except ValueError:
                i += 1
                continue
            records.append(record)
            i += 3
        else:
            i += 1
    return records


# ---------------------------------------------------------------------------
# Fetch
# ---------------------------------------------------------------------------

def _query_params(name: str | None, group: str | None) -> dict[str, str]:
    if group:
        return {"GROUP": group, "FORMAT": "tle"}
    if name:
        return {"NAME": name, "FORMAT": "tle"}
    raise ValueError("either a satellite name or a group is required")


def _cache_key(params: dict[str, str]) -> str:
    key = "_".join(f"{k}-{v}" for k, v in sorted(params.items()) if k != "FORMAT")
    return re.sub(r"[^A-Za-z0-9_-]+", "_", key).lower()


def _fetch_and_parse(params: dict[str, str]) -> list[ElementSet]:
    """Download TLEs from CelesTrak and parse them."""
    try:
        resp = requests.get(CELESTRAK_URL, params=params, timeout=30)
        resp.raise_for_status()
    except requests.RequestException as exc:
        raise RuntimeError(f"Failed to fetch TLEs from CelesTrak: {exc}") from exc

    return parse_tle_text(resp.text)


# ---------------------------------------------------------------------------
# Cache I/O
# ---------------------------------------------------------------------------

def _load_cache(cache_file: Path) -> list[ElementSet] | None:
    """Return cached element sets if the cache file is fresh, else None."""
    if not cache_file.exists():
        return None
    try:
        with cache_file.open() as fh:
            data = json.load(fh)
        fetch_time = datetime.fromisoformat(data["fetch_time"])
        age_h = (datetime.now(timezone.utc) - fetch_time).total_seconds() / 3600.0
        if age_h > CACHE_MAX_AGE_HOURS:
            return None
        return [ElementSet(**rec) for rec in data["tles"]]
    except (json.JSONDecodeError, KeyError, TypeError, ValueError):
        return None


def _save_cache(cache_file: Path, element_sets: list[ElementSet]) -> None:
    """Persist element sets with a UTC timestamp."""
    cache_file.parent.mkdir(parents=True, exist_ok=True)
    payload = {
        "fetch_time": datetime.now(timezone.utc).isoformat(),
        "tles": [asdict(es) for es in element_sets],
    }
    with cache_file.open("w") as fh:
        json.dump(payload, fh)
