"""Catalog state and the two-cadence refresh loop.

The tracker owns the observer, the parsed catalog and the current
snapshot.  There are two cadences:

  - refresh (≈30 s): rescan every object's windows and re-sort the catalog.
  - live tick (≈1 s): telemetry for the focused object only.

A snapshot is never modified.  Each refresh builds a new one and swaps it
in whole.  Changing the observer drops the current snapshot.  A refresh
that started before the change is computed to the end and then thrown
away instead of being published.
"""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field, replace
from datetime import datetime, timedelta, timezone

from sgp4.api import Satrec

from pass_finder import LOOKAHEAD, MIN_ELEVATION_DEG, VisibilityWindow, find_windows
from priority import sort_by_priority
from propagator import Observer, parse_tles
from telemetry import LiveTick, live_tick
from tle_cache import ElementSet

LIVE_INTERVAL = timedelta(seconds=1)
REFRESH_INTERVAL = timedelta(seconds=30)


# ---------------------------------------------------------------------------
# Data model
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Satellite:
    name: str
    element_set: ElementSet
    satrec: Satrec = field(repr=False, compare=False)
    windows: tuple[VisibilityWindow, ...] = ()


@dataclass(frozen=True)
class CatalogSnapshot:
    generation: int
    observer: Observer
    computed_at: datetime
    satellites: tuple[Satellite, ...]   # priority order

    def find(self, name: str) -> Satellite | None:
        for sat in self.satellites:
            if sat.name == name:
                return sat
        return None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Tracker
# ---------------------------------------------------------------------------

class Tracker:
    """Visibility windows and live telemetry for a catalog and one observer."""

    def __init__(
        self,
        element_sets: Iterable[ElementSet],
        observer: Observer,
        threshold_deg: float = MIN_ELEVATION_DEG,
        lookahead: timedelta = LOOKAHEAD,
        clock: Callable[[], datetime] = _utcnow,
    ) -> None:
        satrecs, valid = parse_tles(list(element_sets))
        self._catalog = tuple(
            Satellite(name=es.name, element_set=es, satrec=sr)
            for es, sr in zip(valid, satrecs)
        )
        self._observer = observer
        self.threshold_deg = threshold_deg
        self.lookahead = lookahead
        self.clock = clock
        self.target_name: str | None = None

        self._generation = 0
        self._snapshot: CatalogSnapshot | None = None

    # ── State ─────────────────────────────────────────────────────────────

    @property
    def catalog(self) -> tuple[Satellite, ...]:
        return self._catalog

    @property
    def observer(self) -> Observer:
        return self._observer

    @property
    def snapshot(self) -> CatalogSnapshot | None:
        """The last published snapshot, or None after an observer change."""
        return self._snapshot

    def set_observer(self, observer: Observer) -> None:
        """Move the observer.  Every window computed so far is invalid."""
        self._observer = observer
        self._generation += 1
        self._snapshot = None

    # ── Refresh cadence ───────────────────────────────────────────────────

    def compute_snapshot(self, now: datetime | None = None) -> CatalogSnapshot:
        """Scan every object and sort the catalog, without publishing."""
        now = now or self.clock()
        generation = self._generation
        observer = self._observer

        scanned = [
            replace(
                sat,
                windows=tuple(
                    find_windows(
                        sat.satrec, observer, now,
                        threshold_deg=self.threshold_deg,
                        lookahead=self.lookahead,
                    )
                ),
            )
            for sat in self._catalog
        ]
        return CatalogSnapshot(
            generation=generation,
            observer=observer,
            computed_at=now,
            satellites=tuple(sort_by_priority(scanned, now)),
        )

    def publish(self, snapshot: CatalogSnapshot) -> bool:
        """Swap in ``snapshot`` unless the observer changed since it started."""
        if snapshot.generation != self._generation:
            return False
        self._snapshot = snapshot
        return True

    def refresh(self, now: datetime | None = None) -> CatalogSnapshot | None:
        """Recompute and publish.  Returns the current snapshot afterwards."""
        self.publish(self.compute_snapshot(now))
        return self._snapshot

    # ── Live cadence ──────────────────────────────────────────────────────

    def target(self) -> Satellite | None:
        """The focused object: ``target_name`` if set, else the top-priority one."""
        if self._snapshot is None or not self._snapshot.satellites:
            return None
        if self.target_name is not None:
            return self._snapshot.find(self.target_name)
        return self._snapshot.satellites[0]

    def live_tick(self, now: datetime | None = None) -> LiveTick | None:
        """Telemetry for the focused object.  Refreshes first if needed."""
        now = now or self.clock()
        if self._snapshot is None:
            self.refresh(now)
        sat = self.target()
        if sat is None:
            return None
        return live_tick(sat.satrec, self._observer, sat.windows, now, self.threshold_deg)

    # ── Scheduler ─────────────────────────────────────────────────────────

    def run(
        self,
        on_tick: Callable[[LiveTick | None], None],
        on_refresh: Callable[[CatalogSnapshot | None], None] | None = None,
        live_interval: timedelta = LIVE_INTERVAL,
        refresh_interval: timedelta = REFRESH_INTERVAL,
        ticks: int | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        """Cooperative loop driving both cadences until ``ticks`` live ticks ran.

        Runs forever when ``ticks`` is None.
        """
        next_refresh = next_tick = self.clock()
        if self._snapshot is not None:
            next_refresh = self._snapshot.computed_at + refresh_interval
        done = 0
        while ticks is None or done < ticks:
            now = self.clock()
            if self._snapshot is None or now >= next_refresh:
                snapshot = self.refresh(now)
                if on_refresh is not None:
                    on_refresh(snapshot)
                next_refresh = now + refresh_interval
            if now >= next_tick:
                on_tick(self.live_tick(now))
                done += 1
                next_tick = now + live_interval

            wait = (min(next_refresh, next_tick) - self.clock()).total_seconds()
            if wait > 0 and (ticks is None or done < ticks):
                sleep(wait)
