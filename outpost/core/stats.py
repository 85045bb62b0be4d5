"""Per-destination delivery counters.

Every output owns a reference to one shared ``Statistics`` instance
(injected at construction).  Counters are monotonic for the lifetime of
the instance: each destination has a total/ok/error triplet and the only
mutation is +1.  All operations are safe to call from many threads.
"""

from __future__ import annotations

import threading

from pydantic import BaseModel, ConfigDict

TOTAL = "total"
OK = "ok"
ERROR = "error"

COUNTER_KINDS: tuple[str, ...] = (TOTAL, OK, ERROR)


class CounterSnapshot(BaseModel):
    """Point-in-time copy of one destination's counters."""

    model_config = ConfigDict(frozen=True)

    total: int = 0
    ok: int = 0
    error: int = 0

    @property
    def in_flight(self) -> int:
        """Attempts started but not yet resolved to ok or error."""
        return self.total - self.ok - self.error


class DestinationCounters:
    """Lock-guarded total/ok/error triplet for a single destination."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._values: dict[str, int] = {kind: 0 for kind in COUNTER_KINDS}

    def add(self, kind: str, delta: int = 1) -> None:
        if kind not in self._values:
            raise KeyError(f"Unknown counter kind: {kind!r}")
        if delta < 0:
            raise ValueError("Counters are monotonic; delta must be >= 0")
        with self._lock:
            self._values[kind] += delta

    def snapshot(self) -> CounterSnapshot:
        with self._lock:
            return CounterSnapshot(**self._values)


class Statistics:
    """Registry of ``DestinationCounters`` keyed by destination name.

    Destinations are created lazily on first increment; ``get`` on an
    unknown destination returns an all-zero snapshot.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._destinations: dict[str, DestinationCounters] = {}

    def _counters(self, destination: str) -> DestinationCounters:
        with self._lock:
            counters = self._destinations.get(destination)
            if counters is None:
                counters = DestinationCounters()
                self._destinations[destination] = counters
            return counters

    def increment_total(self, destination: str) -> None:
        self._counters(destination).add(TOTAL)

    def increment_ok(self, destination: str) -> None:
        self._counters(destination).add(OK)

    def increment_error(self, destination: str) -> None:
        self._counters(destination).add(ERROR)

    def get(self, destination: str) -> CounterSnapshot:
        with self._lock:
            counters = self._destinations.get(destination)
        return counters.snapshot() if counters else CounterSnapshot()

    def snapshot(self) -> dict[str, CounterSnapshot]:
        """Copy of every destination's counters, sorted by name."""
        with self._lock:
            items = sorted(self._destinations.items())
        return {name: counters.snapshot() for name, counters in items}

    @property
    def destinations(self) -> list[str]:
        with self._lock:
            return sorted(self._destinations)
