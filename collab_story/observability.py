"""
Metrics collaborators.

The append engine reports counters and timings to a MetricsSink. The sink is
deliberately outside the engine: NullMetrics discards everything,
InMemoryMetrics keeps totals for the /metrics endpoint and for tests.
"""

import threading
from typing import Dict, Protocol


class MetricsSink(Protocol):
    """Protocol for counter/timer backends."""

    def incr(self, name: str, value: int = 1) -> None:
        """Increment a named counter."""
        ...

    def timing(self, name: str, ms: float) -> None:
        """Record a duration in milliseconds."""
        ...


class NullMetrics:
    """Sink that drops every measurement."""

    def incr(self, name: str, value: int = 1) -> None:
        pass

    def timing(self, name: str, ms: float) -> None:
        pass


class InMemoryMetrics:
    """Thread-safe in-process counters and timer aggregates."""

    def __init__(self):
        self._lock = threading.Lock()
        self._counters: Dict[str, int] = {}
        self._timers: Dict[str, Dict[str, float]] = {}

    def incr(self, name: str, value: int = 1) -> None:
        with self._lock:
            self._counters[name] = self._counters.get(name, 0) + value

    def timing(self, name: str, ms: float) -> None:
        with self._lock:
            agg = self._timers.setdefault(
                name, {"count": 0, "total_ms": 0.0, "max_ms": 0.0}
            )
            agg["count"] += 1
            agg["total_ms"] += ms
            agg["max_ms"] = max(agg["max_ms"], ms)

    def counter(self, name: str) -> int:
        with self._lock:
            return self._counters.get(name, 0)

    def snapshot(self) -> Dict[str, Dict]:
        """Copy of all counters and timers, safe to serialize."""
        with self._lock:
            return {
                "counters": dict(self._counters),
                "timers": {k: dict(v) for k, v in self._timers.items()},
            }
