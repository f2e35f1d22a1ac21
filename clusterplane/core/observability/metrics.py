"""
Metrics — in-process counters and latency summaries.

Exported as JSON by the webhook's /metrics endpoint and the CLI.  Each
series is identified by its name plus its label set; admission requests
arrive on concurrent webhook threads, so every series guards its own
state and the registry guards series creation.

Series in use:
    admission_decisions_total{operation, allowed, reason}
    admission_duration_ms{operation}
    reconcile_outcomes_total{action}
"""

from __future__ import annotations

import threading
import time
from typing import Any

SeriesKey = tuple[str, tuple[tuple[str, str], ...]]


def _series_key(name: str, labels: dict[str, str]) -> SeriesKey:
    return name, tuple(sorted(labels.items()))


class _Series:
    kind = ""

    def __init__(self, name: str, labels: dict[str, str]):
        self.name = name
        self.labels = dict(labels)
        self._lock = threading.Lock()

    def _export(self) -> dict[str, Any]:
        raise NotImplementedError

    def to_dict(self) -> dict[str, Any]:
        with self._lock:
            data = self._export()
        return {"name": self.name, "type": self.kind, **data, "labels": self.labels}


class Counter(_Series):
    """Monotonically increasing count of events."""

    kind = "counter"

    def __init__(self, name: str, labels: dict[str, str]):
        super().__init__(name, labels)
        self.value = 0

    def inc(self, n: int = 1) -> None:
        with self._lock:
            self.value += n

    def _export(self) -> dict[str, Any]:
        return {"value": self.value}


class Histogram(_Series):
    """Running count, sum and maximum of observed values.

    Only the aggregates are kept, so a long-running webhook holds a fixed
    amount of state per series no matter how many requests it serves.
    """

    kind = "histogram"

    def __init__(self, name: str, labels: dict[str, str]):
        super().__init__(name, labels)
        self.count = 0
        self.total = 0.0
        self.max = 0.0

    def observe(self, value: float) -> None:
        with self._lock:
            self.count += 1
            self.total += value
            if self.count == 1 or value > self.max:
                self.max = value

    @property
    def mean(self) -> float:
        return self.total / self.count if self.count else 0.0

    def _export(self) -> dict[str, Any]:
        return {"count": self.count, "mean": round(self.mean, 2), "max": self.max}


class MetricsRegistry:
    """All series recorded by one workspace."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._counters: dict[SeriesKey, Counter] = {}
        self._histograms: dict[SeriesKey, Histogram] = {}

    def counter(self, name: str, **labels: str) -> Counter:
        key = _series_key(name, labels)
        with self._lock:
            series = self._counters.get(key)
            if series is None:
                series = self._counters[key] = Counter(name, labels)
            return series

    def histogram(self, name: str, **labels: str) -> Histogram:
        key = _series_key(name, labels)
        with self._lock:
            series = self._histograms.get(key)
            if series is None:
                series = self._histograms[key] = Histogram(name, labels)
            return series

    def timer(self, name: str, **labels: str) -> TimerContext:
        """Time a block in milliseconds into the ``name`` histogram."""
        return TimerContext(self.histogram(name, **labels))

    def value(self, name: str, **labels: str) -> int:
        """Current value of a counter (0 if never incremented)."""
        with self._lock:
            series = self._counters.get(_series_key(name, labels))
        return series.value if series else 0

    def to_dict(self) -> dict[str, list[dict]]:
        with self._lock:
            counters = list(self._counters.values())
            histograms = list(self._histograms.values())
        return {
            "counters": [c.to_dict() for c in counters],
            "histograms": [h.to_dict() for h in histograms],
        }

    def reset(self) -> None:
        with self._lock:
            self._counters.clear()
            self._histograms.clear()


class TimerContext:
    def __init__(self, histogram: Histogram):
        self._histogram = histogram
        self._start = 0.0
        self.elapsed_ms = 0.0

    def __enter__(self) -> TimerContext:
        self._start = time.perf_counter()
        return self

    def __exit__(self, *exc: Any) -> None:
        self.elapsed_ms = (time.perf_counter() - self._start) * 1000
        self._histogram.observe(self.elapsed_ms)
