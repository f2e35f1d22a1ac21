"""
Requeue queue — per-key scheduling of reconcile passes.

Uses exponential backoff with jitter for failures.  A key is held at
most once: re-adding it keeps the earliest due time, so a burst of
change notifications for one deployment collapses into one pass.
"""

from __future__ import annotations

import logging
import random
import threading
import time
from dataclasses import dataclass, field
from typing import Any

from clusterplane.core.models.meta import ObjectKey

logger = logging.getLogger(__name__)


@dataclass
class Backoff:
    """Exponential backoff with jitter, tracked per key."""

    base_delay: float = 1.0
    max_delay: float = 300.0
    jitter: float = 0.3
    _failures: dict[Any, int] = field(default_factory=dict)

    def next_delay(self, key: Any) -> float:
        """Record a failure for ``key`` and return how long to wait."""
        attempt = self._failures.get(key, 0) + 1
        self._failures[key] = attempt
        delay = min(self.base_delay * (2 ** (attempt - 1)), self.max_delay)
        delay += random.uniform(0, delay * self.jitter)
        logger.debug("Backoff for %s: attempt %d, delay %.1fs", key, attempt, delay)
        return delay

    def failures(self, key: Any) -> int:
        return self._failures.get(key, 0)

    def forget(self, key: Any) -> None:
        """Reset the failure count after a success."""
        self._failures.pop(key, None)


@dataclass
class RequeueItem:
    """A single scheduled key."""

    key: ObjectKey
    due_at: float = 0.0
    attempt: int = 0
    last_error: str = ""

    @property
    def ready(self) -> bool:
        return time.monotonic() >= self.due_at

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": str(self.key),
            "due_in": max(0.0, round(self.due_at - time.monotonic(), 2)),
            "attempt": self.attempt,
            "last_error": self.last_error,
        }


class RequeueQueue:
    """In-memory queue of keys waiting for a reconcile pass."""

    def __init__(self, base_delay: float = 1.0, max_delay: float = 300.0):
        self._lock = threading.Lock()
        self._items: dict[ObjectKey, RequeueItem] = {}
        self._backoff = Backoff(base_delay=base_delay, max_delay=max_delay)

    @property
    def size(self) -> int:
        return len(self._items)

    def add(self, key: ObjectKey, delay: float = 0.0) -> RequeueItem:
        """Schedule ``key`` after ``delay`` seconds (earliest due time wins)."""
        due = time.monotonic() + delay
        with self._lock:
            item = self._items.get(key)
            if item is None:
                item = RequeueItem(key=key, due_at=due)
                self._items[key] = item
            elif due < item.due_at:
                item.due_at = due
            return item

    def add_rate_limited(self, key: ObjectKey, error: str = "") -> RequeueItem:
        """Schedule ``key`` after a backoff delay for its failure count."""
        delay = self._backoff.next_delay(key)
        with self._lock:
            item = self._items.get(key) or RequeueItem(key=key)
            item.due_at = time.monotonic() + delay
            item.attempt = self._backoff.failures(key)
            item.last_error = error
            self._items[key] = item
            return item

    def forget(self, key: ObjectKey) -> None:
        """Reset the backoff history of ``key``."""
        self._backoff.forget(key)

    def pop_ready(self) -> list[ObjectKey]:
        """Remove and return every key that is due, earliest first."""
        with self._lock:
            ready = sorted(
                (item for item in self._items.values() if item.ready),
                key=lambda i: i.due_at,
            )
            for item in ready:
                del self._items[item.key]
        return [item.key for item in ready]

    def next_due_in(self) -> float | None:
        """Seconds until the next key is due (None when empty)."""
        with self._lock:
            if not self._items:
                return None
            earliest = min(item.due_at for item in self._items.values())
        return max(0.0, earliest - time.monotonic())

    def get_status(self) -> dict[str, Any]:
        with self._lock:
            return {
                "total": len(self._items),
                "items": [item.to_dict() for item in self._items.values()],
            }
