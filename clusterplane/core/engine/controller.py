"""
Controller — the local scheduling loop around the lifecycle reconciler.

Watches the object store, queues changed ClusterDeployments and runs
reconcile passes for the keys that are due.  Each key appears in the
queue at most once and a batch never holds the same key twice, so
passes for one deployment are serialized while different deployments
may run in parallel.

Flow:
    store change → enqueue key → pop ready keys → reconcile → requeue per outcome
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field

from clusterplane.core.models.meta import ObjectKey
from clusterplane.core.models.objects import StoreObject
from clusterplane.core.models.outcome import ReconcileOutcome
from clusterplane.core.persistence.object_store import ObjectStore, key_of
from clusterplane.core.reliability.requeue import RequeueQueue
from clusterplane.core.services.lifecycle import LifecycleReconciler

logger = logging.getLogger(__name__)

WATCHED_KIND = "ClusterDeployment"


@dataclass
class ControllerReport:
    """Outcomes of the passes run by one controller call."""

    outcomes: list[tuple[ObjectKey, ReconcileOutcome]] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.outcomes)

    @property
    def fatal(self) -> int:
        return sum(1 for _, o in self.outcomes if o.action == "fatal")

    def last(self, key: ObjectKey) -> ReconcileOutcome | None:
        """Most recent outcome for ``key``."""
        for k, outcome in reversed(self.outcomes):
            if k == key:
                return outcome
        return None

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "fatal": self.fatal,
            "passes": [
                {"key": str(k), **o.model_dump(mode="json")} for k, o in self.outcomes
            ],
        }


class Controller:
    """Queue-driven reconcile loop."""

    def __init__(
        self,
        store: ObjectStore,
        reconciler: LifecycleReconciler,
        queue: RequeueQueue | None = None,
        workers: int = 1,
    ):
        self._store = store
        self._reconciler = reconciler
        self._queue = queue or RequeueQueue()
        self._workers = max(1, workers)
        self._unsubscribe = store.subscribe(self._on_event)

    @property
    def queue(self) -> RequeueQueue:
        return self._queue

    def close(self) -> None:
        """Stop watching the store."""
        self._unsubscribe()

    def enqueue(self, key: ObjectKey, delay: float = 0.0) -> None:
        self._queue.add(key, delay)

    def enqueue_all(self) -> int:
        """Queue every stored ClusterDeployment; returns how many."""
        objects = self._store.list(WATCHED_KIND)
        for obj in objects:
            self._queue.add(key_of(obj))
        return len(objects)

    def run_once(self, cancel: threading.Event | None = None) -> ControllerReport:
        """Reconcile every key that is due right now."""
        report = ControllerReport()
        keys = self._queue.pop_ready()
        if not keys:
            return report

        if self._workers == 1 or len(keys) == 1:
            results = [(key, *self._run(key, cancel)) for key in keys]
        else:
            with ThreadPoolExecutor(max_workers=self._workers) as pool:
                futures = [(key, pool.submit(self._run, key, cancel)) for key in keys]
                results = [(key, *future.result()) for key, future in futures]

        for key, outcome, errored in results:
            if errored:
                self._queue.add_rate_limited(key, outcome.message)
            else:
                self._schedule(key, outcome)
            report.outcomes.append((key, outcome))
        return report

    def run_until_idle(
        self,
        max_rounds: int = 50,
        cancel: threading.Event | None = None,
    ) -> ControllerReport:
        """Run rounds until no key is immediately due (delayed keys stay queued)."""
        report = ControllerReport()
        for _ in range(max_rounds):
            if cancel is not None and cancel.is_set():
                break
            round_report = self.run_once(cancel)
            if not round_report.outcomes:
                break
            report.outcomes.extend(round_report.outcomes)
        return report

    # ── Internals ────────────────────────────────────────────────

    def _run(
        self,
        key: ObjectKey,
        cancel: threading.Event | None,
    ) -> tuple[ReconcileOutcome, bool]:
        """Run one pass; handler errors are retried with backoff."""
        try:
            return self._reconciler.reconcile(key, cancel), False
        except Exception as e:
            logger.exception("Reconcile handler for %s raised", key)
            return ReconcileOutcome.requeue_immediately(f"handler error: {e}"), True

    def _schedule(self, key: ObjectKey, outcome: ReconcileOutcome) -> None:
        status_marker = {"done": "✓", "fatal": "✗"}.get(outcome.action, "↻")
        logger.info("%s %s → %s %s", status_marker, key, outcome.action, outcome.message)

        if outcome.action == "requeue":
            self._queue.add(key)
        elif outcome.action == "requeue_after":
            self._queue.add(key, outcome.delay)
        else:
            self._queue.forget(key)

    def _on_event(self, event: str, obj: StoreObject) -> None:
        if obj.kind != WATCHED_KIND:
            return
        self._queue.add(key_of(obj))
