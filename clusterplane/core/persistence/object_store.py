"""
Object store — the shared, eventually-consistent home of every object.

The real system keeps these objects in a Kubernetes API server.  This
module defines the operations the core consumes from it and ships an
in-process, thread-safe implementation with the same semantics:

    - point reads by key, returning private copies
    - create / update guarded by ``resource_version`` (optimistic concurrency)
    - ``generation`` bumped whenever an object's spec changes
    - deletion with finalizers: the object is only marked (deletion
      timestamp) until its last finalizer is removed, then reaped
    - change notifications for subscribers (the controller)

Thread safety model
───────────────────
``_lock`` protects ``_objects`` and ``_revision``.  Subscribers are
notified after the lock is released so a callback may read the store.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Protocol

from clusterplane.core.errors import AlreadyExistsError, ConflictError, NotFoundError
from clusterplane.core.models.meta import ObjectKey
from clusterplane.core.models.objects import StoreObject

logger = logging.getLogger(__name__)

# event type ("ADDED", "MODIFIED", "DELETED"), object
Subscriber = Callable[[str, StoreObject], None]


class ObjectStore(Protocol):
    """Operations consumed from the object store collaborator."""

    def get(self, kind: str, namespace: str, name: str) -> StoreObject: ...

    def create(self, obj: StoreObject) -> StoreObject: ...

    def update(self, obj: StoreObject, *, include_status: bool = False) -> StoreObject: ...

    def update_status(self, obj: StoreObject) -> StoreObject: ...

    def delete(self, kind: str, namespace: str, name: str) -> StoreObject | None: ...

    def list(self, kind: str, namespace: str | None = None) -> list[StoreObject]: ...

    def subscribe(self, callback: Subscriber) -> Callable[[], None]: ...


def key_of(obj: StoreObject) -> ObjectKey:
    return ObjectKey(obj.kind, obj.metadata.namespace, obj.metadata.name)


class InMemoryObjectStore:
    """Thread-safe in-process object store."""

    def __init__(self, objects: list[StoreObject] | None = None):
        self._lock = threading.Lock()
        self._objects: dict[ObjectKey, StoreObject] = {}
        self._revision = 0
        self._subscribers: list[Subscriber] = []
        for obj in objects or []:
            self._load(obj)

    # ── Reads ────────────────────────────────────────────────────

    def get(self, kind: str, namespace: str, name: str) -> StoreObject:
        key = ObjectKey(kind, namespace, name)
        with self._lock:
            obj = self._objects.get(key)
            if obj is None:
                raise NotFoundError(kind, namespace, name)
            return obj.model_copy(deep=True)

    def list(self, kind: str, namespace: str | None = None) -> list[StoreObject]:
        with self._lock:
            found = [
                obj.model_copy(deep=True)
                for key, obj in sorted(self._objects.items())
                if key.kind == kind and (namespace is None or key.namespace == namespace)
            ]
        return found

    def all(self) -> list[StoreObject]:
        """Every stored object (used to persist the store)."""
        with self._lock:
            return [obj.model_copy(deep=True) for _, obj in sorted(self._objects.items())]

    @property
    def revision(self) -> int:
        return self._revision

    # ── Writes ───────────────────────────────────────────────────

    def create(self, obj: StoreObject) -> StoreObject:
        key = key_of(obj)
        with self._lock:
            if key in self._objects:
                raise AlreadyExistsError(f"{key} already exists")
            stored = obj.model_copy(deep=True)
            stored.metadata.generation = 1
            stored.metadata.resource_version = self._next_revision()
            stored.metadata.deletion_timestamp = None
            self._objects[key] = stored
            result = stored.model_copy(deep=True)
        logger.debug("Created %s (rv=%d)", key, result.metadata.resource_version)
        self._notify("ADDED", result)
        return result

    def update(self, obj: StoreObject, *, include_status: bool = False) -> StoreObject:
        """Write metadata and spec (and optionally status) in one step.

        Raises:
            NotFoundError: The object is gone.
            ConflictError: ``obj`` was read at an older resource version.
        """
        return self._write(obj, write_spec=True, write_status=include_status)

    def update_status(self, obj: StoreObject) -> StoreObject:
        """Write only the status of ``obj``."""
        return self._write(obj, write_spec=False, write_status=True)

    def delete(self, kind: str, namespace: str, name: str) -> StoreObject | None:
        """Request deletion.

        Returns:
            The marked object while finalizers remain, or None once reaped.
        """
        key = ObjectKey(kind, namespace, name)
        with self._lock:
            current = self._objects.get(key)
            if current is None:
                raise NotFoundError(kind, namespace, name)
            if not current.metadata.finalizers:
                del self._objects[key]
                self._next_revision()
                event, result = "DELETED", current
            else:
                if current.metadata.deletion_timestamp is None:
                    current.metadata.deletion_timestamp = datetime.now(UTC).isoformat()
                    current.metadata.resource_version = self._next_revision()
                event, result = "MODIFIED", current.model_copy(deep=True)
        logger.debug("Delete requested for %s → %s", key, event)
        self._notify(event, result)
        return None if event == "DELETED" else result

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register for change notifications; returns an unsubscribe callable."""
        with self._lock:
            self._subscribers.append(callback)

        def _unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return _unsubscribe

    # ── Internals ────────────────────────────────────────────────

    def _write(self, obj: StoreObject, *, write_spec: bool, write_status: bool) -> StoreObject:
        key = key_of(obj)
        with self._lock:
            current = self._objects.get(key)
            if current is None:
                raise NotFoundError(*key)
            if obj.metadata.resource_version != current.metadata.resource_version:
                raise ConflictError(
                    f"{key} was modified (have rv={obj.metadata.resource_version}, "
                    f"stored rv={current.metadata.resource_version})"
                )

            stored = current.model_copy(deep=True)
            if write_spec:
                if obj.spec.model_dump() != current.spec.model_dump():
                    stored.metadata.generation += 1
                stored.spec = obj.spec.model_copy(deep=True)
                stored.metadata.finalizers = list(obj.metadata.finalizers)
                stored.metadata.labels = dict(obj.metadata.labels)
                stored.metadata.annotations = dict(obj.metadata.annotations)
            if write_status:
                stored.status = obj.status.model_copy(deep=True)
            stored.metadata.resource_version = self._next_revision()

            if stored.metadata.deleting and not stored.metadata.finalizers:
                del self._objects[key]
                event = "DELETED"
            else:
                self._objects[key] = stored
                event = "MODIFIED"
            result = stored.model_copy(deep=True)

        logger.debug("%s %s (rv=%d)", event.title(), key, result.metadata.resource_version)
        self._notify(event, result)
        return result

    def _next_revision(self) -> int:
        self._revision += 1
        return self._revision

    def _load(self, obj: StoreObject) -> None:
        """Insert an object verbatim (restoring a persisted store)."""
        self._objects[key_of(obj)] = obj.model_copy(deep=True)
        self._revision = max(self._revision, obj.metadata.resource_version)

    def _notify(self, event: str, obj: StoreObject) -> None:
        with self._lock:
            subscribers = list(self._subscribers)
        for callback in subscribers:
            try:
                callback(event, obj)
            except Exception as e:
                logger.warning("Store subscriber failed on %s %s: %s", event, key_of(obj), e)
