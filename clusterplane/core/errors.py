"""
Exception hierarchy for the control plane.

Check functions never raise these past their caller; they return a
``CheckResult``.  Exceptions are for the collaborator seams (object
store, renderer, provisioner) and for the boundaries where a request
is parsed or a configuration file is loaded.
"""

from __future__ import annotations


class ClusterPlaneError(Exception):
    """Root of every error raised by clusterplane."""


class ConfigError(ClusterPlaneError):
    """Raised when clusterplane.yml or a provider registration is invalid."""


# ── Object store ────────────────────────────────────────────────


class StoreError(ClusterPlaneError):
    """The object store could not serve a request (I/O, corruption)."""


class NotFoundError(StoreError):
    """The referenced object does not exist."""

    def __init__(self, kind: str, namespace: str, name: str):
        self.kind = kind
        self.namespace = namespace
        self.name = name
        super().__init__(f"{kind} {namespace}/{name} not found")


class AlreadyExistsError(StoreError):
    """An object with the same key is already stored."""


class ConflictError(StoreError):
    """Optimistic-concurrency check failed: the object changed underneath."""


# ── Admission ───────────────────────────────────────────────────


class BadRequestError(ClusterPlaneError):
    """The admission payload is not an object kind this core accepts."""


class DefaultingError(ClusterPlaneError):
    """Defaulting could not run because the template is unusable."""

    def __init__(self, result):  # type: ignore[no-untyped-def]
        self.result = result
        super().__init__(result.message)


# ── Reconciliation ──────────────────────────────────────────────


class RenderError(ClusterPlaneError):
    """The template and configuration could not be rendered to manifests."""


class ProvisionError(ClusterPlaneError):
    """Applying or tearing down rendered resources failed."""


class ReconcileAborted(ClusterPlaneError):
    """A reconcile pass was cancelled between two sub-steps."""
