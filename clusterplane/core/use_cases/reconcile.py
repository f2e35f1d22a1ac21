"""
Reconcile use case — run the controller over the workspace until it settles.

Uses the HelmRelease renderer and writes rendered manifests under
``<state_dir>/rendered/``.  Keys that want a delayed requeue (waiting
for health, teardown backoff) stay queued when the run returns; they
are picked up again by the next invocation.
"""

from __future__ import annotations

import logging
import threading

from clusterplane.adapters.base import Provisioner
from clusterplane.adapters.provisioner import ManifestDirProvisioner
from clusterplane.adapters.renderer import HelmReleaseRenderer
from clusterplane.core.context import Workspace
from clusterplane.core.engine.controller import Controller, ControllerReport
from clusterplane.core.models.meta import ObjectKey
from clusterplane.core.reliability.requeue import RequeueQueue
from clusterplane.core.services.lifecycle import LifecycleReconciler

logger = logging.getLogger(__name__)


def build_controller(
    workspace: Workspace,
    provisioner: Provisioner | None = None,
    workers: int = 1,
) -> Controller:
    """Wire a controller to the workspace's store, settings and metrics."""
    settings = workspace.settings.reconcile
    reconciler = LifecycleReconciler(
        workspace.store,
        HelmReleaseRenderer(),
        provisioner or ManifestDirProvisioner(workspace.rendered_dir),
        settings=settings,
        metrics=workspace.metrics,
    )
    queue = RequeueQueue(base_delay=settings.backoff_base, max_delay=settings.backoff_max)
    return Controller(workspace.store, reconciler, queue=queue, workers=workers)


def run_reconcile(
    workspace: Workspace,
    keys: list[ObjectKey] | None = None,
    provisioner: Provisioner | None = None,
    workers: int = 1,
    max_rounds: int = 50,
    cancel: threading.Event | None = None,
) -> ControllerReport:
    """Reconcile ``keys`` (default: every deployment) and persist the store."""
    controller = build_controller(workspace, provisioner, workers)
    try:
        if keys:
            for key in keys:
                controller.enqueue(key)
        else:
            count = controller.enqueue_all()
            logger.debug("Queued %d deployments", count)

        report = controller.run_until_idle(max_rounds=max_rounds, cancel=cancel)
        pending = controller.queue.size
        if pending:
            logger.info("%d deployments still waiting for a later pass", pending)
    finally:
        controller.close()

    workspace.save()
    return report
