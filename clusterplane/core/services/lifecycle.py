"""
Lifecycle reconciler — drives a ClusterDeployment through its phases.

    Pending ──finalizer──▶ Provisioning ──healthy──▶ Ready
                                 ▲                     │ template changed
                                 │                     ▼
                                 └──────────────── Upgrading ──healthy──▶ Ready
    any ──deletion requested──▶ Terminating ──teardown done──▶ Deleted

One pass observes the object, computes the desired status on a private
copy and commits it with a single optimistic-concurrency write.  A
cancelled pass (``cancel`` event set between sub-steps) commits
nothing.  The scheduler guarantees at most one pass per deployment at a
time, so no locking happens here.

Outcomes:
    done              nothing more to do until the object changes
    requeue           run again immediately (finalizer attached, stale read)
    requeue_after(s)  poll again later (waiting, transient failure)
    fatal             inputs cannot succeed until the deployment spec changes
"""

from __future__ import annotations

import logging
import threading

from clusterplane.adapters.base import Manifest, Provisioner, Renderer
from clusterplane.core.errors import (
    ConflictError,
    NotFoundError,
    ProvisionError,
    ReconcileAborted,
    RenderError,
    StoreError,
)
from clusterplane.core.models.deployment import (
    DEPLOYMENT_FINALIZER,
    ClusterDeployment,
    LifecyclePhase,
)
from clusterplane.core.models.meta import ObjectKey, set_condition
from clusterplane.core.models.outcome import ReconcileOutcome
from clusterplane.core.models.settings import ReconcileSettings
from clusterplane.core.models.template import ClusterTemplate
from clusterplane.core.observability.metrics import MetricsRegistry
from clusterplane.core.persistence.object_store import ObjectStore
from clusterplane.core.reliability.requeue import Backoff
from clusterplane.core.services import template_resolver

logger = logging.getLogger(__name__)

# Condition types
READY = "Ready"
TEMPLATE_READY = "TemplateReady"
SERVICES_READY = "ServicesReady"


class _StaleObject(Exception):
    """The object's spec changed while the pass was computing."""


class LifecycleReconciler:
    """Reconciles ClusterDeployments toward their rendered state."""

    def __init__(
        self,
        store: ObjectStore,
        renderer: Renderer,
        provisioner: Provisioner,
        settings: ReconcileSettings | None = None,
        metrics: MetricsRegistry | None = None,
    ):
        self._store = store
        self._renderer = renderer
        self._provisioner = provisioner
        self._settings = settings or ReconcileSettings()
        self._metrics = metrics or MetricsRegistry()
        self._backoff = Backoff(
            base_delay=self._settings.backoff_base,
            max_delay=self._settings.backoff_max,
        )

    def reconcile(self, key: ObjectKey, cancel: threading.Event | None = None) -> ReconcileOutcome:
        """Run one pass for the deployment at ``key``."""
        try:
            outcome = self._reconcile(key, cancel)
        except ReconcileAborted:
            logger.info("Reconcile of %s aborted; nothing committed", key)
            outcome = ReconcileOutcome.requeue_immediately("aborted")
        except _StaleObject:
            logger.debug("Reconcile of %s raced a spec change; retrying", key)
            outcome = ReconcileOutcome.requeue_immediately("object changed during reconcile")
        except StoreError as e:
            delay = self._backoff.next_delay(key)
            logger.warning("Store failure reconciling %s: %s (retry in %.1fs)", key, e, delay)
            outcome = ReconcileOutcome.requeue_after(delay, f"store error: {e}")

        self._metrics.counter("reconcile_outcomes_total", action=outcome.action).inc()
        return outcome

    def observe_phase(self, key: ObjectKey) -> LifecyclePhase:
        """Current phase of ``key``; Deleted once the store has reaped it."""
        try:
            obj = self._store.get(key.kind, key.namespace, key.name)
        except NotFoundError:
            return LifecyclePhase.DELETED
        assert isinstance(obj, ClusterDeployment)
        return obj.status.phase

    # ── The pass ─────────────────────────────────────────────────

    def _reconcile(self, key: ObjectKey, cancel: threading.Event | None) -> ReconcileOutcome:
        try:
            current = self._store.get(key.kind, key.namespace, key.name)
        except NotFoundError:
            logger.debug("%s is gone", key)
            self._backoff.forget(key)
            return ReconcileOutcome.done(LifecyclePhase.DELETED.value)
        assert isinstance(current, ClusterDeployment)

        desired = current.model_copy(deep=True)

        if current.metadata.deleting:
            return self._finalize(current, desired, cancel)

        if current.spec.dry_run:
            return self._dry_run(current, desired, cancel)

        if not current.finalized:
            desired.metadata.finalizers.append(DEPLOYMENT_FINALIZER)
            desired.status.phase = LifecyclePhase.PROVISIONING
            set_condition(desired.status.conditions, READY, False, "Provisioning", "finalizer attached")
            self._commit(current, desired, cancel)
            logger.info("Attached finalizer to %s", key)
            return ReconcileOutcome.requeue_immediately("finalizer attached")

        if self._settled(current):
            return ReconcileOutcome.done(LifecyclePhase.READY.value)

        _checkpoint(cancel)
        template = template_resolver.find_cluster_template(
            self._store, current.namespace, current.spec.template
        )
        if template is None:
            set_condition(
                desired.status.conditions, TEMPLATE_READY, False, "NotFound",
                f"ClusterTemplate {current.namespace}/{current.spec.template} not found",
            )
            return self._commit_requeue(current, desired, cancel)
        if not template.status.valid:
            set_condition(
                desired.status.conditions, TEMPLATE_READY, False, "Invalid",
                f"the template is not valid: {template.status.validation_error}",
            )
            return self._commit_requeue(current, desired, cancel)
        set_condition(desired.status.conditions, TEMPLATE_READY, True, "Valid")

        observed = current.status.observed_template
        upgrading = bool(observed) and observed != current.spec.template
        desired.status.phase = LifecyclePhase.UPGRADING if upgrading else LifecyclePhase.PROVISIONING

        _checkpoint(cancel)
        try:
            manifests = self._render(current, template)
        except _MissingServices as e:
            set_condition(desired.status.conditions, SERVICES_READY, False, "TemplateUnavailable", str(e))
            return self._commit_requeue(current, desired, cancel)
        except RenderError as e:
            logger.error("Cannot render %s: %s", key, e)
            set_condition(desired.status.conditions, READY, False, "RenderFailed", str(e))
            self._commit(current, desired, cancel)
            return ReconcileOutcome.fatal(str(e))
        set_condition(desired.status.conditions, SERVICES_READY, True, "Rendered")

        _checkpoint(cancel)
        try:
            self._provisioner.apply(key, manifests)
        except ProvisionError as e:
            logger.warning("Apply failed for %s: %s", key, e)
            set_condition(desired.status.conditions, READY, False, "ApplyFailed", str(e))
            return self._commit_requeue(current, desired, cancel)

        _checkpoint(cancel)
        if not self._provisioner.is_healthy(key):
            set_condition(
                desired.status.conditions, READY, False, "WaitingForResources",
                "rendered resources are not healthy yet",
            )
            return self._commit_requeue(current, desired, cancel)

        desired.status.phase = LifecyclePhase.READY
        desired.status.observed_generation = current.metadata.generation
        desired.status.observed_template = current.spec.template
        desired.status.available_upgrades = self._available_upgrades(current, template)
        set_condition(desired.status.conditions, READY, True, "Ready", "infrastructure is ready")
        self._commit(current, desired, cancel)
        self._backoff.forget(key)

        if upgrading:
            logger.info("%s upgraded from %s to %s", key, observed, current.spec.template)
        else:
            logger.info("%s is ready", key)
        return ReconcileOutcome.done(LifecyclePhase.READY.value)

    def _finalize(
        self,
        current: ClusterDeployment,
        desired: ClusterDeployment,
        cancel: threading.Event | None,
    ) -> ReconcileOutcome:
        key = current.key
        if not current.finalized:
            return ReconcileOutcome.done("no finalizer to remove")

        desired.status.phase = LifecyclePhase.TERMINATING
        _checkpoint(cancel)
        try:
            self._provisioner.teardown(key)
            leftovers = self._provisioner.resources(key)
            if leftovers:
                raise ProvisionError(f"resources still present: {', '.join(leftovers)}")
        except ProvisionError as e:
            delay = self._backoff.next_delay(key)
            logger.warning("Teardown of %s failed: %s (retry in %.1fs)", key, e, delay)
            set_condition(desired.status.conditions, READY, False, "TeardownFailed", str(e))
            self._commit(current, desired, cancel)
            return ReconcileOutcome.requeue_after(delay, str(e))

        desired.metadata.finalizers = [
            f for f in desired.metadata.finalizers if f != DEPLOYMENT_FINALIZER
        ]
        set_condition(desired.status.conditions, READY, False, "Deleted", "resources torn down")
        self._commit(current, desired, cancel)
        self._backoff.forget(key)
        logger.info("Finalized %s", key)
        return ReconcileOutcome.done(LifecyclePhase.DELETED.value)

    def _dry_run(
        self,
        current: ClusterDeployment,
        desired: ClusterDeployment,
        cancel: threading.Event | None,
    ) -> ReconcileOutcome:
        if current.finalized:
            # Paused: phase and applied resources stay as the last pass left them.
            message = "dry-run is enabled; provisioned resources are left in place"
        else:
            desired.status.phase = LifecyclePhase.PENDING
            message = "dry-run is enabled; disable it to provision"
        set_condition(desired.status.conditions, READY, False, "DryRun", message)
        self._commit(current, desired, cancel)
        return ReconcileOutcome.done("dry-run")

    # ── Helpers ──────────────────────────────────────────────────

    def _settled(self, current: ClusterDeployment) -> bool:
        status = current.status
        return (
            status.phase == LifecyclePhase.READY
            and status.observed_generation == current.metadata.generation
            and status.observed_template == current.spec.template
        )

    def _render(self, deployment: ClusterDeployment, template: ClusterTemplate) -> list[Manifest]:
        key = deployment.key
        manifests = self._renderer.render(template, deployment.spec.config, key)
        for svc in deployment.spec.enabled_services():
            svc_template = template_resolver.find_service_template(
                self._store, deployment.namespace, svc.template
            )
            if svc_template is None or not svc_template.status.valid:
                raise _MissingServices(
                    f"ServiceTemplate {deployment.namespace}/{svc.template} is missing or invalid"
                )
            manifests.extend(
                self._renderer.render(
                    svc_template, None, key,
                    release=f"{deployment.name}-{svc.display_name}",
                    namespace=svc.namespace or deployment.namespace,
                )
            )
        return manifests

    def _available_upgrades(self, deployment: ClusterDeployment, template: ClusterTemplate) -> list[str]:
        """Template upgrade targets that exist and are valid right now."""
        upgrades = []
        for name in template.status.upgrades:
            target = template_resolver.find_cluster_template(self._store, deployment.namespace, name)
            if target is not None and target.status.valid:
                upgrades.append(name)
        return upgrades

    def _commit_requeue(
        self,
        current: ClusterDeployment,
        desired: ClusterDeployment,
        cancel: threading.Event | None,
    ) -> ReconcileOutcome:
        self._commit(current, desired, cancel)
        return ReconcileOutcome.requeue_after(self._settings.requeue_after)

    def _commit(
        self,
        current: ClusterDeployment,
        desired: ClusterDeployment,
        cancel: threading.Event | None,
    ) -> None:
        """Write ``desired`` (metadata + status) in one step.

        On a conflict the computed finalizers and status are rebased onto
        the latest object, as long as its spec is the one this pass
        worked from.
        """
        if (
            desired.metadata.finalizers == current.metadata.finalizers
            and desired.status == current.status
        ):
            return
        _checkpoint(cancel)

        for attempt in range(self._settings.conflict_retries + 1):
            try:
                self._store.update(desired, include_status=True)
                return
            except ConflictError:
                logger.debug("Conflict writing %s (attempt %d)", current.key, attempt + 1)

            try:
                latest = self._store.get(current.kind, current.namespace, current.name)
            except NotFoundError:
                return
            assert isinstance(latest, ClusterDeployment)
            if (
                latest.metadata.generation != current.metadata.generation
                or latest.metadata.deleting != current.metadata.deleting
            ):
                raise _StaleObject()

            rebased = latest.model_copy(deep=True)
            rebased.metadata.finalizers = list(desired.metadata.finalizers)
            rebased.status = desired.status.model_copy(deep=True)
            desired = rebased

        raise _StaleObject()


class _MissingServices(Exception):
    """An enabled service's template is unavailable for rendering."""


def _checkpoint(cancel: threading.Event | None) -> None:
    if cancel is not None and cancel.is_set():
        raise ReconcileAborted()
