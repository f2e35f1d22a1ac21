"""
Admission orchestrator — the create/update/delete/default decisions for
ClusterDeployments.

Every call works in two phases:

    1. snapshot — point reads of everything the decision needs (cluster
       template, credential, attached service templates), once;
    2. decide   — pure checks over (request, snapshot), first failure wins.

Nothing is ever written to the store: a decision is reproducible from
its snapshot.  Store failures abort the call as an internal rejection
(fail-closed) so operators can tell "your request is wrong" from "the
system is unhealthy".

Create:  template resolved → template valid → k8s compatibility →
         credential → cross-namespace refs → service templates valid
Update:  template resolved → (template changed: upgrade path → template
         valid → k8s compatibility) → credential → cross-namespace refs →
         service templates valid
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from clusterplane.core.errors import BadRequestError, DefaultingError, NotFoundError, StoreError
from clusterplane.core.models.credential import Credential
from clusterplane.core.models.deployment import ClusterDeployment
from clusterplane.core.models.objects import parse_deployment
from clusterplane.core.models.outcome import AdmissionResponse, CheckResult, ErrorKind
from clusterplane.core.models.settings import AdmissionSettings
from clusterplane.core.models.template import ClusterTemplate, ServiceTemplate
from clusterplane.core.observability.metrics import MetricsRegistry
from clusterplane.core.persistence.object_store import ObjectStore
from clusterplane.core.services import template_resolver
from clusterplane.core.services.compatibility import check_compatibility
from clusterplane.core.services.defaulting import apply_defaults, needs_defaults
from clusterplane.core.services.identity_matcher import match_credential
from clusterplane.core.services.provider_catalog import INFRA_PREFIX, ProviderIdentityCatalog
from clusterplane.core.services.service_refs import (
    services_have_valid_templates,
    validate_service_refs,
)
from clusterplane.core.services.template_resolver import check_template_valid
from clusterplane.core.services.upgrade_path import check_upgrade_path

logger = logging.getLogger(__name__)

INVALID_DEPLOYMENT_MSG = "the ClusterDeployment is invalid"
TEMPLATE_RULE = "template"


@dataclass(frozen=True)
class AdmissionSnapshot:
    """Everything one admission decision may look at."""

    template: ClusterTemplate | None
    credential: Credential | None
    service_templates: Mapping[str, ServiceTemplate | None] = field(default_factory=dict)


@dataclass
class DefaultingResult:
    """Outcome of ``on_default``: the decision plus the (maybe) defaulted object."""

    response: AdmissionResponse
    deployment: ClusterDeployment | None = None
    changed: bool = False


def take_snapshot(store: ObjectStore, deployment: ClusterDeployment) -> AdmissionSnapshot:
    """Point-read every object ``deployment`` references.

    Missing objects are recorded as None; the checks decide what a
    missing object means.

    Raises:
        StoreError: Any store failure other than not-found.
    """
    namespace = deployment.namespace
    template = template_resolver.find_cluster_template(store, namespace, deployment.spec.template)

    credential = None
    if deployment.spec.credential:
        credential = template_resolver.find_credential(store, namespace, deployment.spec.credential)

    service_templates: dict[str, ServiceTemplate | None] = {}
    for svc in deployment.spec.services:
        if svc.template not in service_templates:
            service_templates[svc.template] = template_resolver.find_service_template(
                store, namespace, svc.template
            )

    return AdmissionSnapshot(template, credential, service_templates)


# ── Pure decisions ──────────────────────────────────────────────


def _template_not_found(deployment: ClusterDeployment) -> CheckResult:
    return CheckResult.rejected(
        TEMPLATE_RULE,
        ErrorKind.NOT_FOUND,
        f"ClusterTemplate {deployment.namespace}/{deployment.spec.template} not found",
    )


def _template_checks(deployment: ClusterDeployment, snapshot: AdmissionSnapshot) -> CheckResult:
    """Validity and compatibility of the (resolved) cluster template."""
    assert snapshot.template is not None
    validity = check_template_valid(snapshot.template.status)
    if validity.failed:
        return validity

    return check_compatibility(
        snapshot.template.status.kubernetes_version,
        deployment.spec.services,
        snapshot.service_templates,
        deployment_ref=f"{deployment.namespace}/{deployment.name}",
    )


def _reference_checks(
    deployment: ClusterDeployment,
    snapshot: AdmissionSnapshot,
    catalog: ProviderIdentityCatalog,
    settings: AdmissionSettings,
    infra_prefix: str,
) -> CheckResult:
    """Credential, cross-namespace and service template checks."""
    assert snapshot.template is not None
    result = match_credential(
        snapshot.credential,
        snapshot.template,
        catalog,
        credential_ref=f"{deployment.namespace}/{deployment.spec.credential}",
        prefix=infra_prefix,
    )
    if result.failed:
        return result

    result = validate_service_refs(deployment, settings.cross_namespace)
    if result.failed:
        return result

    return services_have_valid_templates(deployment, snapshot.service_templates)


def decide_create(
    deployment: ClusterDeployment,
    snapshot: AdmissionSnapshot,
    catalog: ProviderIdentityCatalog,
    settings: AdmissionSettings,
    infra_prefix: str = INFRA_PREFIX,
) -> CheckResult:
    """First failing rule for creating ``deployment``, or a pass."""
    if snapshot.template is None:
        return _template_not_found(deployment)

    result = _template_checks(deployment, snapshot)
    if result.failed:
        return result

    return _reference_checks(deployment, snapshot, catalog, settings, infra_prefix)


def decide_update(
    old: ClusterDeployment,
    new: ClusterDeployment,
    snapshot: AdmissionSnapshot,
    catalog: ProviderIdentityCatalog,
    settings: AdmissionSettings,
    infra_prefix: str = INFRA_PREFIX,
) -> CheckResult:
    """First failing rule for updating ``old`` into ``new``, or a pass.

    Template validity and compatibility were enforced when the current
    template was adopted, so they only re-run when the reference changes.
    Credential and namespace checks always re-run: both can change
    independently of the template.
    """
    if snapshot.template is None:
        return _template_not_found(new)

    if old.spec.template != new.spec.template:
        result = check_upgrade_path(old, new, enforce=settings.validate_upgrade_path)
        if result.failed:
            return result

        result = _template_checks(new, snapshot)
        if result.failed:
            return result

    return _reference_checks(new, snapshot, catalog, settings, infra_prefix)


# ── Entry points ────────────────────────────────────────────────


class AdmissionController:
    """Admission entry points for ClusterDeployments.

    Holds no per-request state; safe to share between concurrent requests.
    """

    def __init__(
        self,
        store: ObjectStore,
        catalog: ProviderIdentityCatalog,
        settings: AdmissionSettings | None = None,
        infra_prefix: str = INFRA_PREFIX,
        metrics: MetricsRegistry | None = None,
    ):
        self._store = store
        self._catalog = catalog
        self._settings = settings or AdmissionSettings()
        self._infra_prefix = infra_prefix
        self._metrics = metrics or MetricsRegistry()

    @property
    def metrics(self) -> MetricsRegistry:
        return self._metrics

    def on_create(self, obj: Any) -> AdmissionResponse:
        with self._metrics.timer("admission_duration_ms", operation="create"):
            try:
                deployment = parse_deployment(obj)
            except BadRequestError as e:
                return self._record(self._bad_request("create", e))

            try:
                snapshot = take_snapshot(self._store, deployment)
            except StoreError as e:
                return self._record(self._internal("create", deployment, e))

            result = decide_create(
                deployment, snapshot, self._catalog, self._settings, self._infra_prefix
            )
            return self._record(self._respond("create", deployment, result))

    def on_update(self, old_obj: Any, new_obj: Any) -> AdmissionResponse:
        with self._metrics.timer("admission_duration_ms", operation="update"):
            try:
                old = parse_deployment(old_obj)
                new = parse_deployment(new_obj)
            except BadRequestError as e:
                return self._record(self._bad_request("update", e))

            try:
                snapshot = take_snapshot(self._store, new)
            except StoreError as e:
                return self._record(self._internal("update", new, e))

            result = decide_update(
                old, new, snapshot, self._catalog, self._settings, self._infra_prefix
            )
            return self._record(self._respond("update", new, result))

    def on_delete(self, obj: Any) -> AdmissionResponse:
        """Deletion is never gated here."""
        return self._record(AdmissionResponse.accept("delete"))

    def on_default(self, obj: Any) -> DefaultingResult:
        """Fill in the template's default configuration when none was given."""
        try:
            deployment = parse_deployment(obj)
        except BadRequestError as e:
            return DefaultingResult(self._record(self._bad_request("default", e)))

        if not needs_defaults(deployment):
            return DefaultingResult(self._record(AdmissionResponse.accept("default")), deployment)

        try:
            template = template_resolver.resolve_cluster_template(
                self._store, deployment.namespace, deployment.spec.template
            )
        except NotFoundError as e:
            result = CheckResult.rejected(TEMPLATE_RULE, ErrorKind.NOT_FOUND, str(e))
            response = AdmissionResponse.deny(
                "default", result, prefix="could not get template for the clusterDeployment"
            )
            return DefaultingResult(self._record(response))
        except StoreError as e:
            return DefaultingResult(self._record(self._internal("default", deployment, e)))

        try:
            defaulted = apply_defaults(deployment, template)
        except DefaultingError as e:
            response = AdmissionResponse.deny("default", e.result, prefix="template is invalid")
            return DefaultingResult(self._record(response))

        changed = defaulted is not deployment
        return DefaultingResult(self._record(AdmissionResponse.accept("default")), defaulted, changed)

    # ── Helpers ──────────────────────────────────────────────────

    def _respond(
        self,
        operation: str,
        deployment: ClusterDeployment,
        result: CheckResult,
    ) -> AdmissionResponse:
        if result.ok:
            logger.info(
                "Admitted %s of ClusterDeployment %s/%s",
                operation, deployment.namespace, deployment.name,
            )
            return AdmissionResponse.accept(operation, result.warnings)

        prefix = self._prefix_for(result)
        logger.info(
            "Rejected %s of ClusterDeployment %s/%s by rule %s: %s",
            operation, deployment.namespace, deployment.name, result.rule, result.message,
        )
        return AdmissionResponse.deny(operation, result, prefix=prefix)

    @staticmethod
    def _prefix_for(result: CheckResult) -> str:
        if result.rule == "k8s-compatibility":
            return "failed to validate k8s compatibility"
        if result.rule == "upgrade-path":
            return ""
        return INVALID_DEPLOYMENT_MSG

    def _internal(
        self,
        operation: str,
        deployment: ClusterDeployment,
        error: StoreError,
    ) -> AdmissionResponse:
        logger.error(
            "Store failure during %s admission of %s/%s: %s",
            operation, deployment.namespace, deployment.name, error,
        )
        result = CheckResult.rejected("store", ErrorKind.INTERNAL, str(error))
        return AdmissionResponse.deny(operation, result, prefix="internal error")

    @staticmethod
    def _bad_request(operation: str, error: BadRequestError) -> AdmissionResponse:
        result = CheckResult.rejected("object-kind", ErrorKind.BAD_REQUEST, str(error))
        return AdmissionResponse.deny(operation, result)

    def _record(self, response: AdmissionResponse) -> AdmissionResponse:
        self._metrics.counter(
            "admission_decisions_total",
            operation=response.operation,
            allowed=str(response.allowed).lower(),
            reason=str(response.reason or ""),
        ).inc()
        return response
