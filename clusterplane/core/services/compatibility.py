"""
Version compatibility — does the cluster's Kubernetes version satisfy
every enabled service's constraint?

Malformed versions or constraints cannot come out of a validated
template, so they are reported as internal failures rather than
as ordinary rejections.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping

from clusterplane.core.models.deployment import ServiceAttachment
from clusterplane.core.models.outcome import CheckResult, ErrorKind
from clusterplane.core.models.template import ServiceTemplate
from clusterplane.core.services.version_constraints import (
    Constraint,
    ConstraintError,
    VersionError,
    parse_version,
)

logger = logging.getLogger(__name__)

RULE = "k8s-compatibility"
COMPATIBILITY_WARNING = "Failed to validate k8s version compatibility with ServiceTemplates"


def check_compatibility(
    cluster_version: str,
    services: list[ServiceAttachment],
    service_templates: Mapping[str, ServiceTemplate | None],
    deployment_ref: str = "",
) -> CheckResult:
    """Check ``cluster_version`` against the enabled services' constraints.

    Args:
        cluster_version: Kubernetes version declared by the cluster template.
        services: The deployment's service attachments, in declaration order.
        service_templates: Snapshot of the referenced service templates
            (None for a template that was not found).
        deployment_ref: ``namespace/name`` used in messages.

    Returns:
        Passed, or the first failing service as a rejection.
    """
    enabled = [svc for svc in services if not svc.disable]
    if not cluster_version or not enabled:
        return CheckResult.passed(RULE)

    try:
        version = parse_version(cluster_version)
    except VersionError as e:
        logger.error("Cluster template of %s declares a bad version: %s", deployment_ref, e)
        return _failed(
            ErrorKind.INTERNAL,
            f"failed to parse k8s version {cluster_version} of the ClusterDeployment "
            f"{deployment_ref}: {e}",
        )

    for svc in enabled:
        template = service_templates.get(svc.template)
        if template is None:
            return _failed(
                ErrorKind.NOT_FOUND,
                f"failed to get ServiceTemplate {_ns(deployment_ref)}/{svc.template}: not found",
            )

        expression = template.status.kubernetes_constraint
        if not expression:
            continue

        try:
            constraint = Constraint.parse(expression)
        except ConstraintError as e:
            logger.error("ServiceTemplate %s declares a bad constraint: %s", svc.template, e)
            return _failed(
                ErrorKind.INTERNAL,
                f"failed to parse k8s constrained version {expression} of the "
                f"ServiceTemplate {_ns(deployment_ref)}/{svc.template}: {e}",
            )

        if not constraint.check(version):
            logger.debug(
                "Service %s rejects k8s %s (constraint %s)", svc.template, cluster_version, expression
            )
            return _failed(
                ErrorKind.CONSTRAINT_VIOLATION,
                f"k8s version {cluster_version} of the ClusterDeployment {deployment_ref} "
                f"does not satisfy constrained version {expression} from the ServiceTemplate "
                f"{_ns(deployment_ref)}/{svc.template}",
            )

    return CheckResult.passed(RULE)


def _failed(reason: ErrorKind, message: str) -> CheckResult:
    return CheckResult.rejected(RULE, reason, message, warnings=[COMPATIBILITY_WARNING])


def _ns(deployment_ref: str) -> str:
    return deployment_ref.split("/", 1)[0] if "/" in deployment_ref else deployment_ref
