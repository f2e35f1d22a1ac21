"""
Service reference checks.

- Cross-namespace: a service may only target a namespace other than the
  deployment's own when the cross-namespace policy allows it.  Works on
  the deployment alone; no template fetch.
- Service templates: every attached service template must exist and be
  valid, and no two attachments may share a name and target namespace.
"""

from __future__ import annotations

from collections.abc import Mapping

from clusterplane.core.models.deployment import ClusterDeployment
from clusterplane.core.models.outcome import CheckResult, ErrorKind
from clusterplane.core.models.settings import CrossNamespacePolicy
from clusterplane.core.models.template import ServiceTemplate

CROSS_NAMESPACE_RULE = "cross-namespace-refs"
SERVICE_TEMPLATES_RULE = "service-templates"


def validate_service_refs(
    deployment: ClusterDeployment,
    policy: CrossNamespacePolicy,
) -> CheckResult:
    """Reject the first service that targets a namespace the policy forbids."""
    for svc in deployment.spec.services:
        if policy.permits(deployment.namespace, svc.namespace):
            continue
        return CheckResult.rejected(
            CROSS_NAMESPACE_RULE,
            ErrorKind.POLICY_VIOLATION,
            f"cross-namespace service reference is not allowed: service "
            f"{svc.display_name!r} targets namespace {svc.namespace!r} "
            f"from namespace {deployment.namespace!r}",
        )
    return CheckResult.passed(CROSS_NAMESPACE_RULE)


def services_have_valid_templates(
    deployment: ClusterDeployment,
    service_templates: Mapping[str, ServiceTemplate | None],
) -> CheckResult:
    """Every attached service template exists and reports itself valid.

    Two attachments with the same name and target namespace would render
    to the same release, so the second one is rejected.
    """
    namespace = deployment.namespace
    seen: set[tuple[str, str]] = set()
    for svc in deployment.spec.services:
        target = (svc.namespace or namespace, svc.display_name)
        if target in seen:
            return CheckResult.rejected(
                SERVICE_TEMPLATES_RULE,
                ErrorKind.INVALID,
                f"service {svc.display_name!r} is attached more than once to namespace {target[0]!r}",
            )
        seen.add(target)
        template = service_templates.get(svc.template)
        if template is None:
            return CheckResult.rejected(
                SERVICE_TEMPLATES_RULE,
                ErrorKind.NOT_FOUND,
                f"the ServiceTemplate {namespace}/{svc.template} is not found",
            )
        if not template.status.valid:
            return CheckResult.rejected(
                SERVICE_TEMPLATES_RULE,
                ErrorKind.INVALID,
                f"the ServiceTemplate {namespace}/{svc.template} is invalid with the error: "
                f"{template.status.validation_error}",
            )
    return CheckResult.passed(SERVICE_TEMPLATES_RULE)
