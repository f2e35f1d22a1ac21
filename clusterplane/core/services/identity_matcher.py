"""
Credential ↔ provider identity matching.

A credential can only be bound to a deployment whose template's
infrastructure providers all accept the credential's identity kind.
Providers are evaluated in the order the template declares them; the
first mismatch is reported.
"""

from __future__ import annotations

import logging

from clusterplane.core.models.credential import Credential
from clusterplane.core.models.outcome import CheckResult, ErrorKind
from clusterplane.core.models.template import ClusterTemplate
from clusterplane.core.services.provider_catalog import (
    INFRA_PREFIX,
    INTERNAL_PROVIDER,
    SECRET_KIND,
    ProviderIdentityCatalog,
)

logger = logging.getLogger(__name__)

RULE = "credential"


def infrastructure_providers(template: ClusterTemplate, prefix: str = INFRA_PREFIX) -> list[str]:
    """Short names of the template's infrastructure providers, in order."""
    return [
        provider[len(prefix):]
        for provider in template.status.providers
        if provider.startswith(prefix)
    ]


def match_credential(
    credential: Credential | None,
    template: ClusterTemplate,
    catalog: ProviderIdentityCatalog,
    credential_ref: str = "",
    prefix: str = INFRA_PREFIX,
) -> CheckResult:
    """Check that ``credential`` may drive every infra provider of ``template``.

    Args:
        credential: Snapshot of the referenced credential (None if not found).
        template: The resolved cluster template.
        catalog: Provider identity catalog.
        credential_ref: ``namespace/name`` of the credential, for messages.
        prefix: Marker of infrastructure providers in ``status.providers``.
    """
    if not template.status.providers:
        return _reject(ErrorKind.INVALID, f"template {template.name!r} has no providers defined")

    infra = infrastructure_providers(template, prefix)
    if not infra:
        return _reject(
            ErrorKind.INVALID,
            f"template {template.name!r} has no infrastructure providers defined",
        )

    if credential is None:
        return _reject(ErrorKind.NOT_FOUND, f"Credential {credential_ref} not found")

    if not credential.status.ready:
        return _reject(ErrorKind.INVALID, "credential is not Ready")

    kind = credential.identity_kind
    for provider in infra:
        if provider == INTERNAL_PROVIDER:
            if kind != SECRET_KIND:
                return _wrong_kind(kind, provider)
            continue

        accepted = catalog.lookup(provider)
        if accepted is None:
            return _reject(
                ErrorKind.POLICY_VIOLATION,
                f"unsupported infrastructure provider {provider}",
            )
        if kind not in accepted:
            return _wrong_kind(kind, provider)

    logger.debug("Credential %s (%s) matches providers %s", credential.name, kind, infra)
    return CheckResult.passed(RULE)


def _wrong_kind(kind: str, provider: str) -> CheckResult:
    return _reject(
        ErrorKind.POLICY_VIOLATION,
        f"wrong kind of the ClusterIdentity {kind!r} for provider {provider!r}",
    )


def _reject(reason: ErrorKind, message: str) -> CheckResult:
    return CheckResult.rejected(RULE, reason, message)
