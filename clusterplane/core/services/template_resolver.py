"""
Template resolver — point reads of templates and credentials.

No retries and no defaults: a missing object raises ``NotFoundError``
and any other store failure propagates verbatim so that the caller
fails closed.
"""

from __future__ import annotations

import logging

from clusterplane.core.errors import NotFoundError
from clusterplane.core.models.credential import Credential
from clusterplane.core.models.outcome import CheckResult, ErrorKind
from clusterplane.core.models.template import ClusterTemplate, ServiceTemplate, TemplateStatus
from clusterplane.core.persistence.object_store import ObjectStore

logger = logging.getLogger(__name__)

VALIDITY_RULE = "template-valid"


def resolve_cluster_template(store: ObjectStore, namespace: str, name: str) -> ClusterTemplate:
    """Fetch a ClusterTemplate.

    Raises:
        NotFoundError: No such template.
        StoreError: The store failed.
    """
    obj = store.get("ClusterTemplate", namespace, name)
    assert isinstance(obj, ClusterTemplate)
    return obj


def resolve_service_template(store: ObjectStore, namespace: str, name: str) -> ServiceTemplate:
    """Fetch a ServiceTemplate (same contract as the cluster variant)."""
    obj = store.get("ServiceTemplate", namespace, name)
    assert isinstance(obj, ServiceTemplate)
    return obj


def resolve_credential(store: ObjectStore, namespace: str, name: str) -> Credential:
    """Fetch a Credential (same contract as the template variants)."""
    obj = store.get("Credential", namespace, name)
    assert isinstance(obj, Credential)
    return obj


def find_cluster_template(store: ObjectStore, namespace: str, name: str) -> ClusterTemplate | None:
    """Like ``resolve_cluster_template`` but maps NotFound to None."""
    try:
        return resolve_cluster_template(store, namespace, name)
    except NotFoundError:
        logger.debug("ClusterTemplate %s/%s not found", namespace, name)
        return None


def find_service_template(store: ObjectStore, namespace: str, name: str) -> ServiceTemplate | None:
    try:
        return resolve_service_template(store, namespace, name)
    except NotFoundError:
        logger.debug("ServiceTemplate %s/%s not found", namespace, name)
        return None


def find_credential(store: ObjectStore, namespace: str, name: str) -> Credential | None:
    try:
        return resolve_credential(store, namespace, name)
    except NotFoundError:
        logger.debug("Credential %s/%s not found", namespace, name)
        return None


def check_template_valid(status: TemplateStatus) -> CheckResult:
    """A template whose validity flag is false can never be used."""
    if not status.valid:
        return CheckResult.rejected(
            VALIDITY_RULE,
            ErrorKind.INVALID,
            f"the template is not valid: {status.validation_error}",
        )
    return CheckResult.passed(VALIDITY_RULE)
