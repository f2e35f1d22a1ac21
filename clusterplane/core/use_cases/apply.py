"""
Apply use case — admit and persist manifests, the way an API server would.

ClusterDeployments go through the full admission chain before they
reach the store:

    default (fill config from template) → validate create/update → persist

Templates and credentials are stored as given, status included: their
validation happens upstream.  Every admission decision is appended to
the admission ledger.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Any

import yaml

from clusterplane.core.context import Workspace
from clusterplane.core.errors import BadRequestError, NotFoundError
from clusterplane.core.models.deployment import ClusterDeployment
from clusterplane.core.models.objects import StoreObject, parse_object
from clusterplane.core.models.outcome import AdmissionResponse
from clusterplane.core.persistence.audit import AuditEntry
from clusterplane.core.persistence.object_store import key_of
from clusterplane.core.services.admission import DefaultingResult

logger = logging.getLogger(__name__)


@dataclass
class ApplyItem:
    """What happened to one manifest."""

    key: str
    action: str     # created, updated, unchanged, rejected, terminating, deleted
    response: AdmissionResponse | None = None

    @property
    def ok(self) -> bool:
        return self.action != "rejected"

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"key": self.key, "action": self.action}
        if self.response is not None:
            result["admission"] = self.response.to_dict()
        return result


@dataclass
class ApplyResult:
    items: list[ApplyItem] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return all(item.ok for item in self.items)

    @property
    def rejected(self) -> int:
        return sum(1 for item in self.items if not item.ok)

    def to_dict(self) -> dict[str, Any]:
        return {"ok": self.ok, "items": [item.to_dict() for item in self.items]}


def load_documents(text: str) -> list[dict[str, Any]]:
    """Split a (multi-document) YAML stream into manifest mappings.

    Raises:
        BadRequestError: Invalid YAML, or a document that is not a mapping.
    """
    try:
        documents = [doc for doc in yaml.safe_load_all(text) if doc is not None]
    except yaml.YAMLError as e:
        raise BadRequestError(f"invalid YAML: {e}") from e

    for index, doc in enumerate(documents):
        if not isinstance(doc, dict):
            raise BadRequestError(f"document #{index} is a {type(doc).__name__}, not a mapping")
    return documents


def apply_manifests(workspace: Workspace, documents: list[dict[str, Any]]) -> ApplyResult:
    """Admit and store every document, in order.

    A rejected deployment does not stop the remaining documents.

    Raises:
        BadRequestError: A document is not one of the known kinds.
    """
    objects = [parse_object(doc) for doc in documents]
    result = ApplyResult()
    for obj in objects:
        if isinstance(obj, ClusterDeployment):
            item = _apply_deployment(workspace, obj)
        else:
            item = _apply_plain(workspace, obj)
        logger.info("%s %s", item.action, item.key)
        result.items.append(item)
    return result


def delete_object(workspace: Workspace, kind: str, namespace: str, name: str) -> ApplyItem:
    """Request deletion; finalized deployments linger until reconciled.

    Raises:
        NotFoundError: No such object.
    """
    key = f"{kind}/{namespace}/{name}"
    if kind == "ClusterDeployment":
        current = workspace.store.get(kind, namespace, name)
        response = workspace.admission().on_delete(current)
        _audit(workspace, response, current, 0.0)

    remaining = workspace.store.delete(kind, namespace, name)
    action = "terminating" if remaining is not None else "deleted"
    return ApplyItem(key=key, action=action)


def admit(
    workspace: Workspace,
    document: dict[str, Any],
    old_document: dict[str, Any] | None = None,
) -> AdmissionResponse:
    """Evaluate a deployment against the current store without persisting it."""
    admission = workspace.admission()
    started = time.perf_counter()
    if old_document is None:
        response = admission.on_create(document)
    else:
        response = admission.on_update(old_document, document)
    _audit_raw(workspace, response, document, started)
    return response


def default_document(workspace: Workspace, document: dict[str, Any]) -> DefaultingResult:
    """Run defaulting on a deployment payload without persisting it."""
    started = time.perf_counter()
    result = workspace.admission().on_default(document)
    _audit_raw(workspace, result.response, document, started)
    return result


# ── Internals ───────────────────────────────────────────────────


def _apply_deployment(workspace: Workspace, deployment: ClusterDeployment) -> ApplyItem:
    admission = workspace.admission()
    key = str(deployment.key)
    started = time.perf_counter()

    defaulted = admission.on_default(deployment)
    if not defaulted.response.allowed:
        _audit(workspace, defaulted.response, deployment, started)
        return ApplyItem(key=key, action="rejected", response=defaulted.response)
    assert defaulted.deployment is not None
    deployment = defaulted.deployment

    try:
        existing = workspace.store.get(deployment.kind, deployment.namespace, deployment.name)
    except NotFoundError:
        existing = None

    if existing is None:
        response = admission.on_create(deployment)
    else:
        response = admission.on_update(existing, deployment)
    _audit(workspace, response, deployment, started)
    if not response.allowed:
        return ApplyItem(key=key, action="rejected", response=response)

    if existing is None:
        workspace.store.create(deployment)
        return ApplyItem(key=key, action="created", response=response)

    assert isinstance(existing, ClusterDeployment)
    if existing.spec == deployment.spec and existing.metadata.labels == deployment.metadata.labels:
        return ApplyItem(key=key, action="unchanged", response=response)

    # The store owns bookkeeping; only spec, labels and annotations come from the manifest.
    updated = existing.model_copy(deep=True)
    updated.spec = deployment.spec
    updated.metadata.labels = dict(deployment.metadata.labels)
    updated.metadata.annotations = dict(deployment.metadata.annotations)
    workspace.store.update(updated)
    return ApplyItem(key=key, action="updated", response=response)


def _apply_plain(workspace: Workspace, obj: StoreObject) -> ApplyItem:
    key = key_of(obj)
    try:
        existing = workspace.store.get(*key)
    except NotFoundError:
        # Status is kept as given: templates arrive already validated.
        workspace.store.create(obj)
        return ApplyItem(key=str(key), action="created")

    if existing.spec == obj.spec and existing.status == obj.status:
        return ApplyItem(key=str(key), action="unchanged")

    updated = obj.model_copy(deep=True)
    updated.metadata = existing.metadata.model_copy(deep=True)
    updated.metadata.labels = dict(obj.metadata.labels)
    updated.metadata.annotations = dict(obj.metadata.annotations)
    workspace.store.update(updated, include_status=True)
    return ApplyItem(key=str(key), action="updated")


def _audit(
    workspace: Workspace,
    response: AdmissionResponse,
    deployment: ClusterDeployment,
    started: float,
) -> None:
    elapsed_ms = int((time.perf_counter() - started) * 1000) if started else 0
    workspace.audit.write(
        AuditEntry.from_response(
            response,
            namespace=deployment.namespace,
            name=deployment.name,
            template=deployment.spec.template,
            duration_ms=elapsed_ms,
        )
    )


def _audit_raw(
    workspace: Workspace,
    response: AdmissionResponse,
    document: dict[str, Any],
    started: float,
) -> None:
    """Audit a decision on a payload that may not even parse."""
    meta = document.get("metadata") if isinstance(document.get("metadata"), dict) else {}
    spec = document.get("spec") if isinstance(document.get("spec"), dict) else {}
    workspace.audit.write(
        AuditEntry.from_response(
            response,
            namespace=str(meta.get("namespace", "default")),
            name=str(meta.get("name", "")),
            template=str(spec.get("template", "")),
            duration_ms=int((time.perf_counter() - started) * 1000),
        )
    )
