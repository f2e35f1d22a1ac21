"""
Admission routes — the validating and mutating webhooks.

Blueprint: admission_bp
Prefix: /

Thin HTTP wrappers over ``AdmissionController``.  Both endpoints speak
``admission.k8s.io/v1`` AdmissionReview: the HTTP status is always 200
for a well-formed review and the decision travels in ``response``.

Endpoints:
    POST /validate   — create / update / delete decisions
    POST /mutate     — defaulting, answered with a base64 JSONPatch
"""

from __future__ import annotations

import base64
import json
import logging
import time
from typing import Any

from flask import Blueprint, current_app, jsonify, request

from clusterplane.core.context import Workspace
from clusterplane.core.models.outcome import AdmissionResponse, ErrorKind
from clusterplane.core.persistence.audit import AuditEntry

logger = logging.getLogger(__name__)

admission_bp = Blueprint("admission", __name__)

REVIEW_API_VERSION = "admission.k8s.io/v1"

# Rejection reason → (HTTP-style status code, Kubernetes status reason)
_STATUS_BY_REASON: dict[ErrorKind | None, tuple[int, str]] = {
    ErrorKind.BAD_REQUEST: (400, "BadRequest"),
    ErrorKind.INTERNAL: (500, "InternalError"),
}
_DEFAULT_STATUS = (403, "Forbidden")


def _workspace() -> Workspace:
    return current_app.config["WORKSPACE"]


def _read_review() -> tuple[dict[str, Any] | None, Any]:
    """Return (request, error_response) from the posted AdmissionReview."""
    body = request.get_json(silent=True)
    if not isinstance(body, dict) or not isinstance(body.get("request"), dict):
        return None, (jsonify({"error": "expected an AdmissionReview with a request"}), 400)
    return body["request"], None


def _review(uid: str, response: dict[str, Any]) -> dict[str, Any]:
    return {
        "apiVersion": REVIEW_API_VERSION,
        "kind": "AdmissionReview",
        "response": {"uid": uid, **response},
    }


def _decision(response: AdmissionResponse) -> dict[str, Any]:
    result: dict[str, Any] = {"allowed": response.allowed}
    if response.warnings:
        result["warnings"] = list(response.warnings)
    if not response.allowed:
        code, reason = _STATUS_BY_REASON.get(response.reason, _DEFAULT_STATUS)
        result["status"] = {"code": code, "reason": reason, "message": response.message}
    return result


def _audit(response: AdmissionResponse, obj: Any, started: float) -> None:
    payload = obj if isinstance(obj, dict) else {}
    meta = payload.get("metadata") if isinstance(payload.get("metadata"), dict) else {}
    spec = payload.get("spec") if isinstance(payload.get("spec"), dict) else {}
    _workspace().audit.write(
        AuditEntry.from_response(
            response,
            namespace=str(meta.get("namespace", "default")),
            name=str(meta.get("name", "")),
            template=str(spec.get("template", "")),
            duration_ms=int((time.perf_counter() - started) * 1000),
        )
    )


@admission_bp.route("/validate", methods=["POST"])
def validate():  # type: ignore[no-untyped-def]
    """Validating webhook for ClusterDeployments."""
    req, error = _read_review()
    if error is not None:
        return error
    assert req is not None

    started = time.perf_counter()
    uid = str(req.get("uid", ""))
    operation = str(req.get("operation", "")).upper()
    obj = req.get("object")
    old_obj = req.get("oldObject")
    admission = _workspace().admission()

    if operation == "CREATE":
        response = admission.on_create(obj)
    elif operation == "UPDATE":
        response = admission.on_update(old_obj, obj)
    elif operation == "DELETE":
        obj = old_obj if obj is None else obj
        response = admission.on_delete(obj)
    else:
        return jsonify({"error": f"unsupported operation {operation!r}"}), 400

    _audit(response, obj, started)
    logger.debug("validate %s uid=%s allowed=%s", operation, uid, response.allowed)
    return jsonify(_review(uid, _decision(response)))


@admission_bp.route("/mutate", methods=["POST"])
def mutate():  # type: ignore[no-untyped-def]
    """Mutating webhook: default a deployment's config from its template."""
    req, error = _read_review()
    if error is not None:
        return error
    assert req is not None

    started = time.perf_counter()
    uid = str(req.get("uid", ""))
    obj = req.get("object")
    result = _workspace().admission().on_default(obj)
    _audit(result.response, obj, started)

    decision = _decision(result.response)
    if result.response.allowed and result.changed and result.deployment is not None:
        patch = [
            {"op": "add", "path": "/spec/config", "value": result.deployment.spec.config},
            {"op": "add", "path": "/spec/dryRun", "value": result.deployment.spec.dry_run},
        ]
        decision["patchType"] = "JSONPatch"
        decision["patch"] = base64.b64encode(json.dumps(patch).encode("utf-8")).decode("ascii")

    return jsonify(_review(uid, decision))
