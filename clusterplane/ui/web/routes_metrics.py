"""
Health & metrics routes.

Blueprint: metrics_bp
Prefix: /

Endpoints:
    GET /healthz   — liveness plus a store/catalog summary
    GET /metrics   — in-process counters and histograms as JSON
"""

from __future__ import annotations

from flask import Blueprint, current_app, jsonify

from clusterplane.core.context import Workspace

metrics_bp = Blueprint("metrics", __name__)


def _workspace() -> Workspace:
    return current_app.config["WORKSPACE"]


@metrics_bp.route("/healthz")
def healthz():  # type: ignore[no-untyped-def]
    workspace = _workspace()
    catalog = workspace.catalog
    return jsonify({
        "status": "ok",
        "objects": len(workspace.store.all()),
        "revision": workspace.store.revision,
        "providers": catalog.providers() if catalog is not None else [],
    })


@metrics_bp.route("/metrics")
def metrics():  # type: ignore[no-untyped-def]
    return jsonify(_workspace().metrics.to_dict())
