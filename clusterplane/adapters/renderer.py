"""
HelmRelease renderer — one release manifest per template.

Cluster templates and service templates both package a Helm chart; the
rendered form of a deployment is a HelmRelease per chart carrying the
deployment's configuration as values.  Chart packaging itself happens
elsewhere.
"""

from __future__ import annotations

import copy
from typing import Any

from clusterplane.adapters.base import Manifest, Renderer
from clusterplane.core.errors import RenderError
from clusterplane.core.models.meta import ObjectKey
from clusterplane.core.models.template import ClusterTemplate, ServiceTemplate

HELM_RELEASE_API_VERSION = "helm.toolkit.fluxcd.io/v2"
MANAGED_BY_LABEL = "clusterplane.io/managed-by"
TEMPLATE_LABEL = "clusterplane.io/template"


class HelmReleaseRenderer(Renderer):
    def render(
        self,
        template: ClusterTemplate | ServiceTemplate,
        config: dict[str, Any] | None,
        target: ObjectKey,
        release: str | None = None,
        namespace: str | None = None,
    ) -> list[Manifest]:
        chart = template.spec.helm
        if not chart.chart:
            raise RenderError(f"{template.kind} {template.name} has no chart to render")
        if config is not None and not isinstance(config, dict):
            raise RenderError(f"configuration for {target} is not a mapping")

        spec: dict[str, Any] = {
            "chart": {"spec": {"chart": chart.chart}},
            "values": copy.deepcopy(config) if config else {},
        }
        if chart.version:
            spec["chart"]["spec"]["version"] = chart.version

        return [{
            "apiVersion": HELM_RELEASE_API_VERSION,
            "kind": "HelmRelease",
            "metadata": {
                "name": release or target.name,
                "namespace": namespace or target.namespace,
                "labels": {
                    MANAGED_BY_LABEL: f"{target.namespace}.{target.name}",
                    TEMPLATE_LABEL: template.name,
                },
            },
            "spec": spec,
        }]
