"""
Template models — ClusterTemplate and ServiceTemplate.

Templates are versioned, validated blueprints.  Their ``status`` is
written by whatever validates the packaged chart; this core only reads
it.  A template with ``valid = false`` must never admit or default a
deployment.
"""

from __future__ import annotations

from typing import Any, Literal

from pydantic import Field

from clusterplane.core.models.meta import ObjectMeta, ObjectModel


class HelmChartRef(ObjectModel):
    """Chart the template packages."""

    chart: str = ""
    version: str = ""


class TemplateSpec(ObjectModel):
    helm: HelmChartRef = Field(default_factory=HelmChartRef)


class TemplateStatus(ObjectModel):
    """Status fields common to cluster and service templates."""

    valid: bool = False
    validation_error: str = ""
    providers: list[str] = Field(default_factory=list)
    config: dict[str, Any] | None = None    # default configuration


class ClusterTemplateStatus(TemplateStatus):
    kubernetes_version: str = ""
    upgrades: list[str] = Field(default_factory=list)


class ServiceTemplateStatus(TemplateStatus):
    kubernetes_constraint: str = ""


class ClusterTemplate(ObjectModel):
    """Blueprint for a cluster platform."""

    kind: Literal["ClusterTemplate"] = "ClusterTemplate"
    metadata: ObjectMeta
    spec: TemplateSpec = Field(default_factory=TemplateSpec)
    status: ClusterTemplateStatus = Field(default_factory=ClusterTemplateStatus)

    @property
    def name(self) -> str:
        return self.metadata.name


class ServiceTemplate(ObjectModel):
    """Blueprint for an add-on service installed on a cluster."""

    kind: Literal["ServiceTemplate"] = "ServiceTemplate"
    metadata: ObjectMeta
    spec: TemplateSpec = Field(default_factory=TemplateSpec)
    status: ServiceTemplateStatus = Field(default_factory=ServiceTemplateStatus)

    @property
    def name(self) -> str:
        return self.metadata.name
