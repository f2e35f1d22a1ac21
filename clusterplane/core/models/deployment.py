"""
ClusterDeployment — the user-declared request for a managed cluster.

The spec is what the user asked for; the status is what admission and
the lifecycle reconciler recorded.  ``config`` is either absent or a
complete mapping: it is replaced as a whole, never merged.
"""

from __future__ import annotations

from enum import StrEnum
from typing import Any, Literal

from pydantic import Field

from clusterplane.core.models.meta import Condition, ObjectKey, ObjectMeta, ObjectModel

# Finalizer the reconciler attaches before provisioning anything.
DEPLOYMENT_FINALIZER = "clusterplane.io/cluster-deployment"


class LifecyclePhase(StrEnum):
    """Lifecycle states of a ClusterDeployment."""

    PENDING = "Pending"
    PROVISIONING = "Provisioning"
    READY = "Ready"
    UPGRADING = "Upgrading"
    TERMINATING = "Terminating"
    DELETED = "Deleted"


class ServiceAttachment(ObjectModel):
    """An add-on service attached to the deployment, owned by value."""

    template: str
    name: str = ""
    disable: bool = False
    namespace: str = ""      # target namespace override ("" = deployment's own)

    @property
    def display_name(self) -> str:
        return self.name or self.template


class ClusterDeploymentSpec(ObjectModel):
    template: str = ""
    credential: str = ""
    config: dict[str, Any] | None = None
    services: list[ServiceAttachment] = Field(default_factory=list)
    dry_run: bool = False

    def enabled_services(self) -> list[ServiceAttachment]:
        """Attached services that are not disabled, in declaration order."""
        return [svc for svc in self.services if not svc.disable]


class ClusterDeploymentStatus(ObjectModel):
    phase: LifecyclePhase = LifecyclePhase.PENDING
    available_upgrades: list[str] = Field(default_factory=list)
    conditions: list[Condition] = Field(default_factory=list)
    observed_generation: int = 0
    observed_template: str = ""


class ClusterDeployment(ObjectModel):
    kind: Literal["ClusterDeployment"] = "ClusterDeployment"
    metadata: ObjectMeta
    spec: ClusterDeploymentSpec = Field(default_factory=ClusterDeploymentSpec)
    status: ClusterDeploymentStatus = Field(default_factory=ClusterDeploymentStatus)

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def namespace(self) -> str:
        return self.metadata.namespace

    @property
    def key(self) -> ObjectKey:
        return ObjectKey(self.kind, self.metadata.namespace, self.metadata.name)

    @property
    def finalized(self) -> bool:
        """Whether the reconciler's finalizer is attached."""
        return DEPLOYMENT_FINALIZER in self.metadata.finalizers
