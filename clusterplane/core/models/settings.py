"""
Settings model — the validated form of clusterplane.yml.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from clusterplane.core.services.provider_catalog import INFRA_PREFIX


class CrossNamespacePolicy(BaseModel):
    """Which namespaces a deployment's services may target.

    ``allowed`` maps a deployment namespace to the target namespaces its
    services may use; ``"*"`` allows any.
    """

    allow_all: bool = False
    allowed: dict[str, list[str]] = Field(default_factory=dict)

    def permits(self, source: str, target: str) -> bool:
        if not target or target == source or self.allow_all:
            return True
        targets = self.allowed.get(source, [])
        return "*" in targets or target in targets


class AdmissionSettings(BaseModel):
    validate_upgrade_path: bool = True
    cross_namespace: CrossNamespacePolicy = Field(default_factory=CrossNamespacePolicy)


class ProviderSettings(BaseModel):
    infra_prefix: str = INFRA_PREFIX
    registrations: str | None = None    # extra registrations file, relative to the config


class ReconcileSettings(BaseModel):
    requeue_after: float = 10.0         # seconds between health polls
    backoff_base: float = 1.0           # teardown retry backoff
    backoff_max: float = 300.0
    conflict_retries: int = 3


class Settings(BaseModel):
    """Root settings model."""

    admission: AdmissionSettings = Field(default_factory=AdmissionSettings)
    providers: ProviderSettings = Field(default_factory=ProviderSettings)
    reconcile: ReconcileSettings = Field(default_factory=ReconcileSettings)
    state_dir: str = ".state"
