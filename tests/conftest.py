"""
Shared test fixtures and configuration.

Object factories are exposed as fixtures returning a callable, so each
test builds exactly the objects it needs:

    def test_x(store, make_deployment):
        store.create(make_deployment(template="other"))
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

import pytest

from clusterplane.core.context import Workspace
from clusterplane.core.models import (
    ClusterDeployment,
    ClusterTemplate,
    Credential,
    ServiceTemplate,
)
from clusterplane.core.models.settings import Settings
from clusterplane.core.persistence.object_store import InMemoryObjectStore
from clusterplane.core.services.provider_catalog import ProviderIdentityCatalog

CLUSTER_TEMPLATE = "aws-standalone-cp-0-0-1"
CREDENTIAL = "aws-cred"


def _cluster_template(
    name: str = CLUSTER_TEMPLATE,
    namespace: str = "default",
    *,
    valid: bool = True,
    error: str = "",
    providers: tuple[str, ...] = ("infrastructure-aws", "bootstrap-k0sproject-k0smotron"),
    k8s: str = "1.29.0",
    config: dict[str, Any] | None = None,
    upgrades: tuple[str, ...] = (),
    chart: str = "aws-standalone-cp",
) -> ClusterTemplate:
    return ClusterTemplate.model_validate({
        "metadata": {"name": name, "namespace": namespace},
        "spec": {"helm": {"chart": chart, "version": "0.0.1"}},
        "status": {
            "valid": valid,
            "validationError": error,
            "providers": list(providers),
            "kubernetesVersion": k8s,
            "config": config,
            "upgrades": list(upgrades),
        },
    })


def _service_template(
    name: str = "ingress-nginx-4-11-0",
    namespace: str = "default",
    *,
    valid: bool = True,
    error: str = "",
    constraint: str = "",
) -> ServiceTemplate:
    return ServiceTemplate.model_validate({
        "metadata": {"name": name, "namespace": namespace},
        "spec": {"helm": {"chart": name.rsplit("-", 3)[0], "version": "4.11.0"}},
        "status": {"valid": valid, "validationError": error, "kubernetesConstraint": constraint},
    })


def _credential(
    name: str = CREDENTIAL,
    namespace: str = "default",
    *,
    identity_kind: str = "AWSClusterStaticIdentity",
    ready: bool = True,
) -> Credential:
    return Credential.model_validate({
        "metadata": {"name": name, "namespace": namespace},
        "spec": {"identityRef": {"kind": identity_kind, "name": f"{name}-identity"}},
        "status": {"ready": ready},
    })


def _deployment(
    name: str = "prod-1",
    namespace: str = "default",
    *,
    template: str = CLUSTER_TEMPLATE,
    credential: str = CREDENTIAL,
    config: dict[str, Any] | None = None,
    services: list[dict[str, Any]] | None = None,
    dry_run: bool = False,
    available_upgrades: tuple[str, ...] = (),
) -> ClusterDeployment:
    return ClusterDeployment.model_validate({
        "metadata": {"name": name, "namespace": namespace},
        "spec": {
            "template": template,
            "credential": credential,
            "config": {"region": "us-east-2"} if config is None else config,
            "services": services or [],
            "dryRun": dry_run,
        },
        "status": {"availableUpgrades": list(available_upgrades)},
    })


@pytest.fixture
def make_cluster_template():
    return _cluster_template


@pytest.fixture
def make_service_template():
    return _service_template


@pytest.fixture
def make_credential():
    return _credential


@pytest.fixture
def make_deployment():
    return _deployment


@pytest.fixture
def catalog() -> ProviderIdentityCatalog:
    return ProviderIdentityCatalog.from_mapping({
        "aws": ["AWSClusterStaticIdentity", "AWSClusterRoleIdentity"],
        "azure": ["AzureClusterIdentity"],
        "openstack": ["Secret"],
    })


@pytest.fixture
def store() -> InMemoryObjectStore:
    """A store holding a valid AWS cluster template and a ready credential."""
    s = InMemoryObjectStore()
    s.create(_cluster_template())
    s.create(_credential())
    return s


@pytest.fixture
def tmp_state_dir(tmp_path: Path) -> Path:
    """Return a temporary directory for state files."""
    state_dir = tmp_path / "state"
    state_dir.mkdir()
    return state_dir


@pytest.fixture
def workspace(store: InMemoryObjectStore, catalog: ProviderIdentityCatalog, tmp_state_dir: Path) -> Workspace:
    return Workspace(settings=Settings(), state_dir=tmp_state_dir, store=store, catalog=catalog)
