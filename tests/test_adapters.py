"""
Tests for adapters — HelmRelease renderer, manifest-dir and mock provisioners.
"""

from pathlib import Path

import pytest
import yaml

from clusterplane.adapters.base import resource_ref
from clusterplane.adapters.mock import MockProvisioner
from clusterplane.adapters.provisioner import ManifestDirProvisioner
from clusterplane.adapters.renderer import (
    HELM_RELEASE_API_VERSION,
    MANAGED_BY_LABEL,
    TEMPLATE_LABEL,
    HelmReleaseRenderer,
)
from clusterplane.core.errors import ProvisionError, RenderError
from clusterplane.core.models import ObjectKey

KEY = ObjectKey("ClusterDeployment", "team-a", "edge")


def _release(name: str, namespace: str = "team-a") -> dict:
    return {
        "apiVersion": HELM_RELEASE_API_VERSION,
        "kind": "HelmRelease",
        "metadata": {"name": name, "namespace": namespace},
        "spec": {},
    }


# ── Renderer ─────────────────────────────────────────────────────────


class TestHelmReleaseRenderer:
    def test_cluster_release(self, make_cluster_template):
        tpl = make_cluster_template()
        [manifest] = HelmReleaseRenderer().render(tpl, {"region": "us-east-2"}, KEY)

        assert manifest["kind"] == "HelmRelease"
        assert manifest["metadata"]["name"] == "edge"
        assert manifest["metadata"]["namespace"] == "team-a"
        assert manifest["metadata"]["labels"] == {
            MANAGED_BY_LABEL: "team-a.edge",
            TEMPLATE_LABEL: "aws-standalone-cp-0-0-1",
        }
        assert manifest["spec"]["chart"]["spec"] == {"chart": "aws-standalone-cp", "version": "0.0.1"}
        assert manifest["spec"]["values"] == {"region": "us-east-2"}

    def test_release_name_override(self, make_service_template):
        [manifest] = HelmReleaseRenderer().render(make_service_template(), None, KEY, release="edge-ingress")
        assert manifest["metadata"]["name"] == "edge-ingress"
        assert manifest["spec"]["values"] == {}

    def test_namespace_override(self, make_service_template):
        [manifest] = HelmReleaseRenderer().render(
            make_service_template(), None, KEY, release="edge-ingress", namespace="ingress"
        )
        assert manifest["metadata"]["namespace"] == "ingress"
        assert manifest["metadata"]["labels"][MANAGED_BY_LABEL] == "team-a.edge"

    def test_values_are_copied(self, make_cluster_template):
        config = {"workers": {"count": 2}}
        [manifest] = HelmReleaseRenderer().render(make_cluster_template(), config, KEY)
        manifest["spec"]["values"]["workers"]["count"] = 7
        assert config == {"workers": {"count": 2}}

    def test_missing_chart(self, make_cluster_template):
        with pytest.raises(RenderError, match="no chart"):
            HelmReleaseRenderer().render(make_cluster_template(chart=""), {}, KEY)

    def test_non_mapping_config(self, make_cluster_template):
        with pytest.raises(RenderError, match="not a mapping"):
            HelmReleaseRenderer().render(make_cluster_template(), ["a", "b"], KEY)  # type: ignore[arg-type]


class TestResourceRef:
    def test_ref(self):
        assert resource_ref(_release("x")) == "HelmRelease/team-a/x"

    def test_incomplete_manifest(self):
        assert resource_ref({}) == "?//"


# ── Manifest directory provisioner ───────────────────────────────────


class TestManifestDirProvisioner:
    def test_apply_writes_one_file_per_manifest(self, tmp_path: Path):
        prov = ManifestDirProvisioner(tmp_path)

        refs = prov.apply(KEY, [_release("edge"), _release("edge-ingress")])

        directory = tmp_path / "team-a" / "edge"
        assert sorted(p.name for p in directory.iterdir()) == [
            "helmrelease-edge-ingress.yaml",
            "helmrelease-edge.yaml",
        ]
        assert refs == ["HelmRelease/team-a/edge", "HelmRelease/team-a/edge-ingress"]
        data = yaml.safe_load((directory / "helmrelease-edge.yaml").read_text())
        assert data["metadata"]["name"] == "edge"

    def test_same_name_in_two_namespaces(self, tmp_path: Path):
        prov = ManifestDirProvisioner(tmp_path)

        prov.apply(KEY, [_release("edge-ingress", "ingress-a"), _release("edge-ingress", "ingress-b")])

        assert sorted(p.name for p in prov.target_dir(KEY).iterdir()) == [
            "helmrelease-edge-ingress.ingress-a.yaml",
            "helmrelease-edge-ingress.ingress-b.yaml",
        ]
        assert prov.resources(KEY) == [
            "HelmRelease/ingress-a/edge-ingress",
            "HelmRelease/ingress-b/edge-ingress",
        ]

    def test_apply_prunes_stale_manifests(self, tmp_path: Path):
        prov = ManifestDirProvisioner(tmp_path)
        prov.apply(KEY, [_release("edge"), _release("edge-ingress")])

        prov.apply(KEY, [_release("edge")])

        assert prov.resources(KEY) == ["HelmRelease/team-a/edge"]

    def test_health_and_teardown(self, tmp_path: Path):
        prov = ManifestDirProvisioner(tmp_path)
        assert not prov.is_healthy(KEY)

        prov.apply(KEY, [_release("edge")])
        assert prov.is_healthy(KEY)

        prov.teardown(KEY)
        assert not prov.is_healthy(KEY)
        assert prov.resources(KEY) == []
        assert not (tmp_path / "team-a" / "edge").exists()

    def test_teardown_of_unknown_target(self, tmp_path: Path):
        ManifestDirProvisioner(tmp_path).teardown(KEY)

    def test_unwritable_root(self, tmp_path: Path):
        blocker = tmp_path / "file"
        blocker.write_text("not a directory")
        with pytest.raises(ProvisionError, match="cannot write"):
            ManifestDirProvisioner(blocker).apply(KEY, [_release("edge")])

    def test_unreadable_manifest_is_skipped(self, tmp_path: Path):
        prov = ManifestDirProvisioner(tmp_path)
        prov.apply(KEY, [_release("edge")])
        (prov.target_dir(KEY) / "broken.yaml").write_text("key: [unclosed")
        assert prov.resources(KEY) == ["HelmRelease/team-a/edge"]

    def test_repr(self, tmp_path: Path):
        assert repr(ManifestDirProvisioner(tmp_path)) == "<ManifestDirProvisioner name='manifest-dir'>"


# ── Mock provisioner ─────────────────────────────────────────────────


class TestMockProvisioner:
    def test_apply_and_resources(self):
        mock = MockProvisioner()
        mock.apply(KEY, [_release("edge")])
        assert mock.resources(KEY) == ["HelmRelease/team-a/edge"]
        assert mock.is_healthy(KEY)
        assert mock.calls == [("apply", KEY)]

    def test_injected_failures(self):
        mock = MockProvisioner()
        mock.fail_apply(1)
        mock.fail_teardown(1)

        with pytest.raises(ProvisionError):
            mock.apply(KEY, [])
        with pytest.raises(ProvisionError):
            mock.teardown(KEY)

        mock.apply(KEY, [_release("edge")])
        mock.teardown(KEY)
        assert mock.resources(KEY) == []

    def test_unhealthy(self):
        mock = MockProvisioner(healthy=False)
        mock.apply(KEY, [_release("edge")])
        assert not mock.is_healthy(KEY)
