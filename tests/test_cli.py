"""
Tests for CLI commands — apply, get, delete, admit, default, reconcile, providers.
"""

import json
import textwrap
from pathlib import Path

import pytest
from click.testing import CliRunner

from clusterplane.main import cli

FLEET = textwrap.dedent("""\
    kind: ClusterTemplate
    metadata:
      name: aws-standalone-cp-0-0-1
    spec:
      helm:
        chart: aws-standalone-cp
        version: 0.0.1
    status:
      valid: true
      providers: [infrastructure-aws, bootstrap-k0sproject-k0smotron]
      kubernetesVersion: 1.29.0
      config:
        region: us-west-2
    ---
    kind: Credential
    metadata:
      name: aws-cred
    spec:
      identityRef:
        kind: AWSClusterStaticIdentity
        name: aws-cred-identity
    status:
      ready: true
    ---
    kind: ClusterDeployment
    metadata:
      name: prod-1
    spec:
      template: aws-standalone-cp-0-0-1
      credential: aws-cred
      config:
        region: us-east-2
""")

DEPLOYMENT = textwrap.dedent("""\
    kind: ClusterDeployment
    metadata:
      name: staging
    spec:
      template: aws-standalone-cp-0-0-1
      credential: {credential}
""")


@pytest.fixture
def workdir(tmp_path: Path, monkeypatch) -> Path:
    """A directory with fleet.yaml and no clusterplane.yml anywhere above it."""
    monkeypatch.chdir(tmp_path)
    (tmp_path / "fleet.yaml").write_text(FLEET)
    return tmp_path


def _run(workdir: Path, *args: str):
    runner = CliRunner()
    return runner.invoke(cli, ["--state-dir", str(workdir / "state"), *args])


def _write_deployment(workdir: Path, credential: str = "aws-cred", name: str = "staging.yaml") -> str:
    path = workdir / name
    path.write_text(DEPLOYMENT.format(credential=credential))
    return str(path)


class TestCLIGlobal:
    """Tests for global CLI behavior."""

    def test_help(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["--help"])
        assert result.exit_code == 0
        assert "admission and lifecycle" in result.output
        for command in ("apply", "get", "delete", "admit", "default", "reconcile", "serve", "providers"):
            assert command in result.output

    def test_version(self):
        runner = CliRunner()
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "0.1.0" in result.output

    def test_missing_explicit_config(self, workdir: Path):
        result = _run(workdir, "--config", str(workdir / "nope.yml"), "providers")
        assert result.exit_code == 1
        assert "Config file not found" in result.output


class TestProvidersCommand:
    def test_lists_bundled_providers(self, workdir: Path):
        result = _run(workdir, "providers")
        assert result.exit_code == 0
        assert "infrastructure-<name>" in result.output
        assert "AWSClusterStaticIdentity" in result.output

    def test_json(self, workdir: Path):
        result = _run(workdir, "providers", "--json")
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert "AzureClusterIdentity" in data["azure"]


class TestApplyAndGet:
    def test_apply_creates_and_persists(self, workdir: Path):
        result = _run(workdir, "apply", "-f", "fleet.yaml")

        assert result.exit_code == 0, result.output
        assert "✓ ClusterDeployment/default/prod-1 created" in result.output
        assert (workdir / "state" / "objects.json").is_file()
        assert (workdir / "state" / "admission.ndjson").is_file()

    def test_reapply_is_unchanged(self, workdir: Path):
        _run(workdir, "apply", "-f", "fleet.yaml")
        result = _run(workdir, "apply", "-f", "fleet.yaml", "--json")
        data = json.loads(result.output)
        assert data["ok"] is True
        assert {item["action"] for item in data["items"]} == {"unchanged"}

    def test_rejected_deployment_exits_nonzero(self, workdir: Path):
        _run(workdir, "apply", "-f", "fleet.yaml")
        result = _run(workdir, "apply", "-f", _write_deployment(workdir, credential="ghost"))
        assert result.exit_code == 1
        assert "ClusterDeployment/default/staging rejected" in result.output

    def test_invalid_yaml(self, workdir: Path):
        (workdir / "bad.yaml").write_text("kind: [unclosed")
        result = _run(workdir, "apply", "-f", "bad.yaml")
        assert result.exit_code == 1
        assert "invalid YAML" in result.output

    def test_unknown_kind_document(self, workdir: Path):
        (workdir / "pod.yaml").write_text("kind: Pod\nmetadata:\n  name: p\n")
        result = _run(workdir, "apply", "-f", "pod.yaml")
        assert result.exit_code == 1
        assert "unsupported object kind" in result.output

    def test_get_list(self, workdir: Path):
        _run(workdir, "apply", "-f", "fleet.yaml")
        result = _run(workdir, "get", "cd")
        assert result.exit_code == 0
        assert "prod-1" in result.output
        assert "Pending" in result.output
        assert "template=aws-standalone-cp-0-0-1" in result.output

    def test_get_single_json(self, workdir: Path):
        _run(workdir, "apply", "-f", "fleet.yaml")
        result = _run(workdir, "get", "credential", "default/aws-cred", "--json")
        data = json.loads(result.output)
        assert data["spec"]["identityRef"]["kind"] == "AWSClusterStaticIdentity"

    def test_get_single_yaml(self, workdir: Path):
        _run(workdir, "apply", "-f", "fleet.yaml")
        result = _run(workdir, "get", "ct", "aws-standalone-cp-0-0-1")
        assert "kubernetesVersion: 1.29.0" in result.output

    def test_get_missing(self, workdir: Path):
        result = _run(workdir, "get", "cd", "nope")
        assert result.exit_code == 1
        assert "not found" in result.output

    def test_get_empty(self, workdir: Path):
        result = _run(workdir, "get", "servicetemplates")
        assert result.exit_code == 0
        assert "No ServiceTemplate objects found." in result.output

    def test_unknown_kind_argument(self, workdir: Path):
        result = _run(workdir, "get", "pods")
        assert result.exit_code == 2
        assert "unknown kind" in result.output


class TestAdmitAndDefault:
    def test_admit_allowed(self, workdir: Path):
        _run(workdir, "apply", "-f", "fleet.yaml")
        result = _run(workdir, "admit", _write_deployment(workdir))
        assert result.exit_code == 0
        assert "create allowed" in result.output

    def test_admit_denied_json(self, workdir: Path):
        _run(workdir, "apply", "-f", "fleet.yaml")
        result = _run(workdir, "admit", _write_deployment(workdir, credential="ghost"), "--json")
        assert result.exit_code == 1
        data = json.loads(result.output)
        assert data["allowed"] is False
        assert data["operation"] == "create"

    def test_admit_update_with_old(self, workdir: Path):
        _run(workdir, "apply", "-f", "fleet.yaml")
        old = _write_deployment(workdir)
        new = _write_deployment(workdir, name="new.yaml")
        result = _run(workdir, "admit", new, "--old", old)
        assert result.exit_code == 0
        assert "update allowed" in result.output

    def test_admit_does_not_store(self, workdir: Path):
        _run(workdir, "apply", "-f", "fleet.yaml")
        _run(workdir, "admit", _write_deployment(workdir))
        result = _run(workdir, "get", "cd", "staging")
        assert result.exit_code == 1

    def test_admit_requires_single_document(self, workdir: Path):
        result = _run(workdir, "admit", "fleet.yaml")
        assert result.exit_code == 1
        assert "expected exactly one document" in result.output

    def test_default_fills_config(self, workdir: Path):
        _run(workdir, "apply", "-f", "fleet.yaml")
        result = _run(workdir, "default", _write_deployment(workdir), "--json")
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["changed"] is True
        assert data["object"]["spec"]["config"] == {"region": "us-west-2"}
        assert data["object"]["spec"]["dryRun"] is True

    def test_default_without_template(self, workdir: Path):
        result = _run(workdir, "default", _write_deployment(workdir))
        assert result.exit_code == 1
        assert "denied" in result.output


class TestReconcileAndDelete:
    def test_reconcile_to_ready(self, workdir: Path):
        _run(workdir, "apply", "-f", "fleet.yaml")

        result = _run(workdir, "reconcile")

        assert result.exit_code == 0, result.output
        assert "✓ default/prod-1: done" in result.output
        rendered = workdir / "state" / "rendered" / "default" / "prod-1" / "helmrelease-prod-1.yaml"
        assert rendered.is_file()
        assert "Ready" in _run(workdir, "get", "cd").output

    def test_reconcile_json(self, workdir: Path):
        _run(workdir, "apply", "-f", "fleet.yaml")
        result = _run(workdir, "reconcile", "prod-1", "--json")
        data = json.loads(result.output)
        assert data["fatal"] == 0
        assert data["passes"][0]["action"] == "requeue"
        assert data["passes"][-1]["action"] == "done"

    def test_nothing_to_reconcile(self, workdir: Path):
        result = _run(workdir, "reconcile")
        assert result.exit_code == 0
        assert "Nothing to reconcile." in result.output

    def test_delete_then_finalize(self, workdir: Path):
        _run(workdir, "apply", "-f", "fleet.yaml")
        _run(workdir, "reconcile")

        deleted = _run(workdir, "delete", "cd", "prod-1")
        assert "✓ ClusterDeployment/default/prod-1 terminating" in deleted.output
        assert "(deleting)" in _run(workdir, "get", "cd").output

        _run(workdir, "reconcile")

        assert "No ClusterDeployment objects found." in _run(workdir, "get", "cd").output
        assert not (workdir / "state" / "rendered" / "default" / "prod-1").exists()

    def test_delete_unreconciled_is_immediate(self, workdir: Path):
        _run(workdir, "apply", "-f", "fleet.yaml")
        result = _run(workdir, "delete", "cd", "prod-1")
        assert "deleted" in result.output

    def test_delete_missing(self, workdir: Path):
        result = _run(workdir, "delete", "cred", "ghost")
        assert result.exit_code == 1
        assert "not found" in result.output
