"""
Tests for persistence — state file and admission ledger.
"""

import json
from pathlib import Path

import pytest

from clusterplane.core.errors import StoreError
from clusterplane.core.models import AdmissionResponse, CheckResult, ErrorKind
from clusterplane.core.persistence.audit import AuditEntry, AuditWriter
from clusterplane.core.persistence.object_store import InMemoryObjectStore
from clusterplane.core.persistence.state_file import (
    SCHEMA_VERSION,
    default_state_path,
    load_store,
    save_store,
)

# ── State file ───────────────────────────────────────────────────────


class TestStateFile:
    def test_missing_file_is_empty_store(self, tmp_state_dir: Path):
        store = load_store(default_state_path(tmp_state_dir))
        assert store.all() == []

    def test_save_and_load(self, store, tmp_state_dir: Path, make_deployment):
        store.create(make_deployment())
        path = default_state_path(tmp_state_dir)

        save_store(store, path)
        restored = load_store(path)

        assert [o.kind for o in restored.all()] == ["ClusterDeployment", "ClusterTemplate", "Credential"]
        assert restored.revision == store.revision
        assert restored.get("ClusterDeployment", "default", "prod-1") == store.get(
            "ClusterDeployment", "default", "prod-1"
        )

    def test_file_format(self, store, tmp_state_dir: Path):
        path = default_state_path(tmp_state_dir)
        save_store(store, path)
        data = json.loads(path.read_text())
        assert data["schema_version"] == SCHEMA_VERSION
        assert data["objects"][0]["spec"]["helm"]["chart"] == "aws-standalone-cp"

    def test_no_temp_files_left(self, store, tmp_state_dir: Path):
        save_store(store, default_state_path(tmp_state_dir))
        assert [p.name for p in tmp_state_dir.iterdir()] == ["objects.json"]

    def test_creates_state_dir(self, tmp_path: Path):
        path = tmp_path / "nested" / "objects.json"
        save_store(InMemoryObjectStore(), path)
        assert path.is_file()

    def test_restored_store_continues_revisions(self, store, tmp_state_dir: Path, make_deployment):
        path = default_state_path(tmp_state_dir)
        save_store(store, path)
        restored = load_store(path)
        created = restored.create(make_deployment())
        assert created.metadata.resource_version == store.revision + 1

    @pytest.mark.parametrize("content, match", [
        ("{not json", "Cannot load"),
        ('{"objects": 3}', "expected an 'objects' list"),
        ('{"objects": [{"kind": "Pod"}]}', "unsupported object kind"),
    ])
    def test_corrupt_file(self, tmp_state_dir: Path, content, match):
        path = default_state_path(tmp_state_dir)
        path.write_text(content)
        with pytest.raises(StoreError, match=match):
            load_store(path)


# ── Admission ledger ─────────────────────────────────────────────────


def _denial() -> AdmissionResponse:
    return AdmissionResponse.deny(
        "create",
        CheckResult.rejected("credential", ErrorKind.INVALID, "credential is not ready"),
    )


class TestAuditEntry:
    def test_from_response(self):
        entry = AuditEntry.from_response(_denial(), "team-a", "prod-1", template="t", duration_ms=3)
        assert entry.operation == "create"
        assert entry.allowed is False
        assert entry.rule == "credential"
        assert entry.reason == "invalid"
        assert entry.timestamp

    def test_allowed_has_empty_reason(self):
        entry = AuditEntry.from_response(AdmissionResponse.accept("update", ["w"]), "ns", "n")
        assert entry.allowed
        assert entry.reason == ""
        assert entry.warnings == ["w"]


class TestAuditWriter:
    def test_write_and_read(self, tmp_state_dir: Path):
        writer = AuditWriter(state_dir=tmp_state_dir)
        writer.write(AuditEntry.from_response(_denial(), "default", "a"))
        writer.write(AuditEntry.from_response(AdmissionResponse.accept("create"), "default", "b"))

        entries = writer.read_all()

        assert [e.name for e in entries] == ["a", "b"]
        assert writer.path == tmp_state_dir / "admission.ndjson"
        assert len(writer.path.read_text().splitlines()) == 2

    def test_read_recent(self, tmp_path: Path):
        writer = AuditWriter(path=tmp_path / "ledger.ndjson")
        for i in range(5):
            writer.write(AuditEntry(operation="create", name=f"d{i}"))
        assert [e.name for e in writer.read_recent(2)] == ["d3", "d4"]

    def test_missing_ledger(self, tmp_path: Path):
        assert AuditWriter(path=tmp_path / "none.ndjson").read_all() == []

    def test_corrupt_lines_skipped(self, tmp_path: Path):
        path = tmp_path / "ledger.ndjson"
        writer = AuditWriter(path=path)
        writer.write(AuditEntry(name="good"))
        with path.open("a") as f:
            f.write("{broken\n\n")
            f.write('{"allowed": "maybe"}\n')
        writer.write(AuditEntry(name="also-good"))

        assert [e.name for e in writer.read_all()] == ["good", "also-good"]
