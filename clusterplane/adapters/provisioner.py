"""
Manifest directory provisioner — "applies" manifests by writing them out.

Each deployment owns a directory ``<root>/<namespace>/<name>/`` holding
one YAML file per rendered resource (suffixed with its namespace when
that differs from the deployment's).  Apply rewrites the directory to
match the rendered set exactly; teardown removes it.  Useful for local
runs and for handing rendered output to a GitOps pipeline.
"""

from __future__ import annotations

import logging
import shutil
from pathlib import Path

import yaml

from clusterplane.adapters.base import Manifest, Provisioner, resource_ref
from clusterplane.core.errors import ProvisionError
from clusterplane.core.models.meta import ObjectKey

logger = logging.getLogger(__name__)


class ManifestDirProvisioner(Provisioner):
    def __init__(self, root: Path):
        self._root = root

    @property
    def name(self) -> str:
        return "manifest-dir"

    def target_dir(self, target: ObjectKey) -> Path:
        return self._root / target.namespace / target.name

    @staticmethod
    def _filename(target: ObjectKey, manifest: Manifest) -> str:
        meta = manifest.get("metadata", {})
        stem = f"{manifest.get('kind', 'object').lower()}-{meta.get('name', 'unnamed')}"
        namespace = meta.get("namespace") or target.namespace
        if namespace != target.namespace:
            stem = f"{stem}.{namespace}"
        return f"{stem}.yaml"

    def apply(self, target: ObjectKey, manifests: list[Manifest]) -> list[str]:
        directory = self.target_dir(target)
        wanted: dict[str, Manifest] = {}
        for manifest in manifests:
            wanted[self._filename(target, manifest)] = manifest

        try:
            directory.mkdir(parents=True, exist_ok=True)
            for filename, manifest in wanted.items():
                (directory / filename).write_text(
                    yaml.safe_dump(manifest, sort_keys=False), encoding="utf-8"
                )
            for stale in directory.glob("*.yaml"):
                if stale.name not in wanted:
                    stale.unlink()
                    logger.debug("Pruned stale manifest %s", stale)
        except OSError as e:
            raise ProvisionError(f"cannot write manifests for {target}: {e}") from e

        logger.info("Applied %d manifests for %s into %s", len(wanted), target, directory)
        return sorted(resource_ref(m) for m in manifests)

    def teardown(self, target: ObjectKey) -> None:
        directory = self.target_dir(target)
        if not directory.exists():
            return
        try:
            shutil.rmtree(directory)
        except OSError as e:
            raise ProvisionError(f"cannot remove manifests of {target}: {e}") from e
        logger.info("Removed manifests of %s", target)

    def is_healthy(self, target: ObjectKey) -> bool:
        directory = self.target_dir(target)
        return directory.is_dir() and any(directory.glob("*.yaml"))

    def resources(self, target: ObjectKey) -> list[str]:
        directory = self.target_dir(target)
        if not directory.is_dir():
            return []
        refs = []
        for path in sorted(directory.glob("*.yaml")):
            try:
                manifest = yaml.safe_load(path.read_text(encoding="utf-8"))
            except (OSError, yaml.YAMLError) as e:
                logger.warning("Unreadable manifest %s: %s", path, e)
                continue
            if isinstance(manifest, dict):
                refs.append(resource_ref(manifest))
        return sorted(refs)
