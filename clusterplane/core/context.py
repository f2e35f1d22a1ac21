"""
Workspace context — the settings, store and collaborators one process works with.

Every entry point builds exactly one ``Workspace``:

    - CLI:          main.py     → open_workspace(config, state_dir)
    - Web server:   server.py   → create_app(workspace)
    - Tests:        conftest    → Workspace(settings, tmp_path)

The store lives in memory while the process runs and is persisted to
``<state_dir>/objects.json`` with ``save()``.  The provider catalog is
built once and never changes for the life of the workspace.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from clusterplane.core.config.loader import load_settings
from clusterplane.core.config.provider_loader import build_catalog
from clusterplane.core.models.settings import Settings
from clusterplane.core.observability.metrics import MetricsRegistry
from clusterplane.core.persistence.audit import AuditWriter
from clusterplane.core.persistence.object_store import InMemoryObjectStore
from clusterplane.core.persistence.state_file import default_state_path, load_store, save_store
from clusterplane.core.services.admission import AdmissionController
from clusterplane.core.services.provider_catalog import ProviderIdentityCatalog

logger = logging.getLogger(__name__)

RENDERED_DIR = "rendered"


@dataclass
class Workspace:
    settings: Settings
    state_dir: Path
    store: InMemoryObjectStore = field(default_factory=InMemoryObjectStore)
    catalog: ProviderIdentityCatalog | None = None
    metrics: MetricsRegistry = field(default_factory=MetricsRegistry)

    def __post_init__(self) -> None:
        if self.catalog is None:
            extra = self.settings.providers.registrations
            self.catalog = build_catalog(Path(extra) if extra else None)
        self.audit = AuditWriter(state_dir=self.state_dir)

    @property
    def state_path(self) -> Path:
        return default_state_path(self.state_dir)

    @property
    def rendered_dir(self) -> Path:
        return self.state_dir / RENDERED_DIR

    def admission(self) -> AdmissionController:
        assert self.catalog is not None
        return AdmissionController(
            self.store,
            self.catalog,
            settings=self.settings.admission,
            infra_prefix=self.settings.providers.infra_prefix,
            metrics=self.metrics,
        )

    def save(self) -> None:
        save_store(self.store, self.state_path)


def open_workspace(config_path: Path | None = None, state_dir: Path | None = None) -> Workspace:
    """Load settings and the persisted store.

    Raises:
        ConfigError: The config (or an extra provider file) is invalid.
        StoreError: The persisted store is corrupt.
    """
    settings = load_settings(config_path)
    directory = state_dir or Path(settings.state_dir)
    store = load_store(default_state_path(directory))
    logger.debug("Workspace opened at %s", directory)
    return Workspace(settings=settings, state_dir=directory, store=store)
