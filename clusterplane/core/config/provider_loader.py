"""
Provider loader — loads provider registrations from YAML files.

The bundled registrations live in ``clusterplane/core/data/providers.yml``.
An operator can layer a file of their own on top; entries with the same
name replace the bundled ones.  The result is frozen into a
``ProviderIdentityCatalog`` once, at start-up.
"""

from __future__ import annotations

import logging
from pathlib import Path

import yaml
from pydantic import ValidationError

from clusterplane.core.data import PROVIDERS_FILE
from clusterplane.core.errors import ConfigError
from clusterplane.core.services.provider_catalog import (
    ProviderIdentityCatalog,
    ProviderRegistration,
)

logger = logging.getLogger(__name__)


def load_registrations(path: Path) -> list[ProviderRegistration]:
    """Load provider registrations from a YAML file.

    Accepts either a top-level list or a mapping with a ``providers`` list.

    Raises:
        ConfigError: The file is missing, unreadable or malformed.
    """
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigError(f"Cannot read provider registrations {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigError(f"Invalid YAML in {path}: {e}") from e

    if isinstance(data, dict):
        data = data.get("providers", [])
    if not isinstance(data, list):
        raise ConfigError(f"Expected a list of providers in {path}, got {type(data).__name__}")

    registrations = []
    for index, entry in enumerate(data):
        try:
            registrations.append(ProviderRegistration.model_validate(entry))
        except ValidationError as e:
            raise ConfigError(f"Invalid provider entry #{index} in {path}: {e}") from e

    logger.debug("Loaded %d provider registrations from %s", len(registrations), path)
    return registrations


def build_catalog(extra: Path | None = None) -> ProviderIdentityCatalog:
    """Build the process-wide catalog: bundled registrations, then ``extra``."""
    registrations = load_registrations(PROVIDERS_FILE)
    if extra is not None:
        registrations.extend(load_registrations(extra))

    catalog = ProviderIdentityCatalog(registrations)
    logger.info("Provider identity catalog: %s", ", ".join(catalog.providers()))
    return catalog
