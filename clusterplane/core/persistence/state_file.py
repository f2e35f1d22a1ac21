"""
State file persistence — atomic read/write of the local object store.

The CLI keeps its objects in .state/objects.json between invocations.
Writes are atomic (write to temp file, then rename) so a crash
mid-write never leaves a half-written store behind.
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
from pathlib import Path

from clusterplane.core.errors import BadRequestError, StoreError
from clusterplane.core.models.objects import parse_object
from clusterplane.core.persistence.object_store import InMemoryObjectStore

logger = logging.getLogger(__name__)

# Default state file path (relative to the state directory)
DEFAULT_STATE_FILE = "objects.json"
SCHEMA_VERSION = 1


def default_state_path(state_dir: Path) -> Path:
    """Get the default store file path inside a state directory."""
    return state_dir / DEFAULT_STATE_FILE


def load_store(path: Path) -> InMemoryObjectStore:
    """Load the object store from a JSON file.

    Args:
        path: Path to the store JSON file.

    Returns:
        The restored store. If the file doesn't exist, an empty store.

    Raises:
        StoreError: The file exists but cannot be read or parsed.
    """
    if not path.is_file():
        logger.info("No state file at %s — starting with an empty store", path)
        return InMemoryObjectStore()

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        raise StoreError(f"Cannot load object store from {path}: {e}") from e

    if not isinstance(data, dict) or not isinstance(data.get("objects"), list):
        raise StoreError(f"Corrupt object store {path}: expected an 'objects' list")

    try:
        objects = [parse_object(item) for item in data["objects"]]
    except BadRequestError as e:
        raise StoreError(f"Corrupt object store {path}: {e}") from e

    logger.debug("Loaded %d objects from %s", len(objects), path)
    return InMemoryObjectStore(objects)


def save_store(store: InMemoryObjectStore, path: Path) -> None:
    """Save the object store to a JSON file (atomic write).

    Args:
        store: The store to persist.
        path: Target path for the state file.
    """
    path.parent.mkdir(parents=True, exist_ok=True)

    data = {
        "schema_version": SCHEMA_VERSION,
        "objects": [obj.to_manifest() for obj in store.all()],
    }
    content = json.dumps(data, indent=2, ensure_ascii=False) + "\n"

    fd, tmp_path = tempfile.mkstemp(dir=path.parent, prefix=".objects_", suffix=".tmp")
    os.close(fd)
    tmp = Path(tmp_path)
    try:
        tmp.write_text(content, encoding="utf-8")
        tmp.rename(path)
        logger.debug("Object store saved to %s", path)
    except OSError as e:
        tmp.unlink(missing_ok=True)
        raise StoreError(f"Failed to save object store to {path}: {e}") from e
