"""
Admission ledger — append-only log of admission decisions.

Every decision taken through the CLI or the webhook is appended to an
NDJSON (newline-delimited JSON) file.  Entries are never modified or
deleted; the ledger answers "who tried to change what, and why was it
refused".
"""

from __future__ import annotations

import json
import logging
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, ValidationError

from clusterplane.core.models.outcome import AdmissionResponse

logger = logging.getLogger(__name__)

DEFAULT_AUDIT_FILE = "admission.ndjson"


class AuditEntry(BaseModel):
    """A single admission decision."""

    timestamp: str = Field(default_factory=lambda: datetime.now(UTC).isoformat())
    operation: str = ""            # create, update, delete, default
    namespace: str = ""
    name: str = ""
    template: str = ""

    # Decision
    allowed: bool = False
    rule: str = ""
    reason: str = ""
    message: str = ""
    warnings: list[str] = Field(default_factory=list)
    duration_ms: int = 0

    context: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def from_response(
        cls,
        response: AdmissionResponse,
        namespace: str,
        name: str,
        template: str = "",
        duration_ms: int = 0,
    ) -> AuditEntry:
        return cls(
            operation=response.operation,
            namespace=namespace,
            name=name,
            template=template,
            allowed=response.allowed,
            rule=response.rule,
            reason=str(response.reason or ""),
            message=response.message,
            warnings=list(response.warnings),
            duration_ms=duration_ms,
        )


class AuditWriter:
    """Append-only admission ledger writer.

    Each call to write() appends a single JSON line to the ledger file.
    The file is created if it doesn't exist.
    """

    def __init__(self, path: Path | None = None, state_dir: Path | None = None):
        if path is not None:
            self._path = path
        elif state_dir is not None:
            self._path = state_dir / DEFAULT_AUDIT_FILE
        else:
            self._path = Path(".state") / DEFAULT_AUDIT_FILE

    @property
    def path(self) -> Path:
        return self._path

    def write(self, entry: AuditEntry) -> None:
        """Append an entry; I/O failures are logged, not raised."""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        line = json.dumps(entry.model_dump(mode="json"), ensure_ascii=False) + "\n"

        try:
            with self._path.open("a", encoding="utf-8") as f:
                f.write(line)
            logger.debug(
                "Audit entry written: %s %s/%s allowed=%s",
                entry.operation, entry.namespace, entry.name, entry.allowed,
            )
        except OSError as e:
            logger.error("Failed to write audit entry: %s", e)

    def read_all(self) -> list[AuditEntry]:
        """Read all entries from the ledger, oldest first."""
        if not self._path.is_file():
            return []

        entries = []
        try:
            with self._path.open("r", encoding="utf-8") as f:
                for line_num, line in enumerate(f, start=1):
                    line = line.strip()
                    if not line:
                        continue
                    try:
                        entries.append(AuditEntry.model_validate(json.loads(line)))
                    except (json.JSONDecodeError, ValidationError) as e:
                        logger.warning("Skipping corrupt audit entry at line %d: %s", line_num, e)
        except OSError as e:
            logger.error("Failed to read audit ledger: %s", e)

        return entries

    def read_recent(self, n: int = 20) -> list[AuditEntry]:
        """Read the most recent N entries."""
        return self.read_all()[-n:]
