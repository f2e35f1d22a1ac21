"""
Object metadata shared by every stored kind.

Manifests use Kubernetes-style camelCase keys; Python code uses
snake_case attributes.  ``ObjectModel`` accepts both on input and
``to_manifest()`` emits camelCase.
"""

from __future__ import annotations

from datetime import UTC, datetime
from typing import Any, NamedTuple

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


def _now_iso() -> str:
    """Current UTC time as ISO string."""
    return datetime.now(UTC).isoformat()


class ObjectModel(BaseModel):
    """Base for all manifest-shaped models."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_manifest(self) -> dict[str, Any]:
        """Serialize with camelCase keys, dropping unset optionals."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class ObjectKey(NamedTuple):
    """Identity of a stored object."""

    kind: str
    namespace: str
    name: str

    def __str__(self) -> str:
        return f"{self.kind}/{self.namespace}/{self.name}"

    @classmethod
    def parse(cls, kind: str, ref: str, default_namespace: str = "default") -> ObjectKey:
        """Parse ``namespace/name`` (or a bare ``name``) into a key."""
        if "/" in ref:
            namespace, name = ref.split("/", 1)
        else:
            namespace, name = default_namespace, ref
        return cls(kind, namespace, name)


class ObjectMeta(ObjectModel):
    """Identity plus the bookkeeping fields owned by the object store."""

    name: str
    namespace: str = "default"
    generation: int = 0
    resource_version: int = 0
    finalizers: list[str] = Field(default_factory=list)
    deletion_timestamp: str | None = None
    labels: dict[str, str] = Field(default_factory=dict)
    annotations: dict[str, str] = Field(default_factory=dict)

    @property
    def deleting(self) -> bool:
        return self.deletion_timestamp is not None


class Condition(ObjectModel):
    """A single observed condition on an object's status."""

    type: str
    status: bool
    reason: str = ""
    message: str = ""
    last_transition_time: str = Field(default_factory=_now_iso)


def set_condition(
    conditions: list[Condition],
    type_: str,
    status: bool,
    reason: str = "",
    message: str = "",
) -> bool:
    """Insert or update a condition in place.

    The transition time only moves when ``status`` flips.

    Returns:
        True if anything changed.
    """
    for cond in conditions:
        if cond.type != type_:
            continue
        if cond.status == status and cond.reason == reason and cond.message == message:
            return False
        if cond.status != status:
            cond.last_transition_time = _now_iso()
        cond.status = status
        cond.reason = reason
        cond.message = message
        return True

    conditions.append(Condition(type=type_, status=status, reason=reason, message=message))
    return True


def get_condition(conditions: list[Condition], type_: str) -> Condition | None:
    """Look up a condition by type."""
    for cond in conditions:
        if cond.type == type_:
            return cond
    return None
