"""
StoreObject — the closed set of object kinds this core understands.

Payloads are parsed once, at the boundary of each entry point, through
the discriminated union below.  Anything else is a bad request.
"""

from __future__ import annotations

from typing import Annotated, Any

from pydantic import Field, TypeAdapter, ValidationError

from clusterplane.core.errors import BadRequestError
from clusterplane.core.models.credential import Credential
from clusterplane.core.models.deployment import ClusterDeployment
from clusterplane.core.models.template import ClusterTemplate, ServiceTemplate

StoreObject = Annotated[
    ClusterDeployment | ClusterTemplate | ServiceTemplate | Credential,
    Field(discriminator="kind"),
]

KINDS: tuple[str, ...] = ("ClusterDeployment", "ClusterTemplate", "ServiceTemplate", "Credential")

_adapter: TypeAdapter[StoreObject] = TypeAdapter(StoreObject)


def parse_object(payload: Any) -> StoreObject:
    """Parse a manifest mapping into one of the known kinds.

    Raises:
        BadRequestError: Unknown kind or malformed fields.
    """
    if not isinstance(payload, dict):
        raise BadRequestError(f"expected a mapping but got a {type(payload).__name__}")
    kind = payload.get("kind")
    if kind not in KINDS:
        raise BadRequestError(f"unsupported object kind {kind!r}")
    try:
        return _adapter.validate_python(payload)
    except ValidationError as e:
        raise BadRequestError(f"malformed {kind}: {e}") from e


def parse_deployment(payload: Any) -> ClusterDeployment:
    """Parse a payload that must be a ClusterDeployment."""
    obj = parse_object(payload) if not isinstance(payload, ClusterDeployment) else payload
    if not isinstance(obj, ClusterDeployment):
        raise BadRequestError(f"expected ClusterDeployment but got a {obj.kind}")
    return obj
