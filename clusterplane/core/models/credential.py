"""
Credential model — binds a cloud-account identity to deployments.
"""

from __future__ import annotations

from typing import Literal

from pydantic import Field

from clusterplane.core.models.meta import ObjectMeta, ObjectModel


class IdentityRef(ObjectModel):
    """Locator of the identity object, discriminated by ``kind``."""

    kind: str
    name: str = ""
    namespace: str = ""


class CredentialSpec(ObjectModel):
    identity_ref: IdentityRef
    description: str = ""


class CredentialStatus(ObjectModel):
    ready: bool = False
    error: str = ""


class Credential(ObjectModel):
    kind: Literal["Credential"] = "Credential"
    metadata: ObjectMeta
    spec: CredentialSpec
    status: CredentialStatus = Field(default_factory=CredentialStatus)

    @property
    def name(self) -> str:
        return self.metadata.name

    @property
    def identity_kind(self) -> str:
        return self.spec.identity_ref.kind
