"""
Provider identity catalog — which identity kinds each infrastructure
provider accepts.

Built once at start-up from provider registrations and never mutated
afterwards: the mapping is a read-only proxy over frozensets, so it is
safe to share between concurrent admission calls.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from types import MappingProxyType

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)

# Prefix that marks an entry of ``template.status.providers`` as an
# infrastructure provider (e.g. "infrastructure-aws").
INFRA_PREFIX = "infrastructure-"

# Built-in provider that needs no cloud account; it accepts plain secrets.
INTERNAL_PROVIDER = "internal"
SECRET_KIND = "Secret"


class ProviderRegistration(BaseModel):
    """One provider as declared by its registration data."""

    name: str
    identity_kinds: list[str] = Field(default_factory=list, alias="identityKinds")
    description: str = ""

    model_config = {"populate_by_name": True}


class ProviderIdentityCatalog:
    """Immutable provider → accepted identity kinds mapping."""

    def __init__(self, registrations: Iterable[ProviderRegistration] = ()):
        kinds: dict[str, frozenset[str]] = {}
        for reg in registrations:
            if reg.name in kinds:
                logger.debug("Provider '%s' registered twice; later entry wins", reg.name)
            kinds[reg.name] = frozenset(reg.identity_kinds)
        self._kinds = MappingProxyType(kinds)

    @classmethod
    def from_mapping(cls, mapping: dict[str, Iterable[str]]) -> ProviderIdentityCatalog:
        return cls(
            ProviderRegistration(name=name, identity_kinds=list(kinds))
            for name, kinds in mapping.items()
        )

    def lookup(self, provider: str) -> frozenset[str] | None:
        """Accepted identity kinds, or None when the provider is unknown."""
        return self._kinds.get(provider)

    def providers(self) -> list[str]:
        return sorted(self._kinds)

    def __contains__(self, provider: object) -> bool:
        return provider in self._kinds

    def __len__(self) -> int:
        return len(self._kinds)

    def to_dict(self) -> dict[str, list[str]]:
        return {name: sorted(kinds) for name, kinds in sorted(self._kinds.items())}
