"""
Adapter base — the contracts between the reconciler and the outside world.

The reconciler never renders charts or touches infrastructure itself.
It talks to two collaborators through these interfaces:

    Renderer     template + configuration → manifests (pure)
    Provisioner  apply / tear down / health-check rendered manifests

To add a backend:
    1. Subclass Renderer or Provisioner
    2. Implement the abstract methods
    3. Hand an instance to LifecycleReconciler
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from clusterplane.core.models.meta import ObjectKey
from clusterplane.core.models.template import ClusterTemplate, ServiceTemplate

Manifest = dict[str, Any]


class Renderer(ABC):
    """Turns a template and a configuration into infrastructure manifests."""

    @abstractmethod
    def render(
        self,
        template: ClusterTemplate | ServiceTemplate,
        config: dict[str, Any] | None,
        target: ObjectKey,
        release: str | None = None,
        namespace: str | None = None,
    ) -> list[Manifest]:
        """Render manifests for ``target`` (the owning deployment).

        ``release`` and ``namespace`` override the release name and the
        namespace it lands in; both default to the target's.

        Must be a pure function of its arguments.

        Raises:
            RenderError: The inputs cannot be rendered.
        """


class Provisioner(ABC):
    """Applies rendered manifests and reports on what it holds."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Backend identifier (e.g. 'manifest-dir', 'mock')."""

    @abstractmethod
    def apply(self, target: ObjectKey, manifests: list[Manifest]) -> list[str]:
        """Make the held resources of ``target`` exactly ``manifests``.

        Returns:
            References of the resources now held.

        Raises:
            ProvisionError: Applying failed; nothing is guaranteed applied.
        """

    @abstractmethod
    def teardown(self, target: ObjectKey) -> None:
        """Remove every resource held for ``target``.

        Raises:
            ProvisionError: Teardown did not complete.
        """

    @abstractmethod
    def is_healthy(self, target: ObjectKey) -> bool:
        """Whether the resources of ``target`` are present and healthy."""

    @abstractmethod
    def resources(self, target: ObjectKey) -> list[str]:
        """References of the resources currently held for ``target``."""

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} name={self.name!r}>"


def resource_ref(manifest: Manifest) -> str:
    """``Kind/namespace/name`` of a manifest."""
    meta = manifest.get("metadata", {})
    return f"{manifest.get('kind', '?')}/{meta.get('namespace', '')}/{meta.get('name', '')}"
