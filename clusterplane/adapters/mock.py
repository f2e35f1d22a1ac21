"""
Mock provisioner — in-memory test double.

Holds applied manifests in a dict.  Can be told to fail the next N
applies or teardowns, or to report resources as unhealthy.
"""

from __future__ import annotations

from clusterplane.adapters.base import Manifest, Provisioner, resource_ref
from clusterplane.core.errors import ProvisionError
from clusterplane.core.models.meta import ObjectKey


class MockProvisioner(Provisioner):
    def __init__(self, healthy: bool = True):
        self.healthy = healthy
        self.held: dict[ObjectKey, list[Manifest]] = {}
        self.apply_failures = 0
        self.teardown_failures = 0
        self.calls: list[tuple[str, ObjectKey]] = []

    @property
    def name(self) -> str:
        return "mock"

    def fail_apply(self, times: int = 1) -> None:
        self.apply_failures = times

    def fail_teardown(self, times: int = 1) -> None:
        self.teardown_failures = times

    def apply(self, target: ObjectKey, manifests: list[Manifest]) -> list[str]:
        self.calls.append(("apply", target))
        if self.apply_failures > 0:
            self.apply_failures -= 1
            raise ProvisionError(f"[mock] apply failed for {target}")
        self.held[target] = list(manifests)
        return sorted(resource_ref(m) for m in manifests)

    def teardown(self, target: ObjectKey) -> None:
        self.calls.append(("teardown", target))
        if self.teardown_failures > 0:
            self.teardown_failures -= 1
            raise ProvisionError(f"[mock] teardown failed for {target}")
        self.held.pop(target, None)

    def is_healthy(self, target: ObjectKey) -> bool:
        return self.healthy and target in self.held

    def resources(self, target: ObjectKey) -> list[str]:
        return sorted(resource_ref(m) for m in self.held.get(target, []))
