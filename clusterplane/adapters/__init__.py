"""Collaborator adapters: manifest renderers and provisioners."""

from clusterplane.adapters.base import Manifest, Provisioner, Renderer
from clusterplane.adapters.mock import MockProvisioner
from clusterplane.adapters.provisioner import ManifestDirProvisioner
from clusterplane.adapters.renderer import HelmReleaseRenderer

__all__ = [
    "HelmReleaseRenderer",
    "Manifest",
    "ManifestDirProvisioner",
    "MockProvisioner",
    "Provisioner",
    "Renderer",
]
