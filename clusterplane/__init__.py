"""clusterplane — admission and lifecycle control for a fleet of clusters."""

__version__ = "0.1.0"
