"""Kubernetes operator for PlanetScale databases and branch passwords."""

__version__ = "0.1.0"
