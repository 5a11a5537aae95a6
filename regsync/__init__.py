"""Synchronize container images from source registries to a target registry."""

__version__ = "1.0.0"
