"""Cached tasks repository over a local store and a remote task service."""

__version__ = "1.0.0"
