"""Persistent stores used across generation runs."""

from .manifest_store import ManifestStore

__all__ = ["ManifestStore"]
