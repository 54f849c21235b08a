"""Replicator code generation for channel-based actor replication."""

__version__ = "0.1.0"
