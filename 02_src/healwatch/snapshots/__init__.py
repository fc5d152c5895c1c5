"""Snapshots module."""

from .client import ISnapshotClient, SnapshotClient

__all__ = ["ISnapshotClient", "SnapshotClient"]
