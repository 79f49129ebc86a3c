"""Snapshot tree model and machine-readable listing parser."""

from .models import SnapshotNode
from .parser import NO_SNAPSHOTS, parse_snapshot_listing

__all__ = [
    "NO_SNAPSHOTS",
    "SnapshotNode",
    "parse_snapshot_listing",
]
