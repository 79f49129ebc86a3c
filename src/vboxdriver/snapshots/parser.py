"""
Rebuild a snapshot tree from ``VBoxManage snapshot <vm> list --machinereadable``.

The listing is flat; tree position is encoded in each key's suffix::

    SnapshotName="base"
    SnapshotUUID="9c0e..."
    SnapshotName-1="configured"
    SnapshotUUID-1="41b2..."
    CurrentSnapshotName="configured"
    CurrentSnapshotUUID="41b2..."
    CurrentSnapshotNode="SnapshotName-1"
    SnapshotName-1-1="provisioned"
    SnapshotUUID-1-1="77aa..."

The number of ``-N`` segments is the depth. Records arrive in pre-order, so
a stack of ancestors is enough to attach every node to its parent.
"""

import re
from typing import List, Optional

from ..exceptions import ParseError
from ..logging import get_logger
from .models import SnapshotNode

log = get_logger(__name__)

NO_SNAPSHOTS = "This machine does not have any snapshots"

CURRENT_MARKER = "Current"

SNAPSHOT_RECORD_RE = re.compile(
    r'^Snapshot(?P<kind>Name|UUID)(?P<path>(?:-\d+)*)="(?P<value>[^"]*)"'
)


def path_depth(path: str) -> int:
    """Depth of a path indicator such as ``-1-2`` (root is ``""``)."""
    return path.count("-")


def parse_snapshot_listing(text: str) -> Optional[SnapshotNode]:
    """Parse a machine-readable snapshot listing.

    Returns the root node, or None when the VM has no snapshots.
    """
    text = text.strip()
    if not text or text == NO_SNAPSHOTS:
        return None

    root: Optional[SnapshotNode] = None
    node: Optional[SnapshotNode] = None
    current_depth = 0
    ancestors: List[SnapshotNode] = []

    for line in text.splitlines():
        line = line.rstrip("\r")
        key, sep, _ = line.partition("=")
        if not sep:
            log.debug("snapshot.invalid_line", line=line)
            continue

        if key.startswith(CURRENT_MARKER):
            if node is None:
                raise ParseError("Current snapshot marker before any snapshot", raw=text)
            node.current = True
            continue

        match = SNAPSHOT_RECORD_RE.match(line)
        if match is None:
            log.debug("snapshot.skipped_key", key=key)
            continue

        kind, path, value = match.group("kind", "path", "value")

        if kind == "UUID":
            if node is None:
                raise ParseError("Snapshot UUID before any snapshot name", raw=text)
            node.uuid = value
            continue

        if root is None:
            node = SnapshotNode()
            root = node
            current_depth = 0
        else:
            depth = path_depth(path)
            if depth > current_depth:
                ancestors.append(node)
            elif depth < current_depth:
                # Unwinds current_depth - 1 levels regardless of the target
                # depth, so deep trees can run out of ancestors.
                for _ in range(current_depth - 1):
                    if not ancestors:
                        break
                    ancestors.pop()
            if not ancestors:
                raise ParseError(f"No parent for snapshot record {key}", raw=text)
            node = ancestors[-1].add_child(SnapshotNode())
            current_depth = depth
        node.name = value

    if root is None:
        raise ParseError("Snapshot listing contains no snapshot names", raw=text)
    return root
