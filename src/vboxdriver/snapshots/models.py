"""Data model for a VM's snapshot tree."""

from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional


@dataclass
class SnapshotNode:
    """One snapshot and the snapshots taken from it.

    A node owns its children. ``parent`` is a back-reference kept for
    navigation only; it is not part of equality or repr.
    """

    name: str = ""
    uuid: str = ""
    current: bool = False
    children: List["SnapshotNode"] = field(default_factory=list)
    parent: Optional["SnapshotNode"] = field(default=None, repr=False, compare=False)

    def add_child(self, node: "SnapshotNode") -> "SnapshotNode":
        node.parent = self
        self.children.append(node)
        return node

    @property
    def is_root(self) -> bool:
        return self.parent is None

    @property
    def root(self) -> "SnapshotNode":
        node = self
        while node.parent is not None:
            node = node.parent
        return node

    def walk(self) -> Iterator["SnapshotNode"]:
        """Yield this node and its descendants in listing (pre-)order."""
        stack = [self]
        while stack:
            node = stack.pop()
            yield node
            stack.extend(reversed(node.children))

    def path(self) -> List[str]:
        """Snapshot names from the root down to this node."""
        names = []
        node: Optional[SnapshotNode] = self
        while node is not None:
            names.append(node.name)
            node = node.parent
        return list(reversed(names))

    def get_current_snapshot(self) -> Optional["SnapshotNode"]:
        for node in self.walk():
            if node.current:
                return node
        return None

    def get_snapshots_by_name(self, name: str) -> List["SnapshotNode"]:
        """Snapshot names are not unique; return every match."""
        return [node for node in self.walk() if node.name == name]

    def get_snapshot_by_uuid(self, uuid: str) -> Optional["SnapshotNode"]:
        for node in self.walk():
            if node.uuid == uuid:
                return node
        return None

    def get_child_with_name(self, name: str) -> Optional["SnapshotNode"]:
        for child in self.children:
            if child.name == name:
                return child
        return None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "uuid": self.uuid,
            "current": self.current,
            "children": [child.to_dict() for child in self.children],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SnapshotNode":
        node = cls(
            name=data["name"],
            uuid=data.get("uuid", ""),
            current=data.get("current", False),
        )
        for child in data.get("children", []):
            node.add_child(cls.from_dict(child))
        return node
