"""Interface for VirtualBox drivers used by image build steps."""

from abc import ABC, abstractmethod
from typing import Optional, Sequence

from ..snapshots.models import SnapshotNode
from ..version import ToolVersion


class Driver(ABC):
    """Abstract interface for VM lifecycle operations."""

    @abstractmethod
    def vboxmanage(self, *args: str) -> None:
        """Run the management tool, discarding output."""
        pass

    @abstractmethod
    def vboxmanage_with_output(self, *args: str) -> str:
        """Run the management tool and return trimmed stdout."""
        pass

    @abstractmethod
    def version(self) -> ToolVersion:
        """Installed tool version."""
        pass

    @abstractmethod
    def verify(self) -> None:
        """Check the host installation is usable."""
        pass

    @abstractmethod
    def create_sata_controller(self, vm_name: str, name: str, port_count: int) -> None:
        pass

    @abstractmethod
    def create_scsi_controller(self, vm_name: str, name: str) -> None:
        pass

    @abstractmethod
    def delete(self, vm_name: str) -> None:
        """Unregister a VM and delete its files."""
        pass

    @abstractmethod
    def import_appliance(self, vm_name: str, path: str, flags: Sequence[str] = ()) -> None:
        pass

    @abstractmethod
    def start(self, vm_name: str, headless: Optional[bool] = None) -> None:
        pass

    @abstractmethod
    def is_running(self, vm_name: str) -> bool:
        pass

    @abstractmethod
    def stop(self, vm_name: str) -> None:
        """Power off a VM."""
        pass

    @abstractmethod
    def suppress_messages(self) -> None:
        """Silence the GUI's interactive prompts."""
        pass

    @abstractmethod
    def additions_iso_path(self) -> str:
        """Path of the default Guest Additions ISO."""
        pass

    @abstractmethod
    def load_snapshots(self, vm_name: str) -> Optional[SnapshotNode]:
        pass

    @abstractmethod
    def create_snapshot(self, vm_name: str, snapshot_name: str) -> None:
        pass

    @abstractmethod
    def has_snapshots(self, vm_name: str) -> bool:
        pass

    @abstractmethod
    def get_current_snapshot(self, vm_name: str) -> Optional[SnapshotNode]:
        pass

    @abstractmethod
    def restore_snapshot(self, vm_name: str, snapshot: SnapshotNode) -> None:
        pass

    @abstractmethod
    def delete_snapshot(self, vm_name: str, snapshot: SnapshotNode) -> None:
        pass

