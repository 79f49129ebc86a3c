"""
vboxdriver - drive VirtualBox VMs through VBoxManage for image builds.

Runs VBoxManage, classifies its failures (including errors reported with a
zero exit status), retries VM deletion while session locks clear, picks
command syntax by tool version and rebuilds snapshot trees from the
machine-readable listing.
"""

__version__ = "0.1.0"

from vboxdriver.backends.vboxmanage import VBoxManageDriver
from vboxdriver.exceptions import (
    DriverError,
    ExecutionError,
    ParseError,
    RetryCancelledError,
    SetupError,
    SilentToolError,
    ToolReportedError,
    ValidationError,
)
from vboxdriver.models import ControllerSpec, DriverConfig
from vboxdriver.snapshots import SnapshotNode, parse_snapshot_listing
from vboxdriver.version import ToolVersion

__all__ = [
    "ControllerSpec",
    "DriverConfig",
    "DriverError",
    "ExecutionError",
    "ParseError",
    "RetryCancelledError",
    "SetupError",
    "SilentToolError",
    "SnapshotNode",
    "ToolReportedError",
    "ToolVersion",
    "ValidationError",
    "VBoxManageDriver",
    "__version__",
    "parse_snapshot_listing",
]
