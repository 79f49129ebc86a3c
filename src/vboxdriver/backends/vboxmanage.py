"""VBoxManage-based driver implementation."""

import re
import threading
import time
from datetime import datetime
from typing import Callable, Dict, Optional, Sequence

import pydantic

from ..exceptions import ParseError, ValidationError, require
from ..executor import CommandExecutor
from ..interfaces.driver import Driver
from ..interfaces.process import ProcessRunner
from ..logging import get_logger, log_operation
from ..models import ControllerSpec, DriverConfig
from ..retry import RetryPolicy
from ..snapshots.models import SnapshotNode
from ..snapshots.parser import parse_snapshot_listing
from ..version import SATA_PORT_COUNT_FLAG, ToolVersion, resolve_version

log = get_logger(__name__)

# "stopping" and "paused" count as running so callers only ever wait for
# one transition.
RUNNING_STATES = frozenset({"running", "stopping", "paused"})

VM_STATE_RE = re.compile(r'^VMState="(?P<state>[^"]*)"$')
ADDITIONS_ISO_RE = re.compile(r"Default Guest Additions ISO:(.+)")

SUPPRESSED_MESSAGES = ",".join([
    "confirmInputCapture",
    "remindAboutAutoCapture",
    "remindAboutMouseIntegrationOff",
    "remindAboutMouseIntegrationOn",
    "remindAboutWrongColorDepth",
])


def gui_extra_data(now: Optional[datetime] = None) -> Dict[str, str]:
    """Global extra-data keys that keep the VirtualBox GUI quiet."""
    now = now or datetime.now()
    return {
        "GUI/RegistrationData": "triesLeft=0",
        "GUI/SuppressMessages": SUPPRESSED_MESSAGES,
        "GUI/UpdateDate": f"1 d, {now.year + 1}-01-01, stable",
        "GUI/UpdateCheckCount": "60",
    }


def _controller_spec(**fields) -> ControllerSpec:
    try:
        return ControllerSpec(**fields)
    except pydantic.ValidationError as e:
        raise ValidationError(f"Invalid storage controller: {e}") from e


class VBoxManageDriver(Driver):
    """Drive VirtualBox through the VBoxManage command-line tool.

    Operations are synchronous and unlocked; callers serialize work per VM.
    """

    name = "vboxmanage"

    def __init__(
        self,
        config: Optional[DriverConfig] = None,
        runner: Optional[ProcessRunner] = None,
        executor: Optional[CommandExecutor] = None,
        sleep: Callable[[float], None] = time.sleep,
        cancel: Optional[threading.Event] = None,
    ):
        self.config = config or DriverConfig()
        self.executor = executor or CommandExecutor(
            self.config.tool_path(),
            runner=runner,
            tool_name=self.config.tool_name,
            timeout=self.config.command_timeout,
        )
        self.retry_policy = RetryPolicy.from_settings(self.config.retry, cancel=cancel)
        self._sleep = sleep

    # -- raw tool access -------------------------------------------------

    def vboxmanage(self, *args: str) -> None:
        self.executor.run(*args)

    def vboxmanage_with_output(self, *args: str) -> str:
        return self.executor.output(*args)

    # -- host ------------------------------------------------------------

    def version(self) -> ToolVersion:
        return resolve_version(self.vboxmanage_with_output("--version"))

    def verify(self) -> None:
        version = self.version()
        log.info("vboxmanage.verified", version=str(version))

    def suppress_messages(self) -> None:
        for key, value in gui_extra_data().items():
            self.vboxmanage("setextradata", "global", key, value)

    def additions_iso_path(self) -> str:
        output = self.vboxmanage_with_output("list", "systemproperties")
        for line in output.splitlines():
            line = line.rstrip(" \r")
            match = ADDITIONS_ISO_RE.search(line)
            if match is None:
                continue
            iso_path = match.group(1).strip()
            if not iso_path:
                continue
            log.info("vboxmanage.additions_iso", path=iso_path)
            return iso_path
        raise ParseError(
            'Cannot find "Default Guest Additions ISO" in VBoxManage output (or it is empty)',
            raw=output,
        )

    # -- storage controllers -----------------------------------------------

    def create_controller(self, spec: ControllerSpec) -> None:
        flag = "--portcount"
        if spec.kind == "sata":
            flag = SATA_PORT_COUNT_FLAG.select(self.version())
        self.vboxmanage(*spec.to_storagectl_args(port_count_flag=flag))

    def create_sata_controller(self, vm_name: str, name: str, port_count: int) -> None:
        require(vm_name, "vm_name")
        require(name, "name")
        self.create_controller(
            _controller_spec(vm_name=vm_name, name=name, kind="sata", port_count=port_count)
        )

    def create_scsi_controller(self, vm_name: str, name: str) -> None:
        require(vm_name, "vm_name")
        require(name, "name")
        self.create_controller(_controller_spec(vm_name=vm_name, name=name, kind="scsi"))

    # -- VM lifecycle ------------------------------------------------------

    def delete(self, vm_name: str) -> None:
        require(vm_name, "vm_name")
        with log_operation(log, "vm.delete", vm_name=vm_name):
            self.retry_policy.call(self.vboxmanage, "unregistervm", vm_name, "--delete")

    def import_appliance(self, vm_name: str, path: str, flags: Sequence[str] = ()) -> None:
        require(vm_name, "vm_name")
        require(path, "path")
        args = ["import", path, "--vsys", "0", "--vmname", vm_name]
        args.extend(flags)
        self.vboxmanage(*args)

    def start(self, vm_name: str, headless: Optional[bool] = None) -> None:
        require(vm_name, "vm_name")
        if headless is None:
            headless = self.config.headless
        self.vboxmanage("startvm", vm_name, "--type", "headless" if headless else "gui")

    def vm_state(self, vm_name: str) -> str:
        """Raw ``VMState`` value from ``showvminfo --machinereadable``."""
        require(vm_name, "vm_name")
        output = self.vboxmanage_with_output("showvminfo", vm_name, "--machinereadable")
        for line in output.splitlines():
            match = VM_STATE_RE.match(line.rstrip("\r"))
            if match:
                return match.group("state")
        raise ParseError(f"No VMState in showvminfo output for {vm_name}", raw=output)

    def is_running(self, vm_name: str) -> bool:
        return self.vm_state(vm_name) in RUNNING_STATES

    def stop(self, vm_name: str) -> None:
        """Power off the VM.

        Returns only after ``stop_grace_seconds`` so the session lock is
        released before the next operation (usually delete) runs.
        """
        require(vm_name, "vm_name")
        self.vboxmanage("controlvm", vm_name, "poweroff")
        self._sleep(self.config.stop_grace_seconds)

    # -- snapshots ---------------------------------------------------------

    def load_snapshots(self, vm_name: str) -> Optional[SnapshotNode]:
        require(vm_name, "vm_name")
        log.debug("snapshot.load", vm_name=vm_name)
        output = self.vboxmanage_with_output("snapshot", vm_name, "list", "--machinereadable")
        return parse_snapshot_listing(output)

    def create_snapshot(self, vm_name: str, snapshot_name: str) -> None:
        require(vm_name, "vm_name")
        require(snapshot_name, "snapshot_name")
        log.info("snapshot.create", vm_name=vm_name, snapshot=snapshot_name)
        self.vboxmanage("snapshot", vm_name, "take", snapshot_name)

    def has_snapshots(self, vm_name: str) -> bool:
        return self.load_snapshots(vm_name) is not None

    def get_current_snapshot(self, vm_name: str) -> Optional[SnapshotNode]:
        root = self.load_snapshots(vm_name)
        if root is None:
            return None
        return root.get_current_snapshot()

    def restore_snapshot(self, vm_name: str, snapshot: SnapshotNode) -> None:
        require(vm_name, "vm_name")
        require(snapshot, "snapshot")
        require(snapshot.uuid, "snapshot.uuid")
        log.info("snapshot.restore", vm_name=vm_name, snapshot=snapshot.name, uuid=snapshot.uuid)
        self.vboxmanage("snapshot", vm_name, "restore", snapshot.uuid)

    def delete_snapshot(self, vm_name: str, snapshot: SnapshotNode) -> None:
        require(vm_name, "vm_name")
        require(snapshot, "snapshot")
        require(snapshot.uuid, "snapshot.uuid")
        log.info("snapshot.delete", vm_name=vm_name, snapshot=snapshot.name, uuid=snapshot.uuid)
        self.vboxmanage("snapshot", vm_name, "delete", snapshot.uuid)
