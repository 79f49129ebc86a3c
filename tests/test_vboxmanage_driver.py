#!/usr/bin/env python3
"""Tests for the VBoxManage driver operations."""

from datetime import datetime

import pytest

from vboxdriver.backends.vboxmanage import RUNNING_STATES, VBoxManageDriver, gui_extra_data
from vboxdriver.exceptions import (
    ExecutionError,
    ParseError,
    SetupError,
    SilentToolError,
    ToolReportedError,
    ValidationError,
)
from vboxdriver.interfaces.process import ProcessResult
from vboxdriver.models import DriverConfig
from vboxdriver.snapshots import NO_SNAPSHOTS, SnapshotNode

FAIL_LOCKED = ProcessResult(
    returncode=1,
    stdout="",
    stderr="VBoxManage: error: Cannot unregister the machine 'base' while it is locked",
)
OK = ProcessResult(returncode=0, stdout="", stderr="")


class TestConstruction:

    def test_uses_configured_tool_path(self, runner, sleep):
        driver = VBoxManageDriver(
            config=DriverConfig(vboxmanage_path="/opt/vbox/VBoxManage"), runner=runner, sleep=sleep
        )
        driver.vboxmanage("list", "vms")
        assert runner.calls == [["/opt/vbox/VBoxManage", "list", "vms"]]

    def test_passthrough_output(self, driver, runner):
        runner.on("list", "hostinfo", stdout="Host time: now\n")
        assert driver.vboxmanage_with_output("list", "hostinfo") == "Host time: now"


class TestVersion:

    def test_version(self, driver, runner):
        runner.on("--version", stdout="7.0.10r158379\n")
        assert str(driver.version()) == "7.0.10"
        assert runner.args == [["--version"]]

    def test_broken_driver_is_setup_error(self, driver, runner):
        runner.on("--version", stdout="WARNING: The vboxdrv kernel module is not loaded.")
        with pytest.raises(SetupError):
            driver.verify()

    def test_unparsable_version(self, driver, runner):
        runner.on("--version", stdout="garbage")
        with pytest.raises(ParseError):
            driver.version()


class TestControllers:

    @pytest.mark.parametrize("version,flag", [
        ("4.2.99r1", "--sataportcount"),
        ("4.3.0r2", "--portcount"),
        ("5.1.2r3", "--portcount"),
    ])
    def test_sata_flag_follows_version(self, driver, runner, version, flag):
        runner.on("--version", stdout=version)

        driver.create_sata_controller("base", "SATA Controller", 4)

        assert runner.args == [
            ["--version"],
            ["storagectl", "base", "--name", "SATA Controller", "--add", "sata", flag, "4"],
        ]

    def test_scsi_does_not_query_version(self, driver, runner):
        driver.create_scsi_controller("base", "SCSI Controller")

        assert runner.args == [
            ["storagectl", "base", "--name", "SCSI Controller", "--add", "scsi", "--controller", "LSILogic"],
        ]

    def test_empty_vm_name_rejected(self, driver, runner):
        with pytest.raises(ValidationError):
            driver.create_sata_controller("", "SATA", 1)
        assert runner.calls == []

    def test_invalid_port_count_rejected(self, driver, runner):
        with pytest.raises(ValidationError):
            driver.create_sata_controller("base", "SATA", 0)
        assert runner.calls == []


class TestDelete:

    def test_retries_until_lock_clears(self, driver, runner):
        runner.respond(("unregistervm",), FAIL_LOCKED, FAIL_LOCKED, OK)

        driver.delete("base")

        assert runner.args == [["unregistervm", "base", "--delete"]] * 3

    def test_gives_up_after_five_attempts(self, driver, runner):
        runner.respond(("unregistervm",), FAIL_LOCKED)

        with pytest.raises(ToolReportedError, match="locked"):
            driver.delete("base")

        assert len(runner.calls) == 5

    def test_silent_errors_are_retried(self, driver, runner):
        silent = ProcessResult(returncode=0, stdout="", stderr="VBoxManage.exe: error: busy")
        runner.respond(("unregistervm",), silent, OK)

        driver.delete("base")

        assert len(runner.calls) == 2

    def test_execution_error_is_retried(self, driver, runner):
        def unavailable(command):
            raise ExecutionError("Failed to execute VBoxManage")

        runner.respond(("unregistervm",), unavailable, OK)

        driver.delete("base")

        assert len(runner.calls) == 2

    def test_empty_name_not_retried(self, driver, runner):
        with pytest.raises(ValidationError):
            driver.delete("")
        assert runner.calls == []


class TestLifecycle:

    def test_import_passes_flags_through(self, driver, runner):
        driver.import_appliance("base", "/images/base.ova", ["--options", "keepallmacs", "--eula", "accept"])

        assert runner.args == [[
            "import", "/images/base.ova", "--vsys", "0", "--vmname", "base",
            "--options", "keepallmacs", "--eula", "accept",
        ]]

    def test_import_without_flags(self, driver, runner):
        driver.import_appliance("base", "/images/base.ova")
        assert runner.args == [["import", "/images/base.ova", "--vsys", "0", "--vmname", "base"]]

    def test_start_headless_by_default(self, driver, runner):
        driver.start("base")
        driver.start("base", headless=False)

        assert runner.args == [
            ["startvm", "base", "--type", "headless"],
            ["startvm", "base", "--type", "gui"],
        ]

    def test_stop_waits_for_session_unlock(self, driver, runner, sleep):
        order = []
        runner.respond(("controlvm",), lambda command: order.append("poweroff") or OK)
        sleep.side_effect = lambda seconds: order.append(("sleep", seconds))

        driver.stop("base")

        assert runner.args == [["controlvm", "base", "poweroff"]]
        assert order == ["poweroff", ("sleep", 2.0)]

    def test_failed_stop_does_not_wait(self, driver, runner, sleep):
        runner.on("controlvm", stderr="VBoxManage: error: not running", returncode=1)

        with pytest.raises(ToolReportedError):
            driver.stop("base")

        sleep.assert_not_called()

    @pytest.mark.parametrize("state,running", [
        ("running", True),
        ("stopping", True),
        ("paused", True),
        ("poweroff", False),
        ("saved", False),
        ("aborted", False),
        ("starting", False),
    ])
    def test_running_states(self, driver, runner, state, running):
        runner.on("showvminfo", stdout=f'name="base"\r\nVMState="{state}"\r\nVMStateChangeTime="x"\n')

        assert driver.is_running("base") is running
        assert runner.args == [["showvminfo", "base", "--machinereadable"]]

    def test_running_states_constant(self):
        assert RUNNING_STATES == {"running", "stopping", "paused"}

    def test_missing_state_line_is_parse_error(self, driver, runner):
        runner.on("showvminfo", stdout='name="base"\nVMStateChangeTime="x"')

        with pytest.raises(ParseError):
            driver.is_running("base")


class TestHostSettings:

    def test_suppress_messages_writes_global_extradata(self, driver, runner):
        driver.suppress_messages()

        written = {tuple(args[:2]): None for args in runner.args}
        assert list(written) == [("setextradata", "global")]
        assert {args[2]: args[3] for args in runner.args} == gui_extra_data()

    def test_gui_extra_data_update_date_is_next_year(self):
        data = gui_extra_data(datetime(2026, 10, 18))
        assert data["GUI/UpdateDate"] == "1 d, 2027-01-01, stable"
        assert data["GUI/RegistrationData"] == "triesLeft=0"
        assert data["GUI/UpdateCheckCount"] == "60"
        assert "remindAboutWrongColorDepth" in data["GUI/SuppressMessages"]

    def test_suppress_messages_stops_on_error(self, driver, runner):
        runner.on("setextradata", stderr="VBoxManage.exe: error: denied")

        with pytest.raises(SilentToolError):
            driver.suppress_messages()

        assert len(runner.calls) == 1

    def test_additions_iso_path(self, driver, runner):
        runner.on("list", "systemproperties", stdout=(
            "API version:                     7_0\r\n"
            "Default Guest Additions ISO:     /usr/share/virtualbox/VBoxGuestAdditions.iso  \r\n"
            "Autostart Database Path:         \r\n"
        ))

        assert driver.additions_iso_path() == "/usr/share/virtualbox/VBoxGuestAdditions.iso"

    def test_additions_iso_missing(self, driver, runner):
        runner.on("list", "systemproperties", stdout="API version: 7_0\n")

        with pytest.raises(ParseError, match="Default Guest Additions ISO"):
            driver.additions_iso_path()

    def test_additions_iso_empty_value(self, driver, runner):
        runner.on("list", "systemproperties", stdout="Default Guest Additions ISO:    \n")

        with pytest.raises(ParseError):
            driver.additions_iso_path()


class TestSnapshots:

    def test_load_snapshots(self, driver, runner, snapshot_listing):
        runner.on("snapshot", "base", "list", stdout=snapshot_listing)

        root = driver.load_snapshots("base")

        assert root.name == "base"
        assert runner.args == [["snapshot", "base", "list", "--machinereadable"]]

    def test_no_snapshots(self, driver, runner):
        runner.on("snapshot", "base", "list", stdout=NO_SNAPSHOTS)

        assert driver.load_snapshots("base") is None
        assert driver.has_snapshots("base") is False
        assert driver.get_current_snapshot("base") is None

    def test_has_and_current(self, driver, runner, snapshot_listing):
        runner.on("snapshot", "base", "list", stdout=snapshot_listing)

        assert driver.has_snapshots("base") is True
        assert driver.get_current_snapshot("base").name == "provisioned"

    def test_create_snapshot(self, driver, runner):
        driver.create_snapshot("base", "after-install")
        assert runner.args == [["snapshot", "base", "take", "after-install"]]

    def test_restore_and_delete_use_uuid(self, driver, runner):
        node = SnapshotNode(name="clean", uuid="u-42")

        driver.restore_snapshot("base", node)
        driver.delete_snapshot("base", node)

        assert runner.args == [
            ["snapshot", "base", "restore", "u-42"],
            ["snapshot", "base", "delete", "u-42"],
        ]

    @pytest.mark.parametrize("operation,args", [
        ("load_snapshots", ("",)),
        ("has_snapshots", (" ",)),
        ("get_current_snapshot", ("",)),
        ("create_snapshot", ("", "s1")),
        ("create_snapshot", ("base", "")),
        ("restore_snapshot", ("", SnapshotNode(name="s", uuid="u"))),
        ("restore_snapshot", ("base", None)),
        ("delete_snapshot", ("base", None)),
        ("delete_snapshot", ("base", SnapshotNode(name="no-uuid"))),
    ])
    def test_missing_arguments_fail_fast(self, driver, runner, operation, args):
        with pytest.raises(ValidationError):
            getattr(driver, operation)(*args)
        assert runner.calls == []
