"""
Pydantic models for driver configuration and storage controller commands.
"""

import os
import shutil
from pathlib import Path
from typing import List, Literal, Optional, Sequence

from pydantic import BaseModel, Field, field_validator, model_validator

from .exceptions import SetupError

CONFIG_FILE_NAME = ".vboxdriver.yaml"

INSTALL_PATH_ENV_VARS = ("VBOX_INSTALL_PATH", "VBOX_MSI_INSTALL_PATH")
TOOL_BINARIES = ("VBoxManage", "VBoxManage.exe")


def find_vboxmanage() -> str:
    """Locate VBoxManage from the VirtualBox install env vars, then PATH."""
    for var in INSTALL_PATH_ENV_VARS:
        for directory in os.getenv(var, "").split(os.pathsep):
            if not directory:
                continue
            for binary in TOOL_BINARIES:
                candidate = Path(directory) / binary
                if candidate.is_file():
                    return str(candidate)

    found = shutil.which("VBoxManage")
    if found:
        return found
    raise SetupError("VBoxManage not found in VBOX_INSTALL_PATH, VBOX_MSI_INSTALL_PATH or PATH")


class RetrySettings(BaseModel):
    """Retry settings for VM deletion."""

    attempts: int = Field(default=5, ge=1, le=100, description="Maximum attempts")
    initial_delay: float = Field(default=1.0, ge=0, description="First delay in seconds")
    max_delay: float = Field(default=1.0, ge=0, description="Delay cap in seconds")
    multiplier: float = Field(default=2.0, ge=1, description="Backoff multiplier")

    @model_validator(mode="after")
    def max_delay_not_below_initial(self) -> "RetrySettings":
        if self.max_delay < self.initial_delay:
            raise ValueError("max_delay must be >= initial_delay")
        return self


class DriverConfig(BaseModel):
    """Driver configuration."""

    vboxmanage_path: Optional[str] = Field(
        default=None, description="Path to VBoxManage (auto-detected if unset)"
    )
    tool_name: str = Field(default="VBoxManage", description="Name in tool error banners")
    command_timeout: Optional[float] = Field(
        default=None, gt=0, description="Per-invocation timeout in seconds"
    )
    retry: RetrySettings = Field(default_factory=RetrySettings)
    stop_grace_seconds: float = Field(
        default=2.0, ge=0, description="Wait after power-off for the session to unlock"
    )
    headless: bool = Field(default=True, description="Start VMs without a GUI")

    @field_validator("vboxmanage_path")
    @classmethod
    def path_must_not_be_blank(cls, v: Optional[str]) -> Optional[str]:
        if v is not None and not v.strip():
            raise ValueError("vboxmanage_path cannot be empty")
        return v.strip() if v else v

    def tool_path(self) -> str:
        """Configured VBoxManage path, or the auto-detected one."""
        return self.vboxmanage_path or find_vboxmanage()

    def save(self, path: Path) -> None:
        """Save configuration to a YAML file."""
        import yaml

        path.write_text(
            yaml.dump(self.model_dump(exclude_none=True), default_flow_style=False, sort_keys=False)
        )

    @classmethod
    def load(cls, path: Path) -> "DriverConfig":
        """Load configuration from a YAML file."""
        import yaml

        if path.is_dir():
            path = path / CONFIG_FILE_NAME
        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")
        data = yaml.safe_load(path.read_text()) or {}
        return cls.model_validate(data)


class ControllerSpec(BaseModel):
    """A storage controller to attach with ``VBoxManage storagectl``."""

    vm_name: str
    name: str
    kind: Literal["sata", "scsi"]
    port_count: Optional[int] = Field(default=None, ge=1, le=30)

    @field_validator("vm_name", "name")
    @classmethod
    def must_not_be_empty(cls, v: str) -> str:
        if not v or not v.strip():
            raise ValueError("must not be empty")
        return v

    @model_validator(mode="after")
    def port_count_matches_kind(self) -> "ControllerSpec":
        if self.kind == "sata" and self.port_count is None:
            raise ValueError("SATA controllers need a port_count")
        if self.kind == "scsi" and self.port_count is not None:
            raise ValueError("SCSI controllers take no port_count")
        return self

    def to_storagectl_args(self, port_count_flag: str = "--portcount") -> List[str]:
        args = ["storagectl", self.vm_name, "--name", self.name, "--add", self.kind]
        if self.kind == "sata":
            args += [port_count_flag, str(self.port_count)]
        else:
            args += ["--controller", "LSILogic"]
        return args

    @classmethod
    def from_storagectl_args(cls, args: Sequence[str]) -> "ControllerSpec":
        """Parse arguments produced by to_storagectl_args."""
        args = list(args)
        if len(args) < 2 or args[0] != "storagectl":
            raise ValueError(f"Not a storagectl command: {args}")
        options = dict(zip(args[2::2], args[3::2]))
        port_count = options.get("--portcount") or options.get("--sataportcount")
        return cls(
            vm_name=args[1],
            name=options.get("--name", ""),
            kind=options.get("--add", ""),
            port_count=int(port_count) if port_count is not None else None,
        )
