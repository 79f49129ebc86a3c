"""
VBoxManage version parsing and version-gated command syntax.

``VBoxManage --version`` prints something like ``6.1.26r145957`` or
``4.3.0_RC1r91033``. Only the leading dotted-numeric run matters; release
tags and revision suffixes are discarded.
"""

import functools
import re
from typing import Dict, Mapping, Tuple, Union

from .exceptions import ParseError, SetupError, ValidationError
from .logging import get_logger

log = get_logger(__name__)

# Printed by VBoxManage when the kernel driver is missing or mismatched.
DRIVER_MALFUNCTION_MARKER = "vboxdrv"

VERSION_RE = re.compile(r"^(\d+(?:\.\d+)*)(?:_(?:RC|OSEr)\d+)?")


@functools.total_ordering
class ToolVersion:
    """Numeric dotted version; missing trailing segments compare as zero."""

    __slots__ = ("segments",)

    def __init__(self, segments: Tuple[int, ...]):
        if not segments:
            raise ValueError("version needs at least one segment")
        self.segments = tuple(int(s) for s in segments)

    @classmethod
    def parse(cls, text: str) -> "ToolVersion":
        match = VERSION_RE.match(text.strip())
        if match is None:
            raise ParseError(f"Not a version: {text!r}", raw=text)
        return cls(tuple(int(part) for part in match.group(1).split(".")))

    def _key(self) -> Tuple[int, ...]:
        segments = list(self.segments)
        while len(segments) > 1 and segments[-1] == 0:
            segments.pop()
        return tuple(segments)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ToolVersion):
            return NotImplemented
        return self._key() == other._key()

    def __lt__(self, other: object) -> bool:
        if not isinstance(other, ToolVersion):
            return NotImplemented
        width = max(len(self.segments), len(other.segments))
        mine = self.segments + (0,) * (width - len(self.segments))
        theirs = other.segments + (0,) * (width - len(other.segments))
        return mine < theirs

    def __hash__(self) -> int:
        return hash(self._key())

    def __str__(self) -> str:
        return ".".join(str(s) for s in self.segments)

    def __repr__(self) -> str:
        return f"ToolVersion('{self}')"


def resolve_version(output: str) -> ToolVersion:
    """Extract the tool version from ``VBoxManage --version`` output.

    Raises SetupError if the output reports a broken kernel driver, whether
    or not a version could also be read.
    """
    output = output.strip()
    log.debug("vboxmanage.version_output", output=output)

    if DRIVER_MALFUNCTION_MARKER in output:
        raise SetupError(
            f"VirtualBox is not properly setup: {output}",
            details={"output": output},
        )

    for line in output.splitlines():
        if VERSION_RE.match(line.strip()):
            version = ToolVersion.parse(line)
            log.debug("vboxmanage.version", version=str(version))
            return version

    raise ParseError(f"No version found: {output}", raw=output)


VersionLike = Union[str, ToolVersion]


class VersionGatedFlag:
    """Spelling of a command-line flag that changed between tool releases.

    ``thresholds`` maps the first version accepting a spelling to that
    spelling. A new rename is one more entry, not another branch.
    """

    def __init__(self, thresholds: Mapping[VersionLike, str]):
        if not thresholds:
            raise ValueError("at least one threshold is required")
        table: Dict[ToolVersion, str] = {}
        for version, spelling in thresholds.items():
            if isinstance(version, str):
                version = ToolVersion.parse(version)
            table[version] = spelling
        self._table = sorted(table.items())

    def select(self, version: VersionLike) -> str:
        if isinstance(version, str):
            version = ToolVersion.parse(version)
        chosen = None
        for threshold, spelling in self._table:
            if threshold > version:
                break
            chosen = spelling
        if chosen is None:
            raise ValidationError(
                f"No flag spelling for version {version}",
                details={"lowest": str(self._table[0][0])},
            )
        return chosen

    @property
    def thresholds(self) -> Dict[str, str]:
        return {str(v): s for v, s in self._table}


SATA_PORT_COUNT_FLAG = VersionGatedFlag({
    "0": "--sataportcount",
    "4.3": "--portcount",
})
