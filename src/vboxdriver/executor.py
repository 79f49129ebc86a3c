"""
Run VBoxManage and classify what it returned.

A zero exit status is not enough to call an invocation successful: some
VBoxManage releases print "VBoxManage.exe: error: ..." to stderr and still
exit 0, so stderr is checked against the error banner as well.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Pattern

from .backends.subprocess_runner import SubprocessRunner
from .exceptions import SilentToolError, ToolReportedError
from .interfaces.process import ProcessRunner
from .logging import get_logger

log = get_logger(__name__)

DEFAULT_TOOL_NAME = "VBoxManage"


class Outcome(Enum):
    """Classified result of one tool invocation."""

    SUCCESS = "success"
    FAILURE = "failure"


@dataclass
class CommandResult:
    """Trimmed output of one tool invocation."""

    args: List[str]
    stdout: str
    stderr: str
    returncode: int
    outcome: Outcome = Outcome.SUCCESS
    silent_error: bool = field(default=False, repr=False)

    @property
    def ok(self) -> bool:
        return self.outcome is Outcome.SUCCESS


def error_banner_pattern(tool_name: str = DEFAULT_TOOL_NAME) -> Pattern[str]:
    """Pattern for the '<tool>(.exe): error:' banner on stderr."""
    return re.compile(re.escape(tool_name) + r"[.a-z]+?: error:")


class CommandExecutor:
    """Invoke the management tool synchronously and classify the result."""

    def __init__(
        self,
        tool_path: str,
        runner: Optional[ProcessRunner] = None,
        tool_name: str = DEFAULT_TOOL_NAME,
        timeout: Optional[float] = None,
    ):
        self.tool_path = tool_path
        self.runner = runner or SubprocessRunner()
        self.tool_name = tool_name
        self.timeout = timeout
        self._banner = error_banner_pattern(tool_name)

    def classify(self, returncode: int, stderr: str) -> Outcome:
        """Classify an exit status and trimmed stderr."""
        if returncode != 0:
            return Outcome.FAILURE
        if self._banner.search(stderr):
            return Outcome.FAILURE
        return Outcome.SUCCESS

    def run(self, *args: str) -> CommandResult:
        """Run the tool with ``args``.

        Returns the CommandResult on success. Raises ExecutionError if the
        tool cannot be started, ToolReportedError on a non-zero exit and
        SilentToolError on an error banner with exit status zero.
        """
        command = [self.tool_path, *args]
        log.debug("vboxmanage.exec", args=list(args))

        raw = self.runner.run(command, timeout=self.timeout)
        stdout = raw.stdout.strip()
        stderr = raw.stderr.strip()

        log.debug("vboxmanage.stdout", stdout=stdout)
        log.debug("vboxmanage.stderr", stderr=stderr)

        outcome = self.classify(raw.returncode, stderr)
        result = CommandResult(
            args=list(args),
            stdout=stdout,
            stderr=stderr,
            returncode=raw.returncode,
            outcome=outcome,
            silent_error=outcome is Outcome.FAILURE and raw.returncode == 0,
        )

        if result.ok:
            return result

        error_cls = SilentToolError if result.silent_error else ToolReportedError
        raise error_cls(
            f"{self.tool_name} error: {stderr}",
            args=result.args,
            returncode=raw.returncode,
            stdout=stdout,
            stderr=stderr,
        )

    def output(self, *args: str) -> str:
        """Run the tool and return its trimmed stdout."""
        return self.run(*args).stdout
