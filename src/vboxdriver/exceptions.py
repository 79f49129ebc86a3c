"""
Error hierarchy for vboxdriver.

Every error raised by the driver derives from DriverError so an image build
step can catch the whole family with one handler and still branch on the
concrete class:

    DriverError
    ├── ExecutionError        ← VBoxManage could not be started
    ├── ToolReportedError     ← non-zero exit status
    │   └── SilentToolError   ← exit 0, but stderr carries an error banner
    ├── ParseError            ← expected line/pattern missing from output
    ├── SetupError            ← host installation is broken (fatal)
    ├── ValidationError       ← empty VM name, missing snapshot, ...
    └── RetryCancelledError   ← retry policy stopped by a cancel signal
"""

from typing import Any, Dict, List, Optional, Sequence


class DriverError(Exception):
    """Base class for all driver errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "error": type(self).__name__,
            "message": self.message,
            "details": self.details,
        }


class ExecutionError(DriverError):
    """The management tool could not be started at all."""


class ToolReportedError(DriverError):
    """The management tool exited with a non-zero status."""

    def __init__(
        self,
        message: str,
        args: Sequence[str] = (),
        returncode: Optional[int] = None,
        stdout: str = "",
        stderr: str = "",
    ):
        super().__init__(
            message,
            details={"args": list(args), "returncode": returncode},
        )
        self.command_args: List[str] = list(args)
        self.returncode = returncode
        self.stdout = stdout
        self.stderr = stderr


class SilentToolError(ToolReportedError):
    """Exit status was zero but stderr reports an error."""


class ParseError(DriverError, ValueError):
    """Tool output did not contain the expected pattern."""

    def __init__(self, message: str, raw: str = ""):
        super().__init__(message, details={"raw": raw})
        self.raw = raw


class SetupError(DriverError):
    """The host environment is broken; the workflow must abort."""


class ValidationError(DriverError, ValueError):
    """A required argument was empty or missing."""


class RetryCancelledError(DriverError):
    """A retried operation was cancelled before it could succeed."""

    def __init__(self, message: str, attempts: int = 0, last_error: Optional[BaseException] = None):
        super().__init__(message, details={"attempts": attempts})
        self.attempts = attempts
        self.last_error = last_error


def require(value: Any, name: str) -> None:
    """Raise ValidationError if a required argument is empty or None."""
    if value is None:
        raise ValidationError(f"Argument null: {name}")
    if isinstance(value, str) and not value.strip():
        raise ValidationError(f"Argument empty: {name}")
