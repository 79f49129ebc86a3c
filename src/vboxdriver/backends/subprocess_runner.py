"""Subprocess process runner implementation."""

import subprocess
from typing import List, Optional

from ..exceptions import ExecutionError
from ..interfaces.process import ProcessResult, ProcessRunner


class SubprocessRunner(ProcessRunner):
    """Run processes using the subprocess module.

    Each call gets its own pipes, so one runner may be shared freely.
    """

    def run(
        self,
        command: List[str],
        timeout: Optional[float] = None,
    ) -> ProcessResult:
        """Run a command."""
        try:
            result = subprocess.run(
                command,
                capture_output=True,
                timeout=timeout,
                check=False,
                text=True,
            )
        except subprocess.TimeoutExpired as e:
            raise ExecutionError(
                f"{command[0]} timed out after {e.timeout}s",
                details={"args": command[1:]},
            ) from e
        except OSError as e:
            raise ExecutionError(
                f"Failed to execute {command[0]}: {e}",
                details={"args": command[1:]},
            ) from e
        return ProcessResult(
            returncode=result.returncode,
            stdout=result.stdout or "",
            stderr=result.stderr or "",
        )
