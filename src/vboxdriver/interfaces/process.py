"""Abstract interface for process execution."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional


@dataclass
class ProcessResult:
    """Raw result of one process execution."""

    returncode: int
    stdout: str
    stderr: str

    @property
    def success(self) -> bool:
        return self.returncode == 0


class ProcessRunner(ABC):
    """Run an external program and capture its output as text."""

    @abstractmethod
    def run(
        self,
        command: List[str],
        timeout: Optional[float] = None,
    ) -> ProcessResult:
        """Run a command to completion.

        Raises ExecutionError if the program cannot be started.
        """
        pass
