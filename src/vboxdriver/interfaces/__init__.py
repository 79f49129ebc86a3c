"""Abstract interfaces for vboxdriver."""

from .driver import Driver
from .process import ProcessResult, ProcessRunner

__all__ = ["Driver", "ProcessResult", "ProcessRunner"]
