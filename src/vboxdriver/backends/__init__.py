"""Concrete implementations of the vboxdriver interfaces."""

from .subprocess_runner import SubprocessRunner

__all__ = ["SubprocessRunner"]
