"""Custom exceptions for vm-create."""

from __future__ import annotations

from typing import Optional


class VMCreateError(RuntimeError):
    """Raised on unrecoverable configuration or runtime errors."""

    returncode = 1


class UsageError(VMCreateError):
    """Raised when the command line is missing required arguments."""


class PipelineError(VMCreateError):
    """A pipeline stage failed; carries the stage name and the exit status to report."""

    def __init__(self, stage: str, message: str, returncode: Optional[int] = None) -> None:
        super().__init__(f"{stage}: {message}")
        self.stage = stage
        self.reason = message
        if returncode is not None:
            self.returncode = returncode
