"""Exception types shared across vmrc packages.

Driver, OCR and vision failures subclass VMRCError from their own
modules; this module holds the root and the cross-cutting errors.
"""

from __future__ import annotations

from collections.abc import Sequence


class VMRCError(Exception):
    """Base class for all vmrc errors."""


class ConfigError(VMRCError, ValueError):
    """Raised when a required backend parameter is missing or invalid."""


class CommandError(VMRCError):
    """Raised when an external helper process fails or cannot be started."""

    def __init__(
        self,
        message: str,
        args: Sequence[str] = (),
        returncode: int | None = None,
        stderr: str = "",
    ) -> None:
        super().__init__(message)
        self.command = list(args)
        self.returncode = returncode
        self.stderr = stderr
