"""Abstract base class for backend drivers.

Every remote-control backend (mock, SPICE via libvirt, VNC, ...) conforms
to this interface, so the session engine can drive any of them without
knowing which protocol sits underneath.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

from vmrc.domain.models import BackendKind, Frame, InputEvent, Viewport
from vmrc.errors import VMRCError

logger = logging.getLogger(__name__)


class BackendDriver(ABC):
    """Owns the connection to one external control surface.

    A driver is owned by exactly one session. Any protocol state it keeps
    (cursor position, pressed buttons, last known viewport) lives on the
    instance and is never shared.

    Example usage::

        async with SpiceDriver(domain="win11") as driver:
            frame = await driver.capture_frame()
            await driver.send_input(TextEvent(text="hello"))
    """

    kind: BackendKind

    @abstractmethod
    async def connect(self) -> None:
        """Establish or validate availability of the control surface.

        Raises:
            DriverConnectionError: If the target is unreachable or
                misconfigured.
        """
        ...

    @abstractmethod
    async def disconnect(self) -> None:
        """Release per-driver resources.

        Must be safe to call even if connect() never succeeded.
        """
        ...

    @abstractmethod
    async def capture_frame(self, viewport: Viewport | None = None) -> Frame:
        """Capture the current display.

        Args:
            viewport: Size hint. Backends that know their native
                      resolution report that instead.

        Raises:
            CaptureError: If the capture fails.
        """
        ...

    @abstractmethod
    async def send_input(self, event: InputEvent) -> None:
        """Apply one input event.

        Sub-cases a backend cannot express are dropped with a warning.

        Raises:
            InputError: If dispatch fails after retries.
        """
        ...

    @abstractmethod
    async def set_clipboard(self, text: str) -> None:
        """Replace the remote clipboard, typing the text if unsupported."""
        ...

    @abstractmethod
    async def set_viewport(self, viewport: Viewport) -> None:
        """Record the logical viewport used for coordinate scaling."""
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        """Whether the control surface is currently reachable."""
        ...

    async def __aenter__(self) -> BackendDriver:
        """Async context manager entry -- connects the driver."""
        await self.connect()
        return self

    async def __aexit__(self, exc_type: type | None, exc_val: Exception | None, exc_tb: object) -> None:
        """Async context manager exit -- disconnects the driver."""
        await self.disconnect()


class DriverError(VMRCError):
    """Base class for driver failures."""

    def __init__(self, message: str, backend: str = "") -> None:
        super().__init__(message)
        self.backend = backend


class DriverConnectionError(DriverError, ConnectionError):
    """Raised when a driver cannot establish its control surface."""


class CaptureError(DriverError):
    """Raised when a frame capture fails."""


class InputError(DriverError):
    """Raised when input dispatch fails after retries are exhausted."""


class UnsupportedBackendError(DriverError, NotImplementedError):
    """Raised by every operation of a backend kind with no implementation."""
