"""Placeholder driver for backend kinds without an implementation."""

from __future__ import annotations

from typing import NoReturn

from vmrc.domain.models import BackendKind, Frame, InputEvent, Viewport
from vmrc.drivers.base import BackendDriver, UnsupportedBackendError


class UnsupportedDriver(BackendDriver):
    """Fails every operation immediately, naming the backend kind."""

    def __init__(self, kind: BackendKind) -> None:
        self.kind = kind

    def _unsupported(self) -> NoReturn:
        raise UnsupportedBackendError(
            f"Backend {self.kind.value} not implemented yet", backend=self.kind.value
        )

    async def connect(self) -> None:
        self._unsupported()

    async def disconnect(self) -> None:
        self._unsupported()

    async def capture_frame(self, viewport: Viewport | None = None) -> Frame:
        self._unsupported()

    async def send_input(self, event: InputEvent) -> None:
        self._unsupported()

    async def set_clipboard(self, text: str) -> None:
        self._unsupported()

    async def set_viewport(self, viewport: Viewport) -> None:
        self._unsupported()

    async def health_check(self) -> bool:
        self._unsupported()
