"""Mock backend driver for tests and dry runs.

Never touches a real machine: every frame is a blank placeholder and
every input is only logged.
"""

from __future__ import annotations

import logging
from datetime import datetime

from vmrc.domain.models import DEFAULT_VIEWPORT, BackendKind, Frame, InputEvent, Viewport
from vmrc.drivers.base import BackendDriver
from vmrc.utils.imaging import placeholder_png

logger = logging.getLogger(__name__)


class MockDriver(BackendDriver):
    """Driver that fakes a display of the configured size."""

    def __init__(
        self,
        label: str | None = None,
        viewport: Viewport = DEFAULT_VIEWPORT,
        kind: BackendKind = BackendKind.MOCK,
    ) -> None:
        self.kind = kind
        self._label = label
        self._viewport = viewport

    @property
    def viewport(self) -> Viewport:
        return self._viewport

    async def connect(self) -> None:
        logger.info(
            "Mock backend (%s) connected: label=%s viewport=%dx%d",
            self.kind.value, self._label, self._viewport.width, self._viewport.height,
        )

    async def disconnect(self) -> None:
        logger.info("Mock backend (%s) disconnected: label=%s", self.kind.value, self._label)

    async def capture_frame(self, viewport: Viewport | None = None) -> Frame:
        target = viewport or self._viewport
        return Frame(
            data=placeholder_png(target.width, target.height),
            mime_type="image/png",
            width=target.width,
            height=target.height,
            timestamp=datetime.now(),
        )

    async def send_input(self, event: InputEvent) -> None:
        logger.debug("Mock backend (%s) input: %s", self.kind.value, event)

    async def set_clipboard(self, text: str) -> None:
        logger.debug("Mock backend (%s) clipboard set (%d chars)", self.kind.value, len(text))

    async def set_viewport(self, viewport: Viewport) -> None:
        logger.debug(
            "Mock backend (%s) viewport update: %dx%d",
            self.kind.value, viewport.width, viewport.height,
        )

    async def health_check(self) -> bool:
        return True
