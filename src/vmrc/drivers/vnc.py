"""VNC backend driver using the vncsnapshot and vncdo helpers.

vncsnapshot grabs the framebuffer to an image file; vncdo injects key,
pointer and scroll events. RFB has no clipboard call vncdo can drive, so
clipboard writes are typed out instead.
"""

from __future__ import annotations

import logging
import shutil
import tempfile
from datetime import datetime
from pathlib import Path

from vmrc.domain.models import (
    DEFAULT_VIEWPORT,
    BackendKind,
    ClipboardEvent,
    Frame,
    InputEvent,
    KeyEvent,
    MouseButtonEvent,
    MouseMoveEvent,
    MouseScrollEvent,
    TextEvent,
    Viewport,
)
from vmrc.drivers.base import BackendDriver, CaptureError, DriverConnectionError, InputError
from vmrc.drivers.keycodes import vnc_key_combo
from vmrc.drivers.retry import DEFAULT_RETRY_COUNT, DEFAULT_RETRY_DELAY, run_with_retry
from vmrc.errors import CommandError
from vmrc.utils.imaging import image_dimensions, image_mime_type
from vmrc.utils.process import run_command

logger = logging.getLogger(__name__)

VNC_BASE_PORT = 5900

# vncdo pointer button numbers
BUTTON_NUMBERS: dict[str, str] = {"left": "1", "middle": "2", "right": "3"}
SCROLL_UP_BUTTON = "4"
SCROLL_DOWN_BUTTON = "5"


class VncDriver(BackendDriver):
    """Drives a VNC server through external helper invocations."""

    kind = BackendKind.VNC

    def __init__(
        self,
        host: str = "127.0.0.1",
        port: int = 5901,
        password: str | None = None,
        vncdo_path: str = "vncdo",
        vncsnapshot_path: str = "vncsnapshot",
        input_retry_count: int = DEFAULT_RETRY_COUNT,
        input_retry_delay: float = DEFAULT_RETRY_DELAY,
        viewport: Viewport = DEFAULT_VIEWPORT,
    ) -> None:
        self._host = host
        self._port = port
        self._password = password
        self._vncdo_path = vncdo_path
        self._vncsnapshot_path = vncsnapshot_path
        self._retry_count = input_retry_count
        self._retry_delay = input_retry_delay
        self._viewport = viewport

    @property
    def display(self) -> int:
        """VNC display number derived from the port (5901 -> :1)."""
        return max(0, self._port - VNC_BASE_PORT)

    @property
    def viewport(self) -> Viewport:
        return self._viewport

    async def _vncdo(self, *args: str) -> None:
        argv = [self._vncdo_path, "-s", f"{self._host}::{self._port}"]
        if self._password:
            argv += ["-p", self._password]
        argv += list(args)
        await run_with_retry(
            lambda: run_command(argv),
            f"vncdo {args[0]}",
            retries=self._retry_count,
            delay=self._retry_delay,
        )

    async def connect(self) -> None:
        for tool in (self._vncdo_path, self._vncsnapshot_path):
            if shutil.which(tool) is None:
                raise DriverConnectionError(f"VNC helper not found: {tool}", backend="vnc")
        logger.info("VNC session connected: %s:%d", self._host, self._port)

    async def disconnect(self) -> None:
        logger.info("VNC session disconnected: %s:%d", self._host, self._port)

    async def health_check(self) -> bool:
        return shutil.which(self._vncdo_path) is not None

    async def set_viewport(self, viewport: Viewport) -> None:
        # The server owns the framebuffer size; only remember the hint.
        self._viewport = viewport

    async def capture_frame(self, viewport: Viewport | None = None) -> Frame:
        with tempfile.TemporaryDirectory(prefix="vmrc-vnc-") as tmp:
            path = Path(tmp) / "snapshot"
            try:
                await run_command([
                    self._vncsnapshot_path, "-quiet",
                    f"{self._host}:{self.display}", str(path),
                ])
                data = path.read_bytes()
            except (CommandError, OSError) as e:
                raise CaptureError(f"VNC snapshot failed: {e}", backend="vnc") from e

        detected = image_dimensions(data)
        if detected is not None:
            self._viewport = detected
        target = detected or viewport or self._viewport
        return Frame(
            data=data,
            mime_type=image_mime_type(data),
            width=target.width,
            height=target.height,
            timestamp=datetime.now(),
        )

    async def send_input(self, event: InputEvent) -> None:
        try:
            if isinstance(event, KeyEvent):
                if event.action != "down":
                    # vncdo presses and releases in one call
                    return
                await self._vncdo("key", vnc_key_combo(event.key, event.modifiers))
            elif isinstance(event, TextEvent):
                await self._vncdo("type", event.text)
            elif isinstance(event, MouseMoveEvent):
                await self._vncdo("mousemove", str(round(event.x)), str(round(event.y)))
            elif isinstance(event, MouseButtonEvent):
                if event.has_position:
                    await self._vncdo("mousemove", str(round(event.x)), str(round(event.y)))
                command = "mousedown" if event.action == "down" else "mouseup"
                await self._vncdo(command, BUTTON_NUMBERS[event.button])
            elif isinstance(event, MouseScrollEvent):
                await self._scroll(event)
            elif isinstance(event, ClipboardEvent):
                await self.set_clipboard(event.text)
            else:
                logger.warning("Unknown input event: %r", event)
        except CommandError as e:
            raise InputError(f"{event.type} input failed: {e}", backend="vnc") from e

    async def _scroll(self, event: MouseScrollEvent) -> None:
        if event.delta_x:
            logger.warning("Horizontal scroll not supported by VNC backend; ignored")
        delta_y = event.delta_y or 0
        if delta_y > 0:
            await self._vncdo("click", SCROLL_DOWN_BUTTON)
        elif delta_y < 0:
            await self._vncdo("click", SCROLL_UP_BUTTON)

    async def set_clipboard(self, text: str) -> None:
        logger.warning("VNC clipboard not supported; typing text instead (%d chars)", len(text))
        try:
            await self._vncdo("type", text)
        except CommandError as e:
            raise InputError(f"Clipboard typing failed: {e}", backend="vnc") from e
