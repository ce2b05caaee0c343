"""SPICE backend driver built on libvirt's ``virsh``.

Display and input go through the hypervisor rather than the SPICE wire
protocol itself:

- capture: ``virsh screenshot`` on the host, or a PowerShell helper run
  inside the guest through the QEMU guest agent;
- input: QMP ``input-send-event`` (preferred) with ``virsh send-key`` and
  HMP ``mouse_move``/``mouse_button`` as legacy paths;
- clipboard: guest agent call, falling back to typed keystrokes.
"""

from __future__ import annotations

import asyncio
import base64
import binascii
import json
import logging
import tempfile
from datetime import datetime
from pathlib import Path
from typing import Any

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
from vmrc.drivers.base import (
    BackendDriver,
    CaptureError,
    DriverConnectionError,
    InputError,
)
from vmrc.drivers.keycodes import (
    char_to_qmp,
    char_to_virsh,
    key_to_qmp,
    key_to_virsh,
    keys_to_qmp,
    keys_to_virsh,
    scale_absolute,
)
from vmrc.drivers.retry import DEFAULT_RETRY_COUNT, DEFAULT_RETRY_DELAY, run_with_retry
from vmrc.errors import CommandError, ConfigError
from vmrc.utils.imaging import image_dimensions, image_mime_type, is_png
from vmrc.utils.process import run_command, run_text_command

logger = logging.getLogger(__name__)

DEFAULT_GUEST_SCREENSHOT_PATH = "C:\\Windows\\Temp\\vmrc_shot.png"

# guest-exec-status polling
GUEST_EXEC_POLLS = 20
GUEST_EXEC_POLL_DELAY = 0.2
# guest-file-read
GUEST_FILE_CHUNK = 65536
GUEST_FILE_ATTEMPTS = 3
GUEST_FILE_RETRY_DELAY = 0.3
MIN_GUEST_SCREENSHOT_BYTES = 1024

# Wheel deltas at or above this size are treated as browser-style units
WHEEL_DELTA_UNIT = 120

# HMP mouse_button bitmask
BUTTON_BITS: dict[str, int] = {"left": 1, "right": 2, "middle": 4}

GUEST_SCREENSHOT_SCRIPT = (
    "Add-Type -AssemblyName System.Windows.Forms; "
    "Add-Type -AssemblyName System.Drawing; "
    "$v = [System.Windows.Forms.SystemInformation]::VirtualScreen; "
    "$b = New-Object System.Drawing.Bitmap($v.Width, $v.Height); "
    "$g = [System.Drawing.Graphics]::FromImage($b); "
    "$g.CopyFromScreen($v.X, $v.Y, 0, 0, $b.Size); "
    "$scale = [Math]::Min(1.0, {target_width} / $v.Width); "
    "$b2 = New-Object System.Drawing.Bitmap($b, [int]($v.Width * $scale), [int]($v.Height * $scale)); "
    "$b2.Save('{path}', [System.Drawing.Imaging.ImageFormat]::Png); "
    "$ms = New-Object IO.MemoryStream; "
    "$b2.Save($ms, [System.Drawing.Imaging.ImageFormat]::Png); "
    "[Convert]::ToBase64String($ms.ToArray())"
)


def _qga_return(response: Any) -> dict[str, Any]:
    """The ``return`` object of a guest agent reply, or an empty dict."""
    if isinstance(response, dict):
        value = response.get("return")
        if isinstance(value, dict):
            return value
    return {}


def _qga_return_value(response: Any) -> Any:
    """The raw ``return`` value of a guest agent reply (file handles are ints)."""
    if isinstance(response, dict):
        return response.get("return")
    return None


def _wheel_notches(delta: float) -> int:
    """Whole notches in ``delta``; any non-zero delta scrolls at least one."""
    return max(1, round(abs(delta) / WHEEL_DELTA_UNIT))


class SpiceDriver(BackendDriver):
    """Drives a libvirt domain's display and input via ``virsh``.

    Mouse addressing is either absolute (pixel coordinates scaled into
    QEMU's 0..65535 tablet range with the current viewport) or relative
    (deltas from the last position this driver sent). Relative mode keeps
    the cursor position and pressed-button mask on the instance.
    """

    kind = BackendKind.SPICE

    def __init__(
        self,
        domain: str,
        viewport: Viewport = DEFAULT_VIEWPORT,
        absolute_mouse: bool = True,
        input_retry_count: int = DEFAULT_RETRY_COUNT,
        input_retry_delay: float = DEFAULT_RETRY_DELAY,
        use_guest_screenshot: bool = False,
        guest_screenshot_path: str = DEFAULT_GUEST_SCREENSHOT_PATH,
        guest_screenshot_width: int = 800,
        virsh_path: str = "virsh",
    ) -> None:
        if not domain:
            raise ConfigError("SPICE backend requires a domain name (label or spice.domain)")
        self._domain = domain
        self._viewport = viewport
        self._absolute_mouse = absolute_mouse
        self._retry_count = input_retry_count
        self._retry_delay = input_retry_delay
        self._use_guest_screenshot = use_guest_screenshot
        self._guest_screenshot_path = guest_screenshot_path
        self._guest_screenshot_width = guest_screenshot_width
        self._virsh_path = virsh_path
        self._mouse_x: float = 0.0
        self._mouse_y: float = 0.0
        self._button_mask: int = 0

    @property
    def domain(self) -> str:
        return self._domain

    @property
    def viewport(self) -> Viewport:
        return self._viewport

    # ------------------------------------------------------------------
    # Command plumbing
    # ------------------------------------------------------------------

    async def _virsh(self, *args: str) -> str:
        return await run_text_command([self._virsh_path, *args])

    async def _qmp(self, command: dict[str, Any]) -> None:
        await run_command(
            [self._virsh_path, "qemu-monitor-command", self._domain, json.dumps(command)]
        )

    async def _hmp(self, command: str) -> None:
        await run_command(
            [self._virsh_path, "qemu-monitor-command", "--hmp", self._domain, command]
        )

    async def _qga(self, command: dict[str, Any]) -> Any:
        stdout = await self._virsh("qemu-agent-command", self._domain, json.dumps(command))
        try:
            return json.loads(stdout)
        except json.JSONDecodeError:
            return stdout

    async def _retry(self, operation, label: str) -> Any:
        return await run_with_retry(
            operation, label, retries=self._retry_count, delay=self._retry_delay
        )

    async def _send_qmp_events(self, events: list[dict[str, Any]]) -> None:
        await self._retry(
            lambda: self._qmp({"execute": "input-send-event", "arguments": {"events": events}}),
            "QMP input",
        )

    async def _send_key_events(self, keys: list[tuple[str, bool]]) -> None:
        await self._send_qmp_events([
            {"type": "key", "data": {"down": down, "key": {"type": "qcode", "data": key}}}
            for key, down in keys
        ])

    async def _send_legacy_keys(self, codes: list[str]) -> None:
        await self._retry(
            lambda: self._virsh("send-key", self._domain, *codes),
            "virsh send-key",
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        try:
            state = await self._virsh("domstate", self._domain)
            display = await self._virsh("domdisplay", self._domain)
        except CommandError as e:
            raise DriverConnectionError(
                f"Cannot reach libvirt domain {self._domain}: {e}", backend="spice"
            ) from e
        logger.info("SPICE session connected: domain=%s state=%s display=%s",
                    self._domain, state, display or "(none)")

    async def disconnect(self) -> None:
        self._button_mask = 0
        logger.info("SPICE session disconnected: domain=%s", self._domain)

    async def health_check(self) -> bool:
        try:
            await self._virsh("domstate", self._domain)
            return True
        except CommandError as e:
            logger.warning("Health check failed for %s: %s", self._domain, e)
            return False

    async def set_viewport(self, viewport: Viewport) -> None:
        self._viewport = viewport

    # ------------------------------------------------------------------
    # Capture
    # ------------------------------------------------------------------

    async def capture_frame(self, viewport: Viewport | None = None) -> Frame:
        try:
            if self._use_guest_screenshot:
                data = await self._capture_guest_screenshot()
            else:
                data = await self._capture_host_screenshot()
        except CommandError as e:
            raise CaptureError(f"Screenshot of {self._domain} failed: {e}", backend="spice") from e

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

    async def _capture_host_screenshot(self) -> bytes:
        with tempfile.TemporaryDirectory(prefix="vmrc-spice-") as tmp:
            path = Path(tmp) / "screen.png"
            await self._virsh("screenshot", self._domain, "--file", str(path))
            return path.read_bytes()

    async def _capture_guest_screenshot(self) -> bytes:
        script = GUEST_SCREENSHOT_SCRIPT.format(
            target_width=self._guest_screenshot_width,
            path=self._guest_screenshot_path.replace("'", "''"),
        )
        exec_resp = await self._qga({
            "execute": "guest-exec",
            "arguments": {
                "path": "powershell.exe",
                "arg": ["-NoProfile", "-NonInteractive", "-Command", script],
                "capture-output": True,
            },
        })
        pid = _qga_return(exec_resp).get("pid")
        if not pid:
            raise CaptureError("guest-exec did not return a pid", backend="spice")

        out_data: str | None = None
        for _ in range(GUEST_EXEC_POLLS):
            status = _qga_return(await self._qga({
                "execute": "guest-exec-status",
                "arguments": {"pid": pid},
            }))
            out_data = status.get("out-data") or status.get("out_data") or out_data
            if status.get("exited"):
                break
            await asyncio.sleep(GUEST_EXEC_POLL_DELAY)

        if out_data:
            try:
                stdout = base64.b64decode(out_data).decode("utf-8").strip()
                if stdout:
                    return base64.b64decode(stdout)
            except (binascii.Error, UnicodeDecodeError) as e:
                logger.warning("Guest screenshot stdout unusable, reading file instead: %s", e)

        for _ in range(GUEST_FILE_ATTEMPTS - 1):
            data = await self._read_guest_file(self._guest_screenshot_path)
            if is_png(data) and len(data) > MIN_GUEST_SCREENSHOT_BYTES:
                return data
            await asyncio.sleep(GUEST_FILE_RETRY_DELAY)
        return await self._read_guest_file(self._guest_screenshot_path)

    async def _read_guest_file(self, path: str) -> bytes:
        """Read a whole guest file through guest-file-open/read/close."""
        handle = _qga_return_value(await self._qga({
            "execute": "guest-file-open",
            "arguments": {"path": path, "mode": "rb"},
        }))
        if handle is None:
            raise CaptureError(f"guest-file-open failed for {path}", backend="spice")

        chunks: list[bytes] = []
        try:
            while True:
                read = _qga_return(await self._qga({
                    "execute": "guest-file-read",
                    "arguments": {"handle": handle, "count": GUEST_FILE_CHUNK},
                }))
                buf = read.get("buf-b64") or read.get("buf_b64")
                if buf:
                    chunks.append(base64.b64decode(buf))
                if not read.get("count"):
                    break
        finally:
            await self._qga({"execute": "guest-file-close", "arguments": {"handle": handle}})
        return b"".join(chunks)

    # ------------------------------------------------------------------
    # Input
    # ------------------------------------------------------------------

    async def send_input(self, event: InputEvent) -> None:
        try:
            if isinstance(event, KeyEvent):
                await self._send_key(event)
            elif isinstance(event, TextEvent):
                await self._type_text(event.text)
            elif isinstance(event, MouseMoveEvent):
                await self._move_mouse(event.x, event.y)
            elif isinstance(event, MouseButtonEvent):
                await self._press_button(event)
            elif isinstance(event, MouseScrollEvent):
                await self._scroll(event)
            elif isinstance(event, ClipboardEvent):
                await self.set_clipboard(event.text)
            else:
                logger.warning("Unknown input event: %r", event)
        except CommandError as e:
            raise InputError(f"{event.type} input failed: {e}", backend="spice") from e

    async def _send_key(self, event: KeyEvent) -> None:
        key = key_to_qmp(event.key)
        if key is None:
            logger.warning("Unsupported key: %r", event.key)
            return
        modifiers = keys_to_qmp(event.modifiers)
        if event.action == "down":
            keys = [(m, True) for m in modifiers] + [(key, True)]
        else:
            keys = [(key, False)] + [(m, False) for m in modifiers]

        try:
            await self._send_key_events(keys)
        except CommandError:
            # send-key has no separate up-events
            fallback = key_to_virsh(event.key)
            if event.action != "down" or fallback is None:
                raise
            logger.warning("QMP key injection failed; falling back to virsh send-key")
            await self._send_legacy_keys(keys_to_virsh(event.modifiers) + [fallback])

    async def _type_text(self, text: str) -> None:
        for char in text:
            mapped = char_to_qmp(char)
            legacy = char_to_virsh(char)
            if mapped is not None:
                code, shift = mapped
                if shift:
                    keys = [("shift", True), (code, True), (code, False), ("shift", False)]
                else:
                    keys = [(code, True), (code, False)]
                try:
                    await self._send_key_events(keys)
                    continue
                except CommandError:
                    if legacy is None:
                        raise
                    logger.warning("QMP typing failed for %r; falling back to virsh send-key", char)
            if legacy is not None:
                await self._send_legacy_keys(legacy)
            else:
                logger.warning("No key mapping for character %r; skipped", char)

    async def _move_mouse(self, x: float, y: float) -> None:
        if self._absolute_mouse:
            self._mouse_x, self._mouse_y = x, y
            await self._send_qmp_events([
                {"type": "abs", "data": {"axis": "x", "value": scale_absolute(x, self._viewport.width)}},
                {"type": "abs", "data": {"axis": "y", "value": scale_absolute(y, self._viewport.height)}},
            ])
            return
        dx = round(x - self._mouse_x)
        dy = round(y - self._mouse_y)
        self._mouse_x, self._mouse_y = x, y
        await self._retry(lambda: self._hmp(f"mouse_move {dx} {dy}"), "HMP mouse_move")

    async def _press_button(self, event: MouseButtonEvent) -> None:
        if event.has_position:
            await self._move_mouse(event.x, event.y)
        down = event.action == "down"
        if self._absolute_mouse:
            await self._send_qmp_events([
                {"type": "btn", "data": {"button": event.button, "down": down}},
            ])
            return
        bit = BUTTON_BITS[event.button]
        if down:
            self._button_mask |= bit
        else:
            self._button_mask &= ~bit
        mask = self._button_mask
        await self._retry(lambda: self._hmp(f"mouse_button {mask}"), "HMP mouse_button")

    async def _scroll(self, event: MouseScrollEvent) -> None:
        events: list[dict[str, Any]] = []
        for delta, negative, positive in (
            (event.delta_y or 0, "wheel-up", "wheel-down"),
            (event.delta_x or 0, "wheel-left", "wheel-right"),
        ):
            if not delta:
                continue
            button = positive if delta > 0 else negative
            for _ in range(_wheel_notches(delta)):
                events.append({"type": "btn", "data": {"button": button, "down": True}})
                events.append({"type": "btn", "data": {"button": button, "down": False}})
        if not events:
            return
        await self._send_qmp_events(events)

    async def set_clipboard(self, text: str) -> None:
        try:
            await self._qga({"execute": "guest-set-clipboard", "arguments": {"text": text}})
            logger.debug("Clipboard set via guest agent (%d chars)", len(text))
            return
        except CommandError as e:
            logger.warning(
                "Clipboard via guest agent failed; falling back to keystrokes (%d chars): %s",
                len(text), e,
            )
        try:
            await self._type_text(text)
        except CommandError as e:
            raise InputError(f"Clipboard keystroke fallback failed: {e}", backend="spice") from e
