"""Tests for the VNC driver with vncdo/vncsnapshot patched out."""

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from vmrc.domain.models import (
    ClipboardEvent,
    KeyEvent,
    MouseButtonEvent,
    MouseMoveEvent,
    MouseScrollEvent,
    TextEvent,
    Viewport,
)
from vmrc.drivers.base import CaptureError, DriverConnectionError, InputError
from vmrc.drivers.vnc import VncDriver
from vmrc.errors import CommandError


@pytest.fixture
def run() -> Iterator[AsyncMock]:
    with patch("vmrc.drivers.vnc.run_command", new_callable=AsyncMock) as mock:
        mock.return_value = b""
        yield mock


@pytest.fixture
def driver() -> VncDriver:
    return VncDriver(host="10.0.0.5", port=5902, input_retry_delay=0)


def vncdo_args(run: AsyncMock) -> list[list[str]]:
    """Arguments after the connection options of every vncdo call."""
    return [call.args[0][3:] for call in run.await_args_list]


class TestVncDriver:
    def test_display_number(self) -> None:
        assert VncDriver(port=5901).display == 1
        assert VncDriver(port=5900).display == 0
        assert VncDriver(port=22).display == 0

    @pytest.mark.asyncio
    async def test_connection_args_include_password(self, run) -> None:
        driver = VncDriver(host="h", port=5901, password="secret")
        await driver.send_input(TextEvent(text="x"))
        assert run.await_args.args[0] == ["vncdo", "-s", "h::5901", "-p", "secret", "type", "x"]

    @pytest.mark.asyncio
    async def test_key_down_only(self, driver, run) -> None:
        await driver.send_input(KeyEvent(key="T", action="down", modifiers=["Ctrl", "Shift"]))
        await driver.send_input(KeyEvent(key="T", action="up", modifiers=["Ctrl", "Shift"]))
        assert vncdo_args(run) == [["key", "ctrl+shift+t"]]

    @pytest.mark.asyncio
    async def test_mouse_events(self, driver, run) -> None:
        await driver.send_input(MouseMoveEvent(x=10.4, y=20.6))
        await driver.send_input(MouseButtonEvent(button="middle", action="down", x=5, y=6))
        await driver.send_input(MouseButtonEvent(button="right", action="up"))
        assert vncdo_args(run) == [
            ["mousemove", "10", "21"],
            ["mousemove", "5", "6"],
            ["mousedown", "2"],
            ["mouseup", "3"],
        ]

    @pytest.mark.asyncio
    async def test_scroll_directions(self, driver, run) -> None:
        await driver.send_input(MouseScrollEvent(delta_y=120))
        await driver.send_input(MouseScrollEvent(delta_y=-3))
        await driver.send_input(MouseScrollEvent(delta_x=50))
        assert vncdo_args(run) == [["click", "5"], ["click", "4"]]

    @pytest.mark.asyncio
    async def test_clipboard_is_typed(self, driver, run, caplog) -> None:
        await driver.send_input(ClipboardEvent(text="paste me"))
        assert vncdo_args(run) == [["type", "paste me"]]
        assert "not supported" in caplog.text

    @pytest.mark.asyncio
    async def test_input_error_after_retries(self, driver, run) -> None:
        run.side_effect = CommandError("connection refused")
        with pytest.raises(InputError):
            await driver.send_input(TextEvent(text="x"))
        assert run.await_count == 3

    @pytest.mark.asyncio
    async def test_connect_requires_helpers(self, driver) -> None:
        with patch("vmrc.drivers.vnc.shutil.which", return_value=None):
            with pytest.raises(DriverConnectionError, match="vncdo"):
                await driver.connect()

    @pytest.mark.asyncio
    async def test_connect_with_helpers(self, driver) -> None:
        with patch("vmrc.drivers.vnc.shutil.which", return_value="/usr/bin/tool"):
            await driver.connect()
            assert await driver.health_check() is True

    @pytest.mark.asyncio
    async def test_capture_reads_snapshot(self, driver, run, sample_png) -> None:
        async def fake_snapshot(args):
            assert args[:3] == ["vncsnapshot", "-quiet", "10.0.0.5:2"]
            Path(args[3]).write_bytes(sample_png)
            return b""

        run.side_effect = fake_snapshot
        frame = await driver.capture_frame(Viewport(width=800, height=600))
        assert frame.data == sample_png
        assert (frame.width, frame.height) == (64, 48)
        assert driver.viewport == Viewport(width=64, height=48)

    @pytest.mark.asyncio
    async def test_capture_failure(self, driver, run) -> None:
        run.side_effect = CommandError("no server")
        with pytest.raises(CaptureError):
            await driver.capture_frame()
