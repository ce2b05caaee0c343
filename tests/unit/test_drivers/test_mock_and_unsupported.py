"""Tests for the mock and unsupported drivers."""

from __future__ import annotations

import pytest

from vmrc.domain.models import BackendKind, TextEvent, Viewport
from vmrc.drivers.base import DriverError, UnsupportedBackendError
from vmrc.drivers.mock import MockDriver
from vmrc.drivers.unsupported import UnsupportedDriver
from vmrc.utils.imaging import image_dimensions, is_png


class TestMockDriver:
    @pytest.mark.asyncio
    async def test_capture_uses_configured_viewport(self) -> None:
        driver = MockDriver(viewport=Viewport(width=32, height=16))
        frame = await driver.capture_frame()
        assert is_png(frame.data)
        assert (frame.width, frame.height) == (32, 16)
        assert image_dimensions(frame.data) == Viewport(width=32, height=16)

    @pytest.mark.asyncio
    async def test_capture_scales_to_requested_viewport(self) -> None:
        driver = MockDriver()
        frame = await driver.capture_frame(Viewport(width=20, height=10))
        assert image_dimensions(frame.data) == Viewport(width=20, height=10)

    @pytest.mark.asyncio
    async def test_operations_succeed(self) -> None:
        async with MockDriver(label="test") as driver:
            await driver.send_input(TextEvent(text="hello"))
            await driver.set_clipboard("copied")
            await driver.set_viewport(Viewport(width=800, height=600))
            assert await driver.health_check() is True

    def test_custom_kind(self) -> None:
        driver = MockDriver(label="lab", kind=BackendKind.CUSTOM)
        assert driver.kind is BackendKind.CUSTOM


class TestUnsupportedDriver:
    @pytest.mark.asyncio
    async def test_every_operation_fails_naming_kind(self) -> None:
        driver = UnsupportedDriver(BackendKind.RDP)
        calls = [
            driver.connect(),
            driver.disconnect(),
            driver.capture_frame(),
            driver.send_input(TextEvent(text="x")),
            driver.set_clipboard("x"),
            driver.set_viewport(Viewport(width=1, height=1)),
            driver.health_check(),
        ]
        for call in calls:
            with pytest.raises(UnsupportedBackendError, match="rdp"):
                await call

    @pytest.mark.asyncio
    async def test_error_is_driver_error_and_not_implemented(self) -> None:
        driver = UnsupportedDriver(BackendKind.WEBRTC)
        with pytest.raises(NotImplementedError) as exc_info:
            await driver.connect()
        assert isinstance(exc_info.value, DriverError)
        assert exc_info.value.backend == "webrtc"
