"""Session factory and registry.

Routes a backend kind to its driver, builds a RemoteSession around it and
keeps track of live sessions until they reach a terminal status.
"""

from __future__ import annotations

import logging
import random
import string
import time

from vmrc.config.settings import Settings
from vmrc.domain.models import DEFAULT_VIEWPORT, BackendKind, SessionStatus, Viewport
from vmrc.drivers.base import BackendDriver
from vmrc.drivers.mock import MockDriver
from vmrc.drivers.spice import SpiceDriver
from vmrc.drivers.unsupported import UnsupportedDriver
from vmrc.drivers.vnc import VncDriver
from vmrc.ocr import OCROptions
from vmrc.session.engine import RemoteSession
from vmrc.vision.planner import VisionPlanner

logger = logging.getLogger(__name__)

PROVIDER_ID = "vm-remote-control"
_ID_ALPHABET = string.ascii_lowercase + string.digits


def new_session_id() -> str:
    """``vmrc_<epoch ms>_<6 random chars>``"""
    suffix = "".join(random.choices(_ID_ALPHABET, k=6))
    return f"vmrc_{int(time.time() * 1000)}_{suffix}"


class RemoteControlProvider:
    """Creates sessions for any configured backend and tracks them."""

    id = PROVIDER_ID

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or Settings()
        self._sessions: dict[str, RemoteSession] = {}

    @property
    def settings(self) -> Settings:
        return self._settings

    def create_driver(
        self,
        backend: BackendKind,
        label: str | None = None,
        viewport: Viewport | None = None,
    ) -> BackendDriver:
        """Build the driver for ``backend``.

        Raises:
            ConfigError: If the backend is missing a required parameter.
        """
        s = self._settings
        viewport = viewport or DEFAULT_VIEWPORT
        if backend is BackendKind.MOCK:
            if s.mock.width and s.mock.height:
                viewport = Viewport(width=s.mock.width, height=s.mock.height)
            return MockDriver(label=label or s.mock.label, viewport=viewport)
        if backend is BackendKind.CUSTOM:
            return MockDriver(
                label=label or s.custom.label,
                viewport=viewport,
                kind=BackendKind.CUSTOM,
            )
        if backend is BackendKind.SPICE:
            spice = s.spice
            return SpiceDriver(
                domain=label or spice.domain or "",
                viewport=viewport,
                absolute_mouse=spice.absolute_mouse,
                input_retry_count=spice.input_retry_count,
                input_retry_delay=spice.input_retry_delay,
                use_guest_screenshot=spice.use_guest_screenshot,
                guest_screenshot_path=spice.guest_screenshot_path,
                guest_screenshot_width=spice.guest_screenshot_width,
                virsh_path=spice.virsh_path,
            )
        if backend is BackendKind.VNC:
            vnc = s.vnc
            return VncDriver(
                host=vnc.host,
                port=vnc.port,
                password=vnc.password.get_secret_value() if vnc.password else None,
                vncdo_path=vnc.vncdo_path,
                vncsnapshot_path=vnc.vncsnapshot_path,
                input_retry_count=vnc.input_retry_count,
                input_retry_delay=vnc.input_retry_delay,
                viewport=viewport,
            )
        # rdp and webrtc have no driver yet
        return UnsupportedDriver(backend)

    def create_planner(self) -> VisionPlanner:
        vision = self._settings.vision
        return VisionPlanner(
            model=vision.model,
            base_url=vision.base_url,
            system_prompt=vision.system_prompt,
            timeout=vision.timeout,
            temperature=vision.temperature,
            max_tokens=vision.max_tokens,
            max_image_width=vision.max_image_width,
        )

    def ocr_options(self) -> OCROptions:
        ocr = self._settings.ocr
        return OCROptions(
            language=ocr.language,
            psm=ocr.psm,
            oem=ocr.oem,
            tesseract_path=ocr.tesseract_path,
        )

    async def start_session(
        self,
        backend: BackendKind | str | None = None,
        label: str | None = None,
        viewport: Viewport | None = None,
        read_only: bool = False,
    ) -> RemoteSession:
        """Create, register and start a session.

        Raises:
            ConfigError: Before any session exists, for missing parameters.
            DriverError: If the driver cannot connect; the session is not
                kept in the registry.
        """
        kind = BackendKind(backend) if backend else self._settings.default_backend
        driver = self.create_driver(kind, label=label, viewport=viewport)

        interval = self._settings.frame_interval
        if kind is BackendKind.MOCK and self._settings.mock.frame_interval:
            interval = self._settings.mock.frame_interval

        session = RemoteSession(
            session_id=new_session_id(),
            backend=kind,
            driver=driver,
            label=label,
            viewport=getattr(driver, "viewport", viewport),
            read_only=read_only,
            frame_interval=interval,
            planner=self.create_planner(),
            ocr_options=self.ocr_options(),
        )
        self._sessions[session.id] = session
        session.on("status", lambda status: self._on_status(session.id, status))

        logger.info("Starting %s session %s", kind.value, session.id)
        await session.start()
        return session

    async def end_session(self, session_id: str) -> None:
        session = self._sessions.pop(session_id, None)
        if session is None:
            logger.debug("end_session: unknown session %s", session_id)
            return
        await session.close()

    def get_session(self, session_id: str) -> RemoteSession | None:
        return self._sessions.get(session_id)

    def list_sessions(self) -> list[RemoteSession]:
        return list(self._sessions.values())

    async def close_all(self) -> None:
        for session_id in list(self._sessions):
            await self.end_session(session_id)

    def _on_status(self, session_id: str, status: SessionStatus) -> None:
        if status.is_terminal:
            self._sessions.pop(session_id, None)
