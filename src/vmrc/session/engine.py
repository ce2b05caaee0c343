"""The session engine: lifecycle, frame loop and public operations.

A RemoteSession owns exactly one BackendDriver. Its status only moves
forward (connecting -> connected -> disconnected/error); a session that
has reached a terminal status is never reconnected, a new one must be
created instead.

All driver calls that touch protocol state (input, clipboard, viewport,
capture) run under a per-session lock, so a driver's cursor and button
state only ever sees one writer.
"""

from __future__ import annotations

import asyncio
import logging
import re
from collections.abc import Iterable, Mapping
from datetime import datetime
from typing import Any

from vmrc.domain.models import (
    DEFAULT_VIEWPORT,
    BackendKind,
    Frame,
    InputEvent,
    OCRMatch,
    OCRResult,
    SessionStatus,
    VisionActionPlan,
    Viewport,
    parse_input_event,
)
from vmrc.drivers.base import BackendDriver
from vmrc.errors import VMRCError
from vmrc.ocr import OCROptions, ocr_frame
from vmrc.ocr import find_text as search_text
from vmrc.ocr.aggregate import SearchScope
from vmrc.session.events import Listener, SessionEventName, SessionEvents
from vmrc.vision.planner import VisionPlanner

logger = logging.getLogger(__name__)

DEFAULT_FRAME_INTERVAL = 1.0

_TRANSITIONS: dict[SessionStatus, frozenset[SessionStatus]] = {
    SessionStatus.CONNECTING: frozenset(
        {SessionStatus.CONNECTED, SessionStatus.ERROR, SessionStatus.DISCONNECTED}
    ),
    SessionStatus.CONNECTED: frozenset({SessionStatus.DISCONNECTED, SessionStatus.ERROR}),
    SessionStatus.DISCONNECTED: frozenset(),
    SessionStatus.ERROR: frozenset(),
}


class RemoteSession:
    """One remote-control session bound to a single driver."""

    def __init__(
        self,
        session_id: str,
        backend: BackendKind,
        driver: BackendDriver,
        label: str | None = None,
        viewport: Viewport | None = None,
        read_only: bool = False,
        frame_interval: float = DEFAULT_FRAME_INTERVAL,
        planner: VisionPlanner | None = None,
        ocr_options: OCROptions | None = None,
    ) -> None:
        self._id = session_id
        self._backend = backend
        self._driver = driver
        self._label = label
        self._viewport = viewport or DEFAULT_VIEWPORT
        self._read_only = read_only
        self._frame_interval = frame_interval
        self._planner = planner
        self._ocr_options = ocr_options or OCROptions()
        self._created_at = datetime.now()

        self._status = SessionStatus.CONNECTING
        self._events = SessionEvents()
        self._lock = asyncio.Lock()
        self._stop = asyncio.Event()
        self._loop_task: asyncio.Task[None] | None = None
        self._closed = False

    def __repr__(self) -> str:
        return (
            f"RemoteSession(id={self._id!r}, backend={self._backend.value}, "
            f"status={self._status.value})"
        )

    @property
    def id(self) -> str:
        return self._id

    @property
    def backend(self) -> BackendKind:
        return self._backend

    @property
    def label(self) -> str | None:
        return self._label

    @property
    def status(self) -> SessionStatus:
        return self._status

    @property
    def viewport(self) -> Viewport:
        return self._viewport

    @property
    def read_only(self) -> bool:
        return self._read_only

    @property
    def driver(self) -> BackendDriver:
        return self._driver

    @property
    def created_at(self) -> datetime:
        return self._created_at

    @property
    def is_running(self) -> bool:
        return self._loop_task is not None and not self._loop_task.done()

    def on(self, event: SessionEventName, callback: Listener):
        """Subscribe to ``frame``, ``status`` or ``error`` events."""
        return self._events.on(event, callback)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self, interval: float | None = None) -> None:
        """Connect the driver and start the frame loop.

        Raises:
            VMRCError: If the session is not in the connecting state.
            Exception: Whatever the driver's connect raised; the session
                is then in the error state.
        """
        if self._status is not SessionStatus.CONNECTING or self._closed:
            raise SessionStateError(
                f"Session {self._id} cannot be started from status {self._status.value}"
            )
        if interval is not None:
            self._frame_interval = interval

        try:
            await self._driver.connect()
        except Exception as e:
            logger.error("Session %s failed to connect (%s): %s", self._id, self._backend.value, e)
            if not self._closed:
                await self._set_status(SessionStatus.ERROR)
                await self._events.emit("error", e)
            raise

        if self._closed:
            # close() ran while connect was in flight; it already marked the
            # session disconnected, so only the late connection is undone.
            try:
                await self._driver.disconnect()
            except Exception as e:
                logger.warning("Session %s driver disconnect failed: %s", self._id, e)
            raise SessionStateError(f"Session {self._id} was closed while connecting")

        await self._set_status(SessionStatus.CONNECTED)
        self._loop_task = asyncio.create_task(
            self._frame_loop(), name=f"vmrc-frames-{self._id}"
        )
        logger.info(
            "Session %s started (%s, every %.2fs)",
            self._id,
            self._backend.value,
            self._frame_interval,
        )

    async def close(self) -> None:
        """Stop the frame loop, disconnect the driver, mark disconnected.

        Calling it again is a no-op.
        """
        if self._closed:
            return
        self._closed = True
        await self._stop_loop()

        try:
            await self._driver.disconnect()
        except Exception as e:
            logger.warning("Session %s driver disconnect failed: %s", self._id, e)

        if self._status is not SessionStatus.ERROR:
            await self._set_status(SessionStatus.DISCONNECTED)
        logger.info("Session %s closed", self._id)

    async def __aenter__(self) -> RemoteSession:
        await self.start()
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.close()

    async def _stop_loop(self) -> None:
        self._stop.set()
        task = self._loop_task
        if task is None or task is asyncio.current_task():
            return
        await asyncio.gather(task, return_exceptions=True)

    async def _set_status(self, status: SessionStatus) -> None:
        if status not in _TRANSITIONS[self._status]:
            raise SessionStateError(
                f"Invalid status transition {self._status.value} -> {status.value}"
            )
        logger.debug("Session %s: %s -> %s", self._id, self._status.value, status.value)
        self._status = status
        await self._events.emit("status", status)

    async def _frame_loop(self) -> None:
        loop = asyncio.get_running_loop()
        while not self._stop.is_set():
            started = loop.time()
            try:
                frame = await self._capture()
            except Exception as e:
                logger.warning("Frame capture failed for session %s: %s", self._id, e)
            else:
                await self._events.emit("frame", frame)

            # An overrunning tick is not queued; the next one starts right away.
            remaining = max(0.0, self._frame_interval - (loop.time() - started))
            try:
                await asyncio.wait_for(self._stop.wait(), timeout=remaining)
            except asyncio.TimeoutError:
                pass

    async def _capture(self) -> Frame:
        async with self._lock:
            frame = await self._driver.capture_frame(self._viewport)
        if frame.width > 0 and frame.height > 0:
            reported = frame.viewport
            if reported != self._viewport:
                logger.info(
                    "Session %s viewport %dx%d -> %dx%d",
                    self._id,
                    self._viewport.width,
                    self._viewport.height,
                    reported.width,
                    reported.height,
                )
                self._viewport = reported
        return frame

    def _ensure_open(self) -> None:
        if self._status.is_terminal or self._closed:
            raise SessionStateError(f"Session {self._id} is {self._status.value}")

    # ------------------------------------------------------------------
    # Capture and interpretation
    # ------------------------------------------------------------------

    async def snapshot(self) -> Frame:
        """Capture one frame outside the loop's cadence."""
        self._ensure_open()
        return await self._capture()

    async def ocr_snapshot(self, options: OCROptions | None = None) -> OCRResult:
        frame = await self.snapshot()
        return await ocr_frame(frame, options or self._ocr_options)

    async def find_text(
        self,
        query: str | re.Pattern[str],
        scope: SearchScope = "line",
        match_case: bool = False,
        options: OCROptions | None = None,
    ) -> list[OCRMatch]:
        """Capture, OCR and search the current screen."""
        result = await self.ocr_snapshot(options)
        return search_text(result, query, scope=scope, match_case=match_case)

    async def vision_plan(
        self, prompt: str, planner: VisionPlanner | None = None
    ) -> VisionActionPlan:
        """Ask a vision model for actions that would achieve ``prompt``."""
        frame = await self.snapshot()
        planner = planner or self._planner or VisionPlanner()
        return await planner.plan(frame, prompt)

    # ------------------------------------------------------------------
    # Input
    # ------------------------------------------------------------------

    async def send_input(self, event: InputEvent | Mapping[str, Any]) -> None:
        """Apply one input event.

        Mappings are validated first and rejected with a
        ``pydantic.ValidationError`` when they are not a valid event.
        Read-only sessions drop the event with a warning.
        """
        if self._read_only:
            logger.warning("Session %s is read-only; dropping input", self._id)
            return
        if isinstance(event, Mapping):
            event = parse_input_event(event)
        self._ensure_open()
        async with self._lock:
            await self._driver.send_input(event)

    async def send_inputs(self, events: Iterable[InputEvent | Mapping[str, Any]]) -> int:
        """Apply events in order; returns how many were sent."""
        count = 0
        for event in events:
            await self.send_input(event)
            count += 1
        return count

    async def set_clipboard(self, text: str) -> None:
        if self._read_only:
            logger.warning("Session %s is read-only; dropping clipboard update", self._id)
            return
        self._ensure_open()
        async with self._lock:
            await self._driver.set_clipboard(text)

    async def set_viewport(self, viewport: Viewport) -> None:
        self._ensure_open()
        async with self._lock:
            await self._driver.set_viewport(viewport)
        self._viewport = viewport

    async def health_check(self) -> bool:
        if self._status.is_terminal:
            return False
        return await self._driver.health_check()


class SessionStateError(VMRCError):
    """Raised when an operation is not valid in the session's status."""
