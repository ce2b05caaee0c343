"""Listener registry for session events.

A session produces three kinds of event: ``frame`` (a Frame, on every
successful loop tick), ``status`` (a SessionStatus, on every transition)
and ``error`` (the exception that failed a connect). Callbacks may be
plain functions or coroutine functions. They are invoked in registration
order and a failing callback is logged without affecting the others.
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Callable, Literal

logger = logging.getLogger(__name__)

SessionEventName = Literal["frame", "status", "error"]
EVENT_NAMES: tuple[str, ...] = ("frame", "status", "error")

Listener = Callable[[Any], Any]


class SessionEvents:
    """Per-session publish/subscribe registry."""

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = {name: [] for name in EVENT_NAMES}

    def on(self, event: SessionEventName, callback: Listener) -> Callable[[], None]:
        """Register a callback; returns a function that removes it again."""
        if event not in self._listeners:
            raise ValueError(f"Unknown session event: {event!r}")
        self._listeners[event].append(callback)
        logger.debug("Listener registered for %s", event)

        def unsubscribe() -> None:
            self.off(event, callback)

        return unsubscribe

    def off(self, event: SessionEventName, callback: Listener) -> None:
        listeners = self._listeners.get(event, [])
        if callback in listeners:
            listeners.remove(callback)

    def listener_count(self, event: SessionEventName) -> int:
        return len(self._listeners.get(event, []))

    async def emit(self, event: SessionEventName, payload: Any) -> None:
        for callback in list(self._listeners.get(event, [])):
            try:
                result = callback(payload)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception("Error in %s listener %r", event, callback)
