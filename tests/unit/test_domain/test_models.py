"""Tests for domain models and input-event validation."""

from __future__ import annotations

import numpy as np
import pytest
from pydantic import ValidationError

from vmrc.domain.models import (
    BoundingBox,
    ClipboardEvent,
    Frame,
    KeyEvent,
    MouseButtonEvent,
    MouseMoveEvent,
    MouseScrollEvent,
    OCRMatch,
    SessionStatus,
    TextEvent,
    Viewport,
    coerce_input_event,
    parse_input_event,
)


class TestInputEvents:
    """Validation of the tagged InputEvent union."""

    def test_parse_key_event(self) -> None:
        event = parse_input_event({"type": "key", "key": "Enter", "action": "down"})
        assert isinstance(event, KeyEvent)
        assert event.modifiers == []

    def test_parse_each_variant(self) -> None:
        assert isinstance(parse_input_event({"type": "text", "text": "hi"}), TextEvent)
        assert isinstance(parse_input_event({"type": "mouse-move", "x": 1, "y": 2}), MouseMoveEvent)
        assert isinstance(
            parse_input_event({"type": "mouse-button", "button": "left", "action": "up"}),
            MouseButtonEvent,
        )
        assert isinstance(parse_input_event({"type": "clipboard", "text": "x"}), ClipboardEvent)

    def test_scroll_accepts_camel_case_aliases(self) -> None:
        event = parse_input_event({"type": "mouse-scroll", "deltaY": -120})
        assert isinstance(event, MouseScrollEvent)
        assert event.delta_y == -120
        assert event.delta_x is None

    def test_scroll_requires_a_delta(self) -> None:
        with pytest.raises(ValidationError):
            parse_input_event({"type": "mouse-scroll"})

    def test_unknown_type_rejected(self) -> None:
        with pytest.raises(ValidationError):
            parse_input_event({"type": "teleport", "x": 1})

    def test_malformed_fields_rejected(self) -> None:
        with pytest.raises(ValidationError):
            parse_input_event({"type": "key", "key": "a", "action": "hold"})
        with pytest.raises(ValidationError):
            parse_input_event({"type": "mouse-button", "button": "thumb", "action": "down"})
        with pytest.raises(ValidationError):
            parse_input_event({"type": "mouse-move", "x": "left"})

    def test_coerce_returns_none_for_invalid(self) -> None:
        assert coerce_input_event({"type": "click", "x": 1, "y": 2}) is None
        assert coerce_input_event("not a mapping") is None
        assert coerce_input_event({"type": "text", "text": "ok"}) == TextEvent(text="ok")

    def test_button_has_position(self) -> None:
        assert MouseButtonEvent(button="left", action="down", x=1, y=2).has_position
        assert not MouseButtonEvent(button="left", action="down", x=1).has_position

    def test_events_are_frozen(self) -> None:
        event = TextEvent(text="a")
        with pytest.raises(ValidationError):
            event.text = "b"  # type: ignore[misc]


class TestFrame:
    def test_viewport_and_base64(self, sample_frame: Frame) -> None:
        assert sample_frame.viewport == Viewport(width=64, height=48)
        assert sample_frame.to_base64().startswith("iVBORw0KGgo")

    def test_to_array_decodes_png(self, sample_frame: Frame) -> None:
        image = sample_frame.to_array()
        assert isinstance(image, np.ndarray)
        assert image.shape == (48, 64, 3)

    def test_to_array_rejects_garbage(self) -> None:
        frame = Frame(data=b"nope", width=1, height=1)
        with pytest.raises(ValueError):
            frame.to_array()

    def test_viewport_must_be_positive(self) -> None:
        with pytest.raises(ValidationError):
            Viewport(width=0, height=10)


class TestGeometry:
    def test_bounding_box_union(self) -> None:
        a = BoundingBox(x=0, y=0, width=50, height=20)
        b = BoundingBox(x=55, y=0, width=50, height=20)
        assert a.union(b) == BoundingBox(x=0, y=0, width=105, height=20)

    def test_union_extends_vertically(self) -> None:
        a = BoundingBox(x=10, y=10, width=10, height=10)
        b = BoundingBox(x=5, y=30, width=10, height=5)
        assert a.union(b) == BoundingBox(x=5, y=10, width=15, height=25)

    def test_match_center(self) -> None:
        match = OCRMatch(
            text="OK",
            bbox=BoundingBox(x=100, y=50, width=40, height=20),
            level="word",
            block=1,
            paragraph=1,
            line=1,
            word=1,
        )
        assert match.center == (120.0, 60.0)


class TestSessionStatus:
    def test_terminal_statuses(self) -> None:
        assert SessionStatus.DISCONNECTED.is_terminal
        assert SessionStatus.ERROR.is_terminal
        assert not SessionStatus.CONNECTING.is_terminal
        assert not SessionStatus.CONNECTED.is_terminal
