"""Domain models for vmrc.

This package contains the core data structures, enumerations, and value
objects used throughout the system. All models use Pydantic v2 for
validation and serialization.
"""

from vmrc.domain.models import (
    DEFAULT_VIEWPORT,
    BackendKind,
    BoundingBox,
    ClipboardEvent,
    Frame,
    InputEvent,
    KeyEvent,
    MouseButtonEvent,
    MouseMoveEvent,
    MouseScrollEvent,
    OCRLine,
    OCRMatch,
    OCRResult,
    OCRWord,
    SessionStatus,
    TextEvent,
    Viewport,
    VisionActionPlan,
    coerce_input_event,
    parse_input_event,
)

__all__ = [
    "DEFAULT_VIEWPORT",
    "BackendKind",
    "BoundingBox",
    "ClipboardEvent",
    "Frame",
    "InputEvent",
    "KeyEvent",
    "MouseButtonEvent",
    "MouseMoveEvent",
    "MouseScrollEvent",
    "OCRLine",
    "OCRMatch",
    "OCRResult",
    "OCRWord",
    "SessionStatus",
    "TextEvent",
    "Viewport",
    "VisionActionPlan",
    "coerce_input_event",
    "parse_input_event",
]
