"""Core domain models for the vmrc system.

These models represent the data flowing between the session engine, the
backend drivers and the two frame-interpretation pipelines: captured
frames, viewports, normalized input events, OCR records and vision plans.
"""

from __future__ import annotations

import base64
import enum
from datetime import datetime
from typing import Annotated, Any, Literal, Union

import cv2
import numpy as np
from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    TypeAdapter,
    ValidationError,
    model_validator,
)


# ---------------------------------------------------------------------------
# Enumerations
# ---------------------------------------------------------------------------


class BackendKind(str, enum.Enum):
    """Remote-control protocols a session can target."""

    MOCK = "mock"
    VNC = "vnc"
    RDP = "rdp"
    SPICE = "spice"
    WEBRTC = "webrtc"
    CUSTOM = "custom"


class SessionStatus(str, enum.Enum):
    """Lifecycle status of a remote-control session."""

    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTED = "disconnected"
    ERROR = "error"

    @property
    def is_terminal(self) -> bool:
        return self in (SessionStatus.DISCONNECTED, SessionStatus.ERROR)


# ---------------------------------------------------------------------------
# Display Models
# ---------------------------------------------------------------------------


class Viewport(BaseModel):
    """Logical pixel dimensions a session or driver operates against."""

    model_config = ConfigDict(frozen=True)

    width: int = Field(gt=0, description="Width in pixels")
    height: int = Field(gt=0, description="Height in pixels")


DEFAULT_VIEWPORT = Viewport(width=1280, height=720)


class Frame(BaseModel):
    """One captured still image of the remote display.

    The pixel payload is kept encoded (usually PNG) exactly as the backend
    produced it. Width and height are the dimensions the driver reports,
    which may differ from the viewport that was requested.
    """

    model_config = ConfigDict(frozen=True)

    data: bytes = Field(repr=False, description="Encoded image bytes")
    mime_type: str = Field(default="image/png")
    width: int = Field(ge=0)
    height: int = Field(ge=0)
    timestamp: datetime = Field(default_factory=datetime.now)

    @property
    def viewport(self) -> Viewport:
        return Viewport(width=self.width, height=self.height)

    def to_base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")

    def to_array(self) -> np.ndarray:
        """Decode the frame into a BGR numpy array (OpenCV format)."""
        buffer = np.frombuffer(self.data, dtype=np.uint8)
        image = cv2.imdecode(buffer, cv2.IMREAD_COLOR)
        if image is None:
            raise ValueError(f"Cannot decode {self.mime_type} frame")
        return image


# ---------------------------------------------------------------------------
# Input Event Models (discriminated union on ``type``)
# ---------------------------------------------------------------------------

KeyAction = Literal["down", "up"]
MouseButton = Literal["left", "middle", "right"]


class KeyEvent(BaseModel):
    """A key transition, optionally with held modifiers."""

    model_config = ConfigDict(frozen=True)

    type: Literal["key"] = "key"
    key: str = Field(min_length=1)
    action: KeyAction
    modifiers: list[str] = Field(default_factory=list)


class TextEvent(BaseModel):
    """A literal string to type."""

    model_config = ConfigDict(frozen=True)

    type: Literal["text"] = "text"
    text: str


class MouseMoveEvent(BaseModel):
    """Move the pointer to logical pixel coordinates."""

    model_config = ConfigDict(frozen=True)

    type: Literal["mouse-move"] = "mouse-move"
    x: float
    y: float


class MouseButtonEvent(BaseModel):
    """Press or release a mouse button, optionally moving first."""

    model_config = ConfigDict(frozen=True)

    type: Literal["mouse-button"] = "mouse-button"
    button: MouseButton
    action: KeyAction
    x: float | None = None
    y: float | None = None

    @property
    def has_position(self) -> bool:
        return self.x is not None and self.y is not None


class MouseScrollEvent(BaseModel):
    """Scroll the wheel. Positive delta_y scrolls down."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    type: Literal["mouse-scroll"] = "mouse-scroll"
    delta_x: float | None = Field(default=None, alias="deltaX")
    delta_y: float | None = Field(default=None, alias="deltaY")

    @model_validator(mode="after")
    def _require_delta(self) -> MouseScrollEvent:
        if self.delta_x is None and self.delta_y is None:
            raise ValueError("mouse-scroll requires deltaX or deltaY")
        return self


class ClipboardEvent(BaseModel):
    """Replace the remote clipboard contents."""

    model_config = ConfigDict(frozen=True)

    type: Literal["clipboard"] = "clipboard"
    text: str


InputEvent = Annotated[
    Union[
        KeyEvent,
        TextEvent,
        MouseMoveEvent,
        MouseButtonEvent,
        MouseScrollEvent,
        ClipboardEvent,
    ],
    Field(discriminator="type"),
]

_input_event_adapter: TypeAdapter[InputEvent] = TypeAdapter(InputEvent)


def parse_input_event(data: Any) -> InputEvent:
    """Validate a mapping (or an existing event) against the InputEvent schema.

    Raises:
        pydantic.ValidationError: If the payload has an unknown ``type`` or
            is missing/has malformed fields for its variant.
    """
    return _input_event_adapter.validate_python(data)


def coerce_input_event(data: Any) -> InputEvent | None:
    """Like parse_input_event() but returns None for invalid payloads."""
    try:
        return parse_input_event(data)
    except ValidationError:
        return None


# ---------------------------------------------------------------------------
# OCR Models
# ---------------------------------------------------------------------------


class BoundingBox(BaseModel):
    """Axis-aligned box in frame pixel coordinates, origin top-left."""

    model_config = ConfigDict(frozen=True)

    x: int
    y: int
    width: int
    height: int

    @property
    def right(self) -> int:
        return self.x + self.width

    @property
    def bottom(self) -> int:
        return self.y + self.height

    def union(self, other: BoundingBox) -> BoundingBox:
        """Smallest box containing both boxes."""
        x = min(self.x, other.x)
        y = min(self.y, other.y)
        return BoundingBox(
            x=x,
            y=y,
            width=max(self.right, other.right) - x,
            height=max(self.bottom, other.bottom) - y,
        )


class OCRLine(BaseModel):
    """A recognized text line. Mutable while the aggregator merges words."""

    text: str
    bbox: BoundingBox
    confidence: float | None = Field(default=None, ge=0.0, le=100.0)
    block: int
    paragraph: int
    line: int

    @property
    def key(self) -> tuple[int, int, int]:
        return (self.block, self.paragraph, self.line)


class OCRWord(BaseModel):
    """A single recognized word."""

    model_config = ConfigDict(frozen=True)

    text: str
    bbox: BoundingBox
    confidence: float | None = Field(default=None, ge=0.0, le=100.0)
    block: int
    paragraph: int
    line: int
    word: int

    @property
    def line_key(self) -> tuple[int, int, int]:
        return (self.block, self.paragraph, self.line)


class OCRResult(BaseModel):
    """Aggregated recognition output for one frame."""

    text: str = Field(description="Line texts joined by newline, in line order")
    lines: list[OCRLine] = Field(default_factory=list)
    words: list[OCRWord] = Field(default_factory=list)
    width: int = Field(default=0, ge=0)
    height: int = Field(default=0, ge=0)
    timestamp: datetime = Field(default_factory=datetime.now)


class OCRMatch(BaseModel):
    """A line or word that matched a text search."""

    model_config = ConfigDict(frozen=True)

    text: str
    bbox: BoundingBox
    confidence: float | None = None
    level: Literal["line", "word"]
    block: int
    paragraph: int
    line: int
    word: int | None = None

    @property
    def center(self) -> tuple[float, float]:
        """Centre point of the match, handy for clicking on it."""
        return (
            self.bbox.x + self.bbox.width / 2,
            self.bbox.y + self.bbox.height / 2,
        )


# ---------------------------------------------------------------------------
# Vision Models
# ---------------------------------------------------------------------------


class VisionActionPlan(BaseModel):
    """A validated sequence of input events proposed by a vision model."""

    summary: str | None = None
    actions: list[InputEvent] = Field(default_factory=list)
    raw: str = Field(default="", description="Model response text, kept for diagnostics")
    salvaged: bool = Field(
        default=False,
        description="True when actions were recovered by regex from non-JSON output",
    )
