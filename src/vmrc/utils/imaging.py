"""Image helpers for vmrc.

Shared dimension detection, placeholder generation and downscaling used
by the drivers, the OCR runner and the vision planner.
"""

from __future__ import annotations

import functools
import io
import logging
import tempfile
from collections.abc import Sequence
from pathlib import Path

import cv2
import numpy as np
from PIL import Image, UnidentifiedImageError

from vmrc.domain.models import Viewport
from vmrc.errors import CommandError
from vmrc.utils.process import run_command

logger = logging.getLogger(__name__)

PNG_SIGNATURE = b"\x89PNG\r\n\x1a\n"

# grey level of the mock driver's blank frames
PLACEHOLDER_GREY = 128

RESIZE_COMMANDS: tuple[str, ...] = ("magick", "convert")


def is_png(data: bytes) -> bool:
    return data[:8] == PNG_SIGNATURE


def image_dimensions(data: bytes) -> Viewport | None:
    """Read image dimensions from encoded bytes without decoding pixels.

    Returns None when the payload is not a recognizable image.
    """
    try:
        with Image.open(io.BytesIO(data)) as img:
            width, height = img.size
    except (UnidentifiedImageError, OSError):
        return None
    if width <= 0 or height <= 0:
        return None
    return Viewport(width=width, height=height)


def image_mime_type(data: bytes, default: str = "application/octet-stream") -> str:
    """MIME type of encoded image bytes (PNG, JPEG, PPM, ...)."""
    if is_png(data):
        return "image/png"
    try:
        with Image.open(io.BytesIO(data)) as img:
            return img.get_format_mimetype() or default
    except (UnidentifiedImageError, OSError):
        return default


@functools.lru_cache(maxsize=8)
def placeholder_png(width: int, height: int) -> bytes:
    """A uniform grey image of the given size, PNG encoded."""
    pixels = np.full((height, width, 3), PLACEHOLDER_GREY, dtype=np.uint8)
    success, buffer = cv2.imencode(".png", pixels)
    if not success:
        raise ValueError("Failed to encode placeholder PNG")
    return buffer.tobytes()


async def downscale_image(
    data: bytes,
    max_width: int | None,
    commands: Sequence[str] = RESIZE_COMMANDS,
) -> bytes:
    """Shrink an image to max_width (aspect preserved) with ImageMagick.

    The image is returned untouched when max_width is unset, the size
    cannot be read, or it is already narrow enough. Each command in
    ``commands`` is tried in order; the last failure is re-raised.
    """
    if not max_width:
        return data
    dims = image_dimensions(data)
    if dims is None or dims.width <= max_width:
        return data

    with tempfile.TemporaryDirectory(prefix="vmrc-resize-") as tmp:
        in_path = Path(tmp) / "input.png"
        out_path = Path(tmp) / "output.png"
        in_path.write_bytes(data)
        last_error: CommandError | None = None
        for command in commands:
            try:
                await run_command([command, str(in_path), "-resize", str(max_width), str(out_path)])
            except CommandError as e:
                logger.debug("Resize with %s failed: %s", command, e)
                last_error = e
                continue
            logger.debug("Downscaled %dx%d image to width %d", dims.width, dims.height, max_width)
            return out_path.read_bytes()
    if last_error is None:
        raise ValueError("No resize command configured")
    raise last_error
