"""Run the tesseract CLI over a frame and aggregate its TSV output."""

from __future__ import annotations

import logging
import tempfile
from pathlib import Path

from pydantic import BaseModel, Field

from vmrc.domain.models import Frame, OCRResult
from vmrc.errors import CommandError
from vmrc.ocr.aggregate import OCRError, parse_tsv
from vmrc.utils.imaging import image_dimensions
from vmrc.utils.process import run_command

logger = logging.getLogger(__name__)


class OCROptions(BaseModel):
    """Per-call recognition options."""

    language: str = Field(default="eng")
    psm: int = Field(default=6, ge=0, le=13, description="Page segmentation mode")
    oem: int | None = Field(default=None, ge=0, le=3, description="OCR engine mode")
    extra_args: list[str] = Field(default_factory=list)
    tesseract_path: str = Field(default="tesseract")


def build_tesseract_args(image_path: str, options: OCROptions) -> list[str]:
    args = [
        options.tesseract_path,
        image_path,
        "stdout",
        "-l", options.language,
        "--psm", str(options.psm),
    ]
    if options.oem is not None:
        args += ["--oem", str(options.oem)]
    args.append("tsv")
    args += options.extra_args
    return args


async def run_tesseract(image: bytes, options: OCROptions | None = None) -> OCRResult:
    """Recognize text in an encoded image.

    The image is staged in a temporary directory that is removed however
    the call ends.

    Raises:
        OCRError: If tesseract fails or its output is not TSV.
    """
    options = options or OCROptions()
    with tempfile.TemporaryDirectory(prefix="vmrc-ocr-") as tmp:
        image_path = Path(tmp) / "frame.png"
        image_path.write_bytes(image)
        try:
            stdout = await run_command(build_tesseract_args(str(image_path), options))
        except CommandError as e:
            raise OCRError(f"tesseract failed: {e}") from e

    dims = image_dimensions(image)
    result = parse_tsv(
        stdout.decode("utf-8", errors="replace"),
        width=dims.width if dims else 0,
        height=dims.height if dims else 0,
    )
    logger.debug("OCR found %d lines, %d words", len(result.lines), len(result.words))
    return result


async def ocr_frame(frame: Frame, options: OCROptions | None = None) -> OCRResult:
    """OCR a captured frame, reporting the frame's own dimensions."""
    result = await run_tesseract(frame.data, options)
    return result.model_copy(update={"width": frame.width, "height": frame.height})
