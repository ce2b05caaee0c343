"""Shared test fixtures for the vmrc test suite.

Provides common fixtures used across the unit tests: sample frames,
tesseract TSV output, and mock drivers.
"""

from __future__ import annotations

from datetime import datetime
from unittest.mock import AsyncMock

import pytest

from vmrc.domain.models import BackendKind, Frame, Viewport
from vmrc.drivers.base import BackendDriver
from vmrc.utils.imaging import placeholder_png


# ---------------------------------------------------------------------------
# Frame / Image Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def sample_png() -> bytes:
    """A 64x48 PNG."""
    return placeholder_png(64, 48)


@pytest.fixture
def sample_frame(sample_png: bytes) -> Frame:
    """A Frame wrapping the sample PNG."""
    return Frame(
        data=sample_png,
        mime_type="image/png",
        width=64,
        height=48,
        timestamp=datetime(2025, 1, 1, 12, 0, 0),
    )


@pytest.fixture
def small_viewport() -> Viewport:
    return Viewport(width=64, height=48)


# ---------------------------------------------------------------------------
# OCR Fixtures
# ---------------------------------------------------------------------------

TSV_HEADER = (
    "level\tpage_num\tblock_num\tpar_num\tline_num\tword_num\t"
    "left\ttop\twidth\theight\tconf\ttext"
)


def tsv_row(level, block, par, line, word, left, top, width, height, conf, text) -> str:
    return "\t".join(
        str(v) for v in (level, 1, block, par, line, word, left, top, width, height, conf, text)
    )


@pytest.fixture
def sample_tsv() -> str:
    """Tesseract TSV with two lines in one paragraph plus a second block."""
    rows = [
        TSV_HEADER,
        tsv_row(1, 0, 0, 0, 0, 0, 0, 640, 480, -1, ""),
        tsv_row(2, 1, 0, 0, 0, 10, 10, 300, 60, -1, ""),
        tsv_row(5, 1, 1, 1, 1, 10, 10, 80, 20, 96.0, "Welcome"),
        tsv_row(5, 1, 1, 1, 2, 95, 10, 50, 20, 90.0, "back"),
        tsv_row(5, 1, 1, 2, 1, 10, 40, 60, 20, 80.0, "Settings"),
        tsv_row(5, 2, 1, 1, 1, 400, 300, 70, 25, 70.0, "Cancel"),
    ]
    return "\n".join(rows) + "\n"


# ---------------------------------------------------------------------------
# Driver Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_driver(sample_frame: Frame) -> AsyncMock:
    """An AsyncMock standing in for a connected BackendDriver."""
    driver = AsyncMock(spec=BackendDriver)
    driver.kind = BackendKind.MOCK
    driver.capture_frame.return_value = sample_frame
    driver.health_check.return_value = True
    return driver
