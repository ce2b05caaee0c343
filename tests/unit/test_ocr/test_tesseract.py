"""Tests for the tesseract runner with the CLI patched out."""

from __future__ import annotations

from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest

from vmrc.domain.models import Frame
from vmrc.errors import CommandError
from vmrc.ocr.aggregate import OCRError
from vmrc.ocr.tesseract import OCROptions, build_tesseract_args, ocr_frame, run_tesseract


class TestBuildArgs:
    def test_defaults(self) -> None:
        assert build_tesseract_args("/tmp/in.png", OCROptions()) == [
            "tesseract", "/tmp/in.png", "stdout", "-l", "eng", "--psm", "6", "tsv",
        ]

    def test_oem_and_extra_args(self) -> None:
        options = OCROptions(language="deu", psm=11, oem=1, extra_args=["-c", "preserve_interword_spaces=1"])
        assert build_tesseract_args("in.png", options) == [
            "tesseract", "in.png", "stdout", "-l", "deu", "--psm", "11", "--oem", "1",
            "tsv", "-c", "preserve_interword_spaces=1",
        ]

    def test_psm_range_validated(self) -> None:
        with pytest.raises(ValueError):
            OCROptions(psm=14)


class TestRunTesseract:
    @pytest.mark.asyncio
    async def test_parses_output_and_cleans_up(self, sample_png: bytes, sample_tsv: str) -> None:
        staged: list[Path] = []

        async def fake_tesseract(args):
            path = Path(args[1])
            assert path.read_bytes() == sample_png
            staged.append(path)
            return sample_tsv.encode()

        with patch("vmrc.ocr.tesseract.run_command", new_callable=AsyncMock) as run:
            run.side_effect = fake_tesseract
            result = await run_tesseract(sample_png)

        assert result.text.splitlines()[0] == "Welcome back"
        assert (result.width, result.height) == (64, 48)
        assert not staged[0].exists()
        assert not staged[0].parent.exists()

    @pytest.mark.asyncio
    async def test_command_failure_is_ocr_error(self, sample_png: bytes) -> None:
        with patch("vmrc.ocr.tesseract.run_command", new_callable=AsyncMock) as run:
            run.side_effect = CommandError("tesseract: not found")
            with pytest.raises(OCRError):
                await run_tesseract(sample_png)

    @pytest.mark.asyncio
    async def test_ocr_frame_reports_frame_size(self, sample_png: bytes, sample_tsv: str) -> None:
        frame = Frame(data=sample_png, width=1280, height=720)
        with patch("vmrc.ocr.tesseract.run_command", new_callable=AsyncMock) as run:
            run.return_value = sample_tsv.encode()
            result = await ocr_frame(frame, OCROptions(language="eng"))
        assert (result.width, result.height) == (1280, 720)
        assert len(result.lines) == 3
