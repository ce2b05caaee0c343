"""Tests for the helper process runner."""

from __future__ import annotations

import shutil
import sys

import pytest

from vmrc.errors import CommandError
from vmrc.utils.process import run_command, run_text_command

pytestmark = pytest.mark.skipif(
    sys.platform == "win32" or shutil.which("cat") is None,
    reason="needs POSIX helpers",
)


class TestRunCommand:
    @pytest.mark.asyncio
    async def test_stdout_and_stdin(self) -> None:
        assert await run_command(["cat"], stdin=b"frame-bytes") == b"frame-bytes"

    @pytest.mark.asyncio
    async def test_text_is_stripped(self) -> None:
        assert await run_text_command(["echo", "  running  "]) == "running"

    @pytest.mark.asyncio
    async def test_non_zero_exit(self) -> None:
        with pytest.raises(CommandError) as exc_info:
            await run_command(["sh", "-c", "echo 'domain not found' >&2; exit 3"])
        assert exc_info.value.returncode == 3
        assert exc_info.value.stderr == "domain not found"

    @pytest.mark.asyncio
    async def test_missing_executable(self) -> None:
        with pytest.raises(CommandError, match="Cannot start"):
            await run_command(["vmrc-definitely-not-installed"])
