"""Async execution of external helper processes.

Every backend talks to its control surface through command-line helpers
(virsh, vncdo, vncsnapshot, tesseract, ImageMagick). They all go through
run_command() so failures surface uniformly as CommandError.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Sequence

from vmrc.errors import CommandError

logger = logging.getLogger(__name__)


async def run_command(args: Sequence[str], stdin: bytes | None = None) -> bytes:
    """Run a command to completion and return its stdout.

    Raises:
        CommandError: If the executable is missing or exits non-zero.
    """
    argv = [str(a) for a in args]
    logger.debug("Running %s", argv[0] if argv else "<empty>")
    try:
        proc = await asyncio.create_subprocess_exec(
            *argv,
            stdin=asyncio.subprocess.PIPE if stdin is not None else asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
    except OSError as e:
        raise CommandError(f"Cannot start {argv[0]}: {e}", args=argv) from e

    try:
        stdout, stderr = await proc.communicate(stdin)
    except asyncio.CancelledError:
        # Never leave an orphaned helper behind.
        if proc.returncode is None:
            proc.kill()
            await proc.wait()
        raise

    if proc.returncode != 0:
        err = stderr.decode("utf-8", errors="replace").strip()
        raise CommandError(
            f"{argv[0]} exited with status {proc.returncode}: {err}",
            args=argv,
            returncode=proc.returncode,
            stderr=err,
        )
    return stdout


async def run_text_command(args: Sequence[str]) -> str:
    """Run a command and return its stdout decoded and stripped."""
    stdout = await run_command(args)
    return stdout.decode("utf-8", errors="replace").strip()
