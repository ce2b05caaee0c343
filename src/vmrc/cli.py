"""Command-line interface for vmrc.

Opens a session against the configured backend, runs one operation
(snapshot, OCR, text search, vision plan, health check) and closes it.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

logger = logging.getLogger(__name__)

BACKEND_CHOICES = ["mock", "vnc", "rdp", "spice", "webrtc", "custom"]


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    """Parse command-line arguments."""
    parser = argparse.ArgumentParser(
        prog="vmrc",
        description="Remote control for virtual machine displays",
    )
    parser.add_argument(
        "-c", "--config",
        type=Path,
        default=None,
        help="Path to YAML configuration file (default: config/vmrc.yaml)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="store_true",
        help="Enable debug logging",
    )
    parser.add_argument(
        "--backend", choices=BACKEND_CHOICES, default=None,
        help="Backend kind (default: default_backend from config)",
    )
    parser.add_argument(
        "--label", type=str, default=None,
        help="Session label; the libvirt domain for spice",
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    snapshot_parser = subparsers.add_parser("snapshot", help="Capture one frame to a file")
    snapshot_parser.add_argument(
        "-o", "--output", type=Path, default=Path("snapshot.png"),
        help="Output image path",
    )

    subparsers.add_parser("ocr", help="Capture a frame and print the recognized text")

    find_parser = subparsers.add_parser("find", help="Search the screen for text")
    find_parser.add_argument("query", type=str)
    find_parser.add_argument("--scope", choices=["line", "word", "all"], default="line")
    find_parser.add_argument("--match-case", action="store_true")

    plan_parser = subparsers.add_parser("plan", help="Ask the vision model for an action plan")
    plan_parser.add_argument("prompt", type=str)
    plan_parser.add_argument(
        "--execute", action="store_true",
        help="Send the planned actions to the VM",
    )

    subparsers.add_parser("health", help="Check that the backend is reachable")

    return parser.parse_args(argv)


async def _run_command(settings, args) -> None:
    from vmrc.provider import RemoteControlProvider

    provider = RemoteControlProvider(settings)
    session = await provider.start_session(
        backend=args.backend,
        label=args.label,
        read_only=args.command != "plan" or not args.execute,
    )
    try:
        if args.command == "snapshot":
            frame = await session.snapshot()
            args.output.write_bytes(frame.data)
            print(f"Saved {frame.mime_type} frame to {args.output} ({frame.width}x{frame.height})")

        elif args.command == "ocr":
            result = await session.ocr_snapshot()
            print(result.text)

        elif args.command == "find":
            matches = await session.find_text(
                args.query, scope=args.scope, match_case=args.match_case
            )
            if not matches:
                print("No matches")
            for m in matches:
                cx, cy = m.center
                conf = f"{m.confidence:.0f}" if m.confidence is not None else "-"
                print(f"[{m.level}] {m.text!r} at ({cx:.0f}, {cy:.0f}) conf={conf}")

        elif args.command == "plan":
            plan = await session.vision_plan(args.prompt)
            print(plan.model_dump_json(indent=2, exclude={"raw"}))
            if args.execute:
                sent = await session.send_inputs(plan.actions)
                print(f"Executed {sent} actions")

        elif args.command == "health":
            ok = await session.health_check()
            print("healthy" if ok else "unhealthy")
    finally:
        await provider.close_all()


def main(argv: list[str] | None = None) -> None:
    """Main entry point for the vmrc CLI."""
    args = parse_args(argv)

    if args.command is None:
        parse_args(["--help"])
        return

    from vmrc.config.settings import load_settings
    from vmrc.errors import VMRCError
    from vmrc.utils.logging import setup_logging

    try:
        settings = load_settings(args.config)
    except VMRCError as e:
        print(f"error: {e}", file=sys.stderr)
        sys.exit(2)

    if args.verbose:
        settings.logging.level = "DEBUG"

    setup_logging(settings.logging)

    try:
        asyncio.run(_run_command(settings, args))
    except VMRCError as e:
        logger.error("%s failed: %s", args.command, e)
        sys.exit(1)
