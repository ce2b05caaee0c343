"""Logging setup for the vmrc CLI and embedding applications.

Everything under the ``vmrc`` logger (drivers, session engine, OCR and
vision planner) shares one set of handlers. The HTTP client used by the
vision planner logs every request at INFO, so it is held at WARNING
unless vmrc itself runs at DEBUG.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

from vmrc.config.settings import LoggingConfig

# Third-party loggers that are chatty at INFO
HTTP_LOGGERS = ("httpx", "httpcore")


def setup_logging(config: LoggingConfig | None = None) -> None:
    """Configure the ``vmrc`` logger from the ``logging`` settings section.

    Safe to call more than once: handlers from an earlier call are closed
    and replaced. A configured log file's directory is created on demand.
    """
    if config is None:
        config = LoggingConfig()

    level = getattr(logging, config.level.upper(), logging.INFO)
    vmrc_logger = logging.getLogger("vmrc")
    vmrc_logger.setLevel(level)

    for handler in list(vmrc_logger.handlers):
        vmrc_logger.removeHandler(handler)
        handler.close()

    formatter = logging.Formatter(config.format)
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if config.file:
        log_path = Path(config.file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path))

    for handler in handlers:
        handler.setFormatter(formatter)
        vmrc_logger.addHandler(handler)

    http_level = logging.DEBUG if level <= logging.DEBUG else logging.WARNING
    for name in HTTP_LOGGERS:
        logging.getLogger(name).setLevel(http_level)

    vmrc_logger.debug("Logging initialized at %s level", config.level)
