"""Logging helpers for the secure inquiry service."""

from __future__ import annotations

import logging
import sys
from pathlib import Path

_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"
_DATEFMT = "%Y-%m-%dT%H:%M:%S"

_logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO", file: str | None = None) -> None:
    """Configure process-wide logging to stderr and an optional file."""
    handlers: list[logging.Handler] = []

    stream_handler = logging.StreamHandler(sys.stderr)
    stream_handler.setFormatter(logging.Formatter(_FORMAT, datefmt=_DATEFMT))
    handlers.append(stream_handler)

    file_error: OSError | None = None
    if file:
        try:
            Path(file).parent.mkdir(parents=True, exist_ok=True)
            file_handler = logging.FileHandler(file)
            file_handler.setFormatter(logging.Formatter(_FORMAT, datefmt=_DATEFMT))
            handlers.append(file_handler)
        except OSError as exc:
            file_error = exc

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        handlers=handlers,
        force=True,
    )
    if file_error is not None:
        _logger.warning("Failed to open log file %s: %s", file, file_error)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
