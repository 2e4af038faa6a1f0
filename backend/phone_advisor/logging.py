"""structlog setup for the API process.

Development gets the console renderer; every other environment emits JSON
lines. ``LOG_FILE`` mirrors the rendered lines into a file.
"""

from __future__ import annotations

import logging
import sys
from typing import IO

import structlog

from phone_advisor.config import settings


def _warn(message: str) -> None:
    # Runs before or inside structlog's own output path, so plain stderr.
    print(f"WARNING: {message}", file=sys.stderr)


class _TeeWriter:
    """stdout plus an append-only log file.

    The file side switches itself off on the first open, write or flush error.
    """

    def __init__(self, file_path: str) -> None:
        self._file: IO[str] | None = None
        try:
            self._file = open(file_path, "a", encoding="utf-8")  # noqa: SIM115
        except OSError as exc:
            _warn(f"cannot open log file {file_path!r} ({exc}); logging to stdout only.")

    def _on_file(self, operation: str, data: str = "") -> None:
        if self._file is None:
            return
        try:
            if data:
                self._file.write(data)
            self._file.flush()
        except (OSError, ValueError):
            self._file = None
            _warn(f"log file {operation} failed; file logging disabled.")

    def write(self, data: str) -> None:
        sys.stdout.write(data)
        self._on_file("write", data)

    def flush(self) -> None:
        sys.stdout.flush()
        self._on_file("flush")


def configure_logging() -> None:
    level = logging.getLevelNamesMapping().get(settings.log_level.upper(), logging.INFO)
    renderer = (
        structlog.dev.ConsoleRenderer()
        if settings.environment == "development"
        else structlog.processors.JSONRenderer()
    )
    sink = _TeeWriter(settings.log_file) if settings.log_file else None

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(file=sink),  # type: ignore[arg-type]
        cache_logger_on_first_use=True,
    )
