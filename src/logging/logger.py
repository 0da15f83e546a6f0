# src/logging/logger.py — v2
"""JSON and text log formatters, and the one-call setup used by the CLI.

Both formatters read the batch/item context from logging.context, so call
sites never repeat batch ids or guids in their messages.
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import Any, Iterable, TextIO

from newsweaver.logging.context import get_context

ROOT_LOGGER = "newsweaver"

# Third-party loggers that are chatty at INFO.
NOISY_LOGGERS = ("httpx", "httpcore")


def _timestamp(record: logging.LogRecord) -> datetime:
    return datetime.fromtimestamp(record.created, tz=timezone.utc)


class JsonFormatter(logging.Formatter):
    """One JSON object per line, for log shippers."""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, Any] = {
            "timestamp": _timestamp(record).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        context = get_context().as_dict()
        if context:
            entry["context"] = context

        # logger.info(..., extra={"data": {...}})
        data = getattr(record, "data", None)
        if data:
            entry["data"] = data

        if record.exc_info and record.exc_info[1] is not None:
            entry["exception"] = self.formatException(record.exc_info)

        return json.dumps(entry, default=str)


class TextFormatter(logging.Formatter):
    """Single-line human-readable format for terminals."""

    def format(self, record: logging.LogRecord) -> str:
        ctx = get_context()
        tags = [
            f"[{ctx.batch_id}]" if ctx.batch_id else "",
            f"<{ctx.source_guid}>" if ctx.source_guid else "",
            f"({ctx.stage})" if ctx.stage else "",
        ]
        head = " ".join(
            p for p in (
                _timestamp(record).strftime("%Y-%m-%d %H:%M:%S"),
                f"{record.levelname:<8}",
                record.name,
                *tags,
            ) if p
        )
        line = f"{head} — {record.getMessage()}"
        if record.exc_info and record.exc_info[1] is not None:
            line += "\n" + self.formatException(record.exc_info)
        return line


def setup_logging(
    level: str = "INFO",
    log_format: str = "json",
    log_file: str | None = None,
    rotation: str = "10MB",
    retention: int = 30,
    stream: TextIO | None = None,
    quiet: Iterable[str] = NOISY_LOGGERS,
) -> logging.Logger:
    """Attach console (and optional rotating file) handlers to the package logger.

    Calling it again replaces the handlers installed by the previous call.

    Args:
        level: Log level name; unknown names fall back to INFO.
        log_format: "json" or "text".
        log_file: Rotating log file path, or None for console only.
        rotation: Size at which the file rotates (e.g. "10MB").
        retention: Number of rotated files kept.
        stream: Console stream, stdout when None.
        quiet: Logger names capped at WARNING.

    Returns:
        The configured package logger.
    """
    logger = logging.getLogger(ROOT_LOGGER)
    logger.setLevel(getattr(logging, level.upper(), logging.INFO))
    for handler in list(logger.handlers):
        logger.removeHandler(handler)
        handler.close()

    formatter: logging.Formatter = JsonFormatter() if log_format == "json" else TextFormatter()

    handlers: list[logging.Handler] = [logging.StreamHandler(stream or sys.stdout)]
    if log_file:
        from newsweaver.logging.handlers import create_rotating_handler

        handlers.append(create_rotating_handler(log_file, rotation=rotation, retention=retention))

    for handler in handlers:
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    for name in quiet:
        logging.getLogger(name).setLevel(logging.WARNING)
    return logger
