"""Logging setup for the MCP server.

All log output goes to stderr. stdout carries the JSON-RPC protocol and
must never receive a log line.

Line format::

    [2025-01-15T10:00:00.000Z] [INFO] message {"extra": "data"}

Besides the standard levels, three domain levels tag configuration and
per-service diagnostics: CONFIG, GMAIL and DRIVE.
"""

import json
import logging
import os
import sys
from datetime import datetime, timezone
from typing import Any

CONFIG = 21
GMAIL = 22
DRIVE = 23

ROOT_LOGGER_NAME = "gdrive_mcp"

logging.addLevelName(CONFIG, "CONFIG")
logging.addLevelName(GMAIL, "GMAIL")
logging.addLevelName(DRIVE, "DRIVE")


def debug_enabled() -> bool:
    """Return True when the DEBUG environment flag is set to ``true``."""
    return os.environ.get("DEBUG", "").lower() == "true"


class StderrFormatter(logging.Formatter):
    """Render ``[timestamp] [LEVEL] message [json data]`` lines."""

    def formatTime(self, record: logging.LogRecord, datefmt: str | None = None) -> str:  # noqa: N802
        moment = datetime.fromtimestamp(record.created, tz=timezone.utc)
        return moment.isoformat(timespec="milliseconds").replace("+00:00", "Z")

    def format(self, record: logging.LogRecord) -> str:
        level = "WARN" if record.levelno == logging.WARNING else record.levelname
        line = f"[{self.formatTime(record)}] [{level}] {record.getMessage()}"

        data = getattr(record, "data", None)
        if data is not None:
            line = f"{line} {_serialize(data)}"

        if record.exc_info:
            line = f"{line}\n{self.formatException(record.exc_info)}"
        return line


def _serialize(value: Any) -> str:
    if isinstance(value, (dict, list, tuple)):
        return json.dumps(value, default=str)
    return str(value)


def configure_logging(stream: Any = None) -> logging.Logger:
    """Attach a single stderr handler to the package logger.

    Safe to call more than once; the handler is replaced, not duplicated.

    Args:
        stream: Output stream. Defaults to ``sys.stderr``.

    Returns:
        The configured package logger.
    """
    logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(logger.handlers):
        if getattr(handler, "_gdrive_mcp", False):
            logger.removeHandler(handler)

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(StderrFormatter())
    handler._gdrive_mcp = True  # type: ignore[attr-defined]
    logger.addHandler(handler)

    logger.setLevel(logging.DEBUG if debug_enabled() else logging.INFO)
    logger.propagate = False
    return logger


def log_config(logger: logging.Logger, message: str, *args: Any) -> None:
    logger.log(CONFIG, message, *args)


def log_gmail(logger: logging.Logger, message: str, *args: Any) -> None:
    logger.log(GMAIL, message, *args)


def log_drive(logger: logging.Logger, message: str, *args: Any) -> None:
    logger.log(DRIVE, message, *args)
